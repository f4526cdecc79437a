from __future__ import annotations

from typing import FrozenSet, Iterable, Optional


class TrustedPrincipalSet:
    """
    Static allow-list of principals that bypass privilege checks entirely
    (typically other services acting on behalf of already-authorized users).

    Membership is case-sensitive and the set never changes after construction.
    """

    __slots__ = ("_members",)

    def __init__(self, principals: Iterable[str] = ()) -> None:
        self._members: FrozenSet[str] = frozenset(p for p in principals if p)

    @classmethod
    def from_csv(cls, raw: Optional[str]) -> "TrustedPrincipalSet":
        return cls(x.strip() for x in (raw or "").split(",") if x.strip())

    def is_trusted(self, principal: Optional[str]) -> bool:
        return bool(principal) and principal in self._members

    def __contains__(self, principal: object) -> bool:
        return isinstance(principal, str) and self.is_trusted(principal)

    def __len__(self) -> int:
        return len(self._members)
