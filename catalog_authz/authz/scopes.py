"""
Resource scope hierarchy: SERVER > DATABASE > TABLE > COLUMN.

A grant at some scope applies to everything below it that shares its path prefix,
e.g. a DATABASE grant on `sales` applies to table `sales.orders` and to column
`sales.orders.amount`, but not to the server as a whole.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional, Tuple

from catalog_authz.authz.errors import InvalidArgumentError


class Scope(str, Enum):
    SERVER = "SERVER"
    DATABASE = "DATABASE"
    TABLE = "TABLE"
    COLUMN = "COLUMN"
    INVALID = "INVALID"

    @property
    def rank(self) -> int:
        """Depth in the hierarchy (SERVER=0). INVALID has no rank (-1)."""
        return _RANKS.get(self, -1)

    @property
    def is_valid(self) -> bool:
        return self is not Scope.INVALID

    def contains(self, other: "Scope") -> bool:
        """True if a grant at `self` can apply to a request at `other`."""
        if not (self.is_valid and other.is_valid):
            return False
        return self.rank <= other.rank


_RANKS = {Scope.SERVER: 0, Scope.DATABASE: 1, Scope.TABLE: 2, Scope.COLUMN: 3}
_BY_NAME = {s.value: s for s in _RANKS}


def parse_scope(text: Optional[str]) -> Scope:
    return _BY_NAME.get((text or "").strip().upper(), Scope.INVALID)


def _check_name(kind: str, value: str, full: str) -> str:
    v = (value or "").strip()
    if not v or v != value:
        raise InvalidArgumentError(f"invalid {kind} name in identifier {full!r}")
    return v


def parse_table_name(name: str) -> Tuple[str, str]:
    """Split a `database.table` identifier."""
    parts = (name or "").split(".")
    if len(parts) != 2:
        raise InvalidArgumentError(f"table name {name!r} must be of the form <database>.<table>")
    return _check_name("database", parts[0], name), _check_name("table", parts[1], name)


@dataclass(frozen=True)
class ResourcePath:
    server: str
    database: Optional[str] = None
    table: Optional[str] = None
    column: Optional[str] = None

    @classmethod
    def for_table(cls, table_name: str, *, server: str) -> "ResourcePath":
        db, tbl = parse_table_name(table_name)
        return cls(server=server, database=db, table=tbl)

    @classmethod
    def parse(cls, identifier: str, *, server: str) -> "ResourcePath":
        """Parse `db`, `db.table` or `db.table.column`. An empty string is the server itself."""
        if identifier is None:
            raise InvalidArgumentError("resource identifier is required")
        if identifier == "":
            return cls(server=server)
        parts = identifier.split(".")
        if len(parts) > 3:
            raise InvalidArgumentError(f"invalid resource identifier {identifier!r}")
        kinds = ("database", "table", "column")
        names = [_check_name(k, p, identifier) for k, p in zip(kinds, parts)]
        names += [None] * (3 - len(names))
        return cls(server, names[0], names[1], names[2])

    @property
    def depth(self) -> Scope:
        """The finest scope this path identifies."""
        if self.column is not None:
            return Scope.COLUMN
        if self.table is not None:
            return Scope.TABLE
        if self.database is not None:
            return Scope.DATABASE
        return Scope.SERVER

    def components(self) -> Tuple[Optional[str], ...]:
        return (self.server, self.database, self.table, self.column)

    def truncate(self, scope: Scope) -> "ResourcePath":
        if not scope.is_valid:
            raise InvalidArgumentError("cannot truncate a path to an invalid scope")
        keep = scope.rank + 1
        comps = list(self.components()[:keep]) + [None] * (4 - keep)
        return ResourcePath(*comps)  # type: ignore[arg-type]

    def normalized(self, *, case_sensitive: bool = False) -> "ResourcePath":
        """
        Apply the store's name normalisation. The server name is always compared
        case-insensitively; database/table/column names only when the store is.
        """

        def _n(v: Optional[str]) -> Optional[str]:
            if v is None or case_sensitive:
                return v
            return v.lower()

        return replace(
            self,
            server=(self.server or "").lower(),
            database=_n(self.database),
            table=_n(self.table),
            column=_n(self.column),
        )

    def __str__(self) -> str:
        return ".".join(c for c in self.components()[1:] if c is not None) or f"server={self.server}"


def covers(grant_scope: Scope, grant_path: ResourcePath, target_scope: Scope, target_path: ResourcePath) -> bool:
    """
    Does a grant at (grant_scope, grant_path) apply to a request at
    (target_scope, target_path)?

    Both paths must already be normalised the same way.
    """
    if not grant_scope.contains(target_scope):
        return False
    if target_path.depth.rank < target_scope.rank:
        return False
    # Every component down to the grant's own granularity must be present and equal.
    for i in range(grant_scope.rank + 1):
        g = grant_path.components()[i]
        if g is None or g != target_path.components()[i]:
            return False
    return True
