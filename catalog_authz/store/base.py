from __future__ import annotations

from typing import List, Optional, Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field, field_validator

from catalog_authz.authz.actions import Action, parse_action
from catalog_authz.authz.scopes import ResourcePath, Scope, parse_scope


class Grant(BaseModel):
    """
    One privilege record as returned by the store for a principal.

    `scope` and `action` are kept as the raw strings the store sent; use
    `parsed_scope` / `parsed_action` for evaluation. Missing or
    unrecognised values parse to the INVALID sentinels and never authorize anything.
    """

    model_config = ConfigDict(extra="ignore", frozen=True)

    scope: Optional[str] = None
    server: Optional[str] = None
    database: Optional[str] = None
    table: Optional[str] = None
    column: Optional[str] = None
    action: Optional[str] = None
    grant_option: bool = False

    @field_validator("scope", "action", mode="before")
    @classmethod
    def _tolerate_unknown(cls, v):  # type: ignore[no-untyped-def]
        # One unreadable record must not discard the rest of the list.
        return v if isinstance(v, str) else None

    @property
    def parsed_scope(self) -> Scope:
        return parse_scope(self.scope)

    @property
    def parsed_action(self) -> Action:
        return parse_action(self.action)

    def path(self, *, default_server: str) -> ResourcePath:
        # A grant without a server field belongs to the server we are configured for.
        return ResourcePath(
            server=self.server or default_server,
            database=self.database,
            table=self.table,
            column=self.column,
        )


class ListPrivilegesRequest(BaseModel):
    principal: str
    server: str


class ListPrivilegesResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    privileges: List[Grant] = Field(default_factory=list)


@runtime_checkable
class PrivilegeStore(Protocol):
    def start(self) -> None: ...

    def stop(self) -> None: ...

    def fetch_grants(self, principal: str) -> List[Grant]: ...
