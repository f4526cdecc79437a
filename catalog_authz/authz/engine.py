"""
Authorization engine for catalog operations.

Each `authorize_*` call returns None when allowed and raises an AuthzError
subclass otherwise. The engine fetches the principal's grants from the privilege
store once per call and evaluates them locally; it never caches grants and never
retries. Trusted principals are allowed without contacting the store.

Per-operation rules:
- create table: CREATE on the database. Creating on behalf of a different owner
  also requires ALL on the database with the grant option.
- drop table: DROP on the table (or anything above it).
- alter table: ALTER on the table. A rename instead requires ALL with the grant
  option on the old table plus CREATE on the new table's database.
- get table metadata: any privilege on the table (or above it).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Union

from catalog_authz.authz.actions import Action, implies, parse_action
from catalog_authz.authz.config import AuthzConfig
from catalog_authz.authz.errors import InvalidArgumentError, NotAuthorizedError
from catalog_authz.authz.scopes import ResourcePath, Scope, covers, parse_scope
from catalog_authz.authz.trusted import TrustedPrincipalSet
from catalog_authz.store.base import Grant, PrivilegeStore
from catalog_authz.store.client import ConnectionManager

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _Privilege:
    """A grant reduced to the parts evaluation needs, with its path normalised."""

    scope: Scope
    path: ResourcePath
    action: Action
    grant_option: bool


class AuthzEngine:
    def __init__(self, config: AuthzConfig, *, store: Optional[PrivilegeStore] = None) -> None:
        self.config = config.validate()
        self.trusted = TrustedPrincipalSet(config.trusted_users)
        self._store: PrivilegeStore = store if store is not None else ConnectionManager(config)

    # -- lifecycle --------------------------------------------------------

    def start(self) -> None:
        self._store.start()

    def stop(self) -> None:
        self._store.stop()

    def __enter__(self) -> "AuthzEngine":
        self.start()
        return self

    def __exit__(self, *exc) -> None:
        self.stop()

    # -- public API -------------------------------------------------------

    def is_trusted_user(self, principal: str) -> bool:
        return self.trusted.is_trusted(principal)

    def authorize(
        self,
        scope: Union[Scope, str],
        action: Union[Action, str],
        path: Union[ResourcePath, str],
        principal: str,
    ) -> None:
        """Allow iff some grant at or above `scope` covers `path` and implies `action`."""
        if self._bypass(principal):
            return
        target_scope = scope if isinstance(scope, Scope) else parse_scope(scope)
        if not target_scope.is_valid:
            raise InvalidArgumentError(f"invalid authorization scope {scope!r}")
        requested = action if isinstance(action, Action) else parse_action(action)
        if requested is Action.INVALID:
            raise InvalidArgumentError(f"invalid action {action!r}")
        target = self._resource(path)
        if target.depth.rank < target_scope.rank:
            raise InvalidArgumentError(f"resource {target} is not specific enough for scope {target_scope.value}")

        privileges = self._fetch(principal)
        if not self._any(privileges, target_scope, target, requested):
            self._deny(principal, f"{requested.value} on {target_scope.value} {target}")

    def authorize_create_table(self, table_name: str, user: str, owner: str) -> None:
        if self._bypass(user):
            return
        table = self._table(table_name)
        privileges = self._fetch(user)

        if not self._any(privileges, Scope.DATABASE, table, Action.CREATE):
            self._deny(user, f"CREATE on database {table.database}")
        # Creating a table owned by someone else is a delegation.
        if owner != user and not self._any(privileges, Scope.DATABASE, table, Action.ALL, grant_option=True):
            self._deny(user, f"ALL WITH GRANT OPTION on database {table.database} (owner {owner!r})")

    def authorize_drop_table(self, table_name: str, user: str) -> None:
        if self._bypass(user):
            return
        table = self._table(table_name)
        if not self._any(self._fetch(user), Scope.TABLE, table, Action.DROP):
            self._deny(user, f"DROP on table {table}")

    def authorize_alter_table(self, old_table: str, new_table: str, user: str) -> None:
        if self._bypass(user):
            return
        old = self._table(old_table)
        new = self._table(new_table)
        privileges = self._fetch(user)

        if old == new:
            if not self._any(privileges, Scope.TABLE, old, Action.ALTER):
                self._deny(user, f"ALTER on table {old}")
            return

        # A rename drops the old table entirely and creates the new one.
        if not self._any(privileges, Scope.TABLE, old, Action.ALL, grant_option=True):
            self._deny(user, f"ALL WITH GRANT OPTION on table {old}")
        if not self._any(privileges, Scope.DATABASE, new, Action.CREATE):
            self._deny(user, f"CREATE on database {new.database}")

    def authorize_get_table_metadata(self, table_name: str, user: str) -> None:
        if self._bypass(user):
            return
        table = self._table(table_name)
        if not self._any(self._fetch(user), Scope.TABLE, table, action=None):
            self._deny(user, f"any privilege on table {table}")

    # -- helpers ----------------------------------------------------------

    def _bypass(self, principal: str) -> bool:
        if self.trusted.is_trusted(principal):
            logger.debug("Trusted principal %s bypasses privilege checks", principal)
            return True
        if not principal:
            raise InvalidArgumentError("principal is required")
        return False

    def _resource(self, path: Union[ResourcePath, str]) -> ResourcePath:
        if isinstance(path, str):
            path = ResourcePath.parse(path, server=self.config.server_name)
        return path.normalized(case_sensitive=self.config.case_sensitive_names)

    def _table(self, table_name: str) -> ResourcePath:
        table = ResourcePath.for_table(table_name, server=self.config.server_name)
        return table.normalized(case_sensitive=self.config.case_sensitive_names)

    def _fetch(self, principal: str) -> List[_Privilege]:
        grants = self._store.fetch_grants(principal)
        return [self._reduce(g) for g in grants]

    def _reduce(self, grant: Grant) -> _Privilege:
        path = grant.path(default_server=self.config.server_name)
        return _Privilege(
            scope=grant.parsed_scope,
            path=path.normalized(case_sensitive=self.config.case_sensitive_names),
            action=grant.parsed_action,
            grant_option=grant.grant_option,
        )

    @staticmethod
    def _any(
        privileges: List[_Privilege],
        scope: Scope,
        target: ResourcePath,
        action: Optional[Action],
        *,
        grant_option: bool = False,
    ) -> bool:
        """
        Is there a privilege covering `target` at `scope` that implies `action`?

        `action=None` accepts any recognised action.
        """
        for p in privileges:
            if p.action is Action.INVALID:
                continue
            if grant_option and not p.grant_option:
                continue
            if action is not None and not implies(p.action, action):
                continue
            if covers(p.scope, p.path, scope, target):
                return True
        return False

    def _deny(self, principal: str, required: str) -> None:
        logger.debug("Denied %s: requires %s", principal, required)
        raise NotAuthorizedError(f"{principal} is not authorized: requires {required}")
