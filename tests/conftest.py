"""
Pytest config.

Local imports like `import catalog_authz` rely on the repo root being on sys.path.
When invoking a global `pytest` entrypoint without installing the project, that
doesn't happen reliably during collection, so we pin it here.
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest


def _ensure_repo_root_on_syspath() -> None:
    repo_root = Path(__file__).resolve().parents[1]
    repo_root_str = str(repo_root)
    if repo_root_str not in sys.path:
        sys.path.insert(0, repo_root_str)


_ensure_repo_root_on_syspath()

from catalog_authz.authz.config import AuthzConfig  # noqa: E402
from catalog_authz.authz.engine import AuthzEngine  # noqa: E402
from catalog_authz.store.base import Grant  # noqa: E402
from catalog_authz.store.mock_server import PrivilegeStoreState  # noqa: E402

TEST_USER = "test-user"
USER_GROUP = "user"
ROLE_NAME = "developer"


@pytest.fixture(autouse=True)
def _clear_authz_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep config-loading tests hermetic regardless of the developer's shell."""
    for name in (
        "PRIVILEGE_STORE_ADDRESSES",
        "PRIVILEGE_STORE_SECURITY_MODE",
        "PRIVILEGE_STORE_CLIENT_CERT",
        "PRIVILEGE_STORE_CLIENT_KEY",
        "PRIVILEGE_STORE_CA_BUNDLE",
        "PRIVILEGE_STORE_SEND_TIMEOUT_SECONDS",
        "PRIVILEGE_STORE_RECV_TIMEOUT_SECONDS",
        "PRIVILEGE_STORE_POOL_SIZE",
        "AUTHZ_SERVER_NAME",
        "AUTHZ_TRUSTED_USERS",
        "AUTHZ_CASE_SENSITIVE_NAMES",
    ):
        monkeypatch.delenv(name, raising=False)


class InMemoryPrivilegeStore:
    """
    PrivilegeStore backed directly by the dev store's state (no HTTP).

    Records every fetch so tests can assert the store was (not) consulted.
    """

    def __init__(self, state: Optional[PrivilegeStoreState] = None) -> None:
        self.state = state or PrivilegeStoreState()
        self.fetches: List[str] = []
        self.started = False

    def start(self) -> None:
        self.started = True

    def stop(self) -> None:
        self.started = False

    def fetch_grants(self, principal: str) -> List[Grant]:
        self.fetches.append(principal)
        return [Grant.model_validate(p) for p in self.state.list_for(principal)]

    # Shorthand for the common single-role setup.
    def grant(self, privilege: Dict[str, Any], *, role: str = ROLE_NAME) -> None:
        self.state.grant(role, privilege)

    def revoke(self, privilege: Dict[str, Any], *, role: str = ROLE_NAME) -> None:
        self.state.revoke(role, privilege)


@pytest.fixture
def store() -> InMemoryPrivilegeStore:
    s = InMemoryPrivilegeStore()
    s.state.add_user_to_group(TEST_USER, USER_GROUP)
    s.state.create_role(ROLE_NAME, [USER_GROUP])
    return s


@pytest.fixture
def engine(store: InMemoryPrivilegeStore) -> AuthzEngine:
    e = AuthzEngine(AuthzConfig(trusted_users=("impala", "hive", "hdfs")), store=store)
    e.start()
    yield e
    e.stop()
