"""
In-memory privilege store for local development and integration tests.

Implements the same wire API the client speaks plus a few admin endpoints to
manage roles, group membership and to pause/resume request handling (to simulate
an overloaded store).

Model: users belong to groups, roles are granted to groups, privileges are granted
to roles. Privilege records are stored as-is, so unknown actions/scopes can be
served back to clients.
"""

from __future__ import annotations

import threading
from typing import Any, Dict, List, Optional, Set

from flask import Flask, abort, jsonify, request

PRIVILEGE_FIELDS = ("scope", "server", "database", "table", "column", "action", "grant_option")


def make_privilege(
    scope: str,
    action: str,
    *,
    server: Optional[str] = "server1",
    database: Optional[str] = None,
    table: Optional[str] = None,
    column: Optional[str] = None,
    grant_option: bool = False,
) -> Dict[str, Any]:
    return {
        "scope": scope,
        "server": server,
        "database": database,
        "table": table,
        "column": column,
        "action": action,
        "grant_option": grant_option,
    }


def server_privilege(action: str, **kw: Any) -> Dict[str, Any]:
    return make_privilege("SERVER", action, **kw)


def database_privilege(db: str, action: str, **kw: Any) -> Dict[str, Any]:
    return make_privilege("DATABASE", action, database=db, **kw)


def table_privilege(db: str, table: str, action: str, **kw: Any) -> Dict[str, Any]:
    return make_privilege("TABLE", action, database=db, table=table, **kw)


def column_privilege(db: str, table: str, column: str, action: str, **kw: Any) -> Dict[str, Any]:
    return make_privilege("COLUMN", action, database=db, table=table, column=column, **kw)


class PrivilegeStoreState:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._user_groups: Dict[str, Set[str]] = {}
        self._role_groups: Dict[str, Set[str]] = {}
        self._role_privileges: Dict[str, List[Dict[str, Any]]] = {}
        self._running = threading.Event()
        self._running.set()

    # Group membership is resolved here, not by the client.
    def add_user_to_group(self, user: str, group: str) -> None:
        with self._lock:
            self._user_groups.setdefault(user, set()).add(group)

    def create_role(self, role: str, groups: List[str]) -> None:
        with self._lock:
            self._role_groups.setdefault(role, set()).update(groups)
            self._role_privileges.setdefault(role, [])

    def drop_role(self, role: str) -> None:
        with self._lock:
            self._role_groups.pop(role, None)
            self._role_privileges.pop(role, None)

    def grant(self, role: str, privilege: Dict[str, Any]) -> None:
        record = {k: privilege.get(k) for k in PRIVILEGE_FIELDS}
        record["grant_option"] = bool(record["grant_option"])
        with self._lock:
            if role not in self._role_privileges:
                raise KeyError(role)
            if record not in self._role_privileges[role]:
                self._role_privileges[role].append(record)

    def revoke(self, role: str, privilege: Dict[str, Any]) -> None:
        record = {k: privilege.get(k) for k in PRIVILEGE_FIELDS}
        record["grant_option"] = bool(record["grant_option"])
        with self._lock:
            privs = self._role_privileges.get(role)
            if privs is None:
                raise KeyError(role)
            if record in privs:
                privs.remove(record)

    def list_for(self, principal: str) -> List[Dict[str, Any]]:
        with self._lock:
            groups = self._user_groups.get(principal, set())
            out: List[Dict[str, Any]] = []
            for role, role_groups in self._role_groups.items():
                if role_groups & groups:
                    out.extend(dict(p) for p in self._role_privileges.get(role, []))
            return out

    def pause(self) -> None:
        self._running.clear()

    def resume(self) -> None:
        self._running.set()

    @property
    def paused(self) -> bool:
        return not self._running.is_set()

    def wait_until_running(self, timeout: Optional[float] = None) -> bool:
        return self._running.wait(timeout)


def create_app(state: Optional[PrivilegeStoreState] = None, *, keep_alive: bool = False) -> Flask:
    """
    Build the dev store app.

    With keep_alive=False every response closes its connection, so stopping the
    server really cuts off clients (the dev server's handler threads would
    otherwise keep serving already-open connections).
    """
    app = Flask(__name__)
    st = state if state is not None else PrivilegeStoreState()
    app.config["PRIVILEGE_STATE"] = st

    if not keep_alive:

        @app.after_request
        def _close_connection(response):
            response.headers["Connection"] = "close"
            return response

    @app.route("/api/v1/privileges/list", methods=["POST"])
    def list_privileges():
        # A paused store accepts connections but doesn't answer until resumed.
        st.wait_until_running()
        body = request.get_json(silent=True) or {}
        principal = body.get("principal")
        if not principal:
            return jsonify({"error": "principal is required"}), 400
        return jsonify({"privileges": st.list_for(principal)})

    @app.route("/admin/users/<user>/groups", methods=["POST"])
    def add_user_group(user: str):
        body = request.get_json(silent=True) or {}
        st.add_user_to_group(user, body.get("group") or abort(400))
        return jsonify({"status": "ok"})

    @app.route("/admin/roles", methods=["POST"])
    def create_role():
        body = request.get_json(silent=True) or {}
        st.create_role(body.get("role") or abort(400), list(body.get("groups") or []))
        return jsonify({"status": "ok"})

    @app.route("/admin/roles/<role>", methods=["DELETE"])
    def drop_role(role: str):
        st.drop_role(role)
        return jsonify({"status": "ok"})

    @app.route("/admin/roles/<role>/grant", methods=["POST"])
    @app.route("/admin/roles/<role>/revoke", methods=["POST"])
    def alter_role(role: str):
        body = request.get_json(silent=True) or {}
        try:
            if request.path.endswith("/grant"):
                st.grant(role, body)
            else:
                st.revoke(role, body)
        except KeyError:
            return jsonify({"error": f"unknown role {role}"}), 404
        return jsonify({"status": "ok"})

    @app.route("/admin/pause", methods=["POST"])
    def pause():
        st.pause()
        return jsonify({"status": "paused"})

    @app.route("/admin/resume", methods=["POST"])
    def resume():
        st.resume()
        return jsonify({"status": "running"})

    @app.route("/healthz")
    def health():
        return jsonify({"status": "paused" if st.paused else "ok"})

    return app
