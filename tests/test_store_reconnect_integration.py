"""
End-to-end resilience checks against the dev privilege store over real sockets.

The engine never retries; recovery polling below is the caller's job.
"""

from __future__ import annotations

import threading
import time
from typing import Callable, Optional

import pytest
from flask import Flask, Response
from werkzeug.serving import make_server

from catalog_authz.authz.config import AuthzConfig
from catalog_authz.authz.engine import AuthzEngine
from catalog_authz.authz.errors import AuthzError, NetworkError, NotAuthorizedError, TimedOutError
from catalog_authz.store.mock_server import PrivilegeStoreState, create_app, database_privilege

TEST_USER = "test-user"
ROLE = "developer"


class _StoreServer:
    def __init__(self, state: PrivilegeStoreState) -> None:
        self.state = state
        self.app = create_app(state)
        self.port = 0
        self._srv = None
        self._thread: Optional[threading.Thread] = None

    def start(self) -> None:
        self._srv = make_server("127.0.0.1", self.port, self.app, threaded=True)
        self.port = self._srv.server_port
        self._thread = threading.Thread(target=self._srv.serve_forever, daemon=True)
        self._thread.start()

    def stop(self) -> None:
        if self._srv is None:
            return
        self._srv.shutdown()
        self._srv.server_close()
        self._srv = None
        if self._thread is not None:
            self._thread.join(5)

    @property
    def address(self) -> str:
        return f"http://127.0.0.1:{self.port}"


def _eventually(fn: Callable[[], None], timeout: float = 10.0) -> None:
    deadline = time.monotonic() + timeout
    while True:
        try:
            fn()
            return
        except AuthzError as e:
            if not e.transient or time.monotonic() >= deadline:
                raise
            time.sleep(0.1)


@pytest.fixture
def server():
    state = PrivilegeStoreState()
    state.add_user_to_group(TEST_USER, "user")
    state.create_role(ROLE, ["user"])
    srv = _StoreServer(state)
    srv.start()
    yield srv
    state.resume()
    srv.stop()


@pytest.fixture
def live_engine(server: _StoreServer):
    cfg = AuthzConfig(
        store_addresses=(server.address,),
        send_timeout_seconds=1.0,
        recv_timeout_seconds=0.5,
        pool_size=2,
    )
    engine = AuthzEngine(cfg)
    engine.start()
    yield engine
    engine.stop()


def test_authorizes_over_http(server: _StoreServer, live_engine: AuthzEngine) -> None:
    with pytest.raises(NotAuthorizedError):
        live_engine.authorize_get_table_metadata("db.table", TEST_USER)
    server.state.grant(ROLE, database_privilege("db", "SELECT"))
    live_engine.authorize_get_table_metadata("db.table", TEST_USER)


def test_reconnect_after_store_restart_and_pause(server: _StoreServer, live_engine: AuthzEngine) -> None:
    server.state.grant(ROLE, database_privilege("db", "METADATA"))
    live_engine.authorize_get_table_metadata("db.table", TEST_USER)

    # Store down: calls fail fast with a network error.
    server.stop()
    with pytest.raises(NetworkError):
        live_engine.authorize_drop_table("db.table", TEST_USER)
    with pytest.raises(NetworkError):
        live_engine.authorize_create_table("db.table", TEST_USER, "diff-user")

    # Store back on the same port: calls recover without any explicit reconnect.
    server.start()
    _eventually(lambda: live_engine.authorize_get_table_metadata("db.table", TEST_USER))

    server.state.grant(ROLE, database_privilege("db", "DROP"))
    live_engine.authorize_drop_table("db.table", TEST_USER)

    # Store paused: reachable but unresponsive, so calls time out within the deadline.
    server.state.pause()
    started = time.monotonic()
    with pytest.raises(TimedOutError):
        live_engine.authorize_drop_table("db.table", TEST_USER)
    with pytest.raises(TimedOutError):
        live_engine.authorize_get_table_metadata("db.table", TEST_USER)
    assert time.monotonic() - started < 5.0

    server.state.resume()
    _eventually(lambda: live_engine.authorize_drop_table("db.table", TEST_USER))


def test_body_stalled_after_headers_is_timed_out() -> None:
    release = threading.Event()
    app = Flask(__name__)
    body = '{"privileges": []}'

    @app.post("/api/v1/privileges/list")
    def list_privileges():  # type: ignore[no-untyped-def]
        def stream():  # type: ignore[no-untyped-def]
            yield body[:1]
            release.wait(5)
            yield body[1:]

        return Response(stream(), mimetype="application/json", headers={"Content-Length": str(len(body))})

    srv = make_server("127.0.0.1", 0, app, threaded=True)
    thread = threading.Thread(target=srv.serve_forever, daemon=True)
    thread.start()
    cfg = AuthzConfig(
        store_addresses=(f"http://127.0.0.1:{srv.server_port}",),
        send_timeout_seconds=1.0,
        recv_timeout_seconds=0.5,
        pool_size=1,
    )
    try:
        with AuthzEngine(cfg) as engine:
            with pytest.raises(TimedOutError):
                engine.authorize_drop_table("db.table", TEST_USER)
    finally:
        release.set()
        srv.shutdown()
        srv.server_close()
        thread.join(5)
