"""
HTTP client for the remote privilege store.

Notes:
- The manager keeps a small pool of independent links so one slow check doesn't
  block unrelated ones. Each in-flight call holds a link exclusively.
- Links reconnect lazily: a failed call drops the link back to DISCONNECTED and the
  next call that picks it up reconnects (to the next configured address). There is
  no background reconnect and no retry inside a call; retry policy belongs to the
  caller.
"""

from __future__ import annotations

import logging
import queue
import threading
from enum import Enum
from typing import List, Optional

import requests
from pydantic import ValidationError
from requests.adapters import HTTPAdapter
from urllib3.exceptions import ReadTimeoutError

from catalog_authz.authz.config import AuthzConfig
from catalog_authz.authz.errors import NetworkError, StoreProtocolError, TimedOutError
from catalog_authz.store.base import Grant, ListPrivilegesRequest, ListPrivilegesResponse

logger = logging.getLogger(__name__)

LIST_PRIVILEGES_PATH = "/api/v1/privileges/list"


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


class _AddressRing:
    """Round-robin over configured store addresses, shared by all links."""

    def __init__(self, addresses) -> None:
        self._addresses = list(addresses)
        self._next = 0
        self._lock = threading.Lock()

    def next(self) -> str:
        with self._lock:
            addr = self._addresses[self._next % len(self._addresses)]
            self._next += 1
            return addr


class StoreLink:
    """A single logical connection to the store. Not thread-safe; callers check it out."""

    def __init__(self, config: AuthzConfig, ring: _AddressRing, *, name: str = "link") -> None:
        self._config = config
        self._ring = ring
        self.name = name
        self.state = ConnectionState.DISCONNECTED
        self.address: Optional[str] = None
        self._session: Optional[requests.Session] = None

    def _connect(self) -> requests.Session:
        self.state = ConnectionState.CONNECTING
        self.address = self._ring.next()
        s = requests.Session()
        # One socket per link; never retry at the transport level.
        adapter = HTTPAdapter(pool_connections=1, pool_maxsize=1, max_retries=0)
        s.mount("http://", adapter)
        s.mount("https://", adapter)
        if self._config.mtls_enabled:
            s.cert = (self._config.client_cert, self._config.client_key)
            s.verify = self._config.ca_bundle or True
        self._session = s
        logger.info(
            "Connecting %s to privilege store at %s (security_mode=%s)",
            self.name,
            self.address,
            self._config.security_mode,
        )
        return s

    def close(self) -> None:
        if self._session is not None:
            try:
                self._session.close()
            finally:
                self._session = None
        self.state = ConnectionState.DISCONNECTED

    def _fail(self, err: Exception) -> Exception:
        logger.warning(
            "Privilege store call via %s to %s failed (%s): %s",
            self.name,
            self.address,
            type(err).__name__,
            err,
        )
        self.close()
        return err

    def list_privileges(self, principal: str) -> List[Grant]:
        session = self._session if self.state is not ConnectionState.DISCONNECTED else None
        if session is None:
            session = self._connect()

        url = f"{self.address}{LIST_PRIVILEGES_PATH}"
        body = ListPrivilegesRequest(principal=principal, server=self._config.server_name).model_dump()
        timeout = (self._config.send_timeout_seconds, self._config.recv_timeout_seconds)

        try:
            resp = session.post(url, json=body, timeout=timeout)
        # ConnectTimeout is also a ConnectionError; check deadlines first.
        except requests.exceptions.Timeout as e:
            raise self._fail(TimedOutError(f"privilege store at {self.address} timed out: {e}")) from e
        except requests.exceptions.ConnectionError as e:
            # A deadline hit while reading the body surfaces as a wrapped ReadTimeoutError.
            if e.args and isinstance(e.args[0], ReadTimeoutError):
                raise self._fail(TimedOutError(f"privilege store at {self.address} timed out: {e}")) from e
            raise self._fail(NetworkError(f"privilege store at {self.address} unreachable: {e}")) from e
        except requests.exceptions.RequestException as e:
            raise self._fail(NetworkError(f"privilege store call to {self.address} failed: {e}")) from e

        if not (200 <= resp.status_code < 300):
            raise self._fail(
                StoreProtocolError(f"privilege store at {self.address} returned HTTP {resp.status_code}")
            )
        try:
            parsed = ListPrivilegesResponse.model_validate(resp.json())
        except (ValueError, ValidationError) as e:
            err = StoreProtocolError(f"malformed response from privilege store at {self.address}: {e}")
            raise self._fail(err) from e

        if self.state is not ConnectionState.CONNECTED:
            logger.info("%s connected to privilege store at %s", self.name, self.address)
        self.state = ConnectionState.CONNECTED
        return list(parsed.privileges)


class ConnectionManager:
    """
    Owns the pool of links to the privilege store.

    `fetch_grants` performs exactly one attempt. If every link is busy for longer
    than the send deadline the call fails with TimedOutError.
    """

    def __init__(self, config: AuthzConfig) -> None:
        self._config = config
        self._lock = threading.Lock()
        self._links: List[StoreLink] = []
        self._idle: Optional["queue.Queue[StoreLink]"] = None

    @property
    def started(self) -> bool:
        return self._idle is not None

    def start(self) -> None:
        with self._lock:
            if self._idle is not None:
                return
            ring = _AddressRing(self._config.store_addresses)
            self._links = [StoreLink(self._config, ring, name=f"link-{i}") for i in range(self._config.pool_size)]
            idle: "queue.Queue[StoreLink]" = queue.Queue()
            for link in self._links:
                idle.put(link)
            self._idle = idle

    def stop(self) -> None:
        with self._lock:
            for link in self._links:
                link.close()
            self._links = []
            self._idle = None

    def link_states(self) -> List[ConnectionState]:
        return [link.state for link in self._links]

    def fetch_grants(self, principal: str) -> List[Grant]:
        idle = self._idle
        if idle is None:
            raise RuntimeError("privilege store client is not started")
        try:
            link = idle.get(timeout=self._config.send_timeout_seconds)
        except queue.Empty as e:
            raise TimedOutError("no privilege store link became available before the send deadline") from e
        try:
            return link.list_privileges(principal)
        finally:
            idle.put(link)
