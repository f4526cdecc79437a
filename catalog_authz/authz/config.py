from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Optional, Tuple

SECURITY_MODES = ("none", "mtls")


def _env_bool(name: str, default: bool = False) -> bool:
    raw = (os.getenv(name) or "").strip().lower()
    if not raw:
        return default
    return raw in ("1", "true", "yes", "y", "on")


def _env_int(name: str, default: int) -> int:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except Exception:
        return default


def _env_float(name: str, default: float) -> float:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except Exception:
        return default


def _env_str(name: str) -> Optional[str]:
    return (os.getenv(name) or "").strip() or None


def _split_csv(raw: str) -> Tuple[str, ...]:
    return tuple(x.strip() for x in (raw or "").split(",") if x.strip())


@dataclass(frozen=True)
class AuthzConfig:
    # Privilege store endpoint(s), tried round-robin on reconnect.
    store_addresses: Tuple[str, ...] = ("http://127.0.0.1:8038",)

    # none | mtls
    security_mode: str = "none"
    client_cert: Optional[str] = None
    client_key: Optional[str] = None
    ca_bundle: Optional[str] = None

    # Deadlines (seconds). Send covers connecting + writing the request, recv covers waiting for the reply.
    send_timeout_seconds: float = 60.0
    recv_timeout_seconds: float = 60.0

    # Independent links to the store; each in-flight call holds one exclusively.
    pool_size: int = 4

    # Name of the SERVER scope root grants are issued against.
    server_name: str = "server1"

    # Comma-separated in env; bypass privilege checks entirely.
    trusted_users: Tuple[str, ...] = field(default_factory=tuple)

    # Whether the store compares database/table/column names case-sensitively.
    case_sensitive_names: bool = False

    @property
    def mtls_enabled(self) -> bool:
        return self.security_mode == "mtls"

    def validate(self) -> "AuthzConfig":
        if not self.store_addresses:
            raise ValueError("at least one privilege store address is required")
        if self.security_mode not in SECURITY_MODES:
            raise ValueError(f"unknown security mode {self.security_mode!r} (expected one of {SECURITY_MODES})")
        if self.mtls_enabled and not (self.client_cert and self.client_key):
            raise ValueError("security_mode=mtls requires client_cert and client_key")
        if self.send_timeout_seconds <= 0 or self.recv_timeout_seconds <= 0:
            raise ValueError("send/recv timeouts must be positive")
        if self.pool_size < 1:
            raise ValueError("pool_size must be >= 1")
        if not (self.server_name or "").strip():
            raise ValueError("server_name is required")
        return self


def load_authz_config() -> AuthzConfig:
    """
    Load engine configuration from env (ConfigMap/Secret friendly).

    Recommended vars:
    - PRIVILEGE_STORE_ADDRESSES=https://store-a:8038,https://store-b:8038
    - PRIVILEGE_STORE_SECURITY_MODE=none|mtls
    - PRIVILEGE_STORE_CLIENT_CERT=/etc/authz/tls.crt
    - PRIVILEGE_STORE_CLIENT_KEY=/etc/authz/tls.key
    - PRIVILEGE_STORE_CA_BUNDLE=/etc/authz/ca.crt
    - PRIVILEGE_STORE_SEND_TIMEOUT_SECONDS=60
    - PRIVILEGE_STORE_RECV_TIMEOUT_SECONDS=60
    - PRIVILEGE_STORE_POOL_SIZE=4
    - AUTHZ_SERVER_NAME=server1
    - AUTHZ_TRUSTED_USERS=impala,hive,hdfs
    - AUTHZ_CASE_SENSITIVE_NAMES=0
    """
    addresses = _split_csv(os.getenv("PRIVILEGE_STORE_ADDRESSES", "")) or AuthzConfig.store_addresses

    # Unknown modes are passed through so validate() rejects them.
    mode = (os.getenv("PRIVILEGE_STORE_SECURITY_MODE") or "").strip().lower() or "none"

    return AuthzConfig(
        store_addresses=tuple(a.rstrip("/") for a in addresses),
        security_mode=mode,
        client_cert=_env_str("PRIVILEGE_STORE_CLIENT_CERT"),
        client_key=_env_str("PRIVILEGE_STORE_CLIENT_KEY"),
        ca_bundle=_env_str("PRIVILEGE_STORE_CA_BUNDLE"),
        send_timeout_seconds=max(0.1, min(_env_float("PRIVILEGE_STORE_SEND_TIMEOUT_SECONDS", 60.0), 600.0)),
        recv_timeout_seconds=max(0.1, min(_env_float("PRIVILEGE_STORE_RECV_TIMEOUT_SECONDS", 60.0), 600.0)),
        pool_size=max(1, min(_env_int("PRIVILEGE_STORE_POOL_SIZE", 4), 64)),
        server_name=_env_str("AUTHZ_SERVER_NAME") or "server1",
        trusted_users=_split_csv(os.getenv("AUTHZ_TRUSTED_USERS", "")),
        case_sensitive_names=_env_bool("AUTHZ_CASE_SENSITIVE_NAMES", False),
    )
