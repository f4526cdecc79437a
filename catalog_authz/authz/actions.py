"""Action vocabulary understood by the privilege store."""

from __future__ import annotations

from enum import Enum
from typing import Optional


class Action(str, Enum):
    SELECT = "SELECT"
    INSERT = "INSERT"
    CREATE = "CREATE"
    DROP = "DROP"
    ALTER = "ALTER"
    METADATA = "METADATA"
    ALL = "ALL"
    # Anything the store sends that we don't recognise. Never matches.
    INVALID = "INVALID"


_BY_NAME = {a.value: a for a in Action if a is not Action.INVALID}
# Some stores spell ALL as "*".
_BY_NAME["*"] = Action.ALL


def parse_action(text: Optional[str]) -> Action:
    """
    Parse an action string case-insensitively.

    Grant data comes from an external store and may carry actions we don't know
    about (newer store versions, other services), so unknown values map to
    Action.INVALID rather than raising.
    """
    key = (text or "").strip().upper()
    return _BY_NAME.get(key, Action.INVALID)


def implies(granted: Action, requested: Action) -> bool:
    if granted is Action.INVALID or requested is Action.INVALID:
        return False
    return granted is requested or granted is Action.ALL
