#!/usr/bin/env python3
"""
Mock privilege store API server for local development.

Run from a checkout with `python dev/mock-privilege-store.py`; the repo root is put on
sys.path so the project does not have to be installed first.
"""

import os
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from catalog_authz.store.mock_server import PrivilegeStoreState, create_app, database_privilege  # noqa: E402

state = PrivilegeStoreState()

# Seed a developer role so `python main.py --user dev --create-table db.t` works out of the box.
state.add_user_to_group("dev", "developers")
state.create_role("developer", ["developers"])
state.grant("developer", database_privilege("db", "ALL", grant_option=True))

app = create_app(state)


if __name__ == "__main__":
    port = int(os.getenv("MOCK_PRIVILEGE_STORE_PORT", "8038"))
    print(f"Mock privilege store starting on http://0.0.0.0:{port}", file=sys.stderr)
    app.run(host="0.0.0.0", port=port, debug=False, threaded=True)
