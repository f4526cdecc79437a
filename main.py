#!/usr/bin/env python3
"""
Catalog authorization - one-shot privilege checks against the privilege store.
Handy for verifying store configuration and grants from a shell.
"""

import argparse
import logging
import sys

# Configure logging
logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s", stream=sys.stderr
)

EXIT_ALLOWED = 0
EXIT_NOT_AUTHORIZED = 1
EXIT_TRANSIENT = 2
EXIT_INVALID = 3


def run_check(args: argparse.Namespace) -> int:
    """Run exactly one authorization call and map its outcome to an exit code."""
    from catalog_authz.authz.config import load_authz_config
    from catalog_authz.authz.engine import AuthzEngine
    from catalog_authz.authz.errors import AuthzError, NotAuthorizedError

    engine = AuthzEngine(load_authz_config())
    with engine:
        try:
            if args.create_table:
                engine.authorize_create_table(args.create_table, args.user, args.owner or args.user)
            elif args.drop_table:
                engine.authorize_drop_table(args.drop_table, args.user)
            elif args.alter_table:
                old, new = args.alter_table
                engine.authorize_alter_table(old, new, args.user)
            elif args.table_metadata:
                engine.authorize_get_table_metadata(args.table_metadata, args.user)
            else:
                scope, action, path = args.authorize
                engine.authorize(scope, action, path, args.user)
        except NotAuthorizedError as e:
            print(f"DENIED: {e}")
            return EXIT_NOT_AUTHORIZED
        except AuthzError as e:
            print(f"{e.outcome.value.upper()}: {e}")
            return EXIT_TRANSIENT if e.transient else EXIT_INVALID

    print("ALLOWED")
    return EXIT_ALLOWED


def main():
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Check catalog privileges against the privilege store",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Can alice create sales.orders?
  python main.py --user alice --create-table sales.orders

  # ...on behalf of bob?
  python main.py --user alice --owner bob --create-table sales.orders

  # Rename a table
  python main.py --user alice --alter-table sales.orders sales.orders_v2

  # Generic check
  python main.py --user alice --authorize DATABASE SELECT sales.orders

Exit codes: 0 allowed, 1 not authorized, 2 store unreachable/timed out, 3 invalid input or bad store reply.
Store connection settings come from PRIVILEGE_STORE_* / AUTHZ_* env vars.
        """,
    )
    parser.add_argument("--user", "-u", required=True, help="Principal performing the operation")
    parser.add_argument("--owner", help="Owner of the new table (for --create-table; default: --user)")

    op = parser.add_mutually_exclusive_group(required=True)
    op.add_argument("--create-table", metavar="DB.TABLE", help="Authorize creating a table")
    op.add_argument("--drop-table", metavar="DB.TABLE", help="Authorize dropping a table")
    op.add_argument("--alter-table", nargs=2, metavar=("OLD", "NEW"), help="Authorize altering/renaming a table")
    op.add_argument("--table-metadata", metavar="DB.TABLE", help="Authorize reading table metadata")
    op.add_argument(
        "--authorize",
        nargs=3,
        metavar=("SCOPE", "ACTION", "PATH"),
        help="Generic check, e.g. `TABLE SELECT db.table`",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")

    args = parser.parse_args()
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    try:
        sys.exit(run_check(args))
    except KeyboardInterrupt:
        print("\n\nInterrupted by user", file=sys.stderr)
        sys.exit(1)
    except ValueError as e:
        # Configuration problems (AuthzConfig.validate).
        print(f"\nError: {e}", file=sys.stderr)
        sys.exit(EXIT_INVALID)


if __name__ == "__main__":
    main()
