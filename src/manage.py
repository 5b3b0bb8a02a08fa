"""Ordering database management CLI.

Creates and drops the ordering schema on relational providers, and checks
that the order store answers.

Usage:
    python src/manage.py setup-db   # Create all tables
    python src/manage.py drop-db    # Drop all tables
    python src/manage.py ping       # Round-trip to the order store
"""

import argparse
import sys


def setup_database():
    """Create the ordering database schema."""
    from ordering.domain import ordering
    from ordering.utils.db import setup_db, uses_relational_store

    print("Initializing ordering domain...")
    ordering.init()
    if not uses_relational_store(ordering):
        print("No relational database configured; nothing to create.")
        return
    print("Creating ordering database schema...")
    setup_db(ordering)
    print("Done.")


def drop_database():
    """Drop the ordering database schema."""
    from ordering.domain import ordering
    from ordering.utils.db import drop_db, uses_relational_store

    print("Initializing ordering domain...")
    ordering.init()
    if not uses_relational_store(ordering):
        print("No relational database configured; nothing to drop.")
        return
    print("Dropping ordering database schema...")
    drop_db(ordering)
    print("Done.")


def ping_store(timeout=None):
    """Check the order store responds within ``timeout`` seconds."""
    from ordering.context import RequestContext
    from ordering.domain import ordering
    from ordering.order.service import OrderService
    from ordering.order.store import RepositoryOrderStore

    ordering.init()
    with ordering.domain_context():
        result = OrderService(store=RepositoryOrderStore()).ping(RequestContext.with_timeout(timeout))
    print(f"Order store: {result.status} ({result.checked_at.isoformat()})")


def main():
    from ordering.utils.logging import configure_logging

    parser = argparse.ArgumentParser(description="Ordering database management")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("setup-db", help="Create all database tables")
    subparsers.add_parser("drop-db", help="Drop all database tables")
    ping_parser = subparsers.add_parser("ping", help="Check the order store responds")
    ping_parser.add_argument("--timeout", type=float, default=None, help="Seconds to wait (default: configured)")

    args = parser.parse_args()
    configure_logging()

    if args.command == "setup-db":
        setup_database()
    elif args.command == "drop-db":
        drop_database()
    elif args.command == "ping":
        ping_store(args.timeout)
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
