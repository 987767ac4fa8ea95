"""Campus marketplace management CLI.

Creates and drops database schemas for SQLAlchemy-backed providers, and
runs the checkout session and quote request expiry sweeps once (for cron).

Usage:
    python src/manage.py setup-db   # Create all tables
    python src/manage.py drop-db    # Drop all tables
    python src/manage.py sweep      # Expire overdue sessions and quotes
"""

import argparse
import sys


def setup_database():
    from marketplace.domain import marketplace
    from marketplace.utils.db import setup_db

    print("Initializing marketplace domain...")
    marketplace.init()
    providers = setup_db(marketplace)
    if providers:
        print(f"  Schema ready for: {', '.join(providers)}")
    else:
        print("  No SQL providers configured; nothing to create.")
    print("Done.")


def drop_database():
    from marketplace.domain import marketplace
    from marketplace.utils.db import drop_db

    print("Initializing marketplace domain...")
    marketplace.init()
    providers = drop_db(marketplace)
    if providers:
        print(f"  Schema dropped for: {', '.join(providers)}")
    else:
        print("  No SQL providers configured; nothing to drop.")
    print("Done.")


def sweep():
    from marketplace.domain import marketplace

    marketplace.init()

    from marketplace.checkout.expiry import ExpireStaleCheckoutSessions
    from marketplace.dispatch import process
    from marketplace.quote.expiry import ExpireStaleQuotes

    with marketplace.domain_context():
        sessions = process(ExpireStaleCheckoutSessions())
        quotes = process(ExpireStaleQuotes())

    print(f"Expired {sessions} checkout session(s) and {quotes} quote request(s).")


def main():
    parser = argparse.ArgumentParser(description="Campus marketplace management")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("setup-db", help="Create all database tables")
    subparsers.add_parser("drop-db", help="Drop all database tables")
    subparsers.add_parser("sweep", help="Expire overdue checkout sessions and quote requests")

    args = parser.parse_args()

    if args.command == "setup-db":
        setup_database()
    elif args.command == "drop-db":
        drop_database()
    elif args.command == "sweep":
        sweep()
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
