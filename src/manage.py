"""Billing management CLI.

Charges due recurrent payments and manages the database schema.

Usage:
    python src/manage.py charge               # Charge every due token
    python src/manage.py charge --charge test # Route every charge to the test gateway
    python src/manage.py setup-db             # Create all tables
    python src/manage.py drop-db              # Drop all tables

Only one ``charge`` may run at a time; schedule it under a lock, e.g.
``flock -n /var/lock/billing-charge.lock python src/manage.py charge``.
"""

import argparse
import sys


def setup_databases():
    """Create the billing database schema."""
    from billing.domain import billing
    from billing.utils.db import setup_db

    print("Initializing billing domain...")
    billing.init()
    print("Creating billing database schema...")
    setup_db(billing)
    print("  billing schema ready.")
    print("Done.")


def drop_databases():
    """Drop the billing database schema."""
    from billing.domain import billing
    from billing.utils.db import drop_db

    print("Initializing billing domain...")
    billing.init()
    print("Dropping billing database schema...")
    drop_db(billing)
    print("  billing schema dropped.")
    print("Done.")


def print_token_report(report):
    print(
        f"Recurrent payment: #{report.recurrent_payment_id} Token: {report.cid} "
        f"User: #{report.user_id} Status: {report.result_code or report.status.value}"
    )


def run_charge(charge_mode="live", environ=None):
    """Run the recurrent charge batch in the active domain context.

    Returns the process exit code.
    """
    from billing.config import ChargeConfig
    from billing.exceptions import ConfigurationError
    from billing.recurrent.charge import ChargeMode, RecurrentChargeOrchestrator

    try:
        config = ChargeConfig.from_env(environ)
        orchestrator = RecurrentChargeOrchestrator(
            config,
            charge_mode=ChargeMode(charge_mode),
            on_token=print_token_report,
        )
        summary = orchestrator.run_batch()
    except ConfigurationError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return 1

    print()
    print(
        f"Attempted: {summary.attempted} Succeeded: {summary.succeeded} "
        f"Failed: {summary.failed} Skipped: {summary.skipped}"
    )
    print(f"All done. Took {summary.duration:.2f} sec.")
    print()
    return 0


def charge(charge_mode="live"):
    """Initialize the billing domain and run the charge batch."""
    from billing.domain import billing

    billing.init()
    with billing.domain_context():
        return run_charge(charge_mode)


def main(argv=None):
    parser = argparse.ArgumentParser(description="Billing management")
    subparsers = parser.add_subparsers(dest="command", required=True)

    charge_parser = subparsers.add_parser("charge", help="Charge due recurrent payments")
    charge_parser.add_argument(
        "--charge",
        choices=["live", "test"],
        default="live",
        help="Charge real tokens (live) or route every charge to the test gateway",
    )

    subparsers.add_parser("setup-db", help="Create all database tables")
    subparsers.add_parser("drop-db", help="Drop all database tables")

    args = parser.parse_args(argv)

    if args.command == "charge":
        sys.exit(charge(args.charge))
    elif args.command == "setup-db":
        setup_databases()
    elif args.command == "drop-db":
        drop_databases()
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
