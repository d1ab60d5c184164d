"""CLI entry point for billing runs and property statements.

Usage:
    python -m estatebill.cli.scheduler run-once
    python -m estatebill.cli.scheduler serve
    python -m estatebill.cli.scheduler statement 12 2025-01-01 2025-03-31 --currency EUR
    python -m estatebill.cli.scheduler init-db

Exit Codes:
    0 - Success
    1 - Failure: a definition failed, needs review, or the command errored

Logging:
    LOG_LEVEL (default INFO) to both stdout and LOG_FILE (default logs/estatebill.log)

serve stops on SIGINT or SIGTERM; the run in progress stops picking up
definitions and the finished ones stay committed.
"""

import argparse
import logging
import signal
import sys
from datetime import date

from estatebill.config import get_settings
from estatebill.errors import EstateBillError
from estatebill.services.logging import setup_logging

logger = logging.getLogger(__name__)


def _parse_date(value: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"Expected YYYY-MM-DD, got {value!r}") from e


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="estatebill",
        description="Recurring billing runs and property statements",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("run-once", help="Generate invoices for every due definition once")
    serve = subparsers.add_parser("serve", help="Run the billing scheduler on a fixed interval")
    serve.add_argument(
        "--interval-minutes",
        type=int,
        default=None,
        help="Minutes between runs (default: SCHEDULER_INTERVAL_MINUTES)",
    )

    statement = subparsers.add_parser("statement", help="Print a property statement")
    statement.add_argument("property_id", type=int)
    statement.add_argument("start", type=_parse_date)
    statement.add_argument("end", type=_parse_date)
    statement.add_argument("--currency", default="USD", help="Currency label for amounts")

    subparsers.add_parser("init-db", help="Create database tables")
    return parser


def run_once() -> int:
    """One scheduler run; 0 when no definition failed."""
    from estatebill.services.billing_scheduler import BillingScheduler

    billing_scheduler = BillingScheduler.from_settings()
    try:
        result = billing_scheduler.run()
    finally:
        billing_scheduler.close()
    return 0 if result.ok else 1


def serve(interval_minutes: int | None = None) -> int:
    """Block and run the scheduler every interval until SIGINT or SIGTERM."""
    from apscheduler.schedulers.blocking import BlockingScheduler
    from apscheduler.triggers.interval import IntervalTrigger

    from estatebill.models.types import utcnow
    from estatebill.services.billing_scheduler import BillingScheduler

    settings = get_settings()
    interval = interval_minutes or settings.scheduler_interval_minutes
    billing_scheduler = BillingScheduler.from_settings(settings)

    scheduler = BlockingScheduler(timezone="UTC")
    scheduler.add_job(
        billing_scheduler.run,
        trigger=IntervalTrigger(minutes=interval),
        id="recurring_billing",
        name="recurring_billing",
        coalesce=True,
        max_instances=1,
        misfire_grace_time=600,
        replace_existing=True,
        next_run_time=utcnow(),
    )

    def stop(signum, frame):
        logger.info("Received signal %s, stopping billing scheduler", signum)
        billing_scheduler.cancel()
        if scheduler.running:
            scheduler.shutdown(wait=False)

    previous = {sig: signal.signal(sig, stop) for sig in (signal.SIGINT, signal.SIGTERM)}
    logger.info("Billing scheduler serving every %d minutes", interval)
    try:
        scheduler.start()
    finally:
        for sig, handler in previous.items():
            signal.signal(sig, handler)
        billing_scheduler.close()
        logger.info("Billing scheduler stopped")
    return 0


def print_statement(property_id: int, start: date, end: date, currency: str) -> int:
    from estatebill.repositories.orm import SqlAlchemyUnitOfWorkFactory
    from estatebill.services.db import get_session_factory
    from estatebill.services.ledger import DateWindow, LedgerService, render_statement_text

    settings = get_settings()
    window = DateWindow(start, end)
    with SqlAlchemyUnitOfWorkFactory(get_session_factory())() as uow:
        statement = LedgerService(uow.payments, uow.expenses).property_statement(property_id, window)
        property_name = uow.properties.property_name(property_id)
    print(render_statement_text(statement, currency, settings.locale, property_name))
    return 0


def main(argv: list[str] | None = None) -> int:
    """
    Main entry point.

    Returns:
        Exit code: 0 for success, 1 for failure
    """
    args = build_parser().parse_args(argv)
    setup_logging()

    try:
        if args.command == "run-once":
            return run_once()
        if args.command == "serve":
            return serve(args.interval_minutes)
        if args.command == "statement":
            return print_statement(args.property_id, args.start, args.end, args.currency)
        if args.command == "init-db":
            from estatebill.services.db import init_db

            init_db()
            return 0
    except KeyboardInterrupt:
        logger.warning("Interrupted by user")
        return 1
    except EstateBillError as e:
        logger.error("%s failed: %s", args.command, e)
        return 1
    except Exception as e:
        logger.error("%s failed: %s", args.command, e, exc_info=True)
        return 1
    return 1


def run() -> None:
    """Console script entry point."""
    sys.exit(main())


if __name__ == "__main__":
    run()
