import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

import argparse

import structlog

from guest_messaging.config import DATABASE_URL
from guest_messaging.db.engine import create_db_engine
from guest_messaging.logging_config import setup_logging
from guest_messaging.services.automation import backfill_upcoming

setup_logging()
logger = structlog.get_logger(__name__)


def main() -> None:
    """
    Evaluate automation rules for upcoming reservations that have none pending.

    Useful after adding a rule: reservations created before it existed get
    their scheduled messages.
    """
    parser = argparse.ArgumentParser(description=main.__doc__)
    parser.add_argument("--days-ahead", type=int, default=30)
    parser.add_argument("--limit", type=int, default=100)
    args = parser.parse_args()

    engine = create_db_engine(DATABASE_URL or "")
    logger.info("backfill_starting", days_ahead=args.days_ahead, limit=args.limit)
    try:
        result = backfill_upcoming(engine, days_ahead=args.days_ahead, limit=args.limit)
        logger.info("backfill_finished", **result.as_dict())
    except Exception:
        logger.exception("backfill_failed")
        raise
    finally:
        engine.dispose()


if __name__ == "__main__":
    main()
