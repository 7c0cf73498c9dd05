"""
Dispatch worker: sends scheduled messages whose fire time has come.

Usage:
    python -m guest_messaging.pollers.dispatch          # sweep forever
    python -m guest_messaging.pollers.dispatch --once   # one sweep, then exit
"""

import argparse
import time
from typing import Optional

import structlog

from guest_messaging.config import DISPATCH_INTERVAL_SECONDS, DRY_RUN
from guest_messaging.context import AppContext, build_context
from guest_messaging.logging_config import setup_logging
from guest_messaging.services.dispatch import run_sweep

logger = structlog.get_logger(__name__)


def run_forever(context: AppContext, interval: int = DISPATCH_INTERVAL_SECONDS) -> None:
    """
    Sweep every ``interval`` seconds until interrupted.

    A failing sweep is logged and the next one runs on schedule; rows a
    crashed sweep left in flight are expired by a later sweep.
    """
    logger.info("dispatch_worker_started", interval_seconds=interval, dry_run=DRY_RUN)
    while True:
        started = time.monotonic()
        try:
            run_sweep(context, dry_run=DRY_RUN)
        except Exception as e:
            logger.exception("dispatch_sweep_failed", error=str(e))
        elapsed = time.monotonic() - started
        time.sleep(max(0.0, interval - elapsed))


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="Dispatch due scheduled messages")
    parser.add_argument("--once", action="store_true", help="Run a single sweep and exit")
    parser.add_argument(
        "--interval",
        type=int,
        default=DISPATCH_INTERVAL_SECONDS,
        help="Seconds between sweeps",
    )
    args = parser.parse_args(argv)

    setup_logging()
    context = build_context(track_unread=False)
    try:
        if args.once:
            result = run_sweep(context, dry_run=DRY_RUN)
            logger.info("dispatch_once_completed", **result.as_dict())
        else:
            run_forever(context, args.interval)
    except KeyboardInterrupt:
        logger.info("dispatch_worker_stopped")
    finally:
        context.close()


if __name__ == "__main__":
    main()
