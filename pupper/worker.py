"""Retry loop for application follow-up tasks left pending in the outbox."""

from __future__ import annotations

import argparse
import logging
import os
import time

from dotenv import load_dotenv

from .config import DEFAULT_WORKER_BATCH, task_max_attempts
from .orchestration import run_pending_tasks

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_SECONDS = 60


def run(
    limit: int = DEFAULT_WORKER_BATCH,
    max_attempts: int | None = None,
    loop: bool = False,
    interval: float = DEFAULT_INTERVAL_SECONDS,
) -> dict[str, int]:
    """Run one pass, or keep passing every ``interval`` seconds when looping.

    Returns:
        Task state counts of the last pass.
    """
    attempts = max_attempts or task_max_attempts()
    while True:
        try:
            counts = run_pending_tasks(limit=limit, max_attempts=attempts)
        except Exception as exc:
            if not loop:
                raise
            logger.warning(f"Task pass failed; retrying in {interval:.0f}s: {exc}")
            counts = {"done": 0, "pending": 0, "failed": 0}
        if not loop:
            return counts
        time.sleep(interval)


def main() -> None:
    """CLI entrypoint for retrying pending follow-up tasks."""
    load_dotenv()
    log_level = (os.environ.get("LOG_LEVEL") or "INFO").upper()
    logging.basicConfig(
        level=log_level, format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )
    parser = argparse.ArgumentParser(description="Retry pending application tasks")
    parser.add_argument(
        "--limit",
        type=int,
        default=DEFAULT_WORKER_BATCH,
        help="Maximum tasks to pick up per pass",
    )
    parser.add_argument(
        "--max-attempts",
        type=int,
        default=None,
        help="Attempts before a task is parked as failed (default: PUPPER_TASK_MAX_ATTEMPTS)",
    )
    parser.add_argument(
        "--loop",
        action="store_true",
        help="Keep running passes instead of exiting after one",
    )
    parser.add_argument(
        "--interval",
        type=float,
        default=DEFAULT_INTERVAL_SECONDS,
        help="Seconds between passes with --loop",
    )
    args = parser.parse_args()

    try:
        run(
            limit=args.limit,
            max_attempts=args.max_attempts,
            loop=args.loop,
            interval=args.interval,
        )
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
