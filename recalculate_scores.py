#!/usr/bin/env python3
"""
Recalculate CleanPlate Scores.

Scores one establishment with --slug, otherwise sweeps every establishment and
writes only the scores that changed. Ctrl-C stops the sweep between
establishments.
"""
import argparse
import logging
import signal
import sys
import threading
from datetime import date

from app import create_app
from services.recalculation_service import RecalculationError, ScoreRecalculationService

logger = logging.getLogger(__name__)


def main() -> int:
    parser = argparse.ArgumentParser(description="Recalculate CleanPlate Scores.")
    parser.add_argument("--slug", help="Only recalculate this establishment.")
    parser.add_argument("--workers", type=int, default=0, help="Parallel workers for the sweep (0 = config default).")
    parser.add_argument("--limit", type=int, default=0, help="Limit number of establishments swept (0 = all).")
    parser.add_argument("--as-of", type=date.fromisoformat, default=None,
                        help="Evaluation date YYYY-MM-DD (default: today).")
    args = parser.parse_args()

    app = create_app()
    with app.app_context():
        service = ScoreRecalculationService()

        if args.slug:
            try:
                outcome = service.recalculate_by_slug(args.slug, as_of=args.as_of)
            except RecalculationError as e:
                logger.error("Could not recalculate %s: %s", args.slug, e)
                return 1
            logger.info("%s: %s -> %s (pass streak %s)", outcome.slug, outcome.previous_score,
                        outcome.score, outcome.pass_streak)
            return 0

        stop_event = threading.Event()

        def request_stop(signum, frame):
            logger.info("Stop requested, finishing in-flight establishments")
            stop_event.set()

        signal.signal(signal.SIGINT, request_stop)
        signal.signal(signal.SIGTERM, request_stop)

        run = service.recalculate_all(
            as_of=args.as_of,
            max_workers=args.workers or None,
            stop_event=stop_event,
            trigger='cli',
            limit=args.limit or None
        )
        logger.info("Done. status=%s total=%s updated=%s unchanged=%s skipped=%s errors=%s",
                    run.status, run.total_establishments, run.updated_count, run.unchanged_count,
                    run.skipped_count, run.error_count)
        return 0 if run.status in ('completed', 'cancelled') else 1


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    sys.exit(main())
