"""Expiry sweep for cross-lane pending connections.

Run on a schedule (cron, k8s CronJob). Safe to run concurrently: rows another
sweep holds are skipped and resolved rows are never touched again.
"""
import argparse
import logging

from pawmatch.core.config import settings
from pawmatch.core.logging import configure_logging
from pawmatch.features.crosslane.service import MAX_SWEEP_BATCH, auto_resolve_cross_lane_connections

logger = logging.getLogger("pawmatch.workers.auto_resolve")


def run_auto_resolve(*, limit: int | None = None, now=None) -> dict:
    batch = limit if limit is not None else settings.AUTO_RESOLVE_BATCH_LIMIT
    batch = max(1, min(int(batch), MAX_SWEEP_BATCH))

    result = auto_resolve_cross_lane_connections(limit=batch, now=now)

    logger.info(
        "[auto_resolve] sweep finished",
        extra={"limit": batch, "resolved": result.resolved, "default_lane": settings.CROSS_LANE_DEFAULT_LANE},
    )
    return {"limit": batch, "resolved": result.resolved}


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Resolve expired cross-lane pending connections")
    parser.add_argument("--limit", type=int, default=None, help=f"Batch size (1..{MAX_SWEEP_BATCH})")
    args = parser.parse_args()

    configure_logging(settings.ENV)
    print(run_auto_resolve(limit=args.limit))
