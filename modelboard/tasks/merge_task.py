"""
Batch job that merges pending staging rows into canonical records.

Run it after the fetchers have staged new observations; scheduling is
left to whatever triggers the command (cron, a systemd timer, CI).
"""
import argparse
import asyncio
import sys
from typing import Dict, List, Optional, Sequence

from modelboard.config import settings
from modelboard.db.database import create_tables, get_session_context
from modelboard.db.models import StagingStatus
from modelboard.services.merge_pipeline import MergeReport, StagedMergePipeline
from modelboard.services.staging_repository import StagingRepository
from modelboard.utils.logging import get_logger, setup_logging

logger = get_logger("merge_task")

KINDS = ("benchmarks", "prices")


async def run_merge(kinds: Sequence[str] = KINDS, purge: bool = True,
                    session_context=get_session_context) -> Dict[str, MergeReport]:
    """Merge each requested kind, then drop old terminal staging rows."""
    reports: Dict[str, MergeReport] = {}

    async with session_context() as session:
        pipeline = StagedMergePipeline(session)

        if "benchmarks" in kinds:
            reports["benchmarks"] = await pipeline.merge_benchmarks()
        if "prices" in kinds:
            reports["prices"] = await pipeline.merge_prices()

        for kind, report in reports.items():
            logger.info(f"{kind}: {report.summary()}")
            for outcome in report.needs_review():
                if outcome.status is StagingStatus.FLAGGED:
                    logger.warning(f"Flagged {kind} #{outcome.staging_id} "
                                   f"{outcome.external_name}/{outcome.metric}: {outcome.reason}")

        if purge:
            purged = await StagingRepository(session).purge_processed(settings.staging_retention_days)
            await session.commit()
            if any(purged.values()):
                logger.info(f"Purged processed staging rows older than "
                            f"{settings.staging_retention_days} days: {purged}")

    return reports


def _parse_args(argv: Optional[List[str]]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Merge staged benchmark and price observations")
    parser.add_argument("--only", choices=KINDS, help="Merge a single kind of staging row")
    parser.add_argument("--no-purge", action="store_true", help="Keep old processed staging rows")
    parser.add_argument("--create-tables", action="store_true", help="Create missing tables first")
    return parser.parse_args(argv)


async def _main(args: argparse.Namespace) -> Dict[str, MergeReport]:
    if args.create_tables:
        await create_tables()
    kinds = (args.only,) if args.only else KINDS
    return await run_merge(kinds=kinds, purge=not args.no_purge)


def main(argv: Optional[List[str]] = None) -> int:
    setup_logging()
    args = _parse_args(argv)

    try:
        reports = asyncio.run(_main(args))
    except KeyboardInterrupt:
        logger.info("Merge interrupted by user")
        return 130
    except Exception as e:
        logger.error(f"Merge failed: {e}")
        return 1

    # Records left pending by storage errors are retried next run, but the run itself failed
    return 1 if any(report.errors for report in reports.values()) else 0


if __name__ == "__main__":
    sys.exit(main())
