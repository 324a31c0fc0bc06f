"""Seed database from CSV files.

Usage:
    python -m lead_router.tools.seed_db
    python -m lead_router.tools.seed_db --data-dir data
    python -m lead_router.tools.seed_db --drop      # drop existing data first
    python -m lead_router.tools.seed_db --assign    # route seeded leads afterwards
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from lead_router.adapters.csv_loader.loader import load_work_items, load_workers
from lead_router.adapters.persistence.database import async_session_factory
from lead_router.adapters.persistence.models import (
    AssignmentRecordModel,
    WorkerModel,
    WorkItemModel,
)
from lead_router.adapters.persistence.unit_of_work import SqlUnitOfWork
from lead_router.application.use_cases.assign_work_item import (
    AssignPendingUseCase,
    AssignWorkItemUseCase,
)
from lead_router.config import settings

logger = logging.getLogger(__name__)


async def _drop_data(session: AsyncSession) -> None:
    """Delete all data in correct order (respecting FK constraints)."""
    for model in [AssignmentRecordModel, WorkItemModel, WorkerModel]:
        await session.execute(delete(model))
    await session.commit()
    logger.info("Dropped all existing data")


async def seed(data_dir: Path, drop: bool = False) -> dict[str, int]:
    """Main seed function. Returns counts of seeded records."""
    counts = {"workers": 0, "work_items": 0}

    worker_csv = _find_csv(data_dir, ["workers", "callers", "agents"])
    work_item_csv = _find_csv(data_dir, ["work_items", "leads"])

    if not worker_csv:
        raise FileNotFoundError(
            f"No workers CSV found in {data_dir}. Expected something like callers.csv"
        )

    if drop:
        async with async_session_factory() as session:
            await _drop_data(session)

    async with SqlUnitOfWork() as uow:
        existing = {w.name for w in await uow.workers.get_all()}
        for worker in load_workers(worker_csv, default_capacity=settings.default_daily_capacity):
            if worker.name in existing:
                logger.debug("Worker '%s' already exists, skipping", worker.name)
                continue
            await uow.workers.save(worker)
            existing.add(worker.name)
            counts["workers"] += 1
        await uow.commit()

    if work_item_csv:
        async with SqlUnitOfWork() as uow:
            for item in load_work_items(work_item_csv):
                # Seeding is idempotent on (phone, upstream timestamp)
                if item.received_at is not None:
                    duplicate = await uow.session.scalar(
                        select(WorkItemModel.id).where(
                            WorkItemModel.phone == item.phone,
                            WorkItemModel.received_at == item.received_at,
                        )
                    )
                    if duplicate is not None:
                        logger.debug("Lead %s already exists, skipping", item.phone)
                        continue
                await uow.work_items.save(item)
                counts["work_items"] += 1
            await uow.commit()
    else:
        logger.info("No leads CSV found — skipping work item import")

    logger.info(
        "Seed complete: %d workers, %d work items", counts["workers"], counts["work_items"]
    )
    return counts


async def assign_pending() -> None:
    assign_uc = AssignWorkItemUseCase(
        uow_factory=SqlUnitOfWork,
        quota_timezone=settings.quota_tz,
        spill_to_global=settings.affinity_spill_to_global,
    )
    await AssignPendingUseCase(assign_uc, uow_factory=SqlUnitOfWork).execute()


def _find_csv(data_dir: Path, name_hints: list[str]) -> Path | None:
    """Find a CSV file matching any of the name hints."""
    for f in sorted(data_dir.glob("*.csv")):
        fname_lower = f.stem.lower()
        for hint in name_hints:
            if hint in fname_lower:
                logger.info("Found CSV: %s (matched hint '%s')", f.name, hint)
                return f
    return None


async def _verify_data() -> None:
    """Print sanity checks after seeding."""
    async with async_session_factory() as session:
        workers = (await session.execute(select(WorkerModel))).scalars().all()
        total_items = (await session.execute(select(func.count(WorkItemModel.id)))).scalar() or 0
        unassigned = (
            await session.execute(
                select(func.count(WorkItemModel.id)).where(
                    WorkItemModel.assigned_worker_id.is_(None)
                )
            )
        ).scalar() or 0

        print(f"\n{'='*50}")
        print("SEED VERIFICATION")
        print(f"{'='*50}")
        print(f"Workers:    {len(workers)}")
        print(f"Work items: {total_items} ({unassigned} unassigned)")

        tagged = sum(1 for w in workers if w.affinity_tags)
        print(f"Workers with affinity tags: {tagged}/{len(workers)}")

        regions: dict[str, int] = {}
        for w in workers:
            for tag in w.affinity_tags:
                regions[tag] = regions.get(tag, 0) + 1
        print(f"Workers per region: {regions}")
        print(f"Total daily capacity: {sum(w.capacity_per_day for w in workers)}")
        print(f"{'='*50}\n")


def main():
    logging.basicConfig(level=logging.INFO, format="%(levelname)s | %(message)s")

    parser = argparse.ArgumentParser(description="Seed the lead router database from CSV files")
    parser.add_argument(
        "--data-dir", type=str, default=settings.csv_data_path,
        help="Directory containing CSV files (default: CSV_DATA_PATH or data)",
    )
    parser.add_argument(
        "--drop", action="store_true",
        help="Drop existing data before seeding",
    )
    parser.add_argument(
        "--assign", action="store_true",
        help="Assign every unassigned work item after seeding",
    )
    parser.add_argument(
        "--verify-only", action="store_true",
        help="Only run verification, don't seed",
    )
    args = parser.parse_args()

    data_dir = Path(args.data_dir)
    if not args.verify_only and not data_dir.exists():
        logger.error("Data directory not found: %s", data_dir)
        sys.exit(1)

    if args.verify_only:
        asyncio.run(_verify_data())
    else:
        async def run_all():
            await seed(data_dir, drop=args.drop)
            if args.assign:
                await assign_pending()
            await _verify_data()
        asyncio.run(run_all())


if __name__ == "__main__":
    main()
