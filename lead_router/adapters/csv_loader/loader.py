"""CSV loader — reads and normalizes worker and lead data files."""

from __future__ import annotations

import csv
import logging
from datetime import datetime, timezone
from pathlib import Path

from lead_router.adapters.csv_loader.normalizer import (
    clean_string,
    normalize_column_name,
    parse_affinity_tags,
    parse_int,
    parse_list,
)
from lead_router.domain.entities.work_item import WorkItem
from lead_router.domain.entities.worker import Worker

logger = logging.getLogger(__name__)

# Columns that are mapped onto WorkItem fields; anything else goes to metadata
_WORK_ITEM_COLUMNS = {"name", "phone", "city", "state", "region", "lead_source", "source", "timestamp"}


def _sniff_dialect(sample: str) -> type[csv.Dialect]:
    """Pick the delimiter (comma/semicolon/tab) that splits the header row most."""
    first_line = sample.splitlines()[0] if sample else ""
    counts = {d: first_line.count(d) for d in (",", ";", "\t")}
    best_delim = max(counts, key=counts.get)
    if counts[best_delim] == 0:
        return csv.excel

    class DynamicDialect(csv.excel):
        delimiter = best_delim

    return DynamicDialect


def _read_csv(file_path: Path, encoding: str = "utf-8-sig") -> list[dict[str, str | None]]:
    """Read a CSV file with BOM handling and column normalization.

    Args:
        file_path: path to the CSV file.
        encoding: file encoding (utf-8-sig strips BOM automatically).

    Returns:
        List of dicts with normalized column names.
    """
    with open(file_path, encoding=encoding, newline="") as f:
        sample = f.read(4096)
        f.seek(0)
        reader = csv.DictReader(f, dialect=_sniff_dialect(sample))
        if reader.fieldnames is None:
            raise ValueError(f"CSV file {file_path} has no header row")

        col_map = {col: normalize_column_name(col) for col in reader.fieldnames}
        rows = [
            {col_map[k]: clean_string(v) for k, v in raw_row.items() if k is not None}
            for raw_row in reader
        ]

    logger.info("Loaded %d rows from %s (columns: %s)", len(rows), file_path.name, list(col_map.values()))
    return rows


def load_workers(file_path: Path, default_capacity: int = 60) -> list[Worker]:
    """Load the workers (callers) CSV.

    Expected columns (after normalization):
        name, role, languages, capacity_per_day | daily_lead_limit,
        affinity_tags | assigned_states | states
    """
    workers = []
    for line_no, row in enumerate(_read_csv(file_path), start=2):
        name = row.get("name")
        if not name:
            logger.warning("%s:%d: worker without a name, skipping", file_path.name, line_no)
            continue
        capacity = parse_int(
            row.get("capacity_per_day") or row.get("daily_lead_limit") or row.get("capacity"),
            default_capacity,
        )
        if capacity < 1:
            logger.warning(
                "%s:%d: worker '%s' has capacity %d, using %d",
                file_path.name, line_no, name, capacity, default_capacity,
            )
            capacity = default_capacity
        workers.append(
            Worker(
                id=None,
                name=name,
                role=row.get("role"),
                languages=parse_list(row.get("languages")),
                capacity_per_day=capacity,
                affinity_tags=parse_affinity_tags(
                    row.get("affinity_tags") or row.get("assigned_states") or row.get("states")
                ),
            )
        )
    logger.info("Parsed %d workers", len(workers))
    return workers


def load_work_items(file_path: Path) -> list[WorkItem]:
    """Load the leads CSV.

    Expected columns (after normalization):
        phone (required), name, city, state | region, lead_source | source,
        timestamp (ISO 8601). Unknown columns are kept as metadata.
    """
    items = []
    for line_no, row in enumerate(_read_csv(file_path), start=2):
        phone = row.get("phone")
        if not phone:
            logger.warning("%s:%d: lead without a phone, skipping", file_path.name, line_no)
            continue
        items.append(
            WorkItem(
                id=None,
                phone=phone,
                name=row.get("name"),
                city=row.get("city"),
                affinity_key=row.get("state") or row.get("region"),
                lead_source=row.get("lead_source") or row.get("source"),
                metadata={
                    k: v for k, v in row.items() if k not in _WORK_ITEM_COLUMNS and v is not None
                },
                received_at=_parse_timestamp(row.get("timestamp")),
            )
        )
    logger.info("Parsed %d work items", len(items))
    return items


def _parse_timestamp(raw: str | None) -> datetime | None:
    if not raw:
        return None
    try:
        value = datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError:
        logger.warning("Could not parse timestamp: %s", raw)
        return None
    # Naive upstream timestamps are taken as UTC
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value
