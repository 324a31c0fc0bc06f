"""Tests for CSV loader functions."""

import csv
import tempfile
from datetime import datetime, timezone
from pathlib import Path

from lead_router.adapters.csv_loader.loader import load_work_items, load_workers


def _write_csv(rows: list[dict], path: Path, encoding: str = "utf-8-sig") -> None:
    """Helper to write a test CSV file."""
    if not rows:
        return
    with open(path, "w", encoding=encoding, newline="") as f:
        writer = csv.DictWriter(f, fieldnames=rows[0].keys())
        writer.writeheader()
        writer.writerows(rows)


def test_load_workers_basic():
    with tempfile.TemporaryDirectory() as tmpdir:
        csv_path = Path(tmpdir) / "callers.csv"
        _write_csv([
            {"Name": "Asha", "Role": "Senior", "Languages": "Hindi, Marathi",
             "Daily Lead Limit": "10", "Assigned States": "Maharashtra; Goa"},
            {"Name": "Bhavin", "Role": "", "Languages": "",
             "Daily Lead Limit": "", "Assigned States": ""},
        ], csv_path)

        workers = load_workers(csv_path, default_capacity=60)
        assert len(workers) == 2
        assert workers[0].name == "Asha"
        assert workers[0].capacity_per_day == 10
        assert workers[0].languages == ["Hindi", "Marathi"]
        assert workers[0].affinity_tags == frozenset({"maharashtra", "goa"})
        assert workers[1].capacity_per_day == 60
        assert workers[1].role is None
        assert workers[1].affinity_tags == frozenset()


def test_load_workers_skips_nameless_rows_and_bad_capacity():
    with tempfile.TemporaryDirectory() as tmpdir:
        csv_path = Path(tmpdir) / "workers.csv"
        _write_csv([
            {"name": "", "capacity_per_day": "5", "affinity_tags": ""},
            {"name": "Chitra", "capacity_per_day": "0", "affinity_tags": "Karnataka"},
        ], csv_path)

        workers = load_workers(csv_path, default_capacity=40)
        assert [w.name for w in workers] == ["Chitra"]
        assert workers[0].capacity_per_day == 40


def test_load_work_items_basic():
    with tempfile.TemporaryDirectory() as tmpdir:
        csv_path = Path(tmpdir) / "leads.csv"
        _write_csv([
            {"Name": "Rahul", "Phone": " 9876543210 ", "Timestamp": "2026-02-25T10:00:00Z",
             "Lead Source": "Reels", "City": "Mumbai", "State": "Maharashtra",
             "Campaign": "feb25"},
            {"Name": "No phone", "Phone": "", "Timestamp": "", "Lead Source": "",
             "City": "", "State": "", "Campaign": ""},
        ], csv_path)

        items = load_work_items(csv_path)
        assert len(items) == 1
        item = items[0]
        assert item.phone == "9876543210"
        assert item.affinity_key == "Maharashtra"
        assert item.lead_source == "Reels"
        assert item.metadata == {"campaign": "feb25"}
        assert item.received_at == datetime(2026, 2, 25, 10, 0, tzinfo=timezone.utc)
        assert not item.is_assigned()


def test_naive_and_bad_timestamps():
    with tempfile.TemporaryDirectory() as tmpdir:
        csv_path = Path(tmpdir) / "leads.csv"
        _write_csv([
            {"phone": "1", "timestamp": "2026-02-25 10:00:00"},
            {"phone": "2", "timestamp": "yesterday"},
        ], csv_path)

        items = load_work_items(csv_path)
        assert items[0].received_at.tzinfo == timezone.utc
        assert items[1].received_at is None


def test_semicolon_delimiter_sniffing():
    with tempfile.TemporaryDirectory() as tmpdir:
        csv_path = Path(tmpdir) / "callers.csv"
        with open(csv_path, "w", encoding="utf-8-sig", newline="") as f:
            f.write("Name ;Daily Lead Limit;Assigned States\n")
            f.write("Deepak;40;Kerala, Tamil Nadu\n")

        workers = load_workers(csv_path)
        assert workers[0].name == "Deepak"
        assert workers[0].capacity_per_day == 40
        assert workers[0].affinity_tags == frozenset({"kerala", "tamil nadu"})


def test_bundled_sample_data_loads():
    data_dir = Path(__file__).resolve().parents[3] / "data"
    workers = load_workers(data_dir / "callers.csv")
    items = load_work_items(data_dir / "leads.csv")
    assert len(workers) == 5
    assert len(items) == 5
    assert items[3].affinity_key == "tamil  nadu"
