"""Seed customer, machine and technician master records from a JSON file.

Usage examples:
  python utils/seed_master_data.py master.json
  python utils/seed_master_data.py master.json --dry-run

The file holds one object per kind, keyed by record id:
  {"customers": {"c-1": {"firstname": "Alice", ...}}, "machines": {...}, "technicians": {...}}

Records whose id already exists are left untouched.
"""

from __future__ import annotations

import argparse
import json
from pathlib import Path
from typing import Any, Dict, Mapping

import sqlalchemy as sa

from app.config import Settings
from app.repos.pg_jobs import SqlMasterDataRepo

SECTIONS = {
    "customers": ("customer", "add_customer"),
    "machines": ("machine", "add_machine"),
    "technicians": ("technician", "add_technician"),
}


def load_records(path: Path) -> Dict[str, Mapping[str, Mapping[str, Any]]]:
    data = json.loads(path.read_text(encoding="utf-8"))
    unknown = set(data) - set(SECTIONS)
    if unknown:
        raise SystemExit(f"Unknown sections: {', '.join(sorted(unknown))}")
    return {section: data.get(section) or {} for section in SECTIONS}


def seed(repo: SqlMasterDataRepo, records: Mapping[str, Mapping[str, Mapping[str, Any]]], dry_run: bool = False) -> Dict[str, int]:
    """Insert missing records; returns the number added per section."""

    added: Dict[str, int] = {}
    for section, (getter, adder) in SECTIONS.items():
        count = 0
        for record_id, record in (records.get(section) or {}).items():
            if getattr(repo, getter)(record_id) is not None:
                continue
            if dry_run:
                print(f"DRY-RUN: would add {getter} {record_id}")
            else:
                getattr(repo, adder)(record_id, record)
            count += 1
        added[section] = count
    return added


def main() -> None:
    parser = argparse.ArgumentParser(description="Seed master data for repair jobs")
    parser.add_argument("path", type=Path, help="JSON file with customers, machines and technicians")
    parser.add_argument("--database-url", type=str, default=None, help="Override DATABASE_URL")
    parser.add_argument("--dry-run", action="store_true")
    args = parser.parse_args()

    settings = Settings()
    engine = sa.create_engine(args.database_url or settings.database_url)
    added = seed(SqlMasterDataRepo(engine), load_records(args.path), dry_run=args.dry_run)
    summary = ", ".join(f"{count} {section}" for section, count in added.items())
    print(f"Seeding complete: {summary}")


if __name__ == "__main__":
    main()
