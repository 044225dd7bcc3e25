from __future__ import annotations

import logging
from typing import Any, Dict, List, Sequence

import pandas as pd

from .models import CustomerRecord, DuplicateGroup
from .rules import CANONICAL_COLUMNS

logger = logging.getLogger(__name__)

GROUP_COLUMNS = [
    "group",
    "role",
    "score",
    "reason",
    "group_size",
    "source_row",
    "customer_id",
    "customer_name",
    "address_summary",
]


def records_to_frame(records: Sequence[CustomerRecord]) -> pd.DataFrame:
    return pd.DataFrame([record.to_row() for record in records], columns=list(CANONICAL_COLUMNS))


def write_clean_csv(records: Sequence[CustomerRecord], path: str) -> None:
    records_to_frame(records).to_csv(path, index=False, encoding="utf-8")
    logger.info("Saved %d clean record(s): %s", len(records), path)


def render_duplicate_report(groups: Sequence[DuplicateGroup]) -> str:
    """Human-readable listing of every duplicate group, survivor first."""
    if not groups:
        return "No potential duplicates found\n"
    lines = [f"Found {len(groups)} potential duplicate group(s)"]
    for number, group in enumerate(groups, start=1):
        lines.append(
            f"Duplicate group {number} (score: {group.score:.2f}, reason: {group.reason.value}):"
        )
        for record in group.records:
            lines.append(f"  - {record.customer_name} ({record.address_summary()})")
    return "\n".join(lines) + "\n"


def write_duplicate_report(groups: Sequence[DuplicateGroup], path: str) -> None:
    with open(path, "w", encoding="utf-8") as handle:
        handle.write(render_duplicate_report(groups))
    logger.info("Saved duplicate report: %s", path)


def duplicate_groups_frame(groups: Sequence[DuplicateGroup]) -> pd.DataFrame:
    rows: List[Dict[str, Any]] = []
    for number, group in enumerate(groups, start=1):
        for position, record in enumerate(group.records):
            rows.append(
                {
                    "group": number,
                    "role": "survivor" if position == 0 else "duplicate",
                    "score": round(group.score, 4),
                    "reason": group.reason.value,
                    "group_size": len(group),
                    "source_row": record.source_row,
                    "customer_id": "" if record.customer_id is None else record.customer_id,
                    "customer_name": record.customer_name,
                    "address_summary": record.address_summary(),
                }
            )
    return pd.DataFrame(rows, columns=GROUP_COLUMNS)


def write_groups_csv(groups: Sequence[DuplicateGroup], path: str) -> None:
    duplicate_groups_frame(groups).to_csv(path, index=False, encoding="utf-8")
    logger.info("Saved duplicate groups: %s", path)
