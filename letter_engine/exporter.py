from __future__ import annotations

import csv
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Iterable

from .types import LetterItem
from .utils import write_json
from .views import agenda_groups


@dataclass
class ExportStats:
    letters_seen: int = 0
    tasks_exported: int = 0
    tasks_skipped_completed: int = 0


def export_filename(today: date) -> str:
    return f"explain-my-letter-export-{today.isoformat()}.json"


def export_history_json(history: Iterable[LetterItem], out_dir: str | Path, today: date | None = None) -> Path:
    """Dump the full history (same shape as history.json) into a dated file."""
    out = Path(out_dir) / export_filename(today or date.today())
    write_json(out, [item.to_dict() for item in history])
    return out


def export_tasks_csv(
    history: Iterable[LetterItem],
    out_path: str | Path,
    *,
    include_completed: bool = False,
) -> ExportStats:
    """Export the agenda as CSV.

    Rules:
    - Rows follow the agenda order: urgency (High first), then task index
    - Completed tasks are skipped unless include_completed is True
    - Raises if there is nothing to export

    CSV columns:
    - letter_id
    - letter_title
    - category
    - urgency
    - task_index
    - task
    - completed
    """
    items = list(history)
    stats = ExportStats(letters_seen=len(items))

    rows: list[dict[str, str]] = []
    for group in agenda_groups(items):
        a = group.item.analysis
        for idx, action in group.tasks:
            if action.completed and not include_completed:
                stats.tasks_skipped_completed += 1
                continue
            rows.append(
                {
                    "letter_id": group.item.id,
                    "letter_title": a.title,
                    "category": a.category,
                    "urgency": group.urgency.value,
                    "task_index": str(idx),
                    "task": action.task,
                    "completed": "true" if action.completed else "false",
                }
            )

    if not rows:
        raise RuntimeError("No exportable tasks (all completed or history empty)")

    out_path = Path(out_path)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    with out_path.open("w", newline="", encoding="utf-8") as f:
        writer = csv.DictWriter(
            f,
            fieldnames=["letter_id", "letter_title", "category", "urgency", "task_index", "task", "completed"],
        )
        writer.writeheader()
        for r in rows:
            writer.writerow(r)
            stats.tasks_exported += 1

    return stats
