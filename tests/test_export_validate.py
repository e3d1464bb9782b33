"""History export and workspace validation."""
from __future__ import annotations

import csv
import json
from datetime import date
from pathlib import Path

import pytest

from conftest import make_analysis_dict
from letter_engine.exporter import export_filename, export_history_json, export_tasks_csv
from letter_engine.store import LetterStore
from letter_engine.types import AppSettings, LetterAnalysis, LetterItem
from letter_engine.validator import validate_workspace


def _item(item_id: str, **overrides) -> LetterItem:
    return LetterItem(id=item_id, created_at=1, image_urls=[], analysis=LetterAnalysis.from_dict(make_analysis_dict(**overrides)))


class TestExport:

    def test_json_export(self, workspace_dir: Path):
        out = export_history_json([_item("a")], workspace_dir, today=date(2030, 3, 4))
        assert out.name == "explain-my-letter-export-2030-03-04.json"
        assert export_filename(date(2030, 3, 4)) == out.name
        data = json.loads(out.read_text(encoding="utf-8"))
        assert data[0]["id"] == "a"
        assert data[0]["createdAt"] == 1

    def test_csv_agenda_order_and_completed(self, workspace_dir: Path):
        low = _item("low", urgency={"level": "Low"})
        high = _item("high", actions=[{"task": "Pay the invoice", "completed": True}, {"task": "Call"}])
        out = workspace_dir / "tasks.csv"
        stats = export_tasks_csv([low, high], out)
        assert stats.tasks_exported == 3
        assert stats.tasks_skipped_completed == 1
        with out.open(encoding="utf-8", newline="") as f:
            rows = list(csv.DictReader(f))
        assert [(r["letter_id"], r["task_index"]) for r in rows] == [("high", "1"), ("low", "0"), ("low", "1")]

        stats = export_tasks_csv([low, high], out, include_completed=True)
        assert stats.tasks_exported == 4
        assert stats.tasks_skipped_completed == 0

    def test_nothing_to_export(self, workspace_dir: Path):
        with pytest.raises(RuntimeError):
            export_tasks_csv([_item("a", actions=[])], workspace_dir / "x.csv")


class TestValidateWorkspace:

    def _populated(self, workspace_dir: Path) -> LetterStore:
        store = LetterStore(workspace_dir)
        store.save_history([_item("a"), _item("b")])
        store.save_settings(AppSettings())
        store.save_language("English")
        return store

    def test_valid_workspace(self, workspace_dir: Path):
        self._populated(workspace_dir)
        report = validate_workspace(workspace_dir)
        assert report.ok, report.errors

    def test_missing_files(self, workspace_dir: Path):
        LetterStore(workspace_dir)
        report = validate_workspace(workspace_dir)
        assert report.missing_store_files == 3
        assert not report.ok

    def test_detects_bad_items(self, workspace_dir: Path):
        store = self._populated(workspace_dir)
        data = json.loads(store.paths.history_json.read_text(encoding="utf-8"))
        data[1]["id"] = "a"
        data[0]["createdAt"] = "yesterday"
        data[0]["analysis"]["confidence_score"] = 250
        data[0]["analysis"]["urgency"]["level"] = "Critical"
        data[0]["analysis"]["actions"][0]["completed"] = "no"
        store.paths.history_json.write_text(json.dumps(data), encoding="utf-8")
        store.paths.language_txt.write_text("Klingon", encoding="utf-8")

        report = validate_workspace(workspace_dir)
        assert report.duplicate_ids == 1
        assert report.invalid_items == 4
        assert report.invalid_settings == 1
