from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .types import SUPPORTED_LANGUAGES, UrgencyLevel
from .utils import load_json
from .workspace import workspace_paths


_LIST_FIELDS = ("summary_bullets", "deadlines", "actions", "questions_to_ask_office", "suggested_replies")
_EXTRACTED_LIST_FIELDS = ("amounts", "dates", "reference_numbers", "organizations")
_URGENCY_VALUES = {u.value for u in UrgencyLevel}


@dataclass
class ValidationReport:
    missing_store_files: int = 0
    invalid_items: int = 0
    duplicate_ids: int = 0
    invalid_settings: int = 0
    errors: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


def _validate_analysis(a: Any, idx: int, item_id: str, errors: list[str]) -> int:
    where = f"history[{idx}] id={item_id}"
    if not isinstance(a, dict):
        errors.append(f"{where}: analysis must be an object")
        return 1

    invalid = 0
    for k in ("title", "category", "summary_paragraph"):
        if not isinstance(a.get(k), str):
            errors.append(f"{where}: analysis.{k} must be str")
            invalid += 1

    score = a.get("confidence_score")
    if isinstance(score, bool) or not isinstance(score, (int, float)) or not 0 <= score <= 100:
        errors.append(f"{where}: confidence_score must be a number in 0..100")
        invalid += 1

    urgency = a.get("urgency")
    if not isinstance(urgency, dict) or urgency.get("level") not in _URGENCY_VALUES:
        errors.append(f"{where}: urgency.level must be one of {sorted(_URGENCY_VALUES)}")
        invalid += 1

    for k in _LIST_FIELDS:
        if not isinstance(a.get(k), list):
            errors.append(f"{where}: analysis.{k} must be a list")
            invalid += 1

    fields = a.get("extracted_fields")
    if not isinstance(fields, dict):
        errors.append(f"{where}: extracted_fields must be an object")
        invalid += 1
    else:
        for k in _EXTRACTED_LIST_FIELDS:
            if not isinstance(fields.get(k), list):
                errors.append(f"{where}: extracted_fields.{k} must be a list")
                invalid += 1

    for j, action in enumerate(a.get("actions") or []):
        if not isinstance(action, dict) or not isinstance(action.get("completed"), bool):
            errors.append(f"{where}: actions[{j}].completed must be bool")
            invalid += 1

    return invalid


def validate_workspace(workspace: str | Path) -> ValidationReport:
    """Check the stored history/settings/language against the persisted schema."""
    paths = workspace_paths(workspace)
    report = ValidationReport()
    errors = report.errors

    for p in (paths.history_json, paths.settings_json, paths.language_txt):
        if not p.exists():
            report.missing_store_files += 1
            errors.append(f"missing: {p}")

    if paths.history_json.exists():
        try:
            history = load_json(paths.history_json)
        except Exception as e:
            errors.append(f"failed to read history.json: {e}")
            report.invalid_items += 1
            history = []

        if not isinstance(history, list):
            errors.append("history.json must be a list")
            report.invalid_items += 1
            history = []

        seen: set[str] = set()
        for idx, it in enumerate(history):
            if not isinstance(it, dict):
                errors.append(f"history[{idx}]: not an object")
                report.invalid_items += 1
                continue
            item_id = str(it.get("id") or "")
            if not item_id:
                errors.append(f"history[{idx}]: missing id")
                report.invalid_items += 1
            elif item_id in seen:
                errors.append(f"history[{idx}]: duplicate id {item_id}")
                report.duplicate_ids += 1
            seen.add(item_id)

            if type(it.get("createdAt")) is not int:
                errors.append(f"history[{idx}] id={item_id}: createdAt must be int (epoch ms)")
                report.invalid_items += 1
            for k in ("imageUrls", "verifiedFields"):
                if not isinstance(it.get(k, []), list):
                    errors.append(f"history[{idx}] id={item_id}: {k} must be a list")
                    report.invalid_items += 1

            report.invalid_items += _validate_analysis(it.get("analysis"), idx, item_id, errors)

    if paths.settings_json.exists():
        try:
            settings = load_json(paths.settings_json)
            if not isinstance(settings, dict):
                raise ValueError("not an object")
            if not isinstance(settings.get("userName", ""), str):
                raise ValueError("userName must be str")
        except Exception as e:
            errors.append(f"invalid settings.json: {e}")
            report.invalid_settings += 1

    if paths.language_txt.exists():
        lang = paths.language_txt.read_text(encoding="utf-8").strip()
        if lang not in SUPPORTED_LANGUAGES:
            errors.append(f"unsupported language in language.txt: {lang}")
            report.invalid_settings += 1

    return report
