from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .types import DEFAULT_LANGUAGE, SUPPORTED_LANGUAGES, AppSettings, LetterItem
from .utils import load_json, write_json
from .workspace import WorkspacePaths, create_workspace, record_error


@dataclass
class StoreSnapshot:
    history: list[LetterItem] = field(default_factory=list)
    language: str = DEFAULT_LANGUAGE
    settings: AppSettings = field(default_factory=AppSettings)
    onboarded: bool = False


class LetterStore:
    """Workspace-backed persistence for history, language and settings.

    Every mutation in the shell is followed by a save of the affected value;
    reads never raise on corrupt files (defaults are used, the problem is
    recorded in errors.jsonl).
    """

    def __init__(self, workspace: str | Path):
        self.paths: WorkspacePaths = create_workspace(workspace)

    def _load_json_or_none(self, path: Path, stage: str) -> Any:
        if not path.exists():
            return None
        try:
            return load_json(path)
        except Exception as e:
            record_error(self.paths, scope="store", stage=stage, message=f"failed_to_parse: {path.name}: {e}")
            return None

    def load_history(self) -> list[LetterItem]:
        raw = self._load_json_or_none(self.paths.history_json, "load_history")
        if not isinstance(raw, list):
            return []
        items: list[LetterItem] = []
        for entry in raw:
            if not isinstance(entry, dict) or not entry.get("id"):
                record_error(self.paths, scope="store", stage="load_history", message="skipped_invalid_item")
                continue
            try:
                items.append(LetterItem.from_dict(entry))
            except (TypeError, ValueError) as e:
                record_error(
                    self.paths,
                    scope="store",
                    stage="load_history",
                    message=f"skipped_invalid_item: id={entry.get('id')}: {e}",
                )
        return items

    def load_language(self) -> str:
        p = self.paths.language_txt
        if not p.exists():
            return DEFAULT_LANGUAGE
        lang = p.read_text(encoding="utf-8").strip()
        return lang if lang in SUPPORTED_LANGUAGES else DEFAULT_LANGUAGE

    def load_settings(self) -> AppSettings:
        return AppSettings.from_dict(self._load_json_or_none(self.paths.settings_json, "load_settings"))

    def load(self) -> StoreSnapshot:
        return StoreSnapshot(
            history=self.load_history(),
            language=self.load_language(),
            settings=self.load_settings(),
            onboarded=self.is_onboarded(),
        )

    def save_history(self, history: list[LetterItem]) -> None:
        write_json(self.paths.history_json, [item.to_dict() for item in history])

    def save_language(self, language: str) -> None:
        tmp = self.paths.language_txt.with_name(self.paths.language_txt.name + ".tmp")
        tmp.write_text(language, encoding="utf-8")
        tmp.replace(self.paths.language_txt)

    def save_settings(self, settings: AppSettings) -> None:
        write_json(self.paths.settings_json, settings.to_dict())

    def is_onboarded(self) -> bool:
        return self.paths.onboarded_flag.exists()

    def mark_onboarded(self) -> None:
        self.paths.onboarded_flag.write_text("true", encoding="utf-8")

    def clear_onboarded(self) -> None:
        self.paths.onboarded_flag.unlink(missing_ok=True)
