from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from .utils import append_jsonl, ensure_dir, utc_now_iso


@dataclass
class WorkspacePaths:
    root: Path
    history_json: Path
    language_txt: Path
    settings_json: Path
    onboarded_flag: Path
    errors_jsonl: Path
    exports_dir: Path
    audio_dir: Path
    reports_dir: Path


def workspace_paths(workspace: str | Path) -> WorkspacePaths:
    """Resolve the workspace layout without touching the filesystem."""
    root = Path(workspace)
    return WorkspacePaths(
        root=root,
        history_json=root / "history.json",
        language_txt=root / "language.txt",
        settings_json=root / "settings.json",
        onboarded_flag=root / "onboarded",
        errors_jsonl=root / "errors.jsonl",
        exports_dir=root / "exports",
        audio_dir=root / "audio",
        reports_dir=root / "reports",
    )


def create_workspace(workspace: str | Path) -> WorkspacePaths:
    """Create workspace directories.

    Args:
        workspace: Root workspace path (the local analog of browser storage)
    """
    paths = workspace_paths(workspace)
    for p in [paths.root, paths.exports_dir, paths.audio_dir, paths.reports_dir]:
        ensure_dir(p)

    # errors.jsonl: create empty file
    paths.errors_jsonl.touch(exist_ok=True)
    return paths


def record_error(paths: WorkspacePaths, scope: str, stage: str, message: str) -> None:
    append_jsonl(
        paths.errors_jsonl,
        {"at": utc_now_iso(), "scope": scope, "stage": stage, "message": message},
    )
