from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .utils import load_json


DEFAULT_CONFIG_PATH = Path("config") / "default.json"

_DEFAULTS: dict[str, dict[str, Any]] = {
    "analysis": {
        "model": "gemini-3-flash-preview",
        "tts_model": "gemini-2.5-flash-preview-tts",
        "voice": "Kore",
        "chat_temperature": 0.7,
    },
    "proxy": {
        "url": None,
        "timeout_s": 60,
    },
    "capture": {
        "camera_index": 0,
        "constraints": [[1920, 1080], [1280, 720], None],
        "jpeg_quality": 80,
        "pdf_dpi": 150,
    },
    "storage": {
        "workspace": "./workspace",
    },
}

API_KEY_ENV_VARS = ("GEMINI_API_KEY", "API_KEY")


@dataclass(frozen=True)
class EngineConfig:
    analysis: dict[str, Any] = field(default_factory=lambda: dict(_DEFAULTS["analysis"]))
    proxy: dict[str, Any] = field(default_factory=lambda: dict(_DEFAULTS["proxy"]))
    capture: dict[str, Any] = field(default_factory=lambda: dict(_DEFAULTS["capture"]))
    storage: dict[str, Any] = field(default_factory=lambda: dict(_DEFAULTS["storage"]))


def _section(data: dict[str, Any], name: str) -> dict[str, Any]:
    merged = dict(_DEFAULTS[name])
    raw = data.get(name)
    if isinstance(raw, dict):
        merged.update(raw)
    return merged


def load_config(config_path: str | Path | None = None) -> EngineConfig:
    """Load config JSON; a missing file yields the built-in defaults."""
    data: dict[str, Any] = {}
    if config_path is not None and Path(config_path).exists():
        loaded = load_json(config_path)
        if not isinstance(loaded, dict):
            raise ValueError(f"config must be a JSON object: {config_path}")
        data = loaded
    return EngineConfig(
        analysis=_section(data, "analysis"),
        proxy=_section(data, "proxy"),
        capture=_section(data, "capture"),
        storage=_section(data, "storage"),
    )


def api_key_from_env() -> str | None:
    for name in API_KEY_ENV_VARS:
        value = (os.environ.get(name) or "").strip()
        if value:
            return value
    return None
