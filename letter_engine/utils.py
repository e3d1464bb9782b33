from __future__ import annotations

import json
import os
import re
import time
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any


_FENCE_OPEN_RE = re.compile(r"```(?:json)?\s*\n?", re.IGNORECASE)
_FENCE_CLOSE_RE = re.compile(r"\n?```")
_NUMBER_RE = re.compile(r"[^0-9.]")


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat()


def now_ms() -> int:
    return int(time.time() * 1000)


def new_id() -> str:
    return str(uuid.uuid4())


def ensure_dir(path: str | Path) -> None:
    Path(path).mkdir(parents=True, exist_ok=True)


def safe_filename_token(text: str, max_len: int = 50) -> str:
    text = text.strip().lower()
    text = re.sub(r"[^a-z0-9_-]+", "_", text)
    text = re.sub(r"_+", "_", text).strip("_")
    return text[:max_len] or "token"


def strip_code_fences(text: str) -> str:
    """Remove a leading ```json fence and the closing fence, if present."""
    if "```" not in text:
        return text.strip()
    text = _FENCE_OPEN_RE.sub("", text, count=1)
    text = _FENCE_CLOSE_RE.sub("", text, count=1)
    return text.strip()


def parse_amount(raw: str) -> float | None:
    """'$1,234.50' -> 1234.5. Returns None when nothing numeric is left."""
    cleaned = _NUMBER_RE.sub("", str(raw or ""))
    if not cleaned:
        return None
    # parseFloat semantics: stop at a second decimal point
    head, dot, tail = cleaned.partition(".")
    if dot:
        cleaned = f"{head}.{tail.split('.')[0]}"
    try:
        return float(cleaned)
    except ValueError:
        return None


_DATE_FORMATS = (
    "%m/%d/%Y",
    "%Y/%m/%d",
    "%B %d, %Y",
    "%b %d, %Y",
    "%d %B %Y",
    "%d %b %Y",
    "%B %d %Y",
    "%b %d %Y",
)


def parse_date(raw: str) -> datetime | None:
    """Parse a deadline date as written by the model; None when unparseable.

    ISO strings are tried first. Naive results are taken as UTC.
    """
    text = str(raw or "").strip()
    if not text:
        return None
    parsed: datetime | None = None
    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        for fmt in _DATE_FORMATS:
            try:
                parsed = datetime.strptime(text, fmt)
                break
            except ValueError:
                continue
    if parsed is None:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def clamp(v: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, v))


def write_json(path: str | Path, data: Any) -> None:
    """Write JSON through a temp file so a crash never leaves a half-written store."""
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    tmp = p.with_name(p.name + ".tmp")
    with open(tmp, "w", encoding="utf-8") as f:
        json.dump(data, f, ensure_ascii=False, indent=2)
    os.replace(tmp, p)


def append_jsonl(path: str | Path, obj: dict[str, Any]) -> None:
    Path(path).parent.mkdir(parents=True, exist_ok=True)
    with open(path, "a", encoding="utf-8") as f:
        f.write(json.dumps(obj, ensure_ascii=False) + "\n")


def load_json(path: str | Path) -> Any:
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)
