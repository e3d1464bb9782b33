from __future__ import annotations

import shutil
import tempfile
from pathlib import Path
from typing import Any

import pytest


@pytest.fixture
def workspace_dir() -> Path:
    """Create temporary workspace."""
    tmp = tempfile.mkdtemp()
    yield Path(tmp)
    shutil.rmtree(tmp, ignore_errors=True)


def make_analysis_dict(**overrides: Any) -> dict[str, Any]:
    """A complete model response for a tax bill."""
    data: dict[str, Any] = {
        "title": "Tax Bill 2024",
        "category": "Tax",
        "confidence_score": 92,
        "summary_paragraph": "You owe property tax for 2024.",
        "summary_bullets": ["Amount due: $1,234.50", "Pay by Jan 15"],
        "urgency": {"level": "High", "reasons": ["Late fees apply"]},
        "deadlines": [{"date": "2030-01-15", "description": "Payment due"}],
        "actions": [
            {"task": "Pay the invoice", "completed": False},
            {"task": "Keep the receipt", "completed": False},
        ],
        "consequences_if_ignored": "A 10% late fee is added.",
        "questions_to_ask_office": ["Can I pay in installments?"],
        "extracted_fields": {
            "amounts": ["$1,234.50"],
            "dates": ["2030-01-15"],
            "reference_numbers": ["REF-778"],
            "organizations": ["City Tax Office"],
        },
        "suggested_replies": [
            {"label": "Ask for installments", "subject": "Installment plan", "body": "Dear Sir or Madam,\nCould I pay in parts?"}
        ],
    }
    data.update(overrides)
    return data


class FakeClient:
    """Stands in for GeminiClient/ProxyClient."""

    def __init__(self, analysis: Any = None, error: Exception | None = None, reply: str = "Sure."):
        self.analysis = analysis
        self.error = error
        self.reply = reply
        self.calls: list[tuple[str, tuple]] = []

    def analyze_letter(self, images, target_language="English"):
        self.calls.append(("analyze_letter", (list(images), target_language)))
        if self.error is not None:
            raise self.error
        return self.analysis

    def chat(self, analysis, history, message, language="English"):
        self.calls.append(("chat", (list(history), message, language)))
        if self.error is not None:
            raise self.error
        return self.reply

    def refine_draft(self, current_draft, instruction):
        self.calls.append(("refine_draft", (current_draft, instruction)))
        return f"{current_draft} [{instruction}]"

    def generate_speech(self, text):
        self.calls.append(("generate_speech", (text,)))
        return "AAABAAIAAwA="
