"""Letter data model and shared helpers."""
from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

from conftest import make_analysis_dict
from letter_engine.types import (
    AppSettings,
    LetterAnalysis,
    LetterItem,
    UrgencyLevel,
)
from letter_engine.utils import (
    load_json,
    parse_amount,
    parse_date,
    safe_filename_token,
    strip_code_fences,
    write_json,
)


# ═══════════════════════════════════════════════════════════════════════════════
# DATA MODEL TESTS
# ═══════════════════════════════════════════════════════════════════════════════

class TestLetterModel:

    def test_analysis_round_trips_model_output(self):
        data = make_analysis_dict()
        a = LetterAnalysis.from_dict(data)
        assert a.urgency.level is UrgencyLevel.HIGH
        assert a.deadlines[0].reminder_set is False
        assert a.to_dict()["deadlines"][0] == {"date": "2030-01-15", "description": "Payment due", "reminderSet": False}
        assert "translation" not in a.to_dict()

    def test_missing_fields_get_defaults(self):
        a = LetterAnalysis.from_dict({"confidence_score": "not a number", "urgency": {"level": "critical"}})
        assert a.title == "Untitled letter"
        assert a.category == "Other"
        assert a.confidence_score == 0.0
        assert a.urgency.level is UrgencyLevel.LOW
        assert a.actions == []

    def test_confidence_is_clamped(self):
        assert LetterAnalysis.from_dict({"confidence_score": 140}).confidence_score == 100.0
        assert LetterAnalysis.from_dict({"confidence_score": -3}).confidence_score == 0.0

    def test_translation_kept_when_present(self):
        data = make_analysis_dict(
            translation={"summary_paragraph": "Debe impuestos.", "summary_bullets": ["x"], "actions": [{"task": "Pagar"}]}
        )
        a = LetterAnalysis.from_dict(data)
        assert a.translation is not None
        assert a.translation.actions[0].task == "Pagar"
        assert a.to_dict()["translation"]["summary_paragraph"] == "Debe impuestos."

    def test_letter_item_uses_stored_key_names(self):
        item = LetterItem.from_dict(
            {
                "id": "abc",
                "createdAt": 1700000000000,
                "imageUrls": ["data:image/jpeg;base64,AA=="],
                "analysis": make_analysis_dict(),
                "verifiedFields": ["amt-0"],
            }
        )
        out = item.to_dict()
        assert out["createdAt"] == 1700000000000
        assert out["verifiedFields"] == ["amt-0"]
        assert set(out) == {"id", "createdAt", "imageUrls", "analysis", "verifiedFields"}

    def test_urgency_rank_orders_high_first(self):
        levels = sorted([UrgencyLevel.LOW, UrgencyLevel.HIGH, UrgencyLevel.MEDIUM], key=lambda u: u.rank)
        assert levels == [UrgencyLevel.HIGH, UrgencyLevel.MEDIUM, UrgencyLevel.LOW]

    def test_settings_merge_over_defaults(self):
        s = AppSettings.from_dict({"biometricLock": True})
        assert s.user_name == "User"
        assert s.biometric_lock is True
        assert s.family_vault_enabled is False
        assert AppSettings.from_dict("garbage") == AppSettings()


# ═══════════════════════════════════════════════════════════════════════════════
# HELPER TESTS
# ═══════════════════════════════════════════════════════════════════════════════

class TestHelpers:

    def test_strip_code_fences(self):
        assert strip_code_fences('```json\n{"a": 1}\n```') == '{"a": 1}'
        assert strip_code_fences('  {"a": 1}  ') == '{"a": 1}'

    def test_parse_amount(self):
        assert parse_amount("$1,234.50") == 1234.5
        assert parse_amount("EUR 80") == 80.0
        assert parse_amount("1.2.3") == 1.2
        assert parse_amount("n/a") is None

    def test_parse_date_formats(self):
        iso = parse_date("2030-01-15")
        assert iso == datetime(2030, 1, 15, tzinfo=timezone.utc)
        assert parse_date("01/15/2030") == iso
        assert parse_date("January 15, 2030") == iso
        assert parse_date("2030-01-15T10:00:00Z").hour == 10
        assert parse_date("next Tuesday") is None
        assert parse_date("") is None

    def test_safe_filename_token(self):
        assert safe_filename_token("Tax Bill / 2024!") == "tax_bill_2024"
        assert safe_filename_token("???") == "token"

    def test_write_json_replaces_atomically(self, workspace_dir: Path):
        p = workspace_dir / "nested" / "x.json"
        write_json(p, {"a": "ü"})
        write_json(p, {"a": 2})
        assert load_json(p) == {"a": 2}
        assert not (workspace_dir / "nested" / "x.json.tmp").exists()
