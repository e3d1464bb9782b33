"""Letter chat, calendar export and speech audio."""
from __future__ import annotations

import base64
import wave
from io import BytesIO
from pathlib import Path
from urllib.parse import parse_qs, urlparse

import numpy as np
import pytest

from conftest import FakeClient, make_analysis_dict
from letter_engine.audio import decode_pcm16, duration_seconds, pcm16_to_wav, write_speech
from letter_engine.calendar_export import build_ics, google_calendar_link, ics_filename, write_ics
from letter_engine.chat import CONNECTION_ERROR_REPLY, EMPTY_REPLY, WELCOME_ID, LetterChat
from letter_engine.types import LetterAnalysis
from letter_engine.workspace import create_workspace


@pytest.fixture
def analysis() -> LetterAnalysis:
    return LetterAnalysis.from_dict(make_analysis_dict())


# ═══════════════════════════════════════════════════════════════════════════════
# CHAT TESTS
# ═══════════════════════════════════════════════════════════════════════════════

class TestLetterChat:

    def test_starts_with_welcome(self, analysis: LetterAnalysis):
        chat = LetterChat(client=FakeClient(), analysis=analysis, language="Spanish")
        assert len(chat.messages) == 1
        assert chat.messages[0].id == WELCOME_ID
        assert chat.messages[0].role == "model"
        assert "City Tax Office" in chat.messages[0].text

    def test_blank_input_is_ignored(self, analysis: LetterAnalysis):
        client = FakeClient()
        chat = LetterChat(client=client, analysis=analysis)
        assert chat.send("   ") is None
        assert client.calls == []
        assert len(chat.messages) == 1

    def test_history_excludes_welcome(self, analysis: LetterAnalysis):
        client = FakeClient(reply="Pay by the 15th.")
        chat = LetterChat(client=client, analysis=analysis, language="French")
        first = chat.send("When?")
        chat.send("How much?")
        assert first.text == "Pay by the 15th."
        assert client.calls[0] == ("chat", ([], "When?", "French"))
        assert client.calls[1][1][0] == [
            {"role": "user", "text": "When?"},
            {"role": "model", "text": "Pay by the 15th."},
        ]
        assert [m.role for m in chat.messages] == ["model", "user", "model", "user", "model"]

    def test_empty_reply_and_connection_error(self, analysis: LetterAnalysis, workspace_dir: Path):
        chat = LetterChat(client=FakeClient(reply=""), analysis=analysis)
        assert chat.send("hi").text == EMPTY_REPLY

        paths = create_workspace(workspace_dir)
        broken = LetterChat(client=FakeClient(error=RuntimeError("offline")), analysis=analysis, paths=paths)
        assert broken.send("hi").text == CONNECTION_ERROR_REPLY
        assert "offline" in paths.errors_jsonl.read_text(encoding="utf-8")

    def test_failed_turns_are_not_sent_as_history(self, analysis: LetterAnalysis):
        class FlakyClient(FakeClient):
            def __init__(self, replies):
                super().__init__()
                self.replies = list(replies)

            def chat(self, analysis, history, message, language="English"):
                self.calls.append(("chat", (list(history), message, language)))
                reply = self.replies.pop(0)
                if isinstance(reply, Exception):
                    raise reply
                return reply

        client = FlakyClient([RuntimeError("offline"), "", "Yes.", "Done."])
        chat = LetterChat(client=client, analysis=analysis)
        assert chat.send("first").text == CONNECTION_ERROR_REPLY
        assert chat.send("second").text == EMPTY_REPLY
        chat.send("third")
        chat.send("fourth")

        assert client.calls[1][1][0] == []
        assert client.calls[2][1][0] == []
        assert client.calls[3][1][0] == [
            {"role": "user", "text": "third"},
            {"role": "model", "text": "Yes."},
        ]
        # failed turns stay visible
        assert len(chat.messages) == 9


# ═══════════════════════════════════════════════════════════════════════════════
# CALENDAR TESTS
# ═══════════════════════════════════════════════════════════════════════════════

class TestCalendarExport:

    def test_google_link(self):
        link = google_calendar_link("Tax Bill", "2030-01-15", "Payment due")
        q = parse_qs(urlparse(link).query)
        assert link.startswith("https://calendar.google.com/calendar/render?")
        assert q["action"] == ["TEMPLATE"]
        assert q["text"] == ["DEADLINE: Tax Bill"]
        assert q["dates"] == ["20300115T000000Z/20300115T010000Z"]
        assert q["details"] == ["Payment due"]

    def test_unparseable_date(self, workspace_dir: Path):
        assert google_calendar_link("x", "end of month", "y") == "#"
        assert build_ics("x", "end of month", "y") is None
        assert write_ics("x", "end of month", "y", workspace_dir) is None

    def test_ics_file(self, workspace_dir: Path):
        out = write_ics("Tax Bill  2024", "01/15/2030", "Pay\nonline", workspace_dir)
        assert out.name == "deadline-tax-bill-2024.ics"
        assert ics_filename("A B") == "deadline-a-b.ics"
        raw = out.read_bytes().decode("utf-8")
        assert "\r\n" in raw
        lines = raw.split("\r\n")
        assert lines[0] == "BEGIN:VCALENDAR"
        assert "DTSTART:20300115T000000Z" in lines
        assert "DTEND:20300115T010000Z" in lines
        assert "SUMMARY:DEADLINE: Tax Bill  2024" in lines
        assert "DESCRIPTION:Pay\\nonline" in lines


# ═══════════════════════════════════════════════════════════════════════════════
# AUDIO TESTS
# ═══════════════════════════════════════════════════════════════════════════════

class TestSpeechAudio:

    def test_decode_pcm16(self):
        pcm = np.array([0, 16384, -32768], dtype="<i2").tobytes() + b"\x01"
        samples = decode_pcm16(pcm)
        assert samples.shape == (3, 1)
        assert samples[1, 0] == pytest.approx(0.5)
        assert samples[2, 0] == pytest.approx(-1.0)
        assert duration_seconds(b"\x00\x00" * 24000) == pytest.approx(1.0)

    def test_wav_header(self):
        wav_bytes = pcm16_to_wav(b"\x00\x00" * 480)
        with wave.open(BytesIO(wav_bytes), "rb") as w:
            assert w.getframerate() == 24000
            assert w.getnchannels() == 1
            assert w.getsampwidth() == 2
            assert w.getnframes() == 480
        assert pcm16_to_wav(b"") == b""

    def test_write_speech(self, workspace_dir: Path):
        b64 = base64.b64encode(b"\x01\x00" * 10).decode("ascii")
        out = write_speech(b64, workspace_dir / "audio", "Tax Bill summary")
        assert out.name == "tax_bill_summary.wav"
        assert out.read_bytes()[:4] == b"RIFF"
        with pytest.raises(ValueError):
            write_speech("", workspace_dir, "empty")
