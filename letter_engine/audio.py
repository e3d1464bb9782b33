from __future__ import annotations

import base64
import io
import wave
from pathlib import Path

import numpy as np

from .utils import ensure_dir, safe_filename_token


# Gemini TTS output: raw PCM, 16-bit little-endian, mono, 24 kHz
SAMPLE_RATE = 24000
CHANNELS = 1
SAMPLE_WIDTH = 2


def decode_pcm16(data: bytes, channels: int = CHANNELS) -> np.ndarray:
    """PCM bytes -> float32 samples in [-1, 1), shape (frames, channels)."""
    usable = len(data) - (len(data) % (SAMPLE_WIDTH * channels))
    samples = np.frombuffer(data[:usable], dtype="<i2").astype(np.float32) / 32768.0
    return samples.reshape(-1, channels)


def duration_seconds(data: bytes, sample_rate: int = SAMPLE_RATE, channels: int = CHANNELS) -> float:
    return len(decode_pcm16(data, channels)) / float(sample_rate)


def pcm16_to_wav(pcm: bytes, sample_rate: int = SAMPLE_RATE, channels: int = CHANNELS) -> bytes:
    if not pcm:
        return b""
    buf = io.BytesIO()
    with wave.open(buf, "wb") as w:
        w.setnchannels(channels)
        w.setsampwidth(SAMPLE_WIDTH)
        w.setframerate(sample_rate)
        w.writeframes(pcm)
    return buf.getvalue()


def write_speech(audio_b64: str, out_dir: str | Path, name: str) -> Path:
    """Decode base64 PCM from the speech endpoint and store it as a .wav file."""
    pcm = base64.b64decode(audio_b64)
    if not pcm:
        raise ValueError("speech audio is empty")
    out = Path(out_dir) / f"{safe_filename_token(name)}.wav"
    ensure_dir(out.parent)
    out.write_bytes(pcm16_to_wav(pcm))
    return out
