"""Analysis client: images + target language in, structured LetterAnalysis out.

Two interchangeable transports:
- GeminiClient talks to the Gemini API directly (needs GEMINI_API_KEY / API_KEY)
- ProxyClient POSTs to the proxy app (letter_engine.proxy) which holds the key

Both raise AnalysisError on any failure; callers decide whether to record it.
"""
from __future__ import annotations

import base64
import binascii
import json
from dataclasses import dataclass
from typing import Any, Sequence

import requests
from google import genai
from google.genai import types as genai_types

from .capture import strip_data_url
from .config import EngineConfig, api_key_from_env
from .prompts import (
    ANALYSIS_SCHEMA,
    REFINE_SYSTEM_INSTRUCTION,
    build_analysis_prompt,
    build_chat_instruction,
    build_refine_prompt,
    build_speech_prompt,
)
from .types import DEFAULT_LANGUAGE, LetterAnalysis
from .utils import strip_code_fences


class AnalysisError(RuntimeError):
    pass


def parse_analysis_response(text: str | None) -> LetterAnalysis:
    json_str = strip_code_fences(text or "")
    if not json_str:
        raise AnalysisError("Empty response from AI")
    try:
        data = json.loads(json_str)
    except json.JSONDecodeError as e:
        raise AnalysisError(f"Invalid JSON from AI: {e}") from e
    if not isinstance(data, dict):
        raise AnalysisError("AI response is not a JSON object")
    return LetterAnalysis.from_dict(data)


def decode_image(image: str) -> bytes:
    """Data URL or bare base64 -> raw bytes; AnalysisError when not valid base64."""
    try:
        data = base64.b64decode(strip_data_url(image), validate=True)
    except (binascii.Error, ValueError) as e:
        raise AnalysisError(f"image is not valid base64: {e}") from e
    if not data:
        raise AnalysisError("image is empty")
    return data


def history_to_contents(history: Sequence[dict[str, str]]) -> list[dict[str, Any]]:
    """[{'role': 'user', 'text': 'hi'}] -> Gemini content dicts."""
    contents: list[dict[str, Any]] = []
    for turn in history:
        role = "model" if turn.get("role") == "model" else "user"
        contents.append({"role": role, "parts": [{"text": str(turn.get("text") or "")}]})
    return contents


class GeminiClient:
    """Direct Gemini API transport (google-genai)."""

    def __init__(self, cfg: EngineConfig, api_key: str | None = None, client: Any | None = None):
        self.cfg = cfg
        self.model = str(cfg.analysis.get("model"))
        self.tts_model = str(cfg.analysis.get("tts_model"))
        self.voice = str(cfg.analysis.get("voice"))
        self.chat_temperature = float(cfg.analysis.get("chat_temperature", 0.7))
        if client is not None:
            self._client = client
            return
        key = api_key or api_key_from_env()
        if not key:
            raise AnalysisError("API key not configured. Set GEMINI_API_KEY or API_KEY.")
        self._client = genai.Client(api_key=key)

    def _generate(self, **kwargs: Any) -> Any:
        try:
            return self._client.models.generate_content(**kwargs)
        except AnalysisError:
            raise
        except Exception as e:
            raise AnalysisError(str(e) or e.__class__.__name__) from e

    def analyze_letter(self, images: Sequence[str], target_language: str = DEFAULT_LANGUAGE) -> LetterAnalysis:
        if not images:
            raise AnalysisError("no images to analyze")
        parts: list[Any] = [
            genai_types.Part.from_bytes(data=decode_image(img), mime_type="image/jpeg") for img in images
        ]
        parts.append(genai_types.Part.from_text(text=build_analysis_prompt(target_language)))
        response = self._generate(
            model=self.model,
            contents=[genai_types.Content(role="user", parts=parts)],
            config=genai_types.GenerateContentConfig(
                response_mime_type="application/json",
                response_schema=ANALYSIS_SCHEMA,
            ),
        )
        return parse_analysis_response(response.text)

    def refine_draft(self, current_draft: str, instruction: str) -> str:
        response = self._generate(
            model=self.model,
            contents=build_refine_prompt(current_draft, instruction),
            config=genai_types.GenerateContentConfig(system_instruction=REFINE_SYSTEM_INSTRUCTION),
        )
        return response.text or current_draft

    def generate_speech(self, text: str) -> str:
        response = self._generate(
            model=self.tts_model,
            contents=[genai_types.Content(role="user", parts=[genai_types.Part.from_text(text=build_speech_prompt(text))])],
            config=genai_types.GenerateContentConfig(
                response_modalities=["AUDIO"],
                speech_config=genai_types.SpeechConfig(
                    voice_config=genai_types.VoiceConfig(
                        prebuilt_voice_config=genai_types.PrebuiltVoiceConfig(voice_name=self.voice),
                    ),
                ),
            ),
        )
        data = _first_inline_data(response)
        if not data:
            raise AnalysisError("Failed to generate speech")
        if isinstance(data, (bytes, bytearray)):
            return base64.b64encode(bytes(data)).decode("ascii")
        return str(data)

    def chat(
        self,
        analysis: LetterAnalysis,
        history: Sequence[dict[str, str]],
        message: str,
        language: str = DEFAULT_LANGUAGE,
    ) -> str:
        contents = history_to_contents(history)
        contents.append({"role": "user", "parts": [{"text": message}]})
        response = self._generate(
            model=self.model,
            contents=contents,
            config=genai_types.GenerateContentConfig(
                system_instruction=build_chat_instruction(analysis, language),
                temperature=self.chat_temperature,
            ),
        )
        return response.text or ""


def _first_inline_data(response: Any) -> Any:
    try:
        return response.candidates[0].content.parts[0].inline_data.data
    except (AttributeError, IndexError, TypeError):
        return None


@dataclass
class ProxyClient:
    """HTTP transport to the proxy app; the API key never leaves the proxy host."""

    base_url: str
    timeout_s: float = 60.0
    session: requests.Session | None = None

    def _post(self, route: str, payload: dict[str, Any]) -> dict[str, Any]:
        http = self.session or requests
        url = self.base_url.rstrip("/") + route
        try:
            resp = http.post(url, json=payload, timeout=self.timeout_s)
        except requests.RequestException as e:
            raise AnalysisError(f"proxy unreachable: {e}") from e

        try:
            body = resp.json()
        except ValueError:
            body = None

        if resp.status_code >= 400:
            detail = body.get("error") if isinstance(body, dict) else (resp.text or "").strip()
            raise AnalysisError(f"proxy {route} failed ({resp.status_code}): {detail}")
        if isinstance(body, dict) and body.get("error"):
            raise AnalysisError(str(body["error"]))
        if not isinstance(body, dict):
            raise AnalysisError(f"proxy {route} returned non-object body")
        return body

    def analyze_letter(self, images: Sequence[str], target_language: str = DEFAULT_LANGUAGE) -> LetterAnalysis:
        if not images:
            raise AnalysisError("no images to analyze")
        body = self._post("/analyze", {"images": list(images), "targetLanguage": target_language})
        return LetterAnalysis.from_dict(body)

    def refine_draft(self, current_draft: str, instruction: str) -> str:
        body = self._post("/refine", {"currentDraft": current_draft, "instruction": instruction})
        return str(body.get("refinedText") or "") or current_draft

    def generate_speech(self, text: str) -> str:
        body = self._post("/speech", {"text": text})
        audio = body.get("audioData")
        if not audio:
            raise AnalysisError("Failed to generate speech")
        return str(audio)

    def chat(
        self,
        analysis: LetterAnalysis,
        history: Sequence[dict[str, str]],
        message: str,
        language: str = DEFAULT_LANGUAGE,
    ) -> str:
        body = self._post(
            "/chat",
            {
                "message": message,
                "history": history_to_contents(history),
                "context": analysis.to_dict(),
                "language": language,
            },
        )
        return str(body.get("text") or "")


def make_client(cfg: EngineConfig) -> GeminiClient | ProxyClient:
    url = cfg.proxy.get("url")
    if url:
        return ProxyClient(base_url=str(url), timeout_s=float(cfg.proxy.get("timeout_s", 60)))
    return GeminiClient(cfg)
