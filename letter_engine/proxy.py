"""Thin HTTP proxy that keeps the Gemini API key on the server.

Routes (POST, JSON in / JSON out):
- /analyze  {images, targetLanguage}            -> LetterAnalysis JSON
- /chat     {message, history, context, language} -> {"text"}
- /refine   {currentDraft, instruction}           -> {"refinedText"}
- /speech   {text}                                -> {"audioData"}
"""
from __future__ import annotations

from typing import Any, Callable

from flask import Flask, jsonify, request

from .analysis import AnalysisError, GeminiClient, decode_image
from .config import EngineConfig, api_key_from_env
from .types import DEFAULT_LANGUAGE, LetterAnalysis


class _BadRequest(ValueError):
    pass


def _body() -> dict[str, Any]:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise _BadRequest("request body must be a JSON object")
    return data


def _history_turns(raw: Any) -> list[dict[str, str]]:
    """Accept Gemini-style contents ({role, parts:[{text}]}) or flat {role, text}."""
    turns: list[dict[str, str]] = []
    for entry in raw or []:
        if not isinstance(entry, dict):
            continue
        text = entry.get("text")
        if text is None:
            parts = entry.get("parts") or []
            text = "".join(str(p.get("text") or "") for p in parts if isinstance(p, dict))
        turns.append({"role": str(entry.get("role") or "user"), "text": str(text)})
    return turns


def create_app(
    cfg: EngineConfig,
    client_factory: Callable[[], Any] | None = None,
) -> Flask:
    app = Flask(__name__)

    def default_factory() -> GeminiClient:
        if not api_key_from_env():
            raise AnalysisError("API Key not configured")
        return GeminiClient(cfg)

    factory = client_factory or default_factory

    def _call(fn: Callable[[Any, dict[str, Any]], Any]):
        try:
            payload = _body()
        except _BadRequest as e:
            return jsonify({"error": str(e)}), 400
        try:
            client = factory()
            return fn(client, payload)
        except _BadRequest as e:
            return jsonify({"error": str(e)}), 400
        except AnalysisError as e:
            return jsonify({"error": str(e)}), 500

    @app.errorhandler(405)
    def method_not_allowed(_err):
        return "Method Not Allowed", 405

    @app.route("/analyze", methods=["POST"])
    def analyze():
        def run(client: Any, payload: dict[str, Any]):
            images = payload.get("images")
            if not isinstance(images, list) or not images:
                raise _BadRequest("images must be a non-empty list")
            for i, img in enumerate(images):
                try:
                    decode_image(str(img))
                except AnalysisError as e:
                    raise _BadRequest(f"images[{i}]: {e}") from e
            lang = str(payload.get("targetLanguage") or DEFAULT_LANGUAGE)
            analysis = client.analyze_letter([str(i) for i in images], lang)
            return jsonify(analysis.to_dict()), 200

        return _call(run)

    @app.route("/chat", methods=["POST"])
    def chat():
        def run(client: Any, payload: dict[str, Any]):
            message = str(payload.get("message") or "").strip()
            if not message:
                raise _BadRequest("message is required")
            context = payload.get("context")
            analysis = LetterAnalysis.from_dict(context if isinstance(context, dict) else {})
            lang = str(payload.get("language") or DEFAULT_LANGUAGE)
            text = client.chat(analysis, _history_turns(payload.get("history")), message, lang)
            return jsonify({"text": text}), 200

        return _call(run)

    @app.route("/refine", methods=["POST"])
    def refine():
        def run(client: Any, payload: dict[str, Any]):
            draft = str(payload.get("currentDraft") or "")
            instruction = str(payload.get("instruction") or "")
            return jsonify({"refinedText": client.refine_draft(draft, instruction)}), 200

        return _call(run)

    @app.route("/speech", methods=["POST"])
    def speech():
        def run(client: Any, payload: dict[str, Any]):
            text = str(payload.get("text") or "").strip()
            if not text:
                raise _BadRequest("text is required")
            return jsonify({"audioData": client.generate_speech(text)}), 200

        return _call(run)

    return app
