"""Prompt templates and the declared response schema for letter analysis."""
from __future__ import annotations

import json
from typing import Any

from .types import DEFAULT_LANGUAGE, LetterAnalysis


def build_analysis_prompt(target_language: str = DEFAULT_LANGUAGE) -> str:
    lines = [
        "Analyze this official letter. Explain it in plain, simple language for a newcomer.",
        "Identify the category (Tax, Bank, Insurance, HR, School, Utilities, etc.).",
        "Extract all deadlines, actionable next steps, and specific details like amounts or reference numbers.",
        "Provide 2 context-aware response templates.",
        "Estimate your confidence in the text extraction (0-100).",
        "Generate 3 specific questions the user should ask the office or agency if they call them.",
    ]
    if target_language != DEFAULT_LANGUAGE:
        lines.append(
            "IMPORTANT: Also provide a translation of the summary_paragraph, summary_bullets, and actions "
            f"into {target_language} in the 'translation' field."
        )
    lines.append("Be factual. If text is unreadable, label it [UNCLEAR]. Do not invent information.")
    lines.append("Return the response as a valid JSON object matching the requested schema.")
    return "\n".join(lines)


_STRING = {"type": "STRING"}
_STRING_LIST = {"type": "ARRAY", "items": _STRING}
_ACTIONS = {
    "type": "ARRAY",
    "items": {
        "type": "OBJECT",
        "properties": {"task": _STRING, "completed": {"type": "BOOLEAN"}},
    },
}

ANALYSIS_REQUIRED = [
    "title",
    "category",
    "confidence_score",
    "summary_paragraph",
    "summary_bullets",
    "urgency",
    "deadlines",
    "actions",
    "consequences_if_ignored",
    "questions_to_ask_office",
    "extracted_fields",
    "suggested_replies",
]

ANALYSIS_SCHEMA: dict[str, Any] = {
    "type": "OBJECT",
    "properties": {
        "title": _STRING,
        "category": _STRING,
        "confidence_score": {"type": "NUMBER"},
        "summary_paragraph": _STRING,
        "summary_bullets": _STRING_LIST,
        "urgency": {
            "type": "OBJECT",
            "properties": {"level": _STRING, "reasons": _STRING_LIST},
            "required": ["level", "reasons"],
        },
        "deadlines": {
            "type": "ARRAY",
            "items": {
                "type": "OBJECT",
                "properties": {"date": _STRING, "description": _STRING},
            },
        },
        "actions": _ACTIONS,
        "consequences_if_ignored": _STRING,
        "questions_to_ask_office": _STRING_LIST,
        "extracted_fields": {
            "type": "OBJECT",
            "properties": {
                "amounts": _STRING_LIST,
                "dates": _STRING_LIST,
                "reference_numbers": _STRING_LIST,
                "organizations": _STRING_LIST,
            },
        },
        "suggested_replies": {
            "type": "ARRAY",
            "items": {
                "type": "OBJECT",
                "properties": {"label": _STRING, "subject": _STRING, "body": _STRING},
                "required": ["label", "subject", "body"],
            },
        },
        "translation": {
            "type": "OBJECT",
            "properties": {
                "summary_paragraph": _STRING,
                "summary_bullets": _STRING_LIST,
                "actions": _ACTIONS,
            },
        },
    },
    "required": ANALYSIS_REQUIRED,
}


REFINE_SYSTEM_INSTRUCTION = (
    "You are a helpful administrative assistant. Only return the refined text of the letter, no chatter."
)


def build_refine_prompt(current_draft: str, instruction: str) -> str:
    return f"Refine this letter draft. Instruction: {instruction}\n\nCurrent Draft:\n{current_draft}"


def build_speech_prompt(text: str) -> str:
    return f"Read this summary clearly and professionally: {text}"


def letter_context(analysis: LetterAnalysis) -> dict[str, Any]:
    return {
        "title": analysis.title,
        "category": analysis.category,
        "summary": analysis.summary_paragraph,
        "actions": [a.task for a in analysis.actions],
        "deadlines": [f"{d.date}: {d.description}" for d in analysis.deadlines],
    }


def build_chat_instruction(analysis: LetterAnalysis, language: str = DEFAULT_LANGUAGE) -> str:
    context = letter_context(analysis)
    return (
        "You are an expert official letter assistant. "
        "You only answer questions about the specific letter provided in the context.\n"
        f"Context: {json.dumps(context, ensure_ascii=False)}\n\n"
        f"IMPORTANT: The user's preferred language is {language}. You MUST respond and converse in {language}. "
        f"If the user asks in English but {language} is selected, still respond in {language} "
        "but acknowledge you understand.\n\n"
        "Guidelines:\n"
        "1. Be helpful, professional, and clear.\n"
        "2. If the user asks something NOT in the letter, say you can only discuss this document.\n"
        "3. Use simple language suitable for newcomers.\n"
        "4. Keep answers concise."
    )
