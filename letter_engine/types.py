from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .utils import clamp


class UrgencyLevel(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"

    @classmethod
    def parse(cls, value: Any) -> "UrgencyLevel":
        text = str(value or "").strip().lower()
        for level in cls:
            if level.value.lower() == text:
                return level
        return cls.LOW

    @property
    def rank(self) -> int:
        # High first when sorting by urgency
        return _URGENCY_RANK[self]


_URGENCY_RANK = {UrgencyLevel.HIGH: 0, UrgencyLevel.MEDIUM: 1, UrgencyLevel.LOW: 2}


class AppScreen(str, Enum):
    ONBOARDING = "ONBOARDING"
    HOME = "HOME"
    SCAN = "SCAN"
    PROCESSING = "PROCESSING"
    RESULTS = "RESULTS"
    LIBRARY = "LIBRARY"
    SETTINGS = "SETTINGS"
    CHAT = "CHAT"
    AGENDA = "AGENDA"
    INSIGHTS = "INSIGHTS"
    HELP = "HELP"


SUPPORTED_LANGUAGES = ("English", "Spanish", "Persian", "Chinese", "French", "Arabic")
RTL_LANGUAGES = frozenset({"Persian", "Arabic"})
DEFAULT_LANGUAGE = "English"


def _str_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [str(v) for v in value if v is not None]


def _dict_list(value: Any) -> list[dict[str, Any]]:
    if not isinstance(value, list):
        return []
    return [v for v in value if isinstance(v, dict)]


@dataclass
class ReplyTemplate:
    label: str
    subject: str
    body: str

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ReplyTemplate":
        return cls(
            label=str(data.get("label") or ""),
            subject=str(data.get("subject") or ""),
            body=str(data.get("body") or ""),
        )

    def to_dict(self) -> dict[str, Any]:
        return {"label": self.label, "subject": self.subject, "body": self.body}


@dataclass
class ActionItem:
    task: str
    completed: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ActionItem":
        return cls(task=str(data.get("task") or ""), completed=bool(data.get("completed")))

    def to_dict(self) -> dict[str, Any]:
        return {"task": self.task, "completed": self.completed}


@dataclass
class Deadline:
    date: str
    description: str
    reminder_set: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Deadline":
        return cls(
            date=str(data.get("date") or ""),
            description=str(data.get("description") or ""),
            reminder_set=bool(data.get("reminderSet")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {"date": self.date, "description": self.description, "reminderSet": self.reminder_set}


@dataclass
class Urgency:
    level: UrgencyLevel = UrgencyLevel.LOW
    reasons: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Any) -> "Urgency":
        if not isinstance(data, dict):
            return cls()
        return cls(level=UrgencyLevel.parse(data.get("level")), reasons=_str_list(data.get("reasons")))

    def to_dict(self) -> dict[str, Any]:
        return {"level": self.level.value, "reasons": list(self.reasons)}


@dataclass
class ExtractedFields:
    amounts: list[str] = field(default_factory=list)
    dates: list[str] = field(default_factory=list)
    reference_numbers: list[str] = field(default_factory=list)
    organizations: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Any) -> "ExtractedFields":
        if not isinstance(data, dict):
            return cls()
        return cls(
            amounts=_str_list(data.get("amounts")),
            dates=_str_list(data.get("dates")),
            reference_numbers=_str_list(data.get("reference_numbers")),
            organizations=_str_list(data.get("organizations")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "amounts": list(self.amounts),
            "dates": list(self.dates),
            "reference_numbers": list(self.reference_numbers),
            "organizations": list(self.organizations),
        }


@dataclass
class TranslatedContent:
    summary_paragraph: str
    summary_bullets: list[str] = field(default_factory=list)
    actions: list[ActionItem] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TranslatedContent":
        return cls(
            summary_paragraph=str(data.get("summary_paragraph") or ""),
            summary_bullets=_str_list(data.get("summary_bullets")),
            actions=[ActionItem.from_dict(a) for a in _dict_list(data.get("actions"))],
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "summary_paragraph": self.summary_paragraph,
            "summary_bullets": list(self.summary_bullets),
            "actions": [a.to_dict() for a in self.actions],
        }


@dataclass
class LetterAnalysis:
    title: str
    category: str
    confidence_score: float  # 0-100
    summary_paragraph: str
    summary_bullets: list[str] = field(default_factory=list)
    urgency: Urgency = field(default_factory=Urgency)
    deadlines: list[Deadline] = field(default_factory=list)
    actions: list[ActionItem] = field(default_factory=list)
    consequences_if_ignored: str = ""
    questions_to_ask_office: list[str] = field(default_factory=list)
    extracted_fields: ExtractedFields = field(default_factory=ExtractedFields)
    suggested_replies: list[ReplyTemplate] = field(default_factory=list)
    translation: TranslatedContent | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "LetterAnalysis":
        """Build from model output or stored history, tolerating missing fields."""
        try:
            confidence = float(data.get("confidence_score") or 0)
        except (TypeError, ValueError):
            confidence = 0.0

        translation_raw = data.get("translation")
        translation = TranslatedContent.from_dict(translation_raw) if isinstance(translation_raw, dict) else None

        return cls(
            title=str(data.get("title") or "Untitled letter"),
            category=str(data.get("category") or "Other"),
            confidence_score=clamp(confidence, 0.0, 100.0),
            summary_paragraph=str(data.get("summary_paragraph") or ""),
            summary_bullets=_str_list(data.get("summary_bullets")),
            urgency=Urgency.from_dict(data.get("urgency")),
            deadlines=[Deadline.from_dict(d) for d in _dict_list(data.get("deadlines"))],
            actions=[ActionItem.from_dict(a) for a in _dict_list(data.get("actions"))],
            consequences_if_ignored=str(data.get("consequences_if_ignored") or ""),
            questions_to_ask_office=_str_list(data.get("questions_to_ask_office")),
            extracted_fields=ExtractedFields.from_dict(data.get("extracted_fields")),
            suggested_replies=[ReplyTemplate.from_dict(r) for r in _dict_list(data.get("suggested_replies"))],
            translation=translation,
        )

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "title": self.title,
            "category": self.category,
            "confidence_score": self.confidence_score,
            "summary_paragraph": self.summary_paragraph,
            "summary_bullets": list(self.summary_bullets),
            "urgency": self.urgency.to_dict(),
            "deadlines": [d.to_dict() for d in self.deadlines],
            "actions": [a.to_dict() for a in self.actions],
            "consequences_if_ignored": self.consequences_if_ignored,
            "questions_to_ask_office": list(self.questions_to_ask_office),
            "extracted_fields": self.extracted_fields.to_dict(),
            "suggested_replies": [r.to_dict() for r in self.suggested_replies],
        }
        if self.translation is not None:
            out["translation"] = self.translation.to_dict()
        return out


@dataclass
class LetterItem:
    id: str
    created_at: int  # epoch milliseconds
    image_urls: list[str]
    analysis: LetterAnalysis
    verified_fields: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "LetterItem":
        analysis = data.get("analysis")
        return cls(
            id=str(data.get("id") or ""),
            created_at=int(data.get("createdAt") or 0),
            image_urls=_str_list(data.get("imageUrls")),
            analysis=LetterAnalysis.from_dict(analysis if isinstance(analysis, dict) else {}),
            verified_fields=_str_list(data.get("verifiedFields")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "createdAt": self.created_at,
            "imageUrls": list(self.image_urls),
            "analysis": self.analysis.to_dict(),
            "verifiedFields": list(self.verified_fields),
        }


@dataclass
class AppSettings:
    user_name: str = "User"
    biometric_lock: bool = False
    family_vault_enabled: bool = False

    @classmethod
    def from_dict(cls, data: Any) -> "AppSettings":
        # Stored values are merged over the defaults.
        out = cls()
        if not isinstance(data, dict):
            return out
        if isinstance(data.get("userName"), str):
            out.user_name = data["userName"]
        if "biometricLock" in data:
            out.biometric_lock = bool(data["biometricLock"])
        if "familyVaultEnabled" in data:
            out.family_vault_enabled = bool(data["familyVaultEnabled"])
        return out

    def to_dict(self) -> dict[str, Any]:
        return {
            "userName": self.user_name,
            "biometricLock": self.biometric_lock,
            "familyVaultEnabled": self.family_vault_enabled,
        }


@dataclass(frozen=True)
class Message:
    id: str
    role: str  # user|model
    text: str
    timestamp: int

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "role": self.role, "text": self.text, "timestamp": self.timestamp}
