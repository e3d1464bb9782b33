from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable

from .types import DEFAULT_LANGUAGE, LetterAnalysis, Message
from .utils import new_id, now_ms
from .views import chat_welcome
from .workspace import WorkspacePaths, record_error


WELCOME_ID = "welcome"
EMPTY_REPLY = "I'm sorry, I couldn't process that. Can you rephrase?"
CONNECTION_ERROR_REPLY = "I'm having trouble connecting right now. Please try again in a moment."


@dataclass
class LetterChat:
    """Follow-up conversation scoped to a single letter."""

    client: Any
    analysis: LetterAnalysis
    language: str = DEFAULT_LANGUAGE
    paths: WorkspacePaths | None = None
    clock: Callable[[], int] = now_ms
    messages: list[Message] = field(default_factory=list)
    # shown to the user but never part of the model's conversation
    local_ids: set[str] = field(default_factory=set)

    def __post_init__(self) -> None:
        if not self.messages:
            self.messages.append(
                Message(id=WELCOME_ID, role="model", text=chat_welcome(self.analysis, self.language), timestamp=self.clock())
            )
        self.local_ids.add(WELCOME_ID)

    def _history(self) -> list[dict[str, str]]:
        return [{"role": m.role, "text": m.text} for m in self.messages if m.id not in self.local_ids]

    def send(self, text: str) -> Message | None:
        """Send a user message; returns the model reply, or None for blank input.

        A turn that fails or comes back empty stays on screen but is left out
        of the history sent with later messages.
        """
        text = text.strip()
        if not text:
            return None

        history = self._history()
        user_msg = Message(id=new_id(), role="user", text=text, timestamp=self.clock())
        self.messages.append(user_msg)

        try:
            reply = self.client.chat(self.analysis, history, text, self.language)
        except Exception as e:
            if self.paths is not None:
                record_error(self.paths, scope="chat", stage="send", message=str(e))
            reply = None
            reply_text = CONNECTION_ERROR_REPLY
        else:
            reply_text = reply or EMPTY_REPLY

        model_msg = Message(id=new_id(), role="model", text=reply_text, timestamp=self.clock())
        self.messages.append(model_msg)
        if not reply:
            self.local_ids.update({user_msg.id, model_msg.id})
        return model_msg
