from __future__ import annotations

from typing import Any, Callable

from .store import LetterStore
from .types import (
    RTL_LANGUAGES,
    SUPPORTED_LANGUAGES,
    AppScreen,
    AppSettings,
    LetterAnalysis,
    LetterItem,
)
from .utils import new_id, now_ms
from .workspace import record_error


_NO_NAVIGATION = frozenset({AppScreen.ONBOARDING, AppScreen.SCAN, AppScreen.PROCESSING, AppScreen.CHAT})


class AppShell:
    """In-memory application state plus the handlers every screen calls.

    The history list is the single source of truth; each handler that changes
    it (or the language/settings) persists the changed value immediately.
    """

    def __init__(self, store: LetterStore, clock: Callable[[], int] = now_ms):
        self.store = store
        self._clock = clock
        snap = store.load()
        self.history: list[LetterItem] = snap.history
        self.preferred_language: str = snap.language
        self.settings: AppSettings = snap.settings
        self.current_images: list[str] = []
        self.current_letter_id: str | None = None
        self.screen: AppScreen = AppScreen.HOME if snap.onboarded else AppScreen.ONBOARDING

    # persistence

    def _commit_history(self) -> None:
        self.store.save_history(self.history)

    # derived state

    @property
    def current_item(self) -> LetterItem | None:
        if self.current_letter_id is None:
            return None
        return self.find(self.current_letter_id)

    @property
    def is_rtl(self) -> bool:
        return self.preferred_language in RTL_LANGUAGES

    @property
    def shows_navigation(self) -> bool:
        return self.screen not in _NO_NAVIGATION

    def find(self, letter_id: str) -> LetterItem | None:
        for item in self.history:
            if item.id == letter_id:
                return item
        return None

    def resolve(self, letter_id_or_prefix: str) -> LetterItem:
        """Find by full id or unique id prefix."""
        exact = self.find(letter_id_or_prefix)
        if exact is not None:
            return exact
        matches = [h for h in self.history if h.id.startswith(letter_id_or_prefix)]
        if len(matches) == 1:
            return matches[0]
        if not matches:
            raise KeyError(f"unknown letter: {letter_id_or_prefix}")
        raise KeyError(f"ambiguous letter id prefix: {letter_id_or_prefix}")

    def active_screen(self) -> AppScreen:
        # RESULTS and CHAT render nothing without a current letter
        if self.screen in (AppScreen.RESULTS, AppScreen.CHAT) and self.current_item is None:
            return AppScreen.HOME
        return self.screen

    # navigation

    def navigate(self, screen: AppScreen) -> None:
        self.screen = screen

    def complete_onboarding(self) -> None:
        self.store.mark_onboarded()
        self.screen = AppScreen.HOME

    def start_scan(self) -> None:
        self.screen = AppScreen.SCAN

    def scan_complete(self, images: list[str]) -> None:
        self.current_images = list(images)
        self.screen = AppScreen.PROCESSING

    def processing_complete(self, analysis: LetterAnalysis) -> LetterItem:
        item = LetterItem(
            id=new_id(),
            created_at=self._clock(),
            image_urls=list(self.current_images),
            analysis=analysis,
            verified_fields=[],
        )
        self.history = [item, *self.history]
        self._commit_history()
        self.current_letter_id = item.id
        self.screen = AppScreen.RESULTS
        return item

    def processing_failed(self) -> None:
        self.screen = AppScreen.HOME

    def process(self, client: Any) -> LetterItem:
        """Run the analysis for the current images (PROCESSING screen)."""
        try:
            analysis = client.analyze_letter(self.current_images, self.preferred_language)
        except Exception as e:
            record_error(self.store.paths, scope="processing", stage="analyze", message=str(e))
            self.processing_failed()
            raise
        return self.processing_complete(analysis)

    def navigate_to_letter(self, letter_id: str) -> LetterItem:
        item = self.find(letter_id)
        if item is None:
            raise KeyError(f"unknown letter: {letter_id}")
        self.current_letter_id = item.id
        self.current_images = list(item.image_urls)
        self.screen = AppScreen.RESULTS
        return item

    # history mutations

    def delete_letter(self, letter_id: str) -> None:
        self.history = [item for item in self.history if item.id != letter_id]
        self._commit_history()
        if self.current_letter_id == letter_id:
            self.screen = AppScreen.HOME

    def toggle_task(self, letter_id: str, task_index: int) -> None:
        item = self.find(letter_id)
        if item is None:
            return
        actions = item.analysis.actions
        if 0 <= task_index < len(actions):
            actions[task_index].completed = not actions[task_index].completed
            self._commit_history()

    def toggle_reminder(self, letter_id: str, deadline_index: int) -> None:
        item = self.find(letter_id)
        if item is None:
            return
        deadlines = item.analysis.deadlines
        if 0 <= deadline_index < len(deadlines):
            deadlines[deadline_index].reminder_set = not deadlines[deadline_index].reminder_set
            self._commit_history()

    def toggle_verification(self, letter_id: str, field_id: str) -> None:
        item = self.find(letter_id)
        if item is None:
            return
        if field_id in item.verified_fields:
            item.verified_fields = [f for f in item.verified_fields if f != field_id]
        else:
            item.verified_fields = [*item.verified_fields, field_id]
        self._commit_history()

    # preferences

    def update_settings(self, **changes: Any) -> AppSettings:
        for key, value in changes.items():
            if not hasattr(self.settings, key):
                raise ValueError(f"unknown setting: {key}")
            setattr(self.settings, key, value)
        self.store.save_settings(self.settings)
        return self.settings

    def set_language(self, language: str) -> None:
        if language not in SUPPORTED_LANGUAGES:
            raise ValueError(f"unsupported language: {language} (choose from {', '.join(SUPPORTED_LANGUAGES)})")
        self.preferred_language = language
        self.store.save_language(language)

    def reset(self) -> None:
        self.history = []
        self._commit_history()
        self.current_letter_id = None
        self.current_images = []
        self.store.clear_onboarded()
        self.screen = AppScreen.ONBOARDING
