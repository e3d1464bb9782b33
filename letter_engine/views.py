"""Screen computations: everything a screen shows that is derived from history.

All functions are pure; `now` is passed in so results are reproducible.
"""
from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable

from .types import ActionItem, Deadline, LetterAnalysis, LetterItem, UrgencyLevel
from .utils import parse_amount, parse_date


ALL_CATEGORIES = "All"


def pending_task_count(history: Iterable[LetterItem]) -> int:
    return sum(1 for item in history for a in item.analysis.actions if not a.completed)


def urgent_letter_count(history: Iterable[LetterItem]) -> int:
    return sum(1 for item in history if item.analysis.urgency.level is UrgencyLevel.HIGH)


def financial_total(history: Iterable[LetterItem]) -> float:
    """Sum of amounts in letters that still have an open payment task."""
    total = 0.0
    for item in history:
        unpaid = any(not a.completed and "pay" in a.task.lower() for a in item.analysis.actions)
        if not unpaid:
            continue
        for amt in item.analysis.extracted_fields.amounts:
            num = parse_amount(amt)
            if num is not None:
                total += num
    return total


@dataclass(frozen=True)
class Reminder:
    item: LetterItem
    deadline_index: int
    deadline: Deadline
    when: datetime


def active_reminders(history: Iterable[LetterItem], now: datetime) -> list[Reminder]:
    out: list[Reminder] = []
    for item in history:
        for idx, d in enumerate(item.analysis.deadlines):
            if not d.reminder_set:
                continue
            when = parse_date(d.date)
            if when is None or when < now:
                continue
            out.append(Reminder(item=item, deadline_index=idx, deadline=d, when=when))
    out.sort(key=lambda r: r.when)
    return out


@dataclass(frozen=True)
class AgendaGroup:
    item: LetterItem
    tasks: list[tuple[int, ActionItem]]

    @property
    def urgency(self) -> UrgencyLevel:
        return self.item.analysis.urgency.level


def agenda_groups(history: Iterable[LetterItem]) -> list[AgendaGroup]:
    groups = [
        AgendaGroup(item=item, tasks=list(enumerate(item.analysis.actions)))
        for item in history
        if item.analysis.actions
    ]
    # sorted() is stable: equal urgency keeps history order
    return sorted(groups, key=lambda g: g.urgency.rank)


def category_counts(history: Iterable[LetterItem]) -> list[tuple[str, int]]:
    counts = Counter(item.analysis.category for item in history)
    return sorted(counts.items(), key=lambda kv: -kv[1])


def urgency_stats(history: Iterable[LetterItem]) -> dict[str, int]:
    stats = {UrgencyLevel.HIGH.value: 0, UrgencyLevel.MEDIUM.value: 0, UrgencyLevel.LOW.value: 0}
    for item in history:
        stats[item.analysis.urgency.level.value] += 1
    return stats


@dataclass
class MonthBucket:
    label: str
    year: int
    month: int
    count: int = 0


def monthly_timeline(history: Iterable[LetterItem], now: datetime, months: int = 6) -> list[MonthBucket]:
    buckets: list[MonthBucket] = []
    for back in range(months - 1, -1, -1):
        total = now.year * 12 + (now.month - 1) - back
        year, month0 = divmod(total, 12)
        label = datetime(year, month0 + 1, 1).strftime("%b")
        buckets.append(MonthBucket(label=label, year=year, month=month0 + 1))

    index = {(b.year, b.month): b for b in buckets}
    for item in history:
        created = datetime.fromtimestamp(item.created_at / 1000, tz=now.tzinfo or timezone.utc)
        bucket = index.get((created.year, created.month))
        if bucket is not None:
            bucket.count += 1
    return buckets


def library_categories(history: Iterable[LetterItem]) -> list[str]:
    return sorted({ALL_CATEGORIES, *(item.analysis.category for item in history)})


def filter_library(
    history: Iterable[LetterItem],
    search: str = "",
    category: str = ALL_CATEGORIES,
    sort_by: str = "recent",
) -> list[LetterItem]:
    needle = search.lower()
    result = []
    for item in history:
        a = item.analysis
        matches_search = needle in a.title.lower() or any(needle in o.lower() for o in a.extracted_fields.organizations)
        matches_category = category == ALL_CATEGORIES or a.category == category
        if matches_search and matches_category:
            result.append(item)

    if sort_by == "urgency":
        return sorted(result, key=lambda i: i.analysis.urgency.level.rank)
    if sort_by == "recent":
        return sorted(result, key=lambda i: i.created_at, reverse=True)
    raise ValueError(f"unknown sort: {sort_by}")


def share_text(analysis: LetterAnalysis, translated: bool = False) -> str:
    return f"Summary of {analysis.title}: {active_summary(analysis, translated)}"


def phone_script(analysis: LetterAnalysis) -> str:
    refs = analysis.extracted_fields.reference_numbers
    ref = refs[0] if refs else "[Ref]"
    questions = " ".join(analysis.questions_to_ask_office)
    return f'Hello, I\'m calling about "{analysis.title}". My ref is {ref}. I want to ask: {questions}'


def sender(analysis: LetterAnalysis) -> str:
    orgs = analysis.extracted_fields.organizations
    return orgs[0] if orgs else "Unknown Sender"


def initials(name: str) -> str:
    parts = name.split()
    if not parts:
        return "U"
    if len(parts) == 1:
        return parts[0][:2].upper()
    return (parts[0][0] + parts[-1][0]).upper()


def greeting(hour: int) -> str:
    if hour < 12:
        return "Good morning"
    if hour < 18:
        return "Good afternoon"
    return "Good evening"


def category_icon(category: str) -> str:
    cat = category.lower()
    if "tax" in cat:
        return "💰"
    if "bank" in cat:
        return "🏦"
    if "insurance" in cat:
        return "🛡️"
    return "📄"


def active_summary(analysis: LetterAnalysis, translated: bool) -> str:
    if translated and analysis.translation is not None:
        return analysis.translation.summary_paragraph
    return analysis.summary_paragraph or "No summary available."


def active_checklist(analysis: LetterAnalysis, translated: bool) -> list[ActionItem]:
    if translated and analysis.translation is not None:
        return analysis.translation.actions
    return analysis.actions


@dataclass(frozen=True)
class VerifyChip:
    field_id: str
    label: str
    text: str
    verified: bool


def verify_chips(item: LetterItem) -> list[VerifyChip]:
    """Extracted values the user can tick off against the paper letter."""
    fields = item.analysis.extracted_fields
    verified = set(item.verified_fields)
    chips: list[VerifyChip] = []
    groups = [
        ("org", "Sender", fields.organizations),
        ("amt", "Amount", fields.amounts),
        ("ref", "Ref #", fields.reference_numbers),
        ("date", "Due", [d.date for d in item.analysis.deadlines]),
    ]
    for prefix, label, values in groups:
        for i, text in enumerate(values):
            fid = f"{prefix}-{i}"
            chips.append(VerifyChip(field_id=fid, label=label, text=text, verified=fid in verified))
    return chips


def chat_welcome(analysis: LetterAnalysis, language: str) -> str:
    orgs = analysis.extracted_fields.organizations
    who = orgs[0] if orgs else analysis.category
    return f"Hello! I'm ready to discuss this letter from **{who}**. You can ask me questions in {language}."
