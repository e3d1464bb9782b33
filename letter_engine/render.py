"""Plain-text rendering of the screens for the terminal."""
from __future__ import annotations

from datetime import datetime, timezone

from . import views
from .types import AppSettings, LetterItem
from .utils import utc_now_iso


def _date(ms: int) -> str:
    return datetime.fromtimestamp(ms / 1000, tz=timezone.utc).strftime("%Y-%m-%d")


def _check(done: bool) -> str:
    return "[x]" if done else "[ ]"


def render_home(history: list[LetterItem], settings: AppSettings, now: datetime) -> str:
    lines = [
        f"{views.greeting(now.hour)}, {settings.user_name}",
        f"pending_tasks={views.pending_task_count(history)} urgent_letters={views.urgent_letter_count(history)}"
        f" unpaid_total=${views.financial_total(history):.2f}",
    ]
    reminders = views.active_reminders(history, now)
    if reminders:
        lines.append("")
        lines.append("Upcoming reminders:")
        for r in reminders:
            lines.append(f"  {r.deadline.date}  {r.deadline.description}  ({r.item.analysis.title})")
    lines.append("")
    lines.append("Recent letters:")
    if not history:
        lines.append("  (none yet - run `analyze` or `scan`)")
    for item in history[:3]:
        a = item.analysis
        mark = "!" if a.urgency.level.value == "High" else " "
        lines.append(f" {mark}{views.category_icon(a.category)} {item.id[:8]}  {a.title}  {_date(item.created_at)}")
    return "\n".join(lines)


def render_letter(item: LetterItem, *, translated: bool = False) -> str:
    a = item.analysis
    lines = [
        a.title,
        f"category={a.category} urgency={a.urgency.level.value} confidence={a.confidence_score:g}%",
        "",
        views.active_summary(a, translated),
    ]
    bullets = a.translation.summary_bullets if translated and a.translation else a.summary_bullets
    if bullets:
        lines.append("")
        lines.extend(f"  - {b}" for b in bullets)
    if a.urgency.reasons:
        lines.append("")
        lines.append("Why this urgency:")
        lines.extend(f"  - {r}" for r in a.urgency.reasons)

    checklist = views.active_checklist(a, translated)
    if checklist:
        lines.append("")
        lines.append("Next steps:")
        for i, action in enumerate(checklist):
            lines.append(f"  {i}. {_check(action.completed)} {action.task}")

    if a.deadlines:
        lines.append("")
        lines.append("Key dates:")
        for i, d in enumerate(a.deadlines):
            bell = " (reminder)" if d.reminder_set else ""
            lines.append(f"  {i}. {d.date}: {d.description}{bell}")

    chips = views.verify_chips(item)
    if chips:
        lines.append("")
        lines.append("Verify against the paper letter:")
        for c in chips:
            lines.append(f"  {_check(c.verified)} {c.field_id:<8} {c.label}: {c.text}")

    if a.consequences_if_ignored:
        lines.append("")
        lines.append(f"If ignored: {a.consequences_if_ignored}")

    if a.questions_to_ask_office:
        lines.append("")
        lines.append("Phone script:")
        lines.append(f"  {views.phone_script(a)}")

    for i, r in enumerate(a.suggested_replies):
        lines.append("")
        lines.append(f"Reply draft {i} - {r.label}")
        lines.append(f"  Subject: {r.subject}")
        lines.extend(f"  {ln}" for ln in r.body.splitlines())
    return "\n".join(lines)


def render_library(items: list[LetterItem]) -> str:
    if not items:
        return "(no letters match)"
    rows = []
    for item in items:
        a = item.analysis
        rows.append(
            f"{item.id[:8]}  {a.urgency.level.value:<6}  {a.category:<12}  {a.title}"
            f"  [{views.sender(a)} - {_date(item.created_at)}]"
        )
    return "\n".join(rows)


def render_agenda(history: list[LetterItem]) -> str:
    groups = views.agenda_groups(history)
    lines = [f"{views.pending_task_count(history)} tasks remaining"]
    if not groups:
        lines.append("Inbox Zero - no action items found in your vault.")
        return "\n".join(lines)
    for g in groups:
        lines.append("")
        lines.append(f"[{g.urgency.value}] {g.item.analysis.title} ({g.item.analysis.category}) {g.item.id[:8]}")
        for idx, action in g.tasks:
            lines.append(f"  {idx}. {_check(action.completed)} {action.task}")
    return "\n".join(lines)


def render_insights(history: list[LetterItem], now: datetime) -> str:
    lines = ["Categories:"]
    counts = views.category_counts(history)
    width = max([c for _, c in counts] + [1])
    for name, count in counts:
        lines.append(f"  {name:<14} {'#' * round(20 * count / width)} {count}")
    stats = views.urgency_stats(history)
    lines.append("")
    lines.append("Urgency: " + " ".join(f"{k}={v}" for k, v in stats.items()))
    lines.append("")
    lines.append("Last 6 months:")
    for b in views.monthly_timeline(history, now):
        lines.append(f"  {b.label} {b.year}: {b.count}")
    return "\n".join(lines)


def render_settings(settings: AppSettings, language: str, letters: int) -> str:
    return "\n".join(
        [
            f"user={settings.user_name} ({views.initials(settings.user_name)})",
            f"language={language}",
            f"biometric_lock={str(settings.biometric_lock).lower()}",
            f"family_vault_enabled={str(settings.family_vault_enabled).lower()}",
            f"letters={letters}",
            f"as_of={utc_now_iso()}",
        ]
    )
