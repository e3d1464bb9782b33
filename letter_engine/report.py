"""Results page as a standalone HTML file.

The page embeds the original scans as data URLs, so it can be opened or
printed without the workspace. RTL languages flip the text direction.
"""
from __future__ import annotations

import html
from pathlib import Path

from . import views
from .calendar_export import google_calendar_link
from .types import RTL_LANGUAGES, LetterItem, UrgencyLevel


_URGENCY_COLORS = {
    UrgencyLevel.HIGH: "#e11d48",
    UrgencyLevel.MEDIUM: "#d97706",
    UrgencyLevel.LOW: "#059669",
}


def _e(text: object) -> str:
    return html.escape(str(text), quote=True)


def _list(items: list[str]) -> str:
    if not items:
        return ""
    return "<ul>" + "".join(f"<li>{_e(i)}</li>" for i in items) + "</ul>"


def render_report_html(
    item: LetterItem,
    *,
    language: str = "English",
    translated: bool = False,
    include_scans: bool = True,
) -> str:
    a = item.analysis
    direction = "rtl" if language in RTL_LANGUAGES else "ltr"
    color = _URGENCY_COLORS[a.urgency.level]

    sections: list[str] = []
    sections.append(
        f"""<section class="card">
  <div class="row"><span class="pill">{_e(a.category)}</span>
  <span class="pill" style="border-color:{color};color:{color}">{_e(a.urgency.level.value)}</span>
  <span class="muted">confidence {a.confidence_score:g}%</span></div>
  <p>{_e(views.active_summary(a, translated))}</p>
  {_list(a.translation.summary_bullets if translated and a.translation else a.summary_bullets)}
  {_list(a.urgency.reasons)}
</section>"""
    )

    chips = "".join(
        f'<span class="pill{" ok" if c.verified else ""}" title="{_e(c.field_id)}">{_e(c.label)}: {_e(c.text)}</span>'
        for c in views.verify_chips(item)
    )
    if chips:
        sections.append(f'<section class="card"><h3>Verify</h3><div class="row">{chips}</div></section>')

    if a.deadlines:
        rows = "".join(
            f'<li><b>{_e(d.date)}</b> {_e(d.description)} '
            f'<a href="{_e(google_calendar_link(a.title, d.date, d.description))}">add to calendar</a></li>'
            for d in a.deadlines
        )
        sections.append(f'<section class="card"><h3>Key dates</h3><ul>{rows}</ul></section>')

    checklist = views.active_checklist(a, translated)
    if checklist:
        rows = "".join(
            f'<li><input type="checkbox" disabled{" checked" if t.completed else ""}/> {_e(t.task)}</li>'
            for t in checklist
        )
        sections.append(f'<section class="card"><h3>Next steps</h3><ul class="plain">{rows}</ul></section>')

    if a.consequences_if_ignored:
        sections.append(f'<section class="card"><h3>If ignored</h3><p>{_e(a.consequences_if_ignored)}</p></section>')

    if a.questions_to_ask_office:
        sections.append(
            f'<section class="card"><h3>Questions to ask</h3>{_list(a.questions_to_ask_office)}'
            f'<p class="muted">{_e(views.phone_script(a))}</p></section>'
        )

    for r in a.suggested_replies:
        sections.append(
            f'<section class="card"><h3>{_e(r.label)}</h3><p><b>{_e(r.subject)}</b></p>'
            f"<pre>{_e(r.body)}</pre></section>"
        )

    if include_scans and item.image_urls:
        imgs = "".join(f'<img src="{_e(u)}" alt="page {i + 1}"/>' for i, u in enumerate(item.image_urls))
        sections.append(f'<section class="card"><h3>Original scan</h3>{imgs}</section>')

    body = "\n".join(sections)
    return f"""<!doctype html>
<html lang="en" dir="{direction}">
<head>
  <meta charset="utf-8" />
  <meta name="viewport" content="width=device-width, initial-scale=1" />
  <title>{_e(a.title)}</title>
  <style>
    :root {{ color-scheme: light dark; }}
    body {{ font-family: ui-sans-serif, system-ui, Segoe UI, Arial; margin: 16px auto; max-width: 720px; }}
    .card {{ padding: 12px 16px; border: 1px solid #8884; border-radius: 12px; margin-bottom: 12px; }}
    .row {{ display: flex; gap: 8px; flex-wrap: wrap; align-items: center; }}
    .pill {{ padding: 4px 10px; border: 1px solid #8884; border-radius: 999px; font-size: 13px; }}
    .pill.ok {{ border-color: #059669; color: #059669; }}
    .muted {{ opacity: 0.7; }}
    ul.plain {{ list-style: none; padding-left: 0; }}
    pre {{ white-space: pre-wrap; font-family: inherit; }}
    img {{ max-width: 100%; height: auto; border: 1px solid #8884; border-radius: 8px; margin-top: 8px; }}
  </style>
</head>
<body>
  <h1>{_e(a.title)}</h1>
{body}
</body>
</html>
"""


def write_report(item: LetterItem, out_path: str | Path, **kwargs: object) -> Path:
    out = Path(out_path)
    out.parent.mkdir(parents=True, exist_ok=True)
    out.write_text(render_report_html(item, **kwargs), encoding="utf-8")
    return out
