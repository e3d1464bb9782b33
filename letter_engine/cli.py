from __future__ import annotations

import argparse
import sys
from datetime import datetime, timezone
from pathlib import Path

from . import render, views
from .analysis import make_client
from .audio import write_speech
from .calendar_export import google_calendar_link, write_ics
from .capture import CameraSession, UploadProvider, capture_from_camera, normalize_constraints, save_data_url
from .chat import LetterChat
from .config import DEFAULT_CONFIG_PATH, EngineConfig, load_config
from .exporter import export_history_json, export_tasks_csv
from .report import write_report
from .shell import AppShell
from .store import LetterStore
from .types import SUPPORTED_LANGUAGES, AppScreen
from .validator import validate_workspace


def _on_off(value: str) -> bool:
    v = value.strip().lower()
    if v in ("on", "true", "1", "yes"):
        return True
    if v in ("off", "false", "0", "no"):
        return False
    raise argparse.ArgumentTypeError(f"expected on/off, got {value!r}")


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="letter_engine")
    p.add_argument("--config", default=str(DEFAULT_CONFIG_PATH), help="Config path")
    p.add_argument("--workspace", default=None, help="Workspace root (default from config)")
    sub = p.add_subparsers(dest="command", required=True)

    sub.add_parser("onboard", help="Finish onboarding and open the dashboard")
    sub.add_parser("home", help="Show the dashboard")

    analyze = sub.add_parser("analyze", help="Analyze uploaded letter pages (images, folders, PDFs)")
    analyze.add_argument("--input", nargs="+", required=True, help="Image files, image folders or PDFs")

    scan = sub.add_parser("scan", help="Capture pages from the camera and analyze them")
    scan.add_argument("--frames", type=int, default=1, help="Number of pages to capture")
    scan.add_argument("--device", type=int, default=None, help="Camera index (default from config)")

    lst = sub.add_parser("list", help="Library: search, filter and sort letters")
    lst.add_argument("--search", default="")
    lst.add_argument("--category", default=views.ALL_CATEGORIES)
    lst.add_argument("--sort", default="recent", choices=["recent", "urgency"])

    show = sub.add_parser("show", help="Show a letter's results")
    show.add_argument("letter_id")
    show.add_argument("--translated", action="store_true", help="Show the translated summary/checklist")
    show.add_argument(
        "--html", nargs="?", const="", default=None, help="Also write a standalone HTML report (default: <workspace>/reports/)"
    )
    show.add_argument("--original", default=None, help="Save the original scanned pages (JPEG) into this dir")

    sub.add_parser("agenda", help="Tasks across all letters, most urgent first")
    sub.add_parser("insights", help="Category, urgency and monthly statistics")

    tt = sub.add_parser("toggle-task", help="Mark a task done/undone")
    tt.add_argument("letter_id")
    tt.add_argument("index", type=int)

    tr = sub.add_parser("toggle-reminder", help="Set/clear a deadline reminder")
    tr.add_argument("letter_id")
    tr.add_argument("index", type=int)

    vf = sub.add_parser("verify", help="Mark an extracted field as checked against the paper letter")
    vf.add_argument("letter_id")
    vf.add_argument("field_id", help="e.g. amt-0, ref-1, date-0, org-0")

    dl = sub.add_parser("delete", help="Delete a letter forever")
    dl.add_argument("letter_id")

    ch = sub.add_parser("chat", help="Ask questions about a letter")
    ch.add_argument("letter_id")
    ch.add_argument("--message", action="append", default=None, help="Send without prompting (repeatable)")

    rf = sub.add_parser("refine", help="Refine a reply draft with an instruction")
    rf.add_argument("letter_id")
    rf.add_argument("--reply", type=int, default=0, help="Suggested reply index")
    rf.add_argument("--instruction", required=True, help='e.g. "make it more formal"')

    sp = sub.add_parser("speak", help="Generate voice playback of the summary (.wav)")
    sp.add_argument("letter_id")
    sp.add_argument("--translated", action="store_true")

    cal = sub.add_parser("calendar", help="Export a deadline to a calendar")
    cal.add_argument("letter_id")
    cal.add_argument("index", type=int, help="Deadline index")
    cal.add_argument("--ics", action="store_true", help="Write an .ics file instead of printing a link")

    ex = sub.add_parser("export", help="Export history (json) or tasks (csv)")
    ex.add_argument("--format", required=True, choices=["json", "csv"])
    ex.add_argument("--out", default=None, help="Output path (csv) or directory (json)")
    ex.add_argument("--include-completed", action="store_true", help="csv: include completed tasks")

    sub.add_parser("validate", help="Validate the workspace store files")

    st = sub.add_parser("settings", help="Show or change settings")
    st.add_argument("--name", default=None)
    st.add_argument("--language", default=None, choices=list(SUPPORTED_LANGUAGES))
    st.add_argument("--biometric-lock", type=_on_off, default=None)
    st.add_argument("--family-vault", type=_on_off, default=None)

    rs = sub.add_parser("reset", help="Erase history and restart onboarding")
    rs.add_argument("--yes", action="store_true", help="Confirm erasing all letters")

    sv = sub.add_parser("serve-proxy", help="Run the API-key-holding proxy")
    sv.add_argument("--host", default="127.0.0.1")
    sv.add_argument("--port", type=int, default=8787)

    return p


def _workspace(args: argparse.Namespace, cfg: EngineConfig) -> Path:
    return Path(args.workspace or cfg.storage.get("workspace") or "./workspace")


def _open_shell(args: argparse.Namespace, cfg: EngineConfig) -> AppShell:
    return AppShell(LetterStore(_workspace(args, cfg)))


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _require_onboarded(shell: AppShell) -> None:
    if shell.screen is AppScreen.ONBOARDING:
        raise RuntimeError("not onboarded yet: run `onboard` first")


def _analyze_images(shell: AppShell, cfg: EngineConfig, images: list[str]) -> int:
    shell.scan_complete(images)
    item = shell.process(make_client(cfg))
    print(f"letter_id={item.id} pages={len(images)}")
    print(render.render_letter(item, translated=item.analysis.translation is not None))
    return 0


def cmd_analyze(args: argparse.Namespace, cfg: EngineConfig) -> int:
    shell = _open_shell(args, cfg)
    _require_onboarded(shell)
    provider = UploadProvider(inputs=tuple(args.input), pdf_dpi=int(cfg.capture.get("pdf_dpi", 150)))
    images = provider.data_urls(quality=int(cfg.capture.get("jpeg_quality", 80)))
    if not images:
        raise RuntimeError("no pages found in input")
    return _analyze_images(shell, cfg, images)


def cmd_scan(args: argparse.Namespace, cfg: EngineConfig) -> int:
    shell = _open_shell(args, cfg)
    _require_onboarded(shell)
    shell.start_scan()
    device = args.device if args.device is not None else int(cfg.capture.get("camera_index", 0))
    session = CameraSession(device_index=device, constraints=normalize_constraints(cfg.capture.get("constraints")))
    images = capture_from_camera(session, args.frames, quality=int(cfg.capture.get("jpeg_quality", 80)))
    print(f"captured={len(images)} constraint={session.active_constraint} restarts={session.restarts}")
    return _analyze_images(shell, cfg, images)


def cmd_chat(args: argparse.Namespace, cfg: EngineConfig) -> int:
    shell = _open_shell(args, cfg)
    item = shell.navigate_to_letter(shell.resolve(args.letter_id).id)
    shell.navigate(AppScreen.CHAT)
    chat = LetterChat(
        client=make_client(cfg),
        analysis=item.analysis,
        language=shell.preferred_language,
        paths=shell.store.paths,
    )
    print(f"model> {chat.messages[0].text}")

    if args.message:
        for text in args.message:
            reply = chat.send(text)
            if reply is not None:
                print(f"you> {text}")
                print(f"model> {reply.text}")
        return 0

    while True:
        try:
            text = input("you> ")
        except EOFError:
            break
        if not text.strip():
            break
        reply = chat.send(text)
        if reply is not None:
            print(f"model> {reply.text}")
    return 0


def cmd_refine(args: argparse.Namespace, cfg: EngineConfig) -> int:
    shell = _open_shell(args, cfg)
    item = shell.resolve(args.letter_id)
    replies = item.analysis.suggested_replies
    if not 0 <= args.reply < len(replies):
        raise RuntimeError(f"no suggested reply at index {args.reply} (letter has {len(replies)})")
    refined = make_client(cfg).refine_draft(replies[args.reply].body, args.instruction)
    print(refined)
    return 0


def cmd_speak(args: argparse.Namespace, cfg: EngineConfig) -> int:
    shell = _open_shell(args, cfg)
    item = shell.resolve(args.letter_id)
    text = views.active_summary(item.analysis, args.translated)
    audio_b64 = make_client(cfg).generate_speech(text)
    out = write_speech(audio_b64, shell.store.paths.audio_dir, f"{item.id[:8]}_summary")
    print(str(out))
    return 0


def cmd_calendar(args: argparse.Namespace, cfg: EngineConfig) -> int:
    shell = _open_shell(args, cfg)
    item = shell.resolve(args.letter_id)
    deadlines = item.analysis.deadlines
    if not 0 <= args.index < len(deadlines):
        raise RuntimeError(f"no deadline at index {args.index} (letter has {len(deadlines)})")
    d = deadlines[args.index]
    if args.ics:
        out = write_ics(item.analysis.title, d.date, d.description, shell.store.paths.exports_dir)
        if out is None:
            raise RuntimeError(f"unparseable deadline date: {d.date!r}")
        print(str(out))
        return 0
    link = google_calendar_link(item.analysis.title, d.date, d.description)
    if link == "#":
        raise RuntimeError(f"unparseable deadline date: {d.date!r}")
    print(link)
    return 0


def cmd_export(args: argparse.Namespace, cfg: EngineConfig) -> int:
    shell = _open_shell(args, cfg)
    if args.format == "json":
        out = export_history_json(shell.history, args.out or shell.store.paths.exports_dir)
        print(str(out))
        return 0
    out_path = args.out or str(shell.store.paths.exports_dir / "tasks.csv")
    stats = export_tasks_csv(shell.history, out_path, include_completed=bool(args.include_completed))
    print(f"exported={stats.tasks_exported} skipped_completed={stats.tasks_skipped_completed} letters={stats.letters_seen}")
    return 0


def cmd_validate(args: argparse.Namespace, cfg: EngineConfig) -> int:
    report = validate_workspace(_workspace(args, cfg))
    print(f"missing_store_files={report.missing_store_files}")
    print(f"invalid_items={report.invalid_items}")
    print(f"duplicate_ids={report.duplicate_ids}")
    print(f"invalid_settings={report.invalid_settings}")
    if report.errors:
        for m in report.errors:
            print(m)
        return 1
    print("OK")
    return 0


def cmd_settings(args: argparse.Namespace, cfg: EngineConfig) -> int:
    shell = _open_shell(args, cfg)
    changes = {}
    if args.name is not None:
        changes["user_name"] = args.name
    if args.biometric_lock is not None:
        changes["biometric_lock"] = args.biometric_lock
    if args.family_vault is not None:
        changes["family_vault_enabled"] = args.family_vault
    if changes:
        shell.update_settings(**changes)
    if args.language is not None:
        shell.set_language(args.language)
    print(render.render_settings(shell.settings, shell.preferred_language, len(shell.history)))
    return 0


def cmd_serve_proxy(args: argparse.Namespace, cfg: EngineConfig) -> int:
    from .proxy import create_app

    app = create_app(cfg)
    app.run(host=args.host, port=args.port)
    return 0


def _run(args: argparse.Namespace, cfg: EngineConfig) -> int:
    cmd = args.command

    if cmd == "analyze":
        return cmd_analyze(args, cfg)
    if cmd == "scan":
        return cmd_scan(args, cfg)
    if cmd == "chat":
        return cmd_chat(args, cfg)
    if cmd == "refine":
        return cmd_refine(args, cfg)
    if cmd == "speak":
        return cmd_speak(args, cfg)
    if cmd == "calendar":
        return cmd_calendar(args, cfg)
    if cmd == "export":
        return cmd_export(args, cfg)
    if cmd == "validate":
        return cmd_validate(args, cfg)
    if cmd == "settings":
        return cmd_settings(args, cfg)
    if cmd == "serve-proxy":
        return cmd_serve_proxy(args, cfg)

    shell = _open_shell(args, cfg)

    if cmd == "onboard":
        shell.complete_onboarding()
        print("onboarded=true")
        return 0
    if cmd == "home":
        _require_onboarded(shell)
        print(render.render_home(shell.history, shell.settings, _now()))
        return 0
    if cmd == "list":
        items = views.filter_library(shell.history, args.search, args.category, args.sort)
        print(render.render_library(items))
        return 0
    if cmd == "show":
        item = shell.navigate_to_letter(shell.resolve(args.letter_id).id)
        print(render.render_letter(item, translated=args.translated))
        if args.html is not None:
            html_path = args.html or shell.store.paths.reports_dir / f"{item.id[:8]}.html"
            out = write_report(item, html_path, language=shell.preferred_language, translated=args.translated)
            print(str(out))
        if args.original:
            for i, url in enumerate(item.image_urls):
                print(str(save_data_url(url, Path(args.original) / f"{item.id[:8]}_page_{i + 1}.jpg")))
        return 0
    if cmd == "agenda":
        print(render.render_agenda(shell.history))
        return 0
    if cmd == "insights":
        print(render.render_insights(shell.history, _now()))
        return 0
    if cmd == "toggle-task":
        item = shell.resolve(args.letter_id)
        if not 0 <= args.index < len(item.analysis.actions):
            raise RuntimeError(f"no task at index {args.index}")
        shell.toggle_task(item.id, args.index)
        print(f"completed={str(item.analysis.actions[args.index].completed).lower()}")
        return 0
    if cmd == "toggle-reminder":
        item = shell.resolve(args.letter_id)
        if not 0 <= args.index < len(item.analysis.deadlines):
            raise RuntimeError(f"no deadline at index {args.index}")
        shell.toggle_reminder(item.id, args.index)
        print(f"reminder_set={str(item.analysis.deadlines[args.index].reminder_set).lower()}")
        return 0
    if cmd == "verify":
        item = shell.resolve(args.letter_id)
        valid_ids = {c.field_id for c in views.verify_chips(item)}
        if args.field_id not in valid_ids:
            raise RuntimeError(f"unknown field id {args.field_id!r} (choose from {', '.join(sorted(valid_ids))})")
        shell.toggle_verification(item.id, args.field_id)
        print(f"verified={str(args.field_id in item.verified_fields).lower()}")
        return 0
    if cmd == "delete":
        item = shell.resolve(args.letter_id)
        shell.delete_letter(item.id)
        print(f"deleted={item.id}")
        return 0
    if cmd == "reset":
        if not args.yes:
            raise RuntimeError("refusing to erase all letters without --yes")
        shell.reset()
        print("reset=true")
        return 0

    raise SystemExit(2)


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        cfg = load_config(args.config)
        return _run(args, cfg)
    except (RuntimeError, ValueError, KeyError) as e:
        msg = e.args[0] if isinstance(e, KeyError) and e.args else e
        print(f"{args.command}_failed: {msg}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
