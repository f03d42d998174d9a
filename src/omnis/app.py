"""Application bootstrap and headless command line for the Omnis workspace."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import sys
from dataclasses import asdict, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Sequence, TextIO, get_args, get_origin, get_type_hints

from . import __version__
from .ai.analytics import AssistantMode
from .editor.document_model import Document, DocumentCategory
from .rendering.pipeline import RenderState
from .rendering.surface import RasterSurface
from .services.settings import Settings, SettingsStore
from .services.updates import is_newer_version
from .ui.workspace_controller import WorkspaceController
from .utils import logging as logging_utils

_TRUE_VALUES = {"1", "true", "yes", "on", "debug"}
_FALSE_VALUES = {"0", "false", "no", "off", "disabled"}
_NONE_VALUES = {"none", "null"}
_LOGGER = logging.getLogger(__name__)


def configure_logging(debug: bool = False, *, force: bool = False) -> None:
    """Configure structured logging for the application."""

    level = logging.DEBUG if debug else logging.INFO
    logging_utils.setup_logging(level, force=force)
    _LOGGER.debug("Logging configured (level=%s)", logging.getLevelName(level))
    _install_qt_message_handler()


def load_settings(
    path: Optional[Path] = None,
    *,
    store: SettingsStore | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> Settings:
    """Load persisted settings or fall back to defaults."""

    active_store = store or SettingsStore(path)
    try:
        settings = active_store.load(overrides=overrides)
    except Exception as exc:  # pragma: no cover - unreadable settings store
        _LOGGER.warning("Failed to load settings from %s: %s", active_store.path, exc)
        settings = Settings()
    return settings


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point invoked by the ``omnis`` console script."""

    parser = _build_parser()
    args = parser.parse_args(argv)

    debug = args.debug or _env_flag("OMNIS_DEBUG", default=False)
    configure_logging(debug)

    settings_path = args.settings_path or os.environ.get("OMNIS_SETTINGS_PATH")
    resolved_path = Path(settings_path).expanduser() if settings_path else None
    settings_store = SettingsStore(resolved_path)
    try:
        cli_overrides = _coerce_cli_overrides(args.overrides or [])
    except ValueError as exc:
        print(f"Invalid --set override: {exc}", file=sys.stderr)
        return 2

    settings = load_settings(resolved_path, store=settings_store, overrides=cli_overrides or None)

    if args.dump_settings:
        _dump_settings(settings, settings_store, overrides=cli_overrides)
        return 0

    if settings.debug_logging and not debug:
        configure_logging(True, force=True)

    if args.command is None:
        parser.print_help(sys.stderr)
        return 1

    if args.command == "check-update":
        return _command_check_update(settings, args.candidate)

    if args.command == "page" and args.page_size is not None:
        if args.page_size < 1:
            print("--page-size must be at least 1", file=sys.stderr)
            return 2
        settings = replace(settings, page_size=args.page_size)

    controller = WorkspaceController(settings=settings, settings_store=settings_store)
    try:
        return asyncio.run(_run_command(controller, args))
    except KeyboardInterrupt:  # pragma: no cover - manual shutdown path
        _LOGGER.info("Interrupted by user.")
        return 130
    finally:
        controller.shutdown()


async def _run_command(
    controller: WorkspaceController,
    args: argparse.Namespace,
    stream: TextIO | None = None,
) -> int:
    destination = stream or sys.stdout
    document = controller.open_path(args.path)
    if document is None:
        print(f"Unable to open {args.path}: {controller.last_error}", file=sys.stderr)
        return 1

    match args.command:
        case "info":
            return await _command_info(controller, document, destination)
        case "page":
            return _command_page(controller, document, args.page, destination)
        case "ask":
            if args.mode:
                controller.set_assistant_mode(args.mode)
            answer = await controller.ask(args.query, document.id)
            destination.write(answer.text + "\n")
            return 0
        case "render":
            return await _command_render(controller, document, args)
        case _:
            raise ValueError(f"Unknown command: {args.command}")


async def _command_info(
    controller: WorkspaceController, document: Document, stream: TextIO
) -> int:
    info: Dict[str, Any] = {
        "name": document.name,
        "path": str(document.path) if document.path is not None else None,
        "category": document.category.value,
        "extension": document.extension,
        "tools": list(controller.tools_for_active()),
    }
    cursor = controller.cursor_for(document.id)
    if cursor is not None:
        info["lines"] = cursor.line_count
        info["pages"] = cursor.page_count
        info["page_size"] = controller.settings.page_size
    elif document.category is DocumentCategory.PDF:
        state = await controller.ensure_loaded(document.id)
        pipeline = controller.pipeline_for(document.id)
        assert pipeline is not None
        await pipeline.wait_idle()
        info["pages"] = pipeline.total_pages
        info["render_state"] = state.value if state is not None else None
        if pipeline.error:
            info["error"] = pipeline.error
    elif isinstance(document.content, bytes):
        info["size"] = len(document.content)
    json.dump(info, stream, indent=2)
    stream.write("\n")
    return 0


def _command_check_update(settings: Settings, candidate: str, stream: TextIO | None = None) -> int:
    destination = stream or sys.stdout
    enabled = settings.check_for_updates
    available = enabled and is_newer_version(settings.app_version, candidate)
    _LOGGER.debug(
        "Update check: current=%s, candidate=%s, enabled=%s", settings.app_version, candidate, enabled
    )
    report = {
        "current": settings.app_version,
        "candidate": candidate.strip(),
        "enabled": enabled,
        "update_available": available,
    }
    json.dump(report, destination, indent=2)
    destination.write("\n")
    return 0


def _command_page(
    controller: WorkspaceController,
    document: Document,
    page_number: int,
    stream: TextIO,
) -> int:
    cursor = controller.cursor_for(document.id)
    if cursor is None:
        print(
            f"{document.name} is a {document.category.value} document and has no text pages",
            file=sys.stderr,
        )
        return 1
    current = cursor.go_to(page_number)
    print(f"Page {current}/{cursor.page_count}", file=sys.stderr)
    stream.write(cursor.visible_text())
    stream.write("\n")
    return 0


async def _command_render(
    controller: WorkspaceController,
    document: Document,
    args: argparse.Namespace,
) -> int:
    if document.category is not DocumentCategory.PDF:
        print(f"{document.name} is not a PDF document", file=sys.stderr)
        return 1
    state = await controller.ensure_loaded(document.id)
    pipeline = controller.pipeline_for(document.id)
    assert pipeline is not None
    if state is RenderState.FAILED:
        print(f"Unable to render {document.name}: {pipeline.error}", file=sys.stderr)
        return 1

    await pipeline.wait_idle()
    pipeline.set_view(page_number=args.page, scale=args.scale, rotation=args.rotate)
    await pipeline.wait_idle()
    surface = pipeline.surface
    if surface.is_blank:
        print(f"Rendering page {pipeline.current_page} produced no output", file=sys.stderr)
        return 1
    target = _write_png(surface, Path(args.out))
    print(
        f"Rendered page {pipeline.current_page}/{pipeline.total_pages} "
        f"({surface.pixel_width}x{surface.pixel_height}) to {target}",
        file=sys.stderr,
    )
    return 0


def _write_png(surface: RasterSurface, target: Path) -> Path:
    import fitz  # PyMuPDF

    target.parent.mkdir(parents=True, exist_ok=True)
    pixmap = fitz.Pixmap(
        fitz.csRGB,
        surface.pixel_width,
        surface.pixel_height,
        surface.samples,
        surface.channels == 4,
    )
    pixmap.save(str(target))
    return target


def _env_flag(name: str, *, default: bool = False) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in _TRUE_VALUES


def _install_qt_message_handler() -> None:
    """Redirect Qt warnings to the Python logging stack when available."""

    try:
        from PySide6.QtCore import QtMsgType, qInstallMessageHandler
    except ImportError:  # pragma: no cover - PySide6 optional during tests
        return

    level_map = {
        QtMsgType.QtDebugMsg: logging.DEBUG,
        QtMsgType.QtInfoMsg: logging.INFO,
        QtMsgType.QtWarningMsg: logging.WARNING,
        QtMsgType.QtCriticalMsg: logging.ERROR,
        QtMsgType.QtFatalMsg: logging.CRITICAL,
    }

    def _handler(mode, context, message):  # type: ignore[no-untyped-def]
        del context
        level = level_map.get(mode, logging.INFO)
        logging.getLogger("PySide6").log(level, message)

    qInstallMessageHandler(_handler)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="omnis",
        description="Inspect, page through, query and render documents from the command line.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--dump-settings",
        action="store_true",
        help="Print the effective settings payload and exit.",
    )
    parser.add_argument(
        "--settings-path",
        metavar="PATH",
        help="Override the default ~/.omnis/settings.json path.",
    )
    parser.add_argument(
        "--set",
        dest="overrides",
        metavar="KEY=VALUE",
        action="append",
        default=[],
        help="Override persisted settings for this run (repeatable).",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging.")

    commands = parser.add_subparsers(dest="command", metavar="COMMAND")

    info = commands.add_parser("info", help="Describe a document.")
    info.add_argument("path", type=Path)

    page = commands.add_parser("page", help="Print one page of a text document.")
    page.add_argument("path", type=Path)
    page.add_argument("--page", type=int, default=1)
    page.add_argument("--page-size", type=int, default=None, dest="page_size")

    ask = commands.add_parser("ask", help="Ask the offline assistant about a document.")
    ask.add_argument("path", type=Path)
    ask.add_argument("query")
    ask.add_argument("--mode", choices=[mode.value for mode in AssistantMode], default=None)

    render = commands.add_parser("render", help="Rasterize one PDF page to a PNG file.")
    render.add_argument("path", type=Path)
    render.add_argument("--page", type=int, default=1)
    render.add_argument("--scale", type=float, default=None)
    render.add_argument("--rotate", type=int, default=0, choices=(0, 90, 180, 270))
    render.add_argument("--out", required=True, metavar="FILE.png")

    check = commands.add_parser("check-update", help="Compare a published version with this build.")
    check.add_argument("candidate", metavar="VERSION")
    return parser


def _coerce_cli_overrides(items: Sequence[str]) -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}
    if not items:
        return overrides

    fields = Settings.__dataclass_fields__  # type: ignore[attr-defined]
    type_hints = get_type_hints(Settings)
    for entry in items:
        if "=" not in entry:
            raise ValueError(f"Override '{entry}' must use KEY=VALUE syntax.")
        key, raw_value = entry.split("=", 1)
        key = key.strip()
        if not key:
            raise ValueError("Override is missing a field name.")
        if key not in fields:
            raise ValueError(f"Unknown setting '{key}'.")
        annotation = type_hints.get(key, fields[key].type)
        overrides[key] = _coerce_value(annotation, raw_value.strip())
    return overrides


def _coerce_value(annotation: Any, raw_value: str) -> Any:
    normalized = raw_value.strip()
    if normalized.lower() in _NONE_VALUES and type(None) in get_args(annotation):
        return None

    target = _resolve_annotation(annotation)
    if target is str or target is Any:
        return normalized
    if target is bool:
        return _parse_bool(normalized)
    if target is int:
        return int(normalized, 10)
    if target is float:
        return float(normalized)
    if target is list:
        try:
            value = json.loads(normalized or "[]")
        except json.JSONDecodeError as exc:
            raise ValueError("List overrides must be valid JSON arrays") from exc
        if not isinstance(value, list):
            raise ValueError("List overrides must be valid JSON arrays")
        return value
    return normalized


def _resolve_annotation(annotation: Any) -> Any:
    origin = get_origin(annotation)
    if origin is None:
        return annotation
    if origin in {list, dict}:
        return origin
    args = [arg for arg in get_args(annotation) if arg is not type(None)]
    if not args:
        return origin
    return args[0]


def _parse_bool(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ValueError(f"Cannot coerce '{value}' to a boolean.")


def _dump_settings(
    settings: Settings,
    store: SettingsStore,
    *,
    overrides: Mapping[str, Any],
    stream: TextIO | None = None,
) -> None:
    destination = stream or sys.stdout
    metadata = {
        "path": str(store.path),
        "cli_overrides": sorted(overrides.keys()),
        "environment_variables": _active_env_overrides(),
    }
    output = {"settings": asdict(settings), "meta": metadata}
    json.dump(output, destination, indent=2)
    destination.write("\n")


def _active_env_overrides() -> list[str]:
    return sorted(name for name in os.environ if name.startswith("OMNIS_"))


if __name__ == "__main__":  # pragma: no cover - manual invocation
    raise SystemExit(main())
