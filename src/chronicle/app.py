"""Application bootstrap helpers for the Chronicle editor."""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import json
import logging
import os
import sys
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Sequence, TextIO, cast, get_args, get_origin, get_type_hints

from .ai.client import ClientSettings, ContinuationClient
from .documents.surface import TextDocument
from .errors import ValidationError
from .events import EventBus
from .orchestration import ContinuationService, DocumentSyncBridge, GenerationController, GenerationMachine
from .services.settings import Settings, SettingsStore, redact_secret
from .utils import logging as logging_utils

_TRUE_VALUES = {"1", "true", "yes", "on", "debug"}
_FALSE_VALUES = {"0", "false", "no", "off", "disabled"}
_LOGGER = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_GENERATION_FAILED = 1
EXIT_INVALID_INPUT = 2


@dataclass(slots=True)
class QtRuntime:
    """Container returned by :func:`create_qapp`."""

    app: Any
    loop: asyncio.AbstractEventLoop


def configure_logging(debug: bool = False, *, force: bool = False) -> None:
    """Configure structured logging for the application."""

    level = logging.DEBUG if debug else logging.INFO
    logging_utils.setup_logging(level, force=force)
    _LOGGER.debug("Logging configured (level=%s)", logging.getLevelName(level))


def load_settings(
    path: Optional[Path] = None,
    *,
    store: SettingsStore | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> Settings:
    """Load persisted settings or fall back to defaults."""

    active_store = store or SettingsStore(path)
    try:
        return active_store.load(overrides=overrides)
    except (OSError, ValueError) as exc:
        _LOGGER.warning("Failed to load settings from %s: %s", active_store.path, exc)
        return Settings()


def build_client(settings: Settings, *, debug_logging: bool = False) -> ContinuationClient:
    """Construct the continuation client from the current settings."""

    client_settings = ClientSettings(
        base_url=settings.base_url,
        api_key=settings.api_key,
        model=settings.model,
        organization=settings.organization,
        request_timeout=settings.request_timeout,
        temperature=settings.temperature,
        max_output_tokens=settings.max_output_tokens,
        default_headers=settings.default_headers,
        debug_logging=debug_logging or settings.debug_logging,
    )
    return ContinuationClient(client_settings)


def create_qapp(settings: Settings) -> QtRuntime:
    """Create a qasync-powered QApplication instance."""

    try:  # Local import keeps the headless command free of the Qt stack.
        from PySide6.QtWidgets import QApplication
    except ImportError as exc:  # pragma: no cover - depends on desktop stack
        raise RuntimeError("PySide6 must be installed to launch the Chronicle UI.") from exc

    try:
        from qasync import QEventLoop
    except ImportError as exc:  # pragma: no cover - depends on env setup
        raise RuntimeError("qasync is required to run the async Qt event loop.") from exc

    app = cast(Any, QApplication.instance() or QApplication(sys.argv))
    app.setApplicationName("Chronicle")
    app.setApplicationDisplayName("Chronicle AI Editor")

    loop = QEventLoop(app)
    asyncio.set_event_loop(loop)
    app.aboutToQuit.connect(loop.stop)

    if (settings.theme or "").lower() == "dark":
        app.setStyle("Fusion")

    return QtRuntime(app=app, loop=loop)


async def continue_file(
    path: Path,
    settings: Settings,
    *,
    service: ContinuationService | None = None,
    stream: TextIO | None = None,
) -> int:
    """Continue the text stored at ``path`` once and write the result back.

    Returns a process exit code.
    """

    err = stream or sys.stderr
    try:
        document = TextDocument.from_path(path)
    except (OSError, UnicodeDecodeError) as exc:
        err.write(f"Unable to read {path}: {exc}\n")
        return EXIT_INVALID_INPUT

    body = document.text.rstrip("\r\n")
    line_ending = document.text[len(body):]
    document.update_text(body)
    document.dirty = False

    owned_client = service is None
    active_service: ContinuationService = service or build_client(settings)
    machine = GenerationMachine(active_service, event_bus=EventBus())
    bridge = DocumentSyncBridge(machine, document)
    controller = GenerationController(machine, document)
    try:
        try:
            controller.trigger_generation()
        except ValidationError as exc:
            err.write(f"{exc.message}\n")
            return EXIT_INVALID_INPUT
        await machine.join()
    finally:
        bridge.detach()
        if owned_client:
            await _close_service(active_service)

    if controller.has_error:
        err.write(f"Generation failed: {controller.error_message}\n")
        log_path = logging_utils.active_log_path()
        if log_path is not None:
            err.write(f"Details were logged to {log_path}\n")
        return EXIT_GENERATION_FAILED

    if line_ending:
        document.update_text(document.text + line_ending)
    try:
        document.save()
    except OSError as exc:
        _LOGGER.error("Failed to write %s: %s", document.path, exc)
        err.write(f"Unable to write {document.path}: {exc}\n")
        return EXIT_GENERATION_FAILED
    _LOGGER.info("Continued %s (version %s)", document.path, document.version_id)
    return EXIT_OK


def run_desktop(settings: Settings, *, debug: bool = False) -> None:
    """Open the editor window and block until it is closed."""

    runtime = create_qapp(settings)

    from .ui.editor_surface import EditorSurface
    from .ui.main_window import MainWindow

    bus: EventBus = EventBus()
    client = build_client(settings, debug_logging=debug)
    machine = GenerationMachine(client, event_bus=bus)
    surface = EditorSurface()
    bridge = DocumentSyncBridge(machine, surface)
    controller = GenerationController(machine, surface)
    window = MainWindow(controller, surface, bus, settings=settings)
    window.show()
    surface.focus()

    loop = runtime.loop
    try:
        loop.run_forever()
    except KeyboardInterrupt:  # pragma: no cover - manual shutdown path
        _LOGGER.info("Shutdown requested by user.")
    finally:
        bridge.detach()
        with contextlib.suppress(RuntimeError):
            loop.run_until_complete(machine.aclose())
            loop.run_until_complete(_close_service(client))
        _drain_event_loop(loop)
        loop.close()


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point invoked by the `chronicle` console script."""

    args = _parse_cli_args(argv)

    debug = _env_flag("CHRONICLE_DEBUG", default=False)
    configure_logging(debug)

    settings_path = args.settings_path or os.environ.get("CHRONICLE_SETTINGS_PATH")
    resolved_path = Path(settings_path).expanduser() if settings_path else None
    settings_store = SettingsStore(resolved_path)
    try:
        cli_overrides = _coerce_cli_overrides(args.overrides or [])
    except ValueError as exc:
        print(f"Invalid --set override: {exc}", file=sys.stderr)
        return EXIT_INVALID_INPUT

    settings = load_settings(resolved_path, store=settings_store, overrides=cli_overrides or None)

    if args.dump_settings:
        _dump_settings(settings, settings_store, overrides=cli_overrides)
        return EXIT_OK

    if settings.debug_logging and not debug:
        configure_logging(True, force=True)
        debug = True

    if args.continue_path:
        return asyncio.run(continue_file(Path(args.continue_path).expanduser(), settings))

    run_desktop(settings, debug=debug)
    return EXIT_OK


async def _close_service(service: ContinuationService) -> None:
    """Release network resources held by ``service``, when it has any."""

    close = getattr(service, "aclose", None)
    if close is None:
        return
    try:
        await close()
    except Exception as exc:  # pragma: no cover - shutdown must not mask the result
        _LOGGER.debug("Continuation client shutdown failed: %s", exc)


def _env_flag(name: str, *, default: bool = False) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in _TRUE_VALUES


def _drain_event_loop(loop: asyncio.AbstractEventLoop) -> None:
    """Cancel outstanding tasks and shutdown async machinery before closing."""

    if loop.is_closed():
        return

    async def _cleanup() -> None:
        current_task = asyncio.current_task(loop=loop)
        tasks = [task for task in asyncio.all_tasks(loop) if not task.done() and task is not current_task]
        if tasks:
            _LOGGER.debug("Canceling %s pending asyncio task(s) before shutdown.", len(tasks))
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
        with contextlib.suppress(RuntimeError, NotImplementedError):
            await loop.shutdown_asyncgens()

    try:
        loop.run_until_complete(_cleanup())
    except RuntimeError as exc:  # pragma: no cover - loop already stopped by Qt
        _LOGGER.debug("Unable to drain asyncio loop: %s", exc)


def _parse_cli_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="chronicle",
        description="Launch the Chronicle AI editor, or continue a text file from the command line.",
    )
    parser.add_argument(
        "--continue",
        dest="continue_path",
        metavar="FILE",
        help="Append one AI continuation to FILE and exit without opening a window.",
    )
    parser.add_argument(
        "--dump-settings",
        action="store_true",
        help="Print the effective settings payload (with secrets redacted) and exit.",
    )
    parser.add_argument(
        "--settings",
        dest="settings_path",
        metavar="PATH",
        help="Override the default ~/.chronicle/settings.json path.",
    )
    parser.add_argument(
        "--set",
        dest="overrides",
        metavar="KEY=VALUE",
        action="append",
        default=[],
        help="Override persisted settings before launch (repeatable).",
    )
    return parser.parse_args(argv)


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
    target = _resolve_annotation(annotation)
    normalized = raw_value.strip()

    if normalized.lower() in {"none", "null"} and _is_optional(annotation):
        return None
    if target is str or target is Any:
        return normalized
    if target is bool:
        return _parse_bool(normalized)
    if target is int:
        return int(normalized, 10)
    if target is float:
        return float(normalized)
    if target is dict:
        try:
            return json.loads(normalized or "{}")
        except json.JSONDecodeError as exc:
            raise ValueError("Dict overrides must be valid JSON objects") from exc
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


def _is_optional(annotation: Any) -> bool:
    return type(None) in get_args(annotation)


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
    payload = asdict(settings)
    payload["api_key"] = redact_secret(payload.get("api_key") or "")
    metadata = {
        "path": str(store.path),
        "secret_backend": store.vault.strategy,
        "log_path": str(logging_utils.active_log_path() or logging_utils.resolve_log_path()),
        "cli_overrides": sorted(overrides.keys()),
        "environment_variables": _active_env_overrides(),
    }
    json.dump({"settings": payload, "meta": metadata}, destination, indent=2)
    destination.write("\n")


def _active_env_overrides() -> list[str]:
    return sorted(name for name in os.environ if name.startswith("CHRONICLE_"))


if __name__ == "__main__":  # pragma: no cover - manual launch
    raise SystemExit(main())
