"""Application bootstrap helpers and the ``textenhancer`` command line."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import logging.handlers
import os
import sys
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence, TextIO

from .ai.client import ClientSettings, RewriteClient
from .core.parameters import LENGTH_CHOICES, TONE_CHOICES
from .core.results import ApplyOutcome, TriggerRejection
from .events import ApplyCompleted, EventBus, PreviewReady, RewriteFailed
from .host.apply_chain import ApplyFallbackChain
from .host.bridge import Clipboard, HostBridge
from .host.clipboard import SystemClipboard
from .host.memory import InMemoryHost
from .host.tracker import TargetTracker
from .services.preferences import PreferenceStore, SettingsPreferenceStore
from .services.settings import Settings, SettingsStore, redact_secret
from .session.controller import RewriteBackend, SessionController
from .session.models import SessionConfig, SessionState

_LOGGER = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_REWRITE_FAILED = 1
EXIT_REJECTED = 2

_DEFAULT_LOG_DIR = Path.home() / ".textenhancer" / "logs"
_LOG_FORMAT = "%(asctime)s %(levelname)-7s [%(name)s] %(message)s"
_THIRD_PARTY_LOGGERS: tuple[str, ...] = ("httpx", "httpcore", "openai")
_log_path: Path | None = None


def configure_logging(
    debug: bool = False,
    *,
    log_dir: Path | str | None = None,
    force: bool = False,
) -> Path:
    """Route logs to ``textenhancer.log``, echoing them to stderr in debug mode.

    The file rotates at 1 MB and keeps three backups. The directory comes
    from ``log_dir``, then ``TEXTENHANCER_LOG_DIR``, then ``~/.textenhancer/logs``.
    Repeat calls are no-ops unless ``force`` is set.
    """

    global _log_path
    if _log_path is not None and not force:
        return _log_path

    directory = Path(log_dir or os.environ.get("TEXTENHANCER_LOG_DIR") or _DEFAULT_LOG_DIR).expanduser()
    directory.mkdir(parents=True, exist_ok=True)
    log_path = directory / "textenhancer.log"

    handlers: List[logging.Handler] = [
        logging.handlers.RotatingFileHandler(log_path, maxBytes=1_000_000, backupCount=3, encoding="utf-8")
    ]
    if debug:
        handlers.append(logging.StreamHandler(sys.stderr))
    formatter = logging.Formatter(_LOG_FORMAT)
    for handler in handlers:
        handler.setFormatter(formatter)

    level = logging.DEBUG if debug else logging.INFO
    logging.basicConfig(level=level, handlers=handlers, force=True)
    logging.captureWarnings(True)
    # Request bodies from these libraries would include the user's text.
    for name in _THIRD_PARTY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    _log_path = log_path
    _LOGGER.debug("Logging to %s (level=%s)", log_path, logging.getLevelName(level))
    return log_path


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
    except Exception as exc:  # pragma: no cover - unreadable settings
        _LOGGER.warning("Failed to load settings from %s: %s", active_store.path, exc)
        return Settings()


def build_controller(
    settings: Settings,
    bridge: HostBridge,
    clipboard: Clipboard,
    preferences: PreferenceStore,
    *,
    client: RewriteBackend | None = None,
    event_bus: EventBus | None = None,
) -> tuple[SessionController, TargetTracker]:
    """Wire tracker, client, apply chain and controller from ``settings``."""

    bus = event_bus or EventBus()
    tracker = TargetTracker(bridge, event_bus=bus)
    backend = client or RewriteClient(ClientSettings.from_settings(settings))
    controller = SessionController(
        tracker,
        backend,
        preferences,
        ApplyFallbackChain(bridge, clipboard),
        config=SessionConfig.from_settings(settings),
        event_bus=bus,
    )
    return controller, tracker


@dataclass
class _RewriteTranscript:
    """Collects the events a headless rewrite run needs to report."""

    previews: List[str] = field(default_factory=list)
    failures: List[RewriteFailed] = field(default_factory=list)
    applied: ApplyCompleted | None = None

    def on_preview(self, event: PreviewReady) -> None:
        self.previews.append(event.text)

    def on_failure(self, event: RewriteFailed) -> None:
        self.failures.append(event)

    def on_applied(self, event: ApplyCompleted) -> None:
        self.applied = event


async def run_rewrite(
    text: str,
    settings: Settings,
    store: SettingsStore,
    *,
    apply: bool = True,
    client: RewriteBackend | None = None,
    copy_to: Clipboard | None = None,
    out: TextIO | None = None,
    err: TextIO | None = None,
) -> int:
    """Drive one full session over an in-memory field holding ``text``.

    Prints the preview, then the field contents once applied. ``copy_to``
    receives the final text when given.
    """

    out = out or sys.stdout
    err = err or sys.stderr
    host = InMemoryHost()
    transcript = _RewriteTranscript()
    bus = EventBus()
    bus.subscribe(PreviewReady, transcript.on_preview)
    bus.subscribe(RewriteFailed, transcript.on_failure)
    bus.subscribe(ApplyCompleted, transcript.on_applied)

    owned_client = RewriteClient(ClientSettings.from_settings(settings)) if client is None else None
    controller, tracker = build_controller(
        settings,
        host,
        host.clipboard,
        SettingsPreferenceStore(store, settings),
        client=client or owned_client,
        event_bus=bus,
    )
    element = host.add(text=text)
    host.focus(element)
    tracker.on_focus_changed(element, True)

    try:
        started = controller.trigger()
        if isinstance(started, TriggerRejection):
            print(started.message, file=err)
            return EXIT_REJECTED
        await controller.wait_pending()

        if controller.state is SessionState.FAILED:
            failure = transcript.failures[-1]
            print(f"Rewrite failed ({failure.kind.value}): {failure.message}", file=err)
            controller.acknowledge_failure()
            return EXIT_REWRITE_FAILED

        final_text = transcript.previews[-1]
        print(final_text, file=out)
        if controller.state is SessionState.PREVIEWING:
            if apply:
                await controller.apply()
            else:
                controller.cancel()

        applied = transcript.applied
        if applied is not None:
            _LOGGER.info("Applied via tier %d: %s", applied.tier, applied.message)
            if applied.outcome is ApplyOutcome.FAILED:
                print(applied.message, file=err)
                return EXIT_REWRITE_FAILED
            final_text = element.text
            print(final_text, file=out)

        if copy_to is not None:
            try:
                copy_to.set_text(final_text)
            except Exception as exc:
                print(f"Could not copy to clipboard: {exc}", file=err)
                return EXIT_REWRITE_FAILED
        return EXIT_OK
    finally:
        if owned_client is not None:
            await owned_client.aclose()


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point invoked by the ``textenhancer`` console script."""

    args = _parse_cli_args(argv)
    debug = bool(args.debug) or _env_flag("TEXTENHANCER_DEBUG")
    configure_logging(debug)

    settings_path = args.settings_path or os.environ.get("TEXTENHANCER_SETTINGS_PATH")
    resolved_path = Path(settings_path).expanduser() if settings_path else None
    store = SettingsStore(resolved_path)

    if args.command == "set-key":
        key = args.key.strip()
        if not key:
            print("API key must not be empty", file=sys.stderr)
            return EXIT_REJECTED
        store.update(api_key=key)
        print(f"API key saved ({redact_secret(key)})")
        return EXIT_OK

    if args.command == "show-settings":
        settings = load_settings(resolved_path, store=store)
        print(json.dumps(_redacted_settings(settings), indent=2, sort_keys=True))
        return EXIT_OK

    if args.length is not None and args.length <= 0:
        print("--length must be a positive number of words", file=sys.stderr)
        return EXIT_REJECTED
    if args.tone is not None and not args.tone.strip():
        print("--tone must not be blank", file=sys.stderr)
        return EXIT_REJECTED
    overrides: Dict[str, Any] = {
        "tone": args.tone,
        "target_word_count": args.length,
        "language": args.language,
    }
    settings = load_settings(resolved_path, store=store, overrides=overrides)
    if settings.debug_logging and not debug:
        configure_logging(True, force=True)

    text = sys.stdin.read() if args.text == "-" else args.text
    copy_to = SystemClipboard() if args.copy else None
    return asyncio.run(run_rewrite(text, settings, store, apply=args.apply, copy_to=copy_to))


def _redacted_settings(settings: Settings) -> Dict[str, Any]:
    payload = asdict(settings)
    payload["api_key"] = redact_secret(settings.api_key)
    return payload


def _env_flag(name: str, *, default: bool = False) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on", "debug"}


def _parse_cli_args(argv: Sequence[str] | None) -> argparse.Namespace:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--settings",
        dest="settings_path",
        metavar="PATH",
        help="Override ~/.textenhancer/settings.json.",
    )
    common.add_argument("--debug", action="store_true", help="Enable debug logging on the console.")

    parser = argparse.ArgumentParser(
        prog="textenhancer",
        description="Rewrite text with a remote model using tone, length, and language controls.",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    rewrite = commands.add_parser("rewrite", parents=[common], help="Rewrite TEXT (use '-' to read stdin).")
    rewrite.add_argument("text")
    rewrite.add_argument("--tone", help=f"Tone, e.g. {', '.join(TONE_CHOICES)}.")
    rewrite.add_argument(
        "--length",
        type=int,
        help=f"Approximate target word count, e.g. {', '.join(str(n) for n in LENGTH_CHOICES)}.",
    )
    rewrite.add_argument("--language", help="Target language, or 'auto' to keep the input language.")
    rewrite.add_argument(
        "--apply",
        action=argparse.BooleanOptionalAction,
        default=True,
        help="Write the preview back into the field (default: on).",
    )
    rewrite.add_argument("--copy", action="store_true", help="Copy the final text to the system clipboard.")

    set_key = commands.add_parser("set-key", parents=[common], help="Store the API key (encrypted).")
    set_key.add_argument("key")

    commands.add_parser("show-settings", parents=[common], help="Print settings with the API key redacted.")
    return parser.parse_args(argv)


if __name__ == "__main__":  # pragma: no cover - manual invocation
    raise SystemExit(main())
