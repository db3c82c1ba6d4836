"""Tracks the last focused editable element and captures snapshots of it."""

from __future__ import annotations

import asyncio
import logging
import threading
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone

from ..core.results import ElementGone, NoTarget
from ..events import EventBus, TriggerVisibilityChanged
from .bridge import ElementRef, HostBridge
from .registry import ElementHandle, ElementRegistry

__all__ = ["TargetSnapshot", "TargetTracker"]

LOGGER = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(slots=True, frozen=True)
class TargetSnapshot:
    """Point-in-time reference to one editable element plus its text.

    Snapshots never change. :meth:`refresh` re-reads the host and returns a
    new snapshot, or :class:`ElementGone` when the element disappeared.
    """

    handle: ElementHandle
    text: str
    captured_at: datetime = field(default_factory=_utcnow)
    registry: ElementRegistry = field(default=None, compare=False, repr=False)  # type: ignore[assignment]
    bridge: HostBridge = field(default=None, compare=False, repr=False)  # type: ignore[assignment]

    def resolve(self) -> ElementRef | ElementGone:
        return self.registry.resolve(self.handle)

    def refresh(self) -> "TargetSnapshot | ElementGone":
        element = self.resolve()
        if isinstance(element, ElementGone):
            return element
        try:
            text = self.bridge.read_text(element)
        except Exception as exc:
            LOGGER.debug("Host read failed for %s: %s", self.handle, exc)
            text = ElementGone(f"Host read failed: {exc}")
        if isinstance(text, ElementGone):
            self.registry.invalidate(self.handle)
            return text
        return replace(self, text=text or "", captured_at=_utcnow())


class TargetTracker:
    """Maintains the best-known reference to the focused editable element.

    Host focus events may arrive on any thread; the tracked reference is
    guarded by a lock and ``capture`` never blocks on the host. The event bus
    is not thread-safe, so when ``loop`` is given, visibility events raised
    off that loop's thread are handed to it with ``call_soon_threadsafe``.
    Without a loop the host must deliver focus events on the interactive
    thread.
    """

    def __init__(
        self,
        bridge: HostBridge,
        registry: ElementRegistry | None = None,
        *,
        event_bus: EventBus | None = None,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        self._bridge = bridge
        self._loop = loop
        self._registry = registry or ElementRegistry()
        self._bus = event_bus
        self._handle: ElementHandle | None = None
        self._last_text = ""
        self._lock = threading.Lock()

    @property
    def registry(self) -> ElementRegistry:
        return self._registry

    @property
    def has_target(self) -> bool:
        with self._lock:
            return self._handle is not None

    def on_focus_changed(
        self,
        element: ElementRef,
        is_editable: bool,
        *,
        text: str | None = None,
        window_changed: bool = False,
    ) -> None:
        """Process a host focus/click/selection event.

        Editable elements replace the tracked reference. Non-editable focus
        leaves it alone (keyboards and overlays steal focus transiently)
        unless the host also reports that the window changed.
        """

        if is_editable and element is not None:
            handle = self._registry.register(element)
            if text is None:
                text = self._read_initial_text(element)
            with self._lock:
                had_target = self._handle is not None
                self._handle = handle
                self._last_text = text
            LOGGER.debug("Tracking editable element %s", handle)
            if not had_target:
                self._publish_visibility(True)
            return

        if window_changed:
            self.clear()

    def capture(self) -> TargetSnapshot | NoTarget:
        with self._lock:
            handle = self._handle
            text = self._last_text
        if handle is None:
            return NoTarget()
        if not self._registry.is_live(handle):
            LOGGER.debug("Tracked handle %s is stale", handle)
            return NoTarget("The previously focused field is no longer available")
        return TargetSnapshot(
            handle=handle,
            text=text,
            registry=self._registry,
            bridge=self._bridge,
        )

    def clear(self) -> None:
        with self._lock:
            handle = self._handle
            self._handle = None
            self._last_text = ""
        if handle is None:
            return
        # Outstanding snapshots keep resolving until the registry evicts the
        # handle or a read reports it gone.
        LOGGER.debug("Cleared tracked element %s", handle)
        self._publish_visibility(False)

    def _read_initial_text(self, element: ElementRef) -> str:
        try:
            value = self._bridge.read_text(element)
        except Exception as exc:
            LOGGER.debug("Initial read failed: %s", exc)
            return ""
        if isinstance(value, ElementGone):
            return ""
        return value or ""

    def _publish_visibility(self, visible: bool) -> None:
        if self._bus is None:
            return
        event = TriggerVisibilityChanged(visible=visible)
        loop = self._loop
        if loop is not None and _running_loop() is not loop:
            loop.call_soon_threadsafe(self._bus.publish, event)
            return
        self._bus.publish(event)


def _running_loop() -> asyncio.AbstractEventLoop | None:
    try:
        return asyncio.get_running_loop()
    except RuntimeError:
        return None
