"""Event bus connecting the engine to the presentation layer.

The engine publishes state transitions and their payloads here; the
presentation layer (trigger button, preview panel, toasts) subscribes and
renders them without the engine knowing anything about widgets.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, DefaultDict, Generic, TypeVar
from weakref import WeakMethod

if TYPE_CHECKING:  # pragma: no cover - imports for type checking only
    from .core.parameters import RewriteParameters
    from .core.results import ApplyOutcome, FailureKind, TriggerRejection
    from .session.models import SessionState

logger = logging.getLogger(__name__)

E = TypeVar("E", bound="Event")

Handler = Callable[[E], None]


@dataclass(slots=True)
class Event:
    """Base class for all events published on the bus."""


@dataclass(slots=True)
class TriggerVisibilityChanged(Event):
    """Emitted when an editable target starts or stops being tracked.

    Attributes:
        visible: Whether the trigger affordance should be shown.
    """

    visible: bool


@dataclass(slots=True)
class TriggerRejected(Event):
    """Emitted when a trigger is refused before any remote call."""

    reason: "TriggerRejection"
    message: str


@dataclass(slots=True)
class SessionStateChanged(Event):
    session_id: str
    previous: "SessionState"
    current: "SessionState"


@dataclass(slots=True)
class PreviewReady(Event):
    """Emitted when rewritten text is ready to preview.

    Attributes:
        session_id: The session the preview belongs to.
        text: The rewritten text.
        parameters: Parameters that produced the text.
        regenerated: True when produced by a regenerate request.
    """

    session_id: str
    text: str
    parameters: "RewriteParameters"
    regenerated: bool = False


@dataclass(slots=True)
class RewriteFailed(Event):
    """Emitted when a rewrite request fails.

    Attributes:
        inline: True when the previous preview is kept and only an inline
            indicator should be shown.
    """

    session_id: str
    kind: "FailureKind"
    message: str
    inline: bool = False


@dataclass(slots=True)
class ApplyCompleted(Event):
    session_id: str
    outcome: "ApplyOutcome"
    message: str
    tier: int


@dataclass(slots=True)
class SessionCancelled(Event):
    session_id: str


class EventBus(Generic[E]):
    """A typed publish-subscribe event bus.

    Bound-method handlers are held weakly so subscribers can be garbage
    collected; plain functions and lambdas are held strongly. Handler
    exceptions are logged and never reach the publisher.

    Not thread-safe: publish from the interactive thread.
    """

    __slots__ = ("_handlers",)

    def __init__(self) -> None:
        self._handlers: DefaultDict[type[Event], list[_HandlerRef]] = defaultdict(list)

    def subscribe(self, event_type: type[E], handler: Handler[E]) -> None:
        self._handlers[event_type].append(_HandlerRef.create(handler))
        logger.debug("Subscribed %s to %s", _handler_name(handler), event_type.__name__)

    def unsubscribe(self, event_type: type[E], handler: Handler[E]) -> None:
        """Remove the first registration of ``handler``; unknown handlers are ignored."""

        handlers = self._handlers.get(event_type)
        if handlers is None:
            return
        for index, handler_ref in enumerate(handlers):
            if handler_ref.matches(handler):
                handlers.pop(index)
                return

    def publish(self, event: E) -> None:
        event_type = type(event)
        handlers = self._handlers.get(event_type)
        if not handlers:
            logger.debug("No handlers for %s", event_type.__name__)
            return

        dead: list[int] = []
        for index, handler_ref in enumerate(list(handlers)):
            handler = handler_ref.resolve()
            if handler is None:
                dead.append(index)
                continue
            try:
                handler(event)
            except Exception:
                logger.exception(
                    "Handler %s raised for event %s",
                    _handler_name(handler),
                    event_type.__name__,
                )
        for index in reversed(dead):
            handlers.pop(index)

    def clear(self) -> None:
        self._handlers.clear()

    def handler_count(self, event_type: type[E] | None = None) -> int:
        if event_type is not None:
            return len(self._handlers.get(event_type, []))
        return sum(len(handlers) for handlers in self._handlers.values())


class _HandlerRef:
    __slots__ = ("_ref", "_is_weak")

    def __init__(self, handler_ref: WeakMethod | Handler, is_weak: bool) -> None:
        self._ref = handler_ref
        self._is_weak = is_weak

    @classmethod
    def create(cls, handler: Handler) -> "_HandlerRef":
        if hasattr(handler, "__self__") and hasattr(handler, "__func__"):
            try:
                return cls(WeakMethod(handler), is_weak=True)
            except TypeError:
                pass
        return cls(handler, is_weak=False)

    def resolve(self) -> Handler | None:
        if not self._is_weak:
            return self._ref  # type: ignore[return-value]
        return self._ref()  # type: ignore[operator]

    def matches(self, handler: Handler) -> bool:
        resolved = self.resolve()
        return resolved is not None and resolved == handler


def _handler_name(handler: Handler) -> str:
    if hasattr(handler, "__self__") and hasattr(handler, "__func__"):
        return f"{type(handler.__self__).__name__}.{handler.__func__.__name__}"
    return getattr(handler, "__name__", repr(handler))


__all__ = [
    "ApplyCompleted",
    "Event",
    "EventBus",
    "Handler",
    "PreviewReady",
    "RewriteFailed",
    "SessionCancelled",
    "SessionStateChanged",
    "TriggerRejected",
    "TriggerVisibilityChanged",
]
