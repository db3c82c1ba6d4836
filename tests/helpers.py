"""Shared test helpers and stub classes.

Import from here instead of duplicating fakes in individual test files.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from types import SimpleNamespace
from typing import Any, List, Sequence, cast

from openai import AsyncOpenAI

from textenhancer.ai.client import ClientSettings, RewriteClient
from textenhancer.core.parameters import RewriteParameters
from textenhancer.core.results import RewriteOutcome, RewriteResult
from textenhancer.events import Event, EventBus
from textenhancer.host.apply_chain import ApplyFallbackChain
from textenhancer.host.memory import InMemoryHost, MemoryElement
from textenhancer.host.tracker import TargetTracker
from textenhancer.services.preferences import MemoryPreferenceStore
from textenhancer.session.controller import SessionController
from textenhancer.session.models import SessionConfig


def completion(content: str | None) -> SimpleNamespace:
    """Build an object shaped like an OpenAI chat completion response."""

    return SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(role="assistant", content=content))]
    )


class FakeCompletions:
    """Stands in for ``client.chat.completions`` and records every call.

    ``responses`` is consumed in order; exceptions are raised, anything else
    is returned as-is.
    """

    def __init__(self, responses: Sequence[Any]):
        self._responses = list(responses)
        self.calls: list[dict[str, Any]] = []

    async def create(self, **kwargs: Any) -> Any:
        self.calls.append(kwargs)
        response = self._responses.pop(0) if len(self._responses) > 1 else self._responses[0]
        if isinstance(response, BaseException):
            raise response
        return response


class FakeOpenAI:
    def __init__(self, *responses: Any):
        self.completions = FakeCompletions(responses)
        self.chat = SimpleNamespace(completions=self.completions)
        self.closed = False

    async def close(self) -> None:
        self.closed = True


def make_client(*responses: Any, **overrides: Any) -> tuple[RewriteClient, FakeOpenAI]:
    options: dict[str, Any] = {
        "base_url": "https://example.invalid/v1",
        "api_key": "sk-test",
        "model": "gpt-3.5-turbo",
        "retry_min_seconds": 0,
        "retry_max_seconds": 0,
    }
    options.update(overrides)
    fake = FakeOpenAI(*responses)
    client = RewriteClient(ClientSettings(**options), client=cast(AsyncOpenAI, fake))
    return client, fake


@dataclass
class BackendCall:
    text: str
    parameters: RewriteParameters
    release: asyncio.Event = field(default_factory=asyncio.Event)
    outcome: RewriteOutcome | None = None
    cancelled: bool = False


class GatedBackend:
    """Rewrite backend whose calls block until the test releases them."""

    def __init__(self, *, has_credential: bool = True) -> None:
        self.has_credential = has_credential
        self.calls: List[BackendCall] = []
        self._started = asyncio.Event()

    async def enhance(self, text: str, parameters: RewriteParameters) -> RewriteOutcome:
        call = BackendCall(text, parameters)
        self.calls.append(call)
        self._started.set()
        try:
            await call.release.wait()
        except asyncio.CancelledError:
            call.cancelled = True
            raise
        assert call.outcome is not None
        return call.outcome

    async def started(self, count: int = 1) -> BackendCall:
        while len(self.calls) < count:
            self._started.clear()
            await self._started.wait()
        return self.calls[count - 1]

    def resolve(self, index: int, outcome: RewriteOutcome | str) -> None:
        call = self.calls[index]
        call.outcome = RewriteResult(outcome) if isinstance(outcome, str) else outcome
        call.release.set()


class ImmediateBackend:
    """Backend that answers every call straight away from a queue."""

    def __init__(self, *outcomes: RewriteOutcome | str, has_credential: bool = True) -> None:
        self.has_credential = has_credential
        self._outcomes = [RewriteResult(item) if isinstance(item, str) else item for item in outcomes]
        self.calls: List[tuple[str, RewriteParameters]] = []

    async def enhance(self, text: str, parameters: RewriteParameters) -> RewriteOutcome:
        self.calls.append((text, parameters))
        if len(self._outcomes) > 1:
            return self._outcomes.pop(0)
        return self._outcomes[0]


class EventRecorder:
    def __init__(self, bus: EventBus, *event_types: type[Event]) -> None:
        self.events: list[Event] = []
        for event_type in event_types:
            bus.subscribe(event_type, self.record)

    def record(self, event: Event) -> None:
        self.events.append(event)

    def of_type(self, event_type: type[Event]) -> list[Any]:
        return [event for event in self.events if isinstance(event, event_type)]


@dataclass
class Harness:
    host: InMemoryHost
    element: MemoryElement
    tracker: TargetTracker
    preferences: MemoryPreferenceStore
    controller: SessionController
    bus: EventBus


def build_harness(
    backend: Any,
    *,
    text: str = "hey can u send me the report",
    preferences: dict[str, Any] | None = None,
    preview_mode: bool = True,
    settle_delay: float = 0,
) -> Harness:
    bus: EventBus = EventBus()
    host = InMemoryHost()
    element = host.add(text=text)
    host.focus(element)
    tracker = TargetTracker(host, event_bus=bus)
    tracker.on_focus_changed(element, True)
    store = MemoryPreferenceStore(preferences)
    controller = SessionController(
        tracker,
        backend,
        store,
        ApplyFallbackChain(host, host.clipboard),
        config=SessionConfig(preview_mode=preview_mode, settle_delay=settle_delay),
        event_bus=bus,
    )
    return Harness(host, element, tracker, store, controller, bus)
