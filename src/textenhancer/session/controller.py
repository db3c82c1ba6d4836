"""Session controller: the enhance → preview → regenerate → apply state machine.

The controller owns the single active :class:`Session`, talks to the rewrite
client through cancellable request handles, and reports every transition on
the event bus for the presentation layer to render. User intents arrive as
plain method calls from the interactive thread, which must be running an
asyncio event loop.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from typing import Any, Protocol

from ..core.parameters import RewriteParameters
from ..core.results import (
    ApplyOutcome,
    ApplyReport,
    ElementGone,
    FailureKind,
    NoTarget,
    RewriteFailure,
    RewriteOutcome,
    RewriteResult,
    TriggerRejection,
)
from ..events import (
    ApplyCompleted,
    EventBus,
    PreviewReady,
    RewriteFailed,
    SessionCancelled,
    SessionStateChanged,
    TriggerRejected,
)
from ..host.apply_chain import ApplyFallbackChain
from ..host.tracker import TargetTracker
from ..services.preferences import PreferenceStore, load_parameters, save_parameters
from .dispatch import RequestDispatcher, RequestHandle
from .models import Session, SessionConfig, SessionState

__all__ = ["RewriteBackend", "SessionController"]

LOGGER = logging.getLogger(__name__)

_REGENERATE_STATES = frozenset(
    {
        SessionState.ENHANCING,
        SessionState.PREVIEWING,
        SessionState.REGENERATING,
        SessionState.FAILED,
    }
)


class RewriteBackend(Protocol):
    """What the controller needs from :class:`~textenhancer.ai.client.RewriteClient`."""

    @property
    def has_credential(self) -> bool:
        ...

    async def enhance(self, text: str, parameters: RewriteParameters) -> RewriteOutcome:
        ...


class SessionController:
    """Orchestrates one enhancement session at a time.

    Events Emitted:
        - TriggerRejected: trigger refused before any remote call
        - SessionStateChanged: every state transition
        - PreviewReady: rewritten text is ready to show
        - RewriteFailed: a rewrite failed (``inline`` when a preview is kept)
        - ApplyCompleted: the apply chain finished
        - SessionCancelled: the user discarded the session
    """

    def __init__(
        self,
        tracker: TargetTracker,
        client: RewriteBackend,
        preferences: PreferenceStore,
        apply_chain: ApplyFallbackChain,
        *,
        config: SessionConfig | None = None,
        event_bus: EventBus | None = None,
    ) -> None:
        self._tracker = tracker
        self._client = client
        self._preferences = preferences
        self._apply_chain = apply_chain
        self._config = config or SessionConfig()
        self._bus = event_bus or EventBus()
        self._dispatcher = RequestDispatcher()
        self._session: Session | None = None

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def event_bus(self) -> EventBus:
        return self._bus

    @property
    def config(self) -> SessionConfig:
        return self._config

    @property
    def session(self) -> Session | None:
        return self._session

    @property
    def state(self) -> SessionState:
        if self._session is None:
            return SessionState.IDLE
        return self._session.state

    @property
    def pending_request(self) -> RequestHandle | None:
        return self._dispatcher.current

    # ------------------------------------------------------------------
    # User intents
    # ------------------------------------------------------------------

    def trigger(self) -> Session | TriggerRejection:
        """Start a session for the tracked target.

        Any live session is cancelled first. Validation failures leave the
        controller idle and publish :class:`TriggerRejected`.
        """

        if self._session is not None:
            LOGGER.debug("Trigger replaces session %s", self._session.session_id)
            self.cancel()

        snapshot = self._tracker.capture()
        if isinstance(snapshot, NoTarget):
            return self._reject(TriggerRejection.NO_TARGET, snapshot.reason)
        if not self._client.has_credential:
            return self._reject(TriggerRejection.MISSING_CREDENTIAL)

        parameters = load_parameters(self._preferences, self._config.default_parameters)
        refreshed = snapshot.refresh()
        if isinstance(refreshed, ElementGone):
            return self._reject(TriggerRejection.NO_TARGET, refreshed.reason)
        if not refreshed.text.strip():
            return self._reject(TriggerRejection.EMPTY_TEXT)

        session = Session(
            session_id=f"session-{uuid.uuid4().hex[:8]}",
            target=refreshed,
            source_text=refreshed.text,
            parameters=parameters,
        )
        self._session = session
        LOGGER.debug(
            "Session %s started (chars=%d, tone=%s, words=%d, language=%s)",
            session.session_id,
            len(session.source_text),
            parameters.tone,
            parameters.target_word_count,
            parameters.language,
        )
        self._transition(session, SessionState.ENHANCING)
        self._dispatch(session, parameters)
        return session

    def update_preview_text(self, text: str) -> None:
        """Record a user edit made directly in the preview."""

        session = self._session
        if session is None or session.state not in (SessionState.PREVIEWING, SessionState.REGENERATING):
            LOGGER.debug("Ignoring preview edit in state %s", self.state.value)
            return
        session.preview_text = text

    def regenerate(self, parameters: RewriteParameters | None = None, **changes: Any) -> RequestHandle | None:
        """Re-run the captured source text with new parameters.

        Always rewrites ``source_text``, never the previous preview, and
        supersedes any request still in flight.
        """

        session = self._session
        if session is None or session.state not in _REGENERATE_STATES:
            LOGGER.debug("Ignoring regenerate in state %s", self.state.value)
            return None
        base = parameters or session.parameters
        try:
            requested = base.with_changes(**changes) if changes else base
        except (TypeError, ValueError) as exc:
            LOGGER.warning("Ignoring regenerate with invalid parameters: %s", exc)
            return None

        target_state = SessionState.REGENERATING if session.last_result is not None else SessionState.ENHANCING
        if session.state is not target_state:
            self._transition(session, target_state)
        return self._dispatch(session, requested)

    async def apply(self, text: str | None = None) -> ApplyReport | None:
        """Write the preview (or ``text``) back into the captured target.

        The session ends in ``IDLE`` whatever the chain reports.
        """

        session = self._session
        if session is None or session.state is not SessionState.PREVIEWING:
            LOGGER.debug("Ignoring apply in state %s", self.state.value)
            return None
        if text is not None:
            session.preview_text = text
        final_text = session.preview_text

        self._dispatcher.cancel_current()
        session.pending_request_id = None
        self._transition(session, SessionState.APPLYING)

        if self._config.settle_delay > 0:
            await asyncio.sleep(self._config.settle_delay)
        if self._session is not session or session.state is not SessionState.APPLYING:
            LOGGER.debug("Session %s ended before apply could run", session.session_id)
            return None

        try:
            report = self._apply_chain.apply(final_text, session.target)
        except Exception:
            LOGGER.exception("Apply chain raised unexpectedly")
            report = ApplyReport(ApplyOutcome.FAILED, 4, "Text could not be applied")
        LOGGER.info(
            "Session %s apply finished: %s (tier %d)",
            session.session_id,
            report.outcome.value,
            report.tier,
        )
        self._bus.publish(
            ApplyCompleted(
                session_id=session.session_id,
                outcome=report.outcome,
                message=report.message,
                tier=report.tier,
            )
        )
        self._end(session)
        return report

    def cancel(self) -> bool:
        """Discard the session without applying; returns ``False`` when idle."""

        session = self._session
        if session is None:
            return False
        self._dispatcher.cancel_current()
        session.pending_request_id = None
        self._transition(session, SessionState.CANCELLED)
        self._bus.publish(SessionCancelled(session_id=session.session_id))
        self._end(session)
        return True

    def acknowledge_failure(self) -> bool:
        session = self._session
        if session is None or session.state is not SessionState.FAILED:
            return False
        self._end(session)
        return True

    async def wait_pending(self) -> RewriteOutcome | None:
        """Wait until no request is in flight; returns the last outcome seen."""

        outcome: RewriteOutcome | None = None
        handle = self._dispatcher.current
        while handle is not None:
            outcome = await handle.wait()
            following = self._dispatcher.current
            if following is None or following is handle:
                break
            handle = following
        return outcome

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _dispatch(self, session: Session, parameters: RewriteParameters) -> RequestHandle:
        session.parameters = parameters
        handle = self._dispatcher.dispatch(parameters, lambda h: self._run(h, session))
        session.pending_request_id = handle.request_id
        return handle

    async def _run(self, handle: RequestHandle, session: Session) -> RewriteOutcome:
        try:
            outcome = await self._client.enhance(session.source_text, handle.parameters)
        except asyncio.CancelledError:
            LOGGER.debug("%s cancelled in flight", handle.request_id)
            raise
        except Exception:
            LOGGER.exception("Rewrite client raised unexpectedly")
            outcome = RewriteFailure(
                FailureKind.NETWORK_ERROR, "Unexpected error while contacting the rewrite service"
            )
        if self._deliver(handle, session, outcome) and not self._config.preview_mode:
            await self.apply()
        return outcome

    def _deliver(self, handle: RequestHandle, session: Session, outcome: RewriteOutcome) -> bool:
        """Route ``outcome`` into the session; returns ``True`` for a delivered success."""

        if (
            handle.cancelled
            or session is not self._session
            or session.pending_request_id != handle.request_id
        ):
            LOGGER.debug("Discarding stale result for %s", handle.request_id)
            return False
        self._dispatcher.finish(handle)
        session.pending_request_id = None
        regenerated = session.state is SessionState.REGENERATING

        if isinstance(outcome, RewriteResult):
            session.last_result = outcome
            session.last_failure = None
            session.preview_text = outcome.text
            self._persist_parameters(handle.parameters)
            self._transition(session, SessionState.PREVIEWING)
            self._bus.publish(
                PreviewReady(
                    session_id=session.session_id,
                    text=outcome.text,
                    parameters=handle.parameters,
                    regenerated=regenerated,
                )
            )
            return True

        session.last_failure = outcome
        inline = session.last_result is not None
        LOGGER.warning("Session %s rewrite failed: %s", session.session_id, outcome)
        self._transition(session, SessionState.PREVIEWING if inline else SessionState.FAILED)
        self._bus.publish(
            RewriteFailed(
                session_id=session.session_id,
                kind=outcome.kind,
                message=outcome.message,
                inline=inline,
            )
        )
        return False

    def _persist_parameters(self, parameters: RewriteParameters) -> None:
        try:
            save_parameters(self._preferences, parameters)
        except Exception as exc:
            LOGGER.warning("Failed to persist rewrite preferences: %s", exc)

    def _reject(self, reason: TriggerRejection, detail: str | None = None) -> TriggerRejection:
        LOGGER.info("Trigger rejected (%s): %s", reason.value, detail or reason.message)
        self._bus.publish(TriggerRejected(reason=reason, message=reason.message))
        return reason

    def _transition(self, session: Session, state: SessionState) -> None:
        previous = session.state
        session.state = state
        LOGGER.debug("Session %s: %s -> %s", session.session_id, previous.value, state.value)
        self._bus.publish(
            SessionStateChanged(session_id=session.session_id, previous=previous, current=state)
        )

    def _end(self, session: Session) -> None:
        if self._session is not session:
            return
        self._transition(session, SessionState.IDLE)
        self._session = None
