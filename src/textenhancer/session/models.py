"""Session state models for one enhancement from trigger to terminal state."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING

from ..core.parameters import RewriteParameters
from ..core.results import RewriteFailure, RewriteResult
from ..host.tracker import TargetSnapshot

if TYPE_CHECKING:  # pragma: no cover
    from ..services.settings import Settings

LOGGER = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SessionState(Enum):
    """Lifecycle states of the session state machine.

    ``IDLE`` is both the initial and the terminal state; ``CANCELLED`` is
    reported on the way back to ``IDLE`` and ``FAILED`` waits for the user
    to acknowledge the failure.
    """

    IDLE = "idle"
    ENHANCING = "enhancing"
    PREVIEWING = "previewing"
    REGENERATING = "regenerating"
    APPLYING = "applying"
    CANCELLED = "cancelled"
    FAILED = "failed"

    @property
    def is_busy(self) -> bool:
        return self in (SessionState.ENHANCING, SessionState.REGENERATING, SessionState.APPLYING)


@dataclass(slots=True)
class Session:
    """State owned by the single active session.

    Attributes:
        session_id: Unique identifier for this session.
        target: Snapshot captured at trigger time.
        source_text: Text captured at trigger time; every regenerate
            re-derives from it.
        parameters: Parameters of the most recent dispatch.
        last_result: Most recent successful rewrite, if any.
        preview_text: Live preview text, including user edits.
        pending_request_id: Identifier of the in-flight request, if any.
        last_failure: Most recent failure, cleared on success.
    """

    session_id: str
    target: TargetSnapshot
    source_text: str
    parameters: RewriteParameters
    state: SessionState = SessionState.IDLE
    last_result: RewriteResult | None = None
    preview_text: str = ""
    pending_request_id: str | None = None
    last_failure: RewriteFailure | None = None
    created_at: datetime = field(default_factory=_utcnow)


@dataclass(slots=True, frozen=True)
class SessionConfig:
    """Configuration passed into the controller at construction.

    Attributes:
        default_parameters: Used for any preference that is unset or invalid.
        preview_mode: When false, a successful rewrite is applied straight
            away without waiting for the user.
        settle_delay: Seconds to wait after the preview closes before
            writing, so host focus can return to the original window.
    """

    default_parameters: RewriteParameters = field(
        default_factory=lambda: RewriteParameters(tone="Professional", target_word_count=50)
    )
    preview_mode: bool = True
    settle_delay: float = 0.15

    @classmethod
    def from_settings(cls, settings: "Settings") -> "SessionConfig":
        """Build a config from ``settings``, keeping the stock defaults for invalid values."""

        defaults = RewriteParameters(tone="Professional", target_word_count=50)
        try:
            defaults = RewriteParameters(
                tone=settings.tone,
                target_word_count=settings.target_word_count,
                language=settings.language,
            )
        except (TypeError, ValueError) as exc:
            LOGGER.warning("Using stock rewrite defaults: %s", exc)
        return cls(
            default_parameters=defaults,
            preview_mode=bool(settings.preview_mode),
            settle_delay=max(0.0, float(settings.apply_settle_delay or 0.0)),
        )


__all__ = ["Session", "SessionConfig", "SessionState"]
