"""Outcome types and the failure taxonomy shared across the engine.

Every externally-facing operation returns one of these values instead of
raising, so callers can branch on the outcome without try/except blocks.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Union

__all__ = [
    "ErrorCode",
    "FailureKind",
    "RewriteResult",
    "RewriteFailure",
    "RewriteOutcome",
    "NoTarget",
    "ElementGone",
    "ApplyOutcome",
    "ApplyReport",
    "TriggerRejection",
]


class ErrorCode:
    """Machine-readable identifiers for every failure the engine reports."""

    # Trigger-time validation
    NO_TARGET = "no_target"
    EMPTY_TEXT = "empty_text"
    MISSING_CREDENTIAL = "missing_credential"

    # Remote call
    NETWORK_ERROR = "network_error"
    AUTH_ERROR = "auth_error"
    EMPTY_RESULT = "empty_result"
    CANCELLED = "cancelled"


class FailureKind(Enum):
    """Failure categories returned by the rewrite client."""

    NETWORK_ERROR = ErrorCode.NETWORK_ERROR
    AUTH_ERROR = ErrorCode.AUTH_ERROR
    EMPTY_RESULT = ErrorCode.EMPTY_RESULT
    CANCELLED = ErrorCode.CANCELLED


@dataclass(slots=True, frozen=True)
class RewriteResult:
    """Successful rewrite carrying the cleaned text."""

    text: str


@dataclass(slots=True, frozen=True)
class RewriteFailure:
    """Typed failure returned in place of a :class:`RewriteResult`."""

    kind: FailureKind
    message: str

    def __str__(self) -> str:
        return f"[{self.kind.value}] {self.message}"


RewriteOutcome = Union[RewriteResult, RewriteFailure]


@dataclass(slots=True, frozen=True)
class NoTarget:
    """Capture result when no editable element is being tracked."""

    reason: str = "No editable field is focused"


@dataclass(slots=True, frozen=True)
class ElementGone:
    """A host element reference that can no longer be used."""

    reason: str = "Element is no longer available"


class ApplyOutcome(Enum):
    APPLIED = "applied"
    PASTED_FROM_CLIPBOARD = "pasted_from_clipboard"
    FAILED = "failed"


@dataclass(slots=True, frozen=True)
class ApplyReport:
    """Result of running the apply fallback chain.

    Attributes:
        outcome: Final outcome of the chain.
        tier: Tier that produced the outcome (1-3 on success, 4 on failure).
        message: Human-readable summary for the presentation layer.
        copied_to_clipboard: Whether the text was placed on the clipboard.
    """

    outcome: ApplyOutcome
    tier: int
    message: str
    copied_to_clipboard: bool = False

    @property
    def succeeded(self) -> bool:
        return self.outcome is not ApplyOutcome.FAILED


class TriggerRejection(Enum):
    """Reasons a trigger never reaches the remote call."""

    NO_TARGET = ErrorCode.NO_TARGET
    EMPTY_TEXT = ErrorCode.EMPTY_TEXT
    MISSING_CREDENTIAL = ErrorCode.MISSING_CREDENTIAL

    @property
    def message(self) -> str:
        return _REJECTION_MESSAGES[self]


_REJECTION_MESSAGES = {
    TriggerRejection.NO_TARGET: "Nothing to enhance: no editable field is focused",
    TriggerRejection.EMPTY_TEXT: "Nothing to enhance: the field is empty",
    TriggerRejection.MISSING_CREDENTIAL: "Please set an API key before enhancing text",
}
