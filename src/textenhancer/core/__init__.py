"""Core value types and the outcome taxonomy shared by every layer."""

from .parameters import AUTO_LANGUAGE, RewriteParameters, RewriteRequest, normalize_language
from .results import (
    ApplyOutcome,
    ApplyReport,
    ElementGone,
    ErrorCode,
    FailureKind,
    NoTarget,
    RewriteFailure,
    RewriteOutcome,
    RewriteResult,
    TriggerRejection,
)

__all__ = [
    "AUTO_LANGUAGE",
    "ApplyOutcome",
    "ApplyReport",
    "ElementGone",
    "ErrorCode",
    "FailureKind",
    "NoTarget",
    "RewriteFailure",
    "RewriteOutcome",
    "RewriteParameters",
    "RewriteRequest",
    "RewriteResult",
    "TriggerRejection",
    "normalize_language",
]
