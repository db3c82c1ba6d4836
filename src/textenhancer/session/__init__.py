"""Session state machine and its request dispatch."""

from .controller import RewriteBackend, SessionController
from .dispatch import RequestDispatcher, RequestHandle
from .models import Session, SessionConfig, SessionState

__all__ = [
    "RequestDispatcher",
    "RequestHandle",
    "RewriteBackend",
    "Session",
    "SessionConfig",
    "SessionController",
    "SessionState",
]
