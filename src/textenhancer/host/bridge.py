"""Protocols describing the host accessibility and clipboard collaborators."""

from __future__ import annotations

from typing import Any, Protocol

from ..core.results import ElementGone

__all__ = ["Clipboard", "ElementRef", "HostBridge"]

# Raw platform handle; opaque to the engine and only touched via the registry.
ElementRef = Any


class HostBridge(Protocol):
    """Low-level read/write operations provided by the host platform.

    Implementations may raise from any method; the engine treats an
    exception the same as an unsuccessful call.
    """

    def read_text(self, element: ElementRef) -> str | ElementGone:
        ...

    def write_text(self, element: ElementRef, text: str) -> bool:
        ...

    def current_focused_element(self) -> ElementRef | None:
        ...

    def paste_clipboard_into(self, element: ElementRef) -> bool:
        ...


class Clipboard(Protocol):
    """Host clipboard collaborator."""

    def set_text(self, text: str) -> None:
        ...
