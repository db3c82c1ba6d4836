"""In-memory host used by the headless command line and the test-suite."""

from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass, field
from typing import Dict, List

from ..core.results import ElementGone

__all__ = ["InMemoryHost", "MemoryClipboard", "MemoryElement"]

LOGGER = logging.getLogger(__name__)
_ids = itertools.count(1)


@dataclass(eq=False)
class MemoryElement:
    """A simulated editable field.

    ``fail_writes``/``fail_pastes`` make the corresponding host call return
    ``False``; ``raise_on_write`` makes writes raise instead.
    """

    text: str = ""
    editable: bool = True
    element_id: int = field(default_factory=lambda: next(_ids))
    fail_writes: bool = False
    fail_pastes: bool = False
    raise_on_write: bool = False


class MemoryClipboard:
    def __init__(self) -> None:
        self.text: str | None = None
        self.history: List[str] = []

    def set_text(self, text: str) -> None:
        self.text = text
        self.history.append(text)


class InMemoryHost:
    """A :class:`~textenhancer.host.bridge.HostBridge` over plain objects."""

    def __init__(self, clipboard: MemoryClipboard | None = None) -> None:
        self.clipboard = clipboard or MemoryClipboard()
        self.focused: MemoryElement | None = None
        self._elements: Dict[int, MemoryElement] = {}
        self.calls: List[tuple[str, int]] = []

    def add(self, element: MemoryElement | None = None, *, text: str = "") -> MemoryElement:
        element = element or MemoryElement(text=text)
        self._elements[element.element_id] = element
        return element

    def remove(self, element: MemoryElement) -> None:
        self._elements.pop(element.element_id, None)
        if self.focused is element:
            self.focused = None

    def focus(self, element: MemoryElement | None) -> None:
        self.focused = element

    def read_text(self, element: MemoryElement) -> str | ElementGone:
        self.calls.append(("read", element.element_id))
        if element.element_id not in self._elements:
            return ElementGone("Element was removed from the host")
        return element.text

    def write_text(self, element: MemoryElement, text: str) -> bool:
        self.calls.append(("write", element.element_id))
        if element.raise_on_write:
            raise RuntimeError("Host refused the write")
        if element.element_id not in self._elements or element.fail_writes or not element.editable:
            return False
        element.text = text
        return True

    def current_focused_element(self) -> MemoryElement | None:
        self.calls.append(("focused", self.focused.element_id if self.focused else 0))
        return self.focused

    def paste_clipboard_into(self, element: MemoryElement) -> bool:
        self.calls.append(("paste", element.element_id))
        if element.element_id not in self._elements or element.fail_pastes:
            return False
        if self.clipboard.text is None:
            return False
        element.text = self.clipboard.text
        return True
