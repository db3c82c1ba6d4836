"""Arena of host elements addressed through generation-checked handles.

Raw platform handles have an unclear lifetime, so the engine never keeps
them directly. Each element lives in a slot; a handle records the slot and
the generation it was issued under. Invalidating a slot bumps its
generation, after which every outstanding handle for it resolves to
:class:`ElementGone`.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import List

from ..core.results import ElementGone
from .bridge import ElementRef

__all__ = ["ElementHandle", "ElementRegistry"]

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class ElementHandle:
    slot: int
    generation: int


@dataclass(slots=True)
class _Slot:
    generation: int = 0
    element: ElementRef = None
    live: bool = False
    registered_at: int = 0


class ElementRegistry:
    """Thread-safe registry mapping handles to raw host elements.

    At most ``max_entries`` elements stay live; registering beyond that
    retires the oldest entry, whose handles then resolve as gone.
    """

    def __init__(self, *, max_entries: int = 64) -> None:
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self._max_entries = max_entries
        self._slots: List[_Slot] = []
        self._free: List[int] = []
        self._counter = 0
        self._lock = threading.Lock()

    def register(self, element: ElementRef) -> ElementHandle:
        """Store ``element`` and return its handle.

        Registering an element that is already live returns the existing
        handle rather than allocating a new slot.
        """

        if element is None:
            raise ValueError("Cannot register a missing element")
        with self._lock:
            for index, slot in enumerate(self._slots):
                if slot.live and slot.element is element:
                    return ElementHandle(index, slot.generation)
            if self._live_count() >= self._max_entries:
                self._evict_oldest()
            if self._free:
                index = self._free.pop()
                slot = self._slots[index]
            else:
                index = len(self._slots)
                slot = _Slot()
                self._slots.append(slot)
            self._counter += 1
            slot.element = element
            slot.live = True
            slot.registered_at = self._counter
            LOGGER.debug("Registered element in slot %d (generation %d)", index, slot.generation)
            return ElementHandle(index, slot.generation)

    def resolve(self, handle: ElementHandle) -> ElementRef | ElementGone:
        with self._lock:
            slot = self._slot_for(handle)
            if slot is None:
                return ElementGone("Element handle is stale")
            return slot.element

    def is_live(self, handle: ElementHandle) -> bool:
        with self._lock:
            return self._slot_for(handle) is not None

    def invalidate(self, handle: ElementHandle) -> bool:
        """Retire ``handle``; returns ``False`` when it was already stale."""

        with self._lock:
            slot = self._slot_for(handle)
            if slot is None:
                return False
            self._retire(handle.slot, slot)
            return True

    def invalidate_all(self) -> None:
        with self._lock:
            for index, slot in enumerate(self._slots):
                if slot.live:
                    self._retire(index, slot)

    def __len__(self) -> int:
        with self._lock:
            return self._live_count()

    def _live_count(self) -> int:
        return sum(1 for slot in self._slots if slot.live)

    def _evict_oldest(self) -> None:
        live = [(slot.registered_at, index) for index, slot in enumerate(self._slots) if slot.live]
        if not live:
            return
        _, index = min(live)
        LOGGER.debug("Registry full; evicting slot %d", index)
        self._retire(index, self._slots[index])

    def _slot_for(self, handle: ElementHandle) -> _Slot | None:
        if not 0 <= handle.slot < len(self._slots):
            return None
        slot = self._slots[handle.slot]
        if not slot.live or slot.generation != handle.generation:
            return None
        return slot

    def _retire(self, index: int, slot: _Slot) -> None:
        slot.generation += 1
        slot.element = None
        slot.live = False
        self._free.append(index)
        LOGGER.debug("Invalidated slot %d (now generation %d)", index, slot.generation)
