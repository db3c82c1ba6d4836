from __future__ import annotations

import threading

import pytest

from textenhancer.core.results import ElementGone
from textenhancer.host.registry import ElementHandle, ElementRegistry


class _Element:
    pass


def test_register_and_resolve_round_trip() -> None:
    registry = ElementRegistry()
    element = _Element()

    handle = registry.register(element)

    assert registry.resolve(handle) is element
    assert registry.is_live(handle)
    assert len(registry) == 1


def test_registering_the_same_element_reuses_its_handle() -> None:
    registry = ElementRegistry()
    element = _Element()

    assert registry.register(element) == registry.register(element)
    assert len(registry) == 1


def test_invalidated_handle_resolves_gone_even_after_slot_reuse() -> None:
    registry = ElementRegistry()
    stale = registry.register(_Element())

    assert registry.invalidate(stale) is True
    replacement = _Element()
    fresh = registry.register(replacement)

    assert fresh.slot == stale.slot
    assert fresh.generation == stale.generation + 1
    assert isinstance(registry.resolve(stale), ElementGone)
    assert registry.resolve(fresh) is replacement
    assert registry.invalidate(stale) is False


def test_unknown_handle_is_gone() -> None:
    registry = ElementRegistry()

    assert isinstance(registry.resolve(ElementHandle(slot=7, generation=0)), ElementGone)


def test_full_registry_evicts_oldest_entry() -> None:
    registry = ElementRegistry(max_entries=2)
    first = registry.register(_Element())
    second = registry.register(_Element())

    third = registry.register(_Element())

    assert not registry.is_live(first)
    assert registry.is_live(second)
    assert registry.is_live(third)
    assert len(registry) == 2


def test_invalidate_all_retires_every_handle() -> None:
    registry = ElementRegistry()
    handles = [registry.register(_Element()) for _ in range(3)]

    registry.invalidate_all()

    assert all(isinstance(registry.resolve(handle), ElementGone) for handle in handles)
    assert len(registry) == 0


def test_register_rejects_missing_element() -> None:
    with pytest.raises(ValueError):
        ElementRegistry().register(None)


def test_concurrent_registration_keeps_count_consistent() -> None:
    registry = ElementRegistry(max_entries=500)
    elements = [_Element() for _ in range(200)]

    def _worker(chunk: list[_Element]) -> None:
        for element in chunk:
            registry.register(element)

    threads = [threading.Thread(target=_worker, args=(elements[i::4],)) for i in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(registry) == 200
