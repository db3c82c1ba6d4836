"""Preference-store collaborator holding the last-used rewrite parameters."""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any, Dict, Protocol

from ..core.parameters import RewriteParameters
from .settings import Settings, SettingsStore

__all__ = [
    "LANGUAGE_KEY",
    "TARGET_WORD_COUNT_KEY",
    "TONE_KEY",
    "MemoryPreferenceStore",
    "PreferenceStore",
    "SettingsPreferenceStore",
    "load_parameters",
    "save_parameters",
]

LOGGER = logging.getLogger(__name__)

TONE_KEY = "tone"
TARGET_WORD_COUNT_KEY = "targetWordCount"
LANGUAGE_KEY = "language"

_SETTINGS_FIELDS: Dict[str, str] = {
    TONE_KEY: "tone",
    TARGET_WORD_COUNT_KEY: "target_word_count",
    LANGUAGE_KEY: "language",
}


class PreferenceStore(Protocol):
    def get(self, key: str) -> str | int | None:
        ...

    def set(self, key: str, value: str | int) -> None:
        ...


class MemoryPreferenceStore:
    """Dict-backed store for tests and ephemeral sessions."""

    def __init__(self, initial: Dict[str, Any] | None = None) -> None:
        self.values: Dict[str, Any] = dict(initial or {})

    def get(self, key: str) -> str | int | None:
        return self.values.get(key)

    def set(self, key: str, value: str | int) -> None:
        self.values[key] = value


class SettingsPreferenceStore:
    """Maps preference keys onto :class:`Settings` fields persisted on disk.

    Reads come from the runtime ``settings`` (overrides included). Writes go
    through :meth:`SettingsStore.update`, which touches only the persisted
    field, so an environment API key or model never ends up in the file.
    """

    def __init__(self, store: SettingsStore, settings: Settings | None = None) -> None:
        self._store = store
        self._settings = settings if settings is not None else store.load()

    @property
    def settings(self) -> Settings:
        return self._settings

    def get(self, key: str) -> str | int | None:
        field_name = _SETTINGS_FIELDS.get(key)
        if field_name is None:
            return None
        return getattr(self._settings, field_name)

    def set(self, key: str, value: str | int) -> None:
        field_name = _SETTINGS_FIELDS.get(key)
        if field_name is None:
            raise KeyError(f"Unknown preference key {key!r}")
        self._store.update(**{field_name: value})
        self._settings = replace(self._settings, **{field_name: value})


def load_parameters(store: PreferenceStore, defaults: RewriteParameters) -> RewriteParameters:
    """Build parameters from ``store``, falling back per field to ``defaults``."""

    tone = _read(store, TONE_KEY)
    count = _read(store, TARGET_WORD_COUNT_KEY)
    language = _read(store, LANGUAGE_KEY)

    changes: Dict[str, Any] = {}
    if isinstance(tone, str) and tone.strip():
        changes["tone"] = tone
    elif tone is not None:
        LOGGER.warning("Ignoring invalid stored tone %r", tone)
    coerced = _coerce_count(count)
    if coerced is not None:
        changes["target_word_count"] = coerced
    elif count is not None:
        LOGGER.warning("Ignoring invalid stored word count %r", count)
    if isinstance(language, str):
        changes["language"] = language
    return defaults.with_changes(**changes)


def save_parameters(store: PreferenceStore, parameters: RewriteParameters) -> None:
    store.set(TONE_KEY, parameters.tone)
    store.set(TARGET_WORD_COUNT_KEY, parameters.target_word_count)
    store.set(LANGUAGE_KEY, parameters.language)


def _read(store: PreferenceStore, key: str) -> Any:
    try:
        return store.get(key)
    except Exception as exc:
        LOGGER.warning("Preference store read for %s failed: %s", key, exc)
        return None


def _coerce_count(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = int(value)
    except (TypeError, ValueError):
        return None
    return number if number > 0 else None
