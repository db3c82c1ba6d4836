"""Service layer helpers (settings persistence, preferences)."""

from .preferences import (
    MemoryPreferenceStore,
    PreferenceStore,
    SettingsPreferenceStore,
    load_parameters,
    save_parameters,
)
from .settings import SecretVault, Settings, SettingsStore, redact_secret

__all__ = [
    "MemoryPreferenceStore",
    "PreferenceStore",
    "SecretVault",
    "Settings",
    "SettingsPreferenceStore",
    "SettingsStore",
    "load_parameters",
    "redact_secret",
    "save_parameters",
]
