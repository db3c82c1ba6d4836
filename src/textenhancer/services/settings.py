"""Persisted settings, runtime overrides and the encrypted API key.

What lives on disk and what a run actually uses are kept apart:
:meth:`SettingsStore.load_persisted` returns only the file contents, while
:meth:`SettingsStore.load` layers CLI and ``TEXTENHANCER_*`` environment
overrides on top. Writes always start from the persisted view so an
override never leaks into the file.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass, fields, replace
from pathlib import Path
from typing import Any, Callable, Dict, Mapping

from cryptography.fernet import Fernet, InvalidToken

__all__ = [
    "Settings",
    "SettingsStore",
    "SecretVault",
    "redact_secret",
]

LOGGER = logging.getLogger(__name__)
_DEFAULT_SETTINGS_PATH = Path.home() / ".textenhancer" / "settings.json"
_CIPHERTEXT_FIELD = "api_key_ciphertext"
_TRUE_VALUES = {"1", "true", "yes", "on", "debug"}


@dataclass(slots=True)
class Settings:
    """User-configurable settings persisted between sessions."""

    base_url: str = "https://api.openai.com/v1"
    api_key: str = ""
    model: str = "gpt-3.5-turbo"
    organization: str | None = None
    request_timeout: float = 30.0
    max_retries: int = 2
    retry_min_seconds: float = 0.5
    retry_max_seconds: float = 2.0
    tone: str = "Professional"
    target_word_count: int = 50
    language: str = "auto"
    preview_mode: bool = True
    apply_settle_delay: float = 0.15
    debug_logging: bool = False


def _is_text(value: Any) -> bool:
    return isinstance(value, str)


def _is_filled_text(value: Any) -> bool:
    return isinstance(value, str) and bool(value.strip())


def _is_number(value: Any, *, minimum: float, strict: bool = False) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return value > minimum if strict else value >= minimum


def _is_count(value: Any, *, minimum: int) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= minimum


_VALIDATORS: Mapping[str, Callable[[Any], bool]] = {
    "base_url": _is_filled_text,
    "api_key": _is_text,
    "model": _is_filled_text,
    "organization": lambda value: value is None or _is_text(value),
    "request_timeout": lambda value: _is_number(value, minimum=0, strict=True),
    "max_retries": lambda value: _is_count(value, minimum=1),
    "retry_min_seconds": lambda value: _is_number(value, minimum=0),
    "retry_max_seconds": lambda value: _is_number(value, minimum=0),
    "tone": _is_filled_text,
    "target_word_count": lambda value: _is_count(value, minimum=1),
    "language": _is_text,
    "preview_mode": lambda value: isinstance(value, bool),
    "apply_settle_delay": lambda value: _is_number(value, minimum=0),
    "debug_logging": lambda value: isinstance(value, bool),
}


def _parse_flag(raw: str) -> bool:
    return raw.strip().lower() in _TRUE_VALUES


# (environment variable, settings field, parser for the raw string)
_ENV_OVERRIDES: tuple[tuple[str, str, Callable[[str], Any]], ...] = (
    ("TEXTENHANCER_API_KEY", "api_key", str),
    ("TEXTENHANCER_BASE_URL", "base_url", str),
    ("TEXTENHANCER_MODEL", "model", str),
    ("TEXTENHANCER_TONE", "tone", str),
    ("TEXTENHANCER_LANGUAGE", "language", str),
    ("TEXTENHANCER_TARGET_WORD_COUNT", "target_word_count", int),
    ("TEXTENHANCER_MAX_RETRIES", "max_retries", int),
    ("TEXTENHANCER_REQUEST_TIMEOUT", "request_timeout", float),
    ("TEXTENHANCER_APPLY_SETTLE_DELAY", "apply_settle_delay", float),
    ("TEXTENHANCER_PREVIEW_MODE", "preview_mode", _parse_flag),
    ("TEXTENHANCER_DEBUG_LOGGING", "debug_logging", _parse_flag),
)


class SecretVault:
    """Fernet-encrypts the API key with a key file kept next to the settings.

    The key file is created on first use with owner-only permissions.
    Tokens carry a ``fernet:`` prefix; anything else is rejected.
    """

    _PREFIX = "fernet:"

    def __init__(self, *, key_path: Path | None = None) -> None:
        self._key_path = key_path or _DEFAULT_SETTINGS_PATH.with_suffix(".key")
        self._fernet: Fernet | None = None

    @property
    def key_path(self) -> Path:
        return self._key_path

    def encrypt(self, secret: str) -> str:
        if not secret:
            return ""
        token = self._cipher().encrypt(secret.encode("utf-8"))
        return self._PREFIX + token.decode("ascii")

    def decrypt(self, token: str | None) -> str:
        """Return the plaintext for ``token``; raises ``ValueError`` when it cannot."""

        if not token:
            return ""
        if not token.startswith(self._PREFIX):
            raise ValueError(f"Unsupported API key token {token.split(':', 1)[0]!r}")
        try:
            raw = self._cipher().decrypt(token[len(self._PREFIX):].encode("ascii"))
        except InvalidToken as exc:
            raise ValueError("API key token does not match the key file") from exc
        return raw.decode("utf-8")

    def _cipher(self) -> Fernet:
        if self._fernet is None:
            self._fernet = Fernet(self._read_or_create_key())
        return self._fernet

    def _read_or_create_key(self) -> bytes:
        if self._key_path.exists():
            return self._key_path.read_bytes().strip()
        self._key_path.parent.mkdir(parents=True, exist_ok=True)
        key = Fernet.generate_key()
        staging = self._key_path.with_suffix(".key-new")
        staging.write_bytes(key)
        if os.name != "nt":  # pragma: no cover - depends on OS
            os.chmod(staging, 0o600)
        staging.replace(self._key_path)
        LOGGER.info("Created API key encryption key at %s", self._key_path)
        return key


class SettingsStore:
    """Reads and writes :class:`Settings` as JSON with an encrypted API key."""

    def __init__(self, path: Path | None = None, *, vault: SecretVault | None = None) -> None:
        self._path = path or _DEFAULT_SETTINGS_PATH
        self._vault = vault or SecretVault(key_path=self._path.with_suffix(".key"))

    @property
    def path(self) -> Path:
        return self._path

    @property
    def vault(self) -> SecretVault:
        return self._vault

    def load(self, *, overrides: Mapping[str, Any] | None = None) -> Settings:
        """Return the persisted settings with CLI ``overrides`` and the environment applied.

        The result is for the current run only; never pass it to :meth:`save`.
        """

        settings = self.load_persisted()
        if overrides:
            settings = _with_values(settings, overrides, source="command line")
        return _with_values(settings, _environment_values(), source="environment")

    def load_persisted(self) -> Settings:
        """Return exactly what the settings file holds, with invalid fields reset."""

        payload = self._read_file()
        if not payload:
            return Settings()
        ciphertext = payload.pop(_CIPHERTEXT_FIELD, None)
        plaintext = payload.pop("api_key", None)
        settings = _with_values(Settings(), payload, source=str(self._path))

        if ciphertext:
            try:
                settings = replace(settings, api_key=self._vault.decrypt(ciphertext))
            except ValueError as exc:
                LOGGER.warning("Ignoring stored API key: %s", exc)
        elif isinstance(plaintext, str) and plaintext:
            LOGGER.info("Encrypting plaintext API key found in %s", self._path)
            settings = replace(settings, api_key=plaintext)
            try:
                self.save(settings)
            except OSError as exc:  # pragma: no cover - depends on filesystem
                LOGGER.warning("Could not rewrite %s with an encrypted key: %s", self._path, exc)
        return settings

    def update(self, **changes: Any) -> Settings:
        """Apply ``changes`` to the persisted settings and save them.

        Overrides from the environment or the command line are not written.
        """

        unknown = set(changes) - set(_VALIDATORS)
        if unknown:
            raise KeyError(f"Unknown settings fields: {sorted(unknown)}")
        settings = replace(self.load_persisted(), **changes)
        self.save(settings)
        return settings

    def save(self, settings: Settings) -> Path:
        """Write ``settings`` atomically, encrypting the API key."""

        document = asdict(settings)
        api_key = document.pop("api_key") or ""
        if api_key:
            document[_CIPHERTEXT_FIELD] = self._vault.encrypt(api_key)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        staging = self._path.with_suffix(".json-new")
        staging.write_text(json.dumps(document, indent=2, sort_keys=True), encoding="utf-8")
        staging.replace(self._path)
        LOGGER.debug("Settings saved to %s", self._path)
        return self._path

    def _read_file(self) -> Dict[str, Any]:
        try:
            payload = json.loads(self._path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return {}
        except (OSError, json.JSONDecodeError) as exc:
            LOGGER.warning("Ignoring unreadable settings file %s: %s", self._path, exc)
            return {}
        if not isinstance(payload, dict):
            LOGGER.warning("Ignoring settings file %s: expected a JSON object", self._path)
            return {}
        return payload


_FLOAT_FIELDS = frozenset(item.name for item in fields(Settings) if item.type == "float")


def _with_values(settings: Settings, values: Mapping[str, Any], *, source: str) -> Settings:
    accepted: Dict[str, Any] = {}
    for name, value in values.items():
        check = _VALIDATORS.get(name)
        if check is None or value is None:
            continue
        if isinstance(value, int) and not isinstance(value, bool) and name in _FLOAT_FIELDS:
            value = float(value)
        if not check(value):
            LOGGER.warning("Ignoring invalid %s from %s: %r", name, source, value)
            continue
        accepted[name] = value
    if accepted:
        LOGGER.debug("Settings from %s: %s", source, sorted(accepted))
        settings = replace(settings, **accepted)
    return settings



def _environment_values() -> Dict[str, Any]:
    values: Dict[str, Any] = {}
    for env_name, field_name, parse in _ENV_OVERRIDES:
        raw = os.environ.get(env_name)
        if raw is None:
            continue
        try:
            values[field_name] = parse(raw)
        except ValueError:
            LOGGER.warning("Ignoring %s=%r: not a valid %s", env_name, raw, field_name)
    return values


def redact_secret(value: str) -> str:
    stripped = (value or "").strip()
    if not stripped:
        return ""
    if len(stripped) <= 4:
        return "*" * len(stripped)
    return f"{stripped[:2]}{'*' * (len(stripped) - 4)}{stripped[-2:]}"
