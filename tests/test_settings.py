"""Tests for the settings persistence layer."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from textenhancer.services.settings import SecretVault, Settings, SettingsStore, redact_secret


def _store(tmp_path: Path) -> SettingsStore:
    return SettingsStore(tmp_path / "settings.json", vault=SecretVault(key_path=tmp_path / "settings.key"))


def test_load_returns_defaults_when_file_missing(tmp_path: Path) -> None:
    settings = _store(tmp_path).load()

    assert settings == Settings()
    assert settings.model == "gpt-3.5-turbo"
    assert settings.language == "auto"
    assert settings.preview_mode is True


def test_save_and_load_roundtrip(tmp_path: Path) -> None:
    store = _store(tmp_path)
    original = Settings(
        base_url="https://example.com/v1",
        api_key="super-secret",
        model="gpt-4o-mini",
        tone="Casual",
        target_word_count=100,
        language="German",
        preview_mode=False,
    )

    store.save(original)
    reloaded = _store(tmp_path).load()

    assert reloaded == original


def test_api_key_is_never_written_in_plaintext(tmp_path: Path) -> None:
    store = _store(tmp_path)

    store.save(Settings(api_key="super-secret"))

    raw = (tmp_path / "settings.json").read_text(encoding="utf-8")
    payload = json.loads(raw)
    assert "super-secret" not in raw
    assert "api_key" not in payload
    assert payload["api_key_ciphertext"].startswith("fernet:")


def test_legacy_plaintext_api_key_is_migrated(tmp_path: Path) -> None:
    target = tmp_path / "settings.json"
    target.write_text(json.dumps({"api_key": "plain-key", "model": "gpt-3.5"}), encoding="utf-8")

    loaded = _store(tmp_path).load()

    assert loaded.api_key == "plain-key"
    assert loaded.model == "gpt-3.5"
    migrated = json.loads(target.read_text(encoding="utf-8"))
    assert "api_key" not in migrated
    assert "api_key_ciphertext" in migrated


def test_undecryptable_key_loads_as_empty(tmp_path: Path) -> None:
    target = tmp_path / "settings.json"
    target.write_text(
        json.dumps({"api_key_ciphertext": "fernet:not-a-token"}), encoding="utf-8"
    )

    assert _store(tmp_path).load().api_key == ""


def test_invalid_json_falls_back_to_defaults(tmp_path: Path) -> None:
    (tmp_path / "settings.json").write_text("{not json", encoding="utf-8")

    assert _store(tmp_path).load() == Settings()


def test_unknown_fields_are_ignored(tmp_path: Path) -> None:
    (tmp_path / "settings.json").write_text(
        json.dumps({"tone": "Formal", "theme": "dark", "version": 1}), encoding="utf-8"
    )

    assert _store(tmp_path).load().tone == "Formal"


def test_env_overrides_take_precedence(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    store = _store(tmp_path)
    store.save(Settings(base_url="https://local", api_key="abc"))
    monkeypatch.setenv("TEXTENHANCER_BASE_URL", "https://env-base")
    monkeypatch.setenv("TEXTENHANCER_API_KEY", "env-key")
    monkeypatch.setenv("TEXTENHANCER_PREVIEW_MODE", "0")
    monkeypatch.setenv("TEXTENHANCER_TARGET_WORD_COUNT", "20")
    monkeypatch.setenv("TEXTENHANCER_REQUEST_TIMEOUT", "not-a-number")

    overridden = _store(tmp_path).load()

    assert overridden.base_url == "https://env-base"
    assert overridden.api_key == "env-key"
    assert overridden.preview_mode is False
    assert overridden.target_word_count == 20
    assert overridden.request_timeout == Settings().request_timeout


def test_cli_overrides_skip_none_values(tmp_path: Path) -> None:
    store = _store(tmp_path)
    store.save(Settings(tone="Formal"))

    loaded = store.load(overrides={"tone": None, "language": "Spanish", "unknown": 1})

    assert loaded.tone == "Formal"
    assert loaded.language == "Spanish"


def test_vault_rejects_unknown_prefix(tmp_path: Path) -> None:
    vault = SecretVault(key_path=tmp_path / "settings.key")

    with pytest.raises(ValueError):
        vault.decrypt("rot13:abc")


def test_vault_key_is_reused_between_instances(tmp_path: Path) -> None:
    token = SecretVault(key_path=tmp_path / "settings.key").encrypt("secret")

    assert SecretVault(key_path=tmp_path / "settings.key").decrypt(token) == "secret"


@pytest.mark.parametrize(
    ("value", "expected"),
    [("", ""), ("abcd", "****"), ("sk-123456", "sk*****56")],
)
def test_redact_secret(value: str, expected: str) -> None:
    assert redact_secret(value) == expected


def test_environment_overrides_are_not_persisted(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    store = _store(tmp_path)
    store.save(Settings(tone="Formal"))
    monkeypatch.setenv("TEXTENHANCER_API_KEY", "sk-from-env")
    monkeypatch.setenv("TEXTENHANCER_MODEL", "env-model")

    assert store.load().api_key == "sk-from-env"
    assert store.load_persisted().api_key == ""

    store.update(tone="Casual")
    raw = (tmp_path / "settings.json").read_text(encoding="utf-8")
    monkeypatch.delenv("TEXTENHANCER_API_KEY")
    monkeypatch.delenv("TEXTENHANCER_MODEL")

    reloaded = _store(tmp_path).load()
    assert "api_key_ciphertext" not in json.loads(raw)
    assert reloaded.api_key == ""
    assert reloaded.model == Settings().model
    assert reloaded.tone == "Casual"


def test_update_rejects_unknown_fields(tmp_path: Path) -> None:
    with pytest.raises(KeyError):
        _store(tmp_path).update(theme="dark")


@pytest.mark.parametrize(
    "payload",
    [
        {"target_word_count": 0},
        {"target_word_count": "lots"},
        {"target_word_count": True},
        {"tone": "   "},
        {"request_timeout": -1},
        {"preview_mode": "sometimes"},
    ],
)
def test_invalid_stored_fields_fall_back_to_defaults(tmp_path: Path, payload: dict) -> None:
    (tmp_path / "settings.json").write_text(json.dumps({"language": "French", **payload}), encoding="utf-8")

    loaded = _store(tmp_path).load()

    assert loaded == Settings(language="French")


def test_invalid_environment_word_count_is_ignored(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    _store(tmp_path).save(Settings(target_word_count=100))
    monkeypatch.setenv("TEXTENHANCER_TARGET_WORD_COUNT", "0")

    assert _store(tmp_path).load().target_word_count == 100


def test_integer_timeouts_are_read_as_floats(tmp_path: Path) -> None:
    (tmp_path / "settings.json").write_text(json.dumps({"request_timeout": 10}), encoding="utf-8")

    timeout = _store(tmp_path).load().request_timeout

    assert timeout == 10.0
    assert isinstance(timeout, float)
