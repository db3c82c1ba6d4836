"""Shared pytest fixtures."""

from __future__ import annotations

import logging

import pytest

from textenhancer.core.parameters import RewriteParameters


@pytest.fixture
def parameters() -> RewriteParameters:
    return RewriteParameters(tone="Professional", target_word_count=50)


@pytest.fixture(autouse=True)
def _isolated_environment(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    """Keep tests away from the user's settings, logs, and environment overrides."""

    for name in (
        "TEXTENHANCER_API_KEY",
        "TEXTENHANCER_BASE_URL",
        "TEXTENHANCER_MODEL",
        "TEXTENHANCER_TONE",
        "TEXTENHANCER_LANGUAGE",
        "TEXTENHANCER_DEBUG",
        "TEXTENHANCER_DEBUG_LOGGING",
        "TEXTENHANCER_PREVIEW_MODE",
        "TEXTENHANCER_REQUEST_TIMEOUT",
        "TEXTENHANCER_APPLY_SETTLE_DELAY",
        "TEXTENHANCER_TARGET_WORD_COUNT",
        "TEXTENHANCER_MAX_RETRIES",
        "TEXTENHANCER_SETTINGS_PATH",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("TEXTENHANCER_LOG_DIR", str(tmp_path / "logs"))
    logging.getLogger("textenhancer").setLevel(logging.DEBUG)
