"""Value types describing a single rewrite request."""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any

__all__ = [
    "AUTO_LANGUAGE",
    "TONE_CHOICES",
    "LENGTH_CHOICES",
    "RewriteParameters",
    "RewriteRequest",
    "normalize_language",
]

AUTO_LANGUAGE = "auto"
TONE_CHOICES: tuple[str, ...] = (
    "Professional",
    "Casual",
    "Friendly",
    "Formal",
    "Concise",
    "Persuasive",
)
LENGTH_CHOICES: tuple[int, ...] = (10, 20, 50, 100, 200)


def normalize_language(value: Any) -> str:
    """Return ``"auto"`` for unset/auto-like values, otherwise the stripped name."""

    if value is None:
        return AUTO_LANGUAGE
    text = str(value).strip()
    if not text or text.lower().startswith(AUTO_LANGUAGE):
        return AUTO_LANGUAGE
    return text


@dataclass(slots=True, frozen=True)
class RewriteParameters:
    """User-adjustable knobs controlling how the service rewrites text."""

    tone: str
    target_word_count: int
    language: str = AUTO_LANGUAGE

    def __post_init__(self) -> None:
        tone = str(self.tone or "").strip()
        if not tone:
            raise ValueError("RewriteParameters tone must be a non-empty string")
        count = self.target_word_count
        if isinstance(count, bool) or not isinstance(count, int):
            raise ValueError("RewriteParameters target_word_count must be an integer")
        if count <= 0:
            raise ValueError("RewriteParameters target_word_count must be positive")
        object.__setattr__(self, "tone", tone)
        object.__setattr__(self, "language", normalize_language(self.language))

    @property
    def preserves_language(self) -> bool:
        return self.language == AUTO_LANGUAGE

    def with_changes(self, **changes: Any) -> "RewriteParameters":
        """Return a validated copy with ``changes`` applied."""

        return replace(self, **changes)


@dataclass(slots=True, frozen=True)
class RewriteRequest:
    """Immutable request built fresh for every dispatch."""

    source_text: str
    parameters: RewriteParameters

    def __post_init__(self) -> None:
        if not isinstance(self.source_text, str) or not self.source_text.strip():
            raise ValueError("RewriteRequest source_text must be a non-empty string")
