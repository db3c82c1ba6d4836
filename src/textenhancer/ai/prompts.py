"""Prompt templates for the rewrite service.

The system instruction always carries a tone directive, an approximate
word-count directive, and exactly one language directive.
"""

from __future__ import annotations

from typing import Dict, List

from ..core.parameters import RewriteParameters, RewriteRequest

ASSISTANT_PREAMBLE = "You are a helpful assistant that rewrites text."
RETURN_ONLY_DIRECTIVE = "Return ONLY the rewritten text, nothing else."
PRESERVE_LANGUAGE_DIRECTIVE = "Keep the same language as the input. "


def tone_directive(parameters: RewriteParameters) -> str:
    return f"Tone: {parameters.tone}. "


def length_directive(parameters: RewriteParameters) -> str:
    return f"Target Length: Approximately {parameters.target_word_count} words. "


def language_directive(parameters: RewriteParameters) -> str:
    """Return the translate directive, or the preserve directive for ``auto``."""

    if parameters.preserves_language:
        return PRESERVE_LANGUAGE_DIRECTIVE
    return f"Translate the text to {parameters.language}. "


def build_system_instruction(parameters: RewriteParameters) -> str:
    return (
        f"{ASSISTANT_PREAMBLE} "
        + tone_directive(parameters)
        + length_directive(parameters)
        + language_directive(parameters)
        + RETURN_ONLY_DIRECTIVE
    )


def build_messages(request: RewriteRequest) -> List[Dict[str, str]]:
    """Return the chat messages for ``request``; the source text is sent verbatim."""

    return [
        {"role": "system", "content": build_system_instruction(request.parameters)},
        {"role": "user", "content": request.source_text},
    ]


__all__ = [
    "ASSISTANT_PREAMBLE",
    "PRESERVE_LANGUAGE_DIRECTIVE",
    "RETURN_ONLY_DIRECTIVE",
    "build_messages",
    "build_system_instruction",
    "language_directive",
    "length_directive",
    "tone_directive",
]
