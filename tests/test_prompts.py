from __future__ import annotations

from textenhancer.ai.prompts import (
    PRESERVE_LANGUAGE_DIRECTIVE,
    build_messages,
    build_system_instruction,
)
from textenhancer.core.parameters import RewriteParameters, RewriteRequest


def _count_language_directives(instruction: str) -> int:
    return instruction.count("Translate the text to") + instruction.count(PRESERVE_LANGUAGE_DIRECTIVE.strip())


def test_auto_language_keeps_input_language() -> None:
    params = RewriteParameters(tone="Professional", target_word_count=50)

    instruction = build_system_instruction(params)

    assert instruction == (
        "You are a helpful assistant that rewrites text. Tone: Professional. "
        "Target Length: Approximately 50 words. Keep the same language as the input. "
        "Return ONLY the rewritten text, nothing else."
    )
    assert _count_language_directives(instruction) == 1


def test_named_language_requests_translation() -> None:
    params = RewriteParameters(tone="Casual", target_word_count=20, language="Spanish")

    instruction = build_system_instruction(params)

    assert "Tone: Casual." in instruction
    assert "Approximately 20 words." in instruction
    assert "Translate the text to Spanish." in instruction
    assert "Keep the same language" not in instruction
    assert _count_language_directives(instruction) == 1


def test_messages_send_source_text_verbatim() -> None:
    source = "  hey can u send me the report\n"
    request = RewriteRequest(source, RewriteParameters(tone="Formal", target_word_count=10))

    messages = build_messages(request)

    assert [message["role"] for message in messages] == ["system", "user"]
    assert messages[1]["content"] == source
