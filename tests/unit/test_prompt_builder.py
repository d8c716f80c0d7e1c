"""Tests for the context window builder."""

import uuid
from datetime import UTC, datetime, timedelta

import pytest

from backend.app.db.repositories import MessageRecord
from backend.app.llm.prompt import SYSTEM_PROMPT, build_prompt


def _message(text: str, is_user: bool, offset: int) -> MessageRecord:
    return MessageRecord(
        id=uuid.uuid4(),
        document_id=uuid.uuid4(),
        user_id="u1",
        is_user_message=is_user,
        text=text,
        created_at=datetime(2026, 1, 1, tzinfo=UTC) + timedelta(seconds=offset),
    )


def test_build_prompt_has_three_blocks_in_order() -> None:
    prompt = build_prompt("A widget is a small device.", [], "What is a widget?")

    assert [m.role for m in prompt] == ["system", "user", "user"]
    assert prompt[0].content == SYSTEM_PROMPT
    assert prompt[1].content.startswith("The following content is from a PDF:\n\nA widget is a small device.")
    assert prompt[2].content == "What is a widget?"


def test_build_prompt_renders_prior_turns_oldest_first() -> None:
    prior = [
        _message("Hi", True, 0),
        _message("Hello! Ask me about the PDF.", False, 1),
    ]

    prompt = build_prompt("text", prior, "Next?")
    context = prompt[1].content

    assert context.endswith("Previous interactions:\n\nUser: Hi\n\nAssistant: Hello! Ask me about the PDF.")


def test_build_prompt_marks_missing_history_and_excerpt() -> None:
    prompt = build_prompt("   ", [], "Anything?")

    assert "(no document content available)" in prompt[1].content
    assert prompt[1].content.endswith("Previous interactions:\n\n(none)")


def test_build_prompt_keeps_user_text_verbatim() -> None:
    text = "  What about *bold* and\nnew lines?  "
    prompt = build_prompt("doc", [], text)
    assert prompt[-1].content == text


@pytest.mark.parametrize("blank", ["", "   ", "\n\t"])
def test_build_prompt_rejects_blank_user_text(blank: str) -> None:
    with pytest.raises(ValueError):
        build_prompt("doc", [], blank)
