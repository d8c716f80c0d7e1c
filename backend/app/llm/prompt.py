"""Context window builder for document-grounded chat turns."""

from collections.abc import Sequence

from backend.app.db.repositories import MessageRecord
from backend.app.models.completion import PromptMessage

SYSTEM_PROMPT = "You are a helpful assistant that answers questions based on provided PDF content."

EMPTY_EXCERPT = "(no document content available)"
NO_PRIOR_TURNS = "(none)"


def render_prior_turns(prior_messages: Sequence[MessageRecord]) -> str:
    """Render prior messages oldest first as `User:` / `Assistant:` lines."""
    if not prior_messages:
        return NO_PRIOR_TURNS

    rendered = []
    for message in prior_messages:
        speaker = "User" if message.is_user_message else "Assistant"
        rendered.append(f"{speaker}: {message.text}")
    return "\n\n".join(rendered)


def build_prompt(
    document_excerpt: str,
    prior_messages: Sequence[MessageRecord],
    new_user_text: str,
) -> list[PromptMessage]:
    """Assemble the prompt for one turn.

    Args:
        document_excerpt: Extracted document text (may be empty)
        prior_messages: Earlier messages of the conversation, oldest first
        new_user_text: The question being asked now

    Returns:
        Three role-tagged blocks: system instruction, grounding context, question

    Raises:
        ValueError: If new_user_text is blank
    """
    if not new_user_text or not new_user_text.strip():
        raise ValueError("new_user_text must not be blank")

    excerpt = document_excerpt if document_excerpt.strip() else EMPTY_EXCERPT
    context = (
        f"The following content is from a PDF:\n\n{excerpt}\n\n"
        f"Previous interactions:\n\n{render_prior_turns(prior_messages)}"
    )

    return [
        PromptMessage(role="system", content=SYSTEM_PROMPT),
        PromptMessage(role="user", content=context),
        PromptMessage(role="user", content=new_user_text),
    ]
