"""Completion provider wire models (OpenAI-compatible chat completions)."""

from typing import Literal

from pydantic import BaseModel, Field

Role = Literal["system", "user", "assistant"]


class PromptMessage(BaseModel):
    """One role-tagged prompt block."""

    role: Role
    content: str


class CompletionOptions(BaseModel):
    """Sampling options sent with every completion request."""

    model: str
    temperature: float = Field(0.5, ge=0, le=2)
    top_p: float = Field(0.7, gt=0, le=1)
    max_tokens: int = Field(1024, gt=0)


class CompletionRequest(BaseModel):
    """Request body for POST /chat/completions."""

    model: str
    messages: list[PromptMessage]
    temperature: float
    top_p: float
    max_tokens: int
    stream: bool = False

    @classmethod
    def build(
        cls, prompt: list[PromptMessage], options: CompletionOptions, *, stream: bool
    ) -> "CompletionRequest":
        return cls(
            model=options.model,
            messages=prompt,
            temperature=options.temperature,
            top_p=options.top_p,
            max_tokens=options.max_tokens,
            stream=stream,
        )


class ChoiceMessage(BaseModel):
    role: str | None = None
    content: str | None = None


class Choice(BaseModel):
    message: ChoiceMessage


class CompletionResponse(BaseModel):
    """Non-streaming response body. Extra provider fields are ignored."""

    choices: list[Choice] = Field(..., min_length=1)

    @property
    def reply(self) -> str | None:
        return self.choices[0].message.content


class Delta(BaseModel):
    content: str | None = None


class StreamChoice(BaseModel):
    delta: Delta


class StreamChunk(BaseModel):
    """One streamed `data:` payload.

    Providers may send chunks without choices (usage reports); those carry no
    content.
    """

    choices: list[StreamChoice] = Field(default_factory=list)

    @property
    def fragment(self) -> str | None:
        if not self.choices:
            return None
        return self.choices[0].delta.content
