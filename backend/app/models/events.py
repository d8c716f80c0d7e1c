"""Server-sent event payloads for streamed replies."""

from pydantic import BaseModel

DONE_FRAME = "data: [DONE]\n\n"


class ContentFrame(BaseModel):
    """One streamed reply fragment."""

    content: str

    def to_sse(self) -> str:
        return f"data: {self.model_dump_json()}\n\n"
