"""Conversation transcript export as Markdown or PDF."""

import io
from collections.abc import Sequence
from datetime import datetime

from reportlab.lib.pagesizes import A4
from reportlab.lib.utils import simpleSplit
from reportlab.pdfgen import canvas

from backend.app.db.repositories import DocumentRecord, MessageRecord

MARGIN = 56
HEADER_HEIGHT = 60
FONT = "Helvetica"
FONT_BOLD = "Helvetica-Bold"
FONT_SIZE = 11
LINE_HEIGHT = 15
MESSAGE_SPACING = 12

HEADER_FILL = (44 / 255, 62 / 255, 80 / 255)
USER_FILL = (240 / 255, 240 / 255, 1.0)
ASSISTANT_FILL = (248 / 255, 248 / 255, 248 / 255)
MUTED = (0.5, 0.5, 0.5)


def _speaker(message: MessageRecord) -> str:
    return "You" if message.is_user_message else "Assistant"


def _timestamp(value: datetime) -> str:
    return value.strftime("%Y-%m-%d %H:%M UTC")


def render_markdown(
    document: DocumentRecord, messages: Sequence[MessageRecord], site_name: str
) -> str:
    """Render the conversation oldest first as Markdown."""
    lines = [f"# {site_name}: {document.name}", ""]
    if not messages:
        lines.append("_No messages yet._")
    for message in messages:
        lines.append(f"**{_speaker(message)}** ({_timestamp(message.created_at)})")
        lines.append("")
        lines.append(message.text)
        lines.append("")
    return "\n".join(lines).rstrip() + "\n"


class TranscriptPdfWriter:
    """Lays out a conversation on A4 pages with reportlab."""

    def __init__(self, site_name: str) -> None:
        self._site_name = site_name
        self._width, self._height = A4
        self._text_width = self._width - 2 * MARGIN - 20

    def render(self, document: DocumentRecord, messages: Sequence[MessageRecord]) -> bytes:
        """Return the PDF bytes."""
        buf = io.BytesIO()
        pdf = canvas.Canvas(buf, pagesize=A4)
        pdf.setTitle(f"{self._site_name} - {document.name}")
        y = self._start_page(pdf, document)

        if not messages:
            pdf.setFont(FONT, FONT_SIZE)
            pdf.drawString(MARGIN, y, "No messages yet.")

        for message in messages:
            lines = self._wrap(message.text)
            block_height = (len(lines) + 1) * LINE_HEIGHT + 10

            if y - block_height < MARGIN:
                pdf.showPage()
                y = self._start_page(pdf, document)

            pdf.setFillColorRGB(*(USER_FILL if message.is_user_message else ASSISTANT_FILL))
            pdf.rect(MARGIN, y - block_height + LINE_HEIGHT, self._width - 2 * MARGIN, block_height, stroke=0, fill=1)

            pdf.setFillColorRGB(*MUTED)
            pdf.setFont(FONT_BOLD, FONT_SIZE - 1)
            pdf.drawString(MARGIN + 10, y, f"{_speaker(message)}  {_timestamp(message.created_at)}")
            y -= LINE_HEIGHT

            pdf.setFillColorRGB(0, 0, 0)
            pdf.setFont(FONT, FONT_SIZE)
            for line in lines:
                pdf.drawString(MARGIN + 10, y, line)
                y -= LINE_HEIGHT
            y -= MESSAGE_SPACING

        pdf.save()
        return buf.getvalue()

    def _start_page(self, pdf: canvas.Canvas, document: DocumentRecord) -> float:
        pdf.setFillColorRGB(*HEADER_FILL)
        pdf.rect(0, self._height - HEADER_HEIGHT, self._width, HEADER_HEIGHT, stroke=0, fill=1)
        pdf.setFillColorRGB(1, 1, 1)
        pdf.setFont(FONT_BOLD, 18)
        pdf.drawCentredString(self._width / 2, self._height - 38, self._site_name)

        pdf.setFillColorRGB(*MUTED)
        pdf.setFont(FONT, 9)
        pdf.drawString(MARGIN, self._height - HEADER_HEIGHT - 18, document.name)
        return self._height - HEADER_HEIGHT - 44

    def _wrap(self, text: str) -> list[str]:
        lines: list[str] = []
        for paragraph in (text or "").splitlines() or [""]:
            lines.extend(simpleSplit(paragraph, FONT, FONT_SIZE, self._text_width) or [""])
        return lines
