"""Incremental server-sent events parser.

Network chunks can split a frame anywhere, including inside a line ending, so
input is buffered until a complete line is available. Only `data:` fields are
collected; comments, `event:`, `id:` and `retry:` fields are ignored.
"""

import re

_LINE_END = re.compile(r"\r\n|\r|\n")


class SSEParser:
    """Turns decoded text chunks into event data payloads."""

    def __init__(self) -> None:
        self._buffer = ""
        self._data_lines: list[str] = []

    def feed(self, chunk: str) -> list[str]:
        """Consume a chunk and return the payloads of every completed event.

        A payload spanning several `data:` lines is joined with newlines.
        """
        self._buffer += chunk
        events: list[str] = []

        while True:
            match = _LINE_END.search(self._buffer)
            if match is None:
                break
            # A trailing \r may be the first half of \r\n
            if match.group() == "\r" and match.end() == len(self._buffer):
                break

            line = self._buffer[: match.start()]
            self._buffer = self._buffer[match.end() :]

            if line == "":
                if self._data_lines:
                    events.append("\n".join(self._data_lines))
                    self._data_lines = []
                continue

            self._handle_line(line)

        return events

    def close(self) -> list[str]:
        """Flush a final event whose terminating blank line never arrived."""
        if self._buffer:
            self._handle_line(self._buffer.rstrip("\r"))
            self._buffer = ""
        if self._data_lines:
            payload = "\n".join(self._data_lines)
            self._data_lines = []
            return [payload]
        return []

    def _handle_line(self, line: str) -> None:
        if line.startswith(":"):
            return

        field, sep, value = line.partition(":")
        if not sep:
            value = ""
        elif value.startswith(" "):
            value = value[1:]

        if field == "data":
            self._data_lines.append(value)
