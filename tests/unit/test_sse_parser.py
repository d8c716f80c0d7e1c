"""Tests for the incremental SSE parser."""

from backend.app.llm.sse import SSEParser


def test_single_complete_frame() -> None:
    parser = SSEParser()
    assert parser.feed('data: {"a": 1}\n\n') == ['{"a": 1}']


def test_frame_split_across_chunks() -> None:
    parser = SSEParser()

    assert parser.feed('data: {"choi') == []
    assert parser.feed('ces": []}\n') == []
    assert parser.feed("\n") == ['{"choices": []}']


def test_crlf_split_between_chunks() -> None:
    parser = SSEParser()

    assert parser.feed("data: one\r") == []
    assert parser.feed("\n\r\n") == ["one"]


def test_multiple_frames_in_one_chunk() -> None:
    parser = SSEParser()
    assert parser.feed("data: a\n\ndata: b\n\ndata: [DONE]\n\n") == ["a", "b", "[DONE]"]


def test_multi_line_data_is_joined() -> None:
    parser = SSEParser()
    assert parser.feed("data: first\ndata: second\n\n") == ["first\nsecond"]


def test_comments_and_other_fields_are_ignored() -> None:
    parser = SSEParser()
    chunk = ": keep-alive\n\nevent: message\nid: 7\nretry: 100\ndata: x\n\n"
    assert parser.feed(chunk) == ["x"]


def test_data_without_space_after_colon() -> None:
    parser = SSEParser()
    assert parser.feed("data:x\n\n") == ["x"]


def test_close_flushes_unterminated_event() -> None:
    parser = SSEParser()

    assert parser.feed("data: tail") == []
    assert parser.close() == ["tail"]
    assert parser.close() == []
