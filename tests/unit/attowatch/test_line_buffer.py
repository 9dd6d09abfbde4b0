"""Tests for partial-line and offset bookkeeping."""

from __future__ import annotations

from attowatch.tailer.line_buffer import LineBuffer


class TestLineBuffer:
    def test_complete_lines_in_order(self) -> None:
        buf = LineBuffer()
        assert list(buf.feed(b'{"a":1}\n{"b":2}\n')) == ['{"a":1}', '{"b":2}']
        assert buf.offset == 16
        assert buf.fragment == ""

    def test_partial_line_held_until_completed(self) -> None:
        buf = LineBuffer()
        assert list(buf.feed(b'{"type":"assi')) == []
        assert buf.fragment == '{"type":"assi'
        assert buf.offset == 13
        assert list(buf.feed(b'stant"}\n')) == ['{"type":"assistant"}']
        assert buf.fragment == ""

    def test_blank_lines_skipped(self) -> None:
        buf = LineBuffer()
        assert list(buf.feed(b"\n  \nx\n\n")) == ["x"]

    def test_crlf_stripped(self) -> None:
        buf = LineBuffer()
        assert list(buf.feed(b"one\r\ntwo\r\n")) == ["one", "two"]

    def test_multibyte_character_split_across_reads(self) -> None:
        data = "Reading café.py\n".encode()
        cut = data.index("é".encode()) + 1  # inside the two-byte sequence
        buf = LineBuffer()
        assert list(buf.feed(data[:cut])) == []
        assert list(buf.feed(data[cut:])) == ["Reading café.py"]
        assert buf.offset == len(data)

    def test_offset_advances_even_if_iterator_is_dropped(self) -> None:
        buf = LineBuffer()
        buf.feed(b"a\nb\n")
        assert buf.offset == 4
        assert list(buf.feed(b"")) == []
        assert buf.offset == 4

    def test_reset(self) -> None:
        buf = LineBuffer()
        list(buf.feed(b"abc"))
        buf.reset(100)
        assert buf.offset == 100
        assert buf.fragment == ""
