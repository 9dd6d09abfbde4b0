"""Byte offset + partial-line bookkeeping for one append-only transcript."""

from __future__ import annotations

import codecs
from collections.abc import Iterator
from dataclasses import dataclass, field


def _utf8_decoder() -> codecs.IncrementalDecoder:
    return codecs.getincrementaldecoder("utf-8")(errors="replace")


@dataclass(slots=True)
class LineBuffer:
    """Turns incremental reads into complete, ordered text lines.

    ``offset`` counts bytes consumed from the file and only moves forward.
    ``fragment`` holds trailing text that has not been newline-terminated
    yet; it is completed by a later read and then emitted whole. A UTF-8
    sequence cut between two reads is held back by the incremental decoder
    rather than being decoded as garbage.
    """

    offset: int = 0
    fragment: str = ""
    _decoder: codecs.IncrementalDecoder = field(default_factory=_utf8_decoder, repr=False)

    def feed(self, chunk: bytes) -> Iterator[str]:
        """Consume *chunk* (the bytes appended since ``offset``) and yield complete lines.

        The whole chunk is consumed up front so a generator that is dropped
        before exhaustion never causes bytes to be read twice.
        """
        if not chunk:
            return iter(())
        self.offset += len(chunk)
        text = self.fragment + self._decoder.decode(chunk)
        *complete, self.fragment = text.split("\n")
        return (line.rstrip("\r") for line in complete if line.strip())

    def reset(self, offset: int = 0) -> None:
        """Forget all state and resume at *offset* (used when the file changes)."""
        self.offset = offset
        self.fragment = ""
        self._decoder = _utf8_decoder()
