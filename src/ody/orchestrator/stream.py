"""Incremental draining of agent output streams."""

from __future__ import annotations

import codecs
import logging
import threading
from collections.abc import Callable
from typing import BinaryIO

logger = logging.getLogger(__name__)

COMPLETION_MARKER = "<woof>COMPLETE</woof>"
READ_CHUNK_SIZE = 4096


def contains_completion_marker(text: str) -> bool:
    return COMPLETION_MARKER in text


def drain_stream(
    stream: BinaryIO,
    *,
    on_text: Callable[[str], None] | None = None,
    stop_when: Callable[[str], bool] | None = None,
    stop_event: threading.Event | None = None,
) -> str:
    """Read ``stream`` until EOF and return everything it produced as text.

    Chunks are decoded incrementally, so a multibyte character split across two
    reads is kept intact; invalid bytes become U+FFFD. ``stop_when`` sees the
    whole accumulated text after every chunk, which lets it match a marker that
    arrived in pieces. The first match sets ``stop_event``; draining still
    continues until EOF so the writer never blocks on a full pipe.
    """

    decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
    accumulated = ""
    matched = False
    received = 0

    def _consume(text: str) -> None:
        nonlocal accumulated, matched
        if not text:
            return
        accumulated += text
        if on_text is not None:
            on_text(text)
        if matched or stop_when is None or not stop_when(accumulated):
            return
        matched = True
        if stop_event is not None:
            stop_event.set()

    while chunk := stream.read1(READ_CHUNK_SIZE):
        received += len(chunk)
        _consume(decoder.decode(chunk))
    _consume(decoder.decode(b"", final=True))

    logger.debug("Drained %d bytes", received)
    return accumulated
