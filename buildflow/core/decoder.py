# buildflow/core/decoder.py
"""
Event stream decoder.

Raw text arrives in arbitrary chunks; only line boundaries matter. A line that
does not decode is dropped with a warning and decoding carries on.
"""

import json
import logging
from typing import AsyncIterator, Iterable, Iterator, List

from .events import Event, parse_event
from .exceptions import ProtocolError

logger = logging.getLogger(__name__)


class EventStreamDecoder:
    """
    Line buffer plus parser. One instance per stream.

    Usage::

        decoder = EventStreamDecoder()
        for chunk in chunks:
            for event in decoder.feed(chunk):
                ...
        for event in decoder.flush():
            ...
    """

    def __init__(self):
        self._buffer = ""
        self._closed = False
        self.dropped_lines = 0

    def feed(self, chunk: str) -> List[Event]:
        if self._closed:
            raise RuntimeError("Decoder already flushed; use a fresh decoder per stream")
        self._buffer += chunk
        events: List[Event] = []
        while True:
            newline = self._buffer.find("\n")
            if newline < 0:
                break
            line, self._buffer = self._buffer[:newline], self._buffer[newline + 1:]
            event = self._parse_line(line)
            if event is not None:
                events.append(event)
        return events

    def flush(self) -> List[Event]:
        """Final parse attempt for whatever is left after the last newline."""
        if self._closed:
            return []
        self._closed = True
        rest, self._buffer = self._buffer, ""
        event = self._parse_line(rest)
        return [event] if event is not None else []

    def _parse_line(self, line: str):
        line = line.strip()
        if not line:
            return None
        try:
            return parse_event(json.loads(line))
        except json.JSONDecodeError as e:
            self._drop(line, f"invalid JSON ({e.msg})")
        except ProtocolError as e:
            self._drop(line, str(e))
        return None

    def _drop(self, line: str, reason: str) -> None:
        self.dropped_lines += 1
        preview = line if len(line) <= 120 else line[:117] + "..."
        logger.warning("Dropping malformed stream line: %s: %s", reason, preview)


def decode_text(chunks: Iterable[str]) -> Iterator[Event]:
    decoder = EventStreamDecoder()
    for chunk in chunks:
        yield from decoder.feed(chunk)
    yield from decoder.flush()


async def decode_stream(chunks: AsyncIterator[str]) -> AsyncIterator[Event]:
    """Async generator over an async chunk iterator, e.g. a model backend stream."""
    decoder = EventStreamDecoder()
    async for chunk in chunks:
        for event in decoder.feed(chunk):
            yield event
    for event in decoder.flush():
        yield event
