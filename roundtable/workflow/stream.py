"""Incremental consumption of a streamed generation.

    IDLE ──begin()──▶ STARTING ──first chunk──▶ STREAMING ──complete()──▶ COMPLETED
                          │                         │
                          └────── any exception ────┴──▶ FAILED

The aggregator is a fold over a finite, non-restartable async sequence of
fragments. The accumulator (text buffer + merged citation set) is exposed
incrementally through callbacks so the caller can mirror each step into durable
state as it happens. Nothing written through a callback is rolled back on
failure: partial output is kept.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import AsyncIterable, Callable, Optional, Union

from roundtable.errors import StreamStateError
from roundtable.schemas import StreamChunk
from roundtable.workflow.citations import merge_citations
from roundtable.workflow.state import Citation

logger = logging.getLogger(__name__)

Fragment = Union[StreamChunk, str]


class StreamPhase(str, Enum):
    IDLE = "idle"
    STARTING = "starting"
    STREAMING = "streaming"
    COMPLETED = "completed"
    FAILED = "failed"


class StreamAggregator:
    def __init__(
        self,
        on_chunk: Optional[Callable[[str], None]] = None,
        on_citations: Optional[Callable[[list[Citation]], None]] = None,
        on_first_chunk: Optional[Callable[[], None]] = None,
    ) -> None:
        self._on_chunk = on_chunk
        self._on_citations = on_citations
        self._on_first_chunk = on_first_chunk
        self.phase = StreamPhase.IDLE
        self.buffer = ""
        self.citations: list[Citation] = []
        self.chunk_count = 0
        self.error: Optional[BaseException] = None

    def begin(self, on_start: Optional[Callable[[], None]] = None) -> None:
        """Enter STARTING and let the caller reset or seed its target buffer."""
        if self.phase is not StreamPhase.IDLE:
            raise StreamStateError(f"begin() called in phase {self.phase.value}")
        self.phase = StreamPhase.STARTING
        if on_start is None:
            return
        try:
            on_start()
        except Exception as exc:
            self.fail(exc)
            raise

    def consume(self, chunk: Fragment) -> None:
        if isinstance(chunk, str):
            chunk = StreamChunk(text=chunk)

        if self.phase is StreamPhase.STARTING:
            self.phase = StreamPhase.STREAMING
            if self._on_first_chunk is not None:
                self._on_first_chunk()
        elif self.phase is not StreamPhase.STREAMING:
            raise StreamStateError(f"consume() called in phase {self.phase.value}")

        self.chunk_count += 1

        # Citations are merged as they arrive, never deferred to complete().
        if chunk.citations:
            self.citations = merge_citations(self.citations, chunk.citations)
            if self._on_citations is not None:
                self._on_citations(list(chunk.citations))

        if chunk.text:
            self.buffer += chunk.text
            if self._on_chunk is not None:
                self._on_chunk(chunk.text)

    def complete(self) -> list[Citation]:
        if self.phase not in (StreamPhase.STARTING, StreamPhase.STREAMING):
            raise StreamStateError(f"complete() called in phase {self.phase.value}")
        self.phase = StreamPhase.COMPLETED
        return list(self.citations)

    def fail(self, exc: BaseException) -> None:
        self.phase = StreamPhase.FAILED
        self.error = exc
        logger.debug("Stream failed after %d chunks: %s", self.chunk_count, exc)

    async def drain(self, fragments: AsyncIterable[Fragment]) -> list[Citation]:
        """Consume every fragment; return the merged citations on normal exhaustion."""
        try:
            async for chunk in fragments:
                self.consume(chunk)
        except Exception as exc:
            self.fail(exc)
            raise
        return self.complete()
