"""Shared fixtures: a scripted generation client and pre-populated workflow states."""

from __future__ import annotations

import asyncio
from typing import Any, Callable, Optional, Union

import pytest

from roundtable.schemas import StreamChunk
from roundtable.store.snapshots import SnapshotStore
from roundtable.workflow.controller import OrchestrationController
from roundtable.workflow.state import Character, Citation, WorkflowState
from roundtable.workflow.store import WorkflowStore

ScriptItem = Union[StreamChunk, str, Exception]


class FakeRateLimitError(Exception):
    """Mimics openai.RateLimitError: carries an HTTP status code."""

    status_code = 429


class FakeGenerationClient:
    """
    Scripted stand-in for LangChainGenerationClient.

    Each streaming request pops the next script from ``streams``; items are
    yielded in order and exceptions are raised in place.
    """

    def __init__(self) -> None:
        self.calls: list[tuple[str, str, dict[str, Any]]] = []
        self.text_result = "火影忍者與台積電股價的神秘關聯"
        self.text_error: Optional[Exception] = None
        self.text_gate: Optional[asyncio.Event] = None
        self.streams: list[list[ScriptItem]] = []
        self.structured_result: Any = None
        self.structured_error: Optional[Exception] = None
        self.on_stream_start: Optional[Callable[[], None]] = None

    async def generate_text(self, prompt: str, *, model: Optional[str] = None) -> str:
        self.calls.append(("text", prompt, {"model": model}))
        if self.text_gate is not None:
            await self.text_gate.wait()
        if self.text_error is not None:
            raise self.text_error
        return self.text_result

    async def generate_text_stream(
        self,
        prompt: str,
        *,
        system_instruction: Optional[str] = None,
        search_query: Optional[str] = None,
        model: Optional[str] = None,
    ):
        self.calls.append((
            "stream",
            prompt,
            {"system_instruction": system_instruction, "search_query": search_query, "model": model},
        ))
        if self.on_stream_start is not None:
            self.on_stream_start()
        script = self.streams.pop(0) if self.streams else []
        for item in script:
            await asyncio.sleep(0)
            if isinstance(item, Exception):
                raise item
            yield item

    async def generate_structured(self, prompt: str, schema, *, model: Optional[str] = None):
        self.calls.append(("structured", prompt, {"schema": schema.__name__, "model": model}))
        if self.structured_error is not None:
            raise self.structured_error
        return schema.model_validate(self.structured_result)


def make_characters(count: int) -> list[Character]:
    return [
        Character(name=f"專家{i}", profession=f"職業{i}", background=f"背景{i}")
        for i in range(count)
    ]


def panel_payload(count: int) -> dict:
    return {"characters": [c.model_dump() for c in make_characters(count)]}


@pytest.fixture
def client() -> FakeGenerationClient:
    return FakeGenerationClient()


@pytest.fixture
def store() -> WorkflowStore:
    return WorkflowStore()


@pytest.fixture
def controller(store: WorkflowStore, client: FakeGenerationClient) -> OrchestrationController:
    return OrchestrationController(store, client)


@pytest.fixture
def snapshot_store(tmp_path) -> SnapshotStore:
    return SnapshotStore(str(tmp_path / "snapshots.db"))


@pytest.fixture
def populated_state() -> WorkflowState:
    """All five steps populated, user sitting on step 5."""
    return WorkflowState(
        current_step=5,
        topic="X",
        topic_confirmed=True,
        research_data="r" * 80,
        supplemental_query="補充",
        citations=[Citation(title="A", uri="https://a.example")],
        characters=make_characters(3),
        transcript="專家0: 開場",
        final_article="# 文章",
        loading={1: False, 2: False, 3: True, 4: False, 5: True},
        last_error="舊錯誤",
    )
