"""
WorkflowStore: sole owner of the WorkflowState tree.

Every write replaces the state with a modified copy. Two generic writers exist:

    store.set("transcript", "")                      # direct value
    store.update("transcript", lambda t: t + chunk)  # derived from the current value

Both go through _resolve(), which reads the field from the state as it is at
call time. Code that awaits between reads and writes must use update() so that
it never writes back a value computed from a stale snapshot.

Persistence is snapshot-based: save() writes the durable subset of the state
(WorkflowSnapshot) under one fixed key, load() restores it. Loading flags, the
preparing marker and the last error are never written.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Callable, Iterable, Optional

from pydantic import ValidationError

from roundtable.config import settings
from roundtable.errors import InvalidInputError
from roundtable.prompts.templates import PromptSlot, default_prompts
from roundtable.store.snapshots import SnapshotStore
from roundtable.workflow.citations import merge_citations
from roundtable.workflow.invalidation import invalidate_from
from roundtable.workflow.state import (
    FIRST_STEP,
    STEP_COUNT,
    Character,
    Citation,
    WorkflowSnapshot,
    WorkflowState,
)

logger = logging.getLogger(__name__)


class WorkflowStore:
    def __init__(
        self,
        state: Optional[WorkflowState] = None,
        snapshots: Optional[SnapshotStore] = None,
        storage_key: Optional[str] = None,
    ) -> None:
        self._state = state if state is not None else WorkflowState()
        self._snapshots = snapshots
        self.storage_key = storage_key or settings.storage_key

    @property
    def state(self) -> WorkflowState:
        return self._state

    # ------------------------------------------------------------------
    # Generic writers
    # ------------------------------------------------------------------

    def set(self, field: str, value: Any) -> None:
        self._resolve(field, lambda _prev: value)

    def update(self, field: str, fn: Callable[[Any], Any]) -> None:
        self._resolve(field, fn)

    def _resolve(self, field: str, fn: Callable[[Any], Any]) -> None:
        if field not in WorkflowState.model_fields:
            raise AttributeError(f"WorkflowState has no field {field!r}")
        current = getattr(self._state, field)
        self._state = self._state.model_copy(update={field: fn(current)})

    # ------------------------------------------------------------------
    # Step 1: topic
    # ------------------------------------------------------------------

    def set_topic(self, topic: str) -> None:
        self.set("topic", topic)

    def confirm_topic(self) -> None:
        self.set("topic_confirmed", True)

    # ------------------------------------------------------------------
    # Step 2: research
    # ------------------------------------------------------------------

    def set_research_data(self, data: str) -> None:
        self.set("research_data", data)

    def set_supplemental_query(self, query: str) -> None:
        self.set("supplemental_query", query)

    def set_citations(self, citations: Iterable[Citation]) -> None:
        self.set("citations", list(citations))

    def merge_citations(self, incoming: Iterable[Citation]) -> None:
        incoming = list(incoming)
        if incoming:
            self.update("citations", lambda prev: merge_citations(prev, incoming))

    # ------------------------------------------------------------------
    # Step 3: panel
    # ------------------------------------------------------------------

    def set_characters(self, characters: Iterable[Character]) -> None:
        self.set("characters", list(characters))

    def add_character(self, character: Character) -> None:
        self.update("characters", lambda prev: [*prev, character])

    def delete_character(self, index: int) -> Character:
        characters = self._state.characters
        if index < 0 or index >= len(characters):
            raise InvalidInputError(f"角色索引超出範圍: {index}")
        removed = characters[index]
        self.update("characters", lambda prev: [c for i, c in enumerate(prev) if i != index])
        return removed

    # ------------------------------------------------------------------
    # Steps 4-5: transcript + article
    # ------------------------------------------------------------------

    def set_transcript(self, transcript: str) -> None:
        self.set("transcript", transcript)

    def set_final_article(self, article: str) -> None:
        self.set("final_article", article)

    # ------------------------------------------------------------------
    # Prompts
    # ------------------------------------------------------------------

    def set_prompt(self, slot: PromptSlot, text: str) -> None:
        slot = PromptSlot(slot)
        self.update("prompts", lambda prev: {**prev, slot: text})

    def reset_prompts(self) -> None:
        self.set("prompts", default_prompts())

    # ------------------------------------------------------------------
    # Navigation + transient UI state
    # ------------------------------------------------------------------

    def set_step(self, step: int) -> None:
        if step < FIRST_STEP or step > STEP_COUNT:
            raise InvalidInputError(f"步驟必須介於 {FIRST_STEP} 與 {STEP_COUNT} 之間: {step}")
        self.set("current_step", step)

    def set_loading(self, step: int, flag: bool) -> None:
        self.update("loading", lambda prev: {**prev, step: flag})

    def set_preparing_step(self, step: Optional[int]) -> None:
        self.set("preparing_step", step)

    def set_error(self, message: Optional[str]) -> None:
        self.set("last_error", message)

    # ------------------------------------------------------------------
    # Global actions
    # ------------------------------------------------------------------

    def invalidate_from(self, step: int) -> None:
        self._state = invalidate_from(self._state, step)

    def reset_all(self) -> None:
        self._state = WorkflowState()

    # ------------------------------------------------------------------
    # Snapshots
    # ------------------------------------------------------------------

    def snapshot(self) -> WorkflowSnapshot:
        return WorkflowSnapshot.model_validate(
            self._state.model_dump(include=set(WorkflowSnapshot.model_fields))
        )

    def restore(self, snapshot: WorkflowSnapshot) -> None:
        """Replace durable fields; transient UI state and current_step are kept."""
        self._state = self._state.model_copy(update={
            "topic": snapshot.topic,
            "topic_confirmed": snapshot.topic_confirmed,
            "research_data": snapshot.research_data,
            "citations": list(snapshot.citations),
            "characters": list(snapshot.characters),
            "transcript": snapshot.transcript,
            "final_article": snapshot.final_article,
            "prompts": dict(snapshot.prompts),
        })

    def save(self) -> None:
        if self._snapshots is None:
            return
        self._snapshots.put(self.storage_key, self.snapshot().model_dump(mode="json"))

    def load(self) -> bool:
        """Restore the saved snapshot. Returns False when none exists (defaults apply)."""
        if self._snapshots is None:
            return False
        try:
            record = self._snapshots.get(self.storage_key)
            if record is None:
                return False
            snapshot = WorkflowSnapshot.model_validate(record)
        except (json.JSONDecodeError, TypeError, ValidationError) as exc:
            logger.warning("Ignoring unreadable snapshot %r: %s", self.storage_key, exc)
            return False
        self.restore(snapshot)
        return True

    def discard(self) -> None:
        """Drop the saved record; the next load() falls back to defaults."""
        if self._snapshots is not None:
            self._snapshots.delete(self.storage_key)
