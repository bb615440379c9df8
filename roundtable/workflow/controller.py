"""
OrchestrationController binds user actions to generation calls.

Call shapes (both share the same loading / error contract):

  single-shot  topic, panel       loading[step]=True → await result → apply
  streaming    research, supplement, discussion start/extend, article
               loading[step]=True, preparing_step=step → on_start → fold fragments
               through StreamAggregator → on_complete(final citations)

Failures never escape a call: they are classified (roundtable/errors.py),
written to the single last_error slot, and the loading/preparing flags are
cleared in `finally`. Partial streamed output stays in the state.

Destructive actions are two-phase. The action stores a PendingConfirmation
(message + effect) and returns NEEDS_CONFIRMATION without touching state;
resolve_confirmation(True) runs the effect, resolve_confirmation(False) drops it.
Rerunning a step that is already logically completed always goes through this
path and invalidates that step (and everything after it) before the call.

Generation never advances current_step. The only combined confirm+advance is
confirm_topic() for step 1.
"""

from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass
from enum import Enum
from typing import Any, AsyncIterator, Awaitable, Callable, Optional, TypeVar, Union

from pydantic import ValidationError

from roundtable.config import settings
from roundtable.errors import InvalidInputError, StepLockedError, describe_failure
from roundtable.prompts.context import (
    ARTICLE_RESEARCH_LIMIT,
    ARTICLE_TRANSCRIPT_LIMIT,
    DISCUSSION_RESEARCH_LIMIT,
    EXTEND_RESEARCH_LIMIT,
    PANEL_RESEARCH_LIMIT,
    SUPPLEMENT_RESEARCH_LIMIT,
    build_character_profiles,
    excerpt,
    render_prompt,
)
from roundtable.prompts.templates import PromptSlot
from roundtable.schemas import CharacterPanel, NewCharacter, StreamChunk
from roundtable.services.generation import GenerationClient
from roundtable.workflow.completion import is_step_completed, is_step_reachable
from roundtable.workflow.state import STEP_COUNT, Citation, WorkflowState
from roundtable.workflow.store import WorkflowStore
from roundtable.workflow.stream import StreamAggregator

logger = logging.getLogger(__name__)

T = TypeVar("T")

RERUN_MESSAGE = "這將會重新執行步驟 {step} 並清除其後所有步驟的資料。確定要繼續嗎？"
TOPIC_RESET_MESSAGE = "重新決定議題將會清除所有後續步驟的進度。確定要繼續嗎？"
RESEARCH_RERUN_MESSAGE = "這將會重新執行「資料研究」並清除所有現有研究資料、引用來源，以及其後所有步驟的資料。確定要繼續嗎？"
SUPPLEMENT_MESSAGE = "補充研究將會重設「產生會議小組」、「開始研討」和「最終文章輸出」的進度。確定要繼續嗎？"
PANEL_RERUN_MESSAGE = "這將會重新生成會議小組並清除其後所有步驟的資料。確定要繼續嗎？"
DELETE_CHARACTER_MESSAGE = "刪除此角色將會重設「開始研討」和「最終文章輸出」的進度。確定要繼續嗎？"
DISCUSSION_RERUN_MESSAGE = "這將會重新開始研討並清除其後所有步驟的資料。確定要繼續嗎？"
EXTEND_MESSAGE = "延長討論將會重設「最終文章輸出」的進度。確定要繼續嗎？"
ARTICLE_RERUN_MESSAGE = "這將會重新生成最終文章。確定要繼續嗎？"
RESET_ALL_MESSAGE = "確定要重置所有進度嗎？此操作不可逆。"

EMPTY_TOPIC_MESSAGE = "請先輸入一個議題。"

SUPPLEMENT_BANNER = "\n\n---\n\n## 補充概念：{query}\n\n"
EXTEND_BANNER = "\n\n---\n\n### 延伸討論\n\n"


class ActionStatus(str, Enum):
    COMPLETED = "completed"
    FAILED = "failed"
    NEEDS_CONFIRMATION = "needs_confirmation"
    DECLINED = "declined"
    SKIPPED = "skipped"
    BUSY = "busy"


Effect = Callable[[], Awaitable[ActionStatus]]


@dataclass
class PendingConfirmation:
    message: str
    effect: Effect


class OrchestrationController:
    def __init__(
        self,
        store: WorkflowStore,
        client: GenerationClient,
        chunk_listener: Optional[Callable[[int, str], None]] = None,
    ) -> None:
        self.store = store
        self.client = client
        self.pending: Optional[PendingConfirmation] = None
        self._chunk_listener = chunk_listener

    @property
    def state(self) -> WorkflowState:
        return self.store.state

    # ------------------------------------------------------------------
    # Confirmation (two-phase destructive actions)
    # ------------------------------------------------------------------

    def request_confirmation(self, message: str, effect: Effect) -> ActionStatus:
        """Hold ``effect`` until resolve_confirmation(). Replaces any earlier pending request."""
        self.pending = PendingConfirmation(message=message, effect=effect)
        logger.info("Confirmation requested: %s", message)
        return ActionStatus.NEEDS_CONFIRMATION

    async def resolve_confirmation(self, accept: bool) -> ActionStatus:
        pending, self.pending = self.pending, None
        if pending is None:
            return ActionStatus.SKIPPED
        if not accept:
            logger.info("Confirmation declined: %s", pending.message)
            return ActionStatus.DECLINED
        return await pending.effect()

    async def rerun_gated(
        self, step: int, action: Effect, message: Optional[str] = None
    ) -> ActionStatus:
        """Run ``action`` directly, or behind a confirmation when ``step`` is already completed."""
        if self._is_busy(step):
            return ActionStatus.BUSY
        if not is_step_completed(self.state, step):
            return await action()

        async def effect() -> ActionStatus:
            if self._is_busy(step):
                return ActionStatus.BUSY
            self.store.invalidate_from(step)
            return await action()

        return self.request_confirmation(message or RERUN_MESSAGE.format(step=step), effect)

    # ------------------------------------------------------------------
    # Call shapes
    # ------------------------------------------------------------------

    def _is_busy(self, step: int) -> bool:
        return bool(self.state.loading.get(step))

    def _begin_call(self, step: int) -> None:
        self.store.set_loading(step, True)
        self.store.set_preparing_step(step)
        self.store.set_error(None)

    def _end_call(self, step: int) -> None:
        self.store.set_loading(step, False)
        self.store.set_preparing_step(None)
        self._save()

    def _save(self) -> None:
        try:
            self.store.save()
        except (sqlite3.Error, OSError):
            logger.exception("Could not save workflow snapshot")

    def _report_failure(self, step: int, exc: BaseException) -> None:
        message = describe_failure(step, exc)
        logger.exception("Step %d failed: %s", step, message)
        self.store.set_error(message)

    async def _call_single(
        self,
        step: int,
        call: Callable[[], Awaitable[T]],
        on_success: Callable[[T], None],
        record_prompt: Optional[tuple[PromptSlot, str]] = None,
    ) -> ActionStatus:
        if self._is_busy(step):
            return ActionStatus.BUSY
        self._begin_call(step)
        try:
            result = await call()
            on_success(result)
            if record_prompt is not None:
                self.store.set_prompt(*record_prompt)
            return ActionStatus.COMPLETED
        except Exception as exc:
            self._report_failure(step, exc)
            return ActionStatus.FAILED
        finally:
            self._end_call(step)

    async def _call_stream(
        self,
        step: int,
        request: Callable[[], AsyncIterator[StreamChunk]],
        on_start: Callable[[], None],
        on_chunk: Callable[[str], None],
        on_complete: Callable[[list[Citation]], None],
        on_citations: Optional[Callable[[list[Citation]], None]] = None,
    ) -> ActionStatus:
        if self._is_busy(step):
            return ActionStatus.BUSY
        self._begin_call(step)

        def forward(text: str) -> None:
            on_chunk(text)
            if self._chunk_listener is not None:
                self._chunk_listener(step, text)

        aggregator = StreamAggregator(
            on_chunk=forward,
            on_citations=on_citations,
            on_first_chunk=lambda: self.store.set_preparing_step(None),
        )
        try:
            aggregator.begin(on_start)
            final_citations = await aggregator.drain(request())
            on_complete(final_citations)
            logger.info("Step %d streamed %d chunks", step, aggregator.chunk_count)
            return ActionStatus.COMPLETED
        except Exception as exc:
            self._report_failure(step, exc)
            return ActionStatus.FAILED
        finally:
            self._end_call(step)

    def _require_unlocked(self, step: int) -> None:
        if not is_step_reachable(self.state, step):
            raise StepLockedError(f"步驟 {step} 尚未解鎖。")

    def _append(self, field: str) -> Callable[[str], None]:
        return lambda text: self.store.update(field, lambda prev: prev + text)

    # ------------------------------------------------------------------
    # Step 1: topic
    # ------------------------------------------------------------------

    def set_topic(self, topic: str) -> ActionStatus:
        if self._is_busy(1):
            return ActionStatus.BUSY
        if self.state.topic_confirmed:
            raise InvalidInputError("議題已確認，請先重新決定議題。")
        self.store.set_topic(topic)
        self._save()
        return ActionStatus.COMPLETED

    async def generate_topic(self) -> ActionStatus:
        return await self.rerun_gated(1, self._generate_topic, TOPIC_RESET_MESSAGE)

    async def _generate_topic(self) -> ActionStatus:
        prompt = render_prompt(self.state.prompts[PromptSlot.TOPIC], {})
        return await self._call_single(
            1,
            lambda: self.client.generate_text(prompt, model=settings.topic_model),
            self._apply_generated_topic,
            record_prompt=(PromptSlot.TOPIC, prompt),
        )

    def _apply_generated_topic(self, topic: str) -> None:
        # A topic confirmed while the request was in flight stays.
        if self.state.topic_confirmed:
            logger.info("Discarding generated topic, %r was confirmed meanwhile", self.state.topic)
            return
        self.store.set_topic(topic)

    def confirm_topic(self) -> ActionStatus:
        """Confirm a manually entered (or generated) topic and move to step 2."""
        if self._is_busy(1):
            return ActionStatus.BUSY
        if not self.state.topic.strip():
            self.store.set_error(EMPTY_TOPIC_MESSAGE)
            return ActionStatus.FAILED
        self.store.confirm_topic()
        self.store.set_step(2)
        self.store.set_error(None)
        self._save()
        return ActionStatus.COMPLETED

    def reset_topic(self) -> ActionStatus:
        async def effect() -> ActionStatus:
            self.store.invalidate_from(1)
            self.store.set_step(1)
            self._save()
            return ActionStatus.COMPLETED

        return self.request_confirmation(TOPIC_RESET_MESSAGE, effect)

    # ------------------------------------------------------------------
    # Step 2: research
    # ------------------------------------------------------------------

    async def conduct_research(self) -> ActionStatus:
        self._require_unlocked(2)
        if not self.state.topic.strip():
            raise InvalidInputError(EMPTY_TOPIC_MESSAGE)
        return await self.rerun_gated(2, self._conduct_research, RESEARCH_RERUN_MESSAGE)

    async def _conduct_research(self) -> ActionStatus:
        topic = self.state.topic
        prompt = render_prompt(self.state.prompts[PromptSlot.RESEARCH], {"topic": topic})

        def on_start() -> None:
            self.store.set_research_data("")
            self.store.set_citations([])

        return await self._call_stream(
            2,
            lambda: self.client.generate_text_stream(
                prompt, search_query=topic, model=settings.research_model
            ),
            on_start=on_start,
            on_chunk=self._append("research_data"),
            on_citations=self.store.merge_citations,
            on_complete=self.store.merge_citations,
        )

    def set_supplemental_query(self, query: str) -> ActionStatus:
        self.store.set_supplemental_query(query)
        return ActionStatus.COMPLETED

    async def supplemental_research(self) -> ActionStatus:
        if not self.state.supplemental_query.strip():
            return ActionStatus.SKIPPED
        self._require_unlocked(2)
        if self._is_busy(2):
            return ActionStatus.BUSY
        if any(is_step_completed(self.state, s) for s in (3, 4, 5)):
            return self.request_confirmation(SUPPLEMENT_MESSAGE, self._supplemental_research)
        return await self._supplemental_research()

    async def _supplemental_research(self) -> ActionStatus:
        if self._is_busy(2):
            return ActionStatus.BUSY
        query = self.state.supplemental_query.strip()
        if not query:
            return ActionStatus.SKIPPED
        self.store.invalidate_from(3)

        state = self.state
        prompt = render_prompt(state.prompts[PromptSlot.RESEARCH_SUPPLEMENT], {
            "topic": state.topic,
            "researchData": excerpt(state.research_data, SUPPLEMENT_RESEARCH_LIMIT),
            "supplementalQuery": query,
        })
        search_query = f"{state.topic} {query}".strip()

        status = await self._call_stream(
            2,
            lambda: self.client.generate_text_stream(
                prompt, search_query=search_query, model=settings.research_model
            ),
            on_start=lambda: self._append("research_data")(SUPPLEMENT_BANNER.format(query=query)),
            on_chunk=self._append("research_data"),
            on_citations=self.store.merge_citations,
            on_complete=self.store.merge_citations,
        )
        if status is ActionStatus.COMPLETED:
            self.store.set_supplemental_query("")
            self._save()
        return status

    # ------------------------------------------------------------------
    # Step 3: panel
    # ------------------------------------------------------------------

    async def generate_panel(self) -> ActionStatus:
        self._require_unlocked(3)
        return await self.rerun_gated(3, self._generate_panel, PANEL_RERUN_MESSAGE)

    async def _generate_panel(self) -> ActionStatus:
        state = self.state
        prompt = render_prompt(state.prompts[PromptSlot.PANEL], {
            "topic": state.topic,
            "researchData": excerpt(state.research_data, PANEL_RESEARCH_LIMIT),
        })
        return await self._call_single(
            3,
            lambda: self.client.generate_structured(prompt, CharacterPanel, model=settings.panel_model),
            lambda panel: self.store.set_characters(panel.to_characters()),
        )

    def add_character(self, character: Union[NewCharacter, dict[str, Any]]) -> ActionStatus:
        self._require_unlocked(3)
        if not isinstance(character, NewCharacter):
            try:
                character = NewCharacter.model_validate(character)
            except ValidationError as exc:
                raise InvalidInputError("請填寫所有欄位。") from exc
        self.store.add_character(character.to_character())
        self.store.invalidate_from(4)
        self._save()
        return ActionStatus.COMPLETED

    def delete_character(self, index: int) -> ActionStatus:
        if index < 0 or index >= len(self.state.characters):
            raise InvalidInputError(f"角色索引超出範圍: {index}")

        async def effect() -> ActionStatus:
            removed = self.store.delete_character(index)
            self.store.invalidate_from(4)
            self._save()
            logger.info("Removed panel member %r", removed.name)
            return ActionStatus.COMPLETED

        return self.request_confirmation(DELETE_CHARACTER_MESSAGE, effect)

    # ------------------------------------------------------------------
    # Step 4: discussion
    # ------------------------------------------------------------------

    async def start_discussion(self) -> ActionStatus:
        self._require_unlocked(4)
        if not self.state.characters:
            raise InvalidInputError("請先建立會議小組。")
        return await self.rerun_gated(4, self._start_discussion, DISCUSSION_RERUN_MESSAGE)

    async def _start_discussion(self) -> ActionStatus:
        state = self.state
        prompt = render_prompt(state.prompts[PromptSlot.DISCUSSION_START], {
            "topic": state.topic,
            "researchData": excerpt(state.research_data, DISCUSSION_RESEARCH_LIMIT),
            "characterProfiles": build_character_profiles(state.characters),
        })
        system = state.prompts[PromptSlot.DISCUSSION_SYSTEM]
        return await self._call_stream(
            4,
            lambda: self.client.generate_text_stream(
                prompt, system_instruction=system, model=settings.discussion_model
            ),
            on_start=lambda: self.store.set_transcript(""),
            on_chunk=self._append("transcript"),
            on_complete=lambda _citations: None,
        )

    async def extend_discussion(self) -> ActionStatus:
        if not self.state.transcript.strip():
            raise InvalidInputError("請先開始研討。")
        if self._is_busy(4):
            return ActionStatus.BUSY
        return self.request_confirmation(EXTEND_MESSAGE, self._extend_discussion)

    async def _extend_discussion(self) -> ActionStatus:
        if self._is_busy(4):
            return ActionStatus.BUSY
        state = self.state
        # Start and extend are mutually exclusive: extend needs an existing transcript.
        if not state.transcript.strip():
            raise InvalidInputError("請先開始研討。")
        self.store.invalidate_from(5)

        prompt = render_prompt(state.prompts[PromptSlot.DISCUSSION_EXTEND], {
            "existingTranscript": state.transcript,
            "topic": state.topic,
            "researchData": excerpt(state.research_data, EXTEND_RESEARCH_LIMIT),
            "characterProfiles": build_character_profiles(state.characters),
        })
        system = state.prompts[PromptSlot.DISCUSSION_SYSTEM]
        return await self._call_stream(
            4,
            lambda: self.client.generate_text_stream(
                prompt, system_instruction=system, model=settings.discussion_model
            ),
            on_start=lambda: self._append("transcript")(EXTEND_BANNER),
            on_chunk=self._append("transcript"),
            on_complete=lambda _citations: None,
        )

    # ------------------------------------------------------------------
    # Step 5: article
    # ------------------------------------------------------------------

    async def generate_article(self) -> ActionStatus:
        self._require_unlocked(5)
        if not self.state.transcript.strip():
            raise InvalidInputError("請先完成研討。")
        return await self.rerun_gated(5, self._generate_article, ARTICLE_RERUN_MESSAGE)

    async def _generate_article(self) -> ActionStatus:
        state = self.state
        prompt = render_prompt(state.prompts[PromptSlot.ARTICLE], {
            "topic": state.topic,
            "researchData": excerpt(state.research_data, ARTICLE_RESEARCH_LIMIT),
            "transcript": excerpt(state.transcript, ARTICLE_TRANSCRIPT_LIMIT),
        })
        system = state.prompts[PromptSlot.ARTICLE_SYSTEM]
        return await self._call_stream(
            5,
            lambda: self.client.generate_text_stream(
                prompt, system_instruction=system, model=settings.article_model
            ),
            on_start=lambda: self.store.set_final_article(""),
            on_chunk=self._append("final_article"),
            on_complete=lambda _citations: None,
        )

    def edit_article(self, text: str) -> ActionStatus:
        self.store.set_final_article(text)
        self._save()
        return ActionStatus.COMPLETED

    def save_article_edit(self) -> ActionStatus:
        # Edits are already in state; this only acknowledges them.
        self._save()
        logger.info("Article edit saved (%d chars)", len(self.state.final_article))
        return ActionStatus.COMPLETED

    # ------------------------------------------------------------------
    # Navigation
    # ------------------------------------------------------------------

    def navigate_to(self, step: int) -> ActionStatus:
        self._require_unlocked(step)
        self.store.set_step(step)
        return ActionStatus.COMPLETED

    def advance(self, step: int) -> ActionStatus:
        """Proceed from ``step`` to the next one; only allowed once ``step`` is completed."""
        if not is_step_completed(self.state, step):
            raise StepLockedError(f"步驟 {step} 尚未完成。")
        if step >= STEP_COUNT:
            return ActionStatus.SKIPPED
        self.store.set_step(step + 1)
        return ActionStatus.COMPLETED

    # ------------------------------------------------------------------
    # Prompts + global reset
    # ------------------------------------------------------------------

    def update_prompt(self, slot: PromptSlot, text: str) -> ActionStatus:
        self.store.set_prompt(slot, text)
        self._save()
        return ActionStatus.COMPLETED

    def reset_prompts(self) -> ActionStatus:
        self.store.reset_prompts()
        self._save()
        return ActionStatus.COMPLETED

    def reset_all(self) -> ActionStatus:
        async def effect() -> ActionStatus:
            self.store.reset_all()
            self._save()
            return ActionStatus.COMPLETED

        return self.request_confirmation(RESET_ALL_MESSAGE, effect)
