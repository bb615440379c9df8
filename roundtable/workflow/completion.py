"""Step completion and navigation gating.

Logical completion is content-based and independent of current_step:

  1  topic confirmed
  2  research_data has > 50 non-whitespace chars, or at least one citation
  3  at least one character
  4  transcript not blank
  5  final_article not blank

A step is reachable when it is at or behind current_step, or already logically
completed. Everything else is locked.
"""

from __future__ import annotations

import re
from typing import Literal

from roundtable.workflow.state import FIRST_STEP, STEP_COUNT, WorkflowState

StepStatus = Literal["locked", "active", "completed"]

RESEARCH_MIN_CHARS = 50
_WHITESPACE = re.compile(r"\s")


def is_step_completed(state: WorkflowState, step: int) -> bool:
    if step == 1:
        return state.topic_confirmed
    if step == 2:
        compact = _WHITESPACE.sub("", state.research_data)
        return len(compact) > RESEARCH_MIN_CHARS or len(state.citations) > 0
    if step == 3:
        return len(state.characters) > 0
    if step == 4:
        return bool(state.transcript.strip())
    if step == 5:
        return bool(state.final_article.strip())
    return False


def is_step_reachable(state: WorkflowState, step: int) -> bool:
    if step < FIRST_STEP or step > STEP_COUNT:
        return False
    return step <= state.current_step or is_step_completed(state, step)


def step_status(state: WorkflowState, step: int) -> StepStatus:
    """Position of ``step`` relative to current_step (drives step highlighting)."""
    if step < state.current_step:
        return "completed"
    if step == state.current_step:
        return "active"
    return "locked"


def completed_steps(state: WorkflowState) -> list[int]:
    return [s for s in range(FIRST_STEP, STEP_COUNT + 1) if is_step_completed(state, s)]
