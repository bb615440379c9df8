from typing import Optional

from pydantic import BaseModel

from roundtable.prompts.templates import PromptSlot
from roundtable.workflow.completion import StepStatus, is_step_completed, is_step_reachable, step_status
from roundtable.workflow.controller import ActionStatus
from roundtable.workflow.state import FIRST_STEP, STEP_COUNT, WorkflowState


class TextRequest(BaseModel):
    text: str


class CharacterRequest(BaseModel):
    name: str
    profession: str
    background: str


class ConfirmationRequest(BaseModel):
    accept: bool


class StepView(BaseModel):
    step: int
    status: StepStatus
    completed: bool
    reachable: bool
    loading: bool


class WorkflowView(BaseModel):
    state: WorkflowState
    steps: list[StepView]
    pending_confirmation: Optional[str] = None

    @classmethod
    def build(cls, state: WorkflowState, pending_confirmation: Optional[str] = None) -> "WorkflowView":
        steps = [
            StepView(
                step=s,
                status=step_status(state, s),
                completed=is_step_completed(state, s),
                reachable=is_step_reachable(state, s),
                loading=bool(state.loading.get(s)),
            )
            for s in range(FIRST_STEP, STEP_COUNT + 1)
        ]
        return cls(state=state, steps=steps, pending_confirmation=pending_confirmation)


class ActionResponse(BaseModel):
    status: ActionStatus
    confirmation: Optional[str] = None
    view: WorkflowView


class PromptsResponse(BaseModel):
    prompts: dict[PromptSlot, str]
