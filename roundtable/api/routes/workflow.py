import inspect
from typing import Awaitable, Callable, Union

from fastapi import APIRouter, Depends, HTTPException

from roundtable.errors import InvalidInputError, StepLockedError
from roundtable.models import (
    ActionResponse,
    CharacterRequest,
    ConfirmationRequest,
    PromptsResponse,
    TextRequest,
    WorkflowView,
)
from roundtable.prompts.templates import PromptSlot
from roundtable.services.generation import LangChainGenerationClient
from roundtable.store.snapshots import SnapshotStore
from roundtable.workflow.controller import ActionStatus, OrchestrationController
from roundtable.workflow.store import WorkflowStore

router = APIRouter(prefix="/api/workflow", tags=["workflow"])

_controller: OrchestrationController | None = None


def get_controller() -> OrchestrationController:
    """Process-wide controller; the saved snapshot is loaded on first use."""
    global _controller
    if _controller is None:
        store = WorkflowStore(snapshots=SnapshotStore())
        store.load()
        _controller = OrchestrationController(store, LangChainGenerationClient())
    return _controller


def _response(controller: OrchestrationController, status: ActionStatus) -> ActionResponse:
    pending = controller.pending.message if controller.pending else None
    return ActionResponse(
        status=status,
        confirmation=pending if status is ActionStatus.NEEDS_CONFIRMATION else None,
        view=WorkflowView.build(controller.state, pending),
    )


async def _dispatch(
    controller: OrchestrationController,
    action: Callable[[], Union[ActionStatus, Awaitable[ActionStatus]]],
) -> ActionResponse:
    try:
        result = action()
        if inspect.isawaitable(result):
            result = await result
    except StepLockedError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    except InvalidInputError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    return _response(controller, result)


@router.get("/state", response_model=WorkflowView)
async def get_state(controller: OrchestrationController = Depends(get_controller)):
    pending = controller.pending.message if controller.pending else None
    return WorkflowView.build(controller.state, pending)


@router.post("/confirmation", response_model=ActionResponse)
async def resolve_confirmation(
    request: ConfirmationRequest,
    controller: OrchestrationController = Depends(get_controller),
):
    return await _dispatch(controller, lambda: controller.resolve_confirmation(request.accept))


# --- Step 1 -----------------------------------------------------------------

@router.put("/topic", response_model=ActionResponse)
async def set_topic(request: TextRequest, controller: OrchestrationController = Depends(get_controller)):
    return await _dispatch(controller, lambda: controller.set_topic(request.text))


@router.post("/topic/generate", response_model=ActionResponse)
async def generate_topic(controller: OrchestrationController = Depends(get_controller)):
    return await _dispatch(controller, controller.generate_topic)


@router.post("/topic/confirm", response_model=ActionResponse)
async def confirm_topic(controller: OrchestrationController = Depends(get_controller)):
    return await _dispatch(controller, controller.confirm_topic)


@router.post("/topic/reset", response_model=ActionResponse)
async def reset_topic(controller: OrchestrationController = Depends(get_controller)):
    return await _dispatch(controller, controller.reset_topic)


# --- Step 2 -----------------------------------------------------------------

@router.post("/research", response_model=ActionResponse)
async def conduct_research(controller: OrchestrationController = Depends(get_controller)):
    return await _dispatch(controller, controller.conduct_research)


@router.put("/research/supplement", response_model=ActionResponse)
async def set_supplemental_query(request: TextRequest, controller: OrchestrationController = Depends(get_controller)):
    return await _dispatch(controller, lambda: controller.set_supplemental_query(request.text))


@router.post("/research/supplement", response_model=ActionResponse)
async def supplemental_research(controller: OrchestrationController = Depends(get_controller)):
    return await _dispatch(controller, controller.supplemental_research)


# --- Step 3 -----------------------------------------------------------------

@router.post("/panel", response_model=ActionResponse)
async def generate_panel(controller: OrchestrationController = Depends(get_controller)):
    return await _dispatch(controller, controller.generate_panel)


@router.post("/panel/characters", response_model=ActionResponse)
async def add_character(request: CharacterRequest, controller: OrchestrationController = Depends(get_controller)):
    return await _dispatch(controller, lambda: controller.add_character(request.model_dump()))


@router.delete("/panel/characters/{index}", response_model=ActionResponse)
async def delete_character(index: int, controller: OrchestrationController = Depends(get_controller)):
    return await _dispatch(controller, lambda: controller.delete_character(index))


# --- Step 4 -----------------------------------------------------------------

@router.post("/discussion", response_model=ActionResponse)
async def start_discussion(controller: OrchestrationController = Depends(get_controller)):
    return await _dispatch(controller, controller.start_discussion)


@router.post("/discussion/extend", response_model=ActionResponse)
async def extend_discussion(controller: OrchestrationController = Depends(get_controller)):
    return await _dispatch(controller, controller.extend_discussion)


# --- Step 5 -----------------------------------------------------------------

@router.post("/article", response_model=ActionResponse)
async def generate_article(controller: OrchestrationController = Depends(get_controller)):
    return await _dispatch(controller, controller.generate_article)


@router.put("/article", response_model=ActionResponse)
async def edit_article(request: TextRequest, controller: OrchestrationController = Depends(get_controller)):
    return await _dispatch(controller, lambda: controller.edit_article(request.text))


@router.post("/article/save", response_model=ActionResponse)
async def save_article_edit(controller: OrchestrationController = Depends(get_controller)):
    return await _dispatch(controller, controller.save_article_edit)


# --- Navigation, prompts, reset -----------------------------------------------

@router.post("/steps/{step}/navigate", response_model=ActionResponse)
async def navigate_to(step: int, controller: OrchestrationController = Depends(get_controller)):
    return await _dispatch(controller, lambda: controller.navigate_to(step))


@router.post("/steps/{step}/advance", response_model=ActionResponse)
async def advance(step: int, controller: OrchestrationController = Depends(get_controller)):
    return await _dispatch(controller, lambda: controller.advance(step))


@router.get("/prompts", response_model=PromptsResponse)
async def get_prompts(controller: OrchestrationController = Depends(get_controller)):
    return PromptsResponse(prompts=controller.state.prompts)


@router.put("/prompts/{slot}", response_model=ActionResponse)
async def update_prompt(slot: PromptSlot, request: TextRequest, controller: OrchestrationController = Depends(get_controller)):
    return await _dispatch(controller, lambda: controller.update_prompt(slot, request.text))


@router.delete("/prompts", response_model=ActionResponse)
async def reset_prompts(controller: OrchestrationController = Depends(get_controller)):
    return await _dispatch(controller, controller.reset_prompts)


@router.post("/reset", response_model=ActionResponse)
async def reset_all(controller: OrchestrationController = Depends(get_controller)):
    return await _dispatch(controller, controller.reset_all)
