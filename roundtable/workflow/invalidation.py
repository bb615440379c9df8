from roundtable.workflow.state import FIRST_STEP, STEP_COUNT, WorkflowState


def invalidate_from(state: WorkflowState, step: int) -> WorkflowState:
    """
    Return a copy of ``state`` with every step >= ``step`` reset to its empty value.

    Also drops loading flags for steps >= ``step`` and clears last_error.
    current_step, prompts and preparing_step are left alone.
    """
    if step < FIRST_STEP or step > STEP_COUNT:
        raise ValueError(f"step must be between {FIRST_STEP} and {STEP_COUNT}, got {step}")

    changes: dict = {}
    if step <= 1:
        changes["topic"] = ""
        changes["topic_confirmed"] = False
    if step <= 2:
        changes["research_data"] = ""
        changes["supplemental_query"] = ""
        changes["citations"] = []
    if step <= 3:
        changes["characters"] = []
    if step <= 4:
        changes["transcript"] = ""
    if step <= 5:
        changes["final_article"] = ""

    changes["loading"] = {k: v for k, v in state.loading.items() if k < step}
    changes["last_error"] = None
    return state.model_copy(update=changes)
