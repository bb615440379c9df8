from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from roundtable.prompts.templates import DEFAULT_PROMPTS, PromptSlot, default_prompts

STEP_COUNT = 5
FIRST_STEP = 1


class Citation(BaseModel):
    model_config = ConfigDict(frozen=True)

    title: str
    uri: str                            # identity key inside a citation set


class Character(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    profession: str
    background: str


class WorkflowState(BaseModel):
    """The whole workflow tree. Replaced (never mutated) by WorkflowStore on every write."""

    # --- Navigation ---
    current_step: int = Field(default=FIRST_STEP, ge=FIRST_STEP, le=STEP_COUNT)

    # --- Step 1: topic ---
    topic: str = ""
    topic_confirmed: bool = False

    # --- Step 2: research ---
    research_data: str = ""
    supplemental_query: str = ""
    citations: list[Citation] = Field(default_factory=list)

    # --- Step 3: panel ---
    characters: list[Character] = Field(default_factory=list)   # order = debate order

    # --- Step 4: discussion ---
    transcript: str = ""

    # --- Step 5: article ---
    final_article: str = ""

    # --- Editable prompt templates ---
    prompts: dict[PromptSlot, str] = Field(default_factory=default_prompts)

    # --- Transient (never persisted) ---
    loading: dict[int, bool] = Field(default_factory=dict)
    preparing_step: Optional[int] = None    # request sent, first fragment not yet received
    last_error: Optional[str] = None


class WorkflowSnapshot(BaseModel):
    """Durable subset of WorkflowState written to the snapshot store."""

    model_config = ConfigDict(extra="ignore")

    topic: str = ""
    topic_confirmed: bool = False
    research_data: str = ""
    citations: list[Citation] = Field(default_factory=list)
    characters: list[Character] = Field(default_factory=list)
    transcript: str = ""
    final_article: str = ""
    prompts: dict[PromptSlot, str] = Field(default_factory=default_prompts)

    @field_validator("prompts", mode="before")
    @classmethod
    def fill_missing_slots(cls, value):
        # Records written before a slot existed keep working; unknown slots are dropped.
        merged = {slot.value: text for slot, text in DEFAULT_PROMPTS.items()}
        if isinstance(value, dict):
            for key, text in value.items():
                name = key.value if isinstance(key, PromptSlot) else str(key)
                if name in merged and isinstance(text, str):
                    merged[name] = text
        return merged


PERSISTED_FIELDS: tuple[str, ...] = tuple(WorkflowSnapshot.model_fields)
TRANSIENT_FIELDS: tuple[str, ...] = ("loading", "preparing_step", "last_error")
