"""
roundtable/schemas.py: contracts between the workflow and the generation service.

Kept apart from:
- roundtable/workflow/state.py  → the workflow state tree (WorkflowState)
- roundtable/models.py          → REST request/response schemas

StreamChunk    - one fragment of a streamed generation (text + grounding citations)
CharacterPanel - structured output schema for panel generation
NewCharacter   - manually entered panel member (all fields required)
"""

from __future__ import annotations

from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field, field_validator

from roundtable.workflow.state import Character, Citation


class StreamChunk(BaseModel):
    """One fragment of a streaming response. Either field may be empty."""

    model_config = ConfigDict(frozen=True)

    text: str = ""
    citations: list[Citation] = Field(default_factory=list)


class PanelMember(BaseModel):
    name: Annotated[str, Field(description="角色的中文姓名")]
    profession: Annotated[str, Field(description="角色的中文職稱")]
    background: Annotated[str, Field(description="角色的中文背景描述")]


class CharacterPanel(BaseModel):
    """
    Structured output of panel generation.

    Every member must carry name, profession and background; the model output is
    otherwise trusted as-is (no length or uniqueness checks).
    """

    characters: Annotated[list[PanelMember], Field(
        description="會議小組成員，依發言順序排列。",
    )]

    def to_characters(self) -> list[Character]:
        return [
            Character(name=m.name, profession=m.profession, background=m.background)
            for m in self.characters
        ]


class NewCharacter(BaseModel):
    """Manual panel addition. Blank fields are rejected before touching state."""

    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    name: Annotated[str, Field(min_length=1, examples=["陳大文 博士"])]
    profession: Annotated[str, Field(min_length=1, examples=["臨床心理學家"])]
    background: Annotated[str, Field(min_length=1)]

    @field_validator("name", "profession", "background")
    @classmethod
    def not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("請填寫所有欄位。")
        return v

    def to_character(self) -> Character:
        return Character(name=self.name, profession=self.profession, background=self.background)
