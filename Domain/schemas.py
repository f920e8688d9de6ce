# Domain/schemas.py
from __future__ import annotations

from typing import List

from pydantic import BaseModel, Field, field_validator

from Domain.models import DialogueSequence, DialogueUnit


class DialogueUnitDraft(BaseModel):
    """
    One parsed expression/text pair.
    Expression names a sprite/pose; the display collaborator resolves it.
    """

    expression: str = Field(
        "a",
        description="Pose/expression code shown while the text is displayed.",
    )
    text: str = Field(..., min_length=1, description="Line text.")

    @field_validator("expression")
    @classmethod
    def _strip_expression(cls, v: str) -> str:
        return v.strip()

    def to_unit(self) -> DialogueUnit:
        return DialogueUnit(expression=self.expression, text=self.text)


class ContentRecord(BaseModel):
    """
    Content-parser output contract: one trigger list + one dialogue line.

    An empty trigger list means the line is idle-only content.
    """

    triggers: List[str] = Field(
        default_factory=list,
        description="Raw trigger strings (e.g. process names). Empty = idle.",
    )
    units: List[DialogueUnitDraft] = Field(
        ...,
        min_length=1,
        description="Ordered units making up one complete line.",
    )

    @field_validator("triggers")
    @classmethod
    def _reject_all_blank_triggers(cls, v: List[str]) -> List[str]:
        # only a truly empty list marks idle content
        if v and not any(t.strip() for t in v):
            raise ValueError("triggers are all blank; use an empty list for idle content")
        return v

    def to_sequence(self) -> DialogueSequence:
        return DialogueSequence.of(u.to_unit() for u in self.units)
