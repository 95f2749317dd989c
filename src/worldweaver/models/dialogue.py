"""Dialogue setup payload."""

from __future__ import annotations

from pydantic import BaseModel, Field

MIN_DIALOGUE_OPTIONS = 4


class DialogueLine(BaseModel):
    """One opening line spoken by a participant."""

    speaker: str
    line: str


class DialogueSetup(BaseModel):
    """Opening state of a conversation.

    Attributes:
        participants: Names of the entities in the conversation.
        initial_responses: Opening lines, each spoken by a participant.
        initial_options: Player replies; the last one ends the conversation.
    """

    participants: list[str] = Field(default_factory=list)
    initial_responses: list[DialogueLine] = Field(default_factory=list)
    initial_options: list[str] = Field(default_factory=list)
