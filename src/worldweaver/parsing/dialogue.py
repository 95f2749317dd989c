"""Structural checks for dialogue setups and action options."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from worldweaver.models.dialogue import MIN_DIALOGUE_OPTIONS, DialogueLine, DialogueSetup
from worldweaver.parsing.shapes import non_empty_string


@dataclass
class DialogueParse:
    setup: DialogueSetup | None
    errors: list[str] = field(default_factory=list)


def parse_dialogue_setup(value: Any) -> DialogueParse:
    """Validate a raw dialogue setup.

    Rules: ``participants`` is a non-empty list of non-empty strings;
    ``initialNpcResponses`` is non-empty and every entry has a speaker among
    the participants and a non-empty line; ``initialPlayerOptions`` holds at
    least four unique non-empty strings.
    """
    if not isinstance(value, dict):
        return DialogueParse(setup=None, errors=["dialogueSetup must be an object"])

    errors: list[str] = []
    participants = value.get("participants")
    if not isinstance(participants, list) or not participants or not all(
        non_empty_string(p) for p in participants
    ):
        errors.append("'participants' must be a non-empty array of names")
        participants = []
    participants = [p.strip() for p in participants]

    responses = value.get("initialNpcResponses", value.get("initialResponses"))
    lines: list[DialogueLine] = []
    if not isinstance(responses, list) or not responses:
        errors.append("'initialNpcResponses' must be a non-empty array")
    else:
        for index, entry in enumerate(responses):
            if not isinstance(entry, dict):
                errors.append(f"initialNpcResponses[{index}] must be an object")
                continue
            speaker, line = entry.get("speaker"), entry.get("line")
            if not non_empty_string(speaker) or speaker.strip() not in participants:
                errors.append(f"initialNpcResponses[{index}].speaker {speaker!r} is not a participant")
                continue
            if not non_empty_string(line):
                errors.append(f"initialNpcResponses[{index}].line must be a non-empty string")
                continue
            lines.append(DialogueLine(speaker=speaker.strip(), line=line.strip()))

    options = value.get("initialPlayerOptions", value.get("initialOptions"))
    unique_options: list[str] = []
    if isinstance(options, list) and all(non_empty_string(o) for o in options):
        unique_options = list(dict.fromkeys(o.strip() for o in options))
    if len(unique_options) < MIN_DIALOGUE_OPTIONS:
        errors.append(
            f"'initialPlayerOptions' must hold at least {MIN_DIALOGUE_OPTIONS} unique non-empty strings"
        )

    if errors:
        return DialogueParse(setup=None, errors=errors)
    return DialogueParse(
        setup=DialogueSetup(
            participants=list(dict.fromkeys(participants)),
            initial_responses=lines,
            initial_options=unique_options,
        )
    )


def valid_action_options(options: Any) -> list[str] | None:
    """Return cleaned options if they form a valid non-empty string array."""
    if not isinstance(options, list) or not options:
        return None
    if not all(non_empty_string(o) for o in options):
        return None
    return [o.strip() for o in options]
