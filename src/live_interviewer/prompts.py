"""System instruction and scripted opening line for interview sessions."""

from __future__ import annotations

from live_interviewer.session.schemas import (
    ContextSource,
    FileContext,
    FolderContext,
    InterviewMode,
    UrlContext,
)

# Sent as the candidate's first turn so the interviewer speaks first.
OPENING_LINE = "Hello, I am ready for the interview."

_MODE_DESCRIPTIONS = {
    InterviewMode.TECH: "realistic technical interview",
    InterviewMode.MODULE: "module practice session",
}


def build_system_instruction(mode: InterviewMode, context: ContextSource | None = None) -> str:
    instruction = f"You are an expert technical interviewer conducting a {_MODE_DESCRIPTIONS[mode]}. "

    if isinstance(context, UrlContext) and context.value:
        instruction += (
            f"The candidate has provided this GitHub URL as context: {context.value}. "
            "Please ask questions related to this project. "
        )
    elif isinstance(context, FileContext) and context.name:
        instruction += f"The candidate has provided a file named {context.name} as context. "
    elif isinstance(context, FolderContext) and context.name:
        instruction += f"The candidate has provided a project folder ({context.name}) as context. "

    instruction += (
        "Keep your responses concise, professional, and conversational. "
        "Start by briefly introducing yourself and asking the first question."
    )
    return instruction
