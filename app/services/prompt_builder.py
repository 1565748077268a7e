"""Helpers to construct system/user prompts for the inspection LLM calls.

Two prompt pairs are emitted:
* The preliminary analysis prompt: a short, purely observational description.
* The statement prompt: a full DDID (Describe, Determine, Implication,
  Determine, Direct) statement with exactly one recommendation.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

# Recommendation wording for the Direct section, checked in order.
RECOMMENDATIONS = {
    "structural": "Recommend engaging a licensed structural engineer to further evaluate and repair as needed.",
    "new_build": "Recommend that the builder further evaluate and correct as needed.",
    "same_trade": "Recommend engaging a licensed {trade} to further evaluate and repair as needed.",
    "default": "Recommend engaging a qualified licensed contractor to further evaluate and repair as needed.",
}

_NEW_BUILD_PATTERN = re.compile(r"\bnew[\s-]+(build|construction|home)\b", re.IGNORECASE)

SYSTEM_PROMPT = (
    "You assist licensed home inspectors. You look at one inspection photo "
    "together with the inspector's notes and write in plain, factual, "
    "observational English. Never cite building codes, regulations, "
    "compliance or safety standards, and never exaggerate severity."
)


@dataclass(frozen=True)
class PromptContext:
    jurisdiction: str
    notes: str
    new_build: bool = False


@dataclass(frozen=True)
class PromptBundle:
    system_prompt: str
    user_prompt: str


def mentions_new_build(notes: str) -> bool:
    return bool(_NEW_BUILD_PATTERN.search(notes or ""))


def _inspector_data(context: PromptContext, label: str) -> str:
    return (
        "Inspector data:\n"
        f"- Location (state): {context.jurisdiction}\n"
        f"- {label}: {context.notes.strip()}\n"
        "- Image: attached\n"
    )


def build_analysis_prompt(context: PromptContext) -> PromptBundle:
    """Prompt for the brief preliminary description shown before the final statement."""

    user_prompt = (
        "Write ONLY a brief preliminary description of the main subject or "
        "issue visible in the photo, combining what you see with the notes.\n"
        "Rules:\n"
        "- Start directly with the observation, e.g. \"Water staining is present "
        "on the ceiling below the bathroom...\".\n"
        "- Do not open with phrases such as \"The image shows\".\n"
        "- Do not write Determine, Implication or Direct sections.\n"
        "- No formatting, headings or extra explanation.\n\n"
        f"{_inspector_data(context, 'Notes')}\n"
        "Respond with the preliminary description only."
    )
    return PromptBundle(system_prompt=SYSTEM_PROMPT, user_prompt=user_prompt)


def build_statement_prompt(context: PromptContext) -> PromptBundle:
    """Prompt for the complete DDID statement."""

    new_build_hint = (
        "The inspector notes mention a new build, so rule 2 applies.\n"
        if context.new_build
        else ""
    )
    user_prompt = (
        "Write a complete DDID statement for the photo and the final inspector "
        "description below. Communicate the condition clearly without "
        "overstating it.\n\n"
        "Sections, in this order:\n"
        "Describe: the main observation, starting directly with it.\n"
        "Determine: the specific issue.\n"
        "Implication: the possible consequences, stated neutrally.\n"
        "Determine: the condition restated concisely.\n"
        "Direct: exactly ONE recommendation chosen with the rules below.\n\n"
        "Recommendation rules for Direct (first match wins):\n"
        f"1. Structural components involved: \"{RECOMMENDATIONS['structural']}\"\n"
        f"2. New build or new construction: \"{RECOMMENDATIONS['new_build']}\"\n"
        "3. Several related defects of the same trade: "
        f"\"{RECOMMENDATIONS['same_trade'].format(trade='[trade professional]')}\"\n"
        f"4. Otherwise: \"{RECOMMENDATIONS['default']}\"\n"
        f"{new_build_hint}\n"
        "Base the whole statement on the final description and the image. Use "
        "professional, precise, neutral language.\n\n"
        f"{_inspector_data(context, 'Final inspector description')}\n"
        "Write the complete DDID statement now."
    )
    return PromptBundle(system_prompt=SYSTEM_PROMPT, user_prompt=user_prompt)


__all__ = [
    "PromptBundle",
    "PromptContext",
    "RECOMMENDATIONS",
    "build_analysis_prompt",
    "build_statement_prompt",
    "mentions_new_build",
]
