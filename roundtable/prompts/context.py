"""Prompt rendering for the workflow steps.

Templates carry {{placeholder}} tokens; render_prompt() substitutes every
occurrence at call time. Long inputs are cut to per-step excerpt limits so a
single request stays within the model context:

  research-supplement  researchData ≤ 10 000 chars
  panel-gen            researchData ≤ 20 000 chars
  discussion-start     researchData ≤ 15 000 chars
  discussion-extend    researchData ≤ 10 000 chars (transcript kept whole)
  article-gen          researchData ≤ 10 000, transcript ≤ 30 000 chars
"""

from __future__ import annotations

import re
from typing import Iterable, Mapping

SUPPLEMENT_RESEARCH_LIMIT = 10_000
PANEL_RESEARCH_LIMIT = 20_000
DISCUSSION_RESEARCH_LIMIT = 15_000
EXTEND_RESEARCH_LIMIT = 10_000
ARTICLE_RESEARCH_LIMIT = 10_000
ARTICLE_TRANSCRIPT_LIMIT = 30_000

_PLACEHOLDER = re.compile(r"\{\{\s*(\w+)\s*\}\}")


def render_prompt(template: str, values: Mapping[str, str]) -> str:
    """Replace {{name}} tokens with values[name]. Unknown tokens are left as-is."""

    def _substitute(match: re.Match) -> str:
        name = match.group(1)
        if name in values:
            return values[name]
        return match.group(0)

    return _PLACEHOLDER.sub(_substitute, template)


def excerpt(text: str, limit: int) -> str:
    return text[:limit]


def build_character_profiles(characters: Iterable) -> str:
    """One line per panel member, in panel order: "- 姓名，職業：背景"."""
    return "\n".join(
        f"- {c.name}，{c.profession}：{c.background}" for c in characters
    )
