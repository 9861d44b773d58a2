"""Known projects and keyword-based project matching.

Keyword matching is the cheap first pass of project detection: a strong
match links the event without asking the LLM at all, weaker matches
narrow the candidate list the LLM chooses from.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from day_brief.exceptions import EnrichmentError
from day_brief.models.events import CanonicalEvent, Enrichment

logger = logging.getLogger(__name__)

STRONG_MATCH_CONFIDENCE = 0.8

_STOP_WORDS = frozenset(
    {
        "meeting", "call", "sync", "checkin", "check-in", "review", "discussion",
        "the", "and", "for", "with", "a", "an", "of", "to", "in", "on", "at",
    }
)
_NON_WORD = re.compile(r"[^a-z0-9]")


class Project(BaseModel):
    """A project events can be linked to.

    ``context`` decides the category of attendee-less Outlook events linked
    to the project.
    """

    id: str
    name: str
    narrative: str = ""
    keywords: list[str] = Field(default_factory=list)
    context: Literal["Work", "Life"] = "Work"


_PROJECT_LIST = TypeAdapter(list[Project])


def load_projects(path: Path) -> list[Project]:
    """Load the project catalogue from a JSON array file.

    A missing file means "no projects"; an unreadable one is an error.
    """
    if not path.exists():
        logger.info("No project catalogue at %s; project linking disabled", path)
        return []
    try:
        projects = _PROJECT_LIST.validate_json(path.read_text(encoding="utf-8"))
    except (ValidationError, OSError) as exc:
        raise EnrichmentError(f"Invalid project catalogue {path}: {exc}") from exc
    logger.info("Loaded %d project(s) from %s", len(projects), path)
    return projects


def extract_keywords(title: str, description: str = "") -> list[str]:
    """Distinct lowercase words of *title* and *description*, minus filler."""
    words: list[str] = []
    for raw in f"{title} {description}".lower().split():
        if len(raw) <= 2 or raw in _STOP_WORDS:
            continue
        word = _NON_WORD.sub("", raw)
        if word and word not in words:
            words.append(word)
    return words


@dataclass
class ProjectMatch:
    """A project scored against one event's keywords."""

    project: Project
    score: int
    confidence: float
    matched: list[str] = field(default_factory=list)


def match_projects_by_keywords(
    event: CanonicalEvent, projects: list[Project]
) -> list[ProjectMatch]:
    """Score *projects* by keyword overlap with *event*, best first.

    One point per event keyword found in the project's text, two more per
    project-name word the event mentions.  Projects scoring zero are
    dropped.
    """
    keywords = extract_keywords(event.title, event.description)
    if not keywords:
        return []

    matches: list[ProjectMatch] = []
    for project in projects:
        text = " ".join([project.name, project.narrative, *project.keywords]).lower()
        matched = [keyword for keyword in keywords if keyword in text]
        name_words = project.name.lower().split()
        score = len(matched) + 2 * sum(1 for word in name_words if word in keywords)
        if score == 0:
            continue
        matches.append(
            ProjectMatch(
                project=project,
                score=score,
                confidence=score / max(len(keywords), len(name_words)),
                matched=matched,
            )
        )

    return sorted(matches, key=lambda match: match.score, reverse=True)


class KeywordProjectClassifier:
    """Enrichment oracle that links projects by keywords only.

    Used when no LLM is configured.  It never produces summaries.
    """

    def __init__(self, projects: list[Project]) -> None:
        self._projects = projects

    async def classify(self, event: CanonicalEvent) -> Enrichment | None:
        matches = match_projects_by_keywords(event, self._projects)
        if not matches or matches[0].confidence < STRONG_MATCH_CONFIDENCE:
            return None
        best = matches[0].project
        logger.info("Keyword match: '%s' -> %s", event.title, best.name)
        return Enrichment(project_ref=best.id, category=best.context)

    async def summarize(self, event: CanonicalEvent) -> str | None:
        return None

