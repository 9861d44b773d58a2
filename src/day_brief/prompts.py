"""Prompt builders for the Gemini enrichment oracle.

Two prompts: project classification (which known project an event belongs
to) and the pre-meeting summary generated for Work events.
"""

from __future__ import annotations

import json

from day_brief.enrichment.projects import Project
from day_brief.models.events import Attendee, CanonicalEvent

_NARRATIVE_LIMIT = 200
_DESCRIPTION_LIMIT = 1500


def format_event_for_llm(event: CanonicalEvent) -> str:
    """Render one canonical event as plain text for a prompt.

    Args:
        event: The event to describe.

    Returns:
        ``Field: value`` lines; the description is truncated so very long
        invitations do not dominate the prompt.
    """
    lines = [
        f"Title: {event.title}",
        f"Start: {event.start.isoformat()}",
        f"End: {event.end.isoformat()}",
        f"All day: {'yes' if event.is_all_day else 'no'}",
        f"Source: {event.source_category}",
    ]
    if event.location:
        lines.append(f"Location: {event.location}")
    if event.attendees:
        lines.append("Attendees:")
        lines.extend(f"- {_format_attendee(a)}" for a in event.attendees)
    if event.description:
        lines.append(f"Description: {event.description[:_DESCRIPTION_LIMIT]}")
    return "\n".join(lines)


def _format_attendee(attendee: Attendee) -> str:
    parts = [attendee.name or attendee.email, f"<{attendee.email}>"]
    if attendee.job_title or attendee.company:
        role = " at ".join(p for p in (attendee.job_title, attendee.company) if p)
        parts.append(f"({role})")
    return " ".join(parts)


def build_classification_prompt(event: CanonicalEvent, projects: list[Project]) -> str:
    """Build the project-classification prompt.

    Args:
        event: The event to classify.
        projects: Candidate projects (keyword matches, or every project
            when nothing matched by keyword).

    Returns:
        The complete prompt string.
    """
    catalogue = json.dumps(
        [
            {"id": p.id, "name": p.name, "narrative": p.narrative[:_NARRATIVE_LIMIT]}
            for p in projects
        ],
        indent=2,
    )
    return f"""\
You are analyzing a calendar event to determine which project it belongs to.

## Event

{format_event_for_llm(event)}

## Known Projects

{catalogue}

## Rules

- Consider direct mentions of project names or key terms, attendee email
  domains (client domains often indicate the project), and the meeting's
  purpose.
- Answer with the EXACT "id" of one project above, or null when the event
  does not belong to any of them.
- "confidence" is a number between 0.0 and 1.0.
- "reasoning" is one short sentence.
"""


def build_summary_prompt(event: CanonicalEvent, project: Project | None = None) -> str:
    """Build the pre-meeting summary prompt for a Work event.

    Args:
        event: The event to brief.
        project: The linked project, when one was found.

    Returns:
        The complete prompt string.
    """
    prompt = f"""\
Write a short pre-meeting briefing (2-4 sentences) for the calendar owner.
Say what the meeting is likely about, who is attending and anything worth
preparing. Do not invent facts that are not in the event details.

## Event

{format_event_for_llm(event)}
"""
    if project is not None:
        prompt += f"""
## Project

{project.name}: {project.narrative[:_NARRATIVE_LIMIT] or 'No narrative'}
"""
    return prompt
