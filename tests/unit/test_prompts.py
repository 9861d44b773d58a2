"""Tests for the Gemini prompt builders."""

from __future__ import annotations

import json
import re

from day_brief.enrichment.projects import Project
from day_brief.models.events import Attendee, CanonicalEvent
from day_brief.prompts import (
    build_classification_prompt,
    build_summary_prompt,
    format_event_for_llm,
)


def _catalogue(prompt: str) -> list[dict]:
    match = re.search(r"## Known Projects\n\n(.*?)\n\n## Rules", prompt, re.DOTALL)
    assert match is not None
    return json.loads(match.group(1))


class TestFormatEventForLlm:
    def test_core_fields(self, make_event) -> None:
        text = format_event_for_llm(make_event(title="Design review"))

        assert "Title: Design review" in text
        assert "Start: 2025-10-06T14:00:00+00:00" in text
        assert "All day: no" in text
        assert "Source: Outlook" in text

    def test_optional_fields_omitted_when_empty(self, make_event) -> None:
        text = format_event_for_llm(make_event())

        assert "Location:" not in text
        assert "Attendees:" not in text
        assert "Description:" not in text

    def test_attendee_role(self, make_event) -> None:
        event = make_event()
        event.attendees = [
            Attendee(
                email="jane@client.com",
                name="Jane Doe",
                job_title="CTO",
                company="Client Co",
            ),
            Attendee(email="bob@example.com"),
        ]

        text = format_event_for_llm(event)

        assert "- Jane Doe <jane@client.com> (CTO at Client Co)" in text
        assert "- bob@example.com <bob@example.com>" in text

    def test_long_description_truncated(self, make_event) -> None:
        text = format_event_for_llm(make_event(description="x" * 5000))

        description = text.split("Description: ", 1)[1]
        assert len(description) == 1500


class TestClassificationPrompt:
    def test_catalogue_lists_candidates(self, make_event) -> None:
        projects = [
            Project(id="atlas", name="Atlas Migration", narrative="Moving to the cloud"),
            Project(id="garden", name="Garden", context="Life"),
        ]

        prompt = build_classification_prompt(make_event(title="Atlas sync"), projects)

        assert "Title: Atlas sync" in prompt
        assert _catalogue(prompt) == [
            {"id": "atlas", "name": "Atlas Migration", "narrative": "Moving to the cloud"},
            {"id": "garden", "name": "Garden", "narrative": ""},
        ]

    def test_narrative_truncated(self, make_event) -> None:
        projects = [Project(id="atlas", name="Atlas", narrative="n" * 500)]

        prompt = build_classification_prompt(make_event(), projects)

        assert len(_catalogue(prompt)[0]["narrative"]) == 200

    def test_asks_for_exact_id_or_null(self, make_event) -> None:
        prompt = build_classification_prompt(make_event(), [])

        assert 'EXACT "id"' in prompt
        assert "null" in prompt


class TestSummaryPrompt:
    def test_without_project(self, make_event) -> None:
        prompt = build_summary_prompt(make_event(title="1:1 with Jane"))

        assert "Title: 1:1 with Jane" in prompt
        assert "## Project" not in prompt

    def test_with_project(self, make_event) -> None:
        project = Project(id="atlas", name="Atlas Migration", narrative="Cloud move")

        prompt = build_summary_prompt(make_event(), project)

        assert "## Project" in prompt
        assert "Atlas Migration: Cloud move" in prompt

    def test_project_without_narrative(self, make_event) -> None:
        prompt = build_summary_prompt(make_event(), Project(id="atlas", name="Atlas"))

        assert "Atlas: No narrative" in prompt
