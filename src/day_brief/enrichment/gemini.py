"""Gemini-backed enrichment oracle.

Wraps the Google ``google-genai`` SDK to link events to known projects and
to write short pre-meeting summaries.  Responses use structured JSON output
and are validated with Pydantic; a malformed response is retried once.
"""

from __future__ import annotations

import json
import logging
from typing import TypeVar

from google import genai
from google.genai import errors as genai_errors
from google.genai import types as genai_types
from pydantic import BaseModel, ValidationError

from day_brief.enrichment.projects import (
    STRONG_MATCH_CONFIDENCE,
    Project,
    match_projects_by_keywords,
)
from day_brief.exceptions import EnrichmentError, MalformedResponseError
from day_brief.models.events import CanonicalEvent, Enrichment
from day_brief.models.llm import EventSummarySchema, ProjectClassificationSchema
from day_brief.prompts import build_classification_prompt, build_summary_prompt

logger = logging.getLogger(__name__)

_SchemaT = TypeVar("_SchemaT", bound=BaseModel)

AI_MATCH_CONFIDENCE = 0.7
_MAX_ATTEMPTS = 2


class GeminiEnrichmentOracle:
    """Project linking and summaries via Google Gemini.

    Project detection is hybrid: a strong keyword match is accepted
    without an API call; otherwise Gemini picks from the keyword matches
    (or from every project when nothing matched) and its answer counts
    only at :data:`AI_MATCH_CONFIDENCE` or above.

    Args:
        api_key: Google Gemini API key.
        projects: Known projects events can be linked to.
        model: Model identifier.  Defaults to ``"gemini-2.0-flash"``.
        client: Optional pre-built ``genai.Client`` (tests pass a mock).
    """

    def __init__(
        self,
        api_key: str,
        projects: list[Project],
        model: str = "gemini-2.0-flash",
        client: genai.Client | None = None,
    ) -> None:
        self._client = client or genai.Client(api_key=api_key)
        self._projects = projects
        self._by_id = {project.id: project for project in projects}
        self._model = model

    async def classify(self, event: CanonicalEvent) -> Enrichment | None:
        """Link *event* to a known project.

        Returns:
            An :class:`Enrichment` with ``project_ref`` and the project's
            context as ``category``, or ``None`` when no project fits.

        Raises:
            EnrichmentError: If Gemini is unreachable or keeps returning
                malformed output.
        """
        matches = match_projects_by_keywords(event, self._projects)
        if matches and matches[0].confidence >= STRONG_MATCH_CONFIDENCE:
            best = matches[0].project
            logger.info(
                "Keyword match for '%s': %s (confidence %.2f)",
                event.title,
                best.name,
                matches[0].confidence,
            )
            return Enrichment(project_ref=best.id, category=best.context)

        candidates = [match.project for match in matches] or self._projects
        if not candidates:
            return None

        prompt = build_classification_prompt(event, candidates)
        answer = await self._generate(prompt, ProjectClassificationSchema)
        logger.info(
            "AI classification for '%s': project_id=%s confidence=%.2f reasoning: %s",
            event.title,
            answer.project_id,
            answer.confidence,
            answer.reasoning,
        )

        if not answer.project_id or answer.confidence < AI_MATCH_CONFIDENCE:
            return None
        project = self._by_id.get(answer.project_id)
        if project is None:
            logger.warning("Gemini returned unknown project id %r", answer.project_id)
            return None
        return Enrichment(project_ref=project.id, category=project.context)

    async def summarize(self, event: CanonicalEvent) -> str | None:
        """Write a pre-meeting summary for *event*.

        Raises:
            EnrichmentError: If Gemini is unreachable or keeps returning
                malformed output.
        """
        project = self._by_id.get(event.project_ref) if event.project_ref else None
        answer = await self._generate(build_summary_prompt(event, project), EventSummarySchema)
        summary = answer.summary.strip()
        return summary or None

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _generate(self, prompt: str, schema: type[_SchemaT]) -> _SchemaT:
        """Call Gemini with *schema* as structured output, retrying once."""
        config = genai_types.GenerateContentConfig(
            response_mime_type="application/json",
            response_schema=schema,
        )
        logger.debug("Prompt sent to Gemini:\n%s", prompt)

        last_error: MalformedResponseError | None = None
        for attempt in range(1, _MAX_ATTEMPTS + 1):
            raw_text = await self._call_api(prompt, config)
            logger.debug("Raw Gemini response (attempt %d):\n%s", attempt, raw_text)
            try:
                return self._parse_response(raw_text, schema)
            except MalformedResponseError as exc:
                last_error = exc
                if attempt < _MAX_ATTEMPTS:
                    logger.warning("Malformed Gemini response on attempt %d, retrying: %s", attempt, exc)

        assert last_error is not None
        logger.error(
            "Gemini response malformed after %d attempts. Raw response: %s | Error: %s",
            _MAX_ATTEMPTS,
            last_error.raw_response,
            last_error,
        )
        raise last_error

    async def _call_api(self, prompt: str, config: genai_types.GenerateContentConfig) -> str:
        try:
            response = await self._client.aio.models.generate_content(
                model=self._model,
                contents=prompt,
                config=config,
            )
        except genai_errors.APIError as exc:
            logger.error("Gemini API error: %s", exc)
            raise EnrichmentError(f"Gemini API call failed: {exc}") from exc
        return response.text or ""

    @staticmethod
    def _parse_response(raw_text: str, schema: type[_SchemaT]) -> _SchemaT:
        if not raw_text or not raw_text.strip():
            raise MalformedResponseError("Empty response from Gemini", raw_response=raw_text or "")
        try:
            data = json.loads(raw_text)
        except json.JSONDecodeError as exc:
            raise MalformedResponseError(f"Invalid JSON: {exc}", raw_response=raw_text) from exc
        try:
            return schema.model_validate(data)
        except ValidationError as exc:
            raise MalformedResponseError(
                f"Schema validation failed: {exc}", raw_response=raw_text
            ) from exc
