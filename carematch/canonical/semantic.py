"""LLM-powered semantic matching of raw values to canonical entries.

Uses OpenAI gpt-4o-mini to pick at most one canonical entry for a raw
value the deterministic stages could not resolve. The resolver only
depends on the SemanticMatcher call signature, so tests and alternative
providers can supply any async callable.
"""

import json
import logging
import os
from typing import Any, Dict, List, Optional, Protocol

from openai import AsyncOpenAI, OpenAIError
from pydantic import BaseModel, Field, ValidationError

from carematch.errors import ExternalServiceError
from carematch.models import CanonicalEntry, CanonicalKey

logger = logging.getLogger(__name__)


DOMAIN_HINTS: Dict[CanonicalKey, str] = {
    CanonicalKey.FACILITY_NAME: "healthcare facility or hospital",
    CanonicalKey.LICENSE_TYPE: "professional medical/nursing license",
    CanonicalKey.CERT_TYPE: "healthcare certification",
    CanonicalKey.JOB_TITLE: "healthcare job title or position",
}


class SemanticSelection(BaseModel):
    """Selection returned by a semantic matcher."""

    match_id: Optional[str] = Field(None, description="Selected canonical entry id, or null for no match")
    confidence: float = Field(0.0, ge=0.0, le=1.0, description="Confidence in the selection")
    reasoning: str = Field("", description="One-line rationale for the choice")


class SemanticMatcher(Protocol):
    """Capability to pick a canonical entry for a raw value."""

    async def __call__(
        self,
        raw_value: str,
        domain_hint: str,
        entries: List[CanonicalEntry],
    ) -> SemanticSelection:
        ...


# System prompt for semantic matching
SEMANTIC_PROMPT = """You are a semantic matching assistant for healthcare workforce data.

Your task:
- Select exactly one canonical entry ID from the provided list, OR return null.
- NEVER invent an ID.
- Only select an ID if there is a clear semantic match.
- If unsure, return null.
- Give a reason that is a short, to the point one-liner explaining your choice.

Confidence rules:
- Confidence is ignored unless a valid ID is selected.
- Do NOT return confidence > 0.5 unless you are reasonably certain.

Output ONLY valid JSON of the form:
{"match_id": "<id or null>", "confidence": <0.0-1.0>, "reasoning": "<one line>"}"""


def format_entries(entries: List[CanonicalEntry]) -> str:
    """Render entries as one line each for the prompt."""
    lines = []
    for entry in entries:
        text = f'id: "{entry.id}", name: "{entry.name}"'
        if entry.abbreviation:
            text += f', abbreviation: "{entry.abbreviation}"'
        if entry.aliases:
            text += f", aliases: {json.dumps(entry.aliases)}"
        lines.append(text)
    return "\n".join(lines)


class OpenAISemanticMatcher:
    """Semantic matcher backed by the OpenAI chat completions API."""

    def __init__(
        self,
        model: str = "gpt-4o-mini",
        client: Optional[AsyncOpenAI] = None,
    ):
        """Initialize the matcher.

        Args:
            model: Chat model name
            client: Optional preconfigured client. Defaults to one using OPENAI_API_KEY.
        """
        self.client = client or AsyncOpenAI(api_key=os.getenv("OPENAI_API_KEY"))
        self.model = model

    async def __call__(
        self,
        raw_value: str,
        domain_hint: str,
        entries: List[CanonicalEntry],
    ) -> SemanticSelection:
        """Ask the model to pick one of the entries for a raw value.

        Args:
            raw_value: Unresolved raw string
            domain_hint: Description of what kind of value this is
            entries: Candidate canonical entries

        Returns:
            Parsed SemanticSelection

        Raises:
            ExternalServiceError: The API call failed or returned malformed output
        """
        prompt = (
            f'Input value ({domain_hint}):\n"{raw_value}"\n\n'
            f"Canonical entries:\n{format_entries(entries)}\n\n"
            "Return the best matching canonical entry ID, or null if none apply."
        )

        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": SEMANTIC_PROMPT},
                    {"role": "user", "content": prompt},
                ],
                response_format={"type": "json_object"},
                temperature=0.0,
                max_tokens=300,
            )
        except OpenAIError as e:
            raise ExternalServiceError(f"OpenAI request failed: {e}") from e

        result_text = response.choices[0].message.content
        if not result_text:
            raise ExternalServiceError("Empty response from semantic matcher")

        return parse_selection(result_text)


def parse_selection(payload: Any) -> SemanticSelection:
    """Validate a raw JSON string or dict into a SemanticSelection.

    Raises:
        ExternalServiceError: The payload is not valid JSON or fails validation
    """
    if isinstance(payload, SemanticSelection):
        return payload

    try:
        data = json.loads(payload) if isinstance(payload, (str, bytes)) else payload
        return SemanticSelection.model_validate(data)
    except json.JSONDecodeError as e:
        raise ExternalServiceError(f"Semantic matcher returned invalid JSON: {e}") from e
    except ValidationError as e:
        raise ExternalServiceError(
            f"Semantic matcher response failed validation: {e.error_count()} error(s)"
        ) from e
