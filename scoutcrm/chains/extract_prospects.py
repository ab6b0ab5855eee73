"""LLM chains for pulling prospects out of pasted text and roster photos.

Bulk extraction feeds the outreach/import review: every candidate becomes a
Prospect in the shadow status, so nothing lands on the pipeline board until
it is promoted.
"""

import asyncio
import json
from typing import Any

from pydantic import BaseModel, Field

from scoutcrm.core.config import get_settings
from scoutcrm.core.llm import (
    coerce_int,
    coerce_score,
    coerce_str,
    generate_text,
    normalize_tier,
    parse_llm_json_dict,
)
from scoutcrm.core.logging import get_logger
from scoutcrm.core.schemas_prospects import Evaluation, Prospect, ProspectStatus

logger = get_logger(__name__)


BULK_SYSTEM_PROMPT = """You extract soccer players from rosters, spreadsheets, notes and photos.

Return ONLY a JSON array, one object per player:
[
  {
    "name": "Full name",
    "age": <integer or null>,
    "position": "GK | CB | LB | RB | CDM | CM | CAM | LM | RM | LW | RW | ST | jersey number | Unknown",
    "club": "string or null",
    "email": "string or null",
    "phone": "string or null",
    "notes": "anything else worth keeping, or null",
    "evaluation": {"score": <0-100>, "scholarshipTier": "Tier 1" | "Tier 2" | "Tier 3", "summary": "one sentence"}
  }
]

RULES:
- One entry per distinct person; skip headers, coaches and team names
- Never invent contact details that are not in the input
"""

DETAILS_SYSTEM_PROMPT = """Extract fields for a soccer scout's player submission form.

Return ONLY a JSON object with any of these keys that the text supports:
firstName, lastName, email, phone, parentEmail, position, dob, gradYear, club, teamLevel, gpa
Omit keys the text does not mention.
"""

DETAIL_FIELDS = (
    "firstName",
    "lastName",
    "email",
    "phone",
    "parentEmail",
    "position",
    "dob",
    "gradYear",
    "club",
    "teamLevel",
    "gpa",
)


class ExtractedCandidate(BaseModel):
    """A player found in bulk input, validated before it becomes a Prospect."""

    name: str = Field(..., min_length=2)
    age: int | None = None
    position: str = "Unknown"
    club: str | None = None
    email: str | None = None
    phone: str | None = None
    notes: str | None = None
    evaluation: Evaluation | None = None

    def to_prospect(self) -> Prospect:
        """New shadow-state prospect for the import review."""
        return Prospect(
            name=self.name,
            age=self.age,
            position=self.position,
            club=self.club,
            email=self.email,
            phone=self.phone,
            notes=self.notes,
            evaluation=self.evaluation,
            status=ProspectStatus.PROSPECT,
        )


def _find_items(parsed: Any) -> list:
    if isinstance(parsed, list):
        return parsed
    if isinstance(parsed, dict):
        for key in ("players", "prospects", "roster"):
            if isinstance(parsed.get(key), list):
                return parsed[key]
        for value in parsed.values():
            if isinstance(value, list):
                return value
        if parsed.get("name"):
            return [parsed]
    return []


def _partial_evaluation(value: Any) -> Evaluation | None:
    if not isinstance(value, dict) or value.get("score") is None:
        return None
    return Evaluation(
        score=coerce_score(value.get("score")),
        scholarship_tier=normalize_tier(value.get("scholarshipTier") or value.get("tier")),
        summary=coerce_str(value.get("summary")),
    )


def parse_candidates(raw_output: str) -> list[ExtractedCandidate]:
    """
    Parse raw model text into validated candidates.

    Entries that are not objects or lack a usable name are skipped; a
    response with no recoverable JSON yields an empty list.
    """
    try:
        parsed = parse_llm_json_dict(raw_output or "")
    except json.JSONDecodeError as e:
        logger.warning(f"Bulk extraction response is not valid JSON: {e} - {raw_output[:200]}")
        return []

    candidates: list[ExtractedCandidate] = []
    for item in _find_items(parsed):
        if not isinstance(item, dict):
            logger.warning(f"Skipping non-dict candidate entry: {type(item)}")
            continue
        name = coerce_str(item.get("name"))
        if len(name) < 2:
            continue
        candidates.append(
            ExtractedCandidate(
                name=name,
                age=coerce_int(item.get("age")),
                position=coerce_str(item.get("position"), "Unknown"),
                club=coerce_str(item.get("club")) or None,
                email=coerce_str(item.get("email")) or None,
                phone=coerce_str(item.get("phone")) or None,
                notes=coerce_str(item.get("notes")) or None,
                evaluation=_partial_evaluation(item.get("evaluation")),
            )
        )
    return candidates


async def extract_prospects_from_bulk(
    input_data: str,
    is_image: bool = False,
    mime_type: str = "image/jpeg",
) -> list[ExtractedCandidate]:
    """
    Extract candidates from pasted text or a roster photo.

    Returns:
        Validated candidates; [] on any failure
    """
    settings = get_settings()
    try:
        if is_image:
            raw_output = await generate_text(
                "Extract every player from this roster photo.",
                model=settings.EXTRACTION_MODEL,
                image_base64=input_data,
                mime_type=mime_type,
                system=BULK_SYSTEM_PROMPT,
                max_tokens=4000,
            )
        else:
            raw_output = await generate_text(
                f"DATA:\n{input_data[:20000]}",
                model=settings.EXTRACTION_MODEL,
                system=BULK_SYSTEM_PROMPT,
                max_tokens=4000,
            )
    except asyncio.TimeoutError:
        logger.warning("Bulk extraction timed out")
        return []
    except Exception as e:
        logger.error(f"Bulk extraction failed: {e}", exc_info=True)
        return []

    candidates = parse_candidates(raw_output)
    logger.info(f"Extracted {len(candidates)} candidates from {'image' if is_image else 'text'} input")
    return candidates


async def parse_prospect_details(text: str) -> dict[str, str]:
    """Pull submission-form fields out of free text; {} on failure."""
    settings = get_settings()
    try:
        raw_output = await generate_text(
            f'Text: "{text[:5000]}"',
            model=settings.EXTRACTION_MODEL,
            system=DETAILS_SYSTEM_PROMPT,
            max_tokens=800,
        )
        parsed = parse_llm_json_dict(raw_output)
    except Exception as e:
        logger.warning(f"Detail parsing failed: {e}")
        return {}

    if not isinstance(parsed, dict):
        return {}
    return {key: coerce_str(parsed[key]) for key in DETAIL_FIELDS if coerce_str(parsed.get(key))}
