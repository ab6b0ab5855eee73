"""LLM chain for scoring a single prospect.

Accepts free text (stats, notes, a pasted profile) or an image (a profile
screenshot or match report) and returns a validated Evaluation. Output from
the model is never trusted: every field is coerced before it reaches the
entity model, and any failure degrades to a low-confidence fallback.
"""

import asyncio
import json
from dataclasses import dataclass
from typing import Any

from scoutcrm.core.config import get_settings
from scoutcrm.core.llm import (
    coerce_score,
    coerce_str,
    coerce_str_list,
    generate_text,
    normalize_tier,
    parse_llm_json_dict,
)
from scoutcrm.core.logging import get_logger
from scoutcrm.core.schemas_prospects import Evaluation, ScholarshipTier

logger = get_logger(__name__)


SYSTEM_PROMPT = """You are an elite soccer talent scout evaluating a youth player for
college and professional pathways.

Analyze the player information and return ONLY a JSON object:
{
  "score": <integer 0-100, overall talent and readiness>,
  "collegeLevel": "<projected level, e.g. NCAA D1, NCAA D2, NAIA, JUCO, Pro Academy>",
  "scholarshipTier": "Tier 1" | "Tier 2" | "Tier 3",
  "recommendedPathways": ["<e.g. College Pathway, Development in Europe, Exposure Events>"],
  "strengths": ["<short phrase>"],
  "weaknesses": ["<short phrase>"],
  "nextAction": "<the single most useful next step for the scout>",
  "summary": "<2-3 sentence assessment>"
}

RULES:
- Tier 1 = scholarship-ready / pro potential, Tier 2 = strong college prospect, Tier 3 = needs development
- If information is thin, score conservatively and say what is missing in weaknesses
- No prose outside the JSON object
"""

FALLBACK_EVALUATION = Evaluation(
    score=50,
    college_level="Unknown",
    scholarship_tier=ScholarshipTier.TIER_3,
    recommended_pathways=["Exposure Events"],
    strengths=["Review needed"],
    weaknesses=["Data unclear"],
    next_action="Manual Review",
    summary="AI could not process this input.",
)


class ExtractionError(ValueError):
    """Model output could not be turned into the expected structure."""


@dataclass
class EvaluationResult:
    """Evaluation plus the error that forced a fallback, if any."""

    evaluation: Evaluation
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def evaluation_from_data(data: Any) -> Evaluation:
    """
    Build an Evaluation from loosely shaped JSON.

    Raises:
        ExtractionError: If data is not a JSON object
    """
    if not isinstance(data, dict):
        raise ExtractionError(f"Expected a JSON object, got {type(data).__name__}")

    return Evaluation(
        score=coerce_score(data.get("score")),
        college_level=coerce_str(data.get("collegeLevel") or data.get("college_level"), "Unknown"),
        scholarship_tier=normalize_tier(
            data.get("scholarshipTier") or data.get("scholarship_tier") or data.get("tier")
        ),
        recommended_pathways=coerce_str_list(
            data.get("recommendedPathways", data.get("recommended_pathways"))
        ),
        strengths=coerce_str_list(data.get("strengths")),
        weaknesses=coerce_str_list(data.get("weaknesses")),
        next_action=coerce_str(data.get("nextAction") or data.get("next_action")),
        summary=coerce_str(data.get("summary")),
    )


def parse_evaluation(raw_output: str) -> Evaluation:
    """
    Parse raw model text into an Evaluation.

    Raises:
        ExtractionError: If no JSON object can be recovered
    """
    try:
        data = parse_llm_json_dict(raw_output or "")
    except json.JSONDecodeError as e:
        raise ExtractionError(f"Evaluation response is not valid JSON: {e}") from e
    return evaluation_from_data(data)


async def evaluate_prospect_result(
    input_data: str,
    is_image: bool = False,
    mime_type: str = "image/jpeg",
) -> EvaluationResult:
    """
    Evaluate a prospect, reporting whether the fallback was used.

    Args:
        input_data: Player info text, or base64 image data when is_image
        is_image: Whether input_data is an image
        mime_type: Image media type

    Returns:
        EvaluationResult; never raises
    """
    settings = get_settings()
    try:
        if is_image:
            raw_output = await generate_text(
                "Evaluate the player shown in this image.",
                model=settings.EVALUATION_MODEL,
                image_base64=input_data,
                mime_type=mime_type,
                system=SYSTEM_PROMPT,
            )
        else:
            raw_output = await generate_text(
                f"Player Info:\n{input_data[:15000]}",
                model=settings.EVALUATION_MODEL,
                system=SYSTEM_PROMPT,
            )
        logger.debug(f"Evaluation raw output: {raw_output[:500]}")
        return EvaluationResult(evaluation=parse_evaluation(raw_output))

    except ExtractionError as e:
        logger.warning(f"Evaluation output rejected, using fallback: {e}")
        return EvaluationResult(evaluation=FALLBACK_EVALUATION, error=str(e))
    except asyncio.TimeoutError:
        logger.warning(f"Evaluation timed out after {settings.AI_TIMEOUT_SECONDS}s, using fallback")
        return EvaluationResult(evaluation=FALLBACK_EVALUATION, error="timeout")
    except Exception as e:
        logger.error(f"Evaluation failed, using fallback: {e}", exc_info=True)
        return EvaluationResult(evaluation=FALLBACK_EVALUATION, error=str(e) or type(e).__name__)


async def evaluate_prospect(
    input_data: str,
    is_image: bool = False,
    mime_type: str = "image/jpeg",
) -> Evaluation:
    """Evaluate a prospect; failures return FALLBACK_EVALUATION."""
    result = await evaluate_prospect_result(input_data, is_image, mime_type)
    return result.evaluation
