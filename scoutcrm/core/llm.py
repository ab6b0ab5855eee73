"""LLM client utilities and tolerant parsing of model output."""

import asyncio
import json
import re
from typing import Any

from anthropic import AsyncAnthropic

from scoutcrm.core.config import get_settings
from scoutcrm.core.logging import get_logger
from scoutcrm.core.schemas_prospects import ScholarshipTier

logger = get_logger(__name__)


class AIUnavailableError(RuntimeError):
    """No API key configured for the AI service."""


def get_anthropic_client() -> AsyncAnthropic:
    """
    Get a configured async Anthropic client.

    Raises:
        AIUnavailableError: If ANTHROPIC_API_KEY is not configured
    """
    settings = get_settings()
    if not settings.ANTHROPIC_API_KEY:
        raise AIUnavailableError("ANTHROPIC_API_KEY not configured")
    return AsyncAnthropic(
        api_key=settings.ANTHROPIC_API_KEY,
        timeout=settings.AI_TIMEOUT_SECONDS,
        max_retries=1,
    )


async def generate_text(
    prompt: str,
    model: str,
    image_base64: str | None = None,
    mime_type: str = "image/jpeg",
    system: str | None = None,
    max_tokens: int = 2000,
    temperature: float = 0.2,
) -> str:
    """
    Single request/response call to the AI service.

    The whole call is bounded by AI_TIMEOUT_SECONDS; a timeout raises
    asyncio.TimeoutError.

    Args:
        prompt: User prompt text
        model: Model name
        image_base64: Optional base64 image sent before the prompt
        mime_type: Image media type
        system: Optional system prompt

    Returns:
        Concatenated text blocks of the response
    """
    settings = get_settings()
    client = get_anthropic_client()

    content: list[dict[str, Any]] = []
    if image_base64:
        content.append(
            {
                "type": "image",
                "source": {"type": "base64", "media_type": mime_type, "data": image_base64},
            }
        )
    content.append({"type": "text", "text": prompt})

    kwargs: dict[str, Any] = {
        "model": model,
        "max_tokens": max_tokens,
        "temperature": temperature,
        "messages": [{"role": "user", "content": content}],
    }
    if system:
        kwargs["system"] = system

    response = await asyncio.wait_for(
        client.messages.create(**kwargs),
        timeout=settings.AI_TIMEOUT_SECONDS,
    )
    return "".join(
        block.text for block in response.content if getattr(block, "type", None) == "text"
    )


def _strip_llm_fences(raw_output: str) -> str:
    """Strip markdown code fences from LLM output.

    Handles: ```json ... ```, ``` ... ```, leading/trailing whitespace.
    """
    cleaned = raw_output.strip()

    fence_match = re.search(r"```(?:json)?\s*\n?(.*?)```", cleaned, re.DOTALL | re.IGNORECASE)
    if fence_match:
        return fence_match.group(1).strip()

    # Unterminated fence
    cleaned = re.sub(r"^```(?:json)?", "", cleaned, flags=re.IGNORECASE)
    return cleaned.rstrip("`").strip()


def extract_json_text(raw_output: str) -> str:
    """
    Cut the JSON document out of surrounding prose.

    Takes whichever of ``{`` / ``[`` appears first and slices to the last
    matching closer, so "Here you go: {...} hope this helps" yields the
    object.
    """
    cleaned = _strip_llm_fences(raw_output)

    first_brace = cleaned.find("{")
    first_bracket = cleaned.find("[")
    if first_bracket != -1 and (first_brace == -1 or first_bracket < first_brace):
        start, end = first_bracket, cleaned.rfind("]")
    elif first_brace != -1:
        start, end = first_brace, cleaned.rfind("}")
    else:
        return cleaned

    if end > start:
        return cleaned[start : end + 1]
    return cleaned[start:]


def parse_llm_json_dict(raw_output: str) -> Any:
    """
    Parse LLM output as JSON after stripping fences and prose.

    Returns:
        Parsed JSON value (dict or list)

    Raises:
        json.JSONDecodeError: If no valid JSON can be recovered
    """
    return json.loads(extract_json_text(raw_output))


# =======================
# Field coercion
# =======================


def coerce_str_list(value: Any) -> list[str]:
    """Lists keep their non-empty string items; any other shape becomes []."""
    if not isinstance(value, list):
        return []
    return [str(item).strip() for item in value if isinstance(item, (str, int, float)) and str(item).strip()]


def coerce_str(value: Any, default: str = "") -> str:
    if isinstance(value, str) and value.strip():
        return value.strip()
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return default


def coerce_score(value: Any, default: int = 50) -> int:
    """Clamp a numeric score to 0-100; non-numeric values use the default."""
    if isinstance(value, bool):
        return default
    if isinstance(value, str):
        try:
            value = float(value.strip())
        except ValueError:
            return default
    if not isinstance(value, (int, float)) or value != value:  # NaN
        return default
    return max(0, min(100, int(round(value))))


def coerce_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return int(value)
    if isinstance(value, str):
        digits = re.search(r"\d+", value)
        return int(digits.group()) if digits else None
    return None


def normalize_tier(value: Any) -> ScholarshipTier:
    """Map free-form tier text onto the three tiers; default Tier 3."""
    text = str(value or "").lower().replace("-", " ").replace("_", " ")
    for tier, needles in (
        (ScholarshipTier.TIER_1, ("tier 1", "tier1", "tier i ")),
        (ScholarshipTier.TIER_2, ("tier 2", "tier2", "tier ii ")),
        (ScholarshipTier.TIER_3, ("tier 3", "tier3", "tier iii")),
    ):
        if any(needle in f"{text} " for needle in needles):
            return tier
    if text.strip() in ("1", "2", "3"):
        return ScholarshipTier(f"Tier {text.strip()}")
    return ScholarshipTier.TIER_3
