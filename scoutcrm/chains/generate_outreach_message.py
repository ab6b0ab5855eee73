"""LLM chain for drafting outreach messages to prospects."""

from scoutcrm.core.config import get_settings
from scoutcrm.core.llm import generate_text
from scoutcrm.core.logging import get_logger
from scoutcrm.core.schemas_prospects import Prospect

logger = get_logger(__name__)

TEMPLATE_CONTEXT: dict[str, str] = {
    "First Spark": (
        "This is the FIRST contact with the player. Introduce yourself, explain the scouting "
        "network and its college and pro academy connections, why you noticed them, and what "
        "opportunities exist. Create urgency but be genuine."
    ),
    "Invite to ID": (
        "Invite them to an upcoming ID Day or Showcase. Explain what happens there "
        "(professional evaluation, video footage, direct exposure to coaches) and the benefits "
        "of attending."
    ),
    "Request Video": (
        "Ask them to submit highlight footage. Explain why video is essential to the evaluation "
        "and what coaches look for (game footage, position-specific clips)."
    ),
    "Follow-up": (
        "This is a follow-up after no response. Reference the previous message, add new value "
        "(recent placements, an upcoming deadline) and create gentle urgency without being pushy."
    ),
}
TEMPLATES = tuple(TEMPLATE_CONTEXT)


def build_prompt(scout_name: str, prospect: Prospect, template: str, assessment_link: str | None) -> str:
    score_line = f"- Scout Score: {prospect.evaluation.score}/100\n" if prospect.evaluation else ""
    if assessment_link:
        cta = f"CALL TO ACTION: Include this link naturally for their free talent assessment: {assessment_link}"
    else:
        cta = "CALL TO ACTION: Suggest a quick call or ask them to reply with questions."

    return f"""You are {scout_name}, a soccer scout connecting talented players with pro academies and college programs.

Write a compelling {template} message to {prospect.name}.

PLAYER CONTEXT:
- Position: {prospect.position or 'Unknown'}
- Age: {prospect.age or 'Unknown'}
- Club: {prospect.club or 'Unknown'}
{score_line}
MESSAGE TYPE: {TEMPLATE_CONTEXT.get(template, 'Professional introduction and next steps.')}

REQUIREMENTS:
1. LENGTH: 4-6 sentences.
2. PERSONALIZATION: Reference what scouts look for in a {prospect.position}.
3. VALUE: Explain what is in it for them (free evaluation, exposure, pathway options).
4. {cta}
5. FORMAT: Line breaks for WhatsApp/text readability. Start with a personalized greeting.

Return ONLY the message body."""


def fallback_message(
    scout_name: str,
    prospect: Prospect,
    template: str,
    assessment_link: str | None = None,
) -> str:
    """Deterministic message used whenever the AI call fails."""
    name = prospect.name or "there"
    position = prospect.position or "player"

    if template == "First Spark":
        link_block = (
            f"Take 2 minutes to complete your free talent assessment here - it helps us match "
            f"you with the right pathway:\n{assessment_link}\n\n"
            if assessment_link
            else ""
        )
        return (
            f"Hi {name},\n\n"
            f"I'm {scout_name}, a scout working with pro academies and college programs.\n\n"
            f"I came across your profile and wanted to reach out about opportunities that could "
            f"be a great fit for a {position} with your potential.\n\n"
            f"{link_block}"
            f"Would love to hear about your goals and see if we can help you get there.\n\n"
            f"Best,\n{scout_name}"
        )

    closing = (
        f"Start here: {assessment_link}" if assessment_link else "Let me know if you have a few minutes to chat."
    )
    return (
        f"Hi {name},\n\n"
        f"I'm {scout_name}. I'd love to connect about your football future and discuss some "
        f"pathways that could be a great fit.\n\n"
        f"{closing}\n\n"
        f"Best,\n{scout_name}"
    )


async def generate_outreach_message(
    scout_name: str,
    prospect: Prospect,
    template: str,
    assessment_link: str | None = None,
) -> str:
    """
    Draft an outreach message.

    Returns:
        The drafted message, or fallback_message(...) on any failure or an
        empty response
    """
    settings = get_settings()
    try:
        text = await generate_text(
            build_prompt(scout_name, prospect, template, assessment_link),
            model=settings.OUTREACH_MODEL,
            max_tokens=800,
            temperature=0.7,
        )
    except Exception as e:
        logger.warning(f"Outreach drafting failed, using fallback: {e}")
        return fallback_message(scout_name, prospect, template, assessment_link)

    return text.strip() or fallback_message(scout_name, prospect, template, assessment_link)
