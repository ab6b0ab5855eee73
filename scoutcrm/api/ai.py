"""AI endpoints: evaluation, bulk extraction, form parsing and outreach drafting.

Every call is checked against the AI credit budget before the model is hit.
Evaluation, extraction and parsing calls are charged only when the model
produced a usable answer.
"""

from fastapi import APIRouter, Depends, HTTPException

from scoutcrm.api.deps import get_board, get_bulk_limiter, get_usage_tracker
from scoutcrm.chains.evaluate_prospect import evaluate_prospect_result
from scoutcrm.chains.extract_prospects import extract_prospects_from_bulk, parse_prospect_details
from scoutcrm.chains.generate_outreach_message import generate_outreach_message
from scoutcrm.core.llm_usage import AIUsageTracker, UsageStats
from scoutcrm.core.logging import get_logger
from scoutcrm.core.pipeline_board import ProspectBoard, ProspectNotFoundError
from scoutcrm.core.rate_limiter import BulkImportLimiter
from scoutcrm.core.schemas_pipeline import (
    BulkExtractRequest,
    BulkExtractResponse,
    EvaluateRequest,
    EvaluateResponse,
    OutreachMessageRequest,
    OutreachMessageResponse,
    ParseDetailsRequest,
)

logger = get_logger(__name__)

router = APIRouter(prefix="/ai")


@router.post("/evaluate", response_model=EvaluateResponse)
async def evaluate(
    request: EvaluateRequest,
    board: ProspectBoard = Depends(get_board),
    tracker: AIUsageTracker = Depends(get_usage_tracker),
) -> EvaluateResponse:
    """
    Score a player from text or an image.

    With a prospect_id the evaluation is attached to that prospect, unless
    the prospect was deleted or re-evaluated while this call was running.
    A fallback evaluation is returned but never attached.
    """
    tracker.check("player_evaluation")

    ticket = None
    if request.prospect_id:
        try:
            ticket = board.begin_evaluation(request.prospect_id)
        except ProspectNotFoundError as e:
            raise HTTPException(status_code=404, detail=str(e)) from e

    result = await evaluate_prospect_result(request.input_data, request.is_image, request.mime_type)
    if not result.ok:
        return EvaluateResponse(evaluation=result.evaluation, fallback=True)

    tracker.record("player_evaluation")
    attached = False
    if ticket is not None:
        attached = await board.attach_evaluation(ticket, result.evaluation)
    return EvaluateResponse(evaluation=result.evaluation, fallback=False, attached=attached)


@router.post("/bulk-extract", response_model=BulkExtractResponse)
async def bulk_extract(
    request: BulkExtractRequest,
    board: ProspectBoard = Depends(get_board),
    limiter: BulkImportLimiter = Depends(get_bulk_limiter),
    tracker: AIUsageTracker = Depends(get_usage_tracker),
) -> BulkExtractResponse:
    """
    Extract players from a roster (text or photo).

    Imported candidates enter the board in the shadow status and count
    against the daily import limit; extras beyond the limit are dropped.
    """
    remaining = limiter.check_limit()
    operation = "roster_extraction" if request.is_image else "bulk_import"
    tracker.check(operation)

    candidates = await extract_prospects_from_bulk(request.input_data, request.is_image, request.mime_type)
    if not candidates:
        return BulkExtractResponse(candidates=[], imported=0, remaining_today=remaining)

    tracker.record(operation)
    if len(candidates) > remaining:
        logger.info(f"Extracted {len(candidates)} candidates, keeping {remaining} under the daily limit")
        candidates = candidates[:remaining]

    prospects = [candidate.to_prospect() for candidate in candidates]
    if request.import_candidates:
        prospects = [await board.add_prospect(prospect) for prospect in prospects]
        limiter.record(len(prospects))

    return BulkExtractResponse(
        candidates=prospects,
        imported=len(prospects) if request.import_candidates else 0,
        remaining_today=limiter.remaining(),
    )


@router.post("/parse-details", response_model=dict[str, str])
async def parse_details(
    request: ParseDetailsRequest,
    tracker: AIUsageTracker = Depends(get_usage_tracker),
) -> dict[str, str]:
    """Pull submission-form fields out of pasted text; {} when nothing is found."""
    tracker.check("player_parse")
    fields = await parse_prospect_details(request.text)
    if fields:
        tracker.record("player_parse")
    return fields


@router.post("/outreach-message", response_model=OutreachMessageResponse)
async def outreach_message(
    request: OutreachMessageRequest,
    board: ProspectBoard = Depends(get_board),
    tracker: AIUsageTracker = Depends(get_usage_tracker),
) -> OutreachMessageResponse:
    try:
        prospect = board.get(request.prospect_id)
    except ProspectNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e

    tracker.check("outreach_message")
    message = await generate_outreach_message(
        request.scout_name, prospect, request.template, request.assessment_link
    )
    tracker.record("outreach_message")
    return OutreachMessageResponse(message=message)


@router.get("/usage", response_model=UsageStats)
async def usage(tracker: AIUsageTracker = Depends(get_usage_tracker)) -> UsageStats:
    return tracker.stats()
