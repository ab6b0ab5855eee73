"""Assessment-link activity events.

Called when a prospect opens or submits the shared talent assessment. A
submission from a shadow or Lead prospect promotes it to Interested.
"""

from fastapi import APIRouter, Depends, HTTPException

from scoutcrm.api.deps import get_board
from scoutcrm.core.pipeline_board import ProspectBoard, ProspectNotFoundError
from scoutcrm.core.schemas_pipeline import AssessmentActivityRequest, StatusChangeResponse
from scoutcrm.core.status_policy import InvalidActivityError

router = APIRouter(prefix="/assessments")


@router.post("/{prospect_id}/activity", response_model=StatusChangeResponse)
async def record_activity(
    prospect_id: str,
    request: AssessmentActivityRequest,
    board: ProspectBoard = Depends(get_board),
) -> StatusChangeResponse:
    try:
        change = await board.record_assessment_activity(prospect_id, request.action)
    except ProspectNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except InvalidActivityError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e

    return StatusChangeResponse(
        prospect=change.prospect,
        previous_status=change.previous_status,
        changed=change.changed,
    )
