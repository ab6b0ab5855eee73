"""API router for v1 endpoints."""

from fastapi import APIRouter

from scoutcrm.api import ai, assessments, auth, notifications, prospects, sync

router = APIRouter()

# Sign-in session for the store clients
router.include_router(auth.router, tags=["auth"])

# Pipeline board, creation, status changes, outreach logs
router.include_router(prospects.router, tags=["prospects"])

# Assessment-link events (shadow promotion)
router.include_router(assessments.router, tags=["assessments"])

# Offline queue and connectivity
router.include_router(sync.router, tags=["sync"])

# Evaluation, extraction and outreach drafting
router.include_router(ai.router, tags=["ai"])

router.include_router(notifications.router, tags=["notifications"])
