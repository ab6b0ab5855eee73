"""FastAPI application entry point."""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.responses import JSONResponse

from scoutcrm.api import router as api_router
from scoutcrm.core.config import Settings, get_settings
from scoutcrm.core.llm_usage import AIUsageTracker
from scoutcrm.core.local_storage import JsonFileLocalStore, LocalStore
from scoutcrm.core.logging import get_logger
from scoutcrm.core.offline_queue import OfflineQueue
from scoutcrm.core.pipeline_board import ProspectBoard
from scoutcrm.core.rate_limiter import BulkImportLimiter
from scoutcrm.db.rest_client import RestStore
from scoutcrm.db.store import StoreClient, StoreError
from scoutcrm.db.supabase_client import SupabaseStore, create_supabase

logger = get_logger(__name__)


def build_store(settings: Settings, local_store: LocalStore) -> StoreClient:
    """REST client by default; supabase-py when USE_REST_STORE is off."""
    if settings.USE_REST_STORE:
        return RestStore(
            settings.SUPABASE_URL,
            settings.SUPABASE_ANON_KEY,
            local_store,
            settings.AUTH_SESSION_KEY,
            timeout=settings.STORE_TIMEOUT_SECONDS,
        )
    return SupabaseStore(create_supabase(settings), local_store, settings.AUTH_SESSION_KEY)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    local_store = JsonFileLocalStore(settings.LOCAL_STATE_DIR)
    queue = OfflineQueue(local_store)
    board = ProspectBoard(build_store(settings, local_store), queue, settings.SCOUT_ID)

    app.state.board = board
    app.state.local_store = local_store
    app.state.session_key = settings.AUTH_SESSION_KEY
    app.state.bulk_limiter = BulkImportLimiter(local_store, settings.BULK_IMPORT_DAILY_LIMIT)
    app.state.usage_tracker = AIUsageTracker(
        local_store, settings.AI_DAILY_CREDITS, settings.AI_MONTHLY_CREDITS
    )

    try:
        await board.load()
    except StoreError as e:
        logger.warning(f"Initial load failed, starting with local state only: {e}")

    # Resume a drain interrupted by the previous shutdown
    if board.online and len(queue):
        await board.drain()

    logger.info(f"Scout pipeline started ({settings.SCOUT_ENV})", extra={"owner_id": settings.SCOUT_ID})
    yield


app = FastAPI(
    title="Scout CRM",
    description="Scouting pipeline: prospects, offline sync and AI evaluation",
    version="0.1.0",
    lifespan=lifespan,
)


@app.get("/health")
async def health_check() -> JSONResponse:
    """Health check endpoint."""
    return JSONResponse(content={"status": "ok"}, status_code=200)


# Include v1 API router
app.include_router(api_router, prefix="/v1", tags=["v1"])
