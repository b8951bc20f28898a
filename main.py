import inspect
import logging
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from openai import AsyncOpenAI

import config
from dal.analysis_event_dal import AnalysisEventDAL
from models.live_models import SpeechConfig
from routes.analysis_route import router as analysis_router
from routes.live_session_route import router as live_session_router
from routes.upload_route import router as upload_router
from services.analysis.frame_sampler import FrameSampler
from services.analysis.job_runner import AnalysisJobRunner
from services.analysis.posture_analyzer import PostureAnalyzer
from services.live.dispatcher import LiveSessionDispatcher
from services.live.openai_live import openai_connection_factory
from services.live.relay import LiveRelay
from services.storage.upload_urls import StorageSettings, UploadUrlGenerator
from utils.database_init import AsyncDatabaseInitializer
from utils.errors import ApiError

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
LOGGER = logging.getLogger(__name__)


async def _close_quietly(client) -> None:
    """Close a client exposing `aclose` or `close`, sync or async."""
    aclose = getattr(client, "aclose", None) or getattr(client, "close", None)
    if aclose is None:
        return
    try:
        result = aclose()
        if inspect.isawaitable(result):
            await result
    except Exception:
        # Shutdown errors must not mask the reason the app is stopping.
        LOGGER.exception("Error closing %s", type(client).__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan manager to initialize:
      - the SQLite database holding analysis jobs (DATABASE_DIR/app.db)
      - the OpenAI async client and shared httpx client
      - the live coach relay and dispatcher
      - the presigned upload URL generator (when R2 is configured)
    and attach them to `app.state`.
    """
    db_initializer = AsyncDatabaseInitializer()
    await db_initializer.ensure_database()
    app.state.db_initializer = db_initializer
    app.state.analysis_dal = AnalysisEventDAL(db_initializer)

    if not config.OPENAI_API_KEY:
        raise RuntimeError("OPENAI_API_KEY environment variable is not set")
    try:
        openai_client = AsyncOpenAI(api_key=config.OPENAI_API_KEY)
    except Exception as exc:
        raise RuntimeError("Failed to initialize OpenAI Async client") from exc
    app.state.openai_client = openai_client

    http_client = httpx.AsyncClient(timeout=httpx.Timeout(120.0, connect=10.0), follow_redirects=True)
    app.state.http_client = http_client

    storage = StorageSettings.from_config()
    app.state.storage_settings = storage
    app.state.upload_url_generator = UploadUrlGenerator(storage) if storage.upload_enabled else None
    if app.state.upload_url_generator is None:
        LOGGER.warning("R2 configuration incomplete. Upload URL generation is disabled.")

    app.state.max_analysis_images = config.MAX_ANALYSIS_IMAGES
    app.state.job_runner = AnalysisJobRunner(
        app.state.analysis_dal,
        PostureAnalyzer(openai_client, model=config.ANALYSIS_MODEL),
        http_client,
        FrameSampler(
            max_frames=config.VIDEO_FRAME_SAMPLES,
            max_size=(config.FRAME_MAX_SIZE, config.FRAME_MAX_SIZE),
        ),
    )

    relay = LiveRelay()
    app.state.live_relay = relay
    app.state.sse_keepalive_seconds = config.SSE_KEEPALIVE_SECONDS
    app.state.live_dispatcher = LiveSessionDispatcher(
        relay,
        openai_connection_factory(
            openai_client,
            model=config.LIVE_MODEL,
            connect_timeout=config.LIVE_CONNECT_TIMEOUT,
        ),
        SpeechConfig(language_code=config.LIVE_LANGUAGE_CODE, voice_name=config.LIVE_VOICE_NAME),
    )

    try:
        yield
    finally:
        await relay.clear()
        await _close_quietly(http_client)
        await _close_quietly(openai_client)


def create_app(use_lifespan: bool = True) -> FastAPI:
    """
    Create and configure the FastAPI application instance.

    Tests pass `use_lifespan=False` and attach their own services to `app.state`.
    """
    app = FastAPI(title="Posture Coach", lifespan=lifespan if use_lifespan else None)

    @app.exception_handler(ApiError)
    async def api_error_handler(request: Request, exc: ApiError):
        return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

    @app.exception_handler(RequestValidationError)
    async def payload_error_handler(request: Request, exc: RequestValidationError):
        LOGGER.warning("Rejected request to %s: %s", request.url.path, exc.errors())
        return JSONResponse(status_code=400, content={"error": "Invalid request payload"})

    @app.get("/health")
    async def health(request: Request):
        """
        Simple health check that verifies DB initializer and OpenAI client presence.
        """
        state = request.app.state
        return {
            "ok": True,
            "db_initialized": getattr(state, "db_initializer", None) is not None,
            "openai_available": getattr(state, "openai_client", None) is not None,
            "storage_configured": getattr(state, "upload_url_generator", None) is not None,
            "live_sessions": len(state.live_relay.session_ids()) if getattr(state, "live_relay", None) else 0,
        }

    app.include_router(live_session_router)
    app.include_router(upload_router)
    app.include_router(analysis_router)

    return app


app = create_app()
