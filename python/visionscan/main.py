"""
VisionScan API - Main Entry Point

FastAPI application: object scanning with ordered backend fallback,
emotion/pose analysis, scan history and subscriptions.
"""

from dotenv import load_dotenv
load_dotenv()

import asyncio
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
import uvicorn

from visionscan.core.config import settings, VERSION
from visionscan.core.exceptions import AppException
from visionscan.core.responses import ApiResponse
from visionscan.core.logging import setup_logging, get_logger, log_error

# Setup logging first
setup_logging(level="INFO" if not settings.debug else "DEBUG")
logger = get_logger(__name__)

from visionscan.infrastructure.supabase import get_supabase_client
from visionscan.services.history_service import HistoryService
from visionscan.services.model_controller import get_model_controller
from visionscan.services.perception import get_perception_service
from visionscan.services.subscription_service import SubscriptionService
from visionscan.routers import (
    set_services,
    model_admin, scan, objects, history, subscription,
)
from visionscan.routers import dependencies

# ============================================================
# Service Initialization (Dependency Injection)
# ============================================================

logger.info(f"Starting VisionScan API v{VERSION}")

controller = get_model_controller()
perception = get_perception_service()
logger.info(f"✓ Created ModelController ({len(controller.candidates)} candidates)")

history_service = None
subscription_service = None
if settings.supabase_configured:
    supabase_client = get_supabase_client()
    history_service = HistoryService(supabase_client)
    subscription_service = SubscriptionService(supabase_client)
    logger.info("✓ Created HistoryService and SubscriptionService")
else:
    logger.warning("Supabase not configured: history and subscriptions disabled")

set_services(controller, perception, history_service, subscription_service)
logger.info("✓ Service instances injected into routers")


async def _preload_models():
    try:
        await perception.load(on_progress=lambda p: logger.info(f"Model loading progress: {p}%"))
    except AppException as e:
        logger.error(f"Model preload failed: {e.code} - {e.message}")
    except Exception as e:
        log_error(logger, e, "model preload")


@asynccontextmanager
async def lifespan(app: FastAPI):
    preload = None
    if settings.preload_models:
        logger.info("Preloading models in background...")
        preload = asyncio.create_task(_preload_models())
    yield
    if preload is not None and not preload.done():
        preload.cancel()


# ============================================================
# Application Setup
# ============================================================

app = FastAPI(
    title="VisionScan API",
    description="Object scanning, emotion and pose analysis",
    version=VERSION,
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
    max_age=3600,
)

# ============================================================
# Global Exception Handlers
# ============================================================

@app.exception_handler(AppException)
async def app_exception_handler(request: Request, exc: AppException):
    """
    Handle all custom AppException and subclasses.
    Returns unified ApiResponse format.
    """
    logger.warning(f"AppException: {exc.code} - {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content=ApiResponse.from_exception(exc).model_dump()
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception):
    """
    Handle unexpected exceptions.
    Logs full traceback and returns generic error.
    """
    log_error(logger, exc, f"{request.method} {request.url.path}")
    return JSONResponse(
        status_code=500,
        content=ApiResponse.fail(
            message="Internal server error",
            code="INTERNAL_ERROR"
        ).model_dump()
    )

# ============================================================
# Root Endpoints
# ============================================================

@app.get("/api/health")
async def health_check():
    """
    Health check endpoint.
    Returns service status and classifier state.
    """
    return ApiResponse.ok({
        "status": "healthy",
        "service": "visionscan",
        "version": VERSION,
        "models": dependencies.get_controller().status().model_dump(),
        "perception_ready": dependencies.get_perception().is_ready,
        "accounts_enabled": dependencies.get_subscriptions_optional() is not None,
    }).model_dump()

# ============================================================
# Router Registration
# ============================================================

app.include_router(model_admin.router, prefix="/api/models", tags=["models"])
app.include_router(scan.router, prefix="/api", tags=["scan"])
app.include_router(objects.router, prefix="/api/objects", tags=["objects"])
app.include_router(history.router, prefix="/api/history", tags=["history"])
app.include_router(subscription.router, prefix="/api/subscription", tags=["subscription"])

logger.info(f"Application startup complete. Running on {settings.server_host}:{settings.server_port}")

# ============================================================
# Entry Point
# ============================================================

if __name__ == "__main__":
    uvicorn.run(
        "visionscan.main:app",
        host=settings.server_host,
        port=settings.server_port,
        reload=settings.debug
    )
