"""
Classifier lifecycle endpoints.
- GET /status
- POST /initialize
"""

from fastapi import APIRouter, Depends

from visionscan.core.logging import get_logger
from visionscan.core.responses import ApiResponse
from visionscan.services.model_controller import ModelController
from .dependencies import get_controller

logger = get_logger(__name__)
router = APIRouter()


@router.get("/status")
async def get_model_status(controller: ModelController = Depends(get_controller)):
    """Current LoadState of the object classifier."""
    return ApiResponse.ok(controller.status())


@router.post("/initialize")
async def initialize_models(controller: ModelController = Depends(get_controller)):
    """
    Load the classifier now instead of on the first scan.

    Joins an attempt already in progress. A FAILED controller retries the
    whole cascade. Errors surface as AllBackendsExhaustedError (503).
    """
    progress = []
    await controller.initialize(on_progress=progress.append)
    logger.info(f"Models initialized via API, progress: {progress}")
    return ApiResponse.ok(controller.status(), meta={"progress": progress})
