"""
Scan endpoints.
- POST /scan          (JSON, data URL or base64 image)
- POST /scan/upload   (multipart image file)
- POST /analyze       (objects + emotions + poses)

Authenticated users are held to their subscription quota and get the
result saved to history. Anonymous scans are not recorded.
"""

from typing import Optional

import numpy as np
from fastapi import APIRouter, Depends, File, Form, UploadFile

from visionscan.core.exceptions import NoObjectsDetectedError, ScanQuotaExceededError
from visionscan.core.logging import get_logger
from visionscan.core.responses import ApiResponse
from visionscan.models.requests.scan import AnalyzeRequest, ScanRequest
from visionscan.models.responses.scan import ScanResponse
from visionscan.services.auth import get_supabase_user_optional
from visionscan.services.history_service import HistoryService
from visionscan.services.image_utils import (
    decode_data_url,
    decode_image_bytes,
    encode_jpeg_data_url,
    resize_to_fit,
)
from visionscan.services.model_controller import ModelController
from visionscan.services.object_info import get_item_details, get_object_info
from visionscan.services.perception import PerceptionService
from visionscan.services.subscription_service import SubscriptionService
from .dependencies import (
    get_controller,
    get_history_optional,
    get_perception,
    get_subscriptions_optional,
)

logger = get_logger(__name__)
router = APIRouter()

# Thumbnail stored with history records
THUMBNAIL_SIZE = (320, 240)


async def _run_scan(
    image: np.ndarray,
    user: Optional[dict],
    controller: ModelController,
    history: Optional[HistoryService],
    subscriptions: Optional[SubscriptionService],
    save_to_history: bool = True,
) -> ScanResponse:
    if user and subscriptions is not None:
        status = await subscriptions.get_status(user)
        if not status.can_scan:
            raise ScanQuotaExceededError()

    detections = await controller.classify(image)
    if not detections:
        raise NoObjectsDetectedError()

    top = detections[0]
    response = ScanResponse(
        detections=detections,
        selected_object=top.label,
        confidence=top.score,
        info=get_object_info(top.label),
        details=get_item_details(top.label, user["id"] if user else None),
        using_fallback=controller.using_fallback,
    )

    if user and subscriptions is not None:
        response.subscription = await subscriptions.consume_scan(user)

    if user and history is not None and save_to_history:
        thumbnail = resize_to_fit(image, *THUMBNAIL_SIZE)
        response.record_id = await history.save_record(
            user_id=user["id"],
            image_url=encode_jpeg_data_url(thumbnail),
            item_name=top.label,
            confidence=top.score,
        )

    logger.info(f"Scan: {top.label} ({top.score:.2f}), user={user['id'] if user else 'anonymous'}")
    return response


@router.post("/scan")
async def scan_image(
    request: ScanRequest,
    user: Optional[dict] = Depends(get_supabase_user_optional),
    controller: ModelController = Depends(get_controller),
    history: Optional[HistoryService] = Depends(get_history_optional),
    subscriptions: Optional[SubscriptionService] = Depends(get_subscriptions_optional),
):
    """Classify a captured frame sent as data URL or base64."""
    image = decode_data_url(request.image)
    result = await _run_scan(image, user, controller, history, subscriptions, request.save_to_history)
    return ApiResponse.ok(result)


@router.post("/scan/upload")
async def scan_upload(
    file: UploadFile = File(...),
    save_to_history: bool = Form(True),
    user: Optional[dict] = Depends(get_supabase_user_optional),
    controller: ModelController = Depends(get_controller),
    history: Optional[HistoryService] = Depends(get_history_optional),
    subscriptions: Optional[SubscriptionService] = Depends(get_subscriptions_optional),
):
    """Classify an uploaded image file."""
    image = decode_image_bytes(await file.read())
    result = await _run_scan(image, user, controller, history, subscriptions, save_to_history)
    return ApiResponse.ok(result)


@router.post("/analyze")
async def analyze_image(
    request: AnalyzeRequest,
    perception: PerceptionService = Depends(get_perception),
):
    """Objects above the confidence threshold, per-face emotions and poses."""
    image = decode_data_url(request.image)
    analysis = await perception.analyze(image)
    return ApiResponse.ok(analysis, meta={
        "objects": len(analysis.objects),
        "faces": len(analysis.emotions),
        "poses": len(analysis.poses),
    })
