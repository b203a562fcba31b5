"""
Scan history of the authenticated user.
- GET /
"""

from fastapi import APIRouter, Depends, Query

from visionscan.core.responses import ApiResponse
from visionscan.services.auth import require_auth
from visionscan.services.history_service import HistoryService
from .dependencies import get_history

router = APIRouter()


@router.get("")
async def get_history_records(
    limit: int = Query(default=50, ge=1, le=200),
    user: dict = Depends(require_auth),
    history: HistoryService = Depends(get_history),
):
    """Saved scans, newest first."""
    records = await history.get_user_history(user["id"], limit=limit)
    return ApiResponse.ok(records, meta={"count": len(records)})
