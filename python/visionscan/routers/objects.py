"""
Object information endpoints.
- GET /{label}/info
- GET /{label}/details
- POST /remember (auth)
"""

from typing import Optional

from fastapi import APIRouter, Depends

from visionscan.core.responses import ApiResponse
from visionscan.models.requests.scan import RememberItemRequest
from visionscan.services.auth import get_supabase_user_optional, require_auth
from visionscan.services.object_info import get_item_details, get_object_info, remember_item

router = APIRouter()


@router.get("/{label}/info")
async def object_info(label: str):
    return ApiResponse.ok({"label": label, "info": get_object_info(label)})


@router.get("/{label}/details")
async def object_details(label: str, user: Optional[dict] = Depends(get_supabase_user_optional)):
    return ApiResponse.ok(get_item_details(label, user["id"] if user else None))


@router.post("/remember")
async def remember_object(request: RememberItemRequest, user: dict = Depends(require_auth)):
    """Store a name for an object the classifier could not identify, visible to this user only."""
    return ApiResponse.ok(remember_item(user["id"], request.name))
