"""
Scan response models.
"""

from typing import List, Optional
from pydantic import BaseModel, Field

from visionscan.models.domain.account import ItemDetails, Subscription
from visionscan.models.domain.detection import Detection


class ScanResponse(BaseModel):
    """Result of classifying one frame."""

    detections: List[Detection] = Field(..., description="Top-k labels, best first")
    selected_object: str = Field(..., description="Best label")
    confidence: float = Field(..., ge=0, le=1)
    info: str = Field(..., description="Description of the best label")
    details: ItemDetails

    using_fallback: bool = Field(False, description="Served by the fallback classifier")
    record_id: Optional[str] = Field(None, description="History record (authenticated users)")
    subscription: Optional[Subscription] = None
