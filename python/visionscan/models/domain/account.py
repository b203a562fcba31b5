"""
Account domain models: scan history records and subscription state.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field


class ScanRecord(BaseModel):
    """A saved scan in the user's history."""

    id: Optional[str] = None
    user_id: str
    image_url: str
    item_name: str
    confidence: float = Field(..., ge=0, le=1)
    emotions: List[Dict[str, Any]] = []
    poses: List[Dict[str, Any]] = []
    created_at: Optional[datetime] = None


class SubscriptionStatus(str, Enum):
    NONE = "none"
    TRIAL = "trial"
    SUBSCRIBED = "subscribed"


class Subscription(BaseModel):
    """Subscription state of a user."""

    user_id: str
    email: Optional[str] = None
    status: SubscriptionStatus = SubscriptionStatus.NONE
    remaining_scans: int = 0
    trial_start: Optional[datetime] = None
    trial_end: Optional[datetime] = None
    subscribed_at: Optional[datetime] = None

    @property
    def can_scan(self) -> bool:
        """Trial and subscribed users scan freely; others spend free scans."""
        if self.status in (SubscriptionStatus.TRIAL, SubscriptionStatus.SUBSCRIBED):
            return True
        return self.remaining_scans > 0

    @property
    def should_show_subscription(self) -> bool:
        return self.status == SubscriptionStatus.NONE and self.remaining_scans <= 0


class Property(BaseModel):
    name: str
    value: str


class ItemDetails(BaseModel):
    """Descriptive information about a recognized item."""

    name: str
    description: str
    properties: List[Property] = []
    additional_info: Optional[str] = None
    is_user_trained: bool = False
