"""
Subscription endpoints.
- GET /
- POST /trial
- POST /subscribe
"""

from fastapi import APIRouter, Depends

from visionscan.core.responses import ApiResponse
from visionscan.services.auth import require_auth
from visionscan.services.subscription_service import SubscriptionService
from .dependencies import get_subscriptions

router = APIRouter()


def _with_flags(subscription):
    return ApiResponse.ok(subscription, meta={
        "can_scan": subscription.can_scan,
        "should_show_subscription": subscription.should_show_subscription,
    })


@router.get("")
async def get_subscription(
    user: dict = Depends(require_auth),
    subscriptions: SubscriptionService = Depends(get_subscriptions),
):
    return _with_flags(await subscriptions.get_status(user))


@router.post("/trial")
async def start_trial(
    user: dict = Depends(require_auth),
    subscriptions: SubscriptionService = Depends(get_subscriptions),
):
    return _with_flags(await subscriptions.start_trial(user))


@router.post("/subscribe")
async def subscribe(
    user: dict = Depends(require_auth),
    subscriptions: SubscriptionService = Depends(get_subscriptions),
):
    """Mark the user as subscribed. Payment is handled outside this service."""
    return _with_flags(await subscriptions.subscribe(user))
