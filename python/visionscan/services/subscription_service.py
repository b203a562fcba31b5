"""
Subscription state stored in Supabase (table: user_subscriptions).

New users get FREE_SCANS scans; a trial or a subscription lifts the limit.
Expired trials fall back to the free tier with no scans left.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from visionscan.core.config import settings
from visionscan.core.exceptions import DatabaseError, ScanQuotaExceededError
from visionscan.core.logging import get_logger
from visionscan.models.domain.account import Subscription, SubscriptionStatus

logger = get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


class SubscriptionService:
    """Reads and updates per-user subscription rows."""

    table_name = "user_subscriptions"

    def __init__(
        self,
        supabase_client,
        free_scans: Optional[int] = None,
        trial_days: Optional[int] = None,
    ):
        self.client = supabase_client
        self.free_scans = settings.free_scans if free_scans is None else free_scans
        self.trial_days = settings.trial_days if trial_days is None else trial_days

    @property
    def table(self):
        return self.client.table(self.table_name)

    # ============================================================
    # Queries
    # ============================================================

    async def get_status(self, user: Dict[str, Any]) -> Subscription:
        """
        Get the user's subscription, creating the row on first access.

        Args:
            user: Verified token payload ({id, email, ...})
        """
        user_id = user["id"]
        row = self._fetch(user_id)
        if row is None:
            row = self._insert({
                "user_id": user_id,
                "email": user.get("email"),
                "status": SubscriptionStatus.NONE.value,
                "remaining_scans": self.free_scans,
            })
            logger.info(f"Created subscription row for {user_id} with {self.free_scans} free scans")

        subscription = Subscription(**row)

        if (
            subscription.status == SubscriptionStatus.TRIAL
            and subscription.trial_end is not None
            and _as_utc(subscription.trial_end) <= _utcnow()
        ):
            logger.info(f"Trial expired for {user_id}")
            subscription = self._update(user_id, {
                "status": SubscriptionStatus.NONE.value,
                "remaining_scans": 0,
            })

        return subscription

    @staticmethod
    def can_scan(subscription: Subscription) -> bool:
        return subscription.can_scan

    # ============================================================
    # Mutations
    # ============================================================

    async def consume_scan(self, user: Dict[str, Any]) -> Subscription:
        """
        Spend one free scan. Trial and subscribed users are not charged.

        Raises:
            ScanQuotaExceededError: free tier with no scans left
        """
        subscription = await self.get_status(user)
        if subscription.status != SubscriptionStatus.NONE:
            return subscription
        if subscription.remaining_scans <= 0:
            raise ScanQuotaExceededError()
        return self._update(user["id"], {"remaining_scans": subscription.remaining_scans - 1})

    async def start_trial(self, user: Dict[str, Any]) -> Subscription:
        await self.get_status(user)
        now = _utcnow()
        subscription = self._update(user["id"], {
            "status": SubscriptionStatus.TRIAL.value,
            "trial_start": now.isoformat(),
            "trial_end": (now + timedelta(days=self.trial_days)).isoformat(),
        })
        logger.info(f"Trial started for {user['id']} until {subscription.trial_end}")
        return subscription

    async def subscribe(self, user: Dict[str, Any]) -> Subscription:
        await self.get_status(user)
        subscription = self._update(user["id"], {
            "status": SubscriptionStatus.SUBSCRIBED.value,
            "subscribed_at": _utcnow().isoformat(),
        })
        logger.info(f"User {user['id']} subscribed")
        return subscription

    # ============================================================
    # Helper Methods
    # ============================================================

    def _fetch(self, user_id: str) -> Optional[Dict[str, Any]]:
        try:
            response = self.table.select("*").eq("user_id", user_id).limit(1).execute()
        except Exception as e:
            self._handle_error("select", e)
        return response.data[0] if response.data else None

    def _insert(self, data: Dict[str, Any]) -> Dict[str, Any]:
        try:
            response = self.table.insert(data).execute()
        except Exception as e:
            self._handle_error("insert", e)
        if not response.data:
            raise DatabaseError("Insert returned no data", operation=f"{self.table_name}.insert")
        return response.data[0]

    def _update(self, user_id: str, data: Dict[str, Any]) -> Subscription:
        try:
            response = self.table.update(data).eq("user_id", user_id).execute()
        except Exception as e:
            self._handle_error("update", e)
        if not response.data:
            raise DatabaseError("Update returned no data", operation=f"{self.table_name}.update")
        return Subscription(**response.data[0])

    def _handle_error(self, operation: str, error: Exception):
        logger.error(f"{operation} failed: {error}")
        raise DatabaseError(str(error), operation=f"{self.table_name}.{operation}")
