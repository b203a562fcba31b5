"""
Scan history stored in Supabase (table: scan_history).
"""

from typing import Any, Dict, List, Optional

from visionscan.core.exceptions import DatabaseError
from visionscan.core.logging import get_logger
from visionscan.models.domain.account import ScanRecord

logger = get_logger(__name__)


class HistoryService:
    """Stores and lists the scans made by authenticated users."""

    table_name = "scan_history"

    def __init__(self, supabase_client):
        """
        Args:
            supabase_client: SupabaseClient instance (from infrastructure/)
        """
        self.client = supabase_client

    @property
    def table(self):
        return self.client.table(self.table_name)

    async def save_record(
        self,
        user_id: str,
        image_url: str,
        item_name: str,
        confidence: float,
        emotions: Optional[List[Dict[str, Any]]] = None,
        poses: Optional[List[Dict[str, Any]]] = None,
    ) -> str:
        """
        Insert a scan record.

        Returns:
            ID of the new record

        Raises:
            DatabaseError: insert failed or returned no row
        """
        row = {
            "user_id": user_id,
            "image_url": image_url,
            "item_name": item_name,
            "confidence": confidence,
            "emotions": emotions or [],
            "poses": poses or [],
        }
        try:
            response = self.table.insert(row).execute()
        except Exception as e:
            logger.error(f"save_record failed: {e}")
            raise DatabaseError(str(e), operation=f"{self.table_name}.insert")

        if not response.data:
            raise DatabaseError("Insert returned no data", operation=f"{self.table_name}.insert")

        record_id = str(response.data[0]["id"])
        logger.info(f"Saved scan {record_id} for user {user_id}: {item_name} ({confidence:.2f})")
        return record_id

    async def get_user_history(self, user_id: str, limit: int = 50) -> List[ScanRecord]:
        """Return the user's scans, newest first."""
        try:
            response = self.table.select("*")\
                .eq("user_id", user_id)\
                .order("created_at", desc=True)\
                .limit(limit)\
                .execute()
        except Exception as e:
            logger.error(f"get_user_history failed: {e}")
            raise DatabaseError(str(e), operation=f"{self.table_name}.select")

        return [ScanRecord(**row) for row in (response.data or [])]
