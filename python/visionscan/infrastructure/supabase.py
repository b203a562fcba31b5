"""
Supabase client - single connection point for account data.
Scan history and subscriptions both go through this client.
"""

from typing import Optional
from supabase import create_client, Client

from visionscan.core.config import settings
from visionscan.core.exceptions import DatabaseError, NotConfiguredError
from visionscan.core.logging import get_logger

logger = get_logger(__name__)


class SupabaseClient:
    """
    Thin wrapper over the Supabase SDK client.

    The SDK is synchronous; callers run queries from sync code or threads.
    """

    def __init__(self, client: Optional[Client] = None):
        self._client: Optional[Client] = client
        if self._client is None:
            self._connect()

    def _connect(self):
        """Establish connection to Supabase."""
        if not settings.supabase_configured:
            raise NotConfiguredError("Supabase")
        try:
            self._client = create_client(
                settings.supabase_url,
                settings.supabase_service_role_key
            )
            logger.info("Supabase client initialized")
        except Exception as e:
            logger.error(f"Failed to connect to Supabase: {e}")
            raise DatabaseError(str(e), operation="connect")

    @property
    def client(self) -> Client:
        """Get raw Supabase client for direct queries."""
        if not self._client:
            self._connect()
        return self._client

    def table(self, name: str):
        """Get table reference for chaining."""
        return self.client.table(name)


# Global instance
_supabase_instance: Optional[SupabaseClient] = None


def get_supabase_client() -> SupabaseClient:
    """Get shared SupabaseClient instance."""
    global _supabase_instance
    if _supabase_instance is None:
        _supabase_instance = SupabaseClient()
    return _supabase_instance
