"""
Infrastructure layer - external service clients.
"""

from visionscan.infrastructure.supabase import SupabaseClient, get_supabase_client

__all__ = ['SupabaseClient', 'get_supabase_client']
