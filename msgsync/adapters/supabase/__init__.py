"""Supabase adapters: PostgREST store and Realtime change feed."""

from msgsync.adapters.supabase.realtime import SupabaseRealtimeFeed
from msgsync.adapters.supabase.rest_store import SupabaseMessageStore

__all__ = [
    "SupabaseMessageStore",
    "SupabaseRealtimeFeed",
]
