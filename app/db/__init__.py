"""
Database client and connection management
"""

from .client import get_supabase_client, get_record_store
from .record_store import RecordStore, InMemoryRecordStore, SupabaseRecordStore, Range, AnyOf

__all__ = [
    "get_supabase_client",
    "get_record_store",
    "RecordStore",
    "InMemoryRecordStore",
    "SupabaseRecordStore",
    "Range",
    "AnyOf",
]
