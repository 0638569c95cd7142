"""
Record store and Supabase client singletons
STORAGE_TYPE selects the backend; the Supabase client is created only when
the Supabase backend is in use
"""

import logging
from typing import List, Optional

from supabase import create_client, Client

from app.config.settings import settings
from app.db.record_store import RecordStore, InMemoryRecordStore, SupabaseRecordStore
from app.utils.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

_supabase_client: Optional[Client] = None
_record_store: Optional[RecordStore] = None


def _missing_supabase_settings() -> List[str]:
    missing = []
    if not settings.supabase_url:
        missing.append("SUPABASE_URL")
    if not settings.supabase_service_key:
        missing.append("SUPABASE_SERVICE_KEY")
    return missing


def validate_supabase_config(raise_on_missing: bool = False) -> bool:
    """
    Check the Supabase settings needed by the record store

    Args:
        raise_on_missing: raise ConfigurationError instead of only logging

    Returns:
        bool: True when SUPABASE_URL and SUPABASE_SERVICE_KEY are both set
    """
    missing = _missing_supabase_settings()
    if not missing:
        logger.info("[SUPABASE CONFIG] SUPABASE_URL and SUPABASE_SERVICE_KEY present")
        return True

    message = f"Missing Supabase settings: {', '.join(missing)}"
    logger.error(f"[SUPABASE CONFIG] {message}")
    if raise_on_missing:
        raise ConfigurationError(message, details={"missing_keys": missing})
    return False


def get_supabase_client() -> Client:
    """Service-role Supabase client, created on first use"""
    global _supabase_client

    if _supabase_client is not None:
        return _supabase_client

    validate_supabase_config(raise_on_missing=True)
    if not settings.supabase_url.startswith("http"):
        raise ConfigurationError(
            f"SUPABASE_URL must be an http(s) URL, got: {settings.supabase_url}"
        )

    try:
        _supabase_client = create_client(settings.supabase_url, settings.supabase_service_key)
    except Exception as e:
        raise ConfigurationError(f"Could not create Supabase client: {str(e)}") from e

    return _supabase_client


def get_record_store() -> RecordStore:
    """
    Record store for the configured STORAGE_TYPE
    "memory" keeps everything in process (development and tests),
    anything else uses Supabase tables
    """
    global _record_store

    if _record_store is None:
        storage_type = (settings.storage_type or "supabase").strip().lower()
        if storage_type == "memory":
            logger.warning("[STORE] Using in-memory record store; data is lost on restart")
            _record_store = InMemoryRecordStore(timeout_seconds=settings.store_timeout_seconds)
        else:
            _record_store = SupabaseRecordStore(
                get_supabase_client(),
                timeout_seconds=settings.store_timeout_seconds
            )
        logger.info(f"[STORE] Record store initialized: {_record_store.__class__.__name__}")

    return _record_store
