from typing import Optional

from loguru import logger

from stagescore.config.settings import AppSettings, settings as default_settings
from stagescore.engine.errors import ConfigurationError
from stagescore.models.enums import StoreBackend

from .base import RecordStore
from .supabase_client import SupabaseRecordStore
from .webapp_client import WebAppRecordStore


async def create_record_store(settings: Optional[AppSettings] = None) -> RecordStore:
    """Builds the record store selected by ``store_backend``."""
    settings = settings or default_settings
    if settings.store_backend == StoreBackend.SUPABASE:
        logger.info("Using Supabase record store.")
        return await SupabaseRecordStore.connect(
            settings.supabase_url,
            settings.supabase_service_key or settings.supabase_key,
        )

    if not settings.webapp_url:
        raise ConfigurationError("STAGESCORE_WEBAPP_URL is required for the webapp store.")
    logger.info("Using web app record store.")
    return WebAppRecordStore(str(settings.webapp_url))
