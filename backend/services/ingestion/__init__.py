# services/ingestion/__init__.py

from functools import lru_cache

from db.session import SessionLocal
from services.ingestion.engine import IngestionService
from services.ingestion.runner import BackgroundRunner
from services.options_cache import OptionsCache

FILTER_OPTIONS_CACHE = OptionsCache()


def get_options_cache() -> OptionsCache:
    return FILTER_OPTIONS_CACHE


@lru_cache(maxsize=1)
def get_ingestion_service() -> IngestionService:
    return IngestionService(
        session_factory=SessionLocal,
        runner=BackgroundRunner(),
        options_cache=FILTER_OPTIONS_CACHE,
    )
