"""SQLAlchemy models for the eCFR title record store."""

from app.models.base import (
    Base,
    TimestampMixin,
    async_session_maker,
    get_async_session,
    init_models,
)
from app.models.ecfr import Agency, EcfrTitle, TitleChapterDetail
from app.models.supporting import DataIngestionLog

__all__ = [
    "Base",
    "TimestampMixin",
    "async_session_maker",
    "get_async_session",
    "init_models",
    "Agency",
    "DataIngestionLog",
    "EcfrTitle",
    "TitleChapterDetail",
]
