"""Infrastructure layer exports."""

from .brands_api import BrandsAPI
from .coordination import (
    CacheEntry,
    CoordinationService,
    Deduplicator,
    ResultCache,
    get_coordination_service,
    reset_coordination_state,
)
from .gateway import CORRELATION_HEADER, RequestGateway
from .navigation import HistoryNavigator, Navigator
from .tokens import FileTokenStore, InMemoryTokenStore, TokenStore, configure_token_store, get_token_store

__all__ = [
    "BrandsAPI",
    "CORRELATION_HEADER",
    "CacheEntry",
    "CoordinationService",
    "Deduplicator",
    "FileTokenStore",
    "HistoryNavigator",
    "InMemoryTokenStore",
    "Navigator",
    "RequestGateway",
    "ResultCache",
    "TokenStore",
    "configure_token_store",
    "get_coordination_service",
    "get_token_store",
    "reset_coordination_state",
]
