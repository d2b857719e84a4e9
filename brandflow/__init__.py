"""Client-side coordination of the brand workflow backend."""

from .app import BrandflowClient, create_client
from .config import Settings, load_settings

__all__ = ["BrandflowClient", "Settings", "create_client", "load_settings"]
