"""Common helpers shared by the price desk server and client."""

from .storage import ListStore, StoreError  # noqa: F401
from .network import canonical_origin, allowed_origins, build_api_url
from .config import DashboardConfig, load_dashboard_config
from .logging_config import setup_logging

__all__ = [
    "ListStore",
    "StoreError",
    "canonical_origin",
    "allowed_origins",
    "build_api_url",
    "DashboardConfig",
    "load_dashboard_config",
    "setup_logging",
]
