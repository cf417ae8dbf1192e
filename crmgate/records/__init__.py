"""CRUD routes and queries for CRM records."""

from .admin_routes import configure_admin_router
from .delivery_routes import configure_delivery_router
from .queries import RecordQueries
from .record_routes import configure_record_router

__all__ = [
    "RecordQueries",
    "configure_admin_router",
    "configure_delivery_router",
    "configure_record_router",
]
