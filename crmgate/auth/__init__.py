"""Secret-key authentication, role authorization and the login route."""

from .auth_routes import configure_auth_router
from .queries import UserQueries, generate_secret_key
from .validation import SECRET_KEY_HEADER, Validate

__all__ = [
    "SECRET_KEY_HEADER",
    "UserQueries",
    "Validate",
    "configure_auth_router",
    "generate_secret_key",
]
