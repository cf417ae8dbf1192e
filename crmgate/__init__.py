"""CRM API with a secret-key role gate and a client-side refresh broker."""

from .app import configure_fastapi_app, create_app
from .config import AppConfig, ClientConfig, load_config_from_env

__all__ = [
    "AppConfig",
    "ClientConfig",
    "configure_fastapi_app",
    "create_app",
    "load_config_from_env",
]
