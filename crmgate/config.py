"""Configuration management for the CRM server and client.

This module provides utilities for loading and validating configuration
from environment variables.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from dotenv import load_dotenv

if TYPE_CHECKING:
    from pathlib import Path

LOGGER = logging.getLogger(__name__)
LOGGER.setLevel(logging.DEBUG)


def configure_logging(logging_level: str | None) -> None:
    """Configure logging based on the configured level name.

    :param logging_level: Level name such as ``DEBUG``, INFO when unset
    """
    if not logging_level:
        logging.basicConfig(level=logging.INFO, force=True)
        return

    numeric_level = getattr(logging, logging_level.upper(), None)
    if not isinstance(numeric_level, int):
        LOGGER.warning("Invalid log level: %s, using INFO", logging_level)
        numeric_level = logging.INFO
    logging.basicConfig(level=numeric_level, force=True)


def _getenv_int(key: str, default: int) -> int:
    """Get an integer environment variable with a default.

    :param key: Environment variable name
    :param default: Default value if not set
    :return: The environment variable value as integer or default
    :raises ValueError: If value cannot be converted to int
    """
    value_str = os.getenv(key)

    if value_str is None or value_str == "":
        return default

    try:
        return int(value_str)
    except ValueError as e:
        msg = f"Environment variable {key} must be an integer, got: {value_str}"
        raise ValueError(msg) from e


def _getenv_float(key: str, default: float) -> float:
    """Get a float environment variable with a default.

    :raises ValueError: If value cannot be converted to float
    """
    value_str = os.getenv(key)

    if value_str is None or value_str == "":
        return default

    try:
        return float(value_str)
    except ValueError as e:
        msg = f"Environment variable {key} must be a number, got: {value_str}"
        raise ValueError(msg) from e


@dataclass
class AppConfig:
    """Server configuration loaded from environment variables.

    **Usage:**

    Load a .env file first if needed, then create the config:

    .. code-block:: python

        from dotenv import load_dotenv
        load_dotenv('.env')
        config = AppConfig()
    """

    DEFAULT_DATABASE_PATH = "crm.db"
    DEFAULT_SECRET_KEY_LENGTH = 6

    db_path: str = field(
        default_factory=lambda: os.getenv("DB_PATH", AppConfig.DEFAULT_DATABASE_PATH),
    )

    logging_level: str | None = field(
        default_factory=lambda: os.getenv("LOGGING_LEVEL"),
    )

    root_path: str = field(
        default_factory=lambda: os.getenv("ROOT_PATH", ""),
    )

    cors_origins: list[str] = field(
        default_factory=lambda: [
            origin.strip()
            for origin in os.getenv("CORS_ORIGINS", "*").split(",")
            if origin.strip()
        ],
    )

    secret_key_length: int = field(
        default_factory=lambda: _getenv_int(
            "SECRET_KEY_LENGTH",
            AppConfig.DEFAULT_SECRET_KEY_LENGTH,
        ),
    )

    def __post_init__(self) -> None:
        """Post-initialization validation."""
        if self.secret_key_length <= 0:
            msg = "SECRET_KEY_LENGTH must be a positive integer"
            raise ValueError(msg)


@dataclass
class ClientConfig:
    """Client configuration loaded from environment variables."""

    DEFAULT_API_URL = "http://127.0.0.1:8000/api"
    DEFAULT_SESSION_PATH = ".crm_session.json"
    DEFAULT_REQUEST_TIMEOUT = 10.0

    base_url: str = field(
        default_factory=lambda: os.getenv("CRM_API_URL", ClientConfig.DEFAULT_API_URL),
    )

    session_path: str = field(
        default_factory=lambda: os.getenv(
            "CRM_SESSION_PATH",
            ClientConfig.DEFAULT_SESSION_PATH,
        ),
    )

    request_timeout: float = field(
        default_factory=lambda: _getenv_float(
            "CRM_REQUEST_TIMEOUT",
            ClientConfig.DEFAULT_REQUEST_TIMEOUT,
        ),
    )

    def __post_init__(self) -> None:
        """Post-initialization validation."""
        if self.request_timeout <= 0:
            msg = "CRM_REQUEST_TIMEOUT must be positive"
            raise ValueError(msg)


def load_config_from_env(env_file: str | Path | None) -> AppConfig:
    """Load server configuration, reading an env file first if given.

    :param env_file: Optional path to a .env file
    :return: An AppConfig populated from the environment
    """
    if env_file:
        load_dotenv(dotenv_path=env_file)
    return AppConfig()


def load_client_config_from_env(env_file: str | Path | None) -> ClientConfig:
    """Load client configuration, reading an env file first if given.

    :param env_file: Optional path to a .env file
    :return: A ClientConfig populated from the environment
    """
    if env_file:
        load_dotenv(dotenv_path=env_file)
    return ClientConfig()
