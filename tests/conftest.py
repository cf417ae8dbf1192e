"""Pytest configuration and shared fixtures."""

import sys
from collections.abc import Iterator
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

# Add the project root to the Python path so tests can import crmgate
project_dir = Path(__file__).parent.parent
sys.path.insert(0, str(project_dir))

from crmgate.app import configure_fastapi_app  # noqa: E402
from crmgate.config import AppConfig  # noqa: E402
from seed import seed_database  # noqa: E402


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    """A seeded SQLite database file."""
    path = tmp_path / "crm-test.db"
    seed_database(path)
    return path


@pytest.fixture
def app_config(db_path: Path) -> AppConfig:
    """Application configuration pointing at the seeded database."""
    return AppConfig(
        db_path=str(db_path),
        logging_level="DEBUG",
        root_path="",
        cors_origins=["*"],
        secret_key_length=6,
    )


@pytest.fixture
def client(app_config: AppConfig) -> Iterator[TestClient]:
    """A TestClient with the application lifespan running."""
    app = configure_fastapi_app(app_config)
    with TestClient(app) as test_client:
        yield test_client
