# ABOUTME: Pytest fixtures for CLI module tests
# ABOUTME: Provides file-backed SQLite databases and settings pointing at them

import pytest
from sqlalchemy import create_engine

from app.config import Settings
from app.services.bootstrap import ensure_schema


@pytest.fixture
def temp_database(tmp_path):
    """Path of a not-yet-created SQLite database file."""
    return tmp_path / "data" / "keyvpn.db"


@pytest.fixture
def cli_settings(temp_database):
    """Settings whose database is the temporary SQLite file."""
    return Settings(
        database_url=f"sqlite:///{temp_database}",
        admin_username="admin",
        admin_password="admin123",
    )


@pytest.fixture
def bootstrapped_engine(temp_database):
    """Engine on the temporary database with all tables created."""
    temp_database.parent.mkdir(parents=True, exist_ok=True)
    engine = create_engine(f"sqlite:///{temp_database}")
    ensure_schema(engine)
    yield engine
    engine.dispose()
