from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from tripline.core.app import create_app
from tripline.core.db import dispose_engine, init_db
from tripline.core.settings import settings


@pytest.fixture(scope="session", autouse=True)
def configure_test_database(tmp_path_factory: pytest.TempPathFactory) -> str:
    """Point settings.database_url to a throwaway SQLite file for the test run."""

    original_url = settings.database_url
    original_log_dir = settings.log_directory
    workdir = tmp_path_factory.mktemp("tripline")
    settings.database_url = f"sqlite:///{workdir / 'test.db'}"
    settings.log_directory = str(workdir / "logs")
    dispose_engine()
    init_db()
    yield settings.database_url
    dispose_engine()
    settings.database_url = original_url
    settings.log_directory = original_log_dir


@pytest.fixture()
def client(configure_test_database: str) -> TestClient:
    app = create_app()
    with TestClient(app) as test_client:
        yield test_client
