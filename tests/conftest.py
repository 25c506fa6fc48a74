import os

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient

from uploads.config import Settings
from uploads.main import build_coordinator, create_app
from uploads.routes.auth_routes import password_hash
from uploads.services.storage_manager import StorageManager

API_KEY = "test-api-key"
UI_USERNAME = "admin"
UI_PASSWORD = "secret"


@pytest.fixture
def settings(tmp_path):
    """Settings pointing every path at an isolated temporary directory."""
    return Settings(
        api_key=API_KEY,
        ui_username=UI_USERNAME,
        ui_password_hash=password_hash(UI_PASSWORD),
        data_dir=tmp_path / "data",
        temp_dir=tmp_path / "temp",
        db_path=tmp_path / "uploads.db",
        log_dir=tmp_path / "logs",
        assets_dir=tmp_path / "assets",
    )


@pytest.fixture
def client(settings):
    app = create_app(settings)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def auth_headers():
    return {"X-API-Key": API_KEY}


@pytest_asyncio.fixture
async def storage(settings):
    manager = StorageManager(settings.data_dir, settings.temp_dir)
    await manager.initialize()
    return manager


@pytest_asyncio.fixture
async def coordinator(settings):
    coord = build_coordinator(settings)
    await coord.storage.initialize()
    yield coord
    coord.repository.close()


def generate_random_content(size_bytes):
    """Generate random binary content of specified size."""
    return os.urandom(size_bytes)
