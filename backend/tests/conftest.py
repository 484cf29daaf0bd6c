"""Shared test fixtures and configuration for backend tests."""
import pytest
from fastapi.testclient import TestClient

from app.chat.manager import manager, registry
from app.config import AppConfig, StorageConfig, set_config
from app.files.service import FileStorageService
from app.main import app


@pytest.fixture
def storage_root(tmp_path):
    """Storage root inside pytest's tmp dir."""
    return tmp_path / "files"


@pytest.fixture(autouse=True)
def app_config(storage_root):
    """Point the process-wide config at a temporary storage root.

    Also resets every singleton so state never leaks between tests.
    """
    config = AppConfig(storage=StorageConfig(root_dir=str(storage_root)))
    set_config(config)
    FileStorageService.reset_instance()
    registry.clear()
    manager.clear()
    yield config
    FileStorageService.reset_instance()
    registry.clear()
    manager.clear()
    set_config(None)


@pytest.fixture
def api_client():
    """Provide a TestClient for the main FastAPI app.

    Used as a context manager so that every WebSocket opened in a test
    shares a single event loop with the app.
    """
    with TestClient(app) as client:
        yield client
