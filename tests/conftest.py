import pytest
from fastapi.testclient import TestClient

from filedrop.main import app
from filedrop.websocket_manager import manager


@pytest.fixture
def client():
    manager.rooms.clear()
    with TestClient(app) as c:
        yield c
    manager.rooms.clear()
