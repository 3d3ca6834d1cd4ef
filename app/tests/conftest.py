import os

os.environ["DATABASE_URL"] = "sqlite+pysqlite:///:memory:"
os.environ["RELAY_ENABLED"] = "false"

import pytest
from fastapi.testclient import TestClient

from app.main import app
from app.models import Base
from app.db.session import engine


@pytest.fixture()
def client() -> TestClient:
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture()
def create_webhook(client):
    def _create(**overrides) -> dict:
        payload = {
            "path": "test-webhook",
            "method": "POST",
            "responseStatus": 200,
            "responseData": {"received": True},
        }
        payload.update(overrides)
        response = client.post("/api/v1/webhooks", json=payload)
        assert response.status_code == 201, response.text
        return response.json()

    return _create
