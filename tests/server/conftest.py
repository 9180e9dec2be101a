import pytest
from fastapi.testclient import TestClient

from web3funnel.server import MemoryStore, create_app


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def app(store):
    return create_app(store=store)


@pytest.fixture
def client(app) -> TestClient:
    return TestClient(app)


@pytest.fixture
def website(client):
    response = client.post(
        "/api/v1/websites/register",
        json={"name": "Mint dApp", "domain": "mintdapp.io"},
    )
    assert response.status_code == 201
    return response.json()["data"]


@pytest.fixture
def auth(website):
    return {"X-API-Key": website["apiKey"]}
