import os
import pytest

# Set test environment variables before importing app modules
os.environ["STORAGE_BACKEND"] = "memory"
os.environ["BTC_PRICE_SOURCE"] = "fixed"
os.environ["SESSION_SECRET"] = "test-secret"

import api_server
from config import config
from storage.memory import MemoryStorage
from utils.price_fetcher import FixedPriceSource


@pytest.fixture
def storage(monkeypatch):
    """Fresh in-memory storage wired into the Flask app."""
    memory = MemoryStorage()
    monkeypatch.setattr(api_server, "storage", memory)
    monkeypatch.setattr(api_server, "price_source", FixedPriceSource(80000))
    api_server.rate_limit_store.clear()
    return memory


@pytest.fixture
def client(storage):
    api_server.app.config["TESTING"] = True
    with api_server.app.test_client() as test_client:
        yield test_client


@pytest.fixture
def no_seed(monkeypatch):
    monkeypatch.setattr(config, "SEED_PROJECT_DATA", False)


def register(client, email="partner@example.com", password="secret123", name="Partner"):
    return client.post("/api/auth/register", json={
        "name": name,
        "email": email,
        "password": password,
        "confirmPassword": password,
    })


@pytest.fixture
def partner(client, no_seed):
    """A signed-in partner with an empty project; returns the register payload."""
    response = register(client)
    assert response.status_code == 201
    return response.get_json()
