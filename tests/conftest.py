"""
Shared fixtures: a LINA app wired with an in-memory ledger and a fake model relay.
"""
import asyncio
import base64
import json

import pytest
from fastapi.testclient import TestClient

from lina.core.config import Settings
from lina.main import create_app
from lina.services.completion import CompletionRelay
from lina.services.ledger import InMemoryLedger

TEST_SECRET = "test-secret"
FREE_QUOTA = 5


class FakeRelay(CompletionRelay):
    """Records calls and returns a canned reply (or raises `error`)."""

    provider = "fake"

    def __init__(self, reply: str = "Hola, soy LINA.", error: Exception = None, delay: float = 0.0):
        super().__init__("fake-model")
        self.reply = reply
        self.error = error
        self.delay = delay
        self.calls = []

    async def complete(self, system_prompt: str, user_text: str) -> str:
        self.calls.append((system_prompt, user_text))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.reply


def make_settings(**overrides) -> Settings:
    base = Settings(
        jwt_secret=TEST_SECRET,
        openai_api_key="sk-test",
        free_question_limit=FREE_QUOTA,
        rate_limit_per_min=0,
    )
    return base.with_overrides(**overrides)


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def tamper_subject(token: str, new_subject: str) -> str:
    """Rewrite the JWT payload's `sub` while keeping the original signature."""
    header, payload, signature = token.split(".")
    padded = payload + "=" * (-len(payload) % 4)
    claims = json.loads(base64.urlsafe_b64decode(padded))
    claims["sub"] = new_subject
    forged = base64.urlsafe_b64encode(json.dumps(claims).encode()).rstrip(b"=").decode()
    return f"{header}.{forged}.{signature}"


@pytest.fixture
def settings():
    return make_settings()


@pytest.fixture
def ledger():
    return InMemoryLedger()


@pytest.fixture
def relay():
    return FakeRelay()


@pytest.fixture
def app(settings, ledger, relay):
    return create_app(settings, ledger=ledger, relay=relay)


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c


@pytest.fixture
def registered(client):
    """Register a fresh user and return the registration response body."""
    response = client.post("/api/register", json={"email": "ana@example.com"})
    assert response.status_code == 200
    return response.json()
