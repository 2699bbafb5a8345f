"""
Tests for the chat, registration and account endpoints.
"""
import asyncio

import pytest
from fastapi.testclient import TestClient

from lina.core.errors import ConfigurationError, QuotaExhausted, UpstreamError
from lina.core.topics import SYSTEM_PROMPTS
from lina.main import create_app
from lina.services.chat import ChatService
from lina.services.gate import Gate
from lina.services.identity import IdentityIssuer, derive_identity
from lina.services.ledger import InMemoryLedger
from lina.utils.auth import verify_token

from conftest import FREE_QUOTA, TEST_SECRET, FakeRelay, bearer, make_settings


def ask(client, token, message="¿Qué cocino hoy?", **extra):
    return client.post("/api/ask", json={"message": message, **extra}, headers=bearer(token))


class TestHealth:
    def test_health_needs_no_auth(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"ok": True, "model": "gpt-4o-mini", "provider": "openai"}


class TestRegisterAPI:
    def test_register_returns_fresh_state(self, registered):
        assert registered["identity"].startswith("u_")
        assert registered["remaining"] == FREE_QUOTA
        assert registered["quota"] == FREE_QUOTA
        assert registered["subscribed"] is False
        assert verify_token(registered["token"], TEST_SECRET)["sub"] == registered["identity"]

    def test_register_malformed_email(self, client, ledger):
        response = client.post("/api/register", json={"email": "not-an-email"})
        assert response.status_code == 400
        assert response.json()["error"] == "invalid_input"
        assert len(ledger) == 0

    def test_register_missing_body(self, client):
        response = client.post("/api/register", content=b"{not json", headers={"Content-Type": "application/json"})
        assert response.status_code == 400
        assert response.json()["error"] == "invalid_input"

    def test_reregister_keeps_usage(self, client, registered):
        ask(client, registered["token"])
        response = client.post("/api/register", json={"email": " ANA@example.com"})
        body = response.json()
        assert body["identity"] == registered["identity"]
        assert body["remaining"] == FREE_QUOTA - 1


class TestMeAPI:
    def test_me_requires_auth(self, client):
        response = client.get("/api/me")
        assert response.status_code == 401
        assert response.headers["WWW-Authenticate"] == "Bearer"

    def test_me_reports_ledger_state(self, client, registered):
        ask(client, registered["token"])
        response = client.get("/api/me", headers=bearer(registered["token"]))
        assert response.status_code == 200
        body = response.json()
        assert body["used"] == 1
        assert body["remaining"] == FREE_QUOTA - 1
        assert verify_token(body["token"], TEST_SECRET)["remaining"] == FREE_QUOTA - 1


class TestAskAPI:
    def test_ask_without_token(self, client, relay):
        response = client.post("/api/ask", json={"message": "hola"})
        assert response.status_code == 401
        assert response.json()["error"] == "unauthenticated"
        assert relay.calls == []

    def test_ask_with_wrong_scheme(self, client, registered, relay):
        response = client.post(
            "/api/ask", json={"message": "hola"},
            headers={"Authorization": f"Token {registered['token']}"},
        )
        assert response.status_code == 401
        assert relay.calls == []

    def test_successful_ask_returns_reply_and_refreshed_token(self, client, registered):
        response = ask(client, registered["token"])

        assert response.status_code == 200
        body = response.json()
        assert body["reply"] == "Hola, soy LINA."
        assert body["remaining"] == FREE_QUOTA - 1
        assert body["subscribed"] is False
        assert response.headers["X-Access-Token"] == body["token"]
        assert verify_token(body["token"], TEST_SECRET)["remaining"] == FREE_QUOTA - 1

    def test_quota_exhaustion(self, client, registered, relay, ledger):
        token = registered["token"]
        for expected_remaining in range(FREE_QUOTA - 1, -1, -1):
            response = ask(client, token)
            assert response.status_code == 200
            assert response.json()["remaining"] == expected_remaining
            token = response.json()["token"]

        for _ in range(3):
            response = ask(client, token)
            assert response.status_code == 402
            assert response.json()["error"] == "payment_required"
            assert "X-Access-Token" not in response.headers

        assert len(relay.calls) == FREE_QUOTA
        assert ledger.get(registered["identity"]).used_count == FREE_QUOTA

    def test_replaying_old_token_does_not_restore_quota(self, client, registered):
        for _ in range(FREE_QUOTA):
            ask(client, registered["token"])

        # The registration token still claims the full trial
        response = ask(client, registered["token"])
        assert response.status_code == 402

    def test_empty_message_is_rejected_without_charge(self, client, registered, relay, ledger):
        response = ask(client, registered["token"], message="   ")
        assert response.status_code == 400
        assert response.json()["detail"] == "Escribe algo para empezar. 😊"
        assert relay.calls == []
        assert ledger.get(registered["identity"]).used_count == 0

    def test_missing_message_is_rejected(self, client, registered):
        response = client.post("/api/ask", json={}, headers=bearer(registered["token"]))
        assert response.status_code == 400

    def test_long_message_is_truncated(self, client, registered, relay):
        ask(client, registered["token"], message="a" * 5000)
        assert len(relay.calls[0][1]) == 4000

    @pytest.mark.parametrize(
        "extra, expected_topic",
        [
            ({"topic": "cocina"}, "cocina"),
            ({"tema": "FINANZAS"}, "finanzas"),
            ({"theme": "estudio"}, "estudio"),
            ({"topic": "astrologia"}, "general"),
            ({}, "general"),
        ],
    )
    def test_topic_selects_system_prompt(self, client, registered, relay, extra, expected_topic):
        ask(client, registered["token"], **extra)
        assert relay.calls[0][0] == SYSTEM_PROMPTS[expected_topic]


class TestBodySizeLimit:
    def test_oversized_body_is_rejected_before_charging(self, ledger, relay):
        app = create_app(make_settings(max_body_bytes=256), ledger=ledger, relay=relay)
        with TestClient(app) as api:
            token = api.post("/api/register", json={"email": "ana@example.com"}).json()["token"]
            response = ask(api, token, message="a" * 1000)

        assert response.status_code == 413
        assert response.json()["error"] == "payload_too_large"
        assert relay.calls == []
        assert ledger.get(derive_identity("ana@example.com")).used_count == 0

    def test_default_limit_allows_long_messages(self, client, registered):
        # Still well under 1 MB; cut to the message limit instead
        assert ask(client, registered["token"], message="a" * 50_000).status_code == 200


class TestUpstreamFailures:
    def test_upstream_error_is_refunded_and_sanitized(self, client, registered, relay, ledger):
        relay.error = UpstreamError(detail="OpenAI 500: secret internal payload")

        response = ask(client, registered["token"])

        assert response.status_code == 502
        body = response.json()
        assert body["error"] == "upstream_error"
        assert "secret internal payload" not in body["detail"]
        assert ledger.get(registered["identity"]).used_count == 0

    def test_upstream_rate_limit_maps_to_try_again_later(self, client, registered, relay, ledger):
        relay.error = UpstreamError(detail="OpenAI 429: insufficient_quota", rate_limited=True)

        response = ask(client, registered["token"])

        assert response.status_code == 429
        assert response.json()["error"] == "upstream_rate_limited"
        assert ledger.get(registered["identity"]).used_count == 0

    def test_unexpected_relay_exception_is_contained(self, client, registered, relay, ledger):
        relay.error = RuntimeError("boom")

        response = ask(client, registered["token"])

        assert response.status_code == 502
        assert "boom" not in response.json()["detail"]
        assert ledger.get(registered["identity"]).used_count == 0


class TestSubscriptionFlow:
    def test_mock_subscription_unlocks_unmetered_chat(self, client, registered, ledger):
        for _ in range(FREE_QUOTA):
            ask(client, registered["token"])
        assert ask(client, registered["token"]).status_code == 402

        response = client.post("/api/subscribe", headers=bearer(registered["token"]))
        assert response.status_code == 200
        assert response.json()["status"] == "active"
        assert response.json()["subscribed"] is True

        for _ in range(3):
            response = ask(client, registered["token"])
            assert response.status_code == 200
            assert response.json()["subscribed"] is True
            assert response.json()["remaining"] == -1
        assert ledger.get(registered["identity"]).used_count == FREE_QUOTA

    def test_subscribe_requires_auth(self, client):
        assert client.post("/api/subscribe").status_code == 401


class TestConcurrentAsks:
    def test_simultaneous_requests_never_exceed_quota(self):
        settings = make_settings()
        ledger = InMemoryLedger()
        issuer = IdentityIssuer(ledger, settings)
        relay = FakeRelay(delay=0.01)
        service = ChatService(Gate(ledger, settings), ledger, issuer, relay, settings)
        token = issuer.register("ana@example.com").token
        extra = 4

        async def fire():
            return await asyncio.gather(
                *(service.ask(token, "hola") for _ in range(FREE_QUOTA + extra)),
                return_exceptions=True,
            )

        results = asyncio.run(fire())

        allowed = [r for r in results if not isinstance(r, Exception)]
        denied = [r for r in results if isinstance(r, QuotaExhausted)]
        assert len(allowed) == FREE_QUOTA
        assert len(denied) == extra
        assert len(relay.calls) == FREE_QUOTA


class TestStartup:
    def test_missing_secret_prevents_startup(self):
        app = create_app(make_settings(jwt_secret=""), ledger=InMemoryLedger(), relay=FakeRelay())
        with pytest.raises(ConfigurationError):
            with TestClient(app):
                pass

    def test_missing_provider_key_prevents_startup(self):
        app = create_app(make_settings(openai_api_key=""), ledger=InMemoryLedger(), relay=FakeRelay())
        with pytest.raises(ConfigurationError):
            with TestClient(app):
                pass
