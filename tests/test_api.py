"""Tests for the HTTP surface: routing, auth and error mapping."""

import asyncio
import time
from typing import Optional

import jwt
import pytest
from fastapi.testclient import TestClient

from finbuddy.agents import ADVISOR_TYPES, BudgetOptimizerAgent
from finbuddy.audit import AuditLogger
from finbuddy.config import AuthSettings
from finbuddy.api.app import create_app
from finbuddy.models.records import Profile, Table
from finbuddy.orchestrator import create_app_components
from finbuddy.services.auth import SessionVerifier
from finbuddy.services.llm import LLMServiceError, PaymentRequiredError, RateLimitedError
from finbuddy.services.realtime import ChangeFeed
from finbuddy.services.speech import SpeechService, SpeechServiceError
from finbuddy.services.storage import InMemoryAuditStorage, InMemoryRecordStorage, StorageError

from tests.conftest import USER_ID, FakeGateway

SECRET = "api-test-secret"


def bearer(sub: str = USER_ID, secret: str = SECRET) -> dict:
    token = jwt.encode(
        {"sub": sub, "aud": "authenticated", "exp": int(time.time()) + 3600},
        secret,
        algorithm="HS256",
    )
    return {"Authorization": f"Bearer {token}"}


def budget_response() -> dict:
    return {key: 1 for key in BudgetOptimizerAgent.required_keys}


class FakeSpeech(SpeechService):
    """Returns fixed audio, or raises the given error."""

    def __init__(self, error: Optional[Exception] = None):
        super().__init__()
        self.error = error
        self.calls: list[tuple] = []

    async def synthesize(self, text, voice_id=None):
        self.calls.append((text, voice_id))
        if self.error:
            raise self.error
        return "SUQz"


class Harness:
    """An app wired to in-memory storage and a fake gateway."""

    def __init__(
        self,
        gateway: FakeGateway,
        storage: Optional[InMemoryRecordStorage] = None,
        speech: Optional[SpeechService] = None,
    ):
        self.storage = storage or InMemoryRecordStorage(ChangeFeed())
        self.speech = speech or FakeSpeech()
        self.audit_storage = InMemoryAuditStorage()
        self.gateway = gateway
        components = create_app_components(
            storage=self.storage,
            gateway=gateway,
            audit_logger=AuditLogger(self.audit_storage),
            verifier=SessionVerifier(AuthSettings(jwt_secret=SECRET)),
            speech=self.speech,
        )
        self.client = TestClient(create_app(components))


@pytest.fixture
def harness():
    return Harness(FakeGateway(budget_response()))


def harness_failing_with(error: Exception) -> Harness:
    return Harness(FakeGateway(error=error))


class TestHealth:

    def test_lists_functions(self, harness):
        response = harness.client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "ok"
        assert "finbuddy-chat" in body["functions"]
        assert "text-to-speech" in body["functions"]
        assert len(body["functions"]) == len(ADVISOR_TYPES) + 2


class TestRoutingAndAuth:
    """Tests for the gate in front of every function."""

    def test_unknown_function(self, harness):
        response = harness.client.post("/functions/fortune-teller", headers=bearer())
        assert response.status_code == 404
        assert response.json() == {"error": "Unknown function: fortune-teller"}

    def test_missing_header(self, harness):
        response = harness.client.post("/functions/budget-optimizer")

        assert response.status_code == 401
        assert response.json() == {"error": "No authorization header"}
        assert harness.gateway.calls == []
        assert harness.audit_storage.events[-1].event_type.value == "auth_failed"

    def test_bad_token(self, harness):
        response = harness.client.post(
            "/functions/budget-optimizer", headers=bearer(secret="forged")
        )
        assert response.status_code == 401
        assert response.json() == {"error": "Unauthorized"}

    def test_user_comes_from_token(self, harness):
        """A user id in the body is ignored; the token decides whose data is read."""
        response = harness.client.post(
            "/functions/budget-optimizer",
            headers=bearer(sub="user-9"),
            json={"user_id": USER_ID},
        )
        assert response.status_code == 200
        events = [e for e in harness.audit_storage.events if e.event_type.value == "advisor_requested"]
        assert events[-1].user_id == "user-9"


class TestAdvisorEndpoints:
    """Tests for advisor calls and error mapping."""

    def test_success_is_enriched(self, harness):
        response = harness.client.post("/functions/budget-optimizer", headers=bearer())

        assert response.status_code == 200
        body = response.json()
        assert body["summary"] == 1
        assert body["currentFinancials"]["totalSpending"] == 0

    def test_reads_callers_profile(self, harness):
        profile = Profile(user_id=USER_ID, annual_salary=1200000)
        asyncio.run(harness.storage.insert(Table.PROFILES.value, USER_ID, profile.to_row()))

        response = harness.client.post("/functions/budget-optimizer", headers=bearer())

        assert response.json()["currentFinancials"]["monthlySalary"] == 100000

    @pytest.mark.parametrize("error, status, message", [
        (RateLimitedError(), 429, "Rate limit exceeded. Please try again in a moment."),
        (PaymentRequiredError(), 402, "AI service requires payment. Please contact support."),
        (LLMServiceError("AI gateway error"), 500, "AI gateway error"),
    ])
    def test_gateway_errors(self, error, status, message):
        harness = harness_failing_with(error)

        response = harness.client.post("/functions/tax-optimizer", headers=bearer())

        assert response.status_code == status
        assert response.json() == {"error": message}

    def test_model_returned_wrong_shape(self):
        harness = Harness(FakeGateway({"unexpected": True}))
        response = harness.client.post("/functions/budget-optimizer", headers=bearer())

        assert response.status_code == 500
        assert response.json() == {"error": "AI did not return structured data"}

    def test_malformed_body(self, harness):
        response = harness.client.post(
            "/functions/income-forecast", headers=bearer(), json={"timeframe": 12}
        )

        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "Invalid request"
        assert body["details"][0]["loc"] == ["timeframe"]
        assert harness.gateway.calls == []

    def test_spending_insights_without_expenses(self, harness):
        response = harness.client.post("/functions/spending-insights", headers=bearer())

        assert response.status_code == 200
        assert response.json()["savingOpportunities"] == [
            "Start tracking expenses to get personalized insights!"
        ]
        assert harness.gateway.calls == []


class TestChat:
    """Tests for the streamed assistant."""

    def test_streams_server_sent_events(self, harness):
        response = harness.client.post(
            "/functions/finbuddy-chat",
            headers=bearer(),
            json={"messages": [{"role": "user", "content": "Hi"}]},
        )

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/event-stream")
        assert response.text == "".join(harness.gateway.stream_lines)

    def test_rate_limit_before_stream(self):
        harness = harness_failing_with(RateLimitedError())
        response = harness.client.post(
            "/functions/finbuddy-chat",
            headers=bearer(),
            json={"messages": [{"role": "user", "content": "Hi"}]},
        )
        assert response.status_code == 429

    def test_missing_messages(self, harness):
        response = harness.client.post("/functions/finbuddy-chat", headers=bearer(), json={})
        assert response.status_code == 400


class UnreachableStorage(InMemoryRecordStorage):
    async def list(self, table, user_id, order_by=None, descending=False, limit=None):
        raise StorageError("spreadsheet unreachable")


class TestStorageOutage:

    def test_storage_failure_is_500_and_audited(self):
        harness = Harness(FakeGateway(budget_response()), storage=UnreachableStorage(ChangeFeed()))

        response = harness.client.post("/functions/budget-optimizer", headers=bearer())

        assert response.status_code == 500
        assert response.json() == {"error": "spreadsheet unreachable"}
        assert harness.gateway.calls == []
        event_types = [e.event_type.value for e in harness.audit_storage.events]
        assert event_types[-2:] == ["advisor_failed", "external_service_error"]


class TestTextToSpeech:

    def test_returns_audio(self, harness):
        response = harness.client.post(
            "/functions/text-to-speech",
            headers=bearer(),
            json={"text": "Namaste", "voiceId": "voice-2"},
        )

        assert response.status_code == 200
        assert response.json() == {"audioContent": "SUQz"}
        assert harness.speech.calls == [("Namaste", "voice-2")]

    def test_text_is_required(self, harness):
        response = harness.client.post("/functions/text-to-speech", headers=bearer(), json={})

        assert response.status_code == 400
        assert response.json() == {"error": "Text is required"}
        assert harness.speech.calls == []

    def test_requires_session(self, harness):
        response = harness.client.post("/functions/text-to-speech", json={"text": "Hi"})
        assert response.status_code == 401

    @pytest.mark.parametrize("error, status", [
        (SpeechServiceError("Invalid API key", status_code=401), 401),
        (SpeechServiceError("Rate limit exceeded. Please try again later.", status_code=429), 429),
        (SpeechServiceError("ElevenLabs API error"), 500),
    ])
    def test_errors_keep_their_status(self, error, status):
        harness = Harness(FakeGateway(budget_response()), speech=FakeSpeech(error))

        response = harness.client.post("/functions/text-to-speech", headers=bearer(), json={"text": "Hi"})

        assert response.status_code == status
        assert response.json() == {"error": str(error)}
        assert harness.audit_storage.events[-1].event_type.value == "external_service_error"
