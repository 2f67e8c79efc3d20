"""
API Tests

Routes, error mapping and trace headers via FastAPI's TestClient.
"""

import pytest
from fastapi.testclient import TestClient

from grader.api.main import INVALID_RESPONSE_MESSAGE, UNAVAILABLE_MESSAGE, create_app
from grader.services.config import GraderConfig

from conftest import ScriptedClient, evaluation_json, server_error

SUBMISSION = {
    "questions": [
        {"id": "a", "type": "short-answer", "text": "Define force.", "marks": 5},
        {"id": "b", "type": "short-answer", "text": "Define mass.", "marks": 5},
    ],
    "answers": ["A push or a pull.", None],
}


@pytest.fixture
def client_for(make_service):
    def _client(*providers):
        app = create_app(service=make_service(*providers), config=GraderConfig(cache_backend="none"))
        return TestClient(app)

    return _client


class TestEvaluateRoute:
    """Tests for POST /api/v1/evaluate."""

    def test_evaluate_when_ok_then_camel_case_result(self, client_for):
        client = client_for(ScriptedClient("gemini", [evaluation_json([4, 5])]))

        response = client.post("/api/v1/evaluate", json=SUBMISSION)

        assert response.status_code == 200
        body = response.json()
        assert body["overallScore"] == 90
        assert body["totalPossibleMarks"] == 10
        assert body["questionScores"][1]["maxMarks"] == 5
        assert response.headers["X-Trace-ID"]

    def test_evaluate_when_trace_header_sent_then_echoed(self, client_for):
        client = client_for(ScriptedClient("gemini", [evaluation_json([4, 5])]))
        response = client.post("/api/v1/evaluate", json=SUBMISSION, headers={"X-Trace-ID": "trace-123"})
        assert response.headers["X-Trace-ID"] == "trace-123"

    def test_evaluate_when_parent_span_sent_then_propagated(self, client_for):
        client = client_for(ScriptedClient("gemini", [evaluation_json([4, 5])]))

        response = client.post(
            "/api/v1/evaluate",
            json=SUBMISSION,
            headers={"X-Parent-Trace-ID": "parent-1", "X-Span-ID": "span-1"},
        )

        assert response.headers["X-Parent-Trace-ID"] == "parent-1"
        assert response.headers["X-Span-ID"] == "span-1"

    def test_evaluate_when_answer_count_wrong_then_422(self, client_for):
        client = client_for(ScriptedClient("gemini", [evaluation_json([4, 5])]))
        response = client.post("/api/v1/evaluate", json={**SUBMISSION, "answers": ["only one"]})
        assert response.status_code == 422

    def test_evaluate_when_all_providers_fail_then_503(self, client_for):
        client = client_for(
            ScriptedClient("gemini", [server_error("gemini")], priority=0),
            ScriptedClient("groq", [server_error("groq")], priority=1),
        )

        response = client.post("/api/v1/evaluate", json=SUBMISSION)

        assert response.status_code == 503
        body = response.json()
        assert body["error"] == UNAVAILABLE_MESSAGE
        assert set(body["failures"]) == {"gemini", "groq"}
        assert [a["provider"] for a in body["attempts"]] == ["gemini"] * 3 + ["groq"] * 3
        assert body["attempts"][0]["error_type"] == "server"
        assert response.headers["X-Trace-ID"]

    def test_evaluate_when_no_provider_configured_then_503(self, client_for):
        client = client_for(ScriptedClient("gemini", credential=""))
        response = client.post("/api/v1/evaluate", json=SUBMISSION)
        assert response.status_code == 503
        assert response.json()["error"] == UNAVAILABLE_MESSAGE

    def test_evaluate_when_reply_unusable_then_502(self, client_for):
        client = client_for(ScriptedClient("gemini", ["I think the student did fine."]))
        response = client.post("/api/v1/evaluate", json=SUBMISSION)
        assert response.status_code == 502
        assert response.json()["error"] == INVALID_RESPONSE_MESSAGE


class TestGenerationRoutes:
    """Tests for the generation endpoints."""

    def test_generate_when_schema_then_json_body(self, client_for):
        client = client_for(ScriptedClient("gemini", ['{"answer": 42}']))

        response = client.post(
            "/api/v1/generate",
            json={"prompt": "Answer", "schema": {"type": "object", "required": ["answer"]}},
        )

        assert response.status_code == 200
        assert response.json() == {"answer": 42}

    def test_generate_when_no_schema_then_text_body(self, client_for):
        client = client_for(ScriptedClient("gemini", ["Hello"]))
        response = client.post("/api/v1/generate", json={"prompt": "Say hello"})
        assert response.json() == {"text": "Hello"}

    def test_tests_generate_when_ok_then_generated_test(self, client_for):
        reply = '{"title": "Forces", "questions": [{"type": "true-false", "text": "Gravity pulls.", "marks": 1}]}'
        client = client_for(ScriptedClient("gemini", [reply]))

        response = client.post(
            "/api/v1/tests/generate",
            json={"topic": "Forces", "numQuestions": 1, "questionTypes": ["true-false"], "difficulty": "easy"},
        )

        assert response.status_code == 200
        assert response.json()["questions"][0]["type"] == "true-false"

    def test_tests_generate_when_bad_type_then_422(self, client_for):
        client = client_for(ScriptedClient("gemini", ["{}"]))
        response = client.post(
            "/api/v1/tests/generate",
            json={"topic": "Forces", "numQuestions": 1, "questionTypes": ["essay"], "difficulty": "easy"},
        )
        assert response.status_code == 422

    def test_regenerate_when_ok_then_question(self, client_for):
        reply = '{"type": "short-answer", "text": "Define weight.", "marks": 3}'
        client = client_for(ScriptedClient("gemini", [reply]))

        response = client.post(
            "/api/v1/questions/regenerate",
            json={"question": {"type": "short-answer", "text": "Define mass.", "marks": 3}},
        )

        assert response.status_code == 200
        assert response.json()["text"] == "Define weight."

    def test_tutor_when_ok_then_text(self, client_for):
        client = client_for(ScriptedClient("gemini", ["Let's break it down."]))

        response = client.post(
            "/api/v1/tutor",
            json={"prompt": "Help", "history": [{"role": "user", "parts": [{"text": "hi"}]}]},
        )

        assert response.json() == {"text": "Let's break it down."}


class TestSystemRoutes:
    def test_time_when_called_then_epoch_ms(self, client_for):
        client = client_for(ScriptedClient("gemini", ["x"]))
        body = client.get("/api/v1/time").json()
        assert isinstance(body["serverTime"], int)
        assert body["serverTime"] > 1_600_000_000_000

    def test_health_when_no_credentials_then_degraded(self, client_for):
        client = client_for(ScriptedClient("gemini", credential=""))
        body = client.get("/api/v1/health").json()
        assert body["status"] == "degraded"
        assert body["configured_providers"] == []

    def test_health_when_configured_then_healthy_without_secrets(self, client_for):
        client = client_for(ScriptedClient("gemini", credential="sk-secret-value"))
        response = client.get("/api/v1/health")
        assert response.json()["status"] == "healthy"
        assert "sk-secret-value" not in response.text
