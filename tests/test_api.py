from datetime import timedelta

import pytest
from fastapi.testclient import TestClient

from timed_quiz.core.config import Settings, get_settings
from timed_quiz.core.exceptions import UpstreamUnavailable
from timed_quiz.core.security import RateLimiter
from timed_quiz.main import create_app
from timed_quiz.models.attempt import AttemptRecord
from timed_quiz.services.quiz_service import get_quiz_service

from conftest import T0, RecordingLedger


@pytest.fixture
def service(make_service):
    return make_service()


@pytest.fixture
def app(service):
    app = create_app()
    app.dependency_overrides[get_quiz_service] = lambda: service
    app.dependency_overrides[get_settings] = lambda: Settings(quiz_secret=None)
    return app


@pytest.fixture
def client(app):
    return TestClient(app)


def _issue(client, roll="R1"):
    response = client.post("/generate-quiz", json={"roll": roll, "name": "Asha"})
    assert response.status_code == 200
    return response.json()


def test_health_endpoints(client):
    assert client.get("/hi").json() == {"message": "hi"}

    health = client.get("/health")
    assert health.status_code == 200
    assert health.json()["message"] == "hi"
    assert "X-Process-Time-Ms" in health.headers


def test_check_roll_allowed(client):
    response = client.get("/check-roll/R1")

    assert response.status_code == 200
    assert response.json()["allowed"] is True


def test_check_roll_blocked_has_message(client, ledger):
    ledger.attempts.append(AttemptRecord(
        studentId="R1", timestamp=T0 - timedelta(hours=2), durationSeconds=30, score="3/5"
    ))

    body = client.get("/check-roll/R1").json()

    assert body["allowed"] is False
    assert "8h 0m" in body["message"]
    assert body["retryAfterSeconds"] == 8 * 3600


def test_generate_quiz_hides_answer_key(client):
    questions = _issue(client)

    assert len(questions) == 5
    for q in questions:
        assert set(q) == {"id", "question", "options"}


def test_generate_quiz_via_get(client):
    response = client.get("/generate-quiz", params={"roll": "R1"})

    assert response.status_code == 200
    assert len(response.json()) == 5


def test_generate_quiz_requires_roll(client):
    assert client.get("/generate-quiz").status_code == 422
    assert client.post("/generate-quiz", json={"name": "Asha"}).status_code == 422


def test_submit_quiz_returns_score(client, ledger):
    questions = _issue(client)
    answers = [{"id": q["id"], "selected": 0} for q in questions[:4]]
    answers.append({"id": questions[4]["id"], "selected": None, "timedOut": True})

    response = client.post("/submit-quiz", json={
        "roll": "R1", "name": "Asha", "answers": answers, "durationSeconds": 80
    })

    assert response.status_code == 200
    body = response.json()
    assert body["total"] == 5
    assert body["score"] == f"{body['correct']}/5"
    assert 0 <= body["correct"] <= 4
    assert body["saved"] is True
    assert set(body) == {"score", "correct", "total", "saved"}
    assert len(ledger.attempts) == 1


def test_submit_missing_roll_is_rejected_without_append(client, ledger):
    questions = _issue(client)

    response = client.post("/submit-quiz", json={
        "name": "Asha", "answers": [{"id": questions[0]["id"], "selected": 1}]
    })

    assert response.status_code == 422
    assert ledger.attempts == []


def test_submit_rejects_out_of_range_option(client, ledger):
    questions = _issue(client)

    response = client.post("/submit-quiz", json={
        "roll": "R1", "name": "Asha", "answers": [{"id": questions[0]["id"], "selected": 4}]
    })

    assert response.status_code == 422
    assert ledger.attempts == []


def test_submit_unknown_question_is_validation_error(client, ledger):
    _issue(client)

    response = client.post("/submit-quiz", json={
        "roll": "R1", "name": "Asha", "answers": [{"id": 4242, "selected": 1}]
    })

    assert response.status_code == 422
    assert response.json()["detail"][0]["loc"] == ["body", "answers", 0, "id"]
    assert ledger.attempts == []


def test_second_submission_hits_cooldown(client, ledger):
    questions = _issue(client)
    body = {"roll": "R1", "name": "Asha", "answers": [{"id": questions[0]["id"], "selected": 0}]}

    assert client.post("/submit-quiz", json=body).status_code == 200
    second = client.post("/submit-quiz", json=body)

    assert second.status_code == 403
    assert second.json()["detail"]["allowed"] is False
    assert int(second.headers["Retry-After"]) == 10 * 3600
    assert len(ledger.attempts) == 1


def test_generate_blocked_during_cooldown(client, ledger):
    ledger.attempts.append(AttemptRecord(
        studentId="R1", timestamp=T0, durationSeconds=30, score="3/5"
    ))

    response = client.post("/generate-quiz", json={"roll": "R1"})

    assert response.status_code == 403
    assert "Retry-After" in response.headers


def test_submit_without_quiz_is_not_found(client):
    response = client.post("/submit-quiz", json={"roll": "R1", "name": "Asha", "answers": []})
    assert response.status_code == 404


def test_failed_ledger_write_still_reports_score(app, make_service):
    failing = make_service(ledger_=RecordingLedger(fail_append=True))
    app.dependency_overrides[get_quiz_service] = lambda: failing
    client = TestClient(app)

    questions = _issue(client)
    response = client.post("/submit-quiz", json={
        "roll": "R1", "name": "Asha", "answers": [{"id": questions[0]["id"], "selected": 0}]
    })

    assert response.status_code == 200
    assert response.json()["saved"] is False


def test_upstream_failure_is_generic_503(app, make_service):
    class BrokenSource:
        async def load_pool(self):
            raise UpstreamUnavailable("sheets said 500 with secret detail")

    app.dependency_overrides[get_quiz_service] = lambda: make_service(source=BrokenSource())
    client = TestClient(app)

    response = client.post("/generate-quiz", json={"roll": "R1"})

    assert response.status_code == 503
    assert "secret detail" not in response.text


def test_small_pool_is_server_error(app, make_service):
    app.dependency_overrides[get_quiz_service] = lambda: make_service(quiz_size=20)
    client = TestClient(app)

    assert client.post("/generate-quiz", json={"roll": "R1"}).status_code == 500


def test_secret_header_required_when_configured(app):
    app.dependency_overrides[get_settings] = lambda: Settings(quiz_secret="s3cret")
    client = TestClient(app)

    assert client.get("/check-roll/R1").status_code == 401
    assert client.get("/check-roll/R1", headers={"x-quiz-secret": "wrong"}).status_code == 401
    assert client.get("/check-roll/R1", headers={"x-quiz-secret": "s3cret"}).status_code == 200
    assert client.get("/health").status_code == 200


def test_rate_limit_per_client(app, client):
    app.state.rate_limiter = RateLimiter(limit=2, window_seconds=60)

    assert client.get("/check-roll/R1").status_code == 200
    assert client.get("/check-roll/R1").status_code == 200

    limited = client.get("/check-roll/R1")
    assert limited.status_code == 429
    assert int(limited.headers["Retry-After"]) >= 1

    # Health probes are never limited
    assert client.get("/health").status_code == 200


def test_rate_limiter_window_resets():
    now = [0.0]
    limiter = RateLimiter(limit=1, window_seconds=10, clock=lambda: now[0])

    assert limiter.hit("1.2.3.4") == (True, 0)
    assert limiter.hit("1.2.3.4") == (False, 10)
    assert limiter.hit("5.6.7.8") == (True, 0)

    now[0] = 10.0
    assert limiter.hit("1.2.3.4") == (True, 0)


def test_rate_limited_response_keeps_cors_headers(app, client):
    app.state.rate_limiter = RateLimiter(limit=1, window_seconds=60)
    headers = {"Origin": "https://quiz.example"}

    assert client.get("/check-roll/R1", headers=headers).status_code == 200

    limited = client.get("/check-roll/R1", headers=headers)
    assert limited.status_code == 429
    assert limited.headers["access-control-allow-origin"] == "*"


def test_submit_response_hides_correct_answers(client, ledger):
    _issue(client)

    response = client.post("/submit-quiz", json={"roll": "R1", "name": "Asha", "answers": []})

    assert response.status_code == 200
    assert "details" not in response.json()
    assert "option" not in response.text
    assert len(ledger.results[0]["details"]) == 5
