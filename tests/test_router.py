import pytest
from fastapi.testclient import TestClient

from hiring_pipeline.main import create_app
from hiring_pipeline.pipeline.manager import RoundSessionManager
from tests.fakes import INTERVIEW_ID, JOB_ID, SCREENING_ID, FakeEvaluationClient, FakeGateway, make_candidate

SESSION_URL = f"/api/v1/jobs/{JOB_ID}/session"


@pytest.fixture
def fake_gateway():
    gateway = FakeGateway(page_size=2)
    gateway.seed(SCREENING_ID, [
        make_candidate("x", status="selected", score=90),
        make_candidate("y", score=40),
        make_candidate("z", status="rejected", score=10),
    ])
    return gateway


@pytest.fixture
def client(fake_gateway):
    manager = RoundSessionManager(fake_gateway, FakeEvaluationClient(), page_size=2)
    with TestClient(create_app(manager)) as test_client:
        yield test_client


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_correlation_id_is_echoed(client):
    response = client.get("/health", headers={"X-Correlation-ID": "abc-123"})
    assert response.headers["X-Correlation-ID"] == "abc-123"


def test_view_without_session_is_not_found(client):
    response = client.get(SESSION_URL)
    assert response.status_code == 404
    error = response.json()["error"]
    assert error["type"] == "NotFoundError"


def test_open_and_edit_status(client):
    response = client.post(SESSION_URL, json={"round_template_id": SCREENING_ID})
    assert response.status_code == 201
    view = response.json()
    assert [c["candidate"]["id"] for c in view["candidates"]] == ["x", "y"]
    assert view["has_more"] is True

    response = client.put(f"{SESSION_URL}/candidates/y/status", json={"status": "selected"})
    assert response.status_code == 200
    assert response.json()["changed_count"] == 1
    assert response.json()["selected_count"] == 1

    response = client.post(f"{SESSION_URL}/load-more")
    assert response.json() == {"added": 1, "has_more": False, "error": None}

    response = client.post(f"{SESSION_URL}/statuses/save")
    assert response.json()["saved"] == 3


def test_unknown_status_value_is_rejected(client):
    client.post(SESSION_URL, json={"round_template_id": SCREENING_ID})
    response = client.put(f"{SESSION_URL}/candidates/y/status", json={"status": "maybe"})
    assert response.status_code == 422


def test_advance_moves_focus_to_next_round(client, fake_gateway):
    client.post(SESSION_URL, json={"round_template_id": SCREENING_ID})

    response = client.post(f"{SESSION_URL}/advance", json={"created_by": "recruiter-1"})

    assert response.status_code == 200
    result = response.json()
    assert result["advanced"] is True
    assert result["cohort_size"] == 3
    assert fake_gateway.created[0]["created_by"] == "recruiter-1"
    assert client.get(SESSION_URL).json()["round_template"]["id"] == INTERVIEW_ID


def test_re_evaluation_source_must_fit_round(client):
    client.post(SESSION_URL, json={"round_template_id": SCREENING_ID})

    response = client.post(
        f"{SESSION_URL}/candidates/x/re-evaluation",
        json={"source": {"kind": "transcript_upload", "file_type": "txt", "file_content": "aGk="}},
    )

    assert response.status_code == 422
    assert response.json()["error"]["type"] == "ValidationError"


def test_re_evaluation_options_and_run(client):
    client.post(SESSION_URL, json={"round_template_id": SCREENING_ID})

    response = client.post(f"{SESSION_URL}/candidates/y/re-evaluation/options")
    assert response.json()["phase"] == "options_shown"

    response = client.post(f"{SESSION_URL}/candidates/y/re-evaluation", json={"source": {"kind": "resume"}})
    body = response.json()
    assert body["succeeded"] is True
    assert body["evaluation"]["overall_percentage_score"] == 80

    view = client.get(SESSION_URL).json()
    y = next(c for c in view["candidates"] if c["candidate"]["id"] == "y")
    assert y["re_evaluation"]["phase"] == "idle"
    assert y["evaluation"]["overall_percentage_score"] == 80


def test_close_session(client):
    client.post(SESSION_URL, json={"round_template_id": SCREENING_ID})
    assert client.delete(SESSION_URL).status_code == 204
    assert client.get(SESSION_URL).status_code == 404
