from __future__ import annotations

import logging
from urllib.parse import quote, unquote

from fastapi.testclient import TestClient
import pytest

from front_flow.app import _resolve_log_level, create_app
from front_flow.config import LLMSettings
from front_flow.errors import GenerationError
from front_flow.schemas import StepId


@pytest.fixture
def client(gateway) -> TestClient:
    return TestClient(create_app(settings=LLMSettings(api_key=None), gateway=gateway))


def _new_session(client: TestClient) -> str:
    response = client.post("/wizard/sessions")
    assert response.status_code == 201
    return response.json()["session"]["session_id"]


def _fill_diagnosis(client: TestClient, session_id: str) -> None:
    values = {
        "diagnosis.feeling": "spokój",
        "diagnosis.goal": "wzrost retencji",
        "diagnosis.problem": "brak informacji",
    }
    for field, value in values.items():
        response = client.put(f"/wizard/sessions/{session_id}/fields/{field}", json={"value": value})
        assert response.status_code == 200


def test_healthcheck(client: TestClient) -> None:
    response = client.get("/wizard/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_list_steps_exposes_all(client: TestClient) -> None:
    response = client.get("/wizard/steps")
    assert response.status_code == 200
    steps = response.json()
    assert [item["id"] for item in steps] == [step.value for step in StepId]
    assert steps[3]["gate"] == "selection"
    assert [field["id"] for field in steps[0]["fields"]] == [
        "diagnosis.feeling",
        "diagnosis.goal",
        "diagnosis.problem",
    ]


def test_list_kpis(client: TestClient) -> None:
    response = client.get("/wizard/kpis")
    assert response.status_code == 200
    assert {"id": "csat", "label": "Customer Satisfaction (CSAT)"} in response.json()


def test_new_session_view(client: TestClient) -> None:
    response = client.post("/wizard/sessions")
    data = response.json()

    assert data["current_step_number"] == 1
    assert data["can_advance"] is False
    assert data["phases"]["diagnosis"] == "editing"
    assert data["session"]["language"] == "pl"


def test_diagnosis_end_to_end(client: TestClient) -> None:
    session_id = _new_session(client)
    _fill_diagnosis(client, session_id)

    response = client.post(f"/wizard/sessions/{session_id}/submit")
    assert response.status_code == 200
    data = response.json()
    assert data["session"]["diagnosis"]["artifact"] == "Naszą misją jest..."
    assert data["phases"]["diagnosis"] == "complete"
    assert data["can_advance"] is True

    response = client.post(f"/wizard/sessions/{session_id}/advance")
    assert response.status_code == 200
    assert response.json()["session"]["current_step"] == "journey"
    assert response.json()["current_step_number"] == 2


def test_submit_with_missing_fields_is_unprocessable(client: TestClient) -> None:
    session_id = _new_session(client)

    response = client.post(f"/wizard/sessions/{session_id}/submit")

    assert response.status_code == 422
    assert response.json()["detail"]["code"] == "MISSING_FIELDS"


def test_gateway_failure_maps_to_bad_gateway(client: TestClient, gateway) -> None:
    session_id = _new_session(client)
    _fill_diagnosis(client, session_id)
    gateway.error = GenerationError("provider down")

    response = client.post(f"/wizard/sessions/{session_id}/submit")
    assert response.status_code == 502
    assert response.json()["detail"]["code"] == "GENERATION_FAILED"

    view = client.get(f"/wizard/sessions/{session_id}").json()
    assert view["session"]["diagnosis"]["artifact"] is None
    assert view["phases"]["diagnosis"] == "editing"
    assert view["current_step_number"] == 1


def test_advance_before_artifact_conflicts(client: TestClient) -> None:
    session_id = _new_session(client)

    response = client.post(f"/wizard/sessions/{session_id}/advance")

    assert response.status_code == 409
    assert response.json()["detail"]["code"] == "GATE_CLOSED"


def test_suggestion_endpoint_sets_field(client: TestClient) -> None:
    session_id = _new_session(client)

    response = client.post(f"/wizard/sessions/{session_id}/suggest/diagnosis.feeling")

    assert response.status_code == 200
    assert response.json()["session"]["diagnosis"]["feeling"] == "Spokój"


def test_language_update(client: TestClient) -> None:
    session_id = _new_session(client)

    response = client.put(f"/wizard/sessions/{session_id}/language", json={"language": "es"})
    assert response.status_code == 200
    assert response.json()["session"]["language"] == "es"

    response = client.put(f"/wizard/sessions/{session_id}/language", json={"language": "fr"})
    assert response.status_code == 422


def test_unknown_session_is_not_found(client: TestClient) -> None:
    response = client.get("/wizard/sessions/missing")

    assert response.status_code == 404
    assert response.json()["detail"]["code"] == "SESSION_NOT_FOUND"


def test_reset_and_discard(client: TestClient) -> None:
    session_id = _new_session(client)
    _fill_diagnosis(client, session_id)
    client.post(f"/wizard/sessions/{session_id}/submit")

    response = client.post(f"/wizard/sessions/{session_id}/reset")
    assert response.status_code == 200
    assert response.json()["session"]["diagnosis"] == {"feeling": "", "goal": "", "problem": "", "artifact": None}

    assert client.delete(f"/wizard/sessions/{session_id}").status_code == 204
    assert client.get(f"/wizard/sessions/{session_id}").status_code == 404


def test_exports(client: TestClient) -> None:
    session_id = _new_session(client)
    _fill_diagnosis(client, session_id)

    response = client.get(f"/wizard/sessions/{session_id}/export/diagnosis/doc")
    assert response.status_code == 409
    assert response.json()["detail"]["code"] == "ARTIFACT_MISSING"

    client.post(f"/wizard/sessions/{session_id}/submit")
    response = client.get(
        f"/wizard/sessions/{session_id}/export/diagnosis/doc",
        params={"filename": "misja.doc"},
    )
    assert response.status_code == 200
    assert response.headers["content-type"] == "application/msword"
    assert response.headers["content-disposition"] == 'attachment; filename="misja.doc"'
    assert "Naszą misją jest..." in response.text

    response = client.get(f"/wizard/sessions/{session_id}/export/diagnosis/csv")
    assert response.status_code == 422


def test_submit_without_api_key_is_unavailable() -> None:
    client = TestClient(create_app(settings=LLMSettings(api_key=None)))
    session_id = _new_session(client)
    _fill_diagnosis(client, session_id)

    response = client.post(f"/wizard/sessions/{session_id}/submit")

    assert response.status_code == 503
    assert response.json()["detail"]["code"] == "GATEWAY_NOT_CONFIGURED"


@pytest.mark.parametrize("filename", ["Misja_Łźż.doc", "Misja_Łódź.doc"])
def test_export_keeps_non_ascii_filename(client: TestClient, filename: str) -> None:
    session_id = _new_session(client)
    _fill_diagnosis(client, session_id)
    client.post(f"/wizard/sessions/{session_id}/submit")

    response = client.get(
        f"/wizard/sessions/{session_id}/export/diagnosis/doc",
        params={"filename": filename},
    )

    assert response.status_code == 200
    disposition = response.headers["content-disposition"]
    assert disposition.isascii()
    assert f"filename*=UTF-8''{quote(filename, safe='')}" in disposition
    fallback = disposition.split('filename="', 1)[1].split('"', 1)[0]
    assert fallback.startswith("Misja_") and fallback.endswith(".doc")
    assert unquote(disposition.split("filename*=UTF-8''", 1)[1]) == filename


@pytest.mark.parametrize(
    "name, expected",
    [
        ("DEBUG", logging.DEBUG),
        ("warning", logging.WARNING),
        ("BASIC_FORMAT", logging.INFO),
        ("nonsense", logging.INFO),
    ],
)
def test_log_level_resolution(name: str, expected: int) -> None:
    assert _resolve_log_level(name) == expected
