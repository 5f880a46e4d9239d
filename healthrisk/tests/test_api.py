from dataclasses import replace

import pytest
from fastapi.testclient import TestClient

from healthrisk.api.main import app
from healthrisk.internal_core.config import load_config
from healthrisk.internal_core.errors import ComputationInvariantViolation, PersistenceError
from healthrisk.internal_core.session_store import InMemorySessionStore
from healthrisk.internal_core.timing import ManualClock
from healthrisk.persistence import InMemoryAssessmentRepository

client = TestClient(app)

SCENARIO_A = {"age": 65, "gender": "male", "smoking_status": "never", "physical_activity": "moderate"}
CALM_QUESTIONNAIRE = {
    "feeling_nervous": 5,
    "worried_about_health": 5,
    "sleep_quality": 1,
    "symptoms": [],
    "previous_experience": "positive",
}
ANXIOUS_QUESTIONNAIRE = dict(CALM_QUESTIONNAIRE, symptoms=["tremor", "headache", "nausea"], previous_experience="negative")


def _install_state(monkeypatch: pytest.MonkeyPatch, **config_overrides):
    config = replace(
        load_config(),
        HEALTHRISK_DEFAULT_USER_ID=None,
        HEALTHRISK_PERSISTENCE_ENABLED=True,
        HEALTHRISK_STAGE_DWELL_SECONDS=8.0,
        HEALTHRISK_READINESS_THRESHOLD=60.0,
        HEALTHRISK_RELAXATION_SECONDS=60.0,
        **config_overrides,
    )
    repository = InMemoryAssessmentRepository()
    clock = ManualClock()
    monkeypatch.setattr(app.state, "risk_config", config, raising=False)
    monkeypatch.setattr(app.state, "session_store", InMemorySessionStore(ttl_seconds=3600), raising=False)
    monkeypatch.setattr(app.state, "assessment_repository", repository, raising=False)
    monkeypatch.setattr(app.state, "disclosure_clock", clock, raising=False)
    monkeypatch.setattr(app.state, "relaxation_sleeper", clock, raising=False)
    return repository, clock


def _readiness_session(questionnaire: dict, style: str) -> str:
    session_id = client.post("/readiness/sessions").json()["session_id"]
    for event in (
        {"type": "anxiety_submitted", "questionnaire": questionnaire},
        {"type": "style_chosen", "style": style},
        {"type": "support_checked", "support_person_available": True},
    ):
        response = client.post(f"/readiness/sessions/{session_id}/events", json=event)
        assert response.status_code == 200
    return session_id


def test_healthz() -> None:
    response = client.get("/healthz")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_modules_lists_every_module() -> None:
    response = client.get("/assessments/modules")
    assert response.status_code == 200
    modules = response.json()["modules"]
    assert [item["module_type"] for item in modules] == ["framingham_alzheimer", "demport", "cancer", "crc_pro", "rais"]
    rais = modules[-1]
    assert rais["risk_levels"] == ["acceptable", "of_concern", "high", "very_high"]
    assert any(field["name"] == "chemical_substance" and field["required"] for field in rais["fields"])


def _assessment_body(readiness_id: str, factors: dict) -> dict:
    return {"readiness_session_id": readiness_id, "input": factors}


def test_assessment_persists_for_identified_user(monkeypatch: pytest.MonkeyPatch) -> None:
    repository, _ = _install_state(monkeypatch)
    readiness_id = _readiness_session(CALM_QUESTIONNAIRE, "direct")
    response = client.post(
        "/assessments/framingham_alzheimer",
        json=_assessment_body(readiness_id, SCENARIO_A),
        headers={"X-User-Id": "user-1"},
    )
    assert response.status_code == 200
    body = response.json()
    assert body["result"]["risk_level"] == "low"
    assert body["result"]["score"] == 4.0
    assert body["persistence"]["saved"] is True
    assert len(repository) == 1

    history = client.get("/assessments/history", headers={"X-User-Id": "user-1"})
    assert history.status_code == 200
    items = history.json()["items"]
    assert [item["record_id"] for item in items] == [body["persistence"]["record_id"]]


def test_assessment_without_identity_returns_warning(monkeypatch: pytest.MonkeyPatch) -> None:
    repository, _ = _install_state(monkeypatch)
    readiness_id = _readiness_session(CALM_QUESTIONNAIRE, "direct")
    response = client.post("/assessments/framingham_alzheimer", json=_assessment_body(readiness_id, SCENARIO_A))
    assert response.status_code == 200
    persistence = response.json()["persistence"]
    assert persistence["saved"] is False
    assert persistence["code"] == "identity_missing"
    assert len(repository) == 0


def test_assessment_requires_ready_session(monkeypatch: pytest.MonkeyPatch) -> None:
    repository, _ = _install_state(monkeypatch)
    high_risk = {"age": 70, "apoe4_status": "homozygous"}

    missing = client.post("/assessments/framingham_alzheimer", json={"input": high_risk})
    assert missing.status_code == 422

    unknown = client.post("/assessments/framingham_alzheimer", json=_assessment_body("missing", high_risk))
    assert unknown.status_code == 404

    readiness_id = _readiness_session(ANXIOUS_QUESTIONNAIRE, "direct")
    blocked = client.post(
        "/assessments/framingham_alzheimer",
        json=_assessment_body(readiness_id, high_risk),
        headers={"X-User-Id": "user-1"},
    )
    assert blocked.status_code == 409
    not_ready = blocked.json()["detail"]["not_ready"]
    assert not_ready["required_action"] == "relaxation_exercise"
    assert not_ready["readiness_score"] == 27.0
    assert "score" not in blocked.json()["detail"]
    assert len(repository) == 0

    types = [event.type for event in app.state.session_store.get_session(readiness_id)["audit_events"]]
    assert types[-1] == "ASSESSMENT_BLOCKED"


def test_assessment_validation_error_returns_400(monkeypatch: pytest.MonkeyPatch) -> None:
    _install_state(monkeypatch)
    readiness_id = _readiness_session(CALM_QUESTIONNAIRE, "direct")
    response = client.post("/assessments/framingham_alzheimer", json=_assessment_body(readiness_id, {"age": 12}))
    assert response.status_code == 400
    detail = response.json()["detail"]
    assert detail["field"] == "age"
    assert detail["bound"] == ">= 18"


def test_unknown_module_returns_404() -> None:
    response = client.post("/assessments/astrology", json=_assessment_body("any", {}))
    assert response.status_code == 404
    assert "Unknown module_type" in response.json()["detail"]


def test_invariant_violation_returns_500(monkeypatch: pytest.MonkeyPatch) -> None:
    _install_state(monkeypatch)
    readiness_id = _readiness_session(CALM_QUESTIONNAIRE, "direct")

    def _broken(*args, **kwargs):
        raise ComputationInvariantViolation("classifier_no_band", "No band for score.")

    monkeypatch.setattr("healthrisk.api.main.run_assessment", _broken)
    response = client.post("/assessments/framingham_alzheimer", json=_assessment_body(readiness_id, SCENARIO_A))
    assert response.status_code == 500
    assert response.json()["detail"].startswith("classifier_no_band")


def test_oversized_exposure_is_a_validation_error(monkeypatch: pytest.MonkeyPatch) -> None:
    _install_state(monkeypatch)
    readiness_id = _readiness_session(CALM_QUESTIONNAIRE, "direct")
    response = client.post(
        "/assessments/rais",
        json=_assessment_body(
            readiness_id,
            {
                "age": 40,
                "body_weight": 70,
                "exposure_duration": 30,
                "exposure_frequency": 250,
                "exposure_time_per_day": 8,
                "chemical_substance": "chromium_vi",
                "inhalation_exposure": True,
                "inhalation_concentration": 1e305,
            },
        ),
    )
    assert response.status_code == 400
    assert response.json()["detail"]["field"] == "inhalation_concentration"


def test_persistence_failure_keeps_result(monkeypatch: pytest.MonkeyPatch) -> None:
    _install_state(monkeypatch)
    readiness_id = _readiness_session(CALM_QUESTIONNAIRE, "direct")

    class _FailingRepository:
        def save(self, record):
            raise PersistenceError("store_unavailable", "The assessment store is unavailable.")

    monkeypatch.setattr(app.state, "assessment_repository", _FailingRepository(), raising=False)
    response = client.post(
        "/assessments/framingham_alzheimer",
        json=_assessment_body(readiness_id, SCENARIO_A),
        headers={"X-User-Id": "user-1"},
    )
    assert response.status_code == 200
    body = response.json()
    assert body["result"]["risk_level"] == "low"
    assert body["persistence"]["code"] == "store_unavailable"


def test_history_requires_identity(monkeypatch: pytest.MonkeyPatch) -> None:
    _install_state(monkeypatch)
    response = client.get("/assessments/history")
    assert response.status_code == 400


def test_readiness_event_validation(monkeypatch: pytest.MonkeyPatch) -> None:
    _install_state(monkeypatch)
    session_id = client.post("/readiness/sessions").json()["session_id"]
    response = client.post(
        f"/readiness/sessions/{session_id}/events",
        json={"type": "anxiety_submitted", "questionnaire": dict(CALM_QUESTIONNAIRE, sleep_quality=9)},
    )
    assert response.status_code == 400
    assert response.json()["detail"]["field"] == "sleep_quality"

    missing = client.post("/readiness/sessions/nope/events", json={"type": "support_checked"})
    assert missing.status_code == 404


def test_readiness_flow_reports_state(monkeypatch: pytest.MonkeyPatch) -> None:
    _, clock = _install_state(monkeypatch)
    session_id = _readiness_session(ANXIOUS_QUESTIONNAIRE, "gentle")
    state = client.post(f"/readiness/sessions/{session_id}/events", json={"type": "relaxation_completed"}).json()[
        "state"
    ]
    assert state["phase"] == "not_ready"
    assert state["readiness_score"] == 42.0
    assert state["required_action"] == "relaxation_exercise"
    assert clock.sleeps == [60.0]

    store = app.state.session_store
    events = store.get_session(session_id)["audit_events"]
    types = [event.type for event in events]
    assert types[0] == "SESSION_CREATED"
    assert "READINESS_EVALUATED" in types
    relaxation = [event for event in events if event.type == "RELAXATION_COMPLETED"]
    assert relaxation[0].duration_ms == 60000


def test_relaxation_is_timed_by_the_server(monkeypatch: pytest.MonkeyPatch) -> None:
    _, clock = _install_state(monkeypatch)
    session_id = _readiness_session(ANXIOUS_QUESTIONNAIRE, "direct")
    started = clock.now()
    for _ in range(3):
        response = client.post(
            f"/readiness/sessions/{session_id}/events",
            json={"type": "relaxation_completed", "duration_seconds": 0},
        )
        assert response.status_code == 200
    state = response.json()["state"]
    assert state["relaxation_count"] == 3
    assert state["phase"] == "ready"
    assert clock.sleeps == [60.0, 60.0, 60.0]
    assert clock.now() - started == 180.0


def test_calmer_resubmission_keeps_relaxation_required(monkeypatch: pytest.MonkeyPatch) -> None:
    _install_state(monkeypatch)
    session_id = _readiness_session(ANXIOUS_QUESTIONNAIRE, "direct")
    state = client.post(
        f"/readiness/sessions/{session_id}/events",
        json={"type": "anxiety_submitted", "questionnaire": CALM_QUESTIONNAIRE},
    ).json()["state"]
    assert state["readiness_score"] == 76.0
    assert state["phase"] == "not_ready"
    assert state["relaxation_pending"] is True
    assert state["required_action"] == "relaxation_exercise"

    state = client.post(f"/readiness/sessions/{session_id}/events", json={"type": "relaxation_completed"}).json()[
        "state"
    ]
    assert state["phase"] == "ready"


def test_direct_disclosure_reveals_and_persists(monkeypatch: pytest.MonkeyPatch) -> None:
    repository, _ = _install_state(monkeypatch)
    readiness_id = _readiness_session(CALM_QUESTIONNAIRE, "direct")
    created = client.post(
        "/disclosure/sessions",
        json={"readiness_session_id": readiness_id, "module_type": "framingham_alzheimer", "input": SCENARIO_A},
        headers={"X-User-Id": "user-1"},
    )
    assert created.status_code == 200
    session_id = created.json()["session_id"]
    assert created.json()["phase"] == "blocked"

    computing = client.post(f"/disclosure/sessions/{session_id}/advance").json()
    assert computing["phase"] == "computing"
    assert len(repository) == 0

    revealed = client.post(f"/disclosure/sessions/{session_id}/advance").json()
    assert revealed["phase"] == "revealed"
    assert revealed["payload"]["risk_level"] == "low"
    assert revealed["persistence"]["saved"] is True
    assert len(repository) == 1

    again = client.post(f"/disclosure/sessions/{session_id}/advance").json()
    assert again["phase"] == "revealed"
    assert again["persistence"] is None
    assert len(repository) == 1


def test_blocked_disclosure_reports_remaining_steps(monkeypatch: pytest.MonkeyPatch) -> None:
    repository, _ = _install_state(monkeypatch)
    readiness_id = _readiness_session(ANXIOUS_QUESTIONNAIRE, "direct")
    session_id = client.post(
        "/disclosure/sessions",
        json={"readiness_session_id": readiness_id, "module_type": "framingham_alzheimer", "input": SCENARIO_A},
        headers={"X-User-Id": "user-1"},
    ).json()["session_id"]

    blocked = client.post(f"/disclosure/sessions/{session_id}/advance").json()
    assert blocked["phase"] == "blocked"
    assert blocked["not_ready"]["required_action"] == "relaxation_exercise"
    assert blocked["not_ready"]["readiness_score"] == 27.0
    assert len(repository) == 0


def test_staged_disclosure_waits_for_dwell(monkeypatch: pytest.MonkeyPatch) -> None:
    repository, clock = _install_state(monkeypatch)
    readiness_id = _readiness_session(CALM_QUESTIONNAIRE, "staged")
    session_id = client.post(
        "/disclosure/sessions",
        json={"readiness_session_id": readiness_id, "module_type": "framingham_alzheimer", "input": SCENARIO_A},
        headers={"X-User-Id": "user-1"},
    ).json()["session_id"]
    advance = f"/disclosure/sessions/{session_id}/advance"

    assert client.post(advance).json()["phase"] == "computing"
    first = client.post(advance).json()
    assert first["stage"] == 1
    assert first["payload"]["key"] == "priming"
    assert first["wait_seconds"] == 8.0

    early = client.post(advance).json()
    assert early["stage"] == 1
    assert early["payload"] is None

    stages = [first["stage"]]
    while True:
        clock.advance(8.0)
        step = client.post(advance).json()
        stages.append(step["stage"])
        if step["phase"] == "revealed":
            break
    assert stages == [1, 2, 3, 4, 5]
    assert step["persistence"]["saved"] is True
    assert len(repository) == 1


def test_disclosure_rejects_bad_input_and_unknown_sessions(monkeypatch: pytest.MonkeyPatch) -> None:
    _install_state(monkeypatch)
    readiness_id = _readiness_session(CALM_QUESTIONNAIRE, "direct")

    bad_input = client.post(
        "/disclosure/sessions",
        json={"readiness_session_id": readiness_id, "module_type": "cancer", "input": {"age": 40}},
    )
    assert bad_input.status_code == 400
    assert bad_input.json()["detail"]["field"] == "gender"

    unknown_readiness = client.post(
        "/disclosure/sessions",
        json={"readiness_session_id": "missing", "module_type": "cancer", "input": {}},
    )
    assert unknown_readiness.status_code == 404

    assert client.post("/disclosure/sessions/missing/advance").status_code == 404
