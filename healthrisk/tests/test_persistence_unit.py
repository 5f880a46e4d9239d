import pytest

from healthrisk.internal_core.errors import PersistenceError
from healthrisk.modules import framingham, rais
from healthrisk.persistence import (
    InMemoryAssessmentRepository,
    StaticIdentityProvider,
    build_assessment_record,
    run_assessment,
)

SCENARIO_A = {"age": 65, "gender": "male", "smoking_status": "never", "physical_activity": "moderate"}


class _FailingRepository:
    def save(self, record):
        raise PersistenceError("store_unavailable", "The assessment store is unavailable.")


def test_run_assessment_saves_record_for_identified_user() -> None:
    repository = InMemoryAssessmentRepository()
    run = run_assessment(framingham.MODULE, SCENARIO_A, repository, StaticIdentityProvider("user-1"))

    assert run.persist is not None
    assert run.persist.saved
    stored = repository.latest("user-1", "framingham_alzheimer")
    assert stored.record_id == run.persist.record_id
    assert stored.risk_level == "low"
    assert stored.risk_percentage == 4.0
    assert stored.assessment_data["age"] == 65
    assert stored.assessment_data["bmi"] is None
    assert stored.results_data["score"] == 4.0
    assert stored.recommendations == list(run.result.recommendations)


def test_missing_identity_blocks_persistence_only() -> None:
    repository = InMemoryAssessmentRepository()
    run = run_assessment(framingham.MODULE, SCENARIO_A, repository, StaticIdentityProvider("  "))

    assert run.result.risk_level == "low"
    assert run.persist.saved is False
    assert run.persist.code == "identity_missing"
    assert len(repository) == 0

    no_provider = run_assessment(framingham.MODULE, SCENARIO_A, repository, None)
    assert no_provider.persist.code == "identity_missing"


def test_repository_failure_keeps_result() -> None:
    run = run_assessment(framingham.MODULE, SCENARIO_A, _FailingRepository(), StaticIdentityProvider("user-1"))
    assert run.result.score == pytest.approx(4.0)
    assert run.persist.code == "store_unavailable"
    assert "unavailable" in run.persist.warning


def test_without_repository_nothing_is_persisted() -> None:
    run = run_assessment(framingham.MODULE, SCENARIO_A)
    assert run.persist is None


def test_history_is_append_only_newest_first() -> None:
    repository = InMemoryAssessmentRepository()
    identity = StaticIdentityProvider("user-1")
    first = run_assessment(framingham.MODULE, SCENARIO_A, repository, identity)
    second = run_assessment(framingham.MODULE, dict(SCENARIO_A, age=80), repository, identity)
    run_assessment(framingham.MODULE, SCENARIO_A, repository, StaticIdentityProvider("user-2"))

    history = repository.history("user-1")
    assert [item.record_id for item in history] == [second.persist.record_id, first.persist.record_id]
    assert first.persist.record_id != second.persist.record_id
    assert repository.history("user-1", "rais") == []
    assert len(repository) == 3


def test_index_style_score_is_stored_as_share_of_range() -> None:
    run = run_assessment(
        rais.MODULE,
        {
            "age": 40,
            "body_weight": 70,
            "exposure_duration": 30,
            "exposure_frequency": 250,
            "exposure_time_per_day": 8,
            "chemical_substance": "toluene",
            "inhalation_exposure": True,
            "inhalation_concentration": 1.0,
        },
    )
    record = build_assessment_record("user-1", run.factors, run.result, created_at="2026-01-01T00:00:00+00:00")
    assert record.module_type == "rais"
    assert record.risk_percentage == pytest.approx(run.result.score / 10.0, abs=0.05)
    assert record.created_at == "2026-01-01T00:00:00+00:00"


def test_record_validation_failure_is_a_persistence_error() -> None:
    run = run_assessment(framingham.MODULE, SCENARIO_A)
    with pytest.raises(PersistenceError) as excinfo:
        build_assessment_record("", run.factors, run.result)
    assert excinfo.value.code == "record_invalid"
