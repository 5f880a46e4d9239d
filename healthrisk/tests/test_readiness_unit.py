import asyncio

import pytest

from healthrisk.internal_core.config import load_config
from healthrisk.internal_core.errors import ValidationError
from healthrisk.internal_core.timing import ManualClock
from healthrisk.readiness import (
    AnxietyQuestionnaire,
    AnxietySubmitted,
    ReadinessPolicy,
    RelaxationCompleted,
    StyleChosen,
    SupportChecked,
    assess_readiness,
    initial_readiness_state,
    is_ready,
    perform_relaxation,
    reduce_readiness,
    remaining_steps,
    required_action,
)
from healthrisk.readiness.assessor import base_readiness_score, state_snapshot


def _anxious(previous_experience: str = "negative", symptoms=("tremor", "headache", "nausea")) -> AnxietyQuestionnaire:
    return AnxietyQuestionnaire(
        feeling_nervous=5,
        worried_about_health=5,
        sleep_quality=1,
        symptoms=tuple(symptoms),
        previous_experience=previous_experience,
    )


def _fold(*events):
    state = initial_readiness_state()
    for event in events:
        state = reduce_readiness(state, event)
    return state


def test_initial_state_has_no_score_and_lists_required_steps() -> None:
    state = initial_readiness_state()
    assert state.phase == "not_started"
    assert state.readiness_score == 0.0
    assert state.anxiety_tier == "unknown"
    assert remaining_steps(state) == ["anxiety_assessment", "disclosure_style", "support_check"]


def test_anxious_questionnaire_scores_low_with_high_tier() -> None:
    emotional = assess_readiness(_anxious())
    assert emotional.readiness_score == pytest.approx(17.0)
    assert emotional.anxiety_tier == "high"
    assert emotional.ready_for_results is False
    assert emotional.preferred_style == "gentle"


def test_positive_history_without_symptoms_clears_threshold() -> None:
    emotional = assess_readiness(
        {
            "feeling_nervous": 5,
            "worried_about_health": 5,
            "sleep_quality": 1,
            "symptoms": [],
            "previous_experience": "positive",
        }
    )
    assert emotional.readiness_score == pytest.approx(66.0)
    assert emotional.preparation_complete is False

    state = _fold(
        AnxietySubmitted(_anxious("positive", symptoms=())),
        StyleChosen("direct"),
        SupportChecked(support_person_available=True),
    )
    assert state.phase == "ready"
    assert is_ready(state)
    assert remaining_steps(state) == []
    assert required_action(state) is None


def test_high_tier_forces_relaxation_until_ready() -> None:
    state = _fold(AnxietySubmitted(_anxious()), StyleChosen("staged"), SupportChecked())
    assert state.phase == "not_ready"
    assert state.readiness_score == pytest.approx(27.0)
    assert remaining_steps(state) == ["relaxation_exercise"]
    assert required_action(state) == "relaxation_exercise"

    for _ in range(2):
        state = reduce_readiness(state, RelaxationCompleted(duration_seconds=60))
        assert state.phase == "not_ready"

    state = reduce_readiness(state, RelaxationCompleted(duration_seconds=60))
    assert state.readiness_score == pytest.approx(72.0)
    assert state.phase == "ready"
    assert state.relaxation_count == 3


def test_high_tier_points_to_relaxation_before_other_steps() -> None:
    state = _fold(AnxietySubmitted(_anxious()))
    assert "relaxation_exercise" in remaining_steps(state)
    assert required_action(state) == "relaxation_exercise"


def test_support_bonus_is_applied_once() -> None:
    state = _fold(AnxietySubmitted(_anxious()), SupportChecked(), SupportChecked())
    assert state.bonus == pytest.approx(10.0)


def test_resubmitting_before_completion_recomputes_base_and_keeps_bonuses() -> None:
    state = _fold(AnxietySubmitted(_anxious()), RelaxationCompleted())
    assert state.readiness_score == pytest.approx(32.0)

    state = reduce_readiness(state, AnxietySubmitted(_anxious("positive", symptoms=())))
    assert state.base_score == pytest.approx(66.0)
    assert state.readiness_score == pytest.approx(81.0)
    assert state.relaxation_pending is False


def test_calmer_resubmission_cannot_skip_forced_relaxation() -> None:
    state = _fold(AnxietySubmitted(_anxious()), StyleChosen("direct"), SupportChecked())
    assert state.phase == "not_ready"
    assert state.relaxation_pending is True

    state = reduce_readiness(state, AnxietySubmitted(_anxious("positive", symptoms=())))
    assert state.readiness_score == pytest.approx(76.0)
    assert state.phase == "not_ready"
    assert not is_ready(state)
    assert state.relaxation_count == 0
    assert required_action(state) == "relaxation_exercise"

    calm = AnxietyQuestionnaire(feeling_nervous=1, worried_about_health=1, sleep_quality=5)
    state = reduce_readiness(state, AnxietySubmitted(calm))
    assert state.anxiety_tier == "low"
    assert state.phase == "not_ready"
    assert remaining_steps(state) == ["relaxation_exercise"]

    state = reduce_readiness(state, RelaxationCompleted(duration_seconds=60))
    assert state.relaxation_pending is False
    assert state.phase == "ready"


def test_short_relaxation_is_rejected() -> None:
    policy = ReadinessPolicy(relaxation_seconds=60.0)
    state = _fold(AnxietySubmitted(_anxious()), StyleChosen("direct"), SupportChecked())
    with pytest.raises(ValidationError) as excinfo:
        reduce_readiness(state, RelaxationCompleted(duration_seconds=0), policy)
    assert excinfo.value.field == "duration_seconds"
    assert excinfo.value.bound == ">= 60"

    state = reduce_readiness(state, RelaxationCompleted(duration_seconds=60.0), policy)
    assert state.relaxation_count == 1


def test_score_never_leaves_bounds() -> None:
    calm = AnxietyQuestionnaire(feeling_nervous=1, worried_about_health=1, sleep_quality=5, previous_experience="positive")
    assert base_readiness_score(calm) == 100.0

    worst = AnxietyQuestionnaire(
        feeling_nervous=5,
        worried_about_health=5,
        sleep_quality=1,
        symptoms=tuple(f"s{index}" for index in range(9)),
        previous_experience="negative",
    )
    assert 0.0 <= base_readiness_score(worst) <= 5.0

    state = _fold(AnxietySubmitted(calm), SupportChecked(), *[RelaxationCompleted() for _ in range(10)])
    assert state.readiness_score == 100.0


def test_questionnaire_rejects_out_of_range_answers() -> None:
    with pytest.raises(ValidationError) as excinfo:
        AnxietyQuestionnaire(feeling_nervous=6, worried_about_health=1, sleep_quality=1)
    assert excinfo.value.field == "feeling_nervous"
    assert excinfo.value.bound == "<= 5"

    with pytest.raises(ValidationError) as excinfo:
        AnxietyQuestionnaire(feeling_nervous=1, worried_about_health=0, sleep_quality=1)
    assert excinfo.value.bound == ">= 1"

    with pytest.raises(ValidationError):
        AnxietyQuestionnaire(feeling_nervous=1, worried_about_health=1, sleep_quality=1, previous_experience="great")

    with pytest.raises(ValidationError) as excinfo:
        assess_readiness({"feeling_nervous": 3, "worried_about_health": 3})
    assert excinfo.value.field == "sleep_quality"


def test_questionnaire_dedups_symptoms() -> None:
    questionnaire = AnxietyQuestionnaire(
        feeling_nervous=2,
        worried_about_health=2,
        sleep_quality=4,
        symptoms=("headache", "headache", " ", "nausea"),
    )
    assert questionnaire.symptoms == ("headache", "nausea")


def test_symptoms_given_as_text_are_rejected() -> None:
    with pytest.raises(ValidationError) as excinfo:
        AnxietyQuestionnaire.from_mapping(
            {"feeling_nervous": 2, "worried_about_health": 2, "sleep_quality": 4, "symptoms": "headache"}
        )
    assert excinfo.value.field == "symptoms"

    questionnaire = AnxietyQuestionnaire.from_mapping(
        {"feeling_nervous": 2, "worried_about_health": 2, "sleep_quality": 4, "symptoms": ["headache"]}
    )
    assert questionnaire.symptoms == ("headache",)


def test_style_must_be_known() -> None:
    assert StyleChosen(" Staged ").style == "staged"
    with pytest.raises(ValidationError):
        StyleChosen("dramatic")


def test_unknown_event_is_rejected() -> None:
    with pytest.raises(TypeError):
        reduce_readiness(initial_readiness_state(), object())  # type: ignore[arg-type]


def test_custom_threshold_changes_readiness() -> None:
    strict = ReadinessPolicy(threshold=90.0)
    state = initial_readiness_state()
    for event in (AnxietySubmitted(_anxious("positive", symptoms=())), StyleChosen("direct"), SupportChecked()):
        state = reduce_readiness(state, event, strict)
    assert state.phase == "not_ready"
    assert remaining_steps(state, strict) == ["relaxation_exercise"]


def test_policy_reads_config(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("HEALTHRISK_READINESS_THRESHOLD", "75")
    monkeypatch.setenv("HEALTHRISK_DEFAULT_STYLE", "staged")
    monkeypatch.setenv("HEALTHRISK_RELAXATION_SECONDS", "45")
    policy = ReadinessPolicy.from_config(load_config())
    assert policy.threshold == 75
    assert policy.default_style == "staged"
    assert policy.relaxation_seconds == 45.0


def test_perform_relaxation_waits_on_the_sleeper() -> None:
    clock = ManualClock()
    event = asyncio.run(perform_relaxation(clock, 60.0))
    assert event == RelaxationCompleted(duration_seconds=60.0)
    assert clock.sleeps == [60.0]
    assert clock.now() == 60.0


def test_state_snapshot_reports_progress() -> None:
    state = _fold(AnxietySubmitted(_anxious()), StyleChosen("gentle"))
    snapshot = state_snapshot(state)
    assert snapshot["phase"] == "style_chosen"
    assert snapshot["readiness_score"] == 17.0
    assert snapshot["required_action"] == "relaxation_exercise"
    assert [step["completed"] for step in snapshot["steps"]] == [True, True, False, False]
