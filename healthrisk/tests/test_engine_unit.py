import pytest

from healthrisk.internal_core.errors import ComputationInvariantViolation
from healthrisk.risk.classifier import RiskBands
from healthrisk.risk.engine import RuleTable, ScoringModel, add, evaluate_table, multiply, score_factors
from healthrisk.risk.factors import ABSENT, FactorSet
from healthrisk.risk.recommendations import (
    FALLBACK_RECOMMENDATION,
    Advisory,
    RecommendationPolicy,
    generate_recommendations,
)

BANDS = RiskBands(labels=("low", "intermediate", "high"), thresholds=(5.0, 15.0))


def test_bands_put_ties_in_higher_band() -> None:
    assert BANDS.classify(4.999) == "low"
    assert BANDS.classify(5.0) == "intermediate"
    assert BANDS.classify(14.9) == "intermediate"
    assert BANDS.classify(15.0) == "high"
    assert BANDS.classify(1000.0) == "high"


def test_bands_are_monotonic() -> None:
    scores = [index * 0.25 for index in range(0, 100)]
    ranks = [BANDS.rank(BANDS.classify(score)) for score in scores]
    assert ranks == sorted(ranks)


def test_bands_reject_nan_and_bad_configuration() -> None:
    with pytest.raises(ComputationInvariantViolation) as excinfo:
        BANDS.classify(float("nan"))
    assert excinfo.value.code == "classifier_no_band"

    with pytest.raises(ValueError):
        RiskBands(labels=("low", "high", "very_high"), thresholds=(10.0, 5.0))
    with pytest.raises(ValueError):
        RiskBands(labels=("low", "high"), thresholds=(1.0, 2.0))


def test_bands_top_returns_highest_labels() -> None:
    assert BANDS.top(2) == frozenset({"intermediate", "high"})
    assert BANDS.top(0) == frozenset()


def test_evaluate_table_records_each_applied_rule() -> None:
    table = RuleTable(
        name="demo",
        baseline=1.0,
        rules=(
            add("age_old", "age", 4.0, "Age above 60.", when=lambda f: f.number("age") >= 60),
            multiply("smoker", "smoker", 2.0, "Current smoking.", when=lambda f: f.flag("smoker")),
            add("bmi", "bmi", 3.0, "Obesity."),
        ),
        minimum=0.0,
        maximum=100.0,
    )
    factors = FactorSet({"age": 70, "smoker": True, "bmi": ABSENT})
    result = evaluate_table(table, factors)

    assert result.raw_score == pytest.approx(10.0)
    assert [item.rule_id for item in result.contributions] == ["age_old", "smoker"]
    assert result.contributions[0].contribution == pytest.approx(4.0)
    assert result.contributions[1].contribution == pytest.approx(5.0)
    assert result.contributions[1].raw_value is True


def test_evaluate_table_clamps_but_keeps_raw_score() -> None:
    table = RuleTable(
        name="demo",
        baseline=10.0,
        rules=(add("big", "x", 500.0, "Large."),),
        minimum=0.0,
        maximum=50.0,
    )
    result = evaluate_table(table, FactorSet({"x": 1}))
    assert result.score == 50.0
    assert result.raw_score == pytest.approx(510.0)


def test_non_finite_weight_is_an_invariant_violation() -> None:
    table = RuleTable(
        name="demo",
        baseline=1.0,
        rules=(multiply("bad", "x", lambda f: float("inf"), "Broken."),),
        minimum=0.0,
        maximum=10.0,
    )
    with pytest.raises(ComputationInvariantViolation) as excinfo:
        evaluate_table(table, FactorSet({"x": 1}))
    assert excinfo.value.code == "rule_weight_not_finite"


def test_rule_table_rejects_duplicate_ids_and_empty_range() -> None:
    with pytest.raises(ValueError):
        RuleTable(name="dup", baseline=0.0, rules=(add("a", "x", 1.0, ""), add("a", "y", 1.0, "")), minimum=0, maximum=1)
    with pytest.raises(ValueError):
        RuleTable(name="empty", baseline=0.0, rules=(), minimum=5, maximum=5)


def test_sum_aggregate_keeps_raw_total_and_skips_inapplicable_tables() -> None:
    first = RuleTable(name="a", baseline=40.0, rules=(add("a_x", "x", 30.0, "x"),), minimum=0.0, maximum=50.0)
    second = RuleTable(name="b", baseline=5.0, rules=(), minimum=0.0, maximum=10.0)
    skipped = RuleTable(
        name="c",
        baseline=9.0,
        rules=(),
        minimum=0.0,
        maximum=10.0,
        applies=lambda f: f.is_one_of("gender", "female"),
    )
    model = ScoringModel(tables=(first, second, skipped), aggregate="sum", minimum=0.0, maximum=100.0)
    outcome = score_factors(model, FactorSet({"x": 1, "gender": "male"}))

    assert [item.name for item in outcome.tables] == ["a", "b"]
    assert outcome.score == pytest.approx(55.0)
    assert outcome.raw_total == pytest.approx(75.0)
    assert outcome.contributions[0].sub_type == "a"


def test_max_aggregate_takes_largest_table() -> None:
    first = RuleTable(name="a", baseline=3.0, rules=(), minimum=0.0, maximum=1000.0)
    second = RuleTable(name="b", baseline=7.0, rules=(), minimum=0.0, maximum=1000.0)
    model = ScoringModel(tables=(first, second), aggregate="max", minimum=0.0, maximum=1000.0)
    assert score_factors(model, FactorSet({})).score == pytest.approx(7.0)


def test_no_applicable_table_is_an_invariant_violation() -> None:
    table = RuleTable(name="a", baseline=1.0, rules=(), minimum=0.0, maximum=2.0, applies=lambda f: False)
    model = ScoringModel(tables=(table,), aggregate="sum", minimum=0.0, maximum=2.0)
    with pytest.raises(ComputationInvariantViolation) as excinfo:
        score_factors(model, FactorSet({}))
    assert excinfo.value.code == "no_applicable_tables"


def test_recommendations_order_urgent_first_and_dedup() -> None:
    table = RuleTable(
        name="demo",
        baseline=0.0,
        rules=(add("smoke_a", "smoker", 1.0, ""), add("smoke_b", "smoker", 1.0, "")),
        minimum=0.0,
        maximum=10.0,
    )
    factors = FactorSet({"smoker": True, "age": 50})
    contributions = evaluate_table(table, factors).contributions
    policy = RecommendationPolicy(
        baseline=("Stay active.",),
        factor_texts={"smoke_a": "Stop smoking.", "smoke_b": "Stop smoking."},
        urgent={"high": ("See a specialist.",)},
        advisories=(Advisory("Get screened.", lambda f: f.number("age") >= 45),),
    )

    output = generate_recommendations(policy, factors, contributions, "high")
    assert output == ("See a specialist.", "Stop smoking.", "Get screened.", "Stay active.")

    calm = generate_recommendations(policy, factors, contributions, "low")
    assert "See a specialist." not in calm
    assert calm.count("Stop smoking.") == 1


def test_recommendations_use_sub_levels_unless_disabled() -> None:
    policy = RecommendationPolicy(baseline=(), factor_texts={}, urgent={"high": ("Refer.",)})
    assert generate_recommendations(policy, FactorSet({}), (), "low", sub_levels=["high"])[0] == "Refer."

    overall_only = RecommendationPolicy(
        baseline=(),
        factor_texts={},
        urgent={"high": ("Refer.",)},
        urgent_from_subtypes=False,
    )
    output = generate_recommendations(overall_only, FactorSet({}), (), "low", sub_levels=["high"])
    assert output == (FALLBACK_RECOMMENDATION,)
