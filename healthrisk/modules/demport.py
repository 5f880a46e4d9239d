from __future__ import annotations

"""
DemPoRT-style dementia population risk.

Design intent:
- Population baseline (5%, or 15% from age 65) plus individual points scaled by 1.8.
- Cardiovascular measurements (blood pressure, cholesterol) feed the same point table.
- Percentile reflects individual points only, not the age baseline.
"""

from typing import Mapping

from healthrisk.modules.common import (
    ACTIVITY,
    ALCOHOL,
    GENDERS,
    LEVEL3,
    SMOKING,
    age_field,
    at_least,
    below,
    between,
    choice_field,
    equals,
    flag_field,
    is_true,
)
from healthrisk.risk.classifier import RiskBands
from healthrisk.risk.engine import RuleTable, ScoreOutcome, ScoringModel, add, clamp
from healthrisk.risk.factors import FactorSet, FieldSpec
from healthrisk.risk.pipeline import RiskModule
from healthrisk.risk.recommendations import RecommendationPolicy

MODULE_TYPE = "demport"

POINT_SCALE = 1.8
BASELINE_RISK = 5.0
SENIOR_BASELINE_BONUS = 10.0
SENIOR_AGE = 65
TEN_YEAR_MIN = 0.5
TEN_YEAR_MAX = 60.0

APOE4 = ("unknown", "none", "one_copy", "two_copies")
SLEEP = ("poor", "fair", "good")


def _pts(points: float) -> float:
    return points * POINT_SCALE


FIELDS = (
    age_field(18, 100),
    choice_field("gender", GENDERS),
    FieldSpec("education_years", "integer", minimum=0, maximum=30),
    choice_field("apoe4_status", APOE4),
    FieldSpec("systolic_bp", "number", minimum=70, maximum=250),
    FieldSpec("total_cholesterol", "number", minimum=80, maximum=500),
    FieldSpec("hdl_cholesterol", "number", minimum=10, maximum=150),
    flag_field("diabetes"),
    choice_field("smoking_status", SMOKING),
    choice_field("physical_activity", ACTIVITY),
    FieldSpec("bmi", "number", minimum=10, maximum=80),
    choice_field("alcohol_consumption", ALCOHOL),
    flag_field("depression_history"),
    flag_field("head_injury_history"),
    flag_field("stroke_history"),
    flag_field("heart_disease"),
    choice_field("cognitive_activities", LEVEL3),
    choice_field("social_engagement", LEVEL3),
    choice_field("sleep_quality", SLEEP),
    choice_field("stress_levels", LEVEL3),
    flag_field("family_dementia_history"),
    flag_field("family_cardiovascular_history"),
)

RULES = (
    add(
        "population_senior",
        "age",
        SENIOR_BASELINE_BONUS,
        "Population baseline for age 65 and over",
        at_least("age", SENIOR_AGE),
    ),
    add("age_85_plus", "age", _pts(6), "Age 85 or older", at_least("age", 85)),
    add("age_75_84", "age", _pts(4), "Age 75-84", between("age", 75, 85)),
    add("age_65_74", "age", _pts(2.5), "Age 65-74", between("age", 65, 75)),
    add("age_55_64", "age", _pts(1), "Age 55-64", between("age", 55, 65)),
    add("age_45_54", "age", _pts(0.3), "Age 45-54", between("age", 45, 55)),
    add("female", "gender", _pts(0.3), "Female sex", equals("gender", "female")),
    add("apoe4_two_copies", "apoe4_status", _pts(8), "Two copies of APOE4", equals("apoe4_status", "two_copies")),
    add("apoe4_one_copy", "apoe4_status", _pts(3), "One copy of APOE4", equals("apoe4_status", "one_copy")),
    add("education_high", "education_years", _pts(-1.5), "Higher education (protective)", at_least("education_years", 16)),
    add(
        "education_secondary",
        "education_years",
        _pts(-0.5),
        "Secondary education (protective)",
        between("education_years", 12, 16),
    ),
    add("education_low", "education_years", _pts(1), "Fewer than 8 years of education", below("education_years", 8)),
    add("bp_high", "systolic_bp", _pts(2), "Systolic blood pressure 160 or more", at_least("systolic_bp", 160)),
    add("bp_raised", "systolic_bp", _pts(1), "Systolic blood pressure 140-159", between("systolic_bp", 140, 160)),
    add("cholesterol_high", "total_cholesterol", _pts(1.5), "Total cholesterol 240 or more", at_least("total_cholesterol", 240)),
    add("hdl_low", "hdl_cholesterol", _pts(1), "HDL cholesterol below 40", below("hdl_cholesterol", 40)),
    add("hdl_high", "hdl_cholesterol", _pts(-0.5), "HDL cholesterol 60 or more (protective)", at_least("hdl_cholesterol", 60)),
    add("diabetes", "diabetes", _pts(2), "Diabetes", is_true("diabetes")),
    add("smoking_current", "smoking_status", _pts(1.5), "Current smoking", equals("smoking_status", "current")),
    add("smoking_former", "smoking_status", _pts(0.3), "Former smoking", equals("smoking_status", "former")),
    add("activity_high", "physical_activity", _pts(-1), "High physical activity (protective)", equals("physical_activity", "high")),
    add(
        "activity_moderate",
        "physical_activity",
        _pts(-0.3),
        "Moderate physical activity (protective)",
        equals("physical_activity", "moderate"),
    ),
    add("activity_low", "physical_activity", _pts(0.8), "Low physical activity", equals("physical_activity", "low")),
    add("bmi_obese", "bmi", _pts(1), "BMI of 30 or more", at_least("bmi", 30)),
    add("bmi_underweight", "bmi", _pts(0.5), "BMI below 18.5", below("bmi", 18.5)),
    add("bmi_normal", "bmi", _pts(-0.3), "Normal BMI (protective)", between("bmi", 18.5, 25)),
    add(
        "alcohol_moderate",
        "alcohol_consumption",
        _pts(-0.2),
        "Light or moderate drinking",
        equals("alcohol_consumption", "light", "moderate"),
    ),
    add("alcohol_heavy", "alcohol_consumption", _pts(1), "Heavy drinking", equals("alcohol_consumption", "heavy")),
    add("depression", "depression_history", _pts(1), "History of depression", is_true("depression_history")),
    add("head_injury", "head_injury_history", _pts(0.8), "Head injury", is_true("head_injury_history")),
    add("stroke", "stroke_history", _pts(2), "History of stroke", is_true("stroke_history")),
    add("heart_disease", "heart_disease", _pts(1.5), "Heart disease", is_true("heart_disease")),
    add(
        "cognitive_high",
        "cognitive_activities",
        _pts(-1),
        "Cognitively active (protective)",
        equals("cognitive_activities", "high"),
    ),
    add("cognitive_low", "cognitive_activities", _pts(0.5), "Low cognitive activity", equals("cognitive_activities", "low")),
    add("social_high", "social_engagement", _pts(-0.8), "Socially engaged (protective)", equals("social_engagement", "high")),
    add("social_low", "social_engagement", _pts(0.8), "Social isolation", equals("social_engagement", "low")),
    add("sleep_good", "sleep_quality", _pts(-0.3), "Good sleep (protective)", equals("sleep_quality", "good")),
    add("sleep_poor", "sleep_quality", _pts(0.8), "Poor sleep", equals("sleep_quality", "poor")),
    add("stress_high", "stress_levels", _pts(0.8), "High stress", equals("stress_levels", "high")),
    add("stress_low", "stress_levels", _pts(-0.3), "Low stress (protective)", equals("stress_levels", "low")),
    add(
        "family_dementia",
        "family_dementia_history",
        _pts(2),
        "Family history of dementia",
        is_true("family_dementia_history"),
    ),
    add(
        "family_cardiovascular",
        "family_cardiovascular_history",
        _pts(0.5),
        "Family history of cardiovascular disease",
        is_true("family_cardiovascular_history"),
    ),
)

BANDS = RiskBands(labels=("low", "intermediate", "high"), thresholds=(8.0, 20.0))

POLICY = RecommendationPolicy(
    baseline=(
        "Follow a Mediterranean-style diet.",
        "Keep up regular physical activity.",
        "Sleep 7-9 hours a night.",
        "Stay socially active.",
        "Keep up regular medical check-ups.",
    ),
    factor_texts={
        "apoe4_two_copies": "Arrange a consultation with a geneticist and a neurologist.",
        "apoe4_one_copy": "Follow an intensified prevention programme.",
        "education_low": "Increase intellectual activity.",
        "bp_high": "Monitor and control your blood pressure.",
        "cholesterol_high": "Keep your cholesterol under control.",
        "hdl_low": "Work on raising your 'good' HDL cholesterol.",
        "diabetes": "Keep tight control of your blood glucose.",
        "smoking_current": "Stop smoking now.",
        "activity_low": "Increase your physical activity.",
        "bmi_obese": "Work towards a healthy body weight.",
        "alcohol_heavy": "Cut down on alcohol.",
        "depression": "Look after your mental health and seek support for low mood.",
        "stroke": "Follow an intensive vascular prevention plan.",
        "heart_disease": "Keep your heart condition under regular review.",
        "cognitive_low": "Add more mentally demanding activities to your week.",
        "social_low": "Build and maintain social connections.",
        "sleep_poor": "Improve your sleep routine.",
        "stress_high": "Learn and practise stress-management techniques.",
        "family_dementia": "Arrange regular follow-up with a neurologist.",
    },
    urgent={
        "high": ("Ask your doctor for a referral to a memory clinic.",),
    },
)


def _population_baseline(factors: FactorSet) -> float:
    if factors.number("age") >= SENIOR_AGE:
        return BASELINE_RISK + SENIOR_BASELINE_BONUS
    return BASELINE_RISK


def _risk_points(factors: FactorSet, outcome: ScoreOutcome) -> float:
    return (outcome.raw_total - _population_baseline(factors)) / POINT_SCALE


def _percentile(factors: FactorSet, outcome: ScoreOutcome) -> float:
    return clamp((_risk_points(factors, outcome) + 5.0) * 8.0, 5.0, 95.0)


def _secondary(factors: FactorSet, outcome: ScoreOutcome) -> Mapping[str, float]:
    return {
        "lifetime_risk": clamp(outcome.score * 2.5, 2.0, 85.0),
        "risk_points": _risk_points(factors, outcome),
    }


MODULE = RiskModule(
    module_type=MODULE_TYPE,
    title="Dementia population risk (DemPoRT)",
    score_label="Ten-year dementia risk",
    method_summary=(
        "Starts from the population risk for your age group and adjusts it for genetics, "
        "cardiovascular health, lifestyle, sleep, stress and social engagement."
    ),
    fields=FIELDS,
    model=ScoringModel(
        tables=(RuleTable(MODULE_TYPE, BASELINE_RISK, RULES, TEN_YEAR_MIN, TEN_YEAR_MAX),),
        aggregate="single",
        minimum=TEN_YEAR_MIN,
        maximum=TEN_YEAR_MAX,
    ),
    bands=BANDS,
    policy=POLICY,
    percentile=_percentile,
    secondary=_secondary,
    level_descriptions={
        "low": "Your estimated risk is in the lower range for the population.",
        "intermediate": "Your risk is moderately raised; lifestyle changes can lower it.",
        "high": "Your risk is clearly raised and worth discussing with a specialist.",
    },
)
