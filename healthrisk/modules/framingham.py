from __future__ import annotations

"""
Framingham-style Alzheimer's disease risk.

Design intent:
- Additive point rules; one point is worth two percentage points of ten-year risk.
- Protective factors (education, activity, light drinking) carry negative weights.
- Lifetime risk is reported beside the ten-year score, never instead of it.
"""

from typing import Mapping

from healthrisk.modules.common import (
    ALCOHOL,
    ACTIVITY,
    GENDERS,
    SMOKING,
    age_field,
    at_least,
    below,
    between,
    choice_field,
    equals,
    flag_field,
    is_true,
    relative_percentile,
)
from healthrisk.risk.classifier import RiskBands
from healthrisk.risk.engine import RuleTable, ScoreOutcome, ScoringModel, add, clamp
from healthrisk.risk.factors import FactorSet, FieldSpec
from healthrisk.risk.pipeline import RiskModule
from healthrisk.risk.recommendations import RecommendationPolicy

MODULE_TYPE = "framingham_alzheimer"

POINT_SCALE = 2.0
TEN_YEAR_MIN = 0.1
TEN_YEAR_MAX = 50.0
LIFETIME_MIN = 0.5
LIFETIME_MAX = 80.0

APOE4 = ("unknown", "none", "heterozygous", "homozygous")


def _pts(points: float) -> float:
    return points * POINT_SCALE


FIELDS = (
    age_field(18, 100),
    choice_field("gender", GENDERS),
    FieldSpec("education_years", "integer", minimum=0, maximum=30),
    choice_field("apoe4_status", APOE4),
    flag_field("family_history_dementia"),
    flag_field("cardiovascular_disease"),
    flag_field("diabetes"),
    flag_field("hypertension"),
    choice_field("smoking_status", SMOKING),
    choice_field("physical_activity", ACTIVITY),
    FieldSpec("bmi", "number", minimum=10, maximum=80),
    flag_field("depression_history"),
    flag_field("head_injury_history"),
    choice_field("alcohol_consumption", ALCOHOL),
    flag_field("social_isolation"),
    flag_field("cognitive_complaints"),
)

RULES = (
    add("age_85_plus", "age", _pts(4), "Age 85 or older", at_least("age", 85)),
    add("age_75_84", "age", _pts(3), "Age 75-84", between("age", 75, 85)),
    add("age_65_74", "age", _pts(2), "Age 65-74", between("age", 65, 75)),
    add("age_55_64", "age", _pts(1), "Age 55-64", between("age", 55, 65)),
    add("female", "gender", _pts(0.5), "Female sex", equals("gender", "female")),
    add("apoe4_homozygous", "apoe4_status", _pts(5), "Two copies of APOE4", equals("apoe4_status", "homozygous")),
    add(
        "apoe4_heterozygous",
        "apoe4_status",
        _pts(2),
        "One copy of APOE4",
        equals("apoe4_status", "heterozygous"),
    ),
    add("education_high", "education_years", _pts(-1), "Higher education (protective)", at_least("education_years", 16)),
    add("education_low", "education_years", _pts(1), "Fewer than 8 years of education", below("education_years", 8)),
    add(
        "family_history",
        "family_history_dementia",
        _pts(1.5),
        "Family history of dementia",
        is_true("family_history_dementia"),
    ),
    add("cvd", "cardiovascular_disease", _pts(1.5), "Cardiovascular disease", is_true("cardiovascular_disease")),
    add("diabetes", "diabetes", _pts(1), "Diabetes", is_true("diabetes")),
    add("hypertension", "hypertension", _pts(0.5), "Hypertension", is_true("hypertension")),
    add("smoking_current", "smoking_status", _pts(1), "Current smoking", equals("smoking_status", "current")),
    add("activity_high", "physical_activity", _pts(-1), "High physical activity (protective)", equals("physical_activity", "high")),
    add("activity_low", "physical_activity", _pts(0.5), "Low physical activity", equals("physical_activity", "low")),
    add("bmi_obese", "bmi", _pts(0.5), "BMI of 30 or more", at_least("bmi", 30)),
    add("depression", "depression_history", _pts(0.5), "History of depression", is_true("depression_history")),
    add("head_injury", "head_injury_history", _pts(0.5), "Head injury", is_true("head_injury_history")),
    add("isolation", "social_isolation", _pts(0.5), "Social isolation", is_true("social_isolation")),
    add(
        "cognitive_complaints",
        "cognitive_complaints",
        _pts(1),
        "Self-reported memory complaints",
        is_true("cognitive_complaints"),
    ),
    add(
        "alcohol_moderate",
        "alcohol_consumption",
        _pts(-0.25),
        "Light or moderate drinking",
        equals("alcohol_consumption", "light", "moderate"),
    ),
    add("alcohol_heavy", "alcohol_consumption", _pts(0.5), "Heavy drinking", equals("alcohol_consumption", "heavy")),
)

BANDS = RiskBands(labels=("low", "intermediate", "high"), thresholds=(5.0, 15.0))

POLICY = RecommendationPolicy(
    baseline=(
        "Follow a Mediterranean-style diet.",
        "Sleep 7-9 hours a night.",
        "Manage everyday stress.",
        "Keep up regular medical check-ups.",
    ),
    factor_texts={
        "apoe4_homozygous": "Arrange genetic counselling and a neurological consultation to plan individual prevention.",
        "apoe4_heterozygous": "Consider joining a structured cognitive training programme.",
        "education_low": "Keep the mind busy: reading, puzzles and learning new skills.",
        "family_history": "Have your memory and thinking tested regularly.",
        "cvd": "Keep cardiovascular conditions under regular medical control.",
        "diabetes": "Keep blood glucose within the target range.",
        "hypertension": "Monitor and control your blood pressure.",
        "smoking_current": "Stop smoking; it substantially lowers dementia risk.",
        "activity_low": "Build up to at least 150 minutes of physical activity per week.",
        "bmi_obese": "Work towards a healthy body weight.",
        "depression": "Look after your mental health and seek support for low mood.",
        "isolation": "Stay socially connected with family, friends and community.",
        "cognitive_complaints": "See a neurologist for a formal assessment of memory complaints.",
        "alcohol_heavy": "Cut down on alcohol.",
    },
    urgent={
        "high": ("Book a neurology consultation to review your dementia risk promptly.",),
    },
)

# Approximate ten-year risk for an average person of the same age.
_AGE_AVERAGE = ((55, 1.0), (65, 3.0), (75, 6.0), (85, 10.0))


def _age_average(factors: FactorSet) -> float:
    age = factors.number("age")
    for limit, average in _AGE_AVERAGE:
        if age < limit:
            return average
    return 14.0


def _secondary(factors: FactorSet, outcome: ScoreOutcome) -> Mapping[str, float]:
    return {
        "lifetime_risk": clamp(outcome.raw_total * 2.0, LIFETIME_MIN, LIFETIME_MAX),
        "risk_points": outcome.raw_total / POINT_SCALE,
    }


MODULE = RiskModule(
    module_type=MODULE_TYPE,
    title="Alzheimer's disease risk (Framingham-style)",
    score_label="Ten-year Alzheimer's risk",
    method_summary=(
        "Points are added for age, APOE4 genotype, family history, vascular conditions and lifestyle, "
        "and subtracted for protective factors such as education and physical activity. "
        "Each point corresponds to roughly two percentage points of ten-year risk."
    ),
    fields=FIELDS,
    model=ScoringModel(
        tables=(RuleTable(MODULE_TYPE, 0.0, RULES, TEN_YEAR_MIN, TEN_YEAR_MAX),),
        aggregate="single",
        minimum=TEN_YEAR_MIN,
        maximum=TEN_YEAR_MAX,
    ),
    bands=BANDS,
    policy=POLICY,
    percentile=relative_percentile(_age_average),
    secondary=_secondary,
    level_descriptions={
        "low": "Your estimated risk is below the average for most adults of your age.",
        "intermediate": "Several factors raise your risk; many of them can be changed.",
        "high": "Your risk is clearly raised. A specialist can help plan prevention.",
    },
)
