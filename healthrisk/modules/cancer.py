from __future__ import annotations

"""
Multi-type cancer risk: six multiplicative sub-type tables summed into one overall score.

Design intent:
- Each sub-type starts from its own baseline and is clamped to its own ceiling.
- Sex-specific sub-types only apply to the matching sex.
- The overall score is the clamped sum of clamped sub-type scores; the unclamped
  total stays on the result so the two can be compared.
"""

from typing import Any, Mapping

from healthrisk.modules.common import (
    ACTIVITY,
    ALCOHOL,
    GENDERS,
    LEVEL3,
    SMOKING,
    above,
    age_field,
    at_least,
    below,
    both,
    choice_field,
    equals,
    flag_field,
    is_true,
    relative_percentile,
)
from healthrisk.risk.classifier import RiskBands
from healthrisk.risk.engine import Predicate, RuleTable, ScoreOutcome, ScoringModel, multiply
from healthrisk.risk.factors import ABSENT, DerivedFactor, FactorSet, FieldSpec, bmi_from
from healthrisk.risk.pipeline import RiskModule
from healthrisk.risk.recommendations import Advisory, RecommendationPolicy

MODULE_TYPE = "cancer"

CANCER_TYPES = ("lung", "breast", "colorectal", "melanoma", "prostate", "cervical", "other")
SKIN_TYPES = ("very_fair", "fair", "medium", "olive", "dark")
SCREENING = ("regular", "irregular", "never")

# Multiplier turning a clamped ten-year score into a lifetime estimate, per sub-type.
LIFETIME_FACTORS = {
    "lung": 4.0,
    "breast": 3.0,
    "colorectal": 3.5,
    "melanoma": 6.0,
    "prostate": 4.0,
    "cervical": 5.0,
}

FIELDS = (
    age_field(18, 100),
    choice_field("gender", GENDERS, required=True),
    FieldSpec("weight_kg", "number", minimum=30, maximum=250),
    FieldSpec("height_cm", "number", minimum=100, maximum=250),
    choice_field("smoking_status", SMOKING),
    FieldSpec("cigarettes_per_day", "number", minimum=0, maximum=100),
    FieldSpec("smoking_years", "number", minimum=0, maximum=80),
    flag_field("family_cancer_history"),
    FieldSpec("family_cancer_types", "choices", choices=CANCER_TYPES, default=()),
    choice_field("family_cancer_degree", ("first", "second")),
    flag_field("occupational_exposure"),
    FieldSpec("age_at_menarche", "integer", minimum=8, maximum=20),
    FieldSpec("age_at_menopause", "integer", minimum=30, maximum=65),
    FieldSpec("pregnancies_count", "integer", minimum=0, maximum=20),
    FieldSpec("age_at_first_birth", "integer", minimum=12, maximum=55),
    flag_field("hormone_replacement_therapy"),
    choice_field("alcohol_consumption", ALCOHOL),
    flag_field("inflammatory_bowel_disease"),
    choice_field("red_meat_consumption", LEVEL3),
    choice_field("processed_meat_consumption", LEVEL3),
    choice_field("fruit_vegetable_intake", LEVEL3),
    choice_field("physical_activity", ACTIVITY),
    choice_field("skin_type", SKIN_TYPES),
    choice_field("sun_exposure", LEVEL3),
    choice_field("pap_smear_frequency", SCREENING),
    choice_field("mammography_frequency", SCREENING),
    choice_field("colonoscopy_frequency", SCREENING),
)


def _pack_years(values: Mapping[str, Any]) -> Any:
    per_day = values.get("cigarettes_per_day", ABSENT)
    years = values.get("smoking_years", ABSENT)
    if per_day is ABSENT or years is ABSENT:
        return ABSENT
    return float(per_day) / 20.0 * float(years)


DERIVED = (
    DerivedFactor("bmi", bmi_from("weight_kg", "height_cm")),
    DerivedFactor("pack_years", _pack_years),
)


def _family(cancer_type: str) -> Predicate:
    return lambda factors: factors.flag("family_cancer_history") and factors.contains("family_cancer_types", cancer_type)


def _age_slope(start: float, rate: float):
    return lambda factors: 1.0 + (factors.number("age") - start) * rate


def _bands(*thresholds: float) -> RiskBands:
    return RiskBands(labels=("low", "moderate", "high", "very_high"), thresholds=thresholds)


_female = equals("gender", "female")
_male = equals("gender", "male")

LUNG = RuleTable(
    name="lung",
    label="Lung cancer",
    baseline=0.5,
    minimum=0.0,
    maximum=50.0,
    bands=_bands(2.0, 8.0, 20.0),
    rules=(
        multiply(
            "lung_smoking_current",
            "pack_years",
            lambda factors: 1.0 + factors.number("pack_years") * 0.1,
            "Current smoking (pack-years)",
            equals("smoking_status", "current"),
        ),
        multiply(
            "lung_smoking_former",
            "pack_years",
            lambda factors: 1.0 + factors.number("pack_years") * 0.05,
            "Former smoking (pack-years)",
            equals("smoking_status", "former"),
        ),
        multiply("lung_age", "age", _age_slope(50, 0.02), "Age over 50", above("age", 50)),
        multiply("lung_family", "family_cancer_types", 1.8, "Family history of lung cancer", _family("lung")),
        multiply(
            "lung_occupational",
            "occupational_exposure",
            1.3,
            "Occupational carcinogen exposure",
            is_true("occupational_exposure"),
        ),
    ),
)

BREAST = RuleTable(
    name="breast",
    label="Breast cancer",
    baseline=2.5,
    minimum=0.0,
    maximum=30.0,
    bands=_bands(3.0, 10.0, 20.0),
    applies=_female,
    rules=(
        multiply("breast_age", "age", _age_slope(50, 0.03), "Age over 50", above("age", 50)),
        multiply(
            "breast_family_first",
            "family_cancer_types",
            2.1,
            "First-degree family history of breast cancer",
            both(_family("breast"), equals("family_cancer_degree", "first")),
        ),
        multiply(
            "breast_family",
            "family_cancer_types",
            1.5,
            "Family history of breast cancer",
            both(_family("breast"), lambda factors: not factors.is_one_of("family_cancer_degree", "first")),
        ),
        multiply("breast_menarche", "age_at_menarche", 1.2, "Early menarche", below("age_at_menarche", 12)),
        multiply("breast_menopause", "age_at_menopause", 1.3, "Late menopause", above("age_at_menopause", 55)),
        multiply(
            "breast_nulliparity",
            "pregnancies_count",
            1.2,
            "No pregnancies",
            lambda factors: factors.value("pregnancies_count") == 0,
        ),
        multiply("breast_late_birth", "age_at_first_birth", 1.2, "First birth after 30", above("age_at_first_birth", 30)),
        multiply(
            "breast_hrt",
            "hormone_replacement_therapy",
            1.3,
            "Hormone replacement therapy",
            is_true("hormone_replacement_therapy"),
        ),
        multiply(
            "breast_alcohol",
            "alcohol_consumption",
            1.2,
            "Regular alcohol use",
            equals("alcohol_consumption", "moderate", "heavy"),
        ),
        multiply(
            "breast_bmi_postmenopausal",
            "bmi",
            1.3,
            "BMI over 30 after age 50",
            both(above("age", 50), above("bmi", 30)),
        ),
    ),
)

COLORECTAL = RuleTable(
    name="colorectal",
    label="Colorectal cancer",
    baseline=1.2,
    minimum=0.0,
    maximum=25.0,
    bands=_bands(2.0, 6.0, 15.0),
    rules=(
        multiply("colorectal_age", "age", _age_slope(50, 0.04), "Age over 50", above("age", 50)),
        multiply(
            "colorectal_family",
            "family_cancer_types",
            2.3,
            "Family history of colorectal cancer",
            _family("colorectal"),
        ),
        multiply(
            "colorectal_ibd",
            "inflammatory_bowel_disease",
            2.5,
            "Inflammatory bowel disease",
            is_true("inflammatory_bowel_disease"),
        ),
        multiply(
            "colorectal_red_meat",
            "red_meat_consumption",
            1.3,
            "High red meat intake",
            equals("red_meat_consumption", "high"),
        ),
        multiply(
            "colorectal_processed_meat",
            "processed_meat_consumption",
            1.4,
            "High processed meat intake",
            equals("processed_meat_consumption", "high"),
        ),
        multiply(
            "colorectal_low_produce",
            "fruit_vegetable_intake",
            1.2,
            "Low fruit and vegetable intake",
            equals("fruit_vegetable_intake", "low"),
        ),
        multiply("colorectal_smoking", "smoking_status", 1.2, "Current smoking", equals("smoking_status", "current")),
        multiply(
            "colorectal_alcohol_heavy",
            "alcohol_consumption",
            1.4,
            "Heavy drinking",
            equals("alcohol_consumption", "heavy"),
        ),
        multiply("colorectal_bmi", "bmi", 1.3, "BMI over 30", above("bmi", 30)),
        multiply(
            "colorectal_activity_low",
            "physical_activity",
            1.2,
            "Low physical activity",
            equals("physical_activity", "low"),
        ),
    ),
)

MELANOMA = RuleTable(
    name="melanoma",
    label="Melanoma",
    baseline=0.3,
    minimum=0.0,
    maximum=15.0,
    bands=_bands(1.0, 3.0, 8.0),
    rules=(
        multiply("melanoma_skin", "skin_type", 3.0, "Fair skin", equals("skin_type", "very_fair", "fair")),
        multiply("melanoma_sun", "sun_exposure", 2.5, "High sun exposure", equals("sun_exposure", "high")),
        multiply("melanoma_family", "family_cancer_types", 2.8, "Family history of melanoma", _family("melanoma")),
        multiply("melanoma_age", "age", _age_slope(40, 0.02), "Age over 40", above("age", 40)),
    ),
)

PROSTATE = RuleTable(
    name="prostate",
    label="Prostate cancer",
    baseline=1.5,
    minimum=0.0,
    maximum=30.0,
    bands=_bands(3.0, 10.0, 20.0),
    applies=_male,
    rules=(
        multiply("prostate_age", "age", _age_slope(50, 0.05), "Age over 50", above("age", 50)),
        multiply("prostate_family", "family_cancer_types", 2.2, "Family history of prostate cancer", _family("prostate")),
    ),
)

CERVICAL = RuleTable(
    name="cervical",
    label="Cervical cancer",
    baseline=0.8,
    minimum=0.0,
    maximum=10.0,
    bands=_bands(1.0, 3.0, 6.0),
    applies=_female,
    rules=(
        multiply("cervical_smoking", "smoking_status", 2.3, "Current smoking", equals("smoking_status", "current")),
        multiply(
            "cervical_never_screened",
            "pap_smear_frequency",
            3.5,
            "Never screened",
            equals("pap_smear_frequency", "never"),
        ),
        multiply(
            "cervical_irregular_screening",
            "pap_smear_frequency",
            1.8,
            "Irregular screening",
            equals("pap_smear_frequency", "irregular"),
        ),
    ),
)

BANDS = _bands(5.0, 15.0, 25.0)

_SMOKING_TEXT = "Stop smoking; it is the single most effective way to lower your cancer risk."
_REFERRAL = (
    "See an oncologist to discuss your raised risk.",
    "Consider genetic counselling.",
)


def _not_regular(name: str) -> Predicate:
    return lambda factors: not factors.is_one_of(name, "regular")


POLICY = RecommendationPolicy(
    baseline=(
        "Keep to a healthy lifestyle.",
        "Attend regular preventive check-ups.",
    ),
    factor_texts={
        "lung_smoking_current": _SMOKING_TEXT,
        "colorectal_smoking": _SMOKING_TEXT,
        "cervical_smoking": _SMOKING_TEXT,
        "colorectal_alcohol_heavy": "Cut down on alcohol.",
        "lung_occupational": "Use protective equipment against workplace carcinogens.",
    },
    urgent={
        "very_high": _REFERRAL,
        "high": _REFERRAL,
    },
    advisories=(
        Advisory(
            "Have a mammogram every year from age 40.",
            both(both(_female, at_least("age", 40)), _not_regular("mammography_frequency")),
        ),
        Advisory(
            "Have a colonoscopy every 10 years from age 45.",
            both(at_least("age", 45), _not_regular("colonoscopy_frequency")),
        ),
        Advisory(
            "Have a cervical smear test every 3 years.",
            both(both(_female, at_least("age", 21)), _not_regular("pap_smear_frequency")),
        ),
        Advisory(
            "See a dermatologist for a skin check once a year.",
            lambda factors: factors.is_one_of("skin_type", "very_fair", "fair")
            or factors.is_one_of("sun_exposure", "high"),
        ),
        Advisory("Keep to a healthy body weight.", above("bmi", 25)),
        Advisory(
            "Get at least 150 minutes of physical activity per week.",
            equals("physical_activity", "low"),
        ),
        Advisory(
            "Eat at least 5 portions of fruit and vegetables a day.",
            equals("fruit_vegetable_intake", "low"),
        ),
        Advisory("Cut down on red meat.", equals("red_meat_consumption", "high")),
        Advisory("Avoid processed meat.", equals("processed_meat_consumption", "high")),
        Advisory(
            "Protect your skin from the sun with sunscreen and covering clothing.",
            equals("sun_exposure", "high"),
        ),
    ),
)


def _age_average(factors: FactorSet) -> float:
    return 8.0 if factors.number("age") > 50 else 3.0


def _secondary(factors: FactorSet, outcome: ScoreOutcome) -> Mapping[str, float]:
    lifetime = 0.0
    output: dict[str, float] = {}
    for table in outcome.tables:
        value = min(100.0, table.raw_score * LIFETIME_FACTORS[table.name])
        output[f"lifetime_risk_{table.name}"] = value
        lifetime += value
    output["lifetime_risk"] = min(100.0, lifetime)
    return output


MODULE = RiskModule(
    module_type=MODULE_TYPE,
    title="Cancer risk (multiple types)",
    score_label="Combined ten-year cancer risk",
    method_summary=(
        "Each cancer type starts from an average risk that is multiplied up by the factors that apply "
        "to you (smoking, family history, diet, sun exposure, screening habits and more). "
        "Each type is capped separately, then the types are added together."
    ),
    fields=FIELDS,
    derived=DERIVED,
    model=ScoringModel(
        tables=(LUNG, BREAST, COLORECTAL, MELANOMA, PROSTATE, CERVICAL),
        aggregate="sum",
        minimum=0.0,
        maximum=100.0,
    ),
    bands=BANDS,
    policy=POLICY,
    percentile=relative_percentile(_age_average),
    secondary=_secondary,
    level_descriptions={
        "low": "Your combined risk is low.",
        "moderate": "Your combined risk is moderate; screening keeps it in check.",
        "high": "Your combined risk is high. Talk to a specialist about screening and prevention.",
        "very_high": "Your combined risk is very high. Please seek specialist advice soon.",
    },
)
