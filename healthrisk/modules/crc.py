from __future__ import annotations

"""
CRC-PRO colorectal cancer risk.

Design intent:
- Additive points read directly as a percentage, clamped to [0, 85].
- Protective habits (fibre, vegetables, calcium, NSAIDs, activity) subtract points.
- Screening advice keys off years since the last colonoscopy, not the wall clock.
"""

from healthrisk.modules.common import (
    ACTIVITY,
    ALCOHOL,
    LEVEL3,
    SMOKING,
    above,
    age_field,
    at_least,
    between,
    both,
    choice_field,
    equals,
    flag_field,
    is_true,
    relative_percentile,
)
from healthrisk.risk.classifier import RiskBands
from healthrisk.risk.engine import RuleTable, ScoringModel, add
from healthrisk.risk.factors import DerivedFactor, FactorSet, FieldSpec, bmi_from
from healthrisk.risk.pipeline import RiskModule
from healthrisk.risk.recommendations import Advisory, RecommendationPolicy

MODULE_TYPE = "crc_pro"

SCORE_MIN = 0.0
SCORE_MAX = 85.0
SCREENING_START_AGE = 45

FIELDS = (
    age_field(18, 100),
    flag_field("family_history_crc"),
    flag_field("family_history_polyps"),
    flag_field("family_history_ibd"),
    flag_field("personal_history_polyps"),
    flag_field("personal_history_ibd"),
    flag_field("diabetes_type2"),
    choice_field("smoking_status", SMOKING),
    choice_field("alcohol_consumption", ALCOHOL),
    choice_field("physical_activity", ACTIVITY),
    choice_field("red_meat_consumption", LEVEL3),
    choice_field("processed_meat_consumption", LEVEL3),
    choice_field("fiber_intake", LEVEL3),
    choice_field("vegetable_intake", LEVEL3),
    flag_field("calcium_supplements"),
    flag_field("nsaid_use"),
    FieldSpec("height_cm", "number", minimum=100, maximum=250),
    FieldSpec("weight_kg", "number", minimum=30, maximum=250),
    flag_field("previous_colonoscopy"),
    FieldSpec("years_since_colonoscopy", "number", minimum=0, maximum=80),
)

DERIVED = (DerivedFactor("bmi", bmi_from("weight_kg", "height_cm")),)

RULES = (
    add("age_50_plus", "age", 15, "Age 50 or older", at_least("age", 50)),
    add("age_60_plus", "age", 10, "Age 60 or older", at_least("age", 60)),
    add("age_70_plus", "age", 15, "Age 70 or older", at_least("age", 70)),
    add("age_45_49", "age", 5, "Age 45-49", between("age", 45, 50)),
    add("family_crc", "family_history_crc", 20, "Family history of colorectal cancer", is_true("family_history_crc")),
    add("family_polyps", "family_history_polyps", 10, "Family history of polyps", is_true("family_history_polyps")),
    add(
        "family_ibd",
        "family_history_ibd",
        15,
        "Family history of inflammatory bowel disease",
        is_true("family_history_ibd"),
    ),
    add("personal_polyps", "personal_history_polyps", 25, "Personal history of polyps", is_true("personal_history_polyps")),
    add(
        "personal_ibd",
        "personal_history_ibd",
        30,
        "Inflammatory bowel disease",
        is_true("personal_history_ibd"),
    ),
    add("diabetes", "diabetes_type2", 8, "Type 2 diabetes", is_true("diabetes_type2")),
    add("smoking_current", "smoking_status", 12, "Current smoking", equals("smoking_status", "current")),
    add("smoking_former", "smoking_status", 6, "Former smoking", equals("smoking_status", "former")),
    add("alcohol_heavy", "alcohol_consumption", 10, "Heavy drinking", equals("alcohol_consumption", "heavy")),
    add("alcohol_moderate", "alcohol_consumption", 4, "Moderate drinking", equals("alcohol_consumption", "moderate")),
    add("activity_low", "physical_activity", 8, "Low physical activity", equals("physical_activity", "low")),
    add("activity_high", "physical_activity", -5, "High physical activity (protective)", equals("physical_activity", "high")),
    add("red_meat_high", "red_meat_consumption", 8, "High red meat intake", equals("red_meat_consumption", "high")),
    add(
        "processed_meat_high",
        "processed_meat_consumption",
        10,
        "High processed meat intake",
        equals("processed_meat_consumption", "high"),
    ),
    add("fiber_low", "fiber_intake", 6, "Low fibre intake", equals("fiber_intake", "low")),
    add("fiber_high", "fiber_intake", -4, "High fibre intake (protective)", equals("fiber_intake", "high")),
    add("vegetables_low", "vegetable_intake", 5, "Low vegetable intake", equals("vegetable_intake", "low")),
    add("vegetables_high", "vegetable_intake", -3, "High vegetable intake (protective)", equals("vegetable_intake", "high")),
    add("calcium", "calcium_supplements", -3, "Calcium supplements (protective)", is_true("calcium_supplements")),
    add("nsaid", "nsaid_use", -4, "Regular NSAID use (protective)", is_true("nsaid_use")),
    add("bmi_obese", "bmi", 12, "BMI of 30 or more", at_least("bmi", 30)),
    add("bmi_overweight", "bmi", 6, "BMI 25-29.9", between("bmi", 25, 30)),
)

BANDS = RiskBands(labels=("low", "moderate", "high", "very_high"), thresholds=(15.0, 35.0, 60.0))


_REFERRAL = ("Your risk is high enough to warrant a consultation with an oncologist or gastroenterologist.",)


def _never_screened(factors: FactorSet) -> bool:
    return not factors.flag("previous_colonoscopy") and factors.number("age") >= SCREENING_START_AGE


def _elevated_history(factors: FactorSet) -> bool:
    return factors.flag("personal_history_polyps") or factors.flag("family_history_crc")


POLICY = RecommendationPolicy(
    baseline=("See your doctor regularly to monitor your health.",),
    factor_texts={
        "family_crc": "Ask your doctor about starting colorectal screening earlier because of your family history.",
        "family_polyps": "A family history of polyps raises your risk; consider regular colonoscopies.",
        "family_ibd": "A family history of inflammatory bowel disease deserves closer attention.",
        "personal_polyps": "Previous polyps raise your risk considerably; keep to a regular surveillance schedule.",
        "personal_ibd": "Inflammatory bowel disease needs intensive monitoring.",
        "diabetes": "Type 2 diabetes raises colorectal cancer risk; keep your blood sugar under control.",
        "smoking_current": "Smoking raises cancer risk considerably; consider a stop-smoking programme.",
        "alcohol_heavy": "Heavy drinking raises your risk; consider cutting down.",
        "activity_low": "Low physical activity raises your risk; increase your exercise.",
        "activity_high": "High physical activity lowers your risk; keep it up.",
        "red_meat_high": "A lot of red meat raises your risk; consider eating less.",
        "processed_meat_high": "Processed meat raises your risk considerably; limit how much you eat.",
        "fiber_low": "Low fibre intake raises your risk; eat more vegetables and whole grains.",
        "fiber_high": "High fibre intake lowers your risk; keep eating well.",
        "vegetables_low": "Eat more vegetables to lower your risk.",
        "calcium": "Calcium may lower your risk; continue as your doctor advises.",
        "nsaid": "NSAIDs may lower your risk but need care; check with your doctor.",
        "bmi_obese": "Obesity raises colorectal cancer risk; consider losing weight.",
        "bmi_overweight": "Being overweight raises your risk; aim for a healthy weight.",
    },
    urgent={"very_high": _REFERRAL, "high": _REFERRAL},
    advisories=(
        Advisory("Start colorectal cancer screening; discuss the options with your doctor.", _never_screened),
        Advisory(
            "Your last colonoscopy was more than 10 years ago; consider a repeat examination.",
            both(is_true("previous_colonoscopy"), above("years_since_colonoscopy", 10)),
        ),
        Advisory(
            "With your risk factors, more frequent screening is recommended.",
            lambda factors: factors.flag("previous_colonoscopy")
            and 5 < factors.number("years_since_colonoscopy") <= 10
            and _elevated_history(factors),
        ),
    ),
)


def _age_average(factors: FactorSet) -> float:
    return 25.0 if factors.number("age") >= 50 else 8.0


MODULE = RiskModule(
    module_type=MODULE_TYPE,
    title="Colorectal cancer risk (CRC-PRO)",
    score_label="Colorectal cancer risk",
    method_summary=(
        "Points for age, family and personal history, diabetes, smoking, alcohol, diet and weight "
        "are added up; protective habits such as fibre, vegetables and exercise subtract points."
    ),
    fields=FIELDS,
    derived=DERIVED,
    model=ScoringModel(
        tables=(RuleTable(MODULE_TYPE, 0.0, RULES, SCORE_MIN, SCORE_MAX),),
        aggregate="single",
        minimum=SCORE_MIN,
        maximum=SCORE_MAX,
    ),
    bands=BANDS,
    policy=POLICY,
    percentile=relative_percentile(_age_average),
    level_descriptions={
        "low": "Your colorectal cancer risk is low.",
        "moderate": "Your risk is moderate; screening and lifestyle changes help.",
        "high": "Your risk is high; specialist follow-up is advised.",
        "very_high": "Your risk is very high; please arrange specialist follow-up soon.",
    },
)
