from __future__ import annotations

"""
RAIS-style chemical exposure risk.

Design intent:
- Derive inhalation, dermal and oral doses from exposure parameters before scoring.
- Score carcinogenic risk as excess cases per million and non-carcinogenic hazard as
  ten times the largest hazard quotient; the overall index is the larger of the two.
- One index with bands at 1/10/100 matches the usual 1e-6/1e-5/1e-4 cancer-risk
  and 0.1/1/10 hazard-index cut-offs.
"""

from dataclasses import dataclass
from typing import Any, Mapping

from healthrisk.modules.common import GENDERS, SMOKING, age_field, choice_field, equals, flag_field, is_true
from healthrisk.risk.classifier import RiskBands
from healthrisk.risk.engine import RuleTable, ScoreOutcome, ScoringModel, add, clamp
from healthrisk.risk.factors import ABSENT, DerivedFactor, FactorSet, FieldSpec
from healthrisk.risk.pipeline import RiskModule
from healthrisk.risk.recommendations import Advisory, RecommendationPolicy

MODULE_TYPE = "rais"

INDEX_MAX = 1000.0
PER_MILLION = 1e6
HAZARD_SCALE = 10.0
INHALATION_RATE_M3_PER_DAY = 20.0
DERMAL_ABSORPTION = 0.1
AVERAGING_HOURS = 365 * 24 * 70
# Upper input bounds; far above any survivable exposure, well below float overflow.
MAX_CONCENTRATION = 1e4
MAX_ORAL_DOSE = 1e3


@dataclass(frozen=True)
class ChemicalProfile:
    name: str
    slope_factor: float = 0.0
    ref_inhalation: float = 0.0
    ref_dermal: float = 0.0
    ref_oral: float = 0.0


CHEMICALS = {
    "benzene": ChemicalProfile("Benzene", 0.055, 0.03, 0.02, 0.004),
    "toluene": ChemicalProfile("Toluene", 0.0, 5.0, 0.08, 0.08),
    "formaldehyde": ChemicalProfile("Formaldehyde", 0.045, 0.009, 0.2, 0.2),
    "mercury": ChemicalProfile("Mercury", 0.0, 0.0003, 0.000021, 0.0003),
    "lead": ChemicalProfile("Lead", 0.0, 0.000012, 0.0000042, 0.0036),
    "cadmium": ChemicalProfile("Cadmium", 6.3, 0.0001, 0.00001, 0.001),
    "chromium_vi": ChemicalProfile("Chromium VI", 41.0, 0.0001, 0.00006, 0.003),
    "arsenic": ChemicalProfile("Arsenic", 1.5, 0.000015, 0.0003, 0.0003),
    "vinyl_chloride": ChemicalProfile("Vinyl chloride", 1.9, 0.1, 0.003, 0.003),
    "dichloromethane": ChemicalProfile("Dichloromethane", 0.0075, 6.0, 0.06, 0.06),
}
DEFAULT_CHEMICAL = ChemicalProfile("Unknown substance", 0.0, 0.1, 0.01, 0.01)

SUBSTANCES = (
    *CHEMICALS,
    "tetrachloroethylene",
    "trichloroethylene",
    "pcb",
    "dioxin",
    "pah",
    "other",
)

FIELDS = (
    age_field(0, 100),
    choice_field("gender", GENDERS),
    FieldSpec("body_weight", "number", required=True, minimum=30, maximum=200),
    choice_field("exposure_scenario", ("residential", "occupational", "industrial", "recreational")),
    FieldSpec("exposure_duration", "number", required=True, minimum=0, maximum=70),
    FieldSpec("exposure_frequency", "number", required=True, minimum=1, maximum=365),
    FieldSpec("exposure_time_per_day", "number", required=True, minimum=0, maximum=24),
    choice_field("chemical_substance", SUBSTANCES, required=True),
    FieldSpec("inhalation_exposure", "boolean", default=False),
    FieldSpec("inhalation_concentration", "number", minimum=0, maximum=MAX_CONCENTRATION),
    FieldSpec("dermal_exposure", "boolean", default=False),
    FieldSpec("dermal_concentration", "number", minimum=0, maximum=MAX_CONCENTRATION),
    FieldSpec("skin_surface_area", "number", minimum=0, maximum=25000),
    FieldSpec("oral_exposure", "boolean", default=False),
    FieldSpec("oral_dose", "number", minimum=0, maximum=MAX_ORAL_DOSE),
    choice_field("smoking_status", SMOKING),
    choice_field("work_environment", ("office", "industrial", "laboratory", "outdoor", "healthcare", "other")),
    flag_field("protective_equipment_use"),
    choice_field("ventilation_quality", ("poor", "adequate", "good", "excellent")),
    choice_field("proximity_to_industrial_sites", ("very_close", "close", "moderate", "far")),
    choice_field("water_source", ("municipal", "well", "bottled", "other")),
)


def _num(values: Mapping[str, Any], name: str) -> float:
    raw = values.get(name, ABSENT)
    if raw is ABSENT:
        return 0.0
    return float(raw)


def profile_for(substance: Any) -> ChemicalProfile:
    return CHEMICALS.get(substance, DEFAULT_CHEMICAL)


def _exposure_factor(values: Mapping[str, Any]) -> float:
    return (
        _num(values, "exposure_frequency") * _num(values, "exposure_time_per_day") * _num(values, "exposure_duration")
    ) / AVERAGING_HOURS


def _inhalation_dose(values: Mapping[str, Any]) -> float:
    concentration = _num(values, "inhalation_concentration")
    if values.get("inhalation_exposure") is not True or concentration <= 0:
        return 0.0
    return concentration * INHALATION_RATE_M3_PER_DAY * values["exposure_factor"] / _num(values, "body_weight")


def _dermal_dose(values: Mapping[str, Any]) -> float:
    concentration = _num(values, "dermal_concentration")
    area = _num(values, "skin_surface_area")
    if values.get("dermal_exposure") is not True or concentration <= 0 or area <= 0:
        return 0.0
    return concentration * area * DERMAL_ABSORPTION * values["exposure_factor"] / _num(values, "body_weight")


def _oral_dose(values: Mapping[str, Any]) -> float:
    dose = _num(values, "oral_dose")
    if values.get("oral_exposure") is not True or dose <= 0:
        return 0.0
    return dose * values["exposure_factor"]


def _slope_factor(values: Mapping[str, Any]) -> float:
    return profile_for(values.get("chemical_substance")).slope_factor


def _max_hazard_quotient(values: Mapping[str, Any]) -> float:
    profile = profile_for(values.get("chemical_substance"))
    quotients = [0.0]
    for dose_name, reference in (
        ("inhalation_dose", profile.ref_inhalation),
        ("dermal_dose", profile.ref_dermal),
        ("oral_dose_adjusted", profile.ref_oral),
    ):
        dose = values[dose_name]
        if dose > 0 and reference > 0:
            quotients.append(dose / reference)
    return max(quotients)


def _primary_route(values: Mapping[str, Any]) -> str:
    inhalation = values["inhalation_dose"]
    dermal = values["dermal_dose"]
    oral = values["oral_dose_adjusted"]
    if dermal > inhalation and dermal > oral:
        return "dermal"
    if oral > inhalation and oral > dermal:
        return "oral"
    return "inhalation"


# Order matters: later entries read earlier ones.
DERIVED = (
    DerivedFactor("exposure_factor", _exposure_factor),
    DerivedFactor("inhalation_dose", _inhalation_dose),
    DerivedFactor("dermal_dose", _dermal_dose),
    DerivedFactor("oral_dose_adjusted", _oral_dose),
    DerivedFactor("slope_factor", _slope_factor),
    DerivedFactor("max_hazard_quotient", _max_hazard_quotient),
    DerivedFactor("primary_route", _primary_route),
)


def _excess_cases(dose_name: str):
    return lambda factors: factors.number(dose_name) * factors.number("slope_factor") * PER_MILLION


def _carcinogenic_route(dose_name: str):
    return lambda factors: factors.number(dose_name) > 0 and factors.number("slope_factor") > 0


CARCINOGENIC = RuleTable(
    name="carcinogenic",
    label="Carcinogenic risk (excess cases per million)",
    baseline=0.0,
    minimum=0.0,
    maximum=INDEX_MAX,
    rules=(
        add(
            "inhalation_cancer",
            "inhalation_dose",
            _excess_cases("inhalation_dose"),
            "Inhaled dose x cancer slope factor",
            _carcinogenic_route("inhalation_dose"),
        ),
        add(
            "dermal_cancer",
            "dermal_dose",
            _excess_cases("dermal_dose"),
            "Skin-absorbed dose x cancer slope factor",
            _carcinogenic_route("dermal_dose"),
        ),
        add(
            "oral_cancer",
            "oral_dose_adjusted",
            _excess_cases("oral_dose_adjusted"),
            "Ingested dose x cancer slope factor",
            _carcinogenic_route("oral_dose_adjusted"),
        ),
    ),
)

NON_CARCINOGENIC = RuleTable(
    name="non_carcinogenic",
    label="Non-carcinogenic hazard (10 x hazard index)",
    baseline=0.0,
    minimum=0.0,
    maximum=INDEX_MAX,
    rules=(
        add(
            "hazard_quotient",
            "max_hazard_quotient",
            lambda factors: factors.number("max_hazard_quotient") * HAZARD_SCALE,
            "Largest dose-to-reference-dose ratio across exposure routes",
            lambda factors: factors.number("max_hazard_quotient") > 0,
        ),
    ),
)

BANDS = RiskBands(labels=("acceptable", "of_concern", "high", "very_high"), thresholds=(1.0, 10.0, 100.0))

POLICY = RecommendationPolicy(
    baseline=(
        "Use certified personal protective equipment.",
        "Monitor air and water quality regularly.",
        "Keep living and working spaces clean.",
    ),
    factor_texts={},
    urgent={
        "very_high": (
            "Contact an occupational health specialist or toxicologist immediately.",
            "Stop exposure to the substance until you have professional advice.",
        ),
        "high": (
            "A consultation with a toxicologist is strongly recommended.",
            "Minimise your exposure to the substance.",
        ),
    },
    urgent_from_subtypes=False,
    advisories=(
        Advisory("Wear a respirator or mask when handling chemicals.", is_true("inhalation_exposure")),
        Advisory("Keep work and living areas well ventilated.", is_true("inhalation_exposure")),
        Advisory("Wear protective gloves and clothing when in contact with chemicals.", is_true("dermal_exposure")),
        Advisory("Wash hands and exposed skin thoroughly after possible contact.", is_true("dermal_exposure")),
        Advisory("Do not eat or drink in areas that may be contaminated.", is_true("oral_exposure")),
        Advisory("Filter your water if the source may be contaminated.", is_true("oral_exposure")),
        Advisory(
            "Follow workplace safety protocols strictly.",
            equals("work_environment", "industrial", "laboratory"),
        ),
        Advisory(
            "Have regular occupational health check-ups.",
            equals("work_environment", "industrial", "laboratory"),
        ),
        Advisory(
            "Consider using an air purifier at home.",
            equals("proximity_to_industrial_sites", "very_close", "close"),
        ),
        Advisory(
            "Air your home regularly, ideally when nearby industrial activity is low.",
            equals("proximity_to_industrial_sites", "very_close", "close"),
        ),
        Advisory("Avoid smoking and limit alcohol.", equals("chemical_substance", "benzene", "toluene")),
        Advisory("Include antioxidant-rich foods in your diet.", equals("chemical_substance", "mercury", "lead")),
        Advisory(
            "Ask a doctor whether supervised chelation therapy is appropriate.",
            equals("chemical_substance", "mercury", "lead"),
        ),
    ),
)


MONITORING = (
    "Check airborne concentrations of the substance regularly.",
    "Have blood and urine tested for toxic substances.",
    "Watch for symptoms in the organs the substance is known to affect.",
)


def _cancer_risk(outcome: ScoreOutcome) -> float:
    for table in outcome.tables:
        if table.name == CARCINOGENIC.name:
            return table.raw_score / PER_MILLION
    return 0.0


def _percentile(factors: FactorSet, outcome: ScoreOutcome) -> float:
    return clamp(50.0 + (_cancer_risk(outcome) - 1e-6) * 1000.0, 5.0, 95.0)


def _secondary(factors: FactorSet, outcome: ScoreOutcome) -> Mapping[str, float]:
    cancer_risk = _cancer_risk(outcome)
    return {
        "excess_cases_per_million": cancer_risk * PER_MILLION,
        "cancer_risk": cancer_risk,
        "hazard_index": factors.number("max_hazard_quotient"),
        "inhalation_dose": factors.number("inhalation_dose"),
        "dermal_dose": factors.number("dermal_dose"),
        "oral_dose": factors.number("oral_dose_adjusted"),
    }


MODULE = RiskModule(
    module_type=MODULE_TYPE,
    title="Chemical exposure risk (RAIS)",
    score_label="Exposure risk index",
    method_summary=(
        "Daily doses are estimated for each exposure route from concentration, contact time and body weight. "
        "Cancer risk multiplies the dose by the substance's slope factor; other toxic effects compare the dose "
        "with a safe reference dose. The higher of the two sets the index."
    ),
    fields=FIELDS,
    derived=DERIVED,
    model=ScoringModel(
        tables=(CARCINOGENIC, NON_CARCINOGENIC),
        aggregate="max",
        minimum=0.0,
        maximum=INDEX_MAX,
    ),
    bands=BANDS,
    policy=POLICY,
    percentile=_percentile,
    secondary=_secondary,
    score_unit="",
    level_descriptions={
        "acceptable": "Estimated exposure is within the acceptable range.",
        "of_concern": "Exposure is above the level usually considered negligible.",
        "high": "Exposure is high enough to warrant reducing it and seeking advice.",
        "very_high": "Exposure is very high; act on it without delay.",
    },
    monitoring=MONITORING,
)
