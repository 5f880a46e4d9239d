from __future__ import annotations

"""
Normalize loosely-validated questionnaire input into a canonical factor set.

Design intent:
- Resolve every declared field to a typed value or the explicit ABSENT marker.
- Reject out-of-domain values with the field name and violated bound; never clamp input.
- Compute derived factors (BMI, pack-years, exposure doses) once, before scoring.
"""

import math
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Callable, Iterator, Literal, Mapping, Sequence

from healthrisk.internal_core.errors import ValidationError


class _Absent:
    _instance: "_Absent | None" = None

    def __new__(cls) -> "_Absent":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "ABSENT"


ABSENT = _Absent()

FieldKind = Literal["number", "integer", "boolean", "choice", "choices"]

_TRUE_STRINGS = {"true", "yes", "1"}
_FALSE_STRINGS = {"false", "no", "0"}


@dataclass(frozen=True)
class FieldSpec:
    name: str
    kind: FieldKind
    required: bool = False
    minimum: float | None = None
    maximum: float | None = None
    choices: tuple[str, ...] = ()
    default: Any = ABSENT


@dataclass(frozen=True)
class DerivedFactor:
    name: str
    compute: Callable[[Mapping[str, Any]], Any]


class FactorSet(Mapping[str, Any]):
    """Ordered, read-only factor mapping owned by a single assessment run."""

    def __init__(self, values: Mapping[str, Any], derived: Sequence[str] = ()) -> None:
        self._values = MappingProxyType(dict(values))
        self._derived = frozenset(derived)

    def __getitem__(self, key: str) -> Any:
        return self._values[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"FactorSet({dict(self._values)!r})"

    @property
    def derived(self) -> frozenset[str]:
        return self._derived

    def is_present(self, name: str) -> bool:
        return self._values.get(name, ABSENT) is not ABSENT

    def value(self, name: str, default: Any = None) -> Any:
        raw = self._values.get(name, ABSENT)
        return default if raw is ABSENT else raw

    def number(self, name: str, default: float = 0.0) -> float:
        raw = self._values.get(name, ABSENT)
        if raw is ABSENT:
            return default
        return float(raw)

    def flag(self, name: str) -> bool:
        return self._values.get(name, ABSENT) is True

    def is_one_of(self, name: str, *options: str) -> bool:
        return self._values.get(name, ABSENT) in options

    def contains(self, name: str, item: str) -> bool:
        raw = self._values.get(name, ABSENT)
        return raw is not ABSENT and item in raw

    def snapshot(self) -> dict[str, Any]:
        output: dict[str, Any] = {}
        for key, raw in self._values.items():
            if raw is ABSENT:
                output[key] = None
            elif isinstance(raw, tuple):
                output[key] = list(raw)
            else:
                output[key] = raw
        return output


def extract_factors(
    specs: Sequence[FieldSpec],
    raw_input: Mapping[str, Any] | None,
    *,
    derived: Sequence[DerivedFactor] = (),
) -> FactorSet:
    if raw_input is None:
        raw_input = {}
    if not isinstance(raw_input, Mapping):
        raise ValidationError("input", "a mapping of field names to values")

    values: dict[str, Any] = {}
    for spec in specs:
        values[spec.name] = _resolve_field(spec, raw_input.get(spec.name))

    derived_names: list[str] = []
    for item in derived:
        computed = item.compute(values)
        if computed is not ABSENT and isinstance(computed, float) and not math.isfinite(computed):
            raise ValidationError(item.name, "a finite derived value")
        values[item.name] = computed
        derived_names.append(item.name)

    return FactorSet(values, derived=derived_names)


def _resolve_field(spec: FieldSpec, raw: Any) -> Any:
    if _is_missing(raw):
        if spec.required:
            raise ValidationError(spec.name, "a value (field is required)")
        return spec.default

    if spec.kind in {"number", "integer"}:
        return _coerce_number(spec, raw)
    if spec.kind == "boolean":
        return _coerce_boolean(spec, raw)
    if spec.kind == "choice":
        return _coerce_choice(spec, raw)
    if spec.kind == "choices":
        return _coerce_choices(spec, raw)
    raise ValidationError(spec.name, f"a supported field kind (got {spec.kind!r})")


def _is_missing(raw: Any) -> bool:
    if raw is None:
        return True
    return isinstance(raw, str) and not raw.strip()


def _coerce_number(spec: FieldSpec, raw: Any) -> float | int:
    if isinstance(raw, bool):
        raise ValidationError(spec.name, "a number")
    if isinstance(raw, (int, float)):
        value = float(raw)
    elif isinstance(raw, str):
        try:
            value = float(raw.strip())
        except ValueError as exc:
            raise ValidationError(spec.name, "a number") from exc
    else:
        raise ValidationError(spec.name, "a number")

    if not math.isfinite(value):
        raise ValidationError(spec.name, "a finite number")
    if spec.minimum is not None and value < spec.minimum:
        raise ValidationError(spec.name, f">= {_fmt_bound(spec.minimum)}")
    if spec.maximum is not None and value > spec.maximum:
        raise ValidationError(spec.name, f"<= {_fmt_bound(spec.maximum)}")

    if spec.kind == "integer":
        if not value.is_integer():
            raise ValidationError(spec.name, "a whole number")
        return int(value)
    return value


def _coerce_boolean(spec: FieldSpec, raw: Any) -> bool:
    if isinstance(raw, bool):
        return raw
    if isinstance(raw, str):
        normalized = raw.strip().lower()
        if normalized in _TRUE_STRINGS:
            return True
        if normalized in _FALSE_STRINGS:
            return False
    raise ValidationError(spec.name, "true or false")


def _coerce_choice(spec: FieldSpec, raw: Any) -> str:
    if not isinstance(raw, str):
        raise ValidationError(spec.name, f"one of {', '.join(spec.choices)}")
    normalized = raw.strip().lower()
    if normalized not in spec.choices:
        raise ValidationError(spec.name, f"one of {', '.join(spec.choices)}")
    return normalized


def _coerce_choices(spec: FieldSpec, raw: Any) -> tuple[str, ...]:
    if isinstance(raw, str) or not isinstance(raw, (list, tuple, set, frozenset)):
        raise ValidationError(spec.name, f"a list drawn from {', '.join(spec.choices)}")
    output: list[str] = []
    seen: set[str] = set()
    for item in raw:
        value = _coerce_choice(spec, item)
        if value in seen:
            continue
        seen.add(value)
        output.append(value)
    return tuple(output)


def _fmt_bound(value: float) -> str:
    if float(value).is_integer():
        return str(int(value))
    return str(value)


def bmi_from(weight_field: str, height_cm_field: str) -> Callable[[Mapping[str, Any]], Any]:
    def _compute(values: Mapping[str, Any]) -> Any:
        weight = values.get(weight_field, ABSENT)
        height = values.get(height_cm_field, ABSENT)
        if weight is ABSENT or height is ABSENT or not height:
            return ABSENT
        return float(weight) / math.pow(float(height) / 100.0, 2)

    return _compute
