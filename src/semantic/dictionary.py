"""
Loads, validates, and caches the financial semantic dictionary.

The dictionary is the single source of truth for:
  - dimensions       (time / scenario / id / name, display fields, synonyms)
  - measures         (unit + aggregation rule, weights, ratio components)
  - derived metrics  (ratios computed on demand from two summed measures)

It is parsed once per process from ``semantic_layer/financial_model.yml`` into
frozen dataclasses and never mutated afterwards.

Two kinds of lookup exist and must not be mixed:
  - ``find_dimension`` / ``find_measure`` interpret natural language and are
    used by the planner only.
  - ``get_measure_by_key`` / ``get_dimension_by_key`` are exact and are used
    everywhere else.  An unknown key yields ``None``; nothing is inferred from
    the spelling of a key.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import Any, Union

import yaml

from src.core.config import get_settings
from src.core.logging import get_logger
from src.nlq.normalize import normalize_text

logger = get_logger(__name__)


class SemanticModelError(ValueError):
    """The catalog YAML violates a structural invariant."""


# ── Closed vocabularies ──────────────────────────────────

class DimensionType(str, Enum):
    TIME = "time"
    SCENARIO = "scenario"
    ID = "id"
    NAME = "name"


class Unit(str, Enum):
    USD_MM = "usd_mm"
    PERCENT = "percent"
    COUNT = "count"


class Aggregation(str, Enum):
    SUM = "sum"
    WEIGHTED_AVG = "weighted_avg"
    WEIGHTED_RATIO = "weighted_ratio"
    RATIO = "ratio"


RATIO_AGGREGATIONS = frozenset({Aggregation.WEIGHTED_RATIO, Aggregation.RATIO})


# ── Typed domain objects ─────────────────────────────────

@dataclass(frozen=True)
class Dimension:
    key: str
    type: DimensionType
    display_key: str | None = None
    synonyms: tuple[str, ...] = ()

    @property
    def display_field(self) -> str:
        if self.type is DimensionType.ID and self.display_key:
            return self.display_key
        return self.key


@dataclass(frozen=True)
class Measure:
    key: str
    unit: Unit
    aggregation: Aggregation
    weight_by: str | None = None
    numerator: str | None = None
    denominator: str | None = None
    synonyms: tuple[str, ...] = ()
    description: str = ""

    @property
    def effective_aggregation(self) -> Aggregation:
        """Dollar and count measures are always summed, whatever is declared."""
        if self.unit in (Unit.USD_MM, Unit.COUNT):
            return Aggregation.SUM
        return self.aggregation

    def to_dict(self) -> dict[str, Any]:
        return {
            "key": self.key,
            "unit": self.unit.value,
            "aggregation": self.aggregation.value,
            "weight_by": self.weight_by,
            "numerator": self.numerator,
            "denominator": self.denominator,
            "synonyms": list(self.synonyms),
        }


@dataclass(frozen=True)
class DerivedMetric:
    key: str
    numerator: str
    denominator: str
    synonyms: tuple[str, ...] = ()
    aggregation: Aggregation = Aggregation.RATIO

    @property
    def unit(self) -> Unit:
        return Unit.PERCENT

    @property
    def effective_aggregation(self) -> Aggregation:
        return Aggregation.RATIO

    def to_dict(self) -> dict[str, Any]:
        return {
            "key": self.key,
            "unit": self.unit.value,
            "aggregation": self.aggregation.value,
            "numerator": self.numerator,
            "denominator": self.denominator,
        }


MetricDefinition = Union[Measure, DerivedMetric]


@dataclass(frozen=True)
class SemanticDictionary:
    """Immutable catalog of dimensions, measures and derived metrics."""

    version: int
    dimensions: tuple[Dimension, ...]
    measures: tuple[Measure, ...]
    derived: tuple[DerivedMetric, ...] = field(default_factory=tuple)

    # ── Exact look-ups ───────────────────────────────

    def get_measure_by_key(self, key: str) -> MetricDefinition | None:
        for m in self.measures:
            if m.key == key:
                return m
        for d in self.derived:
            if d.key == key:
                return d
        return None

    def get_dimension_by_key(self, key: str) -> Dimension | None:
        for d in self.dimensions:
            if d.key == key:
                return d
        return None

    @staticmethod
    def get_dimension_display_field(dim: Dimension) -> str:
        """Id-typed dimensions report through their human-readable name field."""
        return dim.display_field

    def dimensions_of_type(self, *types: DimensionType) -> list[Dimension]:
        return [d for d in self.dimensions if d.type in types]

    # ── Natural-language look-ups (planner only) ─────

    def find_dimension(self, text: str) -> Dimension | None:
        """Exact normalised key first, then the first synonym the text contains."""
        return _find(normalize_text(text), self.dimensions)

    def find_measure(self, text: str) -> MetricDefinition | None:
        """Same rule as ``find_dimension`` over measures, then derived metrics."""
        candidates: tuple[MetricDefinition, ...] = self.measures + self.derived
        return _find(normalize_text(text), candidates)

    # ── Listing ──────────────────────────────────────

    def get_metric_keys(self) -> list[str]:
        return [m.key for m in self.measures] + [d.key for d in self.derived]

    def get_dimension_keys(self) -> list[str]:
        return [d.key for d in self.dimensions]

    def catalog(self) -> dict[str, list[dict[str, Any]]]:
        """Dictionary contents as plain dicts, for display to users."""
        return {
            "dimensions": [
                {
                    "key": d.key,
                    "type": d.type.value,
                    "display_field": d.display_field,
                    "synonyms": list(d.synonyms),
                }
                for d in self.dimensions
            ],
            "measures": [m.to_dict() for m in self.measures],
            "derived": [d.to_dict() for d in self.derived],
        }


def _find(query: str, candidates):
    if not query:
        return None
    for c in candidates:
        if normalize_text(c.key) == query:
            return c
    # Only "query contains synonym": the reverse direction lets short
    # generic queries match long synonyms.
    for c in candidates:
        for synonym in c.synonyms:
            syn = normalize_text(synonym)
            if syn and syn in query:
                return c
    return None


# ── Parsing ──────────────────────────────────────────────

def _enum(enum_cls, raw: Any, where: str):
    try:
        return enum_cls(raw)
    except ValueError as exc:
        allowed = ", ".join(e.value for e in enum_cls)
        raise SemanticModelError(f"{where}: invalid value {raw!r} (allowed: {allowed})") from exc


def _parse_dimension(raw: dict[str, Any]) -> Dimension:
    key = raw["key"]
    return Dimension(
        key=key,
        type=_enum(DimensionType, raw.get("type"), f"dimension '{key}'"),
        display_key=raw.get("display_key"),
        synonyms=tuple(raw.get("synonyms") or ()),
    )


def _parse_measure(raw: dict[str, Any]) -> Measure:
    key = raw["key"]
    aggregation = _enum(Aggregation, raw.get("aggregation"), f"measure '{key}'")
    if aggregation is Aggregation.RATIO:
        raise SemanticModelError(f"measure '{key}': 'ratio' is reserved for derived metrics")
    return Measure(
        key=key,
        unit=_enum(Unit, raw.get("unit"), f"measure '{key}'"),
        aggregation=aggregation,
        weight_by=raw.get("weight_by"),
        numerator=raw.get("numerator"),
        denominator=raw.get("denominator"),
        synonyms=tuple(raw.get("synonyms") or ()),
        description=raw.get("description", ""),
    )


def _parse_derived(raw: dict[str, Any]) -> DerivedMetric:
    return DerivedMetric(
        key=raw["key"],
        numerator=raw["numerator"],
        denominator=raw["denominator"],
        synonyms=tuple(raw.get("synonyms") or ()),
    )


def validate_dictionary(dictionary: SemanticDictionary) -> list[str]:
    """Return a list of integrity errors (empty list = catalog is sound)."""
    errors: list[str] = []

    keys = dictionary.get_dimension_keys() + dictionary.get_metric_keys()
    seen: set[str] = set()
    for k in keys:
        if k in seen:
            errors.append(f"Duplicate key '{k}'.")
        seen.add(k)

    for dim in dictionary.dimensions:
        if dim.type is DimensionType.ID:
            target = dictionary.get_dimension_by_key(dim.display_key or "")
            if target is None or target.type is not DimensionType.NAME:
                errors.append(
                    f"Dimension '{dim.key}' must reference a name-typed display_key, "
                    f"got {dim.display_key!r}."
                )

    measure_keys = {m.key for m in dictionary.measures}

    def _check_summed(owner: str, role: str, ref: str | None) -> None:
        if not ref:
            errors.append(f"'{owner}' is missing its {role}.")
            return
        target = dictionary.get_measure_by_key(ref)
        if not isinstance(target, Measure):
            errors.append(f"'{owner}' {role} '{ref}' is not a known measure.")
        elif target.aggregation is not Aggregation.SUM:
            errors.append(f"'{owner}' {role} '{ref}' must be a sum-aggregated measure.")

    for m in dictionary.measures:
        if m.unit is Unit.PERCENT and m.aggregation is Aggregation.SUM:
            errors.append(f"Percent measure '{m.key}' cannot be summed; declare a weighting.")
        if m.aggregation is Aggregation.WEIGHTED_AVG:
            if not m.weight_by:
                errors.append(f"'{m.key}' is weighted_avg but has no weight_by.")
            elif m.weight_by not in measure_keys:
                errors.append(f"'{m.key}' weight_by '{m.weight_by}' is not a known measure.")
        if m.aggregation is Aggregation.WEIGHTED_RATIO:
            _check_summed(m.key, "numerator", m.numerator)
            _check_summed(m.key, "denominator", m.denominator)

    for d in dictionary.derived:
        _check_summed(d.key, "numerator", d.numerator)
        _check_summed(d.key, "denominator", d.denominator)

    return errors


def parse_dictionary(raw_yaml: dict[str, Any]) -> SemanticDictionary:
    """Build and validate a dictionary from already-parsed YAML."""
    dictionary = SemanticDictionary(
        version=raw_yaml.get("version", 1),
        dimensions=tuple(_parse_dimension(d) for d in raw_yaml.get("dimensions", [])),
        measures=tuple(_parse_measure(m) for m in raw_yaml.get("measures", [])),
        derived=tuple(_parse_derived(d) for d in raw_yaml.get("derived", [])),
    )
    errors = validate_dictionary(dictionary)
    if errors:
        raise SemanticModelError("Invalid semantic dictionary: " + " ".join(errors))
    return dictionary


# ── Public API ───────────────────────────────────────────

def load_dictionary_from(path: Path) -> SemanticDictionary:
    with open(path, encoding="utf-8") as f:
        raw = yaml.safe_load(f)
    dictionary = parse_dictionary(raw or {})
    logger.info(
        "Loaded semantic dictionary v%s: %d dimensions, %d measures, %d derived",
        dictionary.version, len(dictionary.dimensions),
        len(dictionary.measures), len(dictionary.derived),
    )
    return dictionary


@lru_cache
def load_dictionary() -> SemanticDictionary:
    """Load and cache the process-wide dictionary."""
    return load_dictionary_from(get_settings().semantic_model_path)


def get_measure_by_key(key: str) -> MetricDefinition | None:
    return load_dictionary().get_measure_by_key(key)


def find_measure(text: str) -> MetricDefinition | None:
    return load_dictionary().find_measure(text)


def find_dimension(text: str) -> Dimension | None:
    return load_dictionary().find_dimension(text)
