# dose_table.py

import json
import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd

logger = logging.getLogger("sliding_scale.dose_table")

GLUCOSE_MIN = 1.0
GLUCOSE_MAX = 33.0
GLUCOSE_STEP = 0.1
DEFAULT_GLUCOSE = 5.5


class DoseTableError(ValueError):
    """Raised when a dose table configuration is malformed."""


##############################
# 1. Meal Categories
##############################

class MealCategory(str, Enum):
    BREAKFAST = "breakfast"
    LUNCH = "lunch"
    TEA = "tea"

    @property
    def label(self) -> str:
        return _MEAL_LABELS[self]


_MEAL_LABELS = {
    MealCategory.BREAKFAST: "Breakfast",
    MealCategory.LUNCH: "Lunch",
    MealCategory.TEA: "Tea Time",
}


def quantize_glucose(value: float) -> float:
    """Snap a reading to the 0.1 mmol/L grid used by the input slider."""
    return round(float(value), 1)


def bucket_index(thresholds: Sequence[float], reading: float) -> int:
    """
    Index of the first threshold strictly greater than the reading.

    A reading equal to a threshold falls in the bucket above it; a reading
    at or past every threshold falls in the last bucket (len(thresholds)).
    """
    return int(np.searchsorted(np.asarray(thresholds, dtype=float), reading, side="right"))


########################################################################
# 2. Dose Table Configuration
########################################################################

@dataclass(frozen=True)
class SafetyBands:
    """Glucose limits that gate whether and how a dose is presented."""

    hypo_below: float
    ketoacidosis_above: float


@dataclass(frozen=True)
class DoseTable:
    """
    Sliding-scale configuration:
    - ordered glucose thresholds (mmol/L) splitting readings into buckets
    - one fast-acting dose row per meal category, one entry per bucket
    - fixed long-acting companion dose given at breakfast
    - optional hypoglycemia / ketoacidosis safety bands
    """

    name: str
    thresholds: Tuple[float, ...]
    doses: Mapping[MealCategory, Tuple[int, ...]]
    long_acting_units: int
    safety_bands: Optional[SafetyBands] = None
    description: str = field(default="", compare=False)

    def __post_init__(self):
        thresholds = tuple(_finite(f"{self.name}: threshold", t) for t in self.thresholds)
        if not thresholds:
            raise DoseTableError(f"{self.name}: at least one threshold is required")
        if any(b <= a for a, b in zip(thresholds, thresholds[1:])):
            raise DoseTableError(f"{self.name}: thresholds must be strictly ascending, got {list(thresholds)}")

        doses = {}
        for meal in MealCategory:
            if meal not in self.doses:
                raise DoseTableError(f"{self.name}: no dose row for {meal.value}")
            row = tuple(_whole_units(f"{self.name}: {meal.value} dose", d) for d in self.doses[meal])
            if len(row) != len(thresholds) + 1:
                raise DoseTableError(
                    f"{self.name}: {meal.value} row has {len(row)} doses, "
                    f"expected {len(thresholds) + 1} for {len(thresholds)} thresholds"
                )
            if any(d < 0 for d in row):
                raise DoseTableError(f"{self.name}: {meal.value} row contains a negative dose")
            doses[meal] = row

        long_acting = _whole_units(f"{self.name}: long-acting dose", self.long_acting_units)
        if long_acting < 0:
            raise DoseTableError(f"{self.name}: long-acting dose cannot be negative")

        bands = self.safety_bands
        if bands is not None:
            bands = SafetyBands(
                hypo_below=_finite(f"{self.name}: hypoglycemia limit", bands.hypo_below),
                ketoacidosis_above=_finite(f"{self.name}: ketoacidosis limit", bands.ketoacidosis_above),
            )
            if bands.hypo_below >= bands.ketoacidosis_above:
                raise DoseTableError(
                    f"{self.name}: hypoglycemia limit {bands.hypo_below} must be below "
                    f"ketoacidosis limit {bands.ketoacidosis_above}"
                )

        # frozen
        object.__setattr__(self, "thresholds", thresholds)
        object.__setattr__(self, "doses", doses)
        object.__setattr__(self, "long_acting_units", long_acting)
        object.__setattr__(self, "safety_bands", bands)

    @property
    def bucket_count(self) -> int:
        return len(self.thresholds) + 1

    def row(self, meal: MealCategory) -> Tuple[int, ...]:
        return self.doses[MealCategory(meal)]

    def range_labels(self) -> List[str]:
        """Column headings for the reference table, e.g. 'Under 9', '9 to 11.9', '21 and above'."""
        labels = [f"Under {_fmt(self.thresholds[0])}"]
        for lower, upper in zip(self.thresholds, self.thresholds[1:]):
            labels.append(f"{_fmt(lower)} to {_fmt(round(upper - GLUCOSE_STEP, 1))}")
        labels.append(f"{_fmt(self.thresholds[-1])} and above")
        return labels

    def as_frame(self) -> pd.DataFrame:
        """Reference table with one row per meal and one column per glucose range."""
        df = pd.DataFrame(
            [list(self.doses[meal]) for meal in MealCategory],
            index=[meal.label for meal in MealCategory],
            columns=self.range_labels(),
        )
        df.index.name = "Meal Time"
        return df


def _fmt(value: float) -> str:
    return f"{value:g}"


def _finite(what: str, value) -> float:
    if isinstance(value, (bool, str)):
        raise DoseTableError(f"{what} must be a number, got {value!r}")
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise DoseTableError(f"{what} must be a number, got {value!r}") from None
    if not math.isfinite(number):
        raise DoseTableError(f"{what} must be finite, got {value!r}")
    return number


def _whole_units(what: str, value) -> int:
    """Doses are whole units; a fractional value is rejected, never truncated."""
    number = _finite(what, value)
    if not number.is_integer():
        raise DoseTableError(f"{what} must be a whole number of units, got {value!r}")
    return int(number)


########################################################################
# 3. Presets & Loading
########################################################################

SIX_BUCKET = DoseTable(
    name="six_bucket",
    thresholds=(9, 12, 15, 18, 21),
    doses={
        MealCategory.BREAKFAST: (14, 16, 18, 20, 22, 24),
        MealCategory.LUNCH: (8, 10, 12, 14, 16, 18),
        MealCategory.TEA: (6, 8, 10, 12, 14, 16),
    },
    long_acting_units=30,
    safety_bands=SafetyBands(hypo_below=4.2, ketoacidosis_above=22.0),
    description="Six glucose ranges with hypoglycemia and ketoacidosis safety checks.",
)

FIVE_BUCKET = DoseTable(
    name="five_bucket",
    thresholds=(12, 15, 18, 21),
    doses={
        MealCategory.BREAKFAST: (16, 18, 20, 22, 24),
        MealCategory.LUNCH: (10, 12, 14, 16, 18),
        MealCategory.TEA: (8, 10, 12, 14, 16),
    },
    long_acting_units=28,
    description="Five glucose ranges, no safety checks.",
)

PRESETS: Dict[str, DoseTable] = {
    SIX_BUCKET.name: SIX_BUCKET,
    FIVE_BUCKET.name: FIVE_BUCKET,
}


def get_preset(name: str) -> DoseTable:
    try:
        return PRESETS[name]
    except KeyError:
        raise DoseTableError(f"Unknown dose preset {name!r}; choose one of {sorted(PRESETS)}") from None


def dose_table_from_dict(data: Mapping) -> DoseTable:
    """
    Build a DoseTable from a plain mapping, as stored in a JSON table file:

        {"name": ..., "thresholds": [...], "long_acting_units": 30,
         "doses": {"breakfast": [...], "lunch": [...], "tea": [...]},
         "safety_bands": {"hypo_below": 4.2, "ketoacidosis_above": 22}}
    """
    try:
        raw_doses = data["doses"]
        doses = {}
        for key, row in raw_doses.items():
            try:
                meal = MealCategory(key)
            except ValueError:
                raise DoseTableError(f"Unknown meal category {key!r} in dose table") from None
            doses[meal] = tuple(row)

        bands = data.get("safety_bands")
        safety_bands = None
        if bands is not None:
            safety_bands = SafetyBands(
                hypo_below=bands["hypo_below"],
                ketoacidosis_above=bands["ketoacidosis_above"],
            )

        return DoseTable(
            name=str(data.get("name", "custom")),
            thresholds=tuple(data["thresholds"]),
            doses=doses,
            long_acting_units=data["long_acting_units"],
            safety_bands=safety_bands,
            description=str(data.get("description", "")),
        )
    except (KeyError, TypeError, AttributeError) as exc:
        raise DoseTableError(f"Malformed dose table: {exc!r}") from exc


def load_dose_table(path: Union[str, Path]) -> DoseTable:
    path = Path(path)
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise DoseTableError(f"Cannot read dose table file {path}: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise DoseTableError(f"{path} is not valid JSON: {exc}") from exc
    table = dose_table_from_dict(data)
    logger.info("Loaded dose table %r from %s (%d buckets)", table.name, path, table.bucket_count)
    return table
