# dose_calculator.py

import logging
from dataclasses import dataclass
from typing import Optional, Tuple

from dose_table import DoseTable, MealCategory, bucket_index, quantize_glucose

logger = logging.getLogger("sliding_scale.dose_calculator")

HYPO_TITLE = "Low Blood Sugar - Treat Immediately"
HYPO_STEPS = (
    "Take 2 sips of orange juice",
    "Wait 5 minutes",
    "Repeat if necessary",
)

KETOACIDOSIS_TITLE = "High Blood Sugar - Risk of Ketoacidosis"
KETOACIDOSIS_STEPS = (
    "Deliver insulin as per dosage plan",
    "Perform a ketone test",
    "Wait 15 minutes before eating",
    "Monitor glucose levels over next 2 hours",
)
KETOACIDOSIS_NOTE = "Ensure glucose returns to normal levels"

EAT_NOW_NOTE = "Take insulin and eat straight away"


class HypoglycemiaError(ValueError):
    """Raised when a dose is requested for a reading in the hypoglycemia band."""


def hypo_note(table: DoseTable) -> str:
    if table.safety_bands is None:
        return ""
    limit = table.safety_bands.hypo_below
    return f"Only proceed with insulin when glucose is above {limit:g}, then eat immediately after dosing."


########################################################################
# 1. Dose Resolver
########################################################################

def resolve_dose(table: DoseTable, meal: Optional[MealCategory], glucose: float) -> Optional[int]:
    """
    Fast-acting dose (units) for a meal at a given glucose reading.

    Returns None when no meal has been chosen yet.

    The reading is rounded to the 0.1 mmol/L input grid before the bucket is
    found, so an off-grid reading just under a threshold (e.g. 11.96 against
    12) resolves in the bucket above it. Slider input is always on the grid.
    """
    if meal is None:
        return None
    idx = bucket_index(table.thresholds, quantize_glucose(glucose))
    return table.row(meal)[idx]


def is_hypoglycemic(table: DoseTable, glucose: float) -> bool:
    if table.safety_bands is None:
        return False
    return quantize_glucose(glucose) < table.safety_bands.hypo_below


def is_ketoacidosis_risk(table: DoseTable, glucose: float) -> bool:
    if table.safety_bands is None:
        return False
    return quantize_glucose(glucose) > table.safety_bands.ketoacidosis_above


@dataclass(frozen=True)
class DoseResult:
    """Everything the result view shows for one confirmed reading."""

    meal: MealCategory
    glucose: float
    fast_acting_units: int
    long_acting_units: Optional[int]
    ketoacidosis_risk: bool

    @property
    def caution_steps(self) -> Tuple[str, ...]:
        return KETOACIDOSIS_STEPS if self.ketoacidosis_risk else ()


def calculate(table: DoseTable, meal: MealCategory, glucose: float) -> DoseResult:
    """
    Resolve the full result for a meal and reading:
     1) refuse while the reading is in the hypoglycemia band
     2) fast-acting dose from the sliding scale
     3) long-acting companion dose at breakfast only
     4) flag ketoacidosis risk; the dose is still given
    """
    meal = MealCategory(meal)
    glucose = quantize_glucose(glucose)
    if is_hypoglycemic(table, glucose):
        raise HypoglycemiaError(
            f"Glucose {glucose:.1f} is below {table.safety_bands.hypo_below:g}; treat the low before dosing"
        )

    result = DoseResult(
        meal=meal,
        glucose=glucose,
        fast_acting_units=resolve_dose(table, meal, glucose),
        long_acting_units=table.long_acting_units if meal is MealCategory.BREAKFAST else None,
        ketoacidosis_risk=is_ketoacidosis_risk(table, glucose),
    )
    logger.debug("Resolved %s at %.1f mmol/L to %d units", meal.value, glucose, result.fast_acting_units)
    return result
