# calculator_session.py

import logging
from enum import Enum
from typing import Optional

from dose_calculator import DoseResult, HypoglycemiaError, calculate, is_hypoglycemic
from dose_table import (
    DEFAULT_GLUCOSE,
    GLUCOSE_MAX,
    GLUCOSE_MIN,
    DoseTable,
    MealCategory,
    quantize_glucose,
)

logger = logging.getLogger("sliding_scale.session")


class Step(str, Enum):
    SELECT_MEAL = "meal"
    ENTER_GLUCOSE = "glucose"
    SHOW_RESULT = "result"


class InvalidTransition(RuntimeError):
    """Raised when an action is not allowed from the current step."""


class CalculatorSession:
    """
    Three-step calculator flow: pick a meal, enter glucose, show the dose.

    Reset returns to meal selection from any step and is the only way back.
    """

    def __init__(self, table: DoseTable):
        self.table = table
        self.step = Step.SELECT_MEAL
        self.meal: Optional[MealCategory] = None
        self.glucose = DEFAULT_GLUCOSE
        self._result: Optional[DoseResult] = None

    def __repr__(self):
        return f"CalculatorSession(step={self.step.value}, meal={self.meal}, glucose={self.glucose})"

    @property
    def blocked(self) -> bool:
        """Glucose entry is showing hypoglycemia guidance instead of allowing confirmation."""
        return self.step is Step.ENTER_GLUCOSE and is_hypoglycemic(self.table, self.glucose)

    @property
    def result(self) -> Optional[DoseResult]:
        return self._result if self.step is Step.SHOW_RESULT else None

    def select_meal(self, meal: MealCategory) -> None:
        self._require(Step.SELECT_MEAL, "select a meal")
        self.meal = MealCategory(meal)
        self.step = Step.ENTER_GLUCOSE
        logger.info("Meal selected: %s", self.meal.value)

    def set_glucose(self, value: float) -> None:
        self._require(Step.ENTER_GLUCOSE, "adjust glucose")
        value = quantize_glucose(value)
        if not GLUCOSE_MIN <= value <= GLUCOSE_MAX:
            raise ValueError(f"Glucose {value} mmol/L is outside {GLUCOSE_MIN}-{GLUCOSE_MAX}")
        self.glucose = value

    def confirm(self) -> DoseResult:
        self._require(Step.ENTER_GLUCOSE, "calculate a dose")
        if self.blocked:
            logger.warning("Dose withheld: glucose %.1f is in the hypoglycemia band", self.glucose)
            raise HypoglycemiaError(f"Glucose {self.glucose:.1f} is too low to dose")
        self._result = calculate(self.table, self.meal, self.glucose)
        self.step = Step.SHOW_RESULT
        logger.info(
            "Dose calculated: %s at %.1f mmol/L -> %d units",
            self.meal.value,
            self.glucose,
            self._result.fast_acting_units,
        )
        return self._result

    def reset(self) -> None:
        if self.step is not Step.SELECT_MEAL:
            logger.info("Calculator reset from %s", self.step.value)
        self.step = Step.SELECT_MEAL
        self.meal = None
        self.glucose = DEFAULT_GLUCOSE
        self._result = None

    def _require(self, step: Step, action: str) -> None:
        if self.step is not step:
            logger.warning("Cannot %s while in step %r", action, self.step.value)
            raise InvalidTransition(f"Cannot {action} while in step {self.step.value!r}")
