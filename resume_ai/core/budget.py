"""
Daily spend budget checks.

Compares projected spend against the tier's daily budget and grades how
close it is to the limit.
"""

from dataclasses import dataclass
from enum import Enum, auto

from resume_ai.config.loader import AlertThresholds


class BudgetWarning(Enum):
    """Warning levels in order of severity."""
    NONE = auto()
    LOW = auto()       # Past the warning threshold
    CRITICAL = auto()  # Past the critical threshold


@dataclass(frozen=True)
class BudgetCheck:
    """Outcome of a budget check for one prospective request."""
    can_proceed: bool
    remaining_budget: float
    usage_percent: float
    warning_level: BudgetWarning


def check_budget(
    daily_budget: float,
    current_daily_cost: float,
    estimated_request_cost: float,
    thresholds: AlertThresholds
) -> BudgetCheck:
    """Check whether a request fits within the daily budget.

    A daily budget of zero or less means the tier is quota-limited rather
    than spend-limited, so the request is always allowed.

    Args:
        daily_budget: Budget for the day in dollars
        current_daily_cost: Spend already recorded today
        estimated_request_cost: Estimated cost of the next request
        thresholds: Warning/critical percentages

    Returns:
        BudgetCheck describing the projected state
    """
    projected = current_daily_cost + estimated_request_cost

    if daily_budget <= 0:
        return BudgetCheck(
            can_proceed=True,
            remaining_budget=0.0,
            usage_percent=0.0,
            warning_level=BudgetWarning.NONE
        )

    usage_percent = projected / daily_budget * 100

    warning_level = BudgetWarning.NONE
    if usage_percent > thresholds.critical:
        warning_level = BudgetWarning.CRITICAL
    elif usage_percent > thresholds.warning:
        warning_level = BudgetWarning.LOW

    return BudgetCheck(
        can_proceed=projected <= daily_budget,
        remaining_budget=max(0.0, daily_budget - projected),
        usage_percent=usage_percent,
        warning_level=warning_level
    )
