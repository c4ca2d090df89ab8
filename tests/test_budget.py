"""
Unit tests for daily budget checks.
"""

import pytest

from resume_ai.config.loader import AlertThresholds
from resume_ai.core.budget import BudgetWarning, check_budget

THRESHOLDS = AlertThresholds(warning=75, critical=90)


class TestCheckBudget:
    """Test check_budget behavior."""

    def test_within_budget(self):
        check = check_budget(1.00, 0.20, 0.10, THRESHOLDS)

        assert check.can_proceed is True
        assert check.remaining_budget == pytest.approx(0.70)
        assert check.usage_percent == pytest.approx(30.0)
        assert check.warning_level == BudgetWarning.NONE

    def test_warning_level(self):
        check = check_budget(1.00, 0.70, 0.10, THRESHOLDS)

        assert check.can_proceed is True
        assert check.warning_level == BudgetWarning.LOW

    def test_critical_level(self):
        check = check_budget(1.00, 0.90, 0.05, THRESHOLDS)

        assert check.can_proceed is True
        assert check.warning_level == BudgetWarning.CRITICAL

    def test_over_budget(self):
        check = check_budget(0.50, 0.45, 0.10, THRESHOLDS)

        assert check.can_proceed is False
        assert check.remaining_budget == 0.0
        assert check.warning_level == BudgetWarning.CRITICAL

    def test_exactly_at_budget_can_proceed(self):
        check = check_budget(1.00, 0.50, 0.50, THRESHOLDS)
        assert check.can_proceed is True

    def test_zero_budget_disables_check(self):
        """Test quota-limited tiers are never blocked on spend."""
        check = check_budget(0.0, 12.0, 3.0, THRESHOLDS)

        assert check.can_proceed is True
        assert check.usage_percent == 0.0
        assert check.warning_level == BudgetWarning.NONE
