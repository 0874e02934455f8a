"""Tests for budget parsing and resolution."""

import pytest

from rollout_e2e.budget import (MonitorPreconditionError, check_allowance, resolve_policy, resolve_surge,
                                resolve_unavailable, validate_selector)
from rollout_e2e.models import Budget, BudgetPolicy, ResolvedBudget


class TestBudgetParse:
    @pytest.mark.parametrize("raw,expected", [
        (1, Budget(1)),
        ("1", Budget(1)),
        ("25%", Budget(25, True)),
        (" 50 % ", Budget(50, True)),
        (0, Budget(0)),
    ])
    def test_valid(self, raw, expected):
        assert Budget.parse(raw) == expected

    def test_none_uses_default(self):
        assert Budget.parse(None, "25%") == Budget(25, True)
        assert Budget.parse(None) == Budget(0)

    def test_budget_passes_through(self):
        b = Budget(3)
        assert Budget.parse(b) is b

    @pytest.mark.parametrize("raw", [-1, "-1", "abc", "25%%", "", True, "1.5"])
    def test_invalid(self, raw):
        with pytest.raises(ValueError):
            Budget.parse(raw)

    def test_str(self):
        assert str(Budget(25, True)) == "25%"
        assert str(Budget(2)) == "2"


class TestResolve:
    def test_absolute_values_ignore_desired(self):
        assert resolve_surge(Budget(2), 10) == 2
        assert resolve_unavailable(Budget(2), 10) == 2

    def test_quarter_of_four(self):
        assert resolve_surge(Budget(25, True), 4) == 1
        assert resolve_unavailable(Budget(25, True), 4) == 1

    def test_quarter_of_three_rounds_apart(self):
        assert resolve_surge(Budget(25, True), 3) == 1
        assert resolve_unavailable(Budget(25, True), 3) == 0

    def test_percent_of_zero(self):
        assert resolve_surge(Budget(25, True), 0) == 0
        assert resolve_unavailable(Budget(100, True), 0) == 0

    def test_over_hundred_percent(self):
        assert resolve_surge(Budget(150, True), 3) == 5
        assert resolve_unavailable(Budget(150, True), 3) == 4

    def test_deterministic(self):
        policy = BudgetPolicy.of("25%", "25%")
        assert resolve_policy(policy, 7) == resolve_policy(policy, 7)

    def test_resolve_policy(self):
        assert resolve_policy(BudgetPolicy.of("25%", "25%"), 3) == ResolvedBudget(max_surge=1, max_unavailable=0)

    def test_negative_desired_rejected(self):
        with pytest.raises(MonitorPreconditionError):
            resolve_policy(BudgetPolicy.of(1, 0), -1)


class TestCheckAllowance:
    def test_zero_zero_rejected(self):
        policy = BudgetPolicy.of(0, 0)
        with pytest.raises(MonitorPreconditionError, match="can never progress"):
            check_allowance(resolve_policy(policy, 4), policy, 4)

    def test_percent_rounding_to_zero_rejected(self):
        policy = BudgetPolicy.of(0, "25%")
        with pytest.raises(MonitorPreconditionError):
            check_allowance(resolve_policy(policy, 3), policy, 3)

    def test_zero_desired_allowed(self):
        policy = BudgetPolicy.of(0, 0)
        check_allowance(resolve_policy(policy, 0), policy, 0)

    def test_one_side_nonzero_allowed(self):
        policy = BudgetPolicy.of(1, 0)
        check_allowance(resolve_policy(policy, 4), policy, 4)


class TestValidateSelector:
    @pytest.mark.parametrize("selector", [
        "app=app",
        "app=app,component=my-unique-deployment",
        "app==web",
        "tier!=cache",
        "environment in (prod,qa)",
        "app.kubernetes.io/name=web,!canary",
        "partition",
    ])
    def test_valid(self, selector):
        validate_selector(selector)

    @pytest.mark.parametrize("selector", ["", "   ", "app=app,", "=value", "app=a b"])
    def test_invalid(self, selector):
        with pytest.raises(MonitorPreconditionError):
            validate_selector(selector)
