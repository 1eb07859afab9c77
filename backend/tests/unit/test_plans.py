"""
Unit tests for the plan catalog and credit costs.
"""

import pytest

from core.plans import (
    CREDIT_COSTS,
    DEFAULT_PLAN,
    PLANS,
    credit_cost,
    get_plan_limit,
    is_valid_plan,
)


class TestPlanCatalog:
    """Tests for plan lookup."""

    def test_catalog_has_free_and_pro(self):
        assert set(PLANS) == {"free", "pro"}
        assert DEFAULT_PLAN == "free"

    def test_plan_limits(self):
        assert get_plan_limit("free") == 50
        assert get_plan_limit("pro") == 500

    def test_pro_plan_pricing(self):
        assert PLANS["pro"]["name"] == "SuperTw33t"
        assert PLANS["pro"]["price_monthly"] == 5.99
        assert PLANS["free"]["price_monthly"] == 0

    @pytest.mark.parametrize("plan_type", [None, "", "enterprise", "PRO"])
    def test_unknown_plan_resolves_to_free_limit(self, plan_type):
        """A corrupted or unknown plan never grants more than the free allowance."""
        assert get_plan_limit(plan_type) == 50

    def test_is_valid_plan(self):
        assert is_valid_plan("free")
        assert is_valid_plan("pro")
        assert not is_valid_plan("premium")
        assert not is_valid_plan(None)


class TestCreditCost:
    """Tests for credit_cost()."""

    def test_single_item_costs(self):
        assert credit_cost("tweet") == CREDIT_COSTS["tweet"] == 5
        assert credit_cost("reply") == 5

    def test_thread_is_charged_per_part(self):
        assert credit_cost("thread", parts=6) == 6
        assert credit_cost("thread") == 1

    def test_parts_ignored_for_tweets(self):
        assert credit_cost("tweet", parts=10) == 5

    def test_unknown_content_type(self):
        with pytest.raises(ValueError, match="Unknown content type"):
            credit_cost("video")

    def test_thread_requires_a_part(self):
        with pytest.raises(ValueError):
            credit_cost("thread", parts=0)
