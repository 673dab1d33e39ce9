"""
tests/test_actions.py — Action Rule Table Tests
================================================
Point values, caps, one-time flags, admin bounds and period keys.
"""

from __future__ import annotations

from datetime import date

import pytest

from pawprint.constants import CLIENT_ACTIONS, level_for_points, format_points
from pawprint.database.models import ActionType
from pawprint.engine.actions import (
    ACTION_RULES,
    LIFETIME_PERIOD,
    InvalidActionError,
    admin_rule,
    period_key,
    resolve_rule,
)


class TestResolveRule:
    def test_known_action(self):
        rule = resolve_rule("write_post")
        assert rule.points == 10
        assert rule.daily_cap == 50
        assert not rule.one_time

    def test_pet_registration_is_one_time(self):
        rule = resolve_rule(ActionType.PET_REGISTRATION)
        assert rule.one_time
        assert rule.points == 50
        assert rule.gated

    def test_uncapped_action_is_not_gated(self):
        assert not resolve_rule("receive_like").gated

    @pytest.mark.parametrize("bad", ["", "teleport", "admin_award", "item_purchase"])
    def test_unknown_or_non_earning_action_rejected(self, bad):
        with pytest.raises(InvalidActionError):
            resolve_rule(bad)

    def test_invalid_action_error_is_value_error(self):
        assert issubclass(InvalidActionError, ValueError)

    def test_daily_login_allows_one_award_per_day(self):
        rule = ACTION_RULES[ActionType.DAILY_LOGIN]
        assert rule.daily_cap == rule.points

    def test_client_actions_all_have_rules(self):
        for action in CLIENT_ACTIONS:
            assert action in ACTION_RULES


class TestAdminRule:
    def test_bounds(self):
        assert admin_rule(1).points == 1
        assert admin_rule(1_000_000).points == 1_000_000

    @pytest.mark.parametrize("bad", [0, -5, 1_000_001])
    def test_out_of_range(self, bad):
        with pytest.raises(ValueError):
            admin_rule(bad)

    @pytest.mark.parametrize("bad", [True, 2.5, "10"])
    def test_non_integer(self, bad):
        with pytest.raises(ValueError):
            admin_rule(bad)

    def test_custom_max(self):
        with pytest.raises(ValueError):
            admin_rule(501, max_points=500)

    def test_admin_rule_is_uncapped(self):
        rule = admin_rule(100)
        assert rule.action_type == ActionType.ADMIN_AWARD
        assert not rule.gated


class TestPeriodKey:
    def test_daily_period_is_iso_date(self):
        assert period_key(resolve_rule("write_post"), date(2026, 1, 2)) == "2026-01-02"

    def test_one_time_period_is_lifetime(self):
        assert period_key(resolve_rule("pet_registration"), date(2026, 1, 2)) == LIFETIME_PERIOD


class TestLevels:
    @pytest.mark.parametrize(
        ("points", "level"),
        [(0, 1), (99, 1), (100, 2), (499, 2), (500, 3), (3_000, 4), (100_000, 7), (10**9, 7)],
    )
    def test_level_table(self, points, level):
        assert level_for_points(points) == level

    def test_format_points(self):
        assert format_points(1234) == "1,234P"
