"""
Tests for risk-adjusted time decay.
"""

import pytest
from datetime import date
from services.scoring.time_decay import (
    TimeDecayModel, calendar_months_between, days_between, expected_interval_days,
    half_life_months, months_between, recency_score, time_weight
)


class TestAgeHelpers:
    """Test cases for explicit-date age calculations"""

    def test_months_between_whole_months(self):
        assert months_between(date(2024, 1, 15), date(2024, 6, 15)) == 5.0
        assert months_between(date(2023, 6, 15), date(2024, 6, 15)) == 12.0

    def test_months_between_folds_days(self):
        """Test day difference is folded in as days/30"""
        assert months_between(date(2024, 1, 20), date(2024, 6, 15)) == pytest.approx(5 - 5 / 30)
        assert months_between(date(2024, 6, 5), date(2024, 6, 15)) == pytest.approx(10 / 30)

    def test_future_inspection_has_zero_age(self):
        assert months_between(date(2024, 7, 1), date(2024, 6, 15)) == 0.0
        assert calendar_months_between(date(2024, 7, 1), date(2024, 6, 15)) == 0
        assert days_between(date(2024, 7, 1), date(2024, 6, 15)) == 0

    def test_calendar_months_between(self):
        assert calendar_months_between(date(2021, 6, 30), date(2024, 6, 1)) == 36
        assert calendar_months_between(date(2021, 5, 1), date(2024, 6, 30)) == 37

    def test_days_between(self):
        assert days_between(date(2024, 6, 5), date(2024, 6, 15)) == 10
        assert days_between(date(2023, 6, 15), date(2024, 6, 15)) == 366


class TestTimeDecayModel:
    """Test cases for half-lives, weights and recency"""

    @pytest.mark.parametrize('tier, half_life, interval', [
        (1, 6, 180),
        (2, 12, 365),
        (3, 24, 730),
        (None, 12, 365),
        (0, 12, 365),
        (7, 12, 365),
        ('high', 12, 365),
    ])
    def test_tier_settings(self, tier, half_life, interval):
        """Test tier lookup with the medium-risk default"""
        assert half_life_months(tier) == half_life
        assert expected_interval_days(tier) == interval

    @pytest.mark.parametrize('tier', [1, 2, 3, None])
    def test_weight_is_one_when_fresh(self, tier):
        assert time_weight(0, tier) == 1.0

    @pytest.mark.parametrize('tier', [1, 2, 3])
    def test_weight_halves_at_half_life(self, tier):
        assert time_weight(half_life_months(tier), tier) == pytest.approx(0.5)

    @pytest.mark.parametrize('tier', [1, 2, 3])
    def test_weight_strictly_decreasing(self, tier):
        """Test decay is monotonic, including fractional months"""
        ages = [0, 0.1, 0.5, 1, 2.5, 6, 12, 24, 48]
        weights = [time_weight(age, tier) for age in ages]
        assert all(earlier > later for earlier, later in zip(weights, weights[1:]))

    def test_higher_risk_decays_faster(self):
        assert time_weight(12, 1) < time_weight(12, 2) < time_weight(12, 3)

    @pytest.mark.parametrize('days, tier, expected', [
        (0, 2, 100),
        (182, 2, 100),
        (183, 2, 85),
        (365, 2, 85),
        (366, 2, 60),
        (456, 2, 60),
        (457, 2, 40),
        (90, 1, 85),   # exactly half the interval is on schedule
        (89, 1, 100),
        (500, 3, 85),
        (1000, 3, 40),
    ])
    def test_recency_score(self, days, tier, expected):
        assert recency_score(days, tier) == expected

    def test_recency_labels(self):
        model = TimeDecayModel()
        assert model.recency_label(10, 2) == 'ahead_of_schedule'
        assert model.recency_label(300, 2) == 'on_schedule'
        assert model.recency_label(400, 2) == 'slightly_overdue'
        assert model.recency_label(800, 2) == 'overdue'
