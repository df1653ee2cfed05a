"""Risk-adjusted time decay and recency.

Older inspections count for less when averaging outcomes. How fast they fade
depends on the risk tier: a high-risk kitchen (tier 1) is expected back every
6 months, so its history halves in weight every 6 months, while a low-risk
establishment (tier 3) keeps its history relevant for 24.

Every function takes the evaluation date explicitly; nothing here reads the
clock.
"""
import math
from datetime import date
from typing import Optional
from services.scoring.config_manager import ScoringConfigManager


def months_between(inspection_date: date, as_of: date) -> float:
    """Calendar months between two dates with the day difference folded in as days/30"""
    if inspection_date >= as_of:
        return 0.0
    months = (as_of.year - inspection_date.year) * 12 + (as_of.month - inspection_date.month)
    return months + (as_of.day - inspection_date.day) / 30


def calendar_months_between(inspection_date: date, as_of: date) -> int:
    if inspection_date >= as_of:
        return 0
    return (as_of.year - inspection_date.year) * 12 + (as_of.month - inspection_date.month)


def days_between(inspection_date: date, as_of: date) -> int:
    return max(0, (as_of - inspection_date).days)


class TimeDecayModel:
    """Half-lives, expected intervals and recency buckets per risk tier"""

    def __init__(self, config_manager: Optional[ScoringConfigManager] = None):
        self.config_manager = config_manager or ScoringConfigManager()

    def half_life_months(self, risk_tier) -> float:
        return self.config_manager.get_risk_tier_settings(risk_tier)['half_life_months']

    def expected_interval_days(self, risk_tier) -> int:
        return self.config_manager.get_risk_tier_settings(risk_tier)['expected_interval_days']

    def time_weight(self, months_since_inspection: float, risk_tier) -> float:
        """exp(-ln2 / half_life * age): 1.0 when fresh, 0.5 after one half-life"""
        decay_rate = math.log(2) / self.half_life_months(risk_tier)
        return math.exp(-decay_rate * max(0.0, months_since_inspection))

    def _recency_bucket(self, days_since_latest: float, risk_tier):
        ratio = days_since_latest / self.expected_interval_days(risk_tier)
        return self.config_manager.get_recency_bucket(ratio)

    def recency_score(self, days_since_latest: float, risk_tier) -> int:
        return self._recency_bucket(days_since_latest, risk_tier)[1]

    def recency_label(self, days_since_latest: float, risk_tier) -> str:
        return self._recency_bucket(days_since_latest, risk_tier)[0]


_default_model = None


def _model() -> TimeDecayModel:
    global _default_model
    if _default_model is None:
        _default_model = TimeDecayModel()
    return _default_model


def half_life_months(risk_tier) -> float:
    return _model().half_life_months(risk_tier)


def expected_interval_days(risk_tier) -> int:
    return _model().expected_interval_days(risk_tier)


def time_weight(months_since_inspection: float, risk_tier) -> float:
    return _model().time_weight(months_since_inspection, risk_tier)


def recency_score(days_since_latest: float, risk_tier) -> int:
    return _model().recency_score(days_since_latest, risk_tier)
