import logging
from datetime import date
from typing import Dict, List, Optional, Sequence
from services.scoring.config_manager import ScoringConfigManager
from services.scoring.outcome import InspectionRecord, Outcome
from services.scoring.time_decay import (
    TimeDecayModel, calendar_months_between, days_between, months_between
)

logger = logging.getLogger(__name__)

NEUTRAL_RESULT_SCORE = 50
NO_HISTORY_RECENCY_SCORE = 40

class ScoreCalculator:
    """Calculates the five CleanPlate component scores from inspection history.

    Every scorer takes the window of recent inspections ordered most-recent-first,
    the establishment's risk tier and the evaluation date, and returns 0-100.
    """

    def __init__(self, config_manager: Optional[ScoringConfigManager] = None):
        self.config_manager = config_manager or ScoringConfigManager()
        self.time_decay = TimeDecayModel(self.config_manager)

    def calculate_individual_scores(self, records: Sequence[InspectionRecord], risk_tier,
                                    as_of: date) -> Dict[str, float]:
        """Calculate all component scores for an inspection window"""
        scoring_methods = {
            'result': self.score_result,
            'violations': self.score_violations,
            'trend': self.score_trend,
            'track_record': self.score_track_record,
            'recency': self.score_recency
        }

        scores = {}
        for component, method in scoring_methods.items():
            scores[component] = method(records, risk_tier, as_of)
            logger.debug(f"Calculated {component} score: {scores[component]:.1f}")

        return scores

    def score_result(self, records: Sequence[InspectionRecord], risk_tier, as_of: date) -> float:
        """Time-weighted mean of outcome points"""
        if not records:
            return NEUTRAL_RESULT_SCORE

        weighted_sum = 0.0
        total_weight = 0.0

        for record in records:
            weight = self.time_decay.time_weight(months_between(record.inspection_date, as_of), risk_tier)
            weighted_sum += record.points * weight
            total_weight += weight

        return weighted_sum / total_weight if total_weight > 0 else NEUTRAL_RESULT_SCORE

    def score_violations(self, records: Sequence[InspectionRecord], risk_tier=None, as_of: date = None) -> float:
        """Penalize violations cited at the latest inspection"""
        if not records:
            return 100

        latest = records[0]
        rules = self.config_manager.config['violations']
        non_critical = latest.violation_count - latest.critical_violation_count
        penalty = (latest.critical_violation_count * rules['critical_points'] +
                   non_critical * rules['non_critical_points'])
        return max(0, 100 - penalty)

    def trend_delta(self, records: Sequence[InspectionRecord]) -> Optional[float]:
        """Recent two outcomes vs the previous two (or one); None without enough history"""
        if len(records) < self.config_manager.config['trend']['min_inspections']:
            return None

        points = [record.points for record in records[:4]]
        recent_avg = (points[0] + points[1]) / 2
        previous_avg = (points[2] + points[3]) / 2 if len(points) >= 4 else points[2]
        return recent_avg - previous_avg

    def score_trend(self, records: Sequence[InspectionRecord], risk_tier=None, as_of: date = None) -> float:
        return self._trend_bucket(self.trend_delta(records))[0]

    def trend_label(self, records: Sequence[InspectionRecord]) -> str:
        delta = self.trend_delta(records)
        if delta is None:
            return 'insufficient_history'
        return self._trend_bucket(delta)[1]

    def _trend_bucket(self, delta: Optional[float]):
        rules = self.config_manager.config['trend']
        if delta is None:
            return rules['neutral_score'], 'stable'

        for minimum, score, label in self.config_manager.get_trend_steps():
            if delta >= minimum:
                return score, label
        return rules['floor_score'], rules['floor_label']

    def score_track_record(self, records: Sequence[InspectionRecord], risk_tier, as_of: date) -> float:
        """Penalize failures and critical violations within the lookback window"""
        rules = self.config_manager.config['track_record']
        penalty_points = 0

        for record in records:
            if calendar_months_between(record.inspection_date, as_of) > rules['lookback_months']:
                continue
            if record.mentions_failure:
                penalty_points += rules['fail_penalty']
            if record.critical_violation_count > 0:
                penalty_points += rules['critical_penalty']

        capped_penalty = min(penalty_points, rules['max_penalty'])
        return max(0, 100 - capped_penalty * rules['points_per_penalty'])

    def score_recency(self, records: Sequence[InspectionRecord], risk_tier, as_of: date) -> float:
        if not records:
            return NO_HISTORY_RECENCY_SCORE
        return self.time_decay.recency_score(days_between(records[0].inspection_date, as_of), risk_tier)

    def recency_label(self, records: Sequence[InspectionRecord], risk_tier, as_of: date) -> Optional[str]:
        if not records:
            return None
        return self.time_decay.recency_label(days_between(records[0].inspection_date, as_of), risk_tier)


def pass_streak(records: List[InspectionRecord]) -> int:
    """Consecutive clean passes counting back from the latest inspection"""
    streak = 0
    for record in records:
        if record.outcome is not Outcome.PASS:
            break
        streak += 1
    return streak
