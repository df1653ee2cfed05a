import logging
import math
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, Optional, Sequence
from services.scoring.config_manager import ScoringConfigManager
from services.scoring.outcome import InspectionRecord
from services.scoring.score_calculator import ScoreCalculator, pass_streak
from services.scoring.time_decay import days_between

logger = logging.getLogger(__name__)

@dataclass
class ScoreResult:
    """Final CleanPlate Score with the breakdown that produced it"""
    score: int
    base_score: float
    components: Dict[str, float]
    modifiers: Dict[str, int] = field(default_factory=dict)
    pass_streak: int = 0
    trend_label: str = 'insufficient_history'
    recency_label: Optional[str] = None
    score_label: str = 'Poor'
    risk_tier: int = 2
    evaluated_on: Optional[date] = None

    def to_dict(self):
        """Convert to dictionary for API responses"""
        return {
            'score': self.score,
            'score_label': self.score_label,
            'base_score': round(self.base_score, 2),
            'components': {k: round(v, 2) for k, v in self.components.items()},
            'modifiers': dict(self.modifiers),
            'pass_streak': self.pass_streak,
            'trend': self.trend_label,
            'recency': self.recency_label,
            'risk_tier': self.risk_tier,
            'evaluated_on': self.evaluated_on.isoformat() if self.evaluated_on else None
        }


class ScoringService:
    """Main scoring service - weights component scores and applies modifiers"""

    def __init__(self, weights: Optional[Dict[str, float]] = None, modifiers: Optional[Dict] = None,
                 config_manager: Optional[ScoringConfigManager] = None):
        from config import Config

        self.weights = dict(weights or Config.SCORING_WEIGHTS)
        self.modifiers = dict(modifiers or Config.SCORE_MODIFIERS)
        self.config_manager = config_manager or ScoringConfigManager()
        self.score_calculator = ScoreCalculator(self.config_manager)
        self._validate_weights()

    def _validate_weights(self):
        expected = {'result', 'violations', 'trend', 'track_record', 'recency'}
        if set(self.weights) != expected:
            raise ValueError(f"Scoring weights must cover exactly {sorted(expected)}, got {sorted(self.weights)}")

        total_weight = sum(self.weights.values())
        if abs(total_weight - 1.0) > 0.001:
            raise ValueError(f"Scoring weights must sum to 1.0, got {total_weight:.4f}")

    def calculate_score(self, records: Sequence[InspectionRecord], risk_tier, as_of: date) -> ScoreResult:
        """Calculate the CleanPlate Score for an inspection window ordered most-recent-first"""
        risk_tier = self.config_manager.normalize_risk_tier(risk_tier)
        records = list(records)

        components = self.score_calculator.calculate_individual_scores(records, risk_tier, as_of)
        base_score = sum(components[name] * weight for name, weight in self.weights.items())

        streak = pass_streak(records)
        applied = self._apply_modifiers(records, streak, as_of)

        adjusted = min(100.0, max(0.0, base_score + sum(applied.values())))
        # Round half up, once, after every modifier
        final_score = int(math.floor(adjusted + 0.5))

        result = ScoreResult(
            score=final_score,
            base_score=base_score,
            components=components,
            modifiers=applied,
            pass_streak=streak,
            trend_label=self.score_calculator.trend_label(records),
            recency_label=self.score_calculator.recency_label(records, risk_tier, as_of),
            score_label=self.config_manager.get_score_label(final_score),
            risk_tier=risk_tier,
            evaluated_on=as_of
        )

        logger.debug(f"CleanPlate score {final_score} (base={base_score:.1f}, modifiers={applied}) "
                     f"from {len(records)} inspections at risk tier {risk_tier}")
        return result

    def _apply_modifiers(self, records: Sequence[InspectionRecord], streak: int, as_of: date) -> Dict[str, int]:
        applied = {}

        if streak >= self.modifiers['pass_streak_min']:
            applied['pass_streak_bonus'] = self.modifiers['pass_streak_bonus']

        # Applied once, however many recent failures there are
        recent_failure = any(
            record.mentions_failure and
            days_between(record.inspection_date, as_of) <= self.modifiers['recent_failure_days']
            for record in records
        )
        if recent_failure:
            applied['recent_failure_penalty'] = self.modifiers['recent_failure_penalty']

        return applied


_label_config = None


def get_score_label(score: float) -> str:
    """Excellent / Good / Fair / Poor for a 0-100 score"""
    global _label_config
    if _label_config is None:
        _label_config = ScoringConfigManager()
    return _label_config.get_score_label(score)
