import logging
import yaml
import os
from typing import Dict, Any, List, Tuple

logger = logging.getLogger(__name__)

DEFAULT_RISK_TIER = 2

def _merge(base: Dict[str, Any], overrides: Dict[str, Any]) -> None:
    """Merge overrides into base in place, dict into dict at every level"""
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            _merge(base[key], value)
        else:
            base[key] = value

class ScoringConfigManager:
    """Manages scoring configuration and thresholds"""

    def __init__(self, config_path: str = None):
        self.config_path = config_path or os.path.join('config', 'scoring_rules.yml')
        self.config = self._load_config()

    def _load_config(self) -> Dict[str, Any]:
        """Load scoring configuration from files or defaults"""
        config = self._default_config()
        if os.path.exists(self.config_path):
            try:
                with open(self.config_path, 'r') as f:
                    overrides = yaml.safe_load(f) or {}
            except (OSError, yaml.YAMLError) as e:
                logger.warning(f"Ignoring unreadable scoring rules at {self.config_path}: {str(e)}")
                return config
            _merge(config, overrides)
            logger.info(f"Loaded scoring rule overrides from {self.config_path}")
        return config

    @staticmethod
    def _default_config() -> Dict[str, Any]:
        # Default configuration
        return {
            'risk_tiers': {
                # Risk 1 (High) is inspected about every 6 months, Risk 3 (Low) every 24
                1: {'half_life_months': 6, 'expected_interval_days': 180},
                2: {'half_life_months': 12, 'expected_interval_days': 365},
                3: {'half_life_months': 24, 'expected_interval_days': 730},
            },
            'recency': {
                # Upper bounds on days_since / expected_interval
                'ahead_of_schedule': {'max_ratio': 0.5, 'inclusive': False, 'score': 100},
                'on_schedule': {'max_ratio': 1.0, 'inclusive': True, 'score': 85},
                'slightly_overdue': {'max_ratio': 1.25, 'inclusive': True, 'score': 60},
                'overdue': {'max_ratio': float('inf'), 'inclusive': True, 'score': 40},
            },
            'trend': {
                'min_inspections': 3,
                'neutral_score': 60,
                # (minimum delta, score, label) checked top-down
                'steps': [
                    (30, 100, 'strong_improvement'),
                    (15, 85, 'improving'),
                    (1, 70, 'slight_improvement'),
                    (-1, 60, 'stable'),
                    (-14, 45, 'slight_decline'),
                    (-29, 30, 'declining'),
                ],
                'floor_score': 15,
                'floor_label': 'strong_decline',
            },
            'track_record': {
                'lookback_months': 36,
                'fail_penalty': 2,
                'critical_penalty': 3,
                'max_penalty': 20,
                'points_per_penalty': 5,
            },
            'violations': {
                'critical_points': 15,
                'non_critical_points': 5,
            },
            'score_labels': [
                (90, 'Excellent'),
                (70, 'Good'),
                (50, 'Fair'),
                (0, 'Poor'),
            ],
        }

    def normalize_risk_tier(self, risk_tier) -> int:
        """Unknown or missing tiers score as medium risk.

        Only whole numbers are tiers: 1.5, True or "2.9" are not truncated.
        """
        if isinstance(risk_tier, bool):
            return DEFAULT_RISK_TIER
        if isinstance(risk_tier, int):
            tier = risk_tier
        elif isinstance(risk_tier, str) and risk_tier.strip().isdecimal():
            tier = int(risk_tier.strip())
        else:
            return DEFAULT_RISK_TIER
        return tier if tier in self.config['risk_tiers'] else DEFAULT_RISK_TIER

    def get_risk_tier_settings(self, risk_tier) -> Dict[str, Any]:
        return self.config['risk_tiers'][self.normalize_risk_tier(risk_tier)]

    def get_recency_bucket(self, ratio: float) -> Tuple[str, int]:
        """Return (label, score) for an on-schedule ratio"""
        for label, bucket in self.config['recency'].items():
            max_ratio = bucket['max_ratio']
            within = ratio <= max_ratio if bucket.get('inclusive', True) else ratio < max_ratio
            if within:
                return label, bucket['score']
        return 'overdue', self.config['recency']['overdue']['score']

    def get_trend_steps(self) -> List[Tuple[float, int, str]]:
        return [tuple(step) for step in self.config['trend']['steps']]

    def get_score_label(self, score: float) -> str:
        for minimum, label in self.config['score_labels']:
            if score >= minimum:
                return label
        return self.config['score_labels'][-1][1]
