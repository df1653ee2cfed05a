"""Inspection outcome classification.

Result text from the municipal feed is free-form ("Pass", "Pass w/ Conditions",
"Fail", "Out of Business", ...). It is classified exactly once, when an
InspectionRecord is built, so the scorers only ever see the closed Outcome enum.
"""
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Optional


class Outcome(Enum):
    PASS = 'pass'
    CONDITIONAL_PASS = 'conditional_pass'
    FAIL = 'fail'
    UNKNOWN = 'unknown'

    @property
    def points(self) -> int:
        return OUTCOME_POINTS[self]


OUTCOME_POINTS = {
    Outcome.PASS: 100,
    Outcome.CONDITIONAL_PASS: 70,
    Outcome.FAIL: 30,
    Outcome.UNKNOWN: 50,
}


def classify_outcome(result_text: Optional[str]) -> Outcome:
    """Map result text to an Outcome; first match wins, unknown text is UNKNOWN"""
    text = (result_text or '').lower()

    if 'pass' in text and 'condition' not in text and 'fail' not in text:
        return Outcome.PASS
    if 'condition' in text:
        return Outcome.CONDITIONAL_PASS
    if 'fail' in text:
        return Outcome.FAIL
    return Outcome.UNKNOWN


def classify(result_text: Optional[str]) -> int:
    """Outcome points (100/70/30/50) for a result text"""
    return classify_outcome(result_text).points


def mentions_failure(result_text: Optional[str]) -> bool:
    return 'fail' in (result_text or '').lower()


def _count(value) -> int:
    try:
        return max(0, int(value or 0))
    except (TypeError, ValueError):
        return 0


def normalize_counts(violation_count, critical_violation_count):
    """Missing or negative counts become 0; criticals never exceed the total"""
    total = _count(violation_count)
    return total, min(_count(critical_violation_count), total)


@dataclass(frozen=True)
class InspectionRecord:
    """One inspection as the score engine sees it"""
    result_text: str
    inspection_date: date
    violation_count: int
    critical_violation_count: int
    outcome: Outcome
    mentions_failure: bool

    @property
    def points(self) -> int:
        return self.outcome.points

    @classmethod
    def from_result_text(cls, result_text: Optional[str], inspection_date: date,
                         violation_count=0, critical_violation_count=0) -> 'InspectionRecord':
        """Build a record, classifying the text and normalizing dirty counts"""
        total, critical = normalize_counts(violation_count, critical_violation_count)
        return cls(
            result_text=result_text or '',
            inspection_date=inspection_date,
            violation_count=total,
            critical_violation_count=critical,
            outcome=classify_outcome(result_text),
            mentions_failure=mentions_failure(result_text),
        )
