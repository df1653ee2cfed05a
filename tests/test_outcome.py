"""
Tests for inspection outcome classification.
"""

import pytest
from datetime import date
from services.scoring.outcome import InspectionRecord, Outcome, classify, classify_outcome, mentions_failure


class TestOutcomeClassifier:
    """Test cases for result text classification"""

    @pytest.mark.parametrize('result_text, points', [
        ('Pass', 100),
        ('PASS', 100),
        ('Pass w/ Conditions', 70),
        ('pass with conditions', 70),
        ('Fail', 30),
        ('Failed pass', 30),
        ('Out of Business', 50),
        ('No Entry', 50),
        ('garbage', 50),
        ('', 50),
        (None, 50),
    ])
    def test_classify_points(self, result_text, points):
        """Test every canonical and dirty result text maps to a point value"""
        assert classify(result_text) == points

    def test_condition_wins_over_fail(self):
        """Test 'condition' takes priority over a co-occurring 'fail'"""
        assert classify_outcome('Pass w/ Conditions after Fail') is Outcome.CONDITIONAL_PASS

    @pytest.mark.parametrize('result_text, expected', [
        ('Fail', True),
        ('Pass w/ Conditions (prior FAIL)', True),
        ('Pass', False),
        (None, False),
    ])
    def test_mentions_failure(self, result_text, expected):
        assert mentions_failure(result_text) is expected

    def test_outcome_points(self):
        """Test the closed variant carries the point values"""
        assert Outcome.PASS.points == 100
        assert Outcome.CONDITIONAL_PASS.points == 70
        assert Outcome.FAIL.points == 30
        assert Outcome.UNKNOWN.points == 50


class TestInspectionRecord:
    """Test cases for building engine records at the ingestion boundary"""

    def test_from_result_text_classifies_once(self):
        """Test the record carries the outcome and failure flag"""
        record = InspectionRecord.from_result_text('Pass w/ Conditions (prior Fail)', date(2024, 1, 1), 2, 1)

        assert record.outcome is Outcome.CONDITIONAL_PASS
        assert record.mentions_failure is True
        assert record.points == 70
        assert record.violation_count == 2
        assert record.critical_violation_count == 1

    def test_dirty_counts_use_defaults(self):
        """Test missing, negative and non-numeric counts never raise"""
        record = InspectionRecord.from_result_text(None, date(2024, 1, 1), None, 'abc')
        assert record.result_text == ''
        assert record.outcome is Outcome.UNKNOWN
        assert record.violation_count == 0
        assert record.critical_violation_count == 0

        record = InspectionRecord.from_result_text('Fail', date(2024, 1, 1), -3, 2)
        assert record.violation_count == 0
        assert record.critical_violation_count == 0

    def test_criticals_clamped_to_total(self):
        """Test critical count never exceeds total violations"""
        record = InspectionRecord.from_result_text('Fail', date(2024, 1, 1), 2, 5)
        assert record.critical_violation_count == 2

