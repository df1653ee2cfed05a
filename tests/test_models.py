"""
Tests for database models.
"""

import pytest
from datetime import date
from sqlalchemy.exc import IntegrityError
from app import create_app, db
from models import Establishment, Inspection, ScoreRecalculationRun
from services.scoring.outcome import Outcome
from tests import setup_test_environment


@pytest.fixture
def app():
    """Create test Flask application"""
    setup_test_environment()
    app = create_app(testing=True)

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def establishment(app):
    """Create a test establishment"""
    establishment = Establishment(
        slug='lous-diner-1234',
        license_number='1234',
        dba_name="LOU'S DINER",
        facility_type='Restaurant',
        address='123 N STATE ST',
        zip='60601',
        risk_level=1
    )
    db.session.add(establishment)
    db.session.commit()
    return establishment


class TestEstablishmentModel:
    """Test cases for Establishment model"""

    def test_establishment_creation(self, app, establishment):
        """Test creating a new establishment record"""
        assert establishment.id is not None
        assert establishment.city == 'Chicago'
        assert establishment.cleanplate_score is None
        assert establishment.pass_streak == 0
        assert establishment.created_at is not None

    def test_to_dict_without_score(self, app, establishment):
        data = establishment.to_dict()

        assert data['slug'] == 'lous-diner-1234'
        assert data['risk_level'] == 1
        assert data['cleanplate_score'] is None
        assert data['score_label'] is None
        assert data['latest_inspection_date'] is None

    def test_to_dict_with_score(self, app, establishment):
        establishment.cleanplate_score = 91
        establishment.latest_result = 'Pass'
        establishment.latest_inspection_date = date(2024, 6, 1)
        db.session.commit()

        data = establishment.to_dict()

        assert data['cleanplate_score'] == 91
        assert data['score_label'] == 'Excellent'
        assert data['latest_inspection_date'] == '2024-06-01'

    def test_score_must_be_in_range(self, app, establishment):
        establishment.cleanplate_score = 101
        with pytest.raises(IntegrityError):
            db.session.commit()
        db.session.rollback()

    def test_slug_is_unique(self, app, establishment):
        db.session.add(Establishment(slug='lous-diner-1234', license_number='5678', dba_name='OTHER'))
        with pytest.raises(IntegrityError):
            db.session.commit()
        db.session.rollback()

    def test_inspections_ordered_most_recent_first(self, app, establishment):
        for i, (day, result) in enumerate([(date(2023, 1, 5), 'Fail'), (date(2024, 2, 1), 'Pass'),
                                           (date(2023, 8, 9), 'Pass w/ Conditions')]):
            db.session.add(Inspection(establishment=establishment, inspection_id=f'insp-{i}',
                                      inspection_date=day, results=result))
        db.session.commit()

        dates = [inspection.inspection_date for inspection in establishment.inspections]
        assert dates == [date(2024, 2, 1), date(2023, 8, 9), date(2023, 1, 5)]
        assert establishment.inspections.count() == 3


class TestInspectionModel:
    """Test cases for Inspection model"""

    @pytest.mark.parametrize('results, outcome, failure', [
        ('Pass', Outcome.PASS, False),
        ('Pass w/ Conditions', Outcome.CONDITIONAL_PASS, False),
        ('Fail', Outcome.FAIL, True),
        ('Out of Business', Outcome.UNKNOWN, False),
    ])
    def test_results_classified_on_ingest(self, app, establishment, results, outcome, failure):
        """Test outcome and failure flag are stored alongside the raw text"""
        inspection = Inspection(establishment=establishment, inspection_id='2590001',
                                inspection_date=date(2024, 5, 1), results=results)
        db.session.add(inspection)
        db.session.commit()

        stored = db.session.get(Inspection, inspection.id)
        assert stored.outcome is outcome
        assert stored.mentions_failure is failure
        assert stored.results == results

    def test_reclassified_when_results_change(self, app, establishment):
        inspection = Inspection(establishment=establishment, inspection_id='2590002',
                                inspection_date=date(2024, 5, 1), results='Pass')
        inspection.results = 'Fail'

        assert inspection.outcome is Outcome.FAIL
        assert inspection.mentions_failure is True

    def test_critical_count_cannot_exceed_violations(self, app, establishment):
        db.session.add(Inspection(establishment=establishment, inspection_id='2590003',
                                  inspection_date=date(2024, 5, 1), results='Fail',
                                  violation_count=1, critical_count=2))
        with pytest.raises(IntegrityError):
            db.session.commit()
        db.session.rollback()

    def test_to_record(self, app, establishment):
        inspection = Inspection(establishment=establishment, inspection_id='2590004',
                                inspection_date=date(2024, 5, 1), results='Pass w/ Conditions',
                                violation_count=3, critical_count=1)
        db.session.add(inspection)
        db.session.commit()

        record = inspection.to_record()

        assert record.outcome is Outcome.CONDITIONAL_PASS
        assert record.points == 70
        assert record.inspection_date == date(2024, 5, 1)
        assert record.violation_count == 3
        assert record.critical_violation_count == 1

    def test_to_dict(self, app, establishment):
        inspection = Inspection(establishment=establishment, inspection_id='2590005',
                                inspection_date=date(2024, 5, 1), results='Fail',
                                violation_count=4, critical_count=2)
        db.session.add(inspection)
        db.session.commit()

        data = inspection.to_dict()

        assert data['inspection_id'] == '2590005'
        assert data['inspection_date'] == '2024-05-01'
        assert data['outcome'] == 'fail'
        assert data['critical_count'] == 2

    def test_deleting_establishment_removes_inspections(self, app, establishment):
        db.session.add(Inspection(establishment=establishment, inspection_id='2590006',
                                  inspection_date=date(2024, 5, 1), results='Pass'))
        db.session.commit()

        db.session.delete(establishment)
        db.session.commit()

        assert Inspection.query.count() == 0


class TestScoreRecalculationRunModel:
    """Test cases for ScoreRecalculationRun model"""

    def test_run_defaults(self, app):
        run = ScoreRecalculationRun(trigger='cli')
        db.session.add(run)
        db.session.commit()

        data = run.to_dict()

        assert data['status'] == 'running'
        assert data['errors'] == []
        assert data['updated_count'] == 0
        assert data['started_at'] is not None
        assert data['completed_at'] is None
