from datetime import datetime
from app import db
from sqlalchemy import CheckConstraint
from sqlalchemy.orm import validates
from sqlalchemy.types import JSON
from services.scoring.outcome import (
    InspectionRecord, Outcome, classify_outcome, normalize_counts,
    mentions_failure as text_mentions_failure
)

class Establishment(db.Model):
    __tablename__ = 'establishments'
    __table_args__ = (
        CheckConstraint("risk_level IN (1, 2, 3)", name='ck_establishments_risk_level'),
        CheckConstraint("cleanplate_score BETWEEN 0 AND 100", name='ck_establishments_cleanplate_score'),
        db.Index('ix_establishments_cleanplate_score', 'cleanplate_score'),
        db.Index('ix_establishments_latest_inspection_date', 'latest_inspection_date'),
        db.Index('ix_establishments_zip', 'zip'),
    )

    id = db.Column(db.Integer, primary_key=True)
    slug = db.Column(db.String(255), unique=True, nullable=False)
    license_number = db.Column(db.String(64), unique=True, nullable=False)
    dba_name = db.Column(db.Text, nullable=False)
    aka_name = db.Column(db.Text)
    facility_type = db.Column(db.String(100))
    address = db.Column(db.Text)
    city = db.Column(db.String(100), default='Chicago')
    zip = db.Column(db.String(10))
    risk_level = db.Column(db.Integer)  # 1 = high risk, 3 = low risk

    # Owned by the score engine, never edited by hand
    cleanplate_score = db.Column(db.Integer)
    pass_streak = db.Column(db.Integer, default=0)
    latest_result = db.Column(db.Text)  # Denormalized from the latest inspection
    latest_inspection_date = db.Column(db.Date)
    total_inspections = db.Column(db.Integer, default=0)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    inspections = db.relationship(
        'Inspection',
        back_populates='establishment',
        lazy='dynamic',
        cascade='all, delete-orphan',
        order_by='Inspection.inspection_date.desc()'
    )

    def __repr__(self):
        return f'<Establishment {self.id}: {self.dba_name}>'

    def to_dict(self):
        """Convert establishment to dictionary for API responses"""
        from services.scoring.scoring_service import get_score_label

        return {
            'id': self.id,
            'slug': self.slug,
            'license_number': self.license_number,
            'dba_name': self.dba_name,
            'aka_name': self.aka_name,
            'facility_type': self.facility_type,
            'address': self.address,
            'city': self.city,
            'zip': self.zip,
            'risk_level': self.risk_level,
            'cleanplate_score': self.cleanplate_score,
            'score_label': get_score_label(self.cleanplate_score) if self.cleanplate_score is not None else None,
            'pass_streak': self.pass_streak or 0,
            'latest_result': self.latest_result,
            'latest_inspection_date': self.latest_inspection_date.isoformat() if self.latest_inspection_date else None,
            'total_inspections': self.total_inspections or 0,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None
        }


class Inspection(db.Model):
    """One municipal inspection; immutable once ingested"""
    __tablename__ = 'inspections'
    __table_args__ = (
        CheckConstraint("critical_count <= violation_count", name='ck_inspections_critical_count'),
        CheckConstraint("violation_count >= 0", name='ck_inspections_violation_count'),
        db.Index('ix_inspections_establishment_date', 'establishment_id', 'inspection_date'),
    )

    id = db.Column(db.Integer, primary_key=True)
    establishment_id = db.Column(db.Integer, db.ForeignKey('establishments.id', ondelete='CASCADE'), nullable=False)
    inspection_id = db.Column(db.String(64), unique=True, nullable=False)  # Source system id
    inspection_date = db.Column(db.Date, nullable=False)
    inspection_type = db.Column(db.String(100))
    results = db.Column(db.Text, nullable=False)  # Free text as published, e.g. 'Pass w/ Conditions'
    outcome = db.Column(db.Enum(Outcome, native_enum=False, length=20), nullable=False, default=Outcome.UNKNOWN)
    mentions_failure = db.Column(db.Boolean, nullable=False, default=False)
    violation_count = db.Column(db.Integer, default=0, nullable=False)
    critical_count = db.Column(db.Integer, default=0, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    establishment = db.relationship('Establishment', back_populates='inspections')

    @validates('results')
    def _classify_results(self, key, value):
        # Result text is classified once, here, at the ingestion boundary
        self.outcome = classify_outcome(value)
        self.mentions_failure = text_mentions_failure(value)
        return value

    def __repr__(self):
        return f'<Inspection {self.inspection_id} {self.inspection_date}: {self.results}>'

    def to_record(self) -> InspectionRecord:
        if self.outcome is None:
            return InspectionRecord.from_result_text(
                self.results, self.inspection_date, self.violation_count, self.critical_count
            )

        total, critical = normalize_counts(self.violation_count, self.critical_count)
        return InspectionRecord(
            result_text=self.results or '',
            inspection_date=self.inspection_date,
            violation_count=total,
            critical_violation_count=critical,
            outcome=self.outcome,
            mentions_failure=bool(self.mentions_failure)
        )

    def to_dict(self):
        """Convert inspection to dictionary for API responses"""
        return {
            'id': self.id,
            'establishment_id': self.establishment_id,
            'inspection_id': self.inspection_id,
            'inspection_date': self.inspection_date.isoformat() if self.inspection_date else None,
            'inspection_type': self.inspection_type,
            'results': self.results,
            'outcome': self.outcome.value if self.outcome else None,
            'violation_count': self.violation_count or 0,
            'critical_count': self.critical_count or 0
        }


class ScoreRecalculationRun(db.Model):
    __tablename__ = 'score_recalculation_runs'

    id = db.Column(db.Integer, primary_key=True)
    trigger = db.Column(db.String(20), nullable=False, default='api')  # 'api', 'cli', 'scheduler'
    status = db.Column(db.String(20), default='running')  # 'running', 'completed', 'partial', 'cancelled', 'failed'
    total_establishments = db.Column(db.Integer, default=0)
    updated_count = db.Column(db.Integer, default=0)
    unchanged_count = db.Column(db.Integer, default=0)
    skipped_count = db.Column(db.Integer, default=0)  # No inspection history
    error_count = db.Column(db.Integer, default=0)
    errors = db.Column(JSON, default=list)
    started_at = db.Column(db.DateTime, default=datetime.utcnow)
    completed_at = db.Column(db.DateTime)

    def __repr__(self):
        return f'<ScoreRecalculationRun {self.id} {self.status} - {self.updated_count} updated>'

    def to_dict(self):
        return {
            'id': self.id,
            'trigger': self.trigger,
            'status': self.status,
            'total_establishments': self.total_establishments or 0,
            'updated_count': self.updated_count or 0,
            'unchanged_count': self.unchanged_count or 0,
            'skipped_count': self.skipped_count or 0,
            'error_count': self.error_count or 0,
            'errors': self.errors or [],
            'started_at': self.started_at.isoformat() if self.started_at else None,
            'completed_at': self.completed_at.isoformat() if self.completed_at else None
        }
