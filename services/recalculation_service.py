import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional
from flask import current_app
from sqlalchemy.exc import DBAPIError, OperationalError
from app import db
from models import Establishment, Inspection, ScoreRecalculationRun
from services.scoring.data_extractor import InspectionDataExtractor
from services.scoring.scoring_service import ScoreResult, ScoringService

logger = logging.getLogger(__name__)

MAX_RECORDED_ERRORS = 50
LOCK_STRIPES = 64


class RecalculationError(Exception):
    """Base class for score recalculation failures"""


class EstablishmentNotFoundError(RecalculationError):
    def __init__(self, establishment_id):
        super().__init__(f"Establishment {establishment_id} not found")
        self.establishment_id = establishment_id


class NoInspectionsError(RecalculationError):
    def __init__(self, establishment_id):
        super().__init__("No inspections found; cannot score establishment")
        self.establishment_id = establishment_id


class TransientStoreError(RecalculationError):
    """Store I/O failed and retries were exhausted"""


@dataclass
class RecalculationOutcome:
    establishment_id: int
    slug: str
    score: int
    previous_score: Optional[int]
    pass_streak: int
    latest_result: str
    latest_date: date
    changed: bool
    breakdown: ScoreResult

    def to_dict(self):
        return {
            'slug': self.slug,
            'old_score': self.previous_score,
            'new_score': self.score,
            'pass_streak': self.pass_streak,
            'latest_result': self.latest_result,
            'latest_inspection_date': self.latest_date.isoformat() if self.latest_date else None,
            'changed': self.changed
        }


class StripedLock:
    """Fixed pool of locks picked by key, so the same establishment is never
    recalculated twice at once. Unrelated keys may share a stripe."""

    def __init__(self, stripes: int = LOCK_STRIPES):
        self._locks = [threading.Lock() for _ in range(stripes)]

    def __call__(self, key) -> threading.Lock:
        return self._locks[hash(key) % len(self._locks)]


_establishment_locks = StripedLock()


def _is_transient(error: Exception) -> bool:
    if isinstance(error, OperationalError):
        return True
    return isinstance(error, DBAPIError) and error.connection_invalidated


class ScoreRecalculationService:
    """Loads inspection history, computes the CleanPlate Score and writes it back"""

    def __init__(self, scoring_service: Optional[ScoringService] = None, inspection_window: Optional[int] = None,
                 max_retries: Optional[int] = None, retry_backoff: Optional[float] = None):
        from config import Config

        self.scoring_service = scoring_service or ScoringService()
        self.data_extractor = InspectionDataExtractor(self.scoring_service.config_manager)
        self.inspection_window = inspection_window or Config.INSPECTION_WINDOW
        self.max_retries = max(1, max_retries if max_retries is not None else Config.STORE_MAX_RETRIES)
        self.retry_backoff = retry_backoff if retry_backoff is not None else Config.STORE_RETRY_BACKOFF_SECONDS
        self.default_workers = Config.RECALC_MAX_WORKERS

    def recalculate(self, establishment_id: int, as_of: Optional[date] = None,
                    only_if_changed: bool = False) -> RecalculationOutcome:
        """Recalculate and persist the score for one establishment.

        Raises EstablishmentNotFoundError, NoInspectionsError (nothing is written)
        or TransientStoreError once store retries are exhausted.
        """
        as_of = as_of or date.today()
        with _establishment_locks(establishment_id):
            return self._with_retry(
                lambda: self._recalculate_once(establishment_id, as_of, only_if_changed),
                f"recalculate establishment {establishment_id}"
            )

    def recalculate_by_slug(self, slug: str, as_of: Optional[date] = None) -> RecalculationOutcome:
        establishment_id = self._with_retry(
            lambda: db.session.query(Establishment.id).filter_by(slug=slug).scalar(),
            f"look up establishment {slug}"
        )
        if establishment_id is None:
            raise EstablishmentNotFoundError(slug)
        return self.recalculate(establishment_id, as_of=as_of)

    def score_breakdown(self, establishment_id: int, as_of: Optional[date] = None) -> ScoreResult:
        """Compute the score and its components without writing anything"""
        as_of = as_of or date.today()
        establishment, records = self._with_retry(
            lambda: self._load(establishment_id),
            f"load establishment {establishment_id}"
        )
        risk_tier = self.data_extractor.extract_risk_tier(establishment)
        return self.scoring_service.calculate_score(records, risk_tier, as_of)

    def _load(self, establishment_id: int):
        establishment = db.session.get(Establishment, establishment_id)
        if establishment is None:
            raise EstablishmentNotFoundError(establishment_id)

        inspections = (
            Inspection.query
            .filter_by(establishment_id=establishment_id)
            .order_by(Inspection.inspection_date.desc(), Inspection.id.desc())
            .limit(self.inspection_window)
            .all()
        )
        records = self.data_extractor.extract_records(inspections)
        if not records:
            raise NoInspectionsError(establishment_id)

        return establishment, records

    def _recalculate_once(self, establishment_id: int, as_of: date, only_if_changed: bool) -> RecalculationOutcome:
        establishment, records = self._load(establishment_id)
        risk_tier = self.data_extractor.extract_risk_tier(establishment)
        result = self.scoring_service.calculate_score(records, risk_tier, as_of)
        latest = records[0]

        previous_score = establishment.cleanplate_score
        new_values = {
            'cleanplate_score': result.score,
            'pass_streak': result.pass_streak,
            'latest_result': latest.result_text,
            'latest_inspection_date': latest.inspection_date,
        }
        changed = any(getattr(establishment, name) != value for name, value in new_values.items())

        if changed or not only_if_changed:
            for name, value in new_values.items():
                setattr(establishment, name, value)
            establishment.total_inspections = establishment.inspections.count()
            establishment.updated_at = datetime.utcnow()
            db.session.commit()
            logger.info(f"Recalculated {establishment.slug}: {previous_score} -> {result.score} (risk {risk_tier})")
        else:
            logger.debug(f"Score unchanged for {establishment.slug}: {previous_score}")

        return RecalculationOutcome(
            establishment_id=establishment.id,
            slug=establishment.slug,
            score=result.score,
            previous_score=previous_score,
            pass_streak=result.pass_streak,
            latest_result=latest.result_text,
            latest_date=latest.inspection_date,
            changed=changed,
            breakdown=result
        )

    def _with_retry(self, operation, description: str):
        """Run a store operation, retrying transient failures with exponential backoff"""
        for attempt in range(self.max_retries):
            try:
                return operation()
            except RecalculationError:
                db.session.rollback()
                raise
            except DBAPIError as e:
                db.session.rollback()
                if not _is_transient(e):
                    raise
                if attempt == self.max_retries - 1:
                    logger.error(f"Failed to {description} after {self.max_retries} attempts: {str(e)}")
                    raise TransientStoreError(f"Store unavailable: {str(e.orig or e)}") from e
                delay = self.retry_backoff * (2 ** attempt)
                logger.warning(f"Transient store error during {description} (attempt {attempt + 1}), "
                               f"retrying in {delay:.1f}s: {str(e)}")
                time.sleep(delay)

    def recalculate_all(self, as_of: Optional[date] = None, max_workers: Optional[int] = None,
                        stop_event: Optional[threading.Event] = None, trigger: str = 'api',
                        limit: Optional[int] = None) -> ScoreRecalculationRun:
        """Sweep every establishment, writing only scores that changed.

        One establishment's failure is logged and counted without stopping the
        sweep. Setting stop_event stops the sweep between establishments.
        """
        as_of = as_of or date.today()
        max_workers = max(1, max_workers or self.default_workers)
        started = time.time()

        run = ScoreRecalculationRun(trigger=trigger, status='running', errors=[])
        db.session.add(run)
        db.session.commit()
        run_id = run.id

        try:
            query = db.session.query(Establishment.id).order_by(Establishment.id.asc())
            if limit:
                query = query.limit(limit)
            establishment_ids = [row[0] for row in query.all()]
        except DBAPIError as e:
            db.session.rollback()
            logger.error(f"Score sweep {run_id} could not list establishments: {str(e)}")
            return self._finish_run(run_id, {'error': 1}, [{'establishment_id': None, 'error': str(e)}], 'failed', 0)

        logger.info(f"Score sweep {run_id} started: {len(establishment_ids)} establishments, "
                    f"{max_workers} workers, as of {as_of.isoformat()}")

        counts = {'updated': 0, 'unchanged': 0, 'skipped': 0, 'error': 0, 'cancelled': 0}
        errors = []

        def record(establishment_id, status, error):
            counts[status] += 1
            if error and len(errors) < MAX_RECORDED_ERRORS:
                errors.append({'establishment_id': establishment_id, 'error': error})
            processed = sum(counts.values())
            if processed % 100 == 0:
                logger.info(f"Score sweep {run_id} progress {processed}/{len(establishment_ids)} {counts}")

        if max_workers == 1:
            for establishment_id in establishment_ids:
                status, error = self._sweep_one(establishment_id, as_of, stop_event)
                record(establishment_id, status, error)
        else:
            app = current_app._get_current_object()
            with ThreadPoolExecutor(max_workers=max_workers) as executor:
                futures = {
                    executor.submit(self._sweep_one_in_context, app, establishment_id, as_of, stop_event): establishment_id
                    for establishment_id in establishment_ids
                }
                for future in as_completed(futures):
                    status, error = future.result()
                    record(futures[future], status, error)

        if counts['cancelled']:
            status = 'cancelled'
        elif counts['error']:
            status = 'partial'
        else:
            status = 'completed'

        run = self._finish_run(run_id, counts, errors, status, len(establishment_ids))
        logger.info(f"Score sweep {run_id} {status} in {time.time() - started:.1f}s: "
                    f"updated={counts['updated']} unchanged={counts['unchanged']} "
                    f"skipped={counts['skipped']} errors={counts['error']}")
        return run

    def _sweep_one_in_context(self, app, establishment_id: int, as_of: date, stop_event):
        with app.app_context():
            try:
                return self._sweep_one(establishment_id, as_of, stop_event)
            finally:
                db.session.remove()

    def _sweep_one(self, establishment_id: int, as_of: date, stop_event):
        if stop_event is not None and stop_event.is_set():
            return 'cancelled', None

        try:
            outcome = self.recalculate(establishment_id, as_of=as_of, only_if_changed=True)
            return ('updated' if outcome.changed else 'unchanged'), None
        except NoInspectionsError:
            return 'skipped', None
        except Exception as e:
            db.session.rollback()
            logger.error(f"Failed to recalculate establishment {establishment_id} in sweep: {str(e)}")
            return 'error', str(e)

    def _finish_run(self, run_id: int, counts, errors, status: str, total: int) -> ScoreRecalculationRun:
        run = db.session.get(ScoreRecalculationRun, run_id)
        run.status = status
        run.total_establishments = total
        run.updated_count = counts.get('updated', 0)
        run.unchanged_count = counts.get('unchanged', 0)
        run.skipped_count = counts.get('skipped', 0)
        run.error_count = counts.get('error', 0)
        run.errors = list(errors)
        run.completed_at = datetime.utcnow()
        db.session.commit()
        return run
