import logging
from datetime import date
from flask import Blueprint, jsonify, request
from models import Establishment, ScoreRecalculationRun
from app import db
from services.recalculation_service import (
    EstablishmentNotFoundError, NoInspectionsError, ScoreRecalculationService, TransientStoreError
)
from utils.auth import admin_required, rate_limit
from utils.validators import validate_establishment_filters, validate_recalculate_all, validate_score_query

logger = logging.getLogger(__name__)

api_bp = Blueprint('api', __name__)

@api_bp.route('/healthz')
def health_check():
    """API health check"""
    return jsonify({"ok": True})

@api_bp.route('/status')
def status():
    """Scheduler, cache and last sweep status"""
    from services.scheduler_service import get_scheduler_status
    from utils.cache import get_cache_stats

    last_run = ScoreRecalculationRun.query.order_by(ScoreRecalculationRun.id.desc()).first()
    return jsonify({
        "scheduler": get_scheduler_status(),
        "cache": get_cache_stats(),
        "last_recalculation": last_run.to_dict() if last_run else None
    })

@api_bp.route('/establishments')
def list_establishments():
    """List scored establishments with simple filters"""
    try:
        filters = validate_establishment_filters(request.args.to_dict())
    except ValueError as e:
        return jsonify({"success": False, "error": str(e)}), 400

    query = Establishment.query
    if filters.get('risk_level') is not None:
        query = query.filter(Establishment.risk_level == filters['risk_level'])
    if filters.get('min_score') is not None:
        query = query.filter(Establishment.cleanplate_score >= filters['min_score'])
    if filters.get('max_score') is not None:
        query = query.filter(Establishment.cleanplate_score <= filters['max_score'])
    if filters.get('zip'):
        query = query.filter(Establishment.zip == filters['zip'])

    sort_column = getattr(Establishment, filters['sort'])
    query = query.order_by(sort_column.desc().nulls_last() if filters['order'] == 'desc' else sort_column.asc().nulls_last(),
                           Establishment.id.asc())

    total = query.count()
    page, per_page = filters['page'], filters['per_page']
    establishments = query.offset((page - 1) * per_page).limit(per_page).all()

    return jsonify({
        "data": [establishment.to_dict() for establishment in establishments],
        "meta": {
            "total": total,
            "page": page,
            "per_page": per_page,
            "has_more": page * per_page < total
        }
    })

@api_bp.route('/establishments/<slug>')
def get_establishment(slug):
    establishment = Establishment.query.filter_by(slug=slug).first()
    if establishment is None:
        return jsonify({"success": False, "error": "Establishment not found"}), 404

    data = establishment.to_dict()
    data['recent_inspections'] = [inspection.to_dict() for inspection in establishment.inspections.limit(5)]
    return jsonify(data)

@api_bp.route('/establishments/<slug>/score-breakdown')
def score_breakdown(slug):
    """Component scores behind an establishment's CleanPlate Score (no write)"""
    from utils.cache import cache_score_breakdown, get_cached_score_breakdown

    try:
        params = validate_score_query(request.args.to_dict())
    except ValueError as e:
        return jsonify({"success": False, "error": str(e)}), 400

    establishment = Establishment.query.filter_by(slug=slug).first()
    if establishment is None:
        return jsonify({"success": False, "error": "Establishment not found"}), 404

    as_of = params.get('as_of') or date.today()
    cached = get_cached_score_breakdown(establishment, as_of)
    if cached is not None:
        return jsonify(cached)

    try:
        breakdown = ScoreRecalculationService().score_breakdown(establishment.id, as_of=as_of)
    except NoInspectionsError as e:
        return jsonify({"success": False, "error": str(e)}), 422
    except TransientStoreError as e:
        logger.error(f"Score breakdown failed for {slug}: {str(e)}")
        return jsonify({"success": False, "error": "Score store unavailable"}), 503

    data = breakdown.to_dict()
    data['slug'] = slug
    cache_score_breakdown(establishment, as_of, data)
    return jsonify(data)

@api_bp.route('/establishments/<slug>/recalculate-score', methods=['POST'])
@rate_limit(max_requests=10, window_seconds=60)
def recalculate_score(slug):
    """Recalculate and store the CleanPlate Score for one establishment"""
    try:
        outcome = ScoreRecalculationService().recalculate_by_slug(slug)
    except EstablishmentNotFoundError:
        return jsonify({"success": False, "error": "Establishment not found"}), 404
    except NoInspectionsError as e:
        return jsonify({"success": False, "error": str(e)}), 422
    except TransientStoreError as e:
        logger.error(f"Score recalculation failed for {slug}: {str(e)}")
        return jsonify({"success": False, "error": "Failed to recalculate score"}), 503

    data = outcome.to_dict()
    data['success'] = True
    return jsonify(data)

@api_bp.route('/establishments/recalculate-all', methods=['POST'])
@admin_required
@rate_limit(max_requests=2, window_seconds=300)  # 2 requests per 5 minutes
def recalculate_all_scores():
    """Recalculate every establishment's score, writing only changes"""
    try:
        params = validate_recalculate_all(request.get_json(silent=True) or {})
    except ValueError as e:
        return jsonify({"success": False, "error": str(e)}), 400

    try:
        run = ScoreRecalculationService().recalculate_all(
            as_of=params.get('as_of'),
            max_workers=params.get('max_workers'),
            limit=params.get('limit'),
            trigger='api'
        )
    except Exception as e:
        db.session.rollback()
        logger.error(f"Bulk score recalculation failed: {str(e)}")
        return jsonify({"success": False, "error": str(e)}), 500

    return jsonify({
        "success": run.status in ('completed', 'partial'),
        "message": f"Updated {run.updated_count} of {run.total_establishments} establishments",
        "run": run.to_dict()
    })

@api_bp.route('/recalculation-runs')
def recalculation_runs():
    """Most recent bulk recalculation runs"""
    limit = min(max(request.args.get('limit', 20, type=int), 1), 100)
    runs = ScoreRecalculationRun.query.order_by(ScoreRecalculationRun.id.desc()).limit(limit).all()
    return jsonify({"data": [run.to_dict() for run in runs]})
