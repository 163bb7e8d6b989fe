"""
================================================================================
AniSync v1.0 - Mapping API Routes
================================================================================
Flask blueprint exposing the Sync orchestrator as JSON.

ENDPOINTS:
  GET  /api/search?q=&type=          - Resolve a free-text query
  GET  /api/media/<id>               - Resolve one AniList id
  GET  /api/seasonal/<kind>?type=    - trending|season|popular|top|next_season
  GET  /api/export/<type>            - Dump stored records
  GET  /api/providers                - Registered providers + circuit state
  GET  /api/health                   - Liveness and database check

ERRORS:
  400 invalid parameters, 502 AniList unreachable, 500 storage failure
================================================================================
"""

from flask import Blueprint, Response, current_app, jsonify, request
import asyncio
import logging

from ..errors import CanonicalLookupError, StorageError
from ..log import log
from ..sync import SEASONAL_KINDS, Sync
from .validators import validate_canonical_id, validate_media_type, validate_query

logger = logging.getLogger(__name__)

mapping_api_bp = Blueprint('mapping_api', __name__)


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def run_async(coro):
    """
    Run async coroutine in sync Flask context.

    Flask routes are sync, but the mapping engine is async.
    Each request gets a fresh event loop.
    """
    return asyncio.run(coro)


def get_sync() -> Sync:
    return current_app.extensions['anisync']


def _error(message: str, status: int):
    return jsonify({'error': message}), status


@mapping_api_bp.errorhandler(CanonicalLookupError)
def handle_canonical_error(e):
    log(f"AniList lookup failed: {e}", logging.WARNING)
    return _error(f"Canonical metadata service unavailable: {e}", 502)


@mapping_api_bp.errorhandler(StorageError)
def handle_storage_error(e):
    log(f"Storage failure: {e}", logging.ERROR)
    return _error("Storage failure", 500)


# =============================================================================
# MAPPING ROUTES
# =============================================================================

@mapping_api_bp.route('/api/search', methods=['GET'])
def search():
    """
    Resolve a query to canonical records.

    Query params:
        q: search text
        type: ANIME or MANGA (default ANIME)

    Returns:
        {"results": [CanonicalRecord, ...]}
    """
    query, error = validate_query(request.args.get('q'))
    if error:
        return _error(error, 400)
    media_type, error = validate_media_type(request.args.get('type'), default='ANIME')
    if error:
        return _error(error, 400)

    records = run_async(get_sync().search(query, media_type))
    return jsonify({'results': [r.to_dict() for r in records]})


@mapping_api_bp.route('/api/media/<canonical_id>', methods=['GET'])
def get_media(canonical_id):
    error = validate_canonical_id(canonical_id)
    if error:
        return _error(error, 400)

    record = run_async(get_sync().get(canonical_id))
    if record is None:
        return _error(f"No mapping for {canonical_id}", 404)
    return jsonify(record.to_dict())


@mapping_api_bp.route('/api/seasonal/<kind>', methods=['GET'])
def seasonal(kind):
    if kind not in SEASONAL_KINDS:
        return _error(f"Invalid seasonal list '{kind}'. Valid lists: {', '.join(SEASONAL_KINDS)}", 400)
    media_type, error = validate_media_type(request.args.get('type'), default='ANIME')
    if error:
        return _error(error, 400)

    records = run_async(get_sync().get_seasonal(kind, media_type))
    return jsonify({'results': [r.to_dict() for r in records]})


@mapping_api_bp.route('/api/export/<media_type>', methods=['GET'])
def export(media_type):
    media_type, error = validate_media_type(media_type)
    if error:
        return _error(error, 400)

    data = run_async(get_sync().export(media_type))
    return Response(data, mimetype='application/json')


@mapping_api_bp.route('/api/providers', methods=['GET'])
def providers():
    """Registered providers with their effective config and circuit state."""
    sync = get_sync()
    circuits = sync.fanout.breakers.get_all_status()

    info = []
    for provider in sync.providers:
        config = sync.fanout.config_for(provider)
        entry = provider.get_status()
        entry.update({
            'threshold': config.threshold,
            'comparison_threshold': config.comparison_threshold,
            'wait_ms': config.wait_ms,
            'timeout': config.timeout,
            'circuit': circuits.get(provider.provider_name, {}).get('state', 'closed'),
        })
        info.append(entry)
    return jsonify({'providers': info})


@mapping_api_bp.route('/api/health', methods=['GET'])
def health():
    from ..database import check_database_connection
    from ..database import get_engine

    engine = current_app.config.get('ANISYNC_ENGINE') or get_engine()
    db_ok = check_database_connection(engine)
    cache = getattr(get_sync().anilist, 'cache', None)
    status = 200 if db_ok else 503
    return jsonify({
        'status': 'ok' if db_ok else 'degraded',
        'database': db_ok,
        'cache': cache.stats() if cache is not None else None,
    }), status
