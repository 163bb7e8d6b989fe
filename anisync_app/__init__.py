# Load environment variables FIRST before any other imports
from dotenv import load_dotenv
load_dotenv()

import os
import time
import uuid
from flask import Flask, g, jsonify, request


def create_app(settings=None, sync=None, engine=None):
    """
    Create and configure an instance of the Flask application.

    Args:
        settings: Settings (default: loaded from env / ANISYNC_CONFIG)
        sync: Prebuilt Sync orchestrator (tests inject one)
        engine: SQLAlchemy engine (default: built from settings.database_url)
    """
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_mapping(JSON_SORT_KEYS=False)

    try:
        os.makedirs(app.instance_path)
    except OSError:
        pass

    # =============================================================================
    # LOGGING & SETTINGS
    # =============================================================================
    from .log import log, debug_log_event, set_debug
    from .config import get_settings

    settings = settings or get_settings()
    set_debug(settings.debug)

    # =============================================================================
    # STORAGE & ORCHESTRATOR
    # =============================================================================
    if sync is None:
        from .database import create_db_engine, init_database, make_session_factory
        from .store import MappingStore
        from .sync import Sync

        engine = engine or create_db_engine(settings.database_url)
        init_database(engine)
        sync = Sync(settings, store=MappingStore(make_session_factory(engine)))

    app.config['ANISYNC_ENGINE'] = engine
    app.extensions['anisync'] = sync

    @app.before_request
    def assign_request_id():
        g.request_id = uuid.uuid4().hex[:12]
        g.request_start = time.time()

    @app.after_request
    def debug_request_log(response):
        duration_ms = None
        start_time = getattr(g, 'request_start', None)
        if start_time:
            duration_ms = int((time.time() - start_time) * 1000)
        debug_log_event({
            'event': 'request',
            'request_id': getattr(g, 'request_id', None),
            'method': request.method,
            'path': request.path,
            'query': request.query_string.decode('utf-8', errors='ignore'),
            'status': response.status_code,
            'duration_ms': duration_ms,
            'remote_addr': request.remote_addr,
        })
        return response

    @app.teardown_request
    def debug_exception_log(error=None):
        if not error:
            return
        debug_log_event({
            'event': 'exception',
            'request_id': getattr(g, 'request_id', None),
            'path': request.path if request else None,
            'error_type': error.__class__.__name__,
            'error': str(error)
        })

    @app.errorhandler(404)
    def not_found(e):
        return jsonify({'error': 'Not found'}), 404

    # =============================================================================
    # BLUEPRINTS & ROUTES
    # =============================================================================
    from .routes.mapping_api import mapping_api_bp

    app.register_blueprint(mapping_api_bp)

    app.config['HOST'] = os.environ.get('FLASK_HOST', '127.0.0.1')
    app.config['PORT'] = int(os.environ.get('FLASK_PORT', '5000'))
    app.config['DEBUG'] = settings.debug

    log(f"AniSync ready with {len(sync.providers)} provider(s): "
        f"{', '.join(p.provider_name for p in sync.providers)}")

    return app

# App instance should be created by the caller (run.py or WSGI entrypoint)
