import logging
import os
import traceback
from importlib import import_module

from dotenv import load_dotenv
from flask import Flask, jsonify, request
from flask_cors import CORS
from flask_limiter.errors import RateLimitExceeded
from flask_security.core import Security
from flask_security.datastore import SQLAlchemyUserDatastore
from werkzeug.exceptions import HTTPException

from kioskinstall.config import DevConfig, ProductionConfig
from kioskinstall.extensions import KioskServices, db, limiter
from kioskinstall.utils.request_logger import RequestLogger, get_request_metrics

logger = logging.getLogger(__name__)

# (module, url prefix)
BLUEPRINTS = [
    ('session', '/api'),
    ('store', '/api'),
    ('workflow', '/api/workflow'),
    ('report', '/api'),
    ('admin', '/api/admin'),
]

CORS_ORIGINS = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
    "http://localhost:5173",
    "http://127.0.0.1:5173",
    "capacitor://localhost",
    "ionic://localhost",
]


def configure_logging(app):
    logs_dir = app.config['LOGS_DIR']
    os.makedirs(logs_dir, exist_ok=True)
    logging.basicConfig(
        level=logging.DEBUG if app.config.get('DEBUG') else logging.INFO,
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
        handlers=[
            logging.FileHandler(os.path.join(logs_dir, 'app.log')),
            logging.StreamHandler()
        ]
    )


def config_from_env():
    env = os.environ.get('FLASK_ENV', 'development').lower()
    return ProductionConfig if env == 'production' else DevConfig


def build_services(app) -> KioskServices:
    """Wire the long-lived collaborators from app config."""
    from kioskinstall.services.admin_service import AuditGuard
    from kioskinstall.services.audit_service import AuditRequester
    from kioskinstall.services.project_store import ProjectStore
    from kioskinstall.services.report_service import ReportExporter
    from kioskinstall.services.store_directory import StoreDirectory
    from kioskinstall.services.watermark_service import FrameWatermarker
    from kioskinstall.services.workflow_service import ProjectWorkflow, WorkflowRegistry

    seed_file = app.config.get('STORE_SEED_FILE')
    store_directory = StoreDirectory.from_json_file(seed_file) if seed_file else StoreDirectory.default()
    watermarker = FrameWatermarker(font_path=app.config.get('WATERMARK_FONT_PATH'))
    report_exporter = ReportExporter(app.config['REPORT_OUTPUT_DIR'], tz_name=app.config.get('DISPLAY_TIMEZONE'))
    audit_requester = AuditRequester(
        app.config.get('OPENAI_API_KEY'),
        model=app.config.get('AUDIT_MODEL', 'gpt-4o-mini'),
        timeout=app.config.get('AUDIT_TIMEOUT_SECONDS', 60),
    )
    project_store = ProjectStore(db.session, app.config.get('PROJECT_STORE_MAX_BYTES'))

    def workflow_factory(user_id, on_complete):
        return ProjectWorkflow(
            user_id=user_id,
            store_directory=store_directory,
            project_store=project_store,
            report_exporter=report_exporter,
            watermarker=watermarker,
            on_complete=on_complete,
        )

    return KioskServices(
        store_directory=store_directory,
        watermarker=watermarker,
        report_exporter=report_exporter,
        audit_requester=audit_requester,
        audit_guard=AuditGuard(),
        workflows=WorkflowRegistry(workflow_factory),
    )


def register_blueprints(app):
    for blueprint_name, prefix in BLUEPRINTS:
        module = import_module(f'kioskinstall.api.{blueprint_name}')
        blueprint = getattr(module, f'{blueprint_name}_bp')
        app.register_blueprint(blueprint, url_prefix=prefix)
        logger.info(f"Registered blueprint: {blueprint_name} with prefix: {prefix}")


def register_error_handlers(app):

    @app.errorhandler(400)
    def bad_request(error):
        logger.error(f"400 Bad Request for {request.method} {request.url}: {error}")
        return jsonify({'error': 'Bad Request', 'message': str(error), 'path': request.path}), 400

    @app.errorhandler(401)
    def unauthorized(error):
        logger.error(f"401 Unauthorized for {request.method} {request.url}")
        return jsonify({'error': 'Authentication required'}), 401

    @app.errorhandler(403)
    def forbidden(error):
        logger.error(f"403 Forbidden for {request.method} {request.url}")
        return jsonify({'error': 'Access forbidden'}), 403

    @app.errorhandler(404)
    def not_found(error):
        logger.error(f"404 error for path: {request.path}")
        return jsonify({'error': 'Not found', 'path': request.path}), 404

    @app.errorhandler(413)
    def too_large(error):
        return jsonify({'error': 'File too large'}), 413

    @app.errorhandler(RateLimitExceeded)
    def ratelimit_handler(e):
        logger.warning(f"Rate limit exceeded for {request.method} {request.url}")
        return jsonify({'error': 'Rate limit exceeded. Please try again later.'}), 429

    @app.errorhandler(Exception)
    def handle_exception(e):
        if isinstance(e, HTTPException):
            return jsonify({'error': e.description}), e.code
        logger.error(f"Unhandled exception for {request.method} {request.url}: {e}")
        logger.error(traceback.format_exc())
        return jsonify({'error': 'Internal server error'}), 500


def create_app(config_object=None):
    load_dotenv()

    app = Flask(__name__)
    app.config.from_object(config_object or config_from_env())
    configure_logging(app)
    if app.config.get('STORAGE_PATH'):
        os.makedirs(app.config['STORAGE_PATH'], exist_ok=True)

    db.init_app(app)
    limiter.init_app(app)
    origins = CORS_ORIGINS + [app.config['FRONTEND_URL']] if app.config.get('FRONTEND_URL') else CORS_ORIGINS
    CORS(app, supports_credentials=True, resources={r"/api/*": {"origins": origins}})
    RequestLogger.init_app(app)

    from kioskinstall.models.kv_entry import KeyValueEntry  # noqa: F401
    from kioskinstall.models.role import Role
    from kioskinstall.models.user import User

    user_datastore = SQLAlchemyUserDatastore(db, User, Role)
    app.security = Security(app, user_datastore)

    with app.app_context():
        app.extensions['kioskinstall'] = build_services(app)
        if app.config.get('AUTO_INIT_DB', True):
            from kioskinstall.seed_data import seed_accounts
            db.create_all()
            seed_accounts()

    register_blueprints(app)
    register_error_handlers(app)

    @app.route('/api/health-check')
    def health_check():
        database_ok = db.health_check()
        return jsonify({
            'status': 'ok' if database_ok else 'degraded',
            'database': database_ok,
            'pool': db.get_pool_stats(),
            'request': get_request_metrics(),
        }), 200 if database_ok else 503

    logger.info("Database connected: %s", "sqlite" if "sqlite" in app.config.get("SQLALCHEMY_DATABASE_URI", "") else "non-sqlite")
    return app


if __name__ == '__main__':
    app = create_app()
    app.run(host=app.config.get('FLASK_HOST', '0.0.0.0'), port=app.config.get('FLASK_PORT', 5000))
