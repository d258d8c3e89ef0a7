import atexit
import logging

from flask import Flask, jsonify
from flasgger import Swagger
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from prometheus_client import CollectorRegistry
from prometheus_flask_exporter import PrometheusMetrics
from werkzeug.exceptions import HTTPException

from .config import CONFIG_MAP, DevelopmentConfig, database_uri, engine_options, validate_config
from .errors import LandscapeError
from .logging_setup import setup_logging

logger = logging.getLogger(__name__)

VERSION = "1.0.0"


def _init_cors(app):
    # CORS_ORIGIN: '*' o vacío -> todos; "https://a.com,https://b.com" -> sólo esos
    cors_origin = (app.config.get("CORS_ORIGIN") or "*").strip()
    cors_common_kwargs = dict(
        supports_credentials=True,
        methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "X-API-Key", "X-Request-ID", "Accept", "Origin"],
    )
    if cors_origin == "*":
        CORS(app, resources={r"/*": {"origins": "*"}}, **cors_common_kwargs)
    else:
        origins_list = [o.strip() for o in cors_origin.split(",") if o.strip()]
        CORS(app, resources={r"/*": {"origins": origins_list}}, **cors_common_kwargs)


def _init_services(app):
    """Store, motor de research, dispatcher y executor; quedan en app.extensions."""
    from .models import db
    from .services import COMPETITIVE_ANALYSIS, JobExecutor, ResearchEngine, TaskDispatcher, competitive_analysis_handler
    from .services.enqueuers import build_enqueuer
    from .services.llm_client import OpenAIGenerator
    from .storage import Store

    db.init_app(app)
    store = Store(db)
    with app.app_context():
        store.init()

    cfg = app.config
    llm = OpenAIGenerator(
        api_key=cfg["OPENAI_API_KEY"],
        model=cfg["OPENAI_MODEL"],
        timeout=cfg["OPENAI_TIMEOUT_SECONDS"],
    )
    engine = ResearchEngine(
        llm,
        store,
        aspect_timeout=cfg["ASPECT_TIMEOUT_SECONDS"],
        pipeline_deadline=cfg["PIPELINE_DEADLINE_SECONDS"],
    )
    dispatcher = TaskDispatcher(store, build_enqueuer(cfg))
    executor = JobExecutor(dispatcher, {COMPETITIVE_ANALYSIS: competitive_analysis_handler(engine)})

    app.extensions["landscape.store"] = store
    app.extensions["landscape.engine"] = engine
    app.extensions["landscape.dispatcher"] = dispatcher
    app.extensions["landscape.executor"] = executor
    return store


def _register_error_handlers(app):
    @app.errorhandler(LandscapeError)
    def handle_landscape_error(e):
        return jsonify(e.to_dict()), e.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(e):
        if e.code == 404:
            return jsonify({"error": "Not found"}), 404
        if e.code == 429:
            return jsonify({"error": "Too many requests from this IP, please try again later."}), 429
        return jsonify({"error": e.name}), e.code

    @app.errorhandler(Exception)
    def handle_unexpected(e):
        logger.exception("Unhandled error")
        body = {"error": "Internal server error"}
        if app.config.get("ENV") == "development":
            body["message"] = str(e)
        return jsonify(body), 500


def _init_swagger(app):
    swagger_template = {
        "swagger": "2.0",
        "info": {
            "title": "Competitive Landscape API",
            "description": "Análisis de competencia asistido por IA: jobs, resultados y competidores.",
            "version": VERSION,
        },
        "basePath": "/",
        "securityDefinitions": {
            "ApiKeyAuth": {"type": "apiKey", "in": "header", "name": "X-API-Key"},
        },
    }
    swagger_config = {
        "headers": [],
        "specs": [
            {
                "endpoint": "apispec_1",
                "route": "/apispec_1.json",
                "rule_filter": lambda rule: True,
                "model_filter": lambda tag: True,
            }
        ],
        "static_url_path": "/flasgger_static",
        "swagger_ui": True,
        "specs_route": "/apidocs/",
    }
    Swagger(app, template=swagger_template, config=swagger_config)


def create_app(config_name: str = "development"):
    app = Flask(__name__)
    app.config.from_object(CONFIG_MAP.get((config_name or "").lower(), DevelopmentConfig))
    app.config["SQLALCHEMY_DATABASE_URI"] = database_uri(app.config)
    app.config["SQLALCHEMY_ENGINE_OPTIONS"] = engine_options(app.config)

    setup_logging(app)
    if not app.testing:
        validate_config(app.config)

    _init_cors(app)
    store = _init_services(app)

    from .tasks.celery_app import init_celery
    init_celery(app)

    _register_error_handlers(app)
    _init_swagger(app)

    # Blueprints
    from .routes import analysis_routes, health, job_routes, worker_routes

    limiter = Limiter(
        get_remote_address,
        app=app,
        storage_uri=app.config["RATELIMIT_STORAGE_URI"],
    )
    rate = f"{app.config['RATE_LIMIT_MAX_REQUESTS']} per {app.config['RATE_LIMIT_WINDOW_SECONDS']} seconds"
    limiter.limit(rate)(analysis_routes.bp)
    limiter.limit(rate)(job_routes.bp)

    app.register_blueprint(health.bp)
    app.register_blueprint(analysis_routes.bp, url_prefix="/api/competitive-landscape")
    app.register_blueprint(worker_routes.bp, url_prefix="/api/jobs")
    app.register_blueprint(job_routes.bp, url_prefix="/api/jobs")

    # Métricas
    registry = CollectorRegistry() if app.testing else None
    metrics = PrometheusMetrics(app, path="/metrics", registry=registry)
    metrics.info("app_info", "Competitive landscape service", version=VERSION)

    if not app.testing:
        atexit.register(store.close)

    logger.info(f"Competitive landscape service ready ({app.config['ENV']})")
    return app
