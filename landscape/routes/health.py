from datetime import datetime, timezone

from flask import Blueprint, current_app, jsonify

from landscape.errors import PersistenceError

bp = Blueprint("health", __name__, url_prefix="/health")

SERVICE_NAME = "competitive-landscape-microservice"
VERSION = "1.0.0"


def _now():
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def _database_ok() -> bool:
    try:
        current_app.extensions["landscape.store"].query_one("SELECT 1 AS ok")
        return True
    except PersistenceError:
        current_app.logger.exception("Health check: database connection failed")
        return False


@bp.get("")
def health():
    """
    Healthcheck
    ---
    tags:
      - Health
    responses:
      200:
        description: OK
      503:
        description: Base de datos no disponible
    """
    if not _database_ok():
        return jsonify({
            "status": "unhealthy",
            "service": SERVICE_NAME,
            "error": "Database connection failed",
            "timestamp": _now(),
        }), 503

    return jsonify({
        "status": "healthy",
        "service": SERVICE_NAME,
        "version": VERSION,
        "timestamp": _now(),
        "environment": current_app.config.get("ENV"),
    }), 200


@bp.get("/detailed")
def health_detailed():
    """
    Healthcheck detallado (DB, OpenAI, cola de tareas)
    ---
    tags:
      - Health
    responses:
      200:
        description: Todo OK
      503:
        description: Degradado
    """
    cfg = current_app.config
    backend = cfg.get("TASK_BACKEND")
    if backend == "cloud_tasks":
        queue_ok = bool(cfg.get("GCP_PROJECT_ID") and cfg.get("CLOUD_TASKS_QUEUE"))
    elif backend == "celery":
        queue_ok = bool(cfg.get("CELERY_BROKER_URL"))
    else:
        queue_ok = False

    checks = {
        "database": _database_ok(),
        "openai": bool(cfg.get("OPENAI_API_KEY")),
        "taskQueue": queue_ok,
    }
    healthy = all(checks.values())

    return jsonify({
        "status": "healthy" if healthy else "degraded",
        "checks": checks,
        "config": {
            "databaseType": cfg.get("DATABASE_TYPE"),
            "environment": cfg.get("ENV"),
            "taskBackend": backend,
        },
        "timestamp": _now(),
    }), (200 if healthy else 503)
