# landscape/tasks/celery_app.py
"""Celery app bound to the Flask app (worker entrypoint: landscape/worker.py)."""
import logging
import os

from celery import Celery, Task

logger = logging.getLogger(__name__)


def init_celery(app) -> Celery:
    """Crea la app de Celery con cada task corriendo dentro del app context de Flask."""

    class ContextTask(Task):
        def __call__(self, *args, **kwargs):
            with app.app_context():
                return self.run(*args, **kwargs)

    celery_app = Celery(app.import_name, task_cls=ContextTask)
    celery_app.conf.update(
        broker_url=app.config["CELERY_BROKER_URL"],
        result_backend=app.config.get("CELERY_RESULT_BACKEND") or app.config["CELERY_BROKER_URL"],
        task_ignore_result=False,
        task_serializer="json",
        accept_content=["json"],
        result_serializer="json",
        timezone=os.getenv("TZ", "UTC"),
        enable_utc=True,
        # un job fallido queda en la DB; el broker no reintenta
        task_acks_late=False,
    )
    celery_app.set_default()
    app.extensions["celery"] = celery_app
    return celery_app


def check_broker(celery_app: Celery) -> bool:
    """Diagnóstico de conexión al broker (sólo loguea)."""
    broker_url = celery_app.conf.broker_url
    try:
        conn = celery_app.connection()
        conn.ensure_connection(max_retries=1)
        conn.release()
        logger.info(f"✅ Celery conectado correctamente a broker: {broker_url}")
        return True
    except Exception as e:
        logger.error(f"❌ Error conectando a Celery broker ({broker_url}): {e}")
        return False

