# landscape/worker.py
"""Proceso worker de Celery.

    celery -A landscape.worker worker --loglevel=INFO
"""
import os

from celery.signals import worker_shutdown

from landscape import create_app
from landscape.tasks.celery_app import check_broker

flask_app = create_app(os.getenv("FLASK_ENV", "development"))
celery = flask_app.extensions["celery"]

# registra las tasks
from landscape.tasks import job_tasks  # noqa: E402,F401


@worker_shutdown.connect
def _close_store(**_kwargs):
    flask_app.extensions["landscape.store"].close()


check_broker(celery)
