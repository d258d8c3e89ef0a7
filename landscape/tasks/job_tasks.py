# landscape/tasks/job_tasks.py
from celery import shared_task
from flask import current_app


@shared_task(name="jobs.process")
def run_job(job_id: str, job_type: str, data: dict):
    """
    Executor de jobs del lado de Celery.

    Nunca levanta por errores de aplicación: el fallo queda en la fila del job
    y Celery no reintenta.
    """
    executor = current_app.extensions["landscape.executor"]
    return executor.process(job_id, job_type, data)
