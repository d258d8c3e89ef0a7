# landscape/services/executor.py
import logging
from typing import Any, Callable, Dict

from landscape.errors import LandscapeError, ValidationError

logger = logging.getLogger(__name__)

COMPETITIVE_ANALYSIS = "competitive_analysis"

Handler = Callable[[Dict[str, Any]], Dict[str, Any]]


def competitive_analysis_handler(engine) -> Handler:
    def handle(data: Dict[str, Any]) -> Dict[str, Any]:
        description = data.get("solutionDescription")
        if not description:
            raise ValidationError("Job payload is missing 'solutionDescription'")
        logger.info(f"Starting competitive analysis for: {description[:50]}...")
        result = engine.analyze(description, data.get("industryId"), data.get("metadata") or {})
        logger.info(f"Competitive analysis completed. ID: {result['id']}")
        return result

    return handle


class JobExecutor:
    """
    Drives one job: claim (pending -> running) -> handler -> completed/failed.
    Only the delivery that claims the job runs the handler; redeliveries of a
    running or finished job are acknowledged with ``skipped``.

    ``process`` never raises for application errors: the outcome lives in
    the job row, and the caller (Celery task or HTTP callback) reports
    success to the queue so it does not retry.
    """

    def __init__(self, dispatcher, handlers: Dict[str, Handler]):
        self.dispatcher = dispatcher
        self.handlers = dict(handlers)

    def process(self, job_id: str, job_type: str, data: Dict[str, Any]) -> Dict[str, Any]:
        logger.info(f"Processing job: {job_id}, type: {job_type}")
        try:
            if not self.dispatcher.claim(job_id):
                # entrega duplicada: el job ya está corriendo o terminó
                status = self.dispatcher.get_status(job_id)["status"]
                logger.warning(f"Job {job_id} is already {status}, skipping redelivery")
                return {"success": True, "jobId": job_id, "skipped": True}

            handler = self.handlers.get(job_type)
            if handler is None:
                raise ValidationError(f"Unknown job type: {job_type}")

            result = handler(data or {})
            self.dispatcher.update_status(job_id, "completed", result=result)
        except Exception as e:
            logger.exception(f"Job {job_id} failed")
            message = getattr(e, "message", None) or str(e) or e.__class__.__name__
            try:
                self.dispatcher.update_status(job_id, "failed", error=message)
            except LandscapeError as inner:
                logger.error(f"Could not record failure of job {job_id}: {inner}")
            return {"success": False, "jobId": job_id, "error": message}

        logger.info(f"Job {job_id} completed successfully")
        return {"success": True, "jobId": job_id}
