# landscape/services/dispatcher.py
import logging
import uuid
from typing import Any, Dict, Optional

from landscape.errors import NotFound, UpstreamError, ValidationError
from landscape.models import JOB_STATUSES, TERMINAL_STATUSES, Job, utcnow

logger = logging.getLogger(__name__)


class TaskDispatcher:
    """
    Records jobs and hands them to the external executor.

    Job states: pending -> running -> completed | failed. A terminal job never
    changes status again, and ``result``/``error`` are only set on
    ``completed``/``failed`` respectively.
    """

    def __init__(self, store, enqueuer):
        self.store = store
        self.enqueuer = enqueuer

    def submit(self, job_type: str, payload: Dict[str, Any]) -> str:
        job_id = uuid.uuid4().hex
        self.store.add(Job(id=job_id, type=job_type, status="pending", data=dict(payload)))

        try:
            self.enqueuer.enqueue(job_id, job_type, payload)
        except Exception as e:
            logger.error(f"Failed to hand off job {job_id}: {e}")
            self.update_status(job_id, "failed", error=str(e) or e.__class__.__name__)
            raise UpstreamError(f"Failed to schedule job {job_id}: {e}") from e

        logger.info(f"Job {job_id} ({job_type}) queued via {self.enqueuer.name}")
        return job_id

    def _get(self, job_id: str) -> Job:
        job = self.store.get(Job, job_id)
        if job is None:
            raise NotFound("Job not found")
        return job

    def get_status(self, job_id: str) -> Dict[str, Any]:
        return self._get(job_id).to_dict()

    def claim(self, job_id: str) -> bool:
        """
        Atomic ``pending -> running``. False when the job already left
        ``pending`` (duplicate delivery); ``NotFound`` when it does not exist.
        """
        claimed = self.store.update_where(
            Job,
            {"status": "running", "started_at": utcnow()},
            id=job_id,
            status="pending",
        )
        if claimed:
            return True
        self._get(job_id)
        return False

    def update_status(self, job_id: str, status: str, result: Optional[Dict[str, Any]] = None,
                      error: Optional[str] = None) -> None:
        if status not in JOB_STATUSES:
            raise ValidationError(f"Unknown job status: {status}")

        job = self._get(job_id)
        if job.status in TERMINAL_STATUSES:
            raise ValidationError(f"Job {job_id} is already {job.status}")

        job.status = status
        if result is not None:
            job.result = result
        if error is not None:
            job.error = error

        # result sólo con completed, error sólo con failed
        if status == "completed":
            job.error = None
        elif status == "failed":
            job.result = None

        if status == "running":
            job.started_at = utcnow()
        elif status in TERMINAL_STATUSES:
            job.completed_at = utcnow()

        self.store.commit()
