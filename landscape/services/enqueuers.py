# landscape/services/enqueuers.py
"""Hand-off of a persisted job to the external executor.

Every enqueuer implements ``enqueue(job_id, job_type, data)``: schedule a
later invocation of the job executor with that payload, at least once.
"""
import json
import logging
import time
from typing import Any, Dict, Optional

from google.cloud import tasks_v2
from google.protobuf import timestamp_pb2

logger = logging.getLogger(__name__)

CALLBACK_PATH = "/api/jobs/process"


class DisabledEnqueuer:
    """Development mode: the job is recorded but never handed off."""

    name = "disabled"

    def enqueue(self, job_id: str, job_type: str, data: Dict[str, Any]) -> Optional[str]:
        logger.info(f"Task hand-off disabled, job {job_id} stays pending")
        return None


class CeleryEnqueuer:
    name = "celery"

    def __init__(self, countdown: int = 2):
        self.countdown = countdown

    def enqueue(self, job_id: str, job_type: str, data: Dict[str, Any]) -> Optional[str]:
        # import diferido para evitar ciclos con la app de Celery
        from landscape.tasks.job_tasks import run_job

        async_res = run_job.apply_async(args=[job_id, job_type, data], countdown=self.countdown)
        logger.info(f"Queued Celery task {async_res.id} for job {job_id}")
        return async_res.id


class CloudTasksEnqueuer:
    """Google Cloud Tasks: an HTTP POST to the job callback, scheduled a few seconds ahead."""

    name = "cloud_tasks"

    def __init__(
        self,
        project_id: str,
        region: str,
        queue: str,
        service_url: str,
        service_account_email: str = "",
        api_key: str = "",
        delay_seconds: int = 2,
        client=None,
    ):
        self.project_id = project_id
        self.region = region
        self.queue = queue
        self.service_url = service_url.rstrip("/")
        self.service_account_email = service_account_email
        self.api_key = api_key
        self.delay_seconds = delay_seconds
        self.client = client or tasks_v2.CloudTasksClient()

    def build_task(self, job_id: str, job_type: str, data: Dict[str, Any]) -> Dict[str, Any]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["X-API-Key"] = self.api_key

        http_request = {
            "http_method": tasks_v2.HttpMethod.POST,
            "url": f"{self.service_url}{CALLBACK_PATH}",
            "headers": headers,
            "body": json.dumps({"jobId": job_id, "type": job_type, "data": data}).encode(),
        }
        if self.service_account_email:
            http_request["oidc_token"] = {"service_account_email": self.service_account_email}

        # unos segundos de margen para que el job ya esté commiteado
        schedule_time = timestamp_pb2.Timestamp()
        schedule_time.FromSeconds(int(time.time()) + self.delay_seconds)

        return {"http_request": http_request, "schedule_time": schedule_time}

    def enqueue(self, job_id: str, job_type: str, data: Dict[str, Any]) -> Optional[str]:
        parent = self.client.queue_path(self.project_id, self.region, self.queue)
        task = self.build_task(job_id, job_type, data)
        response = self.client.create_task(request={"parent": parent, "task": task})
        logger.info(f"Created Cloud Task {response.name} for job {job_id} on queue {self.queue}")
        return response.name


def build_enqueuer(config):
    backend = config.get("TASK_BACKEND", "celery")
    if backend == "cloud_tasks":
        return CloudTasksEnqueuer(
            project_id=config["GCP_PROJECT_ID"],
            region=config["GCP_REGION"],
            queue=config["CLOUD_TASKS_QUEUE"],
            service_url=config["CLOUD_TASKS_SERVICE_URL"],
            service_account_email=config.get("CLOUD_TASKS_SERVICE_ACCOUNT_EMAIL", ""),
            api_key=config.get("API_KEY", ""),
            delay_seconds=config.get("TASK_DELAY_SECONDS", 2),
        )
    if backend == "disabled":
        return DisabledEnqueuer()
    return CeleryEnqueuer(countdown=config.get("TASK_DELAY_SECONDS", 2))
