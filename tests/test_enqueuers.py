import json
import time
from types import SimpleNamespace

from google.cloud import tasks_v2

from landscape.services.enqueuers import CeleryEnqueuer, CloudTasksEnqueuer, DisabledEnqueuer, build_enqueuer
from landscape.tasks import job_tasks


class FakeTasksClient:
    def __init__(self):
        self.requests = []

    def queue_path(self, project, location, queue):
        return f"projects/{project}/locations/{location}/queues/{queue}"

    def create_task(self, request):
        self.requests.append(request)
        return SimpleNamespace(name=f"{request['parent']}/tasks/1")


def _cloud(**kw):
    opts = dict(
        project_id="proj",
        region="us-central1",
        queue="competitive-analysis",
        service_url="https://svc.example.com/",
        client=FakeTasksClient(),
    )
    opts.update(kw)
    return CloudTasksEnqueuer(**opts)


def test_cloud_task_request():
    enq = _cloud(api_key="secret", service_account_email="tasks@proj.iam.gserviceaccount.com", delay_seconds=2)
    before = int(time.time())
    task = enq.build_task("job-1", "competitive_analysis", {"solutionDescription": "x"})

    http = task["http_request"]
    assert http["http_method"] == tasks_v2.HttpMethod.POST
    assert http["url"] == "https://svc.example.com/api/jobs/process"
    assert http["headers"] == {"Content-Type": "application/json", "X-API-Key": "secret"}
    assert json.loads(http["body"]) == {"jobId": "job-1", "type": "competitive_analysis",
                                        "data": {"solutionDescription": "x"}}
    assert http["oidc_token"] == {"service_account_email": "tasks@proj.iam.gserviceaccount.com"}
    assert task["schedule_time"].seconds >= before + 2


def test_cloud_task_without_auth():
    http = _cloud().build_task("job-1", "competitive_analysis", {})["http_request"]
    assert "X-API-Key" not in http["headers"]
    assert "oidc_token" not in http


def test_cloud_enqueue():
    enq = _cloud()
    name = enq.enqueue("job-1", "competitive_analysis", {})
    req = enq.client.requests[0]
    assert req["parent"] == "projects/proj/locations/us-central1/queues/competitive-analysis"
    assert name == "projects/proj/locations/us-central1/queues/competitive-analysis/tasks/1"


def test_celery_enqueue(monkeypatch):
    sent = []

    class FakeTask:
        def apply_async(self, args, countdown):
            sent.append((args, countdown))
            return SimpleNamespace(id="celery-1")

    monkeypatch.setattr(job_tasks, "run_job", FakeTask())
    assert CeleryEnqueuer(countdown=3).enqueue("job-1", "competitive_analysis", {"a": 1}) == "celery-1"
    assert sent == [(["job-1", "competitive_analysis", {"a": 1}], 3)]


def test_build_enqueuer():
    assert isinstance(build_enqueuer({"TASK_BACKEND": "disabled"}), DisabledEnqueuer)
    enq = build_enqueuer({"TASK_BACKEND": "celery", "TASK_DELAY_SECONDS": 5})
    assert isinstance(enq, CeleryEnqueuer)
    assert enq.countdown == 5
    assert DisabledEnqueuer().enqueue("job-1", "competitive_analysis", {}) is None
