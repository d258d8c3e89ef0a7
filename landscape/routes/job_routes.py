# landscape/routes/job_routes.py
from flask import Blueprint, current_app, jsonify

from landscape.auth import require_api_key
from landscape.services import COMPETITIVE_ANALYSIS

bp = Blueprint("jobs", __name__)
bp.before_request(require_api_key)


@bp.get("/<job_id>")
def job_status(job_id: str):
    """
    Estado de un job
    ---
    tags:
      - Jobs
    parameters:
      - in: path
        name: job_id
        required: true
        type: string
    responses:
      200:
        description: OK
        examples:
          application/json: {"id": "6f1c...", "type": "competitive_analysis", "status": "completed"}
      404:
        description: Job no encontrado
    """
    job = current_app.extensions["landscape.dispatcher"].get_status(job_id)

    result = job.get("result") or {}
    if job["type"] == COMPETITIVE_ANALYSIS and job["status"] == "completed" and result.get("id"):
        job["analysisUrl"] = f"/api/competitive-landscape/{result['id']}"

    return jsonify(job), 200
