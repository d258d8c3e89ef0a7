# landscape/routes/worker_routes.py
import logging

from flask import Blueprint, current_app, jsonify, request

from landscape.auth import require_api_key

logger = logging.getLogger(__name__)

bp = Blueprint("worker", __name__)
bp.before_request(require_api_key)


@bp.post("/process")
def process_job():
    """
    Callback de la cola (Cloud Tasks) que ejecuta un job
    ---
    tags:
      - Jobs
    consumes:
      - application/json
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          required: [jobId, type]
          properties:
            jobId:
              type: string
            type:
              type: string
              example: competitive_analysis
            data:
              type: object
    responses:
      200:
        description: Procesado (success true/false; la cola no debe reintentar)
      400:
        description: Falta jobId o type
    """
    body = request.get_json(silent=True) or {}
    if not isinstance(body, dict):
        body = {}
    job_id = body.get("jobId")
    job_type = body.get("type")

    if not job_id or not job_type:
        return jsonify({"error": "Missing jobId or type"}), 400

    data = body.get("data")
    outcome = current_app.extensions["landscape.executor"].process(
        job_id, job_type, data if isinstance(data, dict) else {}
    )
    # siempre 200: el fallo queda registrado en el job
    return jsonify(outcome), 200
