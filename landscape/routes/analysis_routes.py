# landscape/routes/analysis_routes.py
import logging
from datetime import datetime, timezone

from flask import Blueprint, current_app, g, jsonify, request

from landscape.auth import require_api_key
from landscape.errors import NotFound, UpstreamError, ValidationError
from landscape.models import CompetitiveAnalysis, Competitor
from landscape.services import COMPETITIVE_ANALYSIS

logger = logging.getLogger(__name__)

bp = Blueprint("competitive_landscape", __name__)  # el prefijo se aplica al registrar en landscape/__init__.py
bp.before_request(require_api_key)

DESCRIPTION_MIN = 10
DESCRIPTION_MAX = 5000
ANALYZE_FIELDS = ("solutionDescription", "industryId", "metadata")


# --- Helpers locales ---

def _ext(name):
    return current_app.extensions[f"landscape.{name}"]


def _parse_analyze_body():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a valid JSON object")

    for key in data:
        if key not in ANALYZE_FIELDS:
            raise ValidationError(f'"{key}" is not allowed')

    description = data.get("solutionDescription")
    if description is None:
        raise ValidationError('"solutionDescription" is required')
    if not isinstance(description, str):
        raise ValidationError('"solutionDescription" must be a string')
    if len(description) < DESCRIPTION_MIN:
        raise ValidationError(f'"solutionDescription" length must be at least {DESCRIPTION_MIN} characters long')
    if len(description) > DESCRIPTION_MAX:
        raise ValidationError(f'"solutionDescription" length must be less than or equal to {DESCRIPTION_MAX} characters long')

    industry_id = data.get("industryId")
    if industry_id is not None and not isinstance(industry_id, str):
        raise ValidationError('"industryId" must be a string')

    metadata = data.get("metadata")
    if metadata is not None and not isinstance(metadata, dict):
        raise ValidationError('"metadata" must be of type object')

    return description, industry_id, metadata or {}


def _int_arg(name: str, default: int, minimum: int, maximum: int = None) -> int:
    raw = request.args.get(name)
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValidationError(f'"{name}" must be a number') from None
    if value < minimum:
        raise ValidationError(f'"{name}" must be greater than or equal to {minimum}')
    if maximum is not None and value > maximum:
        raise ValidationError(f'"{name}" must be less than or equal to {maximum}')
    return value


def _pagination():
    return _int_arg("limit", 20, 1, 100), _int_arg("offset", 0, 0)


def _page(total: int, limit: int, offset: int):
    return {"total": total, "limit": limit, "offset": offset, "hasMore": offset + limit < total}


@bp.post("/analyze")
def analyze():
    """
    Encolar un análisis de competencia
    ---
    tags:
      - Competitive Landscape
    consumes:
      - application/json
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          required:
            - solutionDescription
          properties:
            solutionDescription:
              type: string
              minLength: 10
              maxLength: 5000
              example: "AI-powered customer service chatbot for mid-size e-commerce stores"
            industryId:
              type: string
              example: "retail-tech"
            metadata:
              type: object
    responses:
      202:
        description: Aceptado (job encolado)
      400:
        description: Body inválido
      401:
        description: API key faltante o inválida
      502:
        description: No se pudo encolar el job
    """
    description, industry_id, metadata = _parse_analyze_body()

    payload = {
        "solutionDescription": description,
        "industryId": industry_id,
        "metadata": {
            **metadata,
            "userId": g.get("user", {}).get("id"),
            "requestedAt": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
        },
    }

    try:
        job_id = _ext("dispatcher").submit(COMPETITIVE_ANALYSIS, payload)
    except UpstreamError:
        logger.exception("Error queuing competitive analysis")
        return jsonify({"error": "Failed to queue analysis"}), 502

    logger.info("Competitive analysis queued", extra={"context": {"job_id": job_id, "industry_id": industry_id}})

    return jsonify({
        "message": "Competitive analysis queued for processing",
        "jobId": job_id,
        "status": "pending",
        "statusUrl": f"/api/jobs/{job_id}",
    }), 202


@bp.post("/analyze-sync")
def analyze_sync():
    """
    Análisis síncrono (sólo desarrollo/testing)
    ---
    tags:
      - Competitive Landscape
    consumes:
      - application/json
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          required:
            - solutionDescription
          properties:
            solutionDescription:
              type: string
            industryId:
              type: string
            metadata:
              type: object
    responses:
      200:
        description: Análisis completado
      403:
        description: Deshabilitado en producción
    """
    if current_app.config.get("ENV") == "production":
        return jsonify({"error": "Synchronous analysis not available in production"}), 403

    description, industry_id, metadata = _parse_analyze_body()
    logger.info("Running synchronous competitive analysis", extra={"context": {"industry_id": industry_id}})

    analysis = _ext("engine").analyze(description, industry_id, metadata)
    return jsonify({"message": "Analysis completed", "analysis": analysis}), 200


@bp.get("/<analysis_id>")
def get_analysis(analysis_id: str):
    """
    Obtener un análisis
    ---
    tags:
      - Competitive Landscape
    parameters:
      - in: path
        name: analysis_id
        required: true
        type: string
    responses:
      200:
        description: OK
      404:
        description: No encontrado
    """
    analysis = _ext("store").get(CompetitiveAnalysis, analysis_id)
    if analysis is None:
        raise NotFound("Analysis not found")
    return jsonify(analysis.to_dict()), 200


@bp.get("")
def list_analyses():
    """
    Listar análisis (más recientes primero)
    ---
    tags:
      - Competitive Landscape
    parameters:
      - in: query
        name: limit
        type: integer
        default: 20
        minimum: 1
        maximum: 100
      - in: query
        name: offset
        type: integer
        default: 0
        minimum: 0
    responses:
      200:
        description: OK
      400:
        description: Paginación inválida
    """
    limit, offset = _pagination()
    store = _ext("store")

    analyses = (
        CompetitiveAnalysis.query
        .order_by(CompetitiveAnalysis.created_at.desc(), CompetitiveAnalysis.id)
        .limit(limit)
        .offset(offset)
        .all()
    )
    total = store.query_one("SELECT COUNT(*) AS count FROM competitive_analyses")["count"]

    return jsonify({
        "analyses": [a.summary_dict() for a in analyses],
        "pagination": _page(total, limit, offset),
    }), 200


@bp.get("/<analysis_id>/competitors")
def list_competitors(analysis_id: str):
    """
    Competidores de un análisis (por relevancia)
    ---
    tags:
      - Competitive Landscape
    parameters:
      - in: path
        name: analysis_id
        required: true
        type: string
      - in: query
        name: limit
        type: integer
        default: 20
      - in: query
        name: offset
        type: integer
        default: 0
    responses:
      200:
        description: OK
    """
    limit, offset = _pagination()
    store = _ext("store")

    competitors = (
        Competitor.query
        .filter(Competitor.analysis_id == analysis_id)
        .order_by(Competitor.relevancy.desc(), Competitor.id)
        .limit(limit)
        .offset(offset)
        .all()
    )
    total = store.query_one(
        "SELECT COUNT(*) AS count FROM competitors WHERE analysis_id = :analysis_id",
        {"analysis_id": analysis_id},
    )["count"]

    return jsonify({
        "competitors": [c.to_dict() for c in competitors],
        "pagination": _page(total, limit, offset),
    }), 200
