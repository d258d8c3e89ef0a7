# landscape/models/__init__.py
from datetime import datetime, timezone

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()


def utcnow() -> datetime:
    """UTC naive, igual en SQLite y Postgres."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def iso(dt):
    return dt.replace(microsecond=0).isoformat() + "Z" if dt else None


# 👇 Importaciones para registrar los modelos
from .job import Job, JOB_STATUSES, TERMINAL_STATUSES  # noqa: E402
from .analysis import CompetitiveAnalysis, Competitor  # noqa: E402

__all__ = [
    "db",
    "utcnow",
    "iso",
    "Job",
    "JOB_STATUSES",
    "TERMINAL_STATUSES",
    "CompetitiveAnalysis",
    "Competitor",
]
