from landscape.models import db, iso, utcnow
from landscape.models.types import JSONBCompat

JOB_STATUSES = ("pending", "running", "completed", "failed")
TERMINAL_STATUSES = ("completed", "failed")


class Job(db.Model):
    __tablename__ = "jobs"

    id = db.Column(db.String(64), primary_key=True)
    type = db.Column(db.String(50), nullable=False)
    status = db.Column(db.String(20), nullable=False, default="pending", index=True)
    data = db.Column(JSONBCompat(shape=dict), nullable=True)       # payload original, inmutable
    result = db.Column(JSONBCompat(shape=dict), nullable=True)     # sólo si completed
    error = db.Column(db.Text, nullable=True)                      # sólo si failed
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    started_at = db.Column(db.DateTime, nullable=True)
    completed_at = db.Column(db.DateTime, nullable=True)

    def to_dict(self):
        return {
            "id": self.id,
            "type": self.type,
            "status": self.status,
            "data": self.data,
            "result": self.result,
            "error": self.error,
            "created_at": iso(self.created_at),
            "started_at": iso(self.started_at),
            "completed_at": iso(self.completed_at),
        }
