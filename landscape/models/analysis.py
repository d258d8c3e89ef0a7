# landscape/models/analysis.py
from landscape.models import db, iso, utcnow
from landscape.models.types import JSONBCompat


class CompetitiveAnalysis(db.Model):
    __tablename__ = "competitive_analyses"

    id = db.Column(db.String(64), primary_key=True)
    industry_id = db.Column(db.String(255), nullable=True, index=True)
    solution_description = db.Column(db.Text, nullable=False)
    results = db.Column(JSONBCompat(shape=dict), nullable=False)
    # "metadata" está reservado en los modelos declarativos
    meta = db.Column("metadata", JSONBCompat(shape=dict), nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow, index=True)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    competitors = db.relationship(
        "Competitor",
        back_populates="analysis",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="Competitor.relevancy.desc()",
    )

    def summary_dict(self):
        results = self.results or {}
        return {
            "id": self.id,
            "industryId": self.industry_id,
            "solutionDescription": self.solution_description,
            "analysisDate": results.get("analysisDate"),
            "summary": results.get("summary"),
            "createdAt": iso(self.created_at),
        }

    def to_dict(self):
        return {
            "id": self.id,
            "industryId": self.industry_id,
            "solutionDescription": self.solution_description,
            "results": self.results,
            "metadata": self.meta or {},
            "createdAt": iso(self.created_at),
            "updatedAt": iso(self.updated_at),
        }


class Competitor(db.Model):
    __tablename__ = "competitors"

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    analysis_id = db.Column(
        db.String(64),
        db.ForeignKey("competitive_analyses.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name = db.Column(db.String(255), nullable=False)
    relevancy = db.Column(db.Integer, nullable=False, default=5)   # 1..10
    details = db.Column(JSONBCompat(shape=dict), nullable=True)
    strategic_note = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    analysis = db.relationship("CompetitiveAnalysis", back_populates="competitors")

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "relevancy": self.relevancy,
            "details": self.details or {},
            "strategicNote": self.strategic_note,
            "createdAt": iso(self.created_at),
        }
