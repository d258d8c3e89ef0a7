# landscape/services/research_models.py
"""Typed structures flowing through the research pipeline.

Everything the generative API returns is untrusted: the ``from_dict`` /
``from_raw`` constructors coerce it into these shapes before the engine
touches it, and ``to_dict`` produces the camelCase JSON that gets stored.
"""
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional

DIRECT_COMPETITORS = "Direct Competitors Analysis"
FEATURE_MATRIX = "Feature Comparison Matrix"
MARKET_SEGMENTATION = "Market Segmentation Mapping"
MARKET_GAPS = "Market Gaps and Opportunities"

CANONICAL_ASPECTS = (DIRECT_COMPETITORS, FEATURE_MATRIX, MARKET_SEGMENTATION, MARKET_GAPS)

FALLBACK_ERROR = "Unable to complete research"
FALLBACK_MESSAGE = "Manual review needed for this aspect"

NOTE_DIRECT = "Direct competitor - monitor closely for strategic moves"
NOTE_ADJACENT = "Adjacent player - potential partner or acquisition target"
NOTE_INDIRECT = "Indirect competitor - watch for market pivot"

DEFAULT_RELEVANCY = 5

_BILLION = re.compile(r"\d\s*(b\b|bn\b|billion)", re.IGNORECASE)


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def _score(value: Any, default: int) -> int:
    """Coerce to an int in [1, 10]; garbage becomes ``default``."""
    try:
        n = int(round(float(value)))
    except (TypeError, ValueError):
        return default
    return max(1, min(10, n))


def clamp_relevancy(value: Any) -> int:
    return _score(value, DEFAULT_RELEVANCY)


def _opt_str(value: Any) -> Optional[str]:
    if value is None or value == "":
        return None
    return str(value)


def as_list(value: Any) -> List[Any]:
    return list(value) if isinstance(value, list) else []


def as_dict(value: Any) -> Dict[str, Any]:
    return dict(value) if isinstance(value, dict) else {}


def has_billion_funding(funding: Any) -> bool:
    return bool(_BILLION.search(str(funding or "")))


def generate_strategic_note(competitor: Mapping[str, Any]) -> str:
    """Three-way classification of a competitor from funding and relevancy."""
    relevancy = clamp_relevancy(competitor.get("relevancyScore"))
    if has_billion_funding(competitor.get("totalFunding")) or relevancy >= 8:
        return NOTE_DIRECT
    if relevancy >= 6:
        return NOTE_ADJACENT
    return NOTE_INDIRECT


@dataclass
class Aspect:
    name: str
    description: str = ""
    importance: int = 5
    research_focus: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "Aspect":
        focus = raw.get("researchFocus") or []
        if isinstance(focus, str):
            focus = [focus]
        return cls(
            name=str(raw.get("name") or "").strip(),
            description=str(raw.get("description") or ""),
            importance=_score(raw.get("importance"), 5),
            research_focus=[str(f) for f in focus],
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "importance": self.importance,
            "researchFocus": list(self.research_focus),
        }


def sort_aspects(aspects: List[Aspect]) -> List[Aspect]:
    # sorted() es estable: los empates conservan el orden de la API
    return sorted(aspects, key=lambda a: a.importance, reverse=True)


@dataclass
class AspectFinding:
    aspect: str
    importance: int
    findings: Dict[str, Any]
    timestamp: str = field(default_factory=now_iso)

    @classmethod
    def fallback(cls, aspect: Aspect) -> "AspectFinding":
        return cls(
            aspect=aspect.name,
            importance=aspect.importance,
            findings={"error": FALLBACK_ERROR, "message": FALLBACK_MESSAGE},
        )

    @property
    def failed(self) -> bool:
        return self.findings.get("error") == FALLBACK_ERROR

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.aspect,
            "importance": self.importance,
            "findings": self.findings,
            "timestamp": self.timestamp,
        }


@dataclass
class CompetitorFact:
    name: str
    relevancy_score: int
    details: Dict[str, Any]
    strategic_note: str
    founded_year: Optional[str] = None
    funding: Optional[str] = None
    arr: Optional[str] = None
    employee_count: Optional[str] = None
    hq: Optional[str] = None
    key_product: Optional[str] = None

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any]) -> "CompetitorFact":
        details = dict(raw)
        relevancy = clamp_relevancy(raw.get("relevancyScore"))
        details["relevancyScore"] = relevancy
        return cls(
            name=str(raw.get("name") or "Unknown"),
            relevancy_score=relevancy,
            details=details,
            strategic_note=generate_strategic_note(details),
            founded_year=_opt_str(raw.get("yearFounded")),
            funding=_opt_str(raw.get("totalFunding")),
            arr=_opt_str(raw.get("arr")),
            employee_count=_opt_str(raw.get("employeeCount")),
            hq=_opt_str(raw.get("headquarters")),
            key_product=_opt_str(raw.get("keyProduct")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "relevancyScore": self.relevancy_score,
            "details": self.details,
            "strategicNote": self.strategic_note,
            "foundedYear": self.founded_year,
            "funding": self.funding,
            "arr": self.arr,
            "employeeCount": self.employee_count,
            "hq": self.hq,
            "keyProduct": self.key_product,
        }


def empty_feature_matrix() -> Dict[str, Any]:
    return {"competitors": [], "features": [], "keyInsights": []}


@dataclass
class AnalysisResult:
    solution_description: str
    analysis_date: str = field(default_factory=now_iso)
    competitors: List[CompetitorFact] = field(default_factory=list)
    top_threats: List[Dict[str, Any]] = field(default_factory=list)
    feature_matrix: Dict[str, Any] = field(default_factory=empty_feature_matrix)
    market_segmentation_maps: List[Dict[str, Any]] = field(default_factory=list)
    market_insights: List[str] = field(default_factory=list)
    market_gaps: List[Dict[str, Any]] = field(default_factory=list)
    strategic_recommendations: List[Dict[str, Any]] = field(default_factory=list)
    emerging_trends: List[str] = field(default_factory=list)
    summary: str = ""
    raw_aspects: List[AspectFinding] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "solutionDescription": self.solution_description,
            "analysisDate": self.analysis_date,
            "competitors": [c.to_dict() for c in self.competitors],
            "topThreats": self.top_threats,
            "featureMatrix": self.feature_matrix,
            "marketSegmentationMaps": self.market_segmentation_maps,
            "marketInsights": self.market_insights,
            "marketGaps": self.market_gaps,
            "strategicRecommendations": self.strategic_recommendations,
            "emergingTrends": self.emerging_trends,
            "summary": self.summary,
            "rawAspects": [a.to_dict() for a in self.raw_aspects],
        }

