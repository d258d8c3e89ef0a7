# landscape/services/research.py
import asyncio
import logging
import uuid
from typing import Any, Dict, List, Optional

from landscape.errors import UpstreamError
from landscape.models import CompetitiveAnalysis, Competitor
from landscape.services.llm_client import TextGenerator, parse_json_object
from landscape.services.prompts import (
    ASPECTS_SYSTEM_PROMPT,
    ASPECTS_USER_PROMPT,
    RESEARCH_USER_PROMPT,
    SUMMARY_SYSTEM_PROMPT,
    SUMMARY_USER_PROMPT,
    research_prompt,
)
from landscape.services.research_models import (
    CANONICAL_ASPECTS,
    DIRECT_COMPETITORS,
    FEATURE_MATRIX,
    MARKET_GAPS,
    MARKET_SEGMENTATION,
    AnalysisResult,
    Aspect,
    AspectFinding,
    CompetitorFact,
    as_list,
    now_iso,
    sort_aspects,
)

logger = logging.getLogger(__name__)

MAX_KEY_FINDINGS = 5


def key_findings(findings: List[AspectFinding], limit: int = MAX_KEY_FINDINGS) -> List[str]:
    """Threat names, key insights and recommendations, in aspect order, truncated."""
    out: List[str] = []
    for f in findings:
        data = f.findings
        threats = [t for t in as_list(data.get("topThreats")) if isinstance(t, dict)]
        if threats:
            names = ", ".join(str(t.get("company") or "Unknown") for t in threats)
            out.append(f"Top competitive threats: {names}")
        out.extend(str(i) for i in as_list(data.get("keyInsights")))
        out.extend(
            str(r.get("recommendation"))
            for r in as_list(data.get("strategicRecommendations"))
            if isinstance(r, dict) and r.get("recommendation")
        )
    return out[:limit]


class ResearchEngine:
    """
    Multi-aspect competitive analysis.

    Stages: aspect generation -> parallel aspect research (asyncio fan-out,
    join barrier) -> aggregation + summary -> persistence. Stages 1-3 run in
    one event loop bounded by ``pipeline_deadline``; every generative call is
    bounded by ``aspect_timeout``. Persistence runs afterwards, synchronously,
    in the caller's app context.
    """

    def __init__(self, llm: TextGenerator, store, aspect_timeout: float = 180.0, pipeline_deadline: float = 600.0):
        self.llm = llm
        self.store = store
        self.aspect_timeout = aspect_timeout
        self.pipeline_deadline = pipeline_deadline

    def analyze(self, solution_description: str, industry_id: Optional[str] = None,
                metadata: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        logger.info(
            "Starting competitive landscape analysis",
            extra={"context": {"industry_id": industry_id}},
        )
        try:
            result = asyncio.run(self._run_pipeline(solution_description))
            analysis_id = self.store_analysis(result, industry_id, metadata)
        except Exception:
            logger.exception("Error in competitive landscape analysis")
            raise

        logger.info(f"Competitive analysis stored: {analysis_id}")
        return {"id": analysis_id, "timestamp": now_iso(), "results": result.to_dict()}

    async def _run_pipeline(self, solution_description: str) -> AnalysisResult:
        try:
            return await asyncio.wait_for(self.research(solution_description), timeout=self.pipeline_deadline)
        except asyncio.TimeoutError:
            raise UpstreamError(f"Research pipeline exceeded its {self.pipeline_deadline:g}s deadline") from None

    async def research(self, solution_description: str) -> AnalysisResult:
        aspects = await self.generate_aspects(solution_description)
        findings = await asyncio.gather(*(self.research_aspect(a, solution_description) for a in aspects))
        return await self.format_results(list(findings), solution_description)

    async def _complete(self, system_prompt: str, user_prompt: str, **kwargs) -> str:
        try:
            return await asyncio.wait_for(
                self.llm.complete(system_prompt, user_prompt, **kwargs),
                timeout=self.aspect_timeout,
            )
        except asyncio.TimeoutError:
            raise UpstreamError(f"Generative API call timed out after {self.aspect_timeout:g}s") from None

    # ---------------------------
    # Stage 1: aspects
    # ---------------------------

    async def generate_aspects(self, solution_description: str) -> List[Aspect]:
        text = await self._complete(
            ASPECTS_SYSTEM_PROMPT,
            ASPECTS_USER_PROMPT.format(solution=solution_description),
            json_mode=True,
            temperature=0.7,
        )
        parsed = parse_json_object(text)
        raw = parsed.get("aspects") if isinstance(parsed, dict) else parsed
        if not isinstance(raw, list):
            logger.warning("Aspect generation returned no aspect list")
            return []

        aspects = [Aspect.from_dict(a) for a in raw if isinstance(a, dict)]
        aspects = [a for a in aspects if a.name]

        missing = [name for name in CANONICAL_ASPECTS if name not in {a.name for a in aspects}]
        if missing:
            logger.warning(f"Canonical aspects missing from plan: {', '.join(missing)}")
        return sort_aspects(aspects)

    # ---------------------------
    # Stage 2: research (fan-out)
    # ---------------------------

    async def research_aspect(self, aspect: Aspect, solution_description: str) -> AspectFinding:
        """Research one aspect; any failure becomes the fallback finding."""
        try:
            text = await self._complete(
                research_prompt(aspect),
                RESEARCH_USER_PROMPT.format(solution=solution_description),
                json_mode=True,
                temperature=0.3,
            )
            findings = parse_json_object(text)
            if not isinstance(findings, dict):
                raise UpstreamError("Aspect research did not return a JSON object")
        except Exception as e:
            # un aspecto caído no aborta a los demás
            logger.error(f"Error researching aspect {aspect.name!r}: {e}")
            return AspectFinding.fallback(aspect)

        return AspectFinding(aspect=aspect.name, importance=aspect.importance, findings=findings)

    # ---------------------------
    # Stage 3: aggregation
    # ---------------------------

    async def format_results(self, findings: List[AspectFinding], solution_description: str) -> AnalysisResult:
        result = build_result(findings, solution_description)
        result.summary = await self.generate_summary(findings)
        return result

    async def generate_summary(self, findings: List[AspectFinding]) -> str:
        # sin fallback: si falla, falla el análisis
        return await self._complete(
            SUMMARY_SYSTEM_PROMPT,
            SUMMARY_USER_PROMPT.format(findings="\n".join(key_findings(findings))),
            temperature=0.7,
            max_tokens=300,
        )

    # ---------------------------
    # Stage 4: persistence
    # ---------------------------

    def store_analysis(self, result: AnalysisResult, industry_id: Optional[str] = None,
                       metadata: Optional[Dict[str, Any]] = None) -> str:
        analysis_id = uuid.uuid4().hex
        analysis = CompetitiveAnalysis(
            id=analysis_id,
            industry_id=industry_id,
            solution_description=result.solution_description,
            results=result.to_dict(),
            meta=dict(metadata or {}),
        )
        for c in result.competitors:
            analysis.competitors.append(Competitor(
                name=c.name,
                relevancy=c.relevancy_score,
                details=c.details,
                strategic_note=c.strategic_note,
            ))

        with self.store.transaction() as session:
            session.add(analysis)
        return analysis_id


def build_result(findings: List[AspectFinding], solution_description: str) -> AnalysisResult:
    """Pure aggregation of the per-aspect findings (summary left empty)."""
    by_name: Dict[str, AspectFinding] = {}
    for f in findings:
        by_name.setdefault(f.aspect, f)

    def section(name: str) -> Dict[str, Any]:
        f = by_name.get(name)
        if f is None or f.failed:
            return {}
        return f.findings

    competitors = section(DIRECT_COMPETITORS)
    features = section(FEATURE_MATRIX)
    mapping = section(MARKET_SEGMENTATION)
    gaps = section(MARKET_GAPS)

    return AnalysisResult(
        solution_description=solution_description,
        competitors=[CompetitorFact.from_raw(c) for c in as_list(competitors.get("competitors")) if isinstance(c, dict)],
        top_threats=[t for t in as_list(competitors.get("topThreats")) if isinstance(t, dict)],
        feature_matrix={
            **features,
            "competitors": as_list(features.get("competitors")),
            "features": as_list(features.get("features")),
            "keyInsights": as_list(features.get("keyInsights")),
        },
        market_segmentation_maps=[m for m in as_list(mapping.get("segmentationMaps")) if isinstance(m, dict)],
        market_insights=as_list(mapping.get("keyInsights")),
        market_gaps=[g for g in as_list(gaps.get("marketGaps")) if isinstance(g, dict)],
        strategic_recommendations=[r for r in as_list(gaps.get("strategicRecommendations")) if isinstance(r, dict)],
        emerging_trends=as_list(gaps.get("emergingTrends")),
        raw_aspects=list(findings),
    )
