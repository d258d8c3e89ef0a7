import asyncio
import json

import pytest

from conftest import DESCRIPTION, SUMMARY, scripted_llm
from landscape.errors import UpstreamError
from landscape.models import CompetitiveAnalysis
from landscape.services.llm_client import CallableGenerator, parse_json_object
from landscape.services.prompts import ASPECTS_SYSTEM_PROMPT
from landscape.services.research import build_result, key_findings
from landscape.services.research_models import (
    DIRECT_COMPETITORS,
    FALLBACK_ERROR,
    FALLBACK_MESSAGE,
    FEATURE_MATRIX,
    MARKET_GAPS,
    MARKET_SEGMENTATION,
    NOTE_ADJACENT,
    NOTE_DIRECT,
    NOTE_INDIRECT,
    Aspect,
    AspectFinding,
    CompetitorFact,
    generate_strategic_note,
    sort_aspects,
)


@pytest.mark.parametrize("funding, relevancy, expected", [
    ("$1.2B", 9, NOTE_DIRECT),
    ("$1.2B", 3, NOTE_DIRECT),
    ("$5M", 6, NOTE_ADJACENT),
    ("$2 billion", 1, NOTE_DIRECT),
    ("$3bn", 2, NOTE_DIRECT),
    ("$500M", 8, NOTE_DIRECT),
    ("$500M", 7, NOTE_ADJACENT),
    ("$500M", 6, NOTE_ADJACENT),
    ("$40M", 5, NOTE_INDIRECT),
    ("Bootstrapped", 5, NOTE_INDIRECT),
    (None, None, NOTE_INDIRECT),
])
def test_strategic_note(funding, relevancy, expected):
    assert generate_strategic_note({"totalFunding": funding, "relevancyScore": relevancy}) == expected


def test_competitor_relevancy_clamped():
    assert CompetitorFact.from_raw({"name": "X", "relevancyScore": 42}).relevancy_score == 10
    assert CompetitorFact.from_raw({"name": "X", "relevancyScore": "-3"}).relevancy_score == 1
    fact = CompetitorFact.from_raw({"name": "X", "relevancyScore": "n/a"})
    assert fact.relevancy_score == 5
    assert fact.details["relevancyScore"] == 5


def test_competitor_fields():
    fact = CompetitorFact.from_raw({
        "name": "Acme", "yearFounded": 2012, "totalFunding": "$1.2B", "arr": "$50M ARR",
        "employeeCount": "500", "headquarters": "Austin, TX", "keyProduct": "Helpdesk",
    })
    assert fact.founded_year == "2012"
    assert fact.hq == "Austin, TX"
    assert fact.strategic_note == NOTE_DIRECT
    assert CompetitorFact.from_raw({}).name == "Unknown"


def test_sort_aspects_is_stable():
    aspects = [Aspect("A", importance=5), Aspect("B", importance=9), Aspect("C", importance=5)]
    assert [a.name for a in sort_aspects(aspects)] == ["B", "A", "C"]
    once = sort_aspects(aspects)
    assert sort_aspects(once) == once


def test_aspect_importance_coerced():
    assert Aspect.from_dict({"name": "X", "importance": 99}).importance == 10
    assert Aspect.from_dict({"name": "X"}).importance == 5
    assert Aspect.from_dict({"name": "X", "researchFocus": "pricing"}).research_focus == ["pricing"]


def test_parse_json_object_tolerates_fences():
    assert parse_json_object('```json\n{"a": 1}\n```') == {"a": 1}
    assert parse_json_object('Sure! {"a": [1, 2]} hope it helps') == {"a": [1, 2]}
    with pytest.raises(UpstreamError):
        parse_json_object("no json here")


def test_research_orders_findings_by_importance(engine):
    result = asyncio.run(engine.research(DESCRIPTION))
    assert [a.aspect for a in result.raw_aspects] == [
        DIRECT_COMPETITORS, MARKET_GAPS, FEATURE_MATRIX, MARKET_SEGMENTATION,
    ]
    assert result.summary == SUMMARY
    assert [c.name for c in result.competitors] == ["Acme Support", "Beta Bots", "Gamma Chat"]
    assert result.top_threats == [{"company": "Acme Support", "threatReason": "Distribution"}]
    assert result.feature_matrix["keyInsights"] == ["Acme leads on integrations"]
    assert result.market_insights == ["Crowded low end"]
    assert result.emerging_trends == ["Agentic support"]


def test_failed_aspect_is_isolated(engine):
    engine.llm = scripted_llm(fail_aspects={FEATURE_MATRIX})
    result = asyncio.run(engine.research(DESCRIPTION))

    failed = [a for a in result.raw_aspects if a.failed]
    assert [a.aspect for a in failed] == [FEATURE_MATRIX]
    assert failed[0].findings == {"error": FALLBACK_ERROR, "message": FALLBACK_MESSAGE}
    assert result.feature_matrix == {"competitors": [], "features": [], "keyInsights": []}
    # el resto sigue intacto
    assert len(result.competitors) == 3
    assert result.market_gaps == [{"gapTitle": "SMB onboarding", "opportunityScore": 8}]


def test_all_aspects_failing_still_produces_result(engine):
    engine.llm = scripted_llm(fail_aspects={DIRECT_COMPETITORS, FEATURE_MATRIX, MARKET_SEGMENTATION, MARKET_GAPS})
    result = asyncio.run(engine.research(DESCRIPTION))
    assert all(a.failed for a in result.raw_aspects)
    assert result.competitors == []
    assert result.summary == SUMMARY


def test_unparseable_aspect_plan_fails(engine):
    engine.llm = scripted_llm(aspects_text="I cannot help with that")
    with pytest.raises(UpstreamError):
        asyncio.run(engine.research(DESCRIPTION))


def test_aspect_plan_without_list_degrades(engine):
    engine.llm = scripted_llm(aspects_text=json.dumps({"plan": "none"}))
    result = asyncio.run(engine.research(DESCRIPTION))
    assert result.raw_aspects == []
    assert result.competitors == []


def test_generic_aspect_uses_generic_prompt(engine):
    calls = []
    engine.llm = scripted_llm(
        aspects_text=json.dumps({"aspects": [{"name": "Pricing Benchmarks", "importance": 6}]}),
        calls=calls,
    )
    result = asyncio.run(engine.research(DESCRIPTION))
    assert result.raw_aspects[0].findings == {"notes": ["generic aspect"]}
    assert any('researching "Pricing Benchmarks"' in c for c in calls)


def test_summary_failure_propagates(engine):
    engine.llm = scripted_llm(summary_error=UpstreamError("summary down"))
    with pytest.raises(UpstreamError):
        engine.analyze(DESCRIPTION)
    assert CompetitiveAnalysis.query.count() == 0


def test_slow_aspect_times_out_to_fallback(engine):
    async def slow(system, user, json_mode=False):
        if system == ASPECTS_SYSTEM_PROMPT:
            return json.dumps({"aspects": [{"name": FEATURE_MATRIX, "importance": 8}]})
        if json_mode:
            await asyncio.sleep(1)
        return "summary"

    engine.llm = CallableGenerator(slow)
    engine.aspect_timeout = 0.05
    result = asyncio.run(engine.research(DESCRIPTION))
    assert result.raw_aspects[0].failed
    assert result.summary == "summary"


def test_pipeline_deadline(engine):
    async def stuck(system, user, json_mode=False):
        await asyncio.sleep(1)
        return "{}"

    engine.llm = CallableGenerator(stuck)
    engine.pipeline_deadline = 0.05
    with pytest.raises(UpstreamError):
        engine.analyze(DESCRIPTION)


def test_analyze_persists(engine, store):
    out = engine.analyze(DESCRIPTION, "retail-tech", {"source": "test"})
    assert out["results"]["summary"] == SUMMARY

    analysis = store.get(CompetitiveAnalysis, out["id"])
    assert analysis.industry_id == "retail-tech"
    assert analysis.meta == {"source": "test"}
    assert [c.name for c in analysis.competitors] == ["Beta Bots", "Acme Support", "Gamma Chat"]
    assert analysis.competitors[1].details["headquarters"] == "San Francisco, CA"


def test_build_result_without_findings():
    result = build_result([], DESCRIPTION)
    assert result.competitors == []
    assert result.market_gaps == []
    assert result.summary == ""


def test_key_findings_truncated():
    findings = [
        AspectFinding(DIRECT_COMPETITORS, 10, {"topThreats": [{"company": "Acme"}, {"company": "Beta"}]}),
        AspectFinding(FEATURE_MATRIX, 8, {"keyInsights": ["i1", "i2", "i3"]}),
        AspectFinding(MARKET_GAPS, 7, {"strategicRecommendations": [{"recommendation": "r1"}, {"recommendation": "r2"}]}),
    ]
    assert key_findings(findings) == ["Top competitive threats: Acme, Beta", "i1", "i2", "i3", "r1"]


def test_analyze_with_failed_aspect_persists(engine, store):
    engine.llm = scripted_llm(fail_aspects={FEATURE_MATRIX})
    out = engine.analyze(DESCRIPTION)

    analysis = store.get(CompetitiveAnalysis, out["id"])
    assert len(analysis.competitors) == 3
    assert analysis.results["featureMatrix"] == {"competitors": [], "features": [], "keyInsights": []}

    raw = {a["name"]: a for a in analysis.results["rawAspects"]}
    assert raw[FEATURE_MATRIX]["findings"] == {"error": FALLBACK_ERROR, "message": FALLBACK_MESSAGE}
    assert "error" not in raw[DIRECT_COMPETITORS]["findings"]
    assert out["results"]["summary"] == SUMMARY


def test_feature_matrix_keeps_extra_keys():
    findings = [AspectFinding(FEATURE_MATRIX, 8, {"competitors": ["A"], "pricingTiers": {"A": "$"}, "keyInsights": "x"})]
    result = build_result(findings, DESCRIPTION)
    assert result.feature_matrix == {
        "competitors": ["A"],
        "features": [],
        "keyInsights": [],
        "pricingTiers": {"A": "$"},
    }
