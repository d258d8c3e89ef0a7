import json

import pytest

from landscape import create_app
from landscape.errors import UpstreamError
from landscape.services.llm_client import CallableGenerator
from landscape.services.prompts import ASPECT_TEMPLATES, ASPECTS_SYSTEM_PROMPT, SUMMARY_SYSTEM_PROMPT
from landscape.services.research_models import (
    DIRECT_COMPETITORS,
    FEATURE_MATRIX,
    MARKET_GAPS,
    MARKET_SEGMENTATION,
)

DESCRIPTION = "AI-powered customer service chatbot for mid-size e-commerce stores"

ASPECTS = {
    "aspects": [
        {"name": DIRECT_COMPETITORS, "description": "Who sells the same thing", "importance": 10,
         "researchFocus": ["funding", "ARR"]},
        {"name": FEATURE_MATRIX, "description": "Feature comparison", "importance": 8},
        {"name": MARKET_SEGMENTATION, "description": "2x2 maps", "importance": 7},
        {"name": MARKET_GAPS, "description": "White space", "importance": 9},
    ]
}

RESEARCH = {
    DIRECT_COMPETITORS: {
        "competitors": [
            {"name": "Acme Support", "totalFunding": "$1.2B", "relevancyScore": 5, "yearFounded": 2012,
             "headquarters": "San Francisco, CA"},
            {"name": "Beta Bots", "totalFunding": "$20M", "relevancyScore": 7},
            {"name": "Gamma Chat", "totalFunding": "Bootstrapped", "relevancyScore": 3},
        ],
        "topThreats": [{"company": "Acme Support", "threatReason": "Distribution"}],
    },
    FEATURE_MATRIX: {
        "competitors": ["Acme Support", "Beta Bots"],
        "features": [{"category": "Integrations", "features": [{"name": "Shopify", "companies": {"Acme Support": True}}]}],
        "keyInsights": ["Acme leads on integrations"],
    },
    MARKET_SEGMENTATION: {
        "segmentationMaps": [{"title": "Price vs Features", "xAxis": "Price", "yAxis": "Features"}],
        "keyInsights": ["Crowded low end"],
    },
    MARKET_GAPS: {
        "marketGaps": [{"gapTitle": "SMB onboarding", "opportunityScore": 8}],
        "strategicRecommendations": [{"recommendation": "Target SMB stores first", "priority": "High"}],
        "emergingTrends": ["Agentic support"],
    },
}

SUMMARY = "Crowded market led by Acme; SMB onboarding is open."


def scripted_llm(fail_aspects=(), summary=SUMMARY, summary_error=None, aspects_text=None, calls=None):
    """Fake generative API: answers by system prompt."""

    def fn(system, user, json_mode=False):
        if calls is not None:
            calls.append(system)
        if system == ASPECTS_SYSTEM_PROMPT:
            return aspects_text if aspects_text is not None else json.dumps(ASPECTS)
        if system == SUMMARY_SYSTEM_PROMPT:
            if summary_error is not None:
                raise summary_error
            return summary
        for name, template in ASPECT_TEMPLATES.items():
            if system == template:
                if name in fail_aspects:
                    raise UpstreamError(f"research down for {name}")
                return json.dumps(RESEARCH[name])
        return json.dumps({"notes": ["generic aspect"]})

    return CallableGenerator(fn)


class RecordingEnqueuer:
    name = "recording"

    def __init__(self):
        self.calls = []
        self.fail = None

    def enqueue(self, job_id, job_type, data):
        if self.fail is not None:
            raise self.fail
        self.calls.append((job_id, job_type, data))
        return f"task-{job_id}"


@pytest.fixture()
def app():
    app = create_app("testing")
    app.extensions["landscape.engine"].llm = scripted_llm()
    with app.app_context():
        yield app


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def auth():
    return {"X-API-Key": "test-api-key"}


@pytest.fixture()
def store(app):
    return app.extensions["landscape.store"]


@pytest.fixture()
def engine(app):
    return app.extensions["landscape.engine"]


@pytest.fixture()
def dispatcher(app):
    return app.extensions["landscape.dispatcher"]


@pytest.fixture()
def executor(app):
    return app.extensions["landscape.executor"]


@pytest.fixture()
def enqueuer(dispatcher):
    rec = RecordingEnqueuer()
    dispatcher.enqueuer = rec
    return rec
