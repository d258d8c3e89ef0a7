# landscape/services/prompts.py
from landscape.services.research_models import (
    DIRECT_COMPETITORS,
    FEATURE_MATRIX,
    MARKET_GAPS,
    MARKET_SEGMENTATION,
)

ASPECTS_SYSTEM_PROMPT = f"""You plan competitive landscape research for a product.

Return ONLY a JSON object of the form {{"aspects": [...]}}. Each aspect has:
- name: string
- description: string, at most 30 words
- importance: integer 1-10
- researchFocus: list of strings (data points to gather)

The list MUST contain these four aspects, using exactly these names:
1. "{DIRECT_COMPETITORS}" - companies with similar solutions and their key metrics
2. "{FEATURE_MATRIX}" - feature sets compared across competitors
3. "{MARKET_SEGMENTATION}" - where competitors sit on 2x2 positioning maps
4. "{MARKET_GAPS}" - unmet needs, white spaces and recommendations

You may add further aspects if the product clearly needs them."""

ASPECTS_USER_PROMPT = "Plan the competitive landscape research for this solution:\n{solution}"

RESEARCH_USER_PROMPT = """Solution under analysis:
{solution}

Use concrete, named companies and real market data where you know it.
If a value is unknown write "Not disclosed" rather than inventing a number.
Answer with a single JSON object and nothing else."""

SUMMARY_SYSTEM_PROMPT = """Write an executive summary of a competitive landscape analysis.
Three short paragraphs, at most 200 words in total:
1. the main competitive threats
2. the market opportunities
3. the recommended strategic actions
Be specific and action oriented. Plain text, no markdown."""

SUMMARY_USER_PROMPT = "Key findings:\n{findings}"

# Plantillas por aspecto canónico (clave = nombre exacto)
ASPECT_TEMPLATES = {
    DIRECT_COMPETITORS: """You are a market research analyst.
List 8-12 competitors of the solution. For each one report:
name, yearFounded (YYYY), totalFunding ("$XXM", "$X.XB" or "Bootstrapped"),
latestRound, targetMarket, arr ("$XXM ARR" or "Not disclosed"), employeeCount,
headquarters, keyProduct (max 30 words) and relevancyScore (integer 1-10,
similarity to the solution).
Also name the most dangerous ones in topThreats.

JSON shape:
{"competitors": [{"name": "", "yearFounded": "", "totalFunding": "", "latestRound": "",
  "targetMarket": "", "arr": "", "employeeCount": "", "headquarters": "",
  "keyProduct": "", "relevancyScore": 0}],
 "topThreats": [{"company": "", "threatReason": ""}]}""",

    FEATURE_MATRIX: """You are a product analyst.
Compare the features of the main 5 competitors of the solution across these
categories: core functionality, scalability, integrations, security and
compliance, deployment, support, pricing model, differentiators.

JSON shape:
{"competitors": ["A", "B"],
 "features": [{"category": "", "features": [{"name": "", "companies": {"A": true, "B": false}}]}],
 "keyInsights": [""]}""",

    MARKET_SEGMENTATION: """You are a market positioning analyst.
Build three 2x2 maps: Innovation vs Market Share, Price vs Features,
Customer Size vs Specialization. Place 5-8 companies on each map with x and y
between 1 and 10 and a one-line rationale.

JSON shape:
{"segmentationMaps": [{"title": "", "xAxis": "", "yAxis": "", "description": "",
  "quadrants": {"topRight": {"label": "", "companies": [{"name": "", "x": 0, "y": 0, "rationale": ""}]},
                "topLeft": {}, "bottomRight": {}, "bottomLeft": {}}}],
 "keyInsights": [""]}""",

    MARKET_GAPS: """You are a market opportunity analyst.
Find the gaps existing solutions leave open: unaddressed pain points,
regulatory demand, technology limits, geographic or vertical white space,
emerging use cases. Then recommend what to do about them.

JSON shape:
{"marketGaps": [{"gapTitle": "", "description": "", "marketSize": "",
  "currentSolutions": "", "opportunityScore": 0, "timeToMarket": "",
  "requiredCapabilities": [""]}],
 "strategicRecommendations": [{"recommendation": "", "rationale": "", "priority": "High"}],
 "emergingTrends": [""]}""",
}

GENERIC_TEMPLATE = """You are an expert analyst researching "{name}".
Scope: {description}
Focus on: {focus}
Give data-driven findings, structured as a JSON object with descriptive keys."""


def research_prompt(aspect) -> str:
    """System prompt for one aspect: canonical template or the generic one."""
    template = ASPECT_TEMPLATES.get(aspect.name)
    if template is not None:
        return template
    return GENERIC_TEMPLATE.format(
        name=aspect.name,
        description=aspect.description or aspect.name,
        focus=", ".join(aspect.research_focus) or "the most relevant data points",
    )
