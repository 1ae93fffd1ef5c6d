"""Web research: query planning, search aggregation and LLM shaping into findings."""

import json

from pydantic import ValidationError

from dossier.core.llm import LLMClient, LLMError, parse_llm_json
from dossier.core.logging import get_logger
from dossier.core.schemas import AgentResponse, Framework, ResearchData, ResearchFinding
from dossier.core.search import SearchClient, SearchResult, prioritize_reputable_domains

logger = get_logger(__name__)

RESULTS_PER_QUERY = 5
MAX_RESULTS_FOR_SHAPING = 15
COMPLEX_PROMPT_WORDS = 20

QUERY_PLANNER_SYSTEM = "You are a search query optimizer. Generate diverse, specific search queries."

SYSTEM_PROMPT = """You are a research analyst for an AI presentation generator.

Your role is to extract structured, presentation-ready insights from web search results.

Guidelines:
- Focus on data points, statistics, frameworks, and actionable insights
- Each finding should be: specific stat + one-line context
- Prioritize recent data
- Include only credible, well-cited information
- Format findings as concise bullet points (1 sentence each)

Output format (JSON only, no markdown):
{
  "topic": "clear topic name",
  "findings": [
    {
      "stat": "Specific data point or key insight",
      "context": "One-line explanation of what this means"
    }
  ],
  "frameworks": [
    {
      "name": "Framework name",
      "description": "Brief description of the framework"
    }
  ]
}

Important:
- Return ONLY valid JSON, no markdown code blocks
- Include 5-10 findings minimum
- Include 2-4 frameworks if applicable
- All findings must be specific and actionable"""

FEW_SHOT_EXAMPLES = """Example 1:
Topic: "B2B SaaS sales strategies"
Search results: [Various articles about sales tactics, conversion rates, and pipeline management]

Output:
{
  "topic": "B2B SaaS Sales Strategies",
  "findings": [
    {
      "stat": "Companies using value-based selling see 40% higher win rates than feature-focused competitors",
      "context": "Customers care more about ROI than technical specifications"
    },
    {
      "stat": "Average B2B SaaS sales cycle is 84 days for deals over $50K",
      "context": "Complex enterprise sales require sustained engagement and multi-stakeholder buy-in"
    }
  ],
  "frameworks": [
    {
      "name": "MEDDIC",
      "description": "Metrics, Economic Buyer, Decision Criteria, Decision Process, Identify Pain, Champion"
    }
  ]
}

Example 2:
Topic: "Remote team leadership"
Search results: [Articles about remote work, team management, productivity]

Output:
{
  "topic": "Remote Team Leadership",
  "findings": [
    {
      "stat": "Remote teams report 22% higher productivity when using asynchronous communication tools",
      "context": "Async communication reduces meeting fatigue and allows deep focus work"
    }
  ],
  "frameworks": [
    {
      "name": "The 4 C's of Remote Leadership",
      "description": "Communication, Collaboration, Culture, and Connectivity"
    }
  ]
}"""


def is_complex_prompt(prompt: str) -> bool:
    return len(prompt.split()) > COMPLEX_PROMPT_WORDS or "," in prompt


async def generate_search_queries(enhanced_prompt: str, llm: LLMClient) -> list[str]:
    """
    Plan search queries for a topic.

    Simple prompts are searched as-is. Complex prompts are expanded into three
    complementary queries; any failure falls back to the prompt itself.
    """
    if not is_complex_prompt(enhanced_prompt):
        return [enhanced_prompt]

    user_prompt = f"""Generate 3 diverse search queries for this topic that will return complementary information:
"{enhanced_prompt}"

Return as JSON array of strings (no markdown):
["query 1", "query 2", "query 3"]"""

    try:
        result = await llm.generate(
            QUERY_PLANNER_SYSTEM, user_prompt, max_tokens=200, temperature=0.5
        )
        queries = parse_llm_json(result.content)
    except (LLMError, json.JSONDecodeError) as e:
        logger.warning(f"Query planning failed, using prompt as query: {e}")
        return [enhanced_prompt]

    if not isinstance(queries, list):
        return [enhanced_prompt]
    queries = [q for q in queries if isinstance(q, str) and q.strip()]
    return queries or [enhanced_prompt]


def dedupe_by_url(results: list[SearchResult]) -> list[SearchResult]:
    """Drop repeated URLs across queries, keeping the first occurrence."""
    seen: set[str] = set()
    unique = []
    for result in results:
        if result.url in seen:
            continue
        seen.add(result.url)
        unique.append(result)
    return unique


def format_search_results(results: list[SearchResult]) -> str:
    return "\n\n".join(
        f"[{idx + 1}] {result.title}\nSource: {result.url}\n{result.description}"
        for idx, result in enumerate(results)
    )


def _shape_research(raw: dict, results: list[SearchResult]) -> ResearchData:
    """Attach a source to each finding/framework by position, falling back to the top result."""

    def _result_at(idx: int) -> SearchResult:
        return results[idx] if idx < len(results) else results[0]

    findings = [
        ResearchFinding(
            stat=str(item.get("stat", "")),
            context=str(item.get("context", "")),
            source=_result_at(idx).to_source(with_date=True),
        )
        for idx, item in enumerate(raw.get("findings") or [])
        if isinstance(item, dict)
    ]
    frameworks = [
        Framework(
            name=str(item.get("name", "")),
            description=str(item.get("description", "")),
            source=_result_at(idx).to_source(),
        )
        for idx, item in enumerate(raw.get("frameworks") or [])
        if isinstance(item, dict)
    ]
    return ResearchData(topic=str(raw.get("topic", "")), findings=findings, frameworks=frameworks)


async def conduct_research(
    enhanced_prompt: str,
    llm: LLMClient,
    search: SearchClient,
) -> AgentResponse[ResearchData]:
    """
    Run searches for a prompt and shape the results into findings and frameworks.

    Parse failures are terminal for this stage; there is no internal retry.

    Args:
        enhanced_prompt: Prompt produced by the preprocessor
        llm: LLM client
        search: Search client

    Returns:
        AgentResponse with ResearchData
    """
    queries = await generate_search_queries(enhanced_prompt, llm)
    logger.info(f"Conducting {len(queries)} search(es)")

    all_results: list[SearchResult] = []
    for query in queries:
        all_results.extend(await search.search(query, RESULTS_PER_QUERY))

    if not all_results:
        return AgentResponse(
            success=False,
            error="No search results found. Please try a different prompt.",
        )

    unique_results = dedupe_by_url(all_results)
    logger.info(f"{len(unique_results)} unique result(s) from {len(all_results)}")
    prioritized = prioritize_reputable_domains(unique_results)

    user_prompt = f"""{FEW_SHOT_EXAMPLES}

Now analyze these search results and extract structured research:

Topic: "{enhanced_prompt}"

Search Results:
{format_search_results(prioritized[:MAX_RESULTS_FOR_SHAPING])}

Extract key findings and frameworks. Return ONLY valid JSON (no markdown):"""

    try:
        result = await llm.generate(
            SYSTEM_PROMPT, user_prompt, max_tokens=2000, temperature=0.5, retries=1
        )
        raw = parse_llm_json(result.content)
        if not isinstance(raw, dict):
            raise ValueError("Research output is not a JSON object")
        research = _shape_research(raw, prioritized)
    except (LLMError, ValueError, ValidationError) as e:
        # json.JSONDecodeError is a ValueError
        logger.error(f"Research error: {e}")
        return AgentResponse(success=False, error=f"Research failed: {e}")

    logger.info(
        f"Research complete: {len(research.findings)} findings, "
        f"{len(research.frameworks)} frameworks"
    )
    return AgentResponse(success=True, data=research, token_usage=result.token_count)
