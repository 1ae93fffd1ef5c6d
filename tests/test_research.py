"""Tests for query planning and research shaping."""

import json
from datetime import date

import pytest

from dossier.chains.research import (
    conduct_research,
    dedupe_by_url,
    generate_search_queries,
    is_complex_prompt,
)
from dossier.core.search import SearchClient, SearchResult
from tests.fakes.fake_llm import FakeLLM, FakeSearch

RESEARCH_JSON = json.dumps(
    {
        "topic": "B2B SaaS pitch decks",
        "findings": [
            {"stat": "73% of investors read decks in under 4 minutes", "context": "Attention is scarce"},
            {"stat": "Net revenue retention above 120% signals strength", "context": "Key SaaS metric"},
        ],
        "frameworks": [{"name": "Problem-Solution-Traction", "description": "Classic pitch arc"}],
    }
)


def test_is_complex_prompt():
    assert is_complex_prompt("solar energy, wind energy")
    assert is_complex_prompt(" ".join(["word"] * 21))
    assert not is_complex_prompt("the future of solar energy")


@pytest.mark.asyncio
async def test_simple_prompt_is_its_own_query():
    llm = FakeLLM()

    assert await generate_search_queries("remote work trends", llm) == ["remote work trends"]
    assert llm.calls == []


@pytest.mark.asyncio
async def test_complex_prompt_expands_to_queries():
    llm = FakeLLM(['["q one", "q two", "q three"]'])

    queries = await generate_search_queries("AI in healthcare, finance and retail", llm)

    assert queries == ["q one", "q two", "q three"]
    assert llm.calls[0]["max_tokens"] == 200
    assert llm.calls[0]["temperature"] == 0.5


@pytest.mark.asyncio
async def test_query_planning_falls_back_on_bad_output():
    prompt = "AI in healthcare, finance and retail"

    assert await generate_search_queries(prompt, FakeLLM(["not json"])) == [prompt]
    assert await generate_search_queries(prompt, FakeLLM(['{"q": 1}'])) == [prompt]


@pytest.mark.asyncio
async def test_research_with_mock_search():
    llm = FakeLLM([RESEARCH_JSON])
    search = SearchClient(api_key=None)

    result = await conduct_research("Create a pitch deck for a B2B SaaS startup", llm, search)

    assert result.success
    assert len(result.data.findings) == 2
    first, second = result.data.findings
    assert first.source.url == "https://example.com/research"
    assert second.source.url == "https://example.com/trends"
    assert first.source.domain == "example.com"
    assert first.source.date == date.today().isoformat()
    assert result.data.frameworks[0].source.url == "https://example.com/research"
    assert llm.calls[0]["max_tokens"] == 2000


@pytest.mark.asyncio
async def test_sources_fall_back_to_first_result():
    findings = [{"stat": f"stat {i}", "context": "c"} for i in range(3)]
    llm = FakeLLM([json.dumps({"topic": "t", "findings": findings, "frameworks": []})])
    search = FakeSearch([SearchResult(title="Only", url="https://only.org/a")])

    result = await conduct_research("topic", llm, search)

    assert [f.source.url for f in result.data.findings] == ["https://only.org/a"] * 3


@pytest.mark.asyncio
async def test_reputable_results_are_shaped_first():
    llm = FakeLLM([RESEARCH_JSON])
    search = FakeSearch(
        [
            SearchResult(title="Blog", url="https://blog.com/a"),
            SearchResult(title="Uni", url="https://uni.edu/a"),
        ]
    )

    result = await conduct_research("topic", llm, search)

    assert result.data.findings[0].source.url == "https://uni.edu/a"
    prompt = llm.calls[0]["user"]
    assert prompt.index("https://uni.edu/a") < prompt.index("https://blog.com/a")


@pytest.mark.asyncio
async def test_no_results_is_a_failure():
    llm = FakeLLM()

    result = await conduct_research("topic", llm, FakeSearch([]))

    assert not result.success
    assert "No search results" in result.error
    assert llm.calls == []


@pytest.mark.asyncio
async def test_unparseable_research_is_not_retried():
    llm = FakeLLM(["I could not find anything useful", RESEARCH_JSON])

    result = await conduct_research("topic", llm, SearchClient(api_key=None))

    assert not result.success
    assert result.error.startswith("Research failed")
    assert len(llm.calls) == 1


def test_dedupe_by_url_keeps_first_occurrence():
    results = [
        SearchResult(title="First", url="https://a.com/x"),
        SearchResult(title="Other", url="https://b.com/y"),
        SearchResult(title="Repeat", url="https://a.com/x"),
    ]

    assert [r.title for r in dedupe_by_url(results)] == ["First", "Other"]


@pytest.mark.asyncio
async def test_overlapping_query_results_are_shaped_once():
    llm = FakeLLM(['["q1", "q2", "q3"]', RESEARCH_JSON])
    search = FakeSearch([SearchResult(title=f"Site {i}", url=f"https://site{i}.com/a") for i in range(5)])

    result = await conduct_research("AI in healthcare, finance and retail", llm, search)

    assert result.success
    assert search.queries == ["q1", "q2", "q3"]
    prompt = llm.calls[1]["user"]
    for i in range(5):
        assert prompt.count(f"https://site{i}.com/a") == 1
    assert [f.source.url for f in result.data.findings] == ["https://site0.com/a", "https://site1.com/a"]
