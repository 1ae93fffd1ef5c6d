"""End-to-end: prompt to persisted draft with search unconfigured."""

import json

from dossier.core.llm import get_llm_client
from dossier.core.search import SearchClient, get_search_client
from dossier.main import app
from tests.fakes.fake_llm import FakeLLM

PROMPT = "Create a pitch deck for a B2B SaaS startup"


def test_prompt_to_draft_round_trip(api):
    llm = FakeLLM(
        [
            "A pitch deck for an early-stage B2B SaaS startup raising a seed round",
            json.dumps(
                {
                    "topic": "B2B SaaS pitch",
                    "findings": [
                        {"stat": "Seed rounds average $3M", "context": "Benchmarks"},
                        {"stat": "Net retention above 110% signals fit", "context": "Investor lens"},
                    ],
                    "frameworks": [],
                }
            ),
            json.dumps(
                {
                    "title": "Why Now: The Case for Our B2B SaaS Platform",
                    "slides": [
                        {"title": f"Slide {i}", "bullets": ["x"], "type": "mystery" if i == 3 else "content"}
                        for i in range(8)
                    ],
                }
            ),
        ]
    )
    search = SearchClient(api_key=None)
    app.dependency_overrides[get_llm_client] = lambda: llm
    app.dependency_overrides[get_search_client] = lambda: search

    preprocessed = api.post("/api/preprocess", json={"prompt": PROMPT}).json()
    enhanced = preprocessed["enhanced_prompt"]

    outline_response = api.post(
        "/api/generate-outline", json={"enhanced_prompt": enhanced, "original_prompt": PROMPT}
    )
    body = outline_response.json()

    assert outline_response.status_code == 200
    research = body["research"]
    assert [f["source"]["url"] for f in research["findings"]] == [
        "https://example.com/research",
        "https://example.com/trends",
    ]

    outline = body["outline"]
    assert outline["title"]
    assert 5 <= len(outline["slides"]) <= 12
    assert [s["index"] for s in outline["slides"]] == list(range(len(outline["slides"])))
    assert outline["slides"][3]["type"] == "content"

    draft = api.get(f"/api/drafts/{body['draft_id']}").json()["draft"]
    assert draft["outline"] == outline
    assert draft["prompt"] == PROMPT
    assert draft["enhanced_prompt"] == enhanced
