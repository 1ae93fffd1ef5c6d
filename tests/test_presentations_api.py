"""Tests for presentation endpoints: auth, queueing and CRUD."""

from types import SimpleNamespace

import pytest

from dossier.core.auth import AuthContext, get_current_user
from dossier.core.schemas import Outline, OutlineSlide, Presentation, PresentationStatus
from dossier.main import app
from dossier.services.slide_jobs import get_job_queue

OUTLINE = {
    "title": "Hiring Plan 2026",
    "slides": [{"index": i, "title": f"Slide {i}", "bullets": ["b"], "type": "content"} for i in range(5)],
}


class FakeQueue:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.submitted = []

    def submit(self, presentation, draft_id=None):
        if self.fail:
            raise RuntimeError("queue unavailable")
        self.submitted.append((presentation, draft_id))
        return SimpleNamespace(job_id="job-1")


@pytest.fixture
def queue():
    fake = FakeQueue()
    app.dependency_overrides[get_job_queue] = lambda: fake
    return fake


@pytest.fixture
def authed(api, queue):
    app.dependency_overrides[get_current_user] = lambda: AuthContext(
        user_id="user-1", token="tok", email="user1@example.com"
    )
    return api


def _seed(memory_stores, pid="p1", user_id="user-1", title="Hiring Plan 2026", **fields) -> Presentation:
    outline = Outline(
        title=title,
        slides=[OutlineSlide(index=i, title=f"S{i}", bullets=["b"], type="content") for i in range(5)],
    )
    return memory_stores.presentations.create(
        Presentation(id=pid, user_id=user_id, title=title, outline=outline, **fields)
    )


def test_requires_session(api, queue):
    response = api.post("/api/generate-presentation", json={"draft_id": "d1", "outline": OUTLINE})

    assert response.status_code == 401
    assert response.json()["detail"] == {"error": "Unauthorized"}


def test_rejects_other_users_id(authed):
    response = authed.post(
        "/api/generate-presentation",
        json={"draft_id": "d1", "outline": OUTLINE, "user_id": "someone-else"},
    )

    assert response.status_code == 403


def test_generate_accepts_and_queues(authed, queue, memory_stores):
    response = authed.post(
        "/api/generate-presentation",
        json={"draft_id": "d1", "outline": OUTLINE, "citation_style": "footnote", "theme": "bold"},
    )

    assert response.status_code == 202
    body = response.json()
    assert body["status"] == "generating"
    assert body["job_id"] == "job-1"

    stored = memory_stores.presentations.get(body["presentation_id"], "user-1")
    assert stored.status is PresentationStatus.GENERATING
    assert stored.citation_style.value == "footnote"
    assert queue.submitted[0][1] == "d1"

    # The session user is provisioned as a side effect
    _, created = memory_stores.users.ensure("user-1")
    assert created is False


def test_generate_validation(authed):
    missing = authed.post("/api/generate-presentation", json={"outline": OUTLINE})
    empty = authed.post(
        "/api/generate-presentation", json={"draft_id": "d1", "outline": {"title": "x", "slides": []}}
    )

    assert missing.status_code == 400
    assert missing.json()["detail"]["error"] == "Missing required fields: draft_id, outline"
    assert missing.json()["detail"]["message"]
    assert empty.status_code == 400
    assert empty.json()["detail"]["message"]


def test_queue_failure_marks_presentation_failed(authed, memory_stores):
    failing = FakeQueue(fail=True)
    app.dependency_overrides[get_job_queue] = lambda: failing

    response = authed.post("/api/generate-presentation", json={"draft_id": "d1", "outline": OUTLINE})

    assert response.status_code == 500
    [presentation] = memory_stores.presentations.list_for_user("user-1")
    assert presentation.status is PresentationStatus.FAILED
    assert presentation.error_message == "queue unavailable"


def test_list_and_search(authed, memory_stores):
    _seed(memory_stores, "p1", title="Hiring Plan 2026")
    _seed(memory_stores, "p2", title="Board Update")
    _seed(memory_stores, "p3", user_id="user-2", title="Hiring Elsewhere")

    listed = authed.get("/api/presentations").json()["presentations"]
    searched = authed.get("/api/presentations", params={"q": "hiring"}).json()["presentations"]

    assert {p["id"] for p in listed} == {"p1", "p2"}
    assert [p["id"] for p in searched] == ["p1"]


def test_get_scoped_to_owner(authed, memory_stores):
    _seed(memory_stores, "p1")
    _seed(memory_stores, "p9", user_id="user-2")

    assert authed.get("/api/presentations/p1").json()["presentation"]["id"] == "p1"
    assert authed.get("/api/presentations/p9").status_code == 404


def test_patch_updates_fields(authed, memory_stores):
    _seed(memory_stores, "p1")

    response = authed.patch("/api/presentations/p1", json={"title": "Renamed", "theme": "corporate"})

    assert response.status_code == 200
    assert response.json()["presentation"]["title"] == "Renamed"
    assert memory_stores.presentations.get("p1").theme.value == "corporate"


def test_patch_errors(authed, memory_stores):
    _seed(memory_stores, "p1")

    empty = authed.patch("/api/presentations/p1", json={})
    assert empty.status_code == 400
    assert empty.json()["detail"]["message"]
    assert authed.patch("/api/presentations/p1", json={"theme": "neon"}).status_code == 400
    missing = authed.patch("/api/presentations/missing", json={"title": "x"})
    assert missing.status_code == 404
    assert missing.json()["detail"] == {"error": "Presentation not found or unauthorized"}


def test_delete_and_duplicate(authed, memory_stores):
    _seed(memory_stores, "p1")

    duplicated = authed.post("/api/presentations/p1/duplicate")
    assert duplicated.status_code == 200
    copy_id = duplicated.json()["presentation_id"]
    assert memory_stores.presentations.get(copy_id).title == "Hiring Plan 2026 (Copy)"

    assert authed.delete("/api/presentations/p1").status_code == 200
    assert authed.delete("/api/presentations/p1").status_code == 404


def test_status_stream_for_finished_presentation(authed, memory_stores):
    _seed(memory_stores, "p1", status=PresentationStatus.COMPLETED)

    with authed.stream("GET", "/api/presentations/p1/stream") as response:
        body = "".join(response.iter_text())

    assert response.headers["content-type"].startswith("text/event-stream")
    assert body.startswith(": connected\n\n")
    assert '"status": "completed"' in body
    assert body.endswith('event: complete\ndata: {"status": "completed"}\n\n')


def test_status_stream_for_missing_presentation(authed):
    with authed.stream("GET", "/api/presentations/nope/stream") as response:
        body = "".join(response.iter_text())

    assert 'event: error\ndata: {"error": "Presentation not found"}' in body
