"""
HTTP-level tests for the Q&A, post reply and resource routes.

Dependencies are overridden with in-memory stand-ins; no Supabase, OpenAI or
Redis is contacted.
"""

from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient

from conftest import FakeSupabase, make_reply, make_thread

from app import dependencies
from app.api.routers import resources as resources_router
from app.main import app
from app.services.db.courses import CourseService
from app.services.db.resources import ResourceService
from app.services.errors import AIErrorInfo, GenerationServiceError, RetryExhaustedError
from app.services.forum_qa.models import AttributedAnswer


COURSE_ROW = {"id": 1, "code": "CS101", "name": "Intro", "file_search_store_id": "vs_1"}


class StubQuestionService:
    def __init__(self, result=None, error=None):
        self.result = result or AttributedAnswer(
            text="Week 8.\n\nSources:\n- Syllabus\n",
            citations=["Syllabus"],
            context_thread_ids=[4],
            duplicate_of=4,
        )
        self.error = error
        self.calls = []
        self.excluded = []

    async def answer_detailed(
        self, course_id, course_name, search_handle, question,
        log_tag=None, exclude_thread_id=None,
    ):
        self.calls.append((course_id, course_name, search_handle, question))
        self.excluded.append(exclude_thread_id)
        if self.error is not None:
            raise self.error
        return self.result

    async def answer(self, *args, **kwargs):
        return (await self.answer_detailed(*args, **kwargs)).text


class StubThreadService:
    def __init__(self, threads):
        self.threads = {t.id: t for t in threads}

    def get_thread(self, post_id):
        return self.threads.get(post_id)


class StubFileSearch:
    def __init__(self):
        self.courses = []

    async def ensure_store_for_course(self, course):
        self.courses.append(course["id"])
        return course.get("file_search_store_id") or "vs_new"


class StubTask:
    def __init__(self):
        self.scheduled = []

    def apply_async(self, kwargs=None, queue=None):
        self.scheduled.append((kwargs, queue))
        return SimpleNamespace(id="task-1")


@pytest.fixture
def db():
    return FakeSupabase(tables={"courses": [dict(COURSE_ROW)], "resources": []})


@pytest.fixture
def question_service():
    return StubQuestionService()


@pytest.fixture
def client(db, question_service):
    app.dependency_overrides[dependencies.get_course_service] = lambda: CourseService(db)
    app.dependency_overrides[dependencies.get_question_service] = lambda: question_service
    app.dependency_overrides[dependencies.get_resource_service] = lambda: ResourceService(db)
    app.dependency_overrides[dependencies.get_service_db] = lambda: db
    yield TestClient(app, raise_server_exceptions=False)
    app.dependency_overrides.clear()


def test_chat_returns_attributed_answer(client, question_service):
    response = client.post("/api/llm/courses/1/chat", json={"message": "  When is the midterm? "})

    assert response.status_code == 200
    body = response.json()
    assert body["answer"].startswith("Week 8.")
    assert body["citations"] == ["Syllabus"]
    assert body["context_thread_ids"] == [4]
    assert body["duplicate_of"] == 4
    assert question_service.calls == [(1, "CS101 - Intro", "vs_1", "When is the midterm?")]


def test_chat_unknown_course_is_404(client):
    response = client.post("/api/llm/courses/99/chat", json={"message": "hi"})

    assert response.status_code == 404
    assert response.json()["error_code"] == "NOT_FOUND"


def test_chat_blank_message_is_rejected(client):
    response = client.post("/api/llm/courses/1/chat", json={"message": "   "})

    assert response.status_code == 400
    assert response.json()["error_code"] == "VALIDATION_ERROR"


def test_chat_exhausted_retries_map_to_503(client, question_service):
    question_service.error = RetryExhaustedError(
        "answer generation failed after 3 attempts",
        info=AIErrorInfo(error_type="rate_limit", message="Model API rate limit exceeded"),
        attempts=3,
    )

    response = client.post("/api/llm/courses/1/chat", json={"message": "hi"})

    assert response.status_code == 503
    assert response.json()["error_code"] == "GENERATION_UNAVAILABLE"


def test_chat_fatal_generation_error_maps_to_502(client, question_service):
    question_service.error = GenerationServiceError(
        "answer generation failed",
        info=AIErrorInfo(error_type="bad_request", message="Invalid vector store", status_code=400),
    )

    response = client.post("/api/llm/courses/1/chat", json={"message": "hi"})

    assert response.status_code == 502
    assert response.json()["error_code"] == "EXTERNAL_SERVICE_ERROR"
    assert "Invalid vector store" in response.json()["detail"]


def test_stream_emits_answer_then_done(client):
    response = client.get("/api/llm/courses/1/stream", params={"message": "When?"})

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/event-stream")
    assert response.text.index("event: answer") < response.text.index("event: done")
    assert '"citations": ["Syllabus"]' in response.text


def test_stream_reports_generation_failure_as_event(client, question_service):
    question_service.error = RetryExhaustedError("gave up", attempts=3)

    response = client.get("/api/llm/courses/1/stream", params={"message": "When?"})

    assert response.status_code == 200
    assert "event: error" in response.text
    assert "GENERATION_UNAVAILABLE" in response.text
    assert "event: done" not in response.text


def test_llm_reply_is_stored_unreviewed(client, db):
    thread = make_thread(
        7, title="Lab 2", body="<p>Is it graded?</p>", replies=[make_reply(1)], course_id=1
    )
    app.dependency_overrides[dependencies.get_thread_service] = lambda: StubThreadService([thread])

    response = client.post("/api/posts/7/llm-reply")

    assert response.status_code == 200
    body = response.json()
    assert body["post_id"] == 7
    assert body["llm_generated"] is True
    assert body["reviewed"] is False
    table, stored = db.inserts[-1]
    assert table == "replies"
    assert stored["author_id"] is None
    assert stored["from_instructor"] is False
    assert stored["llm_generated"] is True
    assert body["reply_id"] == stored["id"]


def test_llm_reply_sends_title_and_plain_body(client, question_service):
    thread = make_thread(7, title="Lab 2", body="<p>Is it graded?</p>", course_id=1)
    app.dependency_overrides[dependencies.get_thread_service] = lambda: StubThreadService([thread])

    client.post("/api/posts/7/llm-reply")

    assert question_service.calls[0][3] == "Lab 2\n\nIs it graded?"
    assert question_service.excluded == [7]


def test_llm_reply_unknown_post_is_404(client):
    app.dependency_overrides[dependencies.get_thread_service] = lambda: StubThreadService([])

    response = client.post("/api/posts/404/llm-reply")

    assert response.status_code == 404
    assert response.json()["detail"] == "Post not found"


def test_upload_stores_resource_and_schedules_indexing(client, db, monkeypatch):
    task = StubTask()
    file_search = StubFileSearch()
    uploads = []

    def fake_upload(supabase, course_id, filename, data, content_type):
        uploads.append((course_id, filename, content_type))
        return f"{course_id}/abc/{filename}"

    monkeypatch.setattr(resources_router, "index_course_resource", task)
    monkeypatch.setattr(resources_router, "upload_resource_file", fake_upload)
    app.dependency_overrides[dependencies.get_file_search_service] = lambda: file_search

    response = client.post(
        "/api/courses/1/resources",
        files={"file": ("week 1 notes.md", b"# Week 1\nRecursion basics", "application/octet-stream")},
        data={"title": "Week 1 Notes"},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["title"] == "Week 1 Notes"
    assert body["indexed"] is False
    assert body["indexing_task_id"] == "task-1"
    assert uploads == [(1, "week 1 notes.md", "text/markdown")]

    stored = db.tables["resources"][0]
    assert stored["extracted_text"] == "# Week 1\nRecursion basics"
    assert stored["storage_path"] == "1/abc/week 1 notes.md"

    kwargs, queue = task.scheduled[0]
    assert queue == "indexing"
    assert kwargs == {
        "resource_id": stored["id"],
        "store_id": "vs_1",
        "display_name": "Week_1_Notes",
        "mime_type": "text/markdown",
    }


def test_upload_rejects_empty_file(client, monkeypatch):
    monkeypatch.setattr(resources_router, "index_course_resource", StubTask())
    app.dependency_overrides[dependencies.get_file_search_service] = lambda: StubFileSearch()

    response = client.post(
        "/api/courses/1/resources",
        files={"file": ("empty.txt", b"", "text/plain")},
    )

    assert response.status_code == 400


def test_resource_status_reports_pending(client, db):
    db.tables["resources"] = [
        {"id": 1, "course_id": 1, "indexed_in_file_search": True},
        {"id": 2, "course_id": 1, "indexed_in_file_search": False},
        {"id": 3, "course_id": 2, "indexed_in_file_search": False},
    ]

    response = client.get("/api/courses/1/resources/status")

    assert response.status_code == 200
    assert response.json() == {"indexed": False, "pending": 1, "total": 2}


def test_health_endpoints(client):
    assert client.get("/health").json() == {"status": "healthy"}
    assert client.get("/api/health").json()["service"] == "forum-qa-api"
