"""
Pytest configuration and shared fixtures.

This file provides:
- Import path setup for the backend package
- Placeholder environment for modules that read settings at import time
- Builders for threads/replies/resources
- In-memory stand-ins for the Supabase client and OpenAI errors
"""

import os
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from types import SimpleNamespace

import httpx
import pytest

BASE_DIR = Path(__file__).parent.parent
sys.path.insert(0, str(BASE_DIR))

os.environ.setdefault("SUPABASE_URL", "http://localhost:54321")
os.environ.setdefault("SUPABASE_ANON_KEY", "test-anon-key")
os.environ.setdefault("SUPABASE_SERVICE_ROLE_KEY", "test-service-key")
os.environ.setdefault("OPENAI_API_KEY", "sk-test")

from app.services.forum_qa.models import Reply, Resource, Thread  # noqa: E402

BASE_TIME = datetime(2025, 1, 10, 12, 0, tzinfo=timezone.utc)


def make_reply(reply_id, body="An answer", **kwargs):
    return Reply(id=reply_id, body=body, **kwargs)


def make_thread(thread_id, title="Question", body="Body", replies=(), minutes_ago=0, **kwargs):
    return Thread(
        id=thread_id,
        title=title,
        body=body,
        created_at=BASE_TIME - timedelta(minutes=minutes_ago),
        course_id=kwargs.pop("course_id", 1),
        replies=tuple(replies),
        **kwargs,
    )


def make_resource(resource_id, text, title=None, filename=None, indexed=True):
    return Resource(
        id=resource_id,
        course_id=1,
        title=title,
        original_filename=filename,
        extracted_text=text,
        indexed=indexed,
    )


def make_status_error(error_cls, status_code, body=None):
    """Build an openai.APIStatusError subclass instance without a network call."""
    request = httpx.Request("POST", "https://api.openai.test/v1/responses")
    response = httpx.Response(status_code, request=request)
    return error_cls(f"HTTP {status_code}", response=response, body=body)


def make_request():
    return httpx.Request("POST", "https://api.openai.test/v1/responses")


class StubThreadStore:
    """ThreadStore over a fixed list, most recent first."""

    def __init__(self, threads, error=None):
        self.threads = sorted(threads, key=lambda t: t.created_at, reverse=True)
        self.error = error
        self.calls = []

    def list_threads(self, course_id, limit=None, search_terms=None):
        self.calls.append((course_id, limit, tuple(search_terms or ())))
        if self.error is not None:
            raise self.error
        threads = [t for t in self.threads if t.course_id == course_id]
        if search_terms:
            threads = [t for t in threads if _contains_any(t, search_terms)]
        return threads[:limit] if limit else threads


def _contains_any(thread, terms):
    text = f"{thread.title} {thread.body}".lower()
    return any(term.lower() in text for term in terms)


class StubResourceStore:
    def __init__(self, resources=(), pending=0):
        self.resources = list(resources)
        self.pending = pending
        self.list_calls = 0

    def list_resources(self, course_id):
        self.list_calls += 1
        return list(self.resources)

    def count_pending(self, course_id):
        return self.pending


class FakeQuery:
    """Chainable stand-in for a PostgREST query builder."""

    def __init__(self, db, table):
        self.db = db
        self.table = table
        self.filters = []
        self.any_of = []
        self.payload = None
        self.operation = "select"
        self.row_limit = None

    def select(self, *args, **kwargs):
        self.db.selects.append((self.table, args[0] if args else "*"))
        return self

    def eq(self, key, value):
        self.filters.append((key, value))
        return self

    def in_(self, key, values):
        self.filters.append((key, tuple(values)))
        return self

    def or_(self, filters):
        """Only the column.ilike.%term% clauses used by the thread search."""
        self.db.or_filters.append((self.table, filters))
        clauses = []
        for clause in filters.split(","):
            column, op, pattern = clause.split(".", 2)
            assert op == "ilike"
            clauses.append((column, pattern.strip("%").lower()))
        self.any_of.append(clauses)
        return self

    def order(self, *args, **kwargs):
        return self

    def limit(self, n):
        self.row_limit = n
        return self

    def insert(self, payload):
        self.operation, self.payload = "insert", payload
        return self

    def update(self, payload):
        self.operation, self.payload = "update", payload
        return self

    def _matches(self, row):
        for key, value in self.filters:
            if isinstance(value, tuple):
                if row.get(key) not in value:
                    return False
            elif row.get(key) != value:
                return False
        for clauses in self.any_of:
            if not any(term in (row.get(column) or "").lower() for column, term in clauses):
                return False
        return True

    def execute(self):
        rows = self.db.tables.setdefault(self.table, [])
        if self.operation == "insert":
            stored = {"id": len(rows) + 100, **self.payload}
            rows.append(stored)
            self.db.inserts.append((self.table, stored))
            return SimpleNamespace(data=[stored])
        matched = [r for r in rows if self._matches(r)]
        if self.operation == "update":
            for row in matched:
                row.update(self.payload)
            self.db.updates.append((self.table, self.payload))
            return SimpleNamespace(data=matched)
        if self.row_limit:
            matched = matched[: self.row_limit]
        return SimpleNamespace(data=matched)


class FakeBucket:
    def __init__(self, db):
        self.db = db

    def upload(self, path, file, file_options=None):
        self.db.files[path] = file

    def download(self, path):
        if path not in self.db.files:
            raise RuntimeError(f"Object not found: {path}")
        return self.db.files[path]


class FakeSupabase:
    """In-memory Supabase client: tables of dict rows plus one storage namespace."""

    def __init__(self, tables=None, files=None):
        self.tables = tables or {}
        self.files = files or {}
        self.selects = []
        self.inserts = []
        self.updates = []
        self.or_filters = []
        self.storage = SimpleNamespace(from_=lambda bucket: FakeBucket(self))

    def table(self, name):
        return FakeQuery(self, name)


@pytest.fixture
def fake_supabase():
    return FakeSupabase()
