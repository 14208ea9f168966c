"""Shared fixtures: an in-memory stand-in for the MongoDB database."""

from types import SimpleNamespace

import pytest
from bson import ObjectId


def _matches(doc, query):
    for key, cond in (query or {}).items():
        value = doc.get(key)
        if isinstance(cond, dict) and "$in" in cond:
            if value not in cond["$in"]:
                return False
        elif value != cond:
            return False
    return True


def _project(doc, projection):
    if not projection:
        return dict(doc)
    keys = {k for k, v in projection.items() if v} | {"_id"}
    return {k: v for k, v in doc.items() if k in keys}


class FakeCursor:
    def __init__(self, docs):
        self._docs = list(docs)

    def sort(self, key, direction=1):
        self._docs.sort(key=lambda d: d.get(key), reverse=direction < 0)
        return self

    def limit(self, n):
        self._docs = self._docs[:n]
        return self

    def __iter__(self):
        return iter(self._docs)


class FakeCollection:
    def __init__(self):
        self.docs = []
        self.aggregate_results = []
        self.pipelines = []

    def insert_one(self, doc):
        doc.setdefault("_id", ObjectId())
        self.docs.append(dict(doc))
        return SimpleNamespace(inserted_id=doc["_id"], acknowledged=True)

    def find(self, query=None, projection=None):
        return FakeCursor(_project(d, projection) for d in self.docs if _matches(d, query))

    def find_one(self, query=None, projection=None, sort=None):
        cursor = self.find(query, projection)
        for key, direction in sort or []:
            cursor.sort(key, direction)
        return next(iter(cursor), None)

    def update_one(self, query, update):
        for doc in self.docs:
            if _matches(doc, query):
                doc.update(update.get("$set", {}))
                return SimpleNamespace(matched_count=1, modified_count=1, acknowledged=True)
        return SimpleNamespace(matched_count=0, modified_count=0, acknowledged=True)

    def aggregate(self, pipeline):
        self.pipelines.append(pipeline)
        return iter(self.aggregate_results.pop(0) if self.aggregate_results else [])


class FakeDb:
    def __init__(self):
        self.collections = {}

    def __getitem__(self, name):
        return self.collections.setdefault(name, FakeCollection())


@pytest.fixture
def fake_db(monkeypatch):
    """Route every service's get_db() to a fresh in-memory database."""
    from scrapehub.services import credit_usage_service, scraper_service

    db = FakeDb()
    monkeypatch.setattr(scraper_service, "get_db", lambda: db)
    monkeypatch.setattr(credit_usage_service, "get_db", lambda: db)
    return db
