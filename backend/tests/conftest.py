"""
backend/tests/conftest.py

Purpose:
    Shared pytest bootstrap for import paths plus an in-memory stand-in for
    the Motor collections the survivor services touch.
"""

from __future__ import annotations

import copy
import sys
from pathlib import Path
from types import SimpleNamespace

import pytest

_THIS_FILE = Path(__file__).resolve()
_BACKEND_DIR = _THIS_FILE.parents[1]
_REPO_ROOT = _THIS_FILE.parents[2]

for candidate in (str(_BACKEND_DIR), str(_REPO_ROOT)):
    if candidate not in sys.path:
        sys.path.insert(0, candidate)


class _Cursor:
    def __init__(self, docs):
        self._docs = list(docs)

    def sort(self, *_args, **_kwargs):
        return self

    async def to_list(self, length=1000):
        return self._docs[:length]


class FakeCollection:
    def __init__(self, docs=None):
        self.docs = [copy.deepcopy(d) for d in (docs or [])]
        self.updates: list[tuple[dict, dict]] = []
        self.fail_with: Exception | None = None

    @staticmethod
    def _get_nested(doc, path: str):
        cur = doc
        for part in path.split("."):
            if not isinstance(cur, dict) or part not in cur:
                return None, False
            cur = cur[part]
        return cur, True

    @staticmethod
    def _set_nested(doc, path: str, value) -> None:
        parts = path.split(".")
        cur = doc
        for part in parts[:-1]:
            cur = cur.setdefault(part, {})
        cur[parts[-1]] = copy.deepcopy(value)

    @staticmethod
    def _matches(doc, query) -> bool:
        for key, expected in query.items():
            value, exists = FakeCollection._get_nested(doc, key)
            if isinstance(expected, dict):
                if "$in" in expected and value not in expected["$in"]:
                    return False
                if "$exists" in expected and bool(expected["$exists"]) != bool(exists):
                    return False
                if "$gt" in expected and (value is None or not value > expected["$gt"]):
                    return False
                continue
            if not exists or value != expected:
                return False
        return True

    def _check_failure(self) -> None:
        if self.fail_with is not None:
            raise self.fail_with

    def find(self, query=None, _projection=None):
        self._check_failure()
        return _Cursor([copy.deepcopy(d) for d in self.docs if self._matches(d, query or {})])

    async def find_one(self, query, _projection=None):
        self._check_failure()
        for doc in self.docs:
            if self._matches(doc, query):
                return copy.deepcopy(doc)
        return None

    async def update_one(self, query, update, upsert=False):
        self._check_failure()
        self.updates.append((query, update))
        doc = next((row for row in self.docs if self._matches(row, query)), None)
        matched = doc is not None
        if doc is None and upsert:
            doc = {"_id": query.get("_id")}
            self.docs.append(doc)
            for key, value in (update.get("$setOnInsert") or {}).items():
                self._set_nested(doc, key, value)
        if doc is not None:
            for key, value in (update.get("$set") or {}).items():
                self._set_nested(doc, key, value)
        return SimpleNamespace(matched_count=int(matched), modified_count=int(matched))

    async def insert_one(self, doc):
        self._check_failure()
        self.docs.append(copy.deepcopy(doc))
        return SimpleNamespace(inserted_id=doc.get("_id"))


@pytest.fixture
def fake_db():
    return SimpleNamespace(
        pool_members=FakeCollection(),
        game_results=FakeCollection(),
        survivor_picks=FakeCollection(),
        survivor_recompute_runs=FakeCollection(),
        worker_state=FakeCollection(),
    )


@pytest.fixture
def install_db(monkeypatch, fake_db):
    """Point every module's `_db.db` at the in-memory fake."""
    import nerdfootball.database as database

    monkeypatch.setattr(database, "db", fake_db, raising=False)
    return fake_db
