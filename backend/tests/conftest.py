import copy
import os
import random
import sys
import tempfile
from pathlib import Path
from types import SimpleNamespace

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

# settings are read at import time
os.environ.setdefault("UPLOAD_DIR", tempfile.mkdtemp(prefix="prepcoach-uploads-"))
os.environ["OPENAI_API_KEY"] = ""

from pymongo.errors import DuplicateKeyError  # noqa: E402

from prepcoach.db import InterviewRepository, UserRepository  # noqa: E402
from prepcoach.errors import AnalyzerError  # noqa: E402
from prepcoach.evaluator import ResponseAnalyzer  # noqa: E402


# ------------------------------
# In-memory collection with the slice of the motor API the repositories use
# ------------------------------

def _matches(doc, query):
    return all(doc.get(key) == value for key, value in query.items())


class FakeCursor:
    def __init__(self, docs):
        self._docs = docs
        self._skip = 0
        self._limit = 0

    def sort(self, key, direction=1):
        self._docs.sort(key=lambda d: d.get(key), reverse=direction < 0)
        return self

    def skip(self, n):
        self._skip = n
        return self

    def limit(self, n):
        self._limit = n
        return self

    async def to_list(self, length=None):
        docs = self._docs[self._skip:]
        if self._limit:
            docs = docs[: self._limit]
        if length is not None:
            docs = docs[:length]
        return [copy.deepcopy(d) for d in docs]


class FakeCollection:
    def __init__(self):
        self.docs = {}
        self.writes = 0

    async def insert_one(self, doc):
        if doc["_id"] in self.docs:
            raise DuplicateKeyError("duplicate _id")
        self.docs[doc["_id"]] = copy.deepcopy(doc)
        self.writes += 1
        return SimpleNamespace(inserted_id=doc["_id"])

    async def find_one(self, query, projection=None):
        for doc in self.docs.values():
            if _matches(doc, query):
                return copy.deepcopy(doc)
        return None

    def find(self, query):
        return FakeCursor([d for d in self.docs.values() if _matches(d, query)])

    async def count_documents(self, query):
        return sum(1 for d in self.docs.values() if _matches(d, query))

    async def find_one_and_update(self, query, update, return_document=None):
        for doc in self.docs.values():
            if _matches(doc, query):
                for key, value in update.get("$set", {}).items():
                    doc[key] = copy.deepcopy(value)
                for key, value in update.get("$inc", {}).items():
                    doc[key] = doc.get(key, 0) + value
                self.writes += 1
                return copy.deepcopy(doc)
        return None

    async def delete_one(self, query):
        for key, doc in list(self.docs.items()):
            if _matches(doc, query):
                del self.docs[key]
                return SimpleNamespace(deleted_count=1)
        return SimpleNamespace(deleted_count=0)


class FailingAnalyzer:
    """Analyzer stand-in that always raises the given error."""

    def __init__(self, error=None):
        self.error = error or AnalyzerError("analysis backend unavailable")
        self.calls = 0

    async def analyze(self, question_text, response, expected_answer=""):
        self.calls += 1
        raise self.error


@pytest.fixture
def interview_collection():
    return FakeCollection()


@pytest.fixture
def user_collection():
    return FakeCollection()


@pytest.fixture
def interview_repo(interview_collection):
    return InterviewRepository(interview_collection)


@pytest.fixture
def user_repo(user_collection):
    return UserRepository(user_collection)


@pytest.fixture
def analyzer():
    return ResponseAnalyzer(timeout=5, use_llm=False)


@pytest.fixture
def rng():
    return random.Random(42)


@pytest.fixture
def client(interview_repo, user_repo, analyzer):
    from fastapi.testclient import TestClient

    from prepcoach import main

    main.app.dependency_overrides[main.get_interview_repository] = lambda: interview_repo
    main.app.dependency_overrides[main.get_user_repository] = lambda: user_repo
    main.app.dependency_overrides[main.get_analyzer] = lambda: analyzer
    yield TestClient(main.app)
    main.app.dependency_overrides.clear()
