import random

import pytest

from quiz_runner.models.candidate_model import Candidate
from quiz_runner.models.settings_model import ExamSettings
from quiz_runner.services.result_sink import ResultSink
from quiz_runner.services.session_engine import ExamSessionEngine
from quiz_runner.services.session_store import MemorySessionStore


class RecordingSink(ResultSink):
    """전송된 결과를 기록만 하는 가짜 수집기."""

    def __init__(self, rows=None):
        self.results = []
        self.rows = rows or []

    async def submit(self, result):
        self.results.append(result)
        return True

    async def fetch_rows(self):
        return list(self.rows)


def make_raw_questions(n):
    """문제 i의 정답 보기 문구는 'Q{i}-right'."""
    return [
        {
            "id": i,
            "q": f"Question {i}",
            "options": [f"Q{i}-wrong-a", f"Q{i}-right", f"Q{i}-wrong-b", f"Q{i}-wrong-c"],
            "correct": 1,
        }
        for i in range(n)
    ]


@pytest.fixture
def candidate():
    return Candidate(name="Alice", affiliation="QA Team")


@pytest.fixture
def store():
    return MemorySessionStore()


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def make_engine(store, sink):
    def _make(settings=None, seed=7, **kwargs):
        kwargs.setdefault("store", store)
        kwargs.setdefault("sink", sink)
        return ExamSessionEngine(
            settings=settings or ExamSettings(),
            rng=random.Random(seed),
            **kwargs,
        )
    return _make
