import asyncio
import json
from datetime import datetime, timezone

import httpx

from quiz_runner.models.candidate_model import Candidate
from quiz_runner.models.result_model import Result
from quiz_runner.models.settings_model import ExamSettings
from quiz_runner.services.result_sink import (
    NullResultSink, WebhookResultSink, build_payload, make_sink,
)

URL = "https://collector.example.com/exec"


def _result(**overrides):
    data = dict(
        candidate=Candidate(name="Alice", contact="alice@example.com"),
        exam_id="exam1",
        score=7,
        total=10,
        time_taken=245,
        submitted_at=datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc),
        time_expired=False,
    )
    data.update(overrides)
    return Result(**data)


def test_result_percent_and_summary():
    assert _result().percent == 70
    assert _result(score=2, total=3).percent == 67
    assert _result().summary() == "Alice - exam1: 7 / 10 (70%) - Time taken: 245s"


def test_build_payload_default_keys():
    payload = build_payload(_result())
    assert payload == {
        "name": "Alice",
        "examId": "exam1",
        "score": 7,
        "total": 10,
        "timeTaken": 245,
        "date": "2026-03-01T12:00:00+00:00",
        "timeExpired": False,
        "contact": "alice@example.com",
    }


def test_build_payload_custom_field_map():
    payload = build_payload(_result(), {"name": "Name", "score": "Score", "bogus": "X"})
    assert payload == {"Name": "Alice", "Score": 7}


def test_submit_posts_json():
    seen = []

    def handler(request):
        seen.append((request.method, json.loads(request.content)))
        return httpx.Response(200, json={"ok": True})

    sink = WebhookResultSink(URL, transport=httpx.MockTransport(handler))
    assert asyncio.run(sink.submit(_result())) is True
    assert seen[0][0] == "POST"
    assert seen[0][1]["examId"] == "exam1"


def test_submit_non_success_is_logged_not_raised(caplog):
    sink = WebhookResultSink(URL, transport=httpx.MockTransport(lambda r: httpx.Response(500)))
    assert asyncio.run(sink.submit(_result())) is False
    assert "HTTP 500" in caplog.text


def test_submit_network_error_returns_false():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    sink = WebhookResultSink(URL, transport=httpx.MockTransport(handler))
    assert asyncio.run(sink.submit(_result())) is False


def test_fetch_rows():
    def handler(request):
        assert request.url.params["action"] == "getAll"
        return httpx.Response(200, json={"rows": [{"examId": "exam1", "score": 3}]})

    sink = WebhookResultSink(URL, transport=httpx.MockTransport(handler))
    assert asyncio.run(sink.fetch_rows()) == [{"examId": "exam1", "score": 3}]


def test_fetch_rows_bad_response_is_empty():
    sink = WebhookResultSink(URL, transport=httpx.MockTransport(lambda r: httpx.Response(200, text="<html>")))
    assert asyncio.run(sink.fetch_rows()) == []


def test_make_sink_without_url_uses_null_sink(caplog):
    sink = make_sink(ExamSettings())
    assert isinstance(sink, NullResultSink)
    assert asyncio.run(sink.submit(_result())) is False
    assert "설정되지 않아" in caplog.text
    assert isinstance(make_sink(ExamSettings(sink_url=URL)), WebhookResultSink)
