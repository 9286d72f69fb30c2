"""
services/result_sink.py

최종 결과를 외부 수집기(스프레드시트 웹앱 등)로 전송하는 어댑터.
Public API:
  - build_payload(result, field_map) -> dict
  - WebhookResultSink.submit(result) -> bool     : JSON POST (httpx)
  - WebhookResultSink.fetch_rows() -> list       : 대시보드용 수집 데이터 조회
  - NullResultSink                               : URL 미설정 시 사용
  - make_sink(settings)

설계 원칙:
- 상태 없음, 재시도 없음 (최대 1회, best-effort).
- 실패는 로그만 남기고 False 반환. 예외를 엔진으로 올리지 않는다.
"""

import logging
from typing import Any, Dict, List, Optional

import httpx

from quiz_runner.models.result_model import Result
from quiz_runner.models.settings_model import DEFAULT_FIELD_MAP, ExamSettings

logger = logging.getLogger(__name__)


def build_payload(result: Result, field_map: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
    """
    Result → 수집기가 기대하는 평탄한 레코드.

    field_map은 {Result 필드명: 수집기 키}. 매핑에 없는 필드는 보내지 않는다.
    소속/연락처는 값이 있을 때만 포함.
    """
    field_map = field_map or DEFAULT_FIELD_MAP
    values: Dict[str, Any] = {
        "name": result.candidate.name,
        "exam_id": result.exam_id,
        "score": result.score,
        "total": result.total,
        "time_taken": result.time_taken,
        "submitted_at": result.submitted_at.isoformat(),
        "time_expired": result.time_expired,
        "affiliation": result.candidate.affiliation,
        "contact": result.candidate.contact,
    }
    payload: Dict[str, Any] = {}
    for field, key in field_map.items():
        if field not in values:
            logger.warning(f"알 수 없는 결과 필드 매핑 무시: {field}")
            continue
        if values[field] is None:
            continue
        payload[key] = values[field]
    return payload


class ResultSink:
    async def submit(self, result: Result) -> bool:
        raise NotImplementedError

    async def fetch_rows(self) -> List[Any]:
        return []


class NullResultSink(ResultSink):
    """수집기 URL이 없을 때. 전송하지 않고 경고만 남긴다."""

    async def submit(self, result: Result) -> bool:
        logger.warning("결과 수집 URL이 설정되지 않아 원격 전송을 하지 않습니다.")
        return False


class WebhookResultSink(ResultSink):
    """HTTP 수집기 어댑터."""

    def __init__(
        self,
        url: str,
        timeout: float = 10.0,
        field_map: Optional[Dict[str, str]] = None,
        dashboard_query: str = "getAll",
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.url = url
        self.timeout = timeout
        self.field_map = field_map or dict(DEFAULT_FIELD_MAP)
        self.dashboard_query = dashboard_query
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.timeout,
            follow_redirects=True,
            transport=self._transport,
        )

    async def submit(self, result: Result) -> bool:
        payload = build_payload(result, self.field_map)
        try:
            async with self._client() as client:
                resp = await client.post(self.url, json=payload)
        except httpx.HTTPError as e:
            logger.warning(f"결과 전송 실패 ({result.exam_id}, {result.candidate.name}): {e}")
            return False

        if not resp.is_success:
            logger.warning(f"결과 수집기 응답 오류: HTTP {resp.status_code}")
            return False
        logger.info(f"결과 전송 완료: {result.exam_id} {result.score}/{result.total}")
        return True

    async def fetch_rows(self) -> List[Any]:
        """
        수집기에 누적된 결과 행을 가져온다 ({"rows": [...]} 응답 기대).
        실패 시 빈 리스트.
        """
        try:
            async with self._client() as client:
                resp = await client.get(self.url, params={"action": self.dashboard_query})
                resp.raise_for_status()
                data = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"대시보드 데이터 조회 실패: {e}")
            return []

        rows = data.get("rows") if isinstance(data, dict) else None
        return rows if isinstance(rows, list) else []


def make_sink(settings: ExamSettings) -> ResultSink:
    if not settings.sink_url:
        return NullResultSink()
    return WebhookResultSink(
        settings.sink_url,
        timeout=settings.sink_timeout,
        field_map=settings.sink_field_map,
        dashboard_query=settings.dashboard_query,
    )
