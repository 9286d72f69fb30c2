"""
api/session.py — 브라우저 세션별 시험 엔진 레지스트리 (쿠키 기반)

각 사용자에게 UUID 세션 ID를 발급하고, 세션 ID마다 독립된 ExamSessionEngine을 둔다.
세션 ID는 엔진의 저장소 슬롯 이름으로도 쓰여, 새로고침/서버 재시작 후에도
진행 중인 시험을 이어서 풀 수 있다. TTL(기본 1시간) 경과 시 자동 만료.
"""

import threading
import time
import uuid
from typing import Dict, Optional

import config
from quiz_runner.models.settings_model import ExamSettings
from quiz_runner.services.result_sink import ResultSink, make_sink
from quiz_runner.services.session_engine import ExamSessionEngine
from quiz_runner.services.session_store import FileSessionStore, SessionStore

_lock = threading.Lock()
_engines: Dict[str, ExamSessionEngine] = {}
_timestamps: Dict[str, float] = {}

SESSION_TTL = 3600  # 1시간

_settings: Optional[ExamSettings] = None
_store: Optional[SessionStore] = None
_sink: Optional[ResultSink] = None


def configure(
    settings: Optional[ExamSettings] = None,
    store: Optional[SessionStore] = None,
    sink: Optional[ResultSink] = None,
) -> None:
    """앱 생성 시 한 번 호출. 인자를 생략하면 config.py 값으로 만든다."""
    global _settings, _store, _sink
    _settings = settings or config.load_exam_settings()
    _store = store or FileSessionStore(config.SESSION_DIR)
    _sink = sink or make_sink(_settings)
    with _lock:
        for engine in _engines.values():
            engine.timer.stop()
        _engines.clear()
        _timestamps.clear()


def _new_engine(sid: str) -> ExamSessionEngine:
    if _store is None:
        configure()
    return ExamSessionEngine(_store, _sink, slot=sid, settings=_settings)


def create_session() -> str:
    """새 세션을 생성하고 세션 ID를 반환."""
    sid = uuid.uuid4().hex
    engine = _new_engine(sid)
    with _lock:
        _engines[sid] = engine
        _timestamps[sid] = time.time()
    return sid


def restore_session(sid: str) -> ExamSessionEngine:
    """
    메모리에는 없지만 쿠키가 남아 있는 세션 (서버 재시작 등).
    같은 슬롯으로 엔진을 다시 만들어 저장소의 진행 상태를 재개할 수 있게 한다.
    """
    engine = _new_engine(sid)
    with _lock:
        _engines[sid] = engine
        _timestamps[sid] = time.time()
    return engine


def get_engine(sid: str) -> Optional[ExamSessionEngine]:
    """세션 ID로 엔진을 가져옴. 만료되었거나 없으면 None."""
    with _lock:
        if sid not in _engines:
            return None
        if time.time() - _timestamps[sid] > SESSION_TTL:
            _engines.pop(sid).timer.stop()
            del _timestamps[sid]
            return None
        _timestamps[sid] = time.time()  # 접근 시 갱신
        return _engines[sid]


def cleanup_expired() -> int:
    """만료된 세션을 정리. 제거된 수 반환. 저장소의 진행 상태는 남겨 둔다."""
    now = time.time()
    removed = 0
    with _lock:
        expired = [sid for sid, ts in _timestamps.items() if now - ts > SESSION_TTL]
        for sid in expired:
            _engines.pop(sid).timer.stop()
            del _timestamps[sid]
            removed += 1
    return removed


def get_sink() -> ResultSink:
    if _sink is None:
        configure()
    return _sink
