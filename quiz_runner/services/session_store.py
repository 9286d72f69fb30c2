"""
services/session_store.py

시험 세션 영속화 (새로고침 후 이어 풀기용).

슬롯 하나당 두 칸을 쓴다:
  - "<slot>.session.json" : 진행 중인 SessionState (변경마다 덮어씀, 종료 시 삭제)
  - "<slot>.result.json"  : 마지막 Result (결과 화면용)

저장 형식은 Pydantic JSON 직렬화. 손상된 데이터는 읽을 때 버리고 None을 반환한다.
"""

import logging
import os
import threading
from typing import Dict, Optional

from pydantic import ValidationError

from quiz_runner.models.result_model import Result
from quiz_runner.models.session_state import SessionState

logger = logging.getLogger(__name__)

_SESSION_SUFFIX = ".session.json"
_RESULT_SUFFIX = ".result.json"


class SessionStore:
    """저장소 기본 클래스. 하위 클래스는 문자열 read/write/delete만 구현한다."""

    def _read(self, key: str) -> Optional[str]:
        raise NotImplementedError

    def _write(self, key: str, data: str) -> None:
        raise NotImplementedError

    def _delete(self, key: str) -> None:
        raise NotImplementedError

    # ── 세션 상태 ──────────────────────────────────────────────────────────────

    def save_state(self, slot: str, state: SessionState) -> None:
        self._write(slot + _SESSION_SUFFIX, state.model_dump_json())

    def load_state(self, slot: str) -> Optional[SessionState]:
        """
        저장된 상태를 읽는다.

        Returns:
            SessionState, 또는 없거나 손상된 경우 None.
            손상된 데이터는 슬롯에서 삭제한다.
        """
        raw = self._read(slot + _SESSION_SUFFIX)
        if raw is None:
            return None
        try:
            return SessionState.model_validate_json(raw)
        except (ValidationError, ValueError) as e:
            logger.warning(f"저장된 세션이 손상되어 폐기합니다 (slot={slot}): {e}")
            self.clear_state(slot)
            return None

    def clear_state(self, slot: str) -> None:
        self._delete(slot + _SESSION_SUFFIX)

    # ── 결과 ──────────────────────────────────────────────────────────────────

    def save_result(self, slot: str, result: Result) -> None:
        self._write(slot + _RESULT_SUFFIX, result.model_dump_json())

    def load_result(self, slot: str) -> Optional[Result]:
        raw = self._read(slot + _RESULT_SUFFIX)
        if raw is None:
            return None
        try:
            return Result.model_validate_json(raw)
        except (ValidationError, ValueError) as e:
            logger.warning(f"저장된 결과가 손상되어 폐기합니다 (slot={slot}): {e}")
            self.clear_result(slot)
            return None

    def clear_result(self, slot: str) -> None:
        self._delete(slot + _RESULT_SUFFIX)


class MemorySessionStore(SessionStore):
    """프로세스 메모리 저장소. 테스트 및 단일 프로세스 실행용."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._data: Dict[str, str] = {}

    def _read(self, key: str) -> Optional[str]:
        with self._lock:
            return self._data.get(key)

    def _write(self, key: str, data: str) -> None:
        with self._lock:
            self._data[key] = data

    def _delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)


class FileSessionStore(SessionStore):
    """
    로컬 파일 저장소. base_dir 아래에 슬롯별 JSON 파일을 둔다.
    서버를 재시작해도 진행 중인 시험을 이어서 풀 수 있다.
    """

    def __init__(self, base_dir: str) -> None:
        self.base_dir = base_dir
        os.makedirs(self.base_dir, exist_ok=True)

    def _path(self, key: str) -> str:
        return os.path.join(self.base_dir, key)

    def _read(self, key: str) -> Optional[str]:
        path = self._path(key)
        if not os.path.exists(path):
            return None
        try:
            with open(path, "r", encoding="utf-8") as f:
                return f.read()
        except (OSError, UnicodeDecodeError) as e:
            logger.warning(f"세션 파일 읽기 실패: {path}, {e}")
            return None

    def _write(self, key: str, data: str) -> None:
        path = self._path(key)
        tmp_path = path + ".tmp"
        with open(tmp_path, "w", encoding="utf-8") as f:
            f.write(data)
        # 쓰는 도중 중단되어도 이전 상태가 남도록 교체 방식으로 기록
        os.replace(tmp_path, path)

    def _delete(self, key: str) -> None:
        try:
            os.remove(self._path(key))
        except FileNotFoundError:
            pass
