"""
services/normalizer.py

원본 문제 레코드(dict) → Question 정규화.
Public API:
  - normalize(raw) -> Question

설계 원칙:
- 같은 의미의 필드가 여러 이름으로 들어올 수 있으므로, 허용 별칭을
  아래 튜플에 순서대로 정의하고 이 모듈에서만 해석한다.
- 실패하지 않는다. 정답 정보가 없으면 정답 보기가 없는 '불완전 문제'를 만든다.
"""

import logging
from typing import Any, List, Mapping, Optional, Sequence, Tuple

from quiz_runner.models.question_model import Option, Question

logger = logging.getLogger(__name__)

# ── 필드 별칭 (앞쪽 우선) ──────────────────────────────────────────────────────
ID_ALIASES: Tuple[str, ...] = ("id", "questionId")
TEXT_ALIASES: Tuple[str, ...] = ("q", "question", "questionText")
CORRECT_ALIASES: Tuple[str, ...] = ("correct", "correct_answer", "correctAnswer")
OPTIONS_KEY = "options"

_MISSING = object()


def _first_present(raw: Mapping[str, Any], aliases: Sequence[str], skip_empty: bool = False) -> Any:
    for key in aliases:
        value = raw.get(key)
        if value is None or (skip_empty and value == ""):
            continue
        return value
    return _MISSING


def _as_index(value: Any) -> Optional[int]:
    """정수로 해석 가능한 숫자만 인덱스로 인정 (bool, 문자열 제외)."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return None


def _resolve_correct(raw: Mapping[str, Any], keys: List[Any]) -> Optional[int]:
    """
    정답 인덱스: 별칭 중 처음으로 숫자인 값.
    숫자 별칭이 하나도 없을 때만 매핑형 보기의 키("b") 일치를 시도한다.
    """
    for alias in CORRECT_ALIASES:
        index = _as_index(raw.get(alias))
        if index is not None:
            return index
    if not keys:
        return None
    for alias in CORRECT_ALIASES:
        value = raw.get(alias)
        if value is None:
            continue
        for pos, key in enumerate(keys):
            if str(key) == str(value):
                return pos
    return None


def _natural_key(key: Any) -> Tuple[int, Any]:
    # 숫자 키("1", "2", "10")는 수치 순서로 먼저, 나머지는 문자열 순서로
    s = str(key)
    if s.isdigit():
        return (0, int(s))
    return (1, s)


def _resolve_options(raw_options: Any) -> Tuple[List[str], List[Any]]:
    """보기 문구 리스트와 (매핑인 경우) 같은 순서의 키 리스트를 반환."""
    if isinstance(raw_options, Mapping):
        keys = sorted(raw_options.keys(), key=_natural_key)
        return [str(raw_options[k]) for k in keys], keys
    if isinstance(raw_options, (list, tuple)):
        return [str(o) for o in raw_options], []
    return [], []


def normalize(raw: Mapping[str, Any]) -> Question:
    """
    원본 문제 하나를 Question으로 변환한다.

    Args:
        raw: 외부 JSON에서 읽은 문제 dict. 필드명은 별칭 중 아무거나 가능.

    Returns:
        보기 순서는 원본 그대로인 Question (섞기는 엔진 담당).
        정답 인덱스가 없거나, 숫자가 아니거나, 범위를 벗어나면 정답 보기 없음.
    """
    if not isinstance(raw, Mapping):
        logger.warning(f"문제 레코드가 dict가 아닙니다: {type(raw).__name__}")
        return Question()

    qid = _first_present(raw, ID_ALIASES)
    text = _first_present(raw, TEXT_ALIASES, skip_empty=True)
    texts, keys = _resolve_options(raw.get(OPTIONS_KEY))
    correct = _resolve_correct(raw, keys)

    options = [Option(text=t, is_correct=(idx == correct)) for idx, t in enumerate(texts)]
    return Question(
        id=None if qid is _MISSING or not isinstance(qid, (int, str)) else qid,
        text="" if text is _MISSING else str(text),
        options=options,
    )

