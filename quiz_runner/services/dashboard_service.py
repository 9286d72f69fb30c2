"""
services/dashboard_service.py

결과 수집기에 쌓인 행으로 시험별 통계를 계산한다 (대시보드 화면용).
순수 함수. 행 형식이 제각각이라 필드 별칭을 순서대로 시도한다.
"""

from collections import OrderedDict
from typing import Any, Dict, Iterable, Optional, Sequence, Tuple

from pydantic import BaseModel

_EXAM_KEYS: Tuple[str, ...] = ("ExamID", "examId")
_SCORE_KEYS: Tuple[str, ...] = ("Score", "score")
_TOTAL_KEYS: Tuple[str, ...] = ("TotalQuestions", "total")
_TIME_KEYS: Tuple[str, ...] = ("TimeTaken", "timeTaken", "time")

# 위치 기반 행: [이름, 시험ID, 점수, 문항 수, 소요 시간, ...]
_EXAM_POS, _SCORE_POS, _TOTAL_POS, _TIME_POS = 1, 2, 3, 4


class ExamStats(BaseModel):
    exam_id: str
    count: int = 0
    best: float = 0
    sum_score: float = 0
    sum_time: float = 0
    total_questions: Optional[int] = None

    @property
    def average_score(self) -> Optional[float]:
        return round(self.sum_score / self.count, 2) if self.count else None

    @property
    def average_time(self) -> Optional[int]:
        return round(self.sum_time / self.count) if self.count else None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "exam_id": self.exam_id,
            "participants": self.count,
            "best": self.best,
            "average_score": self.average_score,
            "average_time": self.average_time,
            "total_questions": self.total_questions,
        }


def _pick(row: Any, keys: Sequence[str], pos: int) -> Any:
    if isinstance(row, dict):
        for k in keys:
            if row.get(k) is not None:
                return row[k]
        return None
    if isinstance(row, (list, tuple)) and len(row) > pos:
        return row[pos]
    return None


def _number(value: Any) -> float:
    if isinstance(value, bool):
        return 0
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0


def compute_exam_stats(rows: Iterable[Any]) -> Dict[str, ExamStats]:
    """
    시험 ID별 응시자 수, 최고 점수, 평균 점수, 평균 소요 시간.

    숫자로 읽을 수 없는 값은 0으로 계산한다.
    시험 ID가 없는 행은 "unknown"으로 묶는다.
    """
    stats: "OrderedDict[str, ExamStats]" = OrderedDict()
    for row in rows:
        exam = _pick(row, _EXAM_KEYS, _EXAM_POS) or "unknown"
        exam = str(exam)
        score = _number(_pick(row, _SCORE_KEYS, _SCORE_POS))
        total = int(_number(_pick(row, _TOTAL_KEYS, _TOTAL_POS)))
        spent = _number(_pick(row, _TIME_KEYS, _TIME_POS))

        s = stats.setdefault(exam, ExamStats(exam_id=exam))
        s.count += 1
        s.sum_score += score
        s.sum_time += spent
        if score > s.best:
            s.best = score
        if s.total_questions is None and total:
            s.total_questions = total
    return dict(stats)
