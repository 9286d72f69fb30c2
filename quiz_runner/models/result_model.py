"""
models/result_model.py

시험 1회의 최종 결과. 제출 시점에 정확히 한 번 생성되며 이후 변경 불가.
"""

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field

from quiz_runner.models.candidate_model import Candidate


class Result(BaseModel):
    """
    제출 결과 모델.

    Attributes:
        candidate:    응시자 정보 (엔진은 내용을 해석하지 않고 그대로 전달).
        exam_id:      시험 식별자 (예: "exam1").
        score:        맞힌 문제 수.
        total:        전체 문제 수.
        time_taken:   소요 시간 (초).
        submitted_at: 제출 시각 (UTC).
        time_expired: 시간 초과로 자동 제출되었는지 여부.
    """

    model_config = ConfigDict(frozen=True)

    candidate: Candidate
    exam_id: str
    score: int = Field(..., ge=0)
    total: int = Field(..., gt=0)
    time_taken: int = Field(..., ge=0)
    submitted_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    time_expired: bool = False

    @property
    def percent(self) -> int:
        """정답률 (정수 반올림)."""
        return round(self.score / self.total * 100)

    def summary(self) -> str:
        """결과 화면 상단에 표시하는 한 줄 요약."""
        return (
            f"{self.candidate.name} - {self.exam_id}: {self.score} / {self.total} "
            f"({self.percent}%) - Time taken: {self.time_taken}s"
        )
