"""
models/session_state.py

시험 진행 상태를 담는 OMR 카드 모델.
Pydantic BaseModel 기반. 새로고침 후 이어서 풀 수 있도록 매 변경마다
JSON으로 직렬화되어 저장소에 기록된다. UI 코드 없음.
"""

import time
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, model_validator

from quiz_runner.models.candidate_model import Candidate
from quiz_runner.models.question_model import Question
from quiz_runner.models.result_model import Result


class SessionStatus(str, Enum):
    NOT_STARTED = "not_started"
    RUNNING = "running"
    FINISHED = "finished"


class SessionState(BaseModel):
    """
    사용자의 시험 세션 전체 상태를 표현하는 모델.

    Attributes:
        questions:   섞인 순서의 문제 리스트. 세션 동안 고정.
        answers:     문제별 선택한 보기 인덱스. None이면 미응답.
        current:     현재 표시 중인 문제 인덱스 (0-based).
        max_reached: 지금까지 도달한 가장 큰 current 값.
        total_time:  제한 시간 (초).
        time_left:   남은 시간 (초). 타이머가 도는 동안 감소만 한다.
        started_at:  시험 시작 시각 (time.time() 기준 Unix timestamp).
        result:      제출 후 생성된 결과. 제출 전에는 None.
    """

    questions: List[Question] = Field(..., min_length=1)
    answers: List[Optional[int]]
    current: int = Field(default=0, ge=0)
    max_reached: int = Field(default=0, ge=0)
    total_time: int = Field(..., gt=0)
    time_left: int = Field(..., ge=0)
    candidate: Candidate
    exam_id: str
    started_at: float = Field(default_factory=time.time)
    status: SessionStatus = SessionStatus.NOT_STARTED
    result: Optional[Result] = None

    @model_validator(mode="after")
    def validate_consistency(self) -> "SessionState":
        """저장소에서 읽어 온 상태가 서로 모순되지 않는지 확인."""
        n = len(self.questions)
        if len(self.answers) != n:
            raise ValueError(f"answers 길이({len(self.answers)})가 문제 수({n})와 다릅니다.")
        if self.current >= n:
            raise ValueError(f"current({self.current})가 범위를 벗어났습니다.")
        if self.max_reached < self.current or self.max_reached >= n:
            raise ValueError(f"max_reached({self.max_reached})가 올바르지 않습니다.")
        if self.time_left > self.total_time:
            raise ValueError("time_left가 total_time보다 클 수 없습니다.")
        return self

    @property
    def answered_count(self) -> int:
        return sum(1 for a in self.answers if a is not None)
