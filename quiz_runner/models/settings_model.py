"""
models/settings_model.py

엔진/결과 전송 설정. config.py가 환경 변수로부터 만들어 엔진 생성 시 주입한다.
엔진 코드 안에 URL이나 키를 상수로 두지 않는다.
"""

from enum import Enum
from typing import Dict, Optional

from pydantic import BaseModel, Field


class NavigationPolicy(str, Enum):
    FREE = "free"                   # 아무 문제로나 이동 가능
    FORWARD_ONLY = "forward_only"   # 도달한 문제까지만 이동, 이전 버튼 없음


DEFAULT_FIELD_MAP: Dict[str, str] = {
    "name": "name",
    "exam_id": "examId",
    "score": "score",
    "total": "total",
    "time_taken": "timeTaken",
    "submitted_at": "date",
    "time_expired": "timeExpired",
    "affiliation": "affiliation",
    "contact": "contact",
}


class ExamSettings(BaseModel):
    navigation: NavigationPolicy = NavigationPolicy.FREE
    wall_clock_timing: bool = Field(
        default=False,
        description="재개 시 started_at 기준 경과 시간으로 남은 시간을 다시 계산",
    )
    tick_interval: float = Field(default=1.0, gt=0)
    sink_url: Optional[str] = None
    sink_timeout: float = Field(default=10.0, gt=0)
    sink_field_map: Dict[str, str] = Field(default_factory=lambda: dict(DEFAULT_FIELD_MAP))
    dashboard_query: str = "getAll"
