"""
models/candidate_model.py

시험 시작 전에 입력받는 응시자 정보. 엔진은 내용을 해석하지 않고 결과로 전달만 한다.
"""

from typing import Optional

from pydantic import BaseModel, Field, field_validator


class Candidate(BaseModel):
    name: str = Field(..., min_length=1, description="응시자 이름")
    affiliation: Optional[str] = Field(None, description="소속")
    contact: Optional[str] = Field(None, description="연락처")

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("응시자 이름이 비어 있습니다.")
        return v
