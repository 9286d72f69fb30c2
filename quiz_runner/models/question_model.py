"""
models/question_model.py

정규화된 객관식 문제 모델.
원본 JSON의 다양한 필드명은 services/normalizer.py에서 한 번만 해석하고,
엔진은 이 모델만 다룬다.
"""

from typing import List, Optional, Union

from pydantic import BaseModel, Field


class Option(BaseModel):
    """보기 하나. 섞은 뒤에도 is_correct 표시는 보기와 함께 이동한다."""

    text: str = Field(
        ...,
        description="보기 문구"
    )
    is_correct: bool = Field(
        default=False,
        description="정답 보기 여부"
    )


class Question(BaseModel):
    """
    퀴즈 문제 모델 (Pydantic v2).

    정답 인덱스가 없거나 범위를 벗어난 원본은 정답 보기가 하나도 없는
    '불완전 문제'가 된다. 채점 시 항상 오답으로 처리되며 예외는 없다.
    """

    id: Optional[Union[int, str]] = Field(
        None,
        description="원본 문제 식별자 (없으면 None)"
    )
    text: str = Field(
        default="",
        description="발문"
    )
    options: List[Option] = Field(
        default_factory=list,
        description="보기 리스트 (표시 순서)"
    )

    @property
    def correct_index(self) -> Optional[int]:
        """정답 보기의 인덱스. 불완전 문제면 None."""
        for idx, opt in enumerate(self.options):
            if opt.is_correct:
                return idx
        return None

    @property
    def is_degraded(self) -> bool:
        return self.correct_index is None
