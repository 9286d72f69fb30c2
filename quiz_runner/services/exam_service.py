"""
services/exam_service.py

시험 섞기·채점·시간 계산 비즈니스 로직.
순수 Python 함수로 구성. UI 코드, 전역 상태 변경 없음.
"""

import random
from typing import List, MutableSequence, Optional, Sequence, TypeVar

from quiz_runner.models.question_model import Question

T = TypeVar("T")

SHORT_EXAM_SIZE = 15
SHORT_EXAM_SECONDS = 300
DEFAULT_EXAM_SECONDS = 600


def shuffle(items: MutableSequence[T], rng: Optional[random.Random] = None) -> MutableSequence[T]:
    """
    Durstenfeld 방식 Fisher–Yates 섞기 (제자리).

    i를 마지막 인덱스부터 1까지 내려가며 [0, i] 범위의 균등 난수 j와 교환한다.
    모든 순열이 같은 확률로 나온다. 암호학적 난수일 필요는 없다.

    Returns:
        섞인 같은 객체 (체이닝 편의용).
    """
    rng = rng or random
    for i in range(len(items) - 1, 0, -1):
        j = rng.randint(0, i)
        items[i], items[j] = items[j], items[i]
    return items


def default_total_time(question_count: int) -> int:
    """
    문제 세트에 totalTime이 없을 때의 제한 시간 (초).
    15문항 → 300초, 그 외 → 600초. 다른 시간이 필요하면 totalTime을 명시해야 한다.
    """
    return SHORT_EXAM_SECONDS if question_count == SHORT_EXAM_SIZE else DEFAULT_EXAM_SECONDS


def is_correct_answer(question: Question, selected: Optional[int]) -> bool:
    if selected is None or not (0 <= selected < len(question.options)):
        return False
    return question.options[selected].is_correct


def calculate_score(
    questions: Sequence[Question],
    answers: Sequence[Optional[int]],
) -> int:
    """
    맞힌 문제 수를 반환한다.

    정답 판정 기준: 선택한 보기의 is_correct가 True.
    미응답(None), 범위 밖 인덱스, 정답 정보가 없는 문제는 0점. 예외 없음.
    """
    return sum(
        1
        for q, selected in zip(questions, answers)
        if is_correct_answer(q, selected)
    )


def get_incorrect_indices(
    questions: Sequence[Question],
    answers: Sequence[Optional[int]],
) -> List[int]:
    """
    오답 노트용 문제 인덱스 리스트 (미응답 포함, 원본 순서 유지).
    정답 정보 자체가 없는 문제는 채점 불가이므로 제외.
    """
    return [
        idx
        for idx, (q, selected) in enumerate(zip(questions, answers))
        if not q.is_degraded and not is_correct_answer(q, selected)
    ]


def format_time(seconds: int) -> str:
    """초 → "MM:SS"."""
    seconds = max(0, int(seconds))
    mm, ss = divmod(seconds, 60)
    return f"{mm:02d}:{ss:02d}"
