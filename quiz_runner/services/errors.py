"""
services/errors.py

시험 엔진 예외 계층. api/routes.py에서 HTTPException으로 변환된다.
"""


class ExamError(Exception):
    """엔진 예외 최상위 클래스."""


class ContentError(ExamError):
    """문제 세트를 읽을 수 없거나 풀 수 있는 문제가 없음."""


class NavigationError(ExamError, ValueError):
    """허용되지 않은 문제 이동."""


class InvalidAnswerError(ExamError, ValueError):
    """범위를 벗어난 보기 선택."""


class SessionStateError(ExamError, RuntimeError):
    """현재 세션 상태에서 수행할 수 없는 동작 (예: 시작 전 제출)."""


class ExamNotFoundError(ContentError):
    """요청한 시험 파일이 없음."""
