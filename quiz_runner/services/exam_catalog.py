"""
services/exam_catalog.py

문제 세트 제공자: data/exams/<exam_id>.json 파일을 읽는다.
Public API:
  - FileQuestionProvider.list_exams() -> List[ExamMeta]
  - FileQuestionProvider.load(exam_id) -> ExamDocument

문서 형식: {"title"?: str, "totalTime"?: int(초), "questions": [원본 문제, ...]}
문제 하나하나의 형식 검사는 normalizer 담당. 여기서는 문서 구조만 본다.
"""

import json
import logging
import os
import re
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from quiz_runner.services.errors import ContentError, ExamNotFoundError

logger = logging.getLogger(__name__)

_EXAM_ID_RE = re.compile(r"^[A-Za-z0-9_-]+$")


class ExamMeta(BaseModel):
    """시험 선택 목록 항목."""

    exam_id: str
    title: str
    question_count: int = 0


class ExamDocument(BaseModel):
    exam_id: str
    title: str
    total_time: Optional[int] = Field(None, gt=0, description="제한 시간 (초). 없으면 문항 수 기준 기본값")
    questions: List[Dict[str, Any]] = Field(default_factory=list)

    @property
    def meta(self) -> ExamMeta:
        return ExamMeta(exam_id=self.exam_id, title=self.title, question_count=len(self.questions))


def _default_title(exam_id: str, count: int) -> str:
    return f"{exam_id} ({count} Q)"


class FileQuestionProvider:
    """JSON 파일 기반 문제 세트 제공자."""

    def __init__(self, data_dir: str):
        self.data_dir = data_dir

    def _path(self, exam_id: str) -> str:
        return os.path.join(self.data_dir, f"{exam_id}.json")

    def load(self, exam_id: str) -> ExamDocument:
        """
        시험 문서를 읽는다.

        Raises:
            ContentError: 잘못된 ID, 파일 없음, JSON 오류, questions 누락/형식 오류.
        """
        if not exam_id or not _EXAM_ID_RE.match(exam_id):
            raise ContentError(f"잘못된 시험 ID입니다: {exam_id!r}")

        path = self._path(exam_id)
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            raise ExamNotFoundError(f"시험 파일을 찾을 수 없습니다: {exam_id}")
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            raise ContentError(f"시험 파일을 읽을 수 없습니다: {exam_id} ({e})")

        if not isinstance(data, dict) or not isinstance(data.get("questions"), list):
            raise ContentError(f"시험 파일 형식 오류 (questions 목록 없음): {exam_id}")

        questions = data["questions"]
        total_time = data.get("totalTime")
        if isinstance(total_time, bool) or not isinstance(total_time, int) or total_time <= 0:
            if total_time is not None:
                logger.warning(f"잘못된 totalTime 무시: {exam_id} ({total_time!r})")
            total_time = None

        title = data.get("title")
        if not isinstance(title, str) or not title.strip():
            title = _default_title(exam_id, len(questions))

        return ExamDocument(exam_id=exam_id, title=title, total_time=total_time, questions=questions)

    def list_exams(self) -> List[ExamMeta]:
        """data_dir의 시험 목록 (ID 순). 읽을 수 없는 파일은 건너뛴다."""
        if not os.path.isdir(self.data_dir):
            logger.warning(f"시험 데이터 폴더가 없습니다: {self.data_dir}")
            return []

        exams: List[ExamMeta] = []
        for name in sorted(os.listdir(self.data_dir)):
            exam_id, ext = os.path.splitext(name)
            if ext != ".json" or not _EXAM_ID_RE.match(exam_id):
                continue
            try:
                exams.append(self.load(exam_id).meta)
            except ContentError as e:
                logger.warning(f"시험 목록에서 제외: {e}")
        return exams
