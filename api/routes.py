"""
api/routes.py — FastAPI 엔드포인트

요청마다 쿠키 세션의 ExamSessionEngine을 꺼내 동작을 위임한다.
엔진 예외 → HTTPException 변환:
  - 세션/시험 없음      404
  - 잘못된 이동/보기    400
  - 이미 제출된 시험    409
  - 문제 세트 오류      422
"""

from typing import Optional

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, Field, ValidationError

import api.session as session
from quiz_runner.models.candidate_model import Candidate
from quiz_runner.models.question_model import Question
from quiz_runner.models.result_model import Result
from quiz_runner.models.session_state import SessionStatus
from quiz_runner.models.settings_model import NavigationPolicy
from quiz_runner.services.dashboard_service import ExamStats, compute_exam_stats
from quiz_runner.services.errors import (
    ContentError, ExamNotFoundError, InvalidAnswerError, NavigationError,
)
from quiz_runner.services.exam_catalog import FileQuestionProvider
from quiz_runner.services.exam_service import format_time, get_incorrect_indices
from quiz_runner.services.session_engine import ExamSessionEngine

router = APIRouter()

# ── Pydantic request bodies ──────────────────────────────────────────────────

class StartExamBody(BaseModel):
    name: str
    exam_id: str
    affiliation: Optional[str] = None
    contact: Optional[str] = None

class SaveAnswerBody(BaseModel):
    option_index: Optional[int] = None  # None이면 현재 문제의 답 지우기

class NavigateBody(BaseModel):
    index: int = Field(0, ge=0)


# ── 헬퍼 ─────────────────────────────────────────────────────────────────────

def _engine(request: Request) -> ExamSessionEngine:
    engine = session.get_engine(request.state.session_id)
    if engine is None:
        raise HTTPException(status_code=404, detail="세션이 만료되었습니다. 다시 시작해 주세요.")
    return engine


def _running_engine(request: Request) -> ExamSessionEngine:
    engine = _engine(request)
    if engine.status == SessionStatus.NOT_STARTED:
        raise HTTPException(status_code=404, detail="시험 세션이 없습니다.")
    if engine.status == SessionStatus.FINISHED:
        raise HTTPException(status_code=409, detail="이미 제출된 시험입니다.")
    return engine


def _provider(request: Request) -> FileQuestionProvider:
    return request.app.state.provider


def _question_to_dict(q: Question) -> dict:
    # 정답 표시는 제출 전까지 내보내지 않는다
    return {
        "id": q.id,
        "text": q.text,
        "options": [opt.text for opt in q.options],
    }


def _state_to_dict(engine: ExamSessionEngine) -> dict:
    state = engine.state
    return {
        "status": state.status.value,
        "exam_id": state.exam_id,
        "candidate": state.candidate.name,
        "current": state.current,
        "max_reached": state.max_reached,
        "navigation": engine.settings.navigation.value,
        "total": len(state.questions),
        "answers": state.answers,
        "answered_count": state.answered_count,
        "total_time": state.total_time,
        "time_left": state.time_left,
        "time_left_display": format_time(state.time_left),
        "question": _question_to_dict(state.questions[state.current]),
    }


def _result_to_dict(result: Result) -> dict:
    return {
        "name": result.candidate.name,
        "exam_id": result.exam_id,
        "score": result.score,
        "total": result.total,
        "percent": result.percent,
        "time_taken": result.time_taken,
        "submitted_at": result.submitted_at.isoformat(),
        "time_expired": result.time_expired,
        "summary": result.summary(),
    }


# ── 엔드포인트 ───────────────────────────────────────────────────────────────

@router.get("/api/exams")
async def list_exams(request: Request):
    return {"exams": [m.model_dump() for m in _provider(request).list_exams()]}


@router.post("/api/start-exam")
async def start_exam(body: StartExamBody, request: Request):
    engine = _engine(request)
    try:
        candidate = Candidate(name=body.name, affiliation=body.affiliation, contact=body.contact)
    except ValidationError:
        raise HTTPException(status_code=400, detail="이름을 입력해 주세요.")

    try:
        document = _provider(request).load(body.exam_id)
        engine.start_exam(document, candidate)
    except ExamNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ContentError as e:
        raise HTTPException(status_code=422, detail=str(e))

    return {"ok": True, "title": document.title, **_state_to_dict(engine)}


@router.get("/api/exam-state")
async def get_exam_state(request: Request):
    engine = _engine(request)
    if engine.state is None:
        raise HTTPException(status_code=404, detail="시험 세션이 없습니다.")
    return _state_to_dict(engine)


@router.get("/api/question/{index}")
async def get_question(index: int, request: Request):
    engine = _running_engine(request)
    state = engine.state
    if not (0 <= index < len(state.questions)):
        raise HTTPException(status_code=404, detail="문제를 찾을 수 없습니다.")
    if engine.settings.navigation == NavigationPolicy.FORWARD_ONLY and index > state.max_reached:
        raise HTTPException(status_code=400, detail="아직 도달하지 않은 문제입니다.")

    d = _question_to_dict(state.questions[index])
    d.update({"saved_answer": state.answers[index], "index": index, "total": len(state.questions)})
    return d


@router.post("/api/navigate")
async def navigate(body: NavigateBody, request: Request):
    engine = _running_engine(request)
    try:
        engine.go_to(body.index)
    except NavigationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"ok": True, **_state_to_dict(engine)}


@router.post("/api/advance")
async def advance(request: Request):
    engine = _running_engine(request)
    try:
        engine.advance()
    except NavigationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"ok": True, **_state_to_dict(engine)}


@router.post("/api/retreat")
async def retreat(request: Request):
    engine = _running_engine(request)
    try:
        engine.retreat()
    except NavigationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"ok": True, **_state_to_dict(engine)}


@router.post("/api/save-answer")
async def save_answer(body: SaveAnswerBody, request: Request):
    engine = _running_engine(request)
    try:
        if body.option_index is None:
            engine.clear_answer()
        else:
            engine.select_answer(body.option_index)
    except InvalidAnswerError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"ok": True, "answered_count": engine.state.answered_count}


@router.post("/api/submit-exam")
async def submit_exam(request: Request):
    engine = _engine(request)
    if engine.state is None:
        raise HTTPException(status_code=400, detail="시험 세션이 없습니다.")
    result = engine.finish(time_expired=False)
    return {"ok": True, **_result_to_dict(result)}


@router.get("/api/results")
async def get_results(request: Request):
    engine = _engine(request)
    result = engine.last_result()
    if result is None:
        raise HTTPException(status_code=404, detail="결과 정보가 없습니다.")

    data = _result_to_dict(result)
    # 같은 엔진에서 방금 끝낸 시험이면 오답 노트도 제공
    state = engine.state
    if state is not None and state.result is result:
        review = []
        for idx in get_incorrect_indices(state.questions, state.answers):
            q = state.questions[idx]
            d = _question_to_dict(q)
            d["user_answer"] = state.answers[idx]
            d["correct_answer"] = q.correct_index
            review.append(d)
        data["incorrect_questions"] = review
    return data


@router.get("/api/dashboard")
async def dashboard(request: Request):
    rows = await session.get_sink().fetch_rows()
    stats = compute_exam_stats(rows)
    cards = []
    # 결과가 없는 시험도 목록에 표시
    for meta in _provider(request).list_exams():
        s = stats.pop(meta.exam_id, None) or ExamStats(exam_id=meta.exam_id)
        card = s.to_dict()
        card["title"] = meta.title
        if card["total_questions"] is None:
            card["total_questions"] = meta.question_count
        cards.append(card)
    for s in stats.values():
        cards.append(s.to_dict())
    return {"exams": cards, "row_count": len(rows)}


@router.post("/api/reset")
async def reset_session(request: Request):
    _engine(request).reset()
    return {"ok": True}
