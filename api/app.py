"""
api/app.py — FastAPI 앱 인스턴스 + 세션 미들웨어 + static 파일 서빙
"""

import logging
import os
import re
import threading
import time
from typing import Optional

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse
from fastapi.staticfiles import StaticFiles

import config
from api.routes import router
import api.session as session
from quiz_runner.models.settings_model import ExamSettings
from quiz_runner.services.exam_catalog import FileQuestionProvider
from quiz_runner.services.result_sink import ResultSink
from quiz_runner.services.session_store import SessionStore

SESSION_COOKIE = "quiz_session"
_SID_RE = re.compile(r"^[0-9a-f]{32}$")

logger = logging.getLogger(__name__)


def create_app(
    settings: Optional[ExamSettings] = None,
    store: Optional[SessionStore] = None,
    sink: Optional[ResultSink] = None,
    data_dir: Optional[str] = None,
    cleanup: bool = True,
) -> FastAPI:
    app = FastAPI(title="Quiz Runner", docs_url=None, redoc_url=None)
    app.state.provider = FileQuestionProvider(data_dir or config.EXAM_DATA_DIR)
    session.configure(settings=settings, store=store, sink=sink)

    # CORS (모바일 브라우저 등 다양한 출처 허용)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # 세션 미들웨어: 쿠키에서 세션 ID를 읽고, 없으면 새로 발급
    # 메모리에 없지만 형식이 맞는 ID는 저장소 슬롯을 이어받도록 복원
    @app.middleware("http")
    async def session_middleware(request: Request, call_next):
        sid = request.cookies.get(SESSION_COOKIE)
        if not sid or not _SID_RE.match(sid):
            sid = session.create_session()
        elif session.get_engine(sid) is None:
            session.restore_session(sid)

        request.state.session_id = sid
        response: Response = await call_next(request)
        response.set_cookie(
            key=SESSION_COOKIE,
            value=sid,
            httponly=True,
            samesite="lax",
            max_age=session.SESSION_TTL,
        )
        return response

    app.include_router(router)

    # static 파일 마운트
    if os.path.isdir(config.STATIC_DIR):
        app.mount("/static", StaticFiles(directory=config.STATIC_DIR), name="static")

    # 루트 → index.html
    @app.get("/")
    async def serve_index():
        index_path = os.path.join(config.STATIC_DIR, "index.html")
        if os.path.exists(index_path):
            return FileResponse(index_path)
        return {"error": "index.html not found"}

    # 만료 세션 주기적 정리 (5분마다)
    def _cleanup_loop():
        while True:
            time.sleep(300)
            removed = session.cleanup_expired()
            if removed:
                logger.info(f"만료 세션 {removed}개 정리")

    if cleanup:
        t = threading.Thread(target=_cleanup_loop, daemon=True)
        t.start()

    return app
