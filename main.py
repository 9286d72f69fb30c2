"""
main.py — 퀴즈 러너 실행 진입점

로컬 서버(uvicorn)를 띄우고 브라우저 앱 창으로 시험 화면을 연다.
"""

import os
import socket
import subprocess
import sys
import time
import threading
import logging
import traceback
import webbrowser

# ── 패키지 경로 설정 (반드시 최상단) ──────────────────────────────────────────
_BASE_DIR = os.path.dirname(os.path.abspath(__file__))
if _BASE_DIR not in sys.path:
    sys.path.insert(0, _BASE_DIR)

from config import BASE_DIR, LOG_FILE, DEFAULT_HOST, DEFAULT_PORT, DEFAULT_TIMEOUT

logger = logging.getLogger(__name__)


def setup_logging() -> None:
    try:
        logging.basicConfig(
            level=logging.INFO,
            format='%(asctime)s [%(levelname)s] %(name)s: %(message)s',
            handlers=[
                logging.FileHandler(LOG_FILE, encoding='utf-8'),
                logging.StreamHandler(sys.stdout)
            ]
        )
    except PermissionError:
        # 로그 파일 점유 시 콘솔 출력만 사용
        logging.basicConfig(level=logging.INFO)


# ── 서버 및 네트워크 유틸 ───────────────────────────────────────────────────

def _find_free_port(preferred: int = DEFAULT_PORT) -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        try:
            s.bind((DEFAULT_HOST, preferred))
        except OSError:
            s.bind((DEFAULT_HOST, 0))
        return s.getsockname()[1]


def _wait_for_server(port: int, timeout: float = DEFAULT_TIMEOUT) -> bool:
    deadline = time.time() + timeout
    while time.time() < deadline:
        try:
            with socket.create_connection((DEFAULT_HOST, port), timeout=0.5):
                return True
        except OSError:
            time.sleep(0.1)
    return False


def _open_browser(url: str) -> None:
    candidates = [
        r"C:\Program Files\Google\Chrome\Application\chrome.exe",
        r"C:\Program Files (x86)\Google\Chrome\Application\chrome.exe",
        r"C:\Program Files\Microsoft\Edge\Application\msedge.exe",
        r"C:\Program Files (x86)\Microsoft\Edge\Application\msedge.exe",
    ]
    flags = [f"--app={url}", "--no-first-run", "--window-size=1024,768"]

    for path in candidates:
        if os.path.exists(path):
            logger.info(f"브라우저 실행 시도: {path}")
            subprocess.Popen([path] + flags)
            return

    webbrowser.open(url)


def _start_server(port: int) -> None:
    try:
        import uvicorn
        from api.app import create_app
        logger.info(f"Uvicorn 서버 시작 - Port: {port}")
        app = create_app()
        uvicorn.run(app, host=DEFAULT_HOST, port=port, log_level="warning")
    except Exception:
        logger.error(f"서버 오류 발생:\n{traceback.format_exc()}")


# ── 메인 실행 ────────────────────────────────────────────────────────────────

if __name__ == "__main__":
    setup_logging()
    logger.info("=== Quiz Runner Started ===")
    os.chdir(BASE_DIR)

    port = _find_free_port()
    server_thread = threading.Thread(target=_start_server, args=(port,), daemon=True)
    server_thread.start()

    if _wait_for_server(port):
        logger.info("서버 준비 완료. 브라우저를 엽니다.")
        _open_browser(f"http://{DEFAULT_HOST}:{port}")

        # 메인 스레드 유지
        try:
            while True:
                time.sleep(10)
        except KeyboardInterrupt:
            logger.info("사용자에 의해 종료되었습니다.")
    else:
        logger.error("서버 시작 제한 시간을 초과했습니다. 기존 프로세스가 포트를 점유하고 있는지 확인하세요.")
        sys.exit(1)
