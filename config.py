import os
import sys

from quiz_runner.models.settings_model import ExamSettings, NavigationPolicy

# 기본 디렉토리 설정 (PyInstaller 빌드 시 _MEIPASS)
IF_FROZEN = getattr(sys, "frozen", False)
BASE_DIR = sys._MEIPASS if IF_FROZEN else os.path.dirname(os.path.abspath(__file__))

# 경로 설정
STATIC_DIR = os.path.join(BASE_DIR, "static")
LOG_FILE = os.path.join(BASE_DIR, "launch.log")
EXAM_DATA_DIR = os.getenv("EXAM_DATA_DIR", os.path.join(BASE_DIR, "data", "exams"))
SESSION_DIR = os.getenv("SESSION_DIR", os.path.join(BASE_DIR, "data", "sessions"))

# 서버 설정
DEFAULT_HOST = os.getenv("HOST", "127.0.0.1")
DEFAULT_PORT = int(os.getenv("PORT", "8000"))
DEFAULT_TIMEOUT = 15.0

# 결과 수집기 설정 (비어 있으면 원격 전송 안 함)
RESULT_SINK_URL = os.getenv("RESULT_SINK_URL", "")
RESULT_SINK_TIMEOUT = float(os.getenv("RESULT_SINK_TIMEOUT", "10"))

# 시험 진행 설정
NAVIGATION_POLICY = os.getenv("NAVIGATION_POLICY", NavigationPolicy.FREE.value)
WALL_CLOCK_TIMING = os.getenv("WALL_CLOCK_TIMING", "0").lower() in ("1", "true", "yes")


def load_exam_settings() -> ExamSettings:
    """환경 변수 → 엔진 주입용 설정."""
    return ExamSettings(
        navigation=NavigationPolicy(NAVIGATION_POLICY),
        wall_clock_timing=WALL_CLOCK_TIMING,
        sink_url=RESULT_SINK_URL or None,
        sink_timeout=RESULT_SINK_TIMEOUT,
    )
