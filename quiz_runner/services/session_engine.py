"""
services/session_engine.py

시험 세션 엔진. 응시자 한 명의 시험 1회를 시작부터 결과까지 구동한다.

상태 전이:  NOT_STARTED → RUNNING → FINISHED (종료 상태, 되돌릴 수 없음)

- 시작 시 문제 순서와 각 문제의 보기 순서를 한 번만 섞는다.
- 이동/답안 선택/tick마다 상태를 저장소에 기록한다 (새로고침 후 재개).
- 시간이 0이 되면 자동 제출(time_expired=True), 그 전에는 수동 제출 가능.
- 제출은 한 번만 일어나며, 이후 호출은 모두 무시된다.
- 결과 전송은 분리된 작업으로 던져 놓고 기다리지 않는다.

이벤트 핸들러는 하나씩 끝까지 실행된다고 가정하므로 잠금이 없다.
"""

import asyncio
import logging
import random
import threading
import time
from typing import Any, Callable, Iterable, List, Mapping, Optional, Union

from quiz_runner.models.candidate_model import Candidate
from quiz_runner.models.question_model import Question
from quiz_runner.models.result_model import Result
from quiz_runner.models.session_state import SessionState, SessionStatus
from quiz_runner.models.settings_model import ExamSettings, NavigationPolicy
from quiz_runner.services import exam_service
from quiz_runner.services.countdown import CountdownTimer
from quiz_runner.services.errors import (
    ContentError, InvalidAnswerError, NavigationError, SessionStateError,
)
from quiz_runner.services.exam_catalog import ExamDocument
from quiz_runner.services.normalizer import normalize
from quiz_runner.services.result_sink import ResultSink
from quiz_runner.services.session_store import SessionStore

logger = logging.getLogger(__name__)


class ExamSessionEngine:
    """
    시험 세션 엔진.

    Args:
        store:    세션 영속화 저장소.
        sink:     결과 전송 어댑터.
        slot:     저장소 슬롯 이름 (브라우저 세션 ID 등).
        settings: 이동 정책, 시간 계산 방식 등 주입 설정.
        rng:      섞기에 쓸 난수 생성기 (테스트에서 시드 고정용).
        clock:    현재 시각 함수 (Unix timestamp).
        timer:    tick 타이머. 기본은 settings.tick_interval 간격의 CountdownTimer.
    """

    def __init__(
        self,
        store: SessionStore,
        sink: ResultSink,
        slot: str = "default",
        settings: Optional[ExamSettings] = None,
        rng: Optional[random.Random] = None,
        clock: Callable[[], float] = time.time,
        timer: Optional[CountdownTimer] = None,
    ):
        self.store = store
        self.sink = sink
        self.slot = slot
        self.settings = settings or ExamSettings()
        self.rng = rng or random.Random()
        self.clock = clock
        self.timer = timer or CountdownTimer(self.settings.tick_interval)
        self.state: Optional[SessionState] = None
        self.delivery: Optional[Union[asyncio.Task, threading.Thread]] = None

    # ── 상태 조회 ──────────────────────────────────────────────────────────────

    @property
    def status(self) -> SessionStatus:
        return self.state.status if self.state else SessionStatus.NOT_STARTED

    @property
    def is_running(self) -> bool:
        return self.status == SessionStatus.RUNNING

    @property
    def current_question(self) -> Question:
        state = self._require_state()
        return state.questions[state.current]

    def _require_state(self) -> SessionState:
        if self.state is None:
            raise SessionStateError("시작된 시험 세션이 없습니다.")
        return self.state

    def _ignored_after_finish(self, action: str) -> bool:
        """종료된 세션이면 True (호출 무시). 시작 전이면 SessionStateError."""
        if self.status == SessionStatus.FINISHED:
            logger.debug(f"종료된 세션: {action} 무시")
            return True
        self._require_state()
        return False

    def _persist(self) -> None:
        self.store.save_state(self.slot, self.state)

    # ── 시작 / 재개 ────────────────────────────────────────────────────────────

    def start_session(
        self,
        raw_questions: Iterable[Mapping[str, Any]],
        total_time: int,
        candidate: Candidate,
        exam_id: str,
    ) -> SessionState:
        """
        새 시험 세션을 시작한다.

        1. 원본 문제 정규화 (보기가 없는 문제는 제외)
        2. 문제 순서 섞기
        3. 문제별 보기 순서 섞기 (정답 표시는 보기와 함께 이동)
        4. 답안/위치/시간 초기화
        5. 즉시 저장
        6. 타이머 시작

        Raises:
            ContentError: 풀 수 있는 문제가 하나도 없음.
            ValueError:   total_time이 양의 정수가 아님.
        """
        if isinstance(total_time, bool) or not isinstance(total_time, int) or total_time <= 0:
            raise ValueError(f"제한 시간은 양의 정수(초)여야 합니다: {total_time!r}")

        questions: List[Question] = []
        for idx, raw in enumerate(raw_questions):
            q = normalize(raw)
            if not q.options:
                logger.warning(f"보기가 없는 문제 제외: {exam_id}#{idx}")
                continue
            if q.is_degraded:
                logger.warning(f"정답 정보가 없는 문제: {exam_id}#{idx} (항상 오답 처리)")
            questions.append(q)

        if not questions:
            raise ContentError(f"시험 '{exam_id}'에 풀 수 있는 문제가 없습니다.")

        # 이전 시험 흔적 정리
        self.timer.stop()
        self.store.clear_state(self.slot)
        self.store.clear_result(self.slot)

        exam_service.shuffle(questions, self.rng)
        for q in questions:
            exam_service.shuffle(q.options, self.rng)

        self.state = SessionState(
            questions=questions,
            answers=[None] * len(questions),
            current=0,
            max_reached=0,
            total_time=total_time,
            time_left=total_time,
            candidate=candidate,
            exam_id=exam_id,
            started_at=self.clock(),
            status=SessionStatus.RUNNING,
        )
        self._persist()
        self.timer.start(self.tick)
        logger.info(
            f"시험 시작: {exam_id} / {candidate.name} "
            f"({len(questions)}문항, {total_time}초, {self.settings.navigation.value})"
        )
        return self.state

    def resume(self, candidate: Candidate, exam_id: str) -> Optional[SessionState]:
        """
        저장된 진행 중 세션이 같은 응시자·같은 시험이면 그대로 복원한다.
        섞인 순서와 답안은 유지되며 타이머를 다시 시작한다.

        Returns:
            복원된 상태, 또는 복원할 세션이 없으면 None.
        """
        saved = self.store.load_state(self.slot)
        if saved is None:
            return None
        if saved.status != SessionStatus.RUNNING:
            self.store.clear_state(self.slot)
            return None
        if saved.exam_id != exam_id or saved.candidate.name != candidate.name:
            logger.info(f"다른 시험/응시자의 저장 세션, 재개하지 않음 (slot={self.slot})")
            return None

        self.state = saved
        if self.settings.wall_clock_timing:
            elapsed = int(self.clock() - saved.started_at)
            recomputed = max(0, saved.total_time - elapsed)
            # 남은 시간은 절대 늘어나지 않는다
            saved.time_left = min(saved.time_left, recomputed)
            if saved.time_left == 0:
                logger.info(f"재개 시점에 이미 시간 초과: {exam_id}")
                self.finish(time_expired=True)
                return self.state
            self._persist()

        self.timer.start(self.tick)
        logger.info(
            f"시험 재개: {exam_id} / {candidate.name} "
            f"(문제 {saved.current + 1}, 남은 시간 {saved.time_left}초)"
        )
        return self.state

    def start_exam(self, document: ExamDocument, candidate: Candidate) -> SessionState:
        """
        문제 세트 문서로 시험을 시작하거나, 같은 시험이 저장돼 있으면 재개한다.
        totalTime이 없으면 문항 수 기준 기본값을 쓴다.
        """
        resumed = self.resume(candidate, document.exam_id)
        if resumed is not None:
            return resumed
        total_time = document.total_time
        if total_time is None:
            total_time = exam_service.default_total_time(len(document.questions))
        return self.start_session(document.questions, total_time, candidate, document.exam_id)

    # ── 이동 ──────────────────────────────────────────────────────────────────

    def go_to(self, index: int) -> Optional[int]:
        """
        지정한 문제로 이동.

        Raises:
            NavigationError: 범위 밖이거나, forward_only 정책에서 도달하지 않은 문제.
        """
        if self._ignored_after_finish("go_to"):
            return None
        state = self.state
        if not (0 <= index < len(state.questions)):
            raise NavigationError(f"문제 번호가 범위를 벗어났습니다: {index}")
        if self.settings.navigation == NavigationPolicy.FORWARD_ONLY and index > state.max_reached:
            raise NavigationError(f"아직 도달하지 않은 문제입니다: {index} > {state.max_reached}")
        state.current = index
        state.max_reached = max(state.max_reached, index)
        self._persist()
        return state.current

    def advance(self) -> Optional[int]:
        """다음 문제로 이동. 마지막 문제에서는 NavigationError."""
        if self._ignored_after_finish("advance"):
            return None
        state = self.state
        if state.current >= len(state.questions) - 1:
            raise NavigationError("마지막 문제입니다.")
        state.current += 1
        state.max_reached = max(state.max_reached, state.current)
        self._persist()
        return state.current

    def retreat(self) -> Optional[int]:
        """이전 문제로 이동. forward_only 정책에서는 지원하지 않는다."""
        if self._ignored_after_finish("retreat"):
            return None
        if self.settings.navigation == NavigationPolicy.FORWARD_ONLY:
            raise NavigationError("이전 문제로 돌아갈 수 없는 시험입니다.")
        state = self.state
        if state.current == 0:
            raise NavigationError("첫 번째 문제입니다.")
        state.current -= 1
        self._persist()
        return state.current

    # ── 답안 ──────────────────────────────────────────────────────────────────

    def select_answer(self, option_index: int) -> Optional[int]:
        """
        현재 문제의 답을 기록한다. 이전 선택은 덮어쓴다.

        Raises:
            InvalidAnswerError: 보기 범위를 벗어난 인덱스.
        """
        if self._ignored_after_finish("select_answer"):
            return None
        state = self.state
        n_options = len(state.questions[state.current].options)
        if isinstance(option_index, bool) or not isinstance(option_index, int) \
                or not (0 <= option_index < n_options):
            raise InvalidAnswerError(
                f"보기 번호가 범위를 벗어났습니다: {option_index!r} (보기 {n_options}개)"
            )
        state.answers[state.current] = option_index
        self._persist()
        return option_index

    def clear_answer(self) -> None:
        if self._ignored_after_finish("clear_answer"):
            return
        self.state.answers[self.state.current] = None
        self._persist()

    # ── 타이머 ────────────────────────────────────────────────────────────────

    def tick(self) -> Optional[int]:
        """
        1초 경과 처리. 남은 시간이 0이 되면 자동 제출한다.

        Returns:
            남은 시간, 또는 실행 중이 아니면 None.
        """
        if not self.is_running:
            return None
        state = self.state
        state.time_left = max(0, state.time_left - 1)
        self._persist()
        if state.time_left == 0:
            logger.warning(f"시험 시간 종료: {state.exam_id} / {state.candidate.name}")
            self.finish(time_expired=True)
        return state.time_left

    # ── 채점 / 제출 ────────────────────────────────────────────────────────────

    def compute_score(self) -> int:
        state = self._require_state()
        return exam_service.calculate_score(state.questions, state.answers)

    def finish(self, time_expired: bool = False) -> Result:
        """
        시험을 제출하고 Result를 반환한다.

        순서 고정: 타이머 정지 → 채점 → 결과 생성·저장 → 결과 전송.
        이미 제출된 세션이면 기존 Result를 그대로 반환하고 재전송하지 않는다.

        Raises:
            SessionStateError: 시작된 세션이 없음.
        """
        state = self._require_state()
        if state.status == SessionStatus.FINISHED:
            logger.debug("이미 제출된 세션: finish 무시")
            return state.result

        self.timer.stop()
        score = self.compute_score()
        time_taken = state.total_time if time_expired else state.total_time - state.time_left

        result = Result(
            candidate=state.candidate,
            exam_id=state.exam_id,
            score=score,
            total=len(state.questions),
            time_taken=time_taken,
            time_expired=bool(time_expired),
        )
        state.status = SessionStatus.FINISHED
        state.result = result

        self.store.save_result(self.slot, result)
        self.store.clear_state(self.slot)
        logger.info(f"시험 제출: {result.summary()}" + (" [시간 초과]" if time_expired else ""))

        self._dispatch(result)
        return result

    def last_result(self) -> Optional[Result]:
        """현재 세션의 결과, 없으면 저장소에 남은 마지막 결과 (새로고침 후 결과 화면용)."""
        if self.state is not None and self.state.result is not None:
            return self.state.result
        return self.store.load_result(self.slot)

    def reset(self) -> None:
        """세션과 결과를 모두 지운다 (처음 화면으로)."""
        self.timer.stop()
        self.store.clear_state(self.slot)
        self.store.clear_result(self.slot)
        self.state = None

    # ── 결과 전송 (fire-and-forget) ────────────────────────────────────────────

    async def _deliver(self, result: Result) -> bool:
        try:
            return await self.sink.submit(result)
        except Exception:
            logger.exception("결과 전송 중 예상치 못한 오류")
            return False

    def _dispatch(self, result: Result) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None

        if loop is not None:
            self.delivery = loop.create_task(self._deliver(result))
        else:
            self.delivery = threading.Thread(
                target=asyncio.run, args=(self._deliver(result),), daemon=True
            )
            self.delivery.start()
