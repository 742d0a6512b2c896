"""
Quiz Session Controller
Client-side driver: one question at a time, per-question countdown, final submission
"""
import asyncio
import inspect
import logging
import time
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

import httpx

logger = logging.getLogger(__name__)

DEFAULT_SECONDS_PER_QUESTION = 30

Hook = Callable[..., Union[None, Awaitable[None]]]


class QuizClientError(Exception):
    """Raised when the quiz API rejects a request or cannot be reached"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


async def _call_hook(hook: Optional[Hook], *args) -> None:
    if hook is None:
        return
    result = hook(*args)
    if inspect.isawaitable(result):
        await result


class Countdown:
    """
    Cancellable one-shot timer backed by an asyncio task

    on_expire runs at most once and never after cancel().
    """

    def __init__(self, seconds: float, on_expire: Hook):
        self.seconds = seconds
        self.on_expire = on_expire
        self._task: Optional[asyncio.Task] = None
        self.expired = False
        self.cancelled = False

    def start(self) -> None:
        if self._task is not None:
            raise RuntimeError("Countdown already started")
        self._task = asyncio.create_task(self._run())

    async def _run(self) -> None:
        await asyncio.sleep(self.seconds)
        if self.cancelled:
            return
        self.expired = True
        # Detach first so cancel() from inside on_expire is a no-op
        self._task = None
        await _call_hook(self.on_expire)

    @property
    def active(self) -> bool:
        return self._task is not None and not self._task.done()

    def cancel(self) -> None:
        self.cancelled = True
        task, self._task = self._task, None
        if task is not None and task is not asyncio.current_task() and not task.done():
            task.cancel()


class QuizSessionController:
    """
    Drives one student through a quiz against the HTTP API

    Hooks:
        on_question(question, index, total): a new question is on screen
        on_finished(result): the server graded the quiz
    """

    def __init__(
        self,
        http: httpx.AsyncClient,
        student_name: str,
        student_id: str,
        seconds_per_question: float = DEFAULT_SECONDS_PER_QUESTION,
        secret: Optional[str] = None,
        secret_header: str = "x-quiz-secret",
        on_question: Optional[Hook] = None,
        on_finished: Optional[Hook] = None,
        clock: Callable[[], float] = time.monotonic
    ):
        self.http = http
        self.student_name = student_name.strip()
        self.student_id = student_id.strip()
        self.seconds_per_question = seconds_per_question
        self.headers = {secret_header: secret} if secret else {}
        self.on_question = on_question
        self.on_finished = on_finished
        self._clock = clock

        self.questions: List[Dict[str, Any]] = []
        self.answers: Dict[int, Dict[str, Any]] = {}
        self.index = -1
        self.started_at: Optional[float] = None
        self.result: Optional[Dict[str, Any]] = None
        self.blocked_message: Optional[str] = None
        self.error: Optional[QuizClientError] = None
        self.finished = asyncio.Event()
        self._countdown: Optional[Countdown] = None
        self._submitting = False

    # ==================== HTTP ====================

    async def _request(self, method: str, url: str, **kwargs) -> httpx.Response:
        try:
            response = await self.http.request(method, url, headers=self.headers, **kwargs)
        except httpx.HTTPError as e:
            logger.error(f"❌ Quiz API unreachable: {e}")
            raise QuizClientError(f"Quiz API unreachable: {e}")

        if response.status_code >= 400:
            try:
                detail = response.json().get("detail")
            except ValueError:
                detail = response.text
            if isinstance(detail, dict):
                detail = detail.get("message", detail)
            raise QuizClientError(str(detail), status_code=response.status_code)

        return response

    # ==================== FLOW ====================

    @property
    def current_question(self) -> Optional[Dict[str, Any]]:
        if 0 <= self.index < len(self.questions):
            return self.questions[self.index]
        return None

    async def start(self) -> bool:
        """
        Check the roll number and load the quiz

        Returns:
            False if the student is still cooling down (see blocked_message)
        """
        if not self.student_name or not self.student_id:
            raise ValueError("Student name and roll number are required")

        response = await self._request("GET", f"/check-roll/{self.student_id}")
        status = response.json()
        if not status.get("allowed", False):
            self.blocked_message = status.get("message") or "Attempt not allowed yet"
            logger.info(f"⏳ {self.student_id} blocked: {self.blocked_message}")
            return False

        response = await self._request(
            "POST",
            "/generate-quiz",
            json={"studentId": self.student_id, "studentName": self.student_name}
        )
        self.questions = response.json()
        if not self.questions:
            raise QuizClientError("Quiz came back empty")

        self.started_at = self._clock()
        await self._present(0)
        return True

    async def _present(self, index: int) -> None:
        self._cancel_countdown()
        self.index = index

        self._countdown = Countdown(
            self.seconds_per_question,
            lambda: self._on_timeout(index)
        )
        self._countdown.start()

        await _call_hook(self.on_question, self.questions[index], index, len(self.questions))

    def _cancel_countdown(self) -> None:
        if self._countdown is not None:
            self._countdown.cancel()
            self._countdown = None

    async def select(self, option_index: int) -> None:
        """Answer the current question and move on"""
        question = self.current_question
        if question is None or self.finished.is_set() or self._submitting:
            raise RuntimeError("No question is awaiting an answer")
        if not 0 <= option_index < len(question["options"]):
            raise ValueError(f"Option {option_index} out of range")

        self.answers[question["id"]] = {"id": question["id"], "selected": option_index}
        await self._advance()

    async def _on_timeout(self, index: int) -> None:
        if index != self.index or self.finished.is_set() or self._submitting:
            return

        question = self.questions[index]
        logger.info(f"⌛ Time's up on question {question['id']}")
        self.answers[question["id"]] = {"id": question["id"], "selected": None, "timedOut": True}
        try:
            await self._advance()
        except QuizClientError:
            # Runs on the countdown task; submit() already stored it in self.error
            pass

    async def _advance(self) -> None:
        self._cancel_countdown()
        if self.index + 1 < len(self.questions):
            await self._present(self.index + 1)
        else:
            await self.submit()

    async def submit(self) -> Dict[str, Any]:
        """Send all answers; questions never reached count as unanswered"""
        if self._submitting or self.finished.is_set():
            raise RuntimeError("Quiz already submitted")

        self._submitting = True
        self._cancel_countdown()

        duration = int(self._clock() - self.started_at) if self.started_at is not None else 0
        answers = [
            self.answers.get(q["id"], {"id": q["id"], "selected": None})
            for q in self.questions
        ]

        try:
            response = await self._request(
                "POST",
                "/submit-quiz",
                json={
                    "studentId": self.student_id,
                    "studentName": self.student_name,
                    "answers": answers,
                    "durationSeconds": max(duration, 0)
                }
            )
            self.result = response.json()
        except QuizClientError as e:
            self.error = e
            logger.error(f"❌ Submission failed for {self.student_id}: {e}")
            raise
        finally:
            self.index = len(self.questions)
            self.finished.set()

        logger.info(f"🏁 {self.student_id} finished with {self.result.get('score')}")
        await _call_hook(self.on_finished, self.result)
        return self.result

    async def wait_finished(self) -> Optional[Dict[str, Any]]:
        await self.finished.wait()
        return self.result
