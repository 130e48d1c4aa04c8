"""
Task Poller - State machine driving a submitted vendor task to a terminal state
"""

import asyncio
import inspect
from typing import Any, Callable, Optional
import httpx

from shotgen.config.constants import PROGRESS_CEILING, PROGRESS_FLOOR, PROGRESS_SPAN
from shotgen.config.settings import settings
from shotgen.core.format_router import ProtocolVariant
from shotgen.core.status_parsers import get_status_parser
from shotgen.core.vendor_client import VendorVideoClient
from shotgen.models.generation import TaskState, VendorTask
from shotgen.services.error_classifier import (
    AuthInvalidError,
    ErrorClassifier,
    GenerationCancelledError,
    GenerationError,
    GenerationTimeoutError,
    ResultMissingError,
    TaskNotFoundError,
)
from shotgen.services.observability import logger


ProgressCallback = Callable[[int], Any]


def attempt_progress(attempt: int, max_attempts: int) -> int:
    """Progress reported before the given 0-based poll attempt"""
    if max_attempts <= 0:
        return PROGRESS_FLOOR
    return min(PROGRESS_FLOOR + (attempt * PROGRESS_SPAN) // max_attempts, PROGRESS_CEILING)


class TaskPoller:
    """
    Poll one vendor task until it succeeds, fails, times out or is cancelled

    PENDING -> SUCCEEDED | FAILED | TIMED_OUT | CANCELLED. All mutable
    polling state lives on the instance. run() returns the task on success
    and raises the classified GenerationError otherwise, after recording the
    terminal state on the task.
    """

    def __init__(
        self,
        client: VendorVideoClient,
        task: VendorTask,
        credential: str,
        on_progress: Optional[ProgressCallback] = None,
        cancel_event: Optional[asyncio.Event] = None,
        poll_interval_s: Optional[float] = None,
        max_attempts: Optional[int] = None,
        not_found_grace_attempts: Optional[int] = None,
        classifier: Optional[ErrorClassifier] = None,
    ):
        self.client = client
        self.task = task
        self.variant = ProtocolVariant(task.variant)
        self.credential = credential
        self.on_progress = on_progress
        self.cancel_event = cancel_event
        self.poll_interval_s = settings.poll_interval_s if poll_interval_s is None else poll_interval_s
        self.max_attempts = settings.max_poll_attempts if max_attempts is None else max_attempts
        self.not_found_grace_attempts = (
            settings.not_found_grace_attempts
            if not_found_grace_attempts is None
            else not_found_grace_attempts
        )
        self.classifier = classifier or ErrorClassifier()
        self.parser = get_status_parser(self.variant)

        self._seen = False
        self._consecutive_not_found = 0

    @property
    def cancelled(self) -> bool:
        return self.cancel_event is not None and self.cancel_event.is_set()

    async def run(self) -> VendorTask:
        """
        Drive the task to a terminal state

        Returns:
            VendorTask in SUCCEEDED state

        Raises:
            GenerationError: Classified failure, timeout or cancellation
        """
        logger.info(
            "task_poll_start",
            task_id=self.task.task_id,
            variant=self.variant.value,
            max_attempts=self.max_attempts,
        )

        for attempt in range(self.max_attempts):
            if self.cancelled:
                self._fail(GenerationCancelledError("Generation cancelled"), TaskState.CANCELLED)

            await self._report_progress(attempt_progress(attempt, self.max_attempts))

            self.task.attempts += 1
            video_url = await self._poll_once()

            # a result that lands after cancellation is discarded
            if self.cancelled:
                self._fail(GenerationCancelledError("Generation cancelled"), TaskState.CANCELLED)

            if video_url is not None:
                self.task.state = TaskState.SUCCEEDED
                self.task.video_url = video_url
                await self._report_progress(100)
                logger.info(
                    "task_poll_succeeded",
                    task_id=self.task.task_id,
                    attempts=self.task.attempts,
                )
                return self.task

            if attempt < self.max_attempts - 1:
                await self._wait()

        self._fail(
            GenerationTimeoutError(f"Video generation timed out after {self.max_attempts} attempts"),
            TaskState.TIMED_OUT,
        )

    async def _poll_once(self) -> Optional[str]:
        """One query; returns the video url on success, None while pending"""
        try:
            response = await self.client.query(self.variant, self.task.task_id, self.credential)
        except httpx.HTTPError as e:
            logger.warning("task_poll_network_error", task_id=self.task.task_id, error=str(e))
            return None

        status = response.status_code

        if status == 404:
            self._consecutive_not_found += 1
            if not self._seen and self._consecutive_not_found <= self.not_found_grace_attempts:
                logger.warning(
                    "task_not_found_grace",
                    task_id=self.task.task_id,
                    consecutive=self._consecutive_not_found,
                )
                return None
            self._fail(TaskNotFoundError("Task does not exist", status_code=404, body=response.text))

        self._consecutive_not_found = 0

        if status in (401, 403):
            self._fail(
                AuthInvalidError(
                    self.classifier.extract_message(status, response.text),
                    status_code=status,
                    body=response.text,
                )
            )

        if status >= 400:
            # 429, 5xx and anything unrecognised keep the task pending
            logger.warning("task_poll_http_error", task_id=self.task.task_id, status_code=status)
            return None

        try:
            data = response.json()
        except ValueError:
            logger.warning("task_poll_invalid_json", task_id=self.task.task_id)
            return None

        self._seen = True
        snapshot = self.parser.parse(data)

        if snapshot.state == TaskState.SUCCEEDED:
            if not snapshot.video_url:
                self._fail(ResultMissingError("Task completed without a video URL", body=data))
            return snapshot.video_url

        if snapshot.state == TaskState.FAILED:
            self._fail(self.classifier.from_failure_message(snapshot.error or ""))

        logger.debug(
            "task_poll_pending",
            task_id=self.task.task_id,
            raw_status=snapshot.raw_status,
            attempt=self.task.attempts,
        )
        return None

    async def _wait(self) -> None:
        if self.poll_interval_s <= 0:
            await asyncio.sleep(0)
            return
        if self.cancel_event is None:
            await asyncio.sleep(self.poll_interval_s)
            return
        try:
            await asyncio.wait_for(self.cancel_event.wait(), self.poll_interval_s)
        except asyncio.TimeoutError:
            pass

    async def _report_progress(self, progress: int) -> None:
        # reported on every attempt, never below the last value
        progress = max(progress, self.task.progress)
        self.task.progress = progress
        if self.on_progress is None:
            return
        result = self.on_progress(progress)
        if inspect.isawaitable(result):
            await result

    def _fail(self, error: GenerationError, state: TaskState = TaskState.FAILED) -> None:
        self.task.state = state
        self.task.error = error.message
        self.task.failure_kind = error.kind.value
        logger.warning(
            "task_poll_terminated",
            task_id=self.task.task_id,
            state=state.value,
            failure_kind=error.kind.value,
            attempts=self.task.attempts,
        )
        raise error
