"""Supervisor: runs the pipeline and retries it after transient failures.

State machine::

    STARTING -> RUNNING -> (SUCCEEDED | FAILED) -> [RETRYING -> STARTING]* -> TERMINATED

While RUNNING the pipeline task and an error-listener task race; whichever
settles first decides the attempt. Errors escaping unrelated tasks reach the
listener through an event loop exception handler installed for the duration
of :meth:`Supervisor.run`.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import TYPE_CHECKING, Any, Protocol

from .correlation import correlation_scope
from .exceptions import RetryExhaustedError
from .retry import RetryPolicy

if TYPE_CHECKING:
    from collections.abc import Callable

logger = logging.getLogger(__name__)


class SupervisorState(str, Enum):
    STARTING = "starting"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    RETRYING = "retrying"
    TERMINATED = "terminated"


class Pipeline(Protocol):
    async def run(self) -> Any: ...

    def reset(self) -> None: ...


class ErrorChannel:
    """Collects errors raised outside the pipeline task."""

    def __init__(self) -> None:
        self._queue: asyncio.Queue[BaseException] = asyncio.Queue()

    def report(self, error: BaseException) -> None:
        self._queue.put_nowait(error)

    async def next_error(self) -> BaseException:
        return await self._queue.get()

    def drain(self) -> list[BaseException]:
        drained: list[BaseException] = []
        while not self._queue.empty():
            drained.append(self._queue.get_nowait())
        return drained

    def __len__(self) -> int:
        return self._queue.qsize()


class Supervisor:
    def __init__(
        self,
        pipeline: Pipeline,
        *,
        retry_policy: RetryPolicy | None = None,
        error_channel: ErrorChannel | None = None,
        on_transition: Callable[[SupervisorState], None] | None = None,
    ) -> None:
        self.pipeline = pipeline
        self.retry_policy = retry_policy or RetryPolicy()
        self.errors = error_channel or ErrorChannel()
        self._on_transition = on_transition
        self.state = SupervisorState.STARTING
        self.history: list[SupervisorState] = []
        self.failed_attempts = 0

    def _transition(self, state: SupervisorState) -> None:
        logger.debug("supervisor %s -> %s", self.state.value, state.value)
        self.state = state
        self.history.append(state)
        if self._on_transition is not None:
            self._on_transition(state)

    def _handle_loop_exception(
        self, loop: asyncio.AbstractEventLoop, context: dict[str, Any]
    ) -> None:
        error = context.get("exception")
        if not isinstance(error, BaseException):
            # Message-only contexts (destroyed pending tasks, unclosed
            # transports) do not fail the attempt.
            logger.warning(
                "event loop: %s", context.get("message", "unknown loop event")
            )
            return
        logger.error("unhandled error outside the pipeline: %r", error)
        self.errors.report(error)

    async def run(self) -> Any:
        """Run until the pipeline completes, a fatal error occurs, or retries
        are exhausted (``RetryExhaustedError``)."""
        loop = asyncio.get_running_loop()
        previous_handler = loop.get_exception_handler()
        loop.set_exception_handler(self._handle_loop_exception)
        try:
            return await self._supervise()
        finally:
            loop.set_exception_handler(previous_handler)

    async def _supervise(self) -> Any:
        self.failed_attempts = 0
        while True:
            self._transition(SupervisorState.STARTING)
            with correlation_scope() as correlation_id:
                logger.info(
                    "starting pipeline attempt %d (correlation id %s)",
                    self.failed_attempts + 1,
                    correlation_id,
                )
                try:
                    result = await self._run_attempt()
                except Exception as e:
                    error: Exception = e
                else:
                    self._transition(SupervisorState.SUCCEEDED)
                    self._transition(SupervisorState.TERMINATED)
                    logger.info("pipeline completed")
                    return result

            self._transition(SupervisorState.FAILED)
            self.failed_attempts += 1
            self.pipeline.reset()

            if not self.retry_policy.is_retryable(error):
                logger.error("fatal pipeline error, not retrying: %s", error)
                self._transition(SupervisorState.TERMINATED)
                raise error

            if not self.retry_policy.should_retry(self.failed_attempts):
                logger.error(
                    "pipeline failed %d times, giving up: %s",
                    self.failed_attempts,
                    error,
                )
                self._transition(SupervisorState.TERMINATED)
                raise RetryExhaustedError(self.failed_attempts, error) from error

            delay = self.retry_policy.delay_for_attempt(self.failed_attempts)
            logger.warning(
                "pipeline attempt %d failed: %s; retrying in %.2fs",
                self.failed_attempts,
                error,
                delay,
            )
            self._transition(SupervisorState.RETRYING)
            await self.retry_policy.wait_before_retry(self.failed_attempts)

    async def _run_attempt(self) -> Any:
        for stale in self.errors.drain():
            logger.warning("discarding error reported between attempts: %r", stale)

        self._transition(SupervisorState.RUNNING)
        pipeline_task = asyncio.create_task(self.pipeline.run())
        listener_task = asyncio.create_task(self.errors.next_error())
        try:
            await asyncio.wait(
                {pipeline_task, listener_task},
                return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            for task in (pipeline_task, listener_task):
                if not task.done():
                    task.cancel()
            await asyncio.gather(pipeline_task, listener_task, return_exceptions=True)

        if listener_task.done() and not listener_task.cancelled():
            raise listener_task.result()
        return pipeline_task.result()
