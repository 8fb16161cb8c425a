"""
In-memory notification outbox - Implements TaskDispatcher protocol.

Workflow steps dispatch notification tasks here and return at once.
A worker later drains the outbox, running each task through a handler.

Failure handling:
- Each task's handler runs under a tenacity retry policy: up to
  max_attempts tries with exponential backoff plus jitter between them.
  Every failed attempt is logged with its traceback.
- When the attempts are exhausted the task moves to dead_letters and is
  logged at ERROR; it is never retried automatically again.
- retry_dead_letters() puts dead tasks back on the queue with a fresh
  attempt budget, for an operator to call once the cause is fixed
  (exposed as POST /v1/notifications/retry).

Thread safety: the queue is guarded by a lock; handlers run outside it.
Persistence: pending tasks are lost on process restart (in-memory only).
"""

import logging
import threading
import time
from collections import deque
from collections.abc import Callable

from tenacity import RetryCallState, Retrying, stop_after_attempt, wait_exponential_jitter

from nominations.domain.ports import NotificationTask

logger = logging.getLogger(__name__)


def _log_failed_attempt(retry_state: RetryCallState) -> None:
    task: NotificationTask = retry_state.args[1]
    wait_time = retry_state.next_action.sleep if retry_state.next_action else 0
    logger.warning(
        "Notification task %s for user %s failed (attempt %d), retrying in %.2fs",
        task.kind.value,
        task.user_id,
        task.attempts,
        wait_time,
        exc_info=retry_state.outcome.exception() if retry_state.outcome else None,
    )


class InMemoryOutbox:
    """
    Queue of pending notification tasks with bounded, backed-off retry.

    Args:
        max_attempts: Tries per task before it is dead-lettered
        initial_delay: Wait before the first retry, doubled for each one after
        max_delay: Upper bound on any single wait
        sleep: Called with each wait in seconds (tests pass a Mock)

    Example:
        >>> outbox = InMemoryOutbox(max_attempts=3)
        >>> outbox.dispatch(task)
        >>> outbox.drain(workflow.run_task)
        1
    """

    def __init__(
        self,
        max_attempts: int = 3,
        initial_delay: float = 1.0,
        max_delay: float = 30.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.max_attempts = max_attempts
        self.dead_letters: list[NotificationTask] = []
        self._wait = wait_exponential_jitter(
            initial=initial_delay, max=max_delay, jitter=initial_delay
        )
        self._sleep = sleep
        self._pending: deque[NotificationTask] = deque()
        self._lock = threading.Lock()

    def dispatch(self, task: NotificationTask) -> None:
        """Queue a task. Never blocks on delivery."""
        with self._lock:
            self._pending.append(task)
        logger.debug(
            "Notification queued",
            extra={"task_kind": task.kind.value, "user_id": task.user_id},
        )

    @property
    def pending(self) -> list[NotificationTask]:
        """Snapshot of tasks waiting to run."""
        with self._lock:
            return list(self._pending)

    def drain(self, handler: Callable[[NotificationTask], None]) -> int:
        """
        Run every pending task through handler, retrying failures.

        Tasks run one after another; a failing task is retried with
        backoff before the next one starts.

        Args:
            handler: Callable executing one task; raises on failure

        Returns:
            Number of tasks that completed successfully
        """
        completed = 0
        while True:
            with self._lock:
                if not self._pending:
                    return completed
                task = self._pending.popleft()

            retrying = Retrying(
                stop=stop_after_attempt(self.max_attempts),
                wait=self._wait,
                sleep=self._sleep,
                before_sleep=_log_failed_attempt,
                reraise=True,
            )
            try:
                retrying(self._attempt, handler, task)
            except Exception:
                logger.exception(
                    "Notification task %s for user %s dead-lettered after %d attempts",
                    task.kind.value,
                    task.user_id,
                    task.attempts,
                )
                with self._lock:
                    self.dead_letters.append(task)
            else:
                completed += 1

    def retry_dead_letters(self) -> int:
        """Move dead-lettered tasks back onto the queue. Returns how many."""
        with self._lock:
            revived = self.dead_letters
            self.dead_letters = []
            for task in revived:
                task.attempts = 0
                self._pending.append(task)
        if revived:
            logger.info("Re-queued %d dead-lettered notification(s)", len(revived))
        return len(revived)

    @staticmethod
    def _attempt(handler: Callable[[NotificationTask], None], task: NotificationTask) -> None:
        task.attempts += 1
        handler(task)
