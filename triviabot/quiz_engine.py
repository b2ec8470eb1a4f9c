"""
Question timeout handling for the trivia bot.

Every posted question gets a QuestionTimer tagged with the session
generation it was armed for. When the timer expires it hands that
generation back to the session, which ignores it if the session has
moved on in the meantime.
"""
import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Optional

logger = logging.getLogger(__name__)

TimeoutCallback = Callable[[int], Awaitable[Any]]


class TimerLifecycleLogger:
    """Structured logging for timer lifecycle events."""

    @staticmethod
    def log_timer_created(generation: int, duration: float) -> None:
        logger.debug(
            f"Timer lifecycle: CREATED - Generation {generation}, Duration {duration}s",
            extra={
                'event_type': 'timer_created',
                'generation': generation,
                'duration': duration,
                'timestamp': time.time()
            }
        )

    @staticmethod
    def log_timer_completion(generation: int, completion_type: str, duration: float) -> None:
        """Log timer completion (natural expiry or cancellation)."""
        logger.debug(
            f"Timer lifecycle: COMPLETED - Generation {generation}, Type {completion_type}, Duration {duration}s",
            extra={
                'event_type': 'timer_completed',
                'generation': generation,
                'completion_type': completion_type,
                'duration': duration,
                'timestamp': time.time()
            }
        )

    @staticmethod
    def log_timer_error(generation: int, error_type: str, error_message: str) -> None:
        logger.error(
            f"Timer lifecycle: ERROR - Generation {generation}, Type {error_type}: {error_message}",
            extra={
                'event_type': 'timer_error',
                'generation': generation,
                'error_type': error_type,
                'error_message': error_message,
                'timestamp': time.time()
            }
        )

    @staticmethod
    def log_stale_timer(generation: int, current_generation: int) -> None:
        """Log a timer that fired for a question that is no longer active."""
        logger.info(
            f"Timer lifecycle: STALE - Generation {generation}, current {current_generation}",
            extra={
                'event_type': 'timer_stale',
                'generation': generation,
                'current_generation': current_generation,
                'timestamp': time.time()
            }
        )


class QuestionTimer:
    """Waits for a question deadline and reports it once."""

    def __init__(self, generation: int, duration: float):
        """
        Initialize the timer.

        Args:
            generation: Session generation this timer belongs to
            duration: Seconds until the deadline
        """
        self.generation = generation
        self.duration = duration
        self.deadline = time.monotonic() + duration
        self._task: Optional[asyncio.Task] = None
        self._fired = False
        self._is_cancelled = False

    def start(self, completion_callback: TimeoutCallback) -> asyncio.Task:
        """Start the countdown as a background task on the running loop."""
        self._task = asyncio.get_running_loop().create_task(
            self._run(completion_callback),
            name=f"question-timer-{self.generation}"
        )
        return self._task

    async def _run(self, completion_callback: TimeoutCallback) -> None:
        try:
            await asyncio.sleep(self.duration)
        except asyncio.CancelledError:
            TimerLifecycleLogger.log_timer_completion(self.generation, "cancelled", self.duration)
            raise

        # Past this point the timer is no longer cancellable: the callback
        # may itself arm the next timer
        self._fired = True
        TimerLifecycleLogger.log_timer_completion(self.generation, "natural_expiry", self.duration)
        try:
            await completion_callback(self.generation)
        except Exception as e:
            TimerLifecycleLogger.log_timer_error(self.generation, type(e).__name__, str(e))
            logger.exception("Timeout callback failed")

    def cancel(self) -> None:
        """Cancel the countdown unless it already fired."""
        self._is_cancelled = True
        if self._task and not self._task.done() and not self._fired:
            self._task.cancel()

    @property
    def is_cancelled(self) -> bool:
        return self._is_cancelled

    @property
    def fired(self) -> bool:
        return self._fired

    @property
    def remaining_time(self) -> float:
        return max(0.0, self.deadline - time.monotonic())

    @property
    def task(self) -> Optional[asyncio.Task]:
        return self._task


class QuizEngine:
    """Owns the single outstanding question timer."""

    def __init__(self):
        self._timer: Optional[QuestionTimer] = None

    def start_question_timer(
        self,
        generation: int,
        duration: float,
        completion_callback: TimeoutCallback
    ) -> QuestionTimer:
        """
        Arm a timer for a newly posted question.

        Any previous timer is cancelled first so at most one is outstanding.

        Args:
            generation: Session generation of the posted question
            duration: Timeout in seconds
            completion_callback: Awaited with the generation when the timer expires

        Returns:
            The armed timer
        """
        self.cancel_timer()
        timer = QuestionTimer(generation, duration)
        TimerLifecycleLogger.log_timer_created(generation, duration)
        timer.start(completion_callback)
        self._timer = timer
        return timer

    def cancel_timer(self) -> bool:
        """
        Cancel the outstanding timer.

        Returns:
            True if a timer was cancelled, False if there was none
        """
        timer = self._timer
        self._timer = None
        if timer is None:
            return False
        timer.cancel()
        return True

    def get_timer_status(self) -> Optional[dict]:
        """
        Get the status of the outstanding timer.

        Returns:
            Dictionary with timer status or None if no timer is armed
        """
        if self._timer is None:
            return None
        return {
            'generation': self._timer.generation,
            'remaining_time': self._timer.remaining_time,
            'is_cancelled': self._timer.is_cancelled,
            'fired': self._timer.fired
        }
