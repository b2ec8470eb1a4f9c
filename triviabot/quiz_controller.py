"""
Quiz session controller for the trivia bot.

Owns the single quiz session: the active question, the remaining question
count, the scoreboard and the timeout of the active question. All state
changes go through one asyncio lock, whether they come from a chat message
or from an expired question timer.
"""
import asyncio
import logging
import time
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple

from .config_manager import ConfigManager
from .errors import (
    AlreadyRunningError,
    EmptyPoolError,
    InvalidCountError,
    NoActiveQuizError,
    NoMatchingQuestionsError,
)
from .models import Question, QuizFilters
from .question_pool import QuestionPool
from .quiz_engine import QuizEngine, TimerLifecycleLogger

SCOREBOARD_HEADER = "(.•ˆ•… Scoreboard …•ˆ•.)"


class SessionState(Enum):
    """Enumeration of possible quiz session states."""
    IDLE = "idle"
    ACTIVE = "active"


@dataclass
class QuizSession:
    """State of the quiz currently played in the channel."""
    active_question: Optional[Question] = None
    remaining_count: int = 0
    deadline: Optional[float] = None
    scoreboard: Dict[str, int] = field(default_factory=dict)
    filters: QuizFilters = field(default_factory=QuizFilters)
    generation: int = 0
    questions_asked: int = 0


class QuizController:
    """
    Runs the quiz state machine.

    The session is IDLE until a quiz is started. While ACTIVE exactly one
    question is posted and one timer is armed for it. A correct answer, the
    "next" command or the timer moves on to the next question; when the
    requested number of questions is used up, or the quiz is stopped, the
    scoreboard is posted and the session returns to IDLE.
    """

    def __init__(
        self,
        pool: QuestionPool,
        config_manager: ConfigManager,
        post: Callable[[str], Any],
        identity: str = "",
        quiz_engine: Optional[QuizEngine] = None
    ):
        """
        Initialize the quiz controller.

        Args:
            pool: Questions to ask
            config_manager: Source of the current quiz settings
            post: Sends one line of text to the chat; must not block
            identity: Display name of the bot, its own messages are never answers
            quiz_engine: Timer owner, a fresh one by default
        """
        self.logger = logging.getLogger(__name__)
        self.pool = pool
        self.config_manager = config_manager
        self.quiz_engine = quiz_engine or QuizEngine()
        self.identity = identity
        self._post = post
        self._session = QuizSession()
        self._lock = asyncio.Lock()

    @property
    def state(self) -> SessionState:
        if self._session.active_question is None:
            return SessionState.IDLE
        return SessionState.ACTIVE

    @property
    def is_running(self) -> bool:
        return self.state is SessionState.ACTIVE

    @property
    def current_question(self) -> Optional[Question]:
        return self._session.active_question

    @property
    def generation(self) -> int:
        return self._session.generation

    @property
    def scoreboard(self) -> Dict[str, int]:
        return dict(self._session.scoreboard)

    async def start_quiz(self, requested_count: Any = None, category: Optional[str] = None) -> None:
        """
        Start a quiz and post its first question.

        Args:
            requested_count: Number of questions; None or "" uses the configured default
            category: Category for this quiz only, overriding the configured one

        Raises:
            InvalidCountError: If the count is unparsable or not positive,
                checked first so a running quiz is never touched
            AlreadyRunningError: If a quiz is running
            NoMatchingQuestionsError: If no question matches the filters
        """
        async with self._lock:
            settings = self.config_manager.get_quiz_settings()
            count = self.parse_count(requested_count, settings.number_of_questions)
            if self.is_running:
                raise AlreadyRunningError("Quiz already running")

            filters = self._resolve_filters(settings.filters, category)

            self._session = QuizSession(
                remaining_count=count,
                filters=filters,
                generation=self._session.generation
            )
            self.logger.info(
                f"Starting quiz with {count} questions, filters {filters}",
                extra={'event_type': 'quiz_started', 'question_count': count}
            )
            self._ask_question()

    async def submit_answer(self, participant: str, text: str) -> bool:
        """
        Check a chat line against the active question.

        Wrong answers are silently ignored, as are lines sent while no quiz is
        running and lines sent by the bot itself.

        Returns:
            True if the line answered the active question
        """
        if participant == self.identity:
            return False

        async with self._lock:
            question = self._session.active_question
            if question is None or not question.is_correct(text):
                return False

            self._post(f"Correct answer {participant}!")
            scoreboard = self._session.scoreboard
            scoreboard[participant] = scoreboard.get(participant, 0) + 1
            self.logger.info(
                f"{participant} answered question {self._session.questions_asked}",
                extra={'event_type': 'question_answered', 'participant': participant}
            )
            self._next_or_finish()
            return True

    async def advance_manually(self) -> None:
        """
        Skip the active question, as if its timer expired.

        Raises:
            NoActiveQuizError: If no quiz is running
        """
        async with self._lock:
            if not self.is_running:
                raise NoActiveQuizError("No quiz is running")
            self._expire_question()

    async def on_timeout(self, generation: int) -> None:
        """
        Handle an expired question timer.

        Does nothing when the timer belongs to a question that is no longer
        active.
        """
        async with self._lock:
            if not self.is_running or generation != self._session.generation:
                TimerLifecycleLogger.log_stale_timer(generation, self._session.generation)
                return
            self.logger.info(
                "Question timed out",
                extra={'event_type': 'question_timeout', 'generation': generation}
            )
            self._expire_question()

    async def stop_quiz(self) -> None:
        """
        Stop the running quiz and post the scoreboard.

        Raises:
            NoActiveQuizError: If no quiz is running
        """
        async with self._lock:
            if not self.is_running:
                raise NoActiveQuizError("No quiz is running")
            self.logger.info("Quiz stopped", extra={'event_type': 'quiz_stopped'})
            self._finish()

    def ranked_scores(self) -> List[Tuple[str, int]]:
        """Scoreboard as (participant, score) pairs, highest score first."""
        return sorted(self._session.scoreboard.items(), key=lambda item: (-item[1], item[0]))

    def format_scoreboard(self) -> str:
        lines = [SCOREBOARD_HEADER]
        lines.extend(f"{name}: {score}" for name, score in self.ranked_scores())
        return "\n".join(lines)

    def get_status(self) -> Dict[str, Any]:
        """
        Get a snapshot of the session for status output and logging.

        Returns:
            Dictionary with state, progress and scoreboard
        """
        session = self._session
        question = session.active_question
        return {
            'state': self.state.value,
            'remaining_count': session.remaining_count if question else 0,
            'questions_asked': session.questions_asked,
            'current_question': question.text if question else None,
            'seconds_left': max(0.0, session.deadline - time.monotonic()) if question and session.deadline else None,
            'generation': session.generation,
            'scoreboard': dict(session.scoreboard),
        }

    @staticmethod
    def parse_count(requested_count: Any, default: int) -> int:
        """
        Parse a requested question count.

        An omitted count (None or blank) means the configured default; every
        other value must be a positive integer.

        Raises:
            InvalidCountError: If the count is unparsable or not positive
        """
        if requested_count is None or (isinstance(requested_count, str) and not requested_count.strip()):
            return default
        try:
            if isinstance(requested_count, bool):
                raise ValueError(requested_count)
            count = int(str(requested_count).strip())
        except ValueError:
            raise InvalidCountError(
                f"Invalid number of questions: {requested_count!r}",
                user_message=f"Invalid number of questions: {requested_count}"
            )
        if count <= 0:
            raise InvalidCountError(
                f"Number of questions must be positive: {count}",
                user_message=f"Invalid number of questions: {requested_count}"
            )
        return count

    def _resolve_filters(self, filters: QuizFilters, category: Optional[str]) -> QuizFilters:
        if category:
            if not self.pool.has_value('category', category):
                raise NoMatchingQuestionsError(f"Unknown category: {category}")
            filters = replace(filters, category=category)
        if self.pool.count_matching(filters) == 0:
            raise NoMatchingQuestionsError(f"No questions match {filters}")
        return filters

    def _ask_question(self) -> None:
        """Select, post and arm the next question. Caller holds the lock."""
        session = self._session
        try:
            question = self.pool.select(session.filters)
        except EmptyPoolError as e:
            self.logger.error(f"Question selection failed mid-quiz: {e}")
            self._post(e.user_message)
            self._finish()
            return

        settings = self.config_manager.settings
        session.active_question = question
        session.generation += 1
        session.questions_asked += 1

        if question.category:
            self._post(f"[{question.category}] {question.text}")
        else:
            self._post(question.text)

        timer = self.quiz_engine.start_question_timer(
            session.generation, settings.timeout, self.on_timeout
        )
        session.deadline = timer.deadline
        self.logger.debug(
            f"Asked question {session.questions_asked}, {session.remaining_count} remaining",
            extra={
                'event_type': 'question_asked',
                'generation': session.generation,
                'remaining_count': session.remaining_count
            }
        )

    def _expire_question(self) -> None:
        """Reveal the answer if configured, then move on. Caller holds the lock."""
        settings = self.config_manager.settings
        question = self._session.active_question
        if settings.debug and question.answer_pattern:
            self._post(question.answer_pattern)
        if settings.show_answer:
            self._post(question.display_answer)
        self._next_or_finish()

    def _next_or_finish(self) -> None:
        self._session.remaining_count -= 1
        if self._session.remaining_count > 0:
            self._ask_question()
        else:
            self.logger.info("Quiz finished", extra={'event_type': 'quiz_finished'})
            self._finish()

    def _finish(self) -> None:
        """Tear the session down and post the scoreboard. Caller holds the lock."""
        self.quiz_engine.cancel_timer()
        session = self._session
        session.active_question = None
        session.deadline = None
        session.remaining_count = 0
        session.generation += 1
        self._post(self.format_scoreboard())
