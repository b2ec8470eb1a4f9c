"""
Core data models for the chat trivia bot.
"""
import logging
import re
from dataclasses import dataclass, field
from typing import Optional, Union

logger = logging.getLogger(__name__)

# Wildcard filter value, matches every question
ALL = "all"

# Characters in a raw answer that are removed before display and compare
STRIP_MARKER = "#"

FILTER_FIELDS = ("category", "language", "level")


@dataclass(frozen=True)
class LiteralAnswer:
    """Case-insensitive exact compare against the answer text."""
    text: str

    def matches(self, text: str) -> bool:
        return text.strip().casefold() == self.text.casefold()


@dataclass(frozen=True)
class PatternAnswer:
    """Case-insensitive regular expression search, anchors honored as authored."""
    pattern: str
    regex: Optional[re.Pattern] = field(default=None, compare=False, repr=False)

    @classmethod
    def compile(cls, pattern: str) -> "PatternAnswer":
        """
        Compile a pattern once at load time.

        A malformed pattern is logged and kept as a rule that never matches.
        """
        try:
            regex = re.compile(pattern, re.IGNORECASE)
        except re.error as e:
            logger.warning(
                f"Invalid answer pattern {pattern!r}: {e}",
                extra={'event_type': 'invalid_answer_pattern', 'pattern': pattern}
            )
            regex = None
        return cls(pattern=pattern, regex=regex)

    def matches(self, text: str) -> bool:
        if self.regex is None:
            return False
        return self.regex.search(text.strip()) is not None


AnswerRule = Union[LiteralAnswer, PatternAnswer]


@dataclass(frozen=True)
class Question:
    """Represents a single trivia question."""
    text: str
    answer: str
    answer_pattern: Optional[str] = None
    category: Optional[str] = None
    language: Optional[str] = None
    level: Optional[str] = None
    rule: AnswerRule = field(init=False, compare=False, repr=False)

    def __post_init__(self):
        if not self.text:
            raise ValueError("Question text cannot be empty")
        if self.answer_pattern:
            rule = PatternAnswer.compile(self.answer_pattern)
        elif not self.display_answer:
            raise ValueError(f"Answer {self.answer!r} is empty once {STRIP_MARKER!r} is removed")
        else:
            rule = LiteralAnswer(self.display_answer)
        object.__setattr__(self, 'rule', rule)

    @property
    def display_answer(self) -> str:
        """Answer text with strip markers removed."""
        return self.answer.replace(STRIP_MARKER, "").strip()

    def is_correct(self, text: str) -> bool:
        return self.rule.matches(text)

    def get_field(self, name: str) -> Optional[str]:
        if name not in FILTER_FIELDS:
            raise ValueError(f"Unknown question field: {name}")
        return getattr(self, name)


@dataclass(frozen=True)
class QuizFilters:
    """Selection filter; each value is a concrete value or the ALL wildcard."""
    category: str = ALL
    language: str = ALL
    level: str = ALL

    def accepts(self, question: Question) -> bool:
        return all(
            value == ALL or question.get_field(name) == value
            for name, value in (
                ('category', self.category),
                ('language', self.language),
                ('level', self.level),
            )
        )


@dataclass
class QuizSettings:
    """Runtime configuration for the quiz."""
    category: str = ALL
    language: str = ALL
    level: str = ALL
    number_of_questions: int = 10
    show_answer: bool = False
    timeout: int = 60
    debug: bool = False

    @property
    def filters(self) -> QuizFilters:
        return QuizFilters(
            category=self.category,
            language=self.language,
            level=self.level
        )
