"""
Question pool: owns the loaded questions and the selection policy.
"""
import logging
import random
from typing import Dict, Iterable, Iterator, List, Optional

from .errors import EmptyPoolError
from .models import ALL, FILTER_FIELDS, Question, QuizFilters


class QuestionPool:
    """
    Holds every loaded question and hands them out at random.

    Each question has a private "used" flag. A question is not handed out
    again until every question matching the same filters has been used, at
    which point only that filtered subset is reset.
    """

    def __init__(self, questions: Iterable[Question] = (), rng: Optional[random.Random] = None):
        """
        Initialize the pool.

        Args:
            questions: Questions in load order
            rng: Random source, mainly for reproducible tests
        """
        self.logger = logging.getLogger(__name__)
        self._questions: List[Question] = list(questions)
        self._used: List[bool] = [False] * len(self._questions)
        self._rng = rng or random.Random()

    def __len__(self) -> int:
        return len(self._questions)

    def __iter__(self) -> Iterator[Question]:
        return iter(self._questions)

    def select(self, filters: QuizFilters) -> Question:
        """
        Select a random unused question matching the filters and mark it used.

        When every matching question has been used, the used flags of the
        matching questions are cleared and selection is retried once.

        Args:
            filters: Category/language/level filter

        Returns:
            The selected question

        Raises:
            EmptyPoolError: If no question matches the filters at all
        """
        candidates = self._unused_matching(filters)

        if not candidates:
            matching = self._matching_indexes(filters)
            if not matching:
                self.logger.warning(
                    f"No questions match filters {filters}",
                    extra={'event_type': 'pool_empty', 'filters': str(filters)}
                )
                raise EmptyPoolError(
                    f"No questions match {filters}",
                    user_message="Could not find any matching questions"
                )
            self._reset_used(matching)
            candidates = self._unused_matching(filters)

        index = self._rng.choice(candidates)
        self._used[index] = True
        return self._questions[index]

    def has_value(self, field_name: str, value: str) -> bool:
        """
        Check whether any question carries the given field value.

        The wildcard value is always accepted.
        """
        if value == ALL:
            return True
        if field_name not in FILTER_FIELDS:
            return False
        return any(q.get_field(field_name) == value for q in self._questions)

    def counts_by_field(self, field_name: str) -> Dict[str, int]:
        """
        Count questions per observed value of a field.

        Questions without a value for the field are not counted.
        """
        counts: Dict[str, int] = {}
        for question in self._questions:
            value = question.get_field(field_name)
            if value:
                counts[value] = counts.get(value, 0) + 1
        return counts

    def format_counts(self, field_name: str) -> str:
        """Render counts as 'key (count), key (count)' sorted by key."""
        counts = self.counts_by_field(field_name)
        return ", ".join(f"{key} ({counts[key]})" for key in sorted(counts))

    def count_matching(self, filters: QuizFilters) -> int:
        """Number of questions matching the filters, used or not."""
        return len(self._matching_indexes(filters))

    def is_used(self, question: Question) -> bool:
        for index, candidate in enumerate(self._questions):
            if candidate is question:
                return self._used[index]
        raise KeyError("Question is not part of this pool")

    def _matching_indexes(self, filters: QuizFilters) -> List[int]:
        return [i for i, q in enumerate(self._questions) if filters.accepts(q)]

    def _unused_matching(self, filters: QuizFilters) -> List[int]:
        return [i for i in self._matching_indexes(filters) if not self._used[i]]

    def _reset_used(self, indexes: List[int]) -> None:
        for index in indexes:
            self._used[index] = False
        self.logger.info(
            f"Reset {len(indexes)} used questions",
            extra={'event_type': 'pool_reset', 'reset_count': len(indexes)}
        )
