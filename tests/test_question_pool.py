"""
Unit tests for the QuestionPool selection policy.
"""
import unittest

from triviabot.errors import EmptyPoolError
from triviabot.models import Question, QuizFilters
from triviabot.question_pool import QuestionPool
from tests.test_fixtures import TestFixtures


class TestQuestionSelection(unittest.TestCase):
    """Test cases for select and the used/reset bookkeeping."""

    def setUp(self):
        """Set up test fixtures."""
        self.questions = TestFixtures.create_sample_questions()
        self.pool = TestFixtures.create_pool(self.questions)

    def test_selected_question_is_marked_used(self):
        question = self.pool.select(QuizFilters())
        self.assertIn(question, self.questions)
        self.assertTrue(self.pool.is_used(question))

    def test_every_match_is_returned_before_repeats(self):
        filters = QuizFilters()
        selected = [self.pool.select(filters) for _ in range(len(self.questions))]

        self.assertEqual(len({id(q) for q in selected}), len(self.questions))
        self.assertTrue(all(self.pool.is_used(q) for q in self.questions))

    def test_selection_respects_filters(self):
        filters = QuizFilters(category="Astronomy")
        for _ in range(10):
            self.assertEqual(self.pool.select(filters).category, "Astronomy")

        filters = QuizFilters(language="en", level="hard")
        self.assertEqual(self.pool.select(filters).text, "What is the largest planet?")

    def test_exhausted_subset_is_reset_and_reselected(self):
        astronomy = QuizFilters(category="Astronomy")
        geography = QuizFilters(category="Geography")

        first = self.pool.select(astronomy)
        second = self.pool.select(astronomy)
        self.assertIsNot(first, second)
        france = self.pool.select(geography)

        # Subset exhausted: the next call resets only the Astronomy questions
        third = self.pool.select(astronomy)
        self.assertIn(third, (first, second))
        self.assertTrue(self.pool.is_used(third))
        self.assertFalse(self.pool.is_used(first if third is second else second))
        self.assertTrue(self.pool.is_used(france))

    def test_single_question_subset_repeats(self):
        filters = QuizFilters(category="Geographie")
        first = self.pool.select(filters)
        second = self.pool.select(filters)
        self.assertIs(first, second)

    def test_no_matching_questions_raises_empty_pool(self):
        with self.assertRaises(EmptyPoolError):
            self.pool.select(QuizFilters(category="NoSuchCategory"))
        with self.assertRaises(EmptyPoolError):
            self.pool.select(QuizFilters(language="de", level="easy"))

    def test_empty_pool_raises(self):
        with self.assertRaises(EmptyPoolError):
            QuestionPool([]).select(QuizFilters())

    def test_selection_is_reproducible_with_seed(self):
        pool_a = TestFixtures.create_pool(self.questions, seed=7)
        pool_b = TestFixtures.create_pool(self.questions, seed=7)
        picks_a = [pool_a.select(QuizFilters()).text for _ in range(12)]
        picks_b = [pool_b.select(QuizFilters()).text for _ in range(12)]
        self.assertEqual(picks_a, picks_b)

    def test_is_used_rejects_foreign_question(self):
        with self.assertRaises(KeyError):
            self.pool.is_used(Question("Elsewhere?", "No"))


class TestPoolQueries(unittest.TestCase):
    """Test cases for value lookups and counting."""

    def setUp(self):
        self.pool = TestFixtures.create_pool()

    def test_has_value(self):
        self.assertTrue(self.pool.has_value('category', 'all'))
        self.assertTrue(self.pool.has_value('dontcare', 'all'))
        self.assertTrue(self.pool.has_value('category', 'Astronomy'))
        self.assertTrue(self.pool.has_value('language', 'de'))
        self.assertFalse(self.pool.has_value('category', 'NonExisting'))
        self.assertFalse(self.pool.has_value('NonExistingField', 'dontcare'))

    def test_counts_by_field_skips_missing_values(self):
        counts = self.pool.counts_by_field('category')
        self.assertEqual(counts, {
            'Geography': 1,
            'Astronomy': 2,
            'Geographie': 1,
            'Patterns': 1,
        })

    def test_format_counts_sorted_by_key(self):
        pool = QuestionPool([
            Question("Q1?", "A", category="category1"),
            Question("Q2?", "A", category="category1"),
            Question("Q3?", "A", category="category2"),
            Question("Q4?", "42"),
        ])
        self.assertEqual(pool.format_counts('category'), "category1 (2), category2 (1)")

    def test_format_counts_empty(self):
        pool = QuestionPool([Question("Q?", "A")])
        self.assertEqual(pool.format_counts('level'), "")

    def test_count_matching_ignores_used_flags(self):
        filters = QuizFilters(category="Astronomy")
        self.assertEqual(self.pool.count_matching(filters), 2)
        self.pool.select(filters)
        self.assertEqual(self.pool.count_matching(filters), 2)
        self.assertEqual(self.pool.count_matching(QuizFilters(category="None")), 0)

    def test_len_and_iteration(self):
        self.assertEqual(len(self.pool), 6)
        self.assertEqual(len(list(self.pool)), 6)


if __name__ == '__main__':
    unittest.main()
