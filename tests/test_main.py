"""
Unit tests for the command line entry point.
"""
import shutil
import tempfile
import unittest
from pathlib import Path

import main
from tests.test_fixtures import TestFixtures


class TestBuildComponents(unittest.TestCase):
    """Test cases for loading questions and settings at startup."""

    def setUp(self):
        self.temp_dir = Path(tempfile.mkdtemp())
        self.quiz_dir = self.temp_dir / "quizdata"
        self.quiz_dir.mkdir()
        self.config_file = self.temp_dir / "triviabot.json"

    def tearDown(self):
        shutil.rmtree(self.temp_dir)

    def parse(self, *extra):
        return main.parse_args([
            "--quiz-directory", str(self.quiz_dir),
            "--config", str(self.config_file),
            *extra
        ])

    def test_loading_summary_is_logged(self):
        TestFixtures.write_quiz_files(self.quiz_dir)
        (self.quiz_dir / "broken.json").write_text("{invalid", encoding='utf-8')

        with self.assertLogs('triviabot.main', 'INFO') as logs:
            pool, config_manager = main.build_components(self.parse())

        self.assertEqual(len(pool), 5)
        self.assertIn("Loaded 5 questions from 2 files", logs.output[0])
        self.assertTrue(any("broken.json" in line for line in logs.output[1:]))
        self.assertIs(config_manager.pool, pool)

    def test_empty_quiz_directory_exits(self):
        with self.assertRaises(SystemExit) as context:
            main.build_components(self.parse())
        self.assertEqual(context.exception.code, 1)

    def test_invalid_config_file_exits(self):
        TestFixtures.write_quiz_files(self.quiz_dir)
        self.config_file.write_text("{not json", encoding='utf-8')
        with self.assertRaises(SystemExit):
            main.build_components(self.parse())


if __name__ == '__main__':
    unittest.main()
