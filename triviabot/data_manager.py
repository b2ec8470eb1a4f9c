"""
Data manager for quiz file loading and question validation.

Two file formats are read from the quiz directory:

* ``*.json`` files holding ``{"quiz": [{"question": ..., "answer": ...}]}``
* ``*.utf8`` files holding blank-line separated blocks of ``Key: value``
  lines (``Question``, ``Answer``, ``Regexp``, ``Category``, ``Level``),
  with ``#`` starting a comment line.

The language of a question defaults to the second-to-last dotted part of
its file name, so ``general.en.json`` yields ``en``.
"""
import json
import logging
import os
from pathlib import Path
from typing import Dict, List, Optional

from .errors import EmptyPoolError
from .models import Question
from .question_pool import QuestionPool

# Maps keys of the text format to Question fields
TEXT_FORMAT_KEYS = {
    'question': 'text',
    'answer': 'answer',
    'regexp': 'answer_pattern',
    'category': 'category',
    'level': 'level',
    'language': 'language',
}

MAX_FILE_SIZE = 10 * 1024 * 1024  # 10MB


class DataManager:
    """Manages loading and validation of quiz files."""

    def __init__(self, quiz_directory: str = "./quizdata/"):
        """
        Initialize DataManager with quiz directory path.

        Args:
            quiz_directory: Path to directory containing quiz files
        """
        self.quiz_directory = Path(quiz_directory)
        self.questions: List[Question] = []
        self.loaded_files: Dict[str, int] = {}
        self.logger = logging.getLogger(__name__)
        self.load_errors: List[str] = []  # Track loading errors for user feedback

    def load_quiz_files(self) -> List[Question]:
        """
        Load all quiz files from the quiz directory.

        Files that fail to load are skipped and recorded in ``load_errors``.

        Returns:
            All loaded questions, in file name order then file order
        """
        self.questions = []
        self.loaded_files.clear()
        self.load_errors.clear()

        if not self.quiz_directory.is_dir():
            error = f"Quiz directory not found: {self.quiz_directory}"
            self.logger.error(error)
            self.load_errors.append(error)
            return self.questions

        scan_result = self._scan_quiz_files()
        if not scan_result['success']:
            self.load_errors.append(scan_result['error'])
            return self.questions

        quiz_files = scan_result['files']
        if not quiz_files:
            self.logger.warning(f"No quiz files found in {self.quiz_directory}")
            self.load_errors.append(f"No quiz files found in {self.quiz_directory}")
            return self.questions

        for quiz_file in quiz_files:
            load_result = self._load_quiz_file_safely(quiz_file)
            if not load_result['success']:
                self.load_errors.append(f"{quiz_file.name}: {load_result['error']}")

        self.logger.info(
            f"Loaded {len(self.questions)} questions from {len(self.loaded_files)} files",
            extra={
                'event_type': 'questions_loaded',
                'question_count': len(self.questions),
                'file_count': len(self.loaded_files)
            }
        )
        if self.load_errors:
            self.logger.warning(f"Encountered {len(self.load_errors)} loading errors")

        return self.questions

    def build_pool(self) -> QuestionPool:
        """
        Load every quiz file and build the question pool.

        Raises:
            EmptyPoolError: If no question could be loaded at all
        """
        questions = self.load_quiz_files()
        if not questions:
            raise EmptyPoolError(
                f"No questions could be loaded from {self.quiz_directory}",
                user_message="No questions available"
            )
        return QuestionPool(questions)

    def _scan_quiz_files(self) -> Dict[str, any]:
        """
        Scan quiz directory for quiz files with error handling.

        Returns:
            Dictionary with success status, files list, and error message if applicable
        """
        try:
            files = sorted(
                list(self.quiz_directory.glob("*.json")) +
                list(self.quiz_directory.glob("*.utf8"))
            )
            return {
                'success': True,
                'files': files
            }
        except OSError as e:
            return {
                'success': False,
                'error': f"System error scanning {self.quiz_directory}: {e}",
                'files': []
            }

    def _load_quiz_file_safely(self, quiz_file: Path) -> Dict[str, any]:
        """
        Load a single quiz file with error handling.

        Args:
            quiz_file: Path to the quiz file to load

        Returns:
            Dictionary with success status and error message if applicable
        """
        try:
            if not os.access(quiz_file, os.R_OK):
                return {
                    'success': False,
                    'error': "Permission denied: Cannot read file"
                }

            file_size = quiz_file.stat().st_size
            if file_size > MAX_FILE_SIZE:
                return {
                    'success': False,
                    'error': f"File too large ({file_size / 1024 / 1024:.1f}MB). Maximum size is {MAX_FILE_SIZE / 1024 / 1024}MB"
                }

            language = self.language_from_filename(quiz_file)
            if quiz_file.suffix == ".json":
                quiz_data = self._load_json_file(quiz_file)
                if quiz_data is None:
                    return {
                        'success': False,
                        'error': "Invalid JSON structure or validation failed"
                    }
                questions = self._parse_json_questions(quiz_data, language)
            else:
                questions = self._parse_text_questions(
                    quiz_file.read_text(encoding='utf-8'), language
                )

            if not questions:
                return {
                    'success': False,
                    'error': "No valid questions found in file"
                }

            self.questions.extend(questions)
            self.loaded_files[quiz_file.name] = len(questions)
            self.logger.info(f"Loaded '{quiz_file.name}' with {len(questions)} questions")
            return {'success': True}

        except UnicodeDecodeError as e:
            return {
                'success': False,
                'error': f"File is not valid UTF-8: {e}"
            }
        except OSError as e:
            return {
                'success': False,
                'error': f"System error: {e}"
            }

    def _load_json_file(self, file_path: Path) -> Optional[dict]:
        """
        Load and validate a single JSON file.

        Returns:
            Parsed JSON data or None if loading failed
        """
        try:
            with open(file_path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            self.logger.error(f"Invalid JSON in {file_path}: {e}")
            return None

        if not self.validate_quiz_structure(data):
            self.logger.error(f"Invalid quiz structure in {file_path}")
            return None
        return data

    def validate_quiz_structure(self, data: dict) -> bool:
        """
        Validate that JSON data has the correct quiz structure.

        Expected structure:
        {
            "quiz": [
                {
                    "question": str,
                    "answer": str,
                    "regexp": str,     # Optional
                    "category": str,   # Optional
                    "language": str,   # Optional
                    "level": str       # Optional
                }
            ]
        }

        Args:
            data: Parsed JSON data to validate

        Returns:
            True if structure is valid, False otherwise
        """
        if not isinstance(data, dict):
            self.logger.error("Quiz data must be a JSON object")
            return False

        if "quiz" not in data:
            self.logger.error("Quiz data must contain a 'quiz' key")
            return False

        quiz_array = data["quiz"]
        if not isinstance(quiz_array, list):
            self.logger.error("'quiz' value must be an array")
            return False

        if not quiz_array:
            self.logger.error("Quiz array cannot be empty")
            return False

        for i, question_data in enumerate(quiz_array):
            if not isinstance(question_data, dict):
                self.logger.error(f"Question {i} must be an object")
                return False

            for required in ("question", "answer"):
                if required not in question_data:
                    self.logger.error(f"Question {i} missing '{required}' field")
                    return False
                if not isinstance(question_data[required], str):
                    self.logger.error(f"Question {i} '{required}' field must be a string")
                    return False

            for optional in ("regexp", "category", "language", "level"):
                value = question_data.get(optional)
                if value is not None and not isinstance(value, str):
                    self.logger.error(f"Question {i} '{optional}' field must be a string")
                    return False

        return True

    def _parse_json_questions(self, quiz_data: dict, language: Optional[str]) -> List[Question]:
        """
        Parse validated quiz data into Question objects.

        Args:
            quiz_data: Validated quiz data dictionary
            language: Language to use for records that carry none

        Returns:
            List of Question objects
        """
        questions = []
        for question_data in quiz_data["quiz"]:
            question = self._build_question({
                'text': question_data["question"],
                'answer': question_data["answer"],
                'answer_pattern': question_data.get("regexp"),
                'category': question_data.get("category"),
                'language': question_data.get("language") or language,
                'level': question_data.get("level"),
            })
            if question:
                questions.append(question)
        return questions

    def _parse_text_questions(self, content: str, language: Optional[str]) -> List[Question]:
        """Parse the blank-line separated ``Key: value`` block format."""
        questions = []
        record: Dict[str, str] = {}

        for line in content.splitlines() + [""]:
            if line.startswith("#"):
                continue
            if not line.strip():
                if record:
                    record.setdefault('language', language)
                    question = self._build_question(record)
                    if question:
                        questions.append(question)
                    record = {}
                continue

            key, _, value = line.partition(": ")
            field_name = TEXT_FORMAT_KEYS.get(key.strip().lower())
            if field_name:
                record[field_name] = value.strip()

        return questions

    def _build_question(self, record: Dict[str, Optional[str]]) -> Optional[Question]:
        if not record.get('text') or not record.get('answer'):
            self.logger.warning(
                f"Skipping incomplete question record: {record}",
                extra={'event_type': 'question_skipped'}
            )
            return None
        try:
            return Question(
                text=record['text'],
                answer=record['answer'],
                answer_pattern=record.get('answer_pattern') or None,
                category=record.get('category') or None,
                language=record.get('language') or None,
                level=record.get('level') or None,
            )
        except ValueError as e:
            self.logger.warning(
                f"Skipping invalid question record {record}: {e}",
                extra={'event_type': 'question_skipped'}
            )
            return None

    @staticmethod
    def language_from_filename(path: Path) -> Optional[str]:
        """Return the language tag embedded in a name like ``general.en.json``."""
        parts = path.name.split(".")
        if len(parts) >= 3:
            return parts[-2]
        return None

    def get_load_errors(self) -> List[str]:
        """
        Get list of errors encountered during the last load operation.

        Returns:
            List of error messages
        """
        return self.load_errors.copy()

    def has_load_errors(self) -> bool:
        return len(self.load_errors) > 0

    def get_loading_summary(self) -> Dict[str, any]:
        """
        Get a summary of the last loading operation.

        Returns:
            Dictionary with loading statistics and status
        """
        return {
            'total_questions': len(self.questions),
            'loaded_files': dict(self.loaded_files),
            'has_errors': self.has_load_errors(),
            'error_count': len(self.load_errors),
            'errors': self.get_load_errors(),
            'quiz_directory': str(self.quiz_directory),
        }
