"""
Configuration manager for quiz settings and their persistence.
"""
import json
import logging
from dataclasses import asdict, fields
from pathlib import Path
from typing import Any, Dict, List, Optional

from .errors import ConfigurationError, InvalidOptionError, InvalidValueError
from .models import QuizSettings
from .question_pool import QuestionPool

DEFAULT_CONFIG_FILE = "triviabot.json"

TRUE_VALUES = ("true", "yes", "on", "1")
FALSE_VALUES = ("false", "no", "off", "0")


def parse_bool(value: Any) -> bool:
    """Parse a boolean option value as typed in chat."""
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in TRUE_VALUES:
        return True
    if text in FALSE_VALUES:
        return False
    raise InvalidValueError(
        f"Expected a boolean, got {value!r}",
        user_message=f"Invalid value: {value} (use true or false)"
    )


def parse_int(value: Any, option: str) -> int:
    if isinstance(value, bool):
        raise InvalidValueError(f"{option} must be an integer, got {value!r}")
    if isinstance(value, int):
        return value
    try:
        return int(str(value).strip())
    except ValueError:
        raise InvalidValueError(
            f"{option} must be an integer, got {value!r}",
            user_message=f"Could not set {option}: invalid number {value}"
        )


class ConfigManager:
    """Manages quiz settings, their validation and JSON persistence."""

    # Options that can be changed with the "set" command
    OPTIONS = (
        'category', 'language', 'level', 'number_of_questions',
        'show_answer', 'timeout', 'debug'
    )

    # Validation limits
    MIN_TIMEOUT = 5
    MAX_TIMEOUT = 300  # 5 minutes
    MIN_QUESTION_COUNT = 1
    MAX_QUESTION_COUNT = 100

    def __init__(self, pool: Optional[QuestionPool] = None, config_file: str = DEFAULT_CONFIG_FILE):
        """
        Initialize ConfigManager with default settings.

        Args:
            pool: Question pool used to validate filter values
            config_file: Path of the JSON file used by save/load
        """
        self.logger = logging.getLogger(__name__)
        self.pool = pool
        self.config_file = Path(config_file)
        self._settings = QuizSettings()

    @property
    def settings(self) -> QuizSettings:
        return self._settings

    def get_quiz_settings(self) -> QuizSettings:
        """
        Get a copy of the current quiz settings.

        Returns:
            QuizSettings object with current configuration
        """
        return QuizSettings(**asdict(self._settings))

    def set_option(self, option: str, value: Any) -> str:
        """
        Set a configuration option from chat input.

        Args:
            option: One of OPTIONS
            value: Raw value, usually a string typed in chat

        Returns:
            User-facing confirmation message

        Raises:
            InvalidOptionError: If the option cannot be set
            InvalidValueError: If the value is rejected; the previous value is kept
        """
        if option in ('category', 'language', 'level'):
            return self.set_filter(option, str(value))
        if option == 'number_of_questions':
            return self.set_number_of_questions(parse_int(value, option))
        if option == 'timeout':
            return self.set_timeout(parse_int(value, option))
        if option == 'show_answer':
            return self.set_show_answer(parse_bool(value))
        if option == 'debug':
            return self.set_debug(parse_bool(value))
        raise InvalidOptionError(f"Unknown option: {option}", user_message="Unknown option")

    def set_filter(self, field_name: str, value: str) -> str:
        """
        Set a category/language/level filter.

        A concrete value is only accepted when at least one loaded question
        carries it.
        """
        if self.pool is not None and not self.pool.has_value(field_name, value):
            self.logger.info(
                f"Rejected {field_name}={value!r}: no matching questions",
                extra={'event_type': 'config_rejected', 'option': field_name}
            )
            raise InvalidValueError(
                f"No question has {field_name} {value!r}",
                user_message="Could not find any matching questions"
            )
        setattr(self._settings, field_name, value)
        self.logger.info(f"{field_name} set to {value}")
        return f"{field_name} set to {value}"

    def set_number_of_questions(self, count: int) -> str:
        if not self.MIN_QUESTION_COUNT <= count <= self.MAX_QUESTION_COUNT:
            raise InvalidValueError(
                f"number_of_questions out of range: {count}",
                user_message=(
                    f"Could not set number_of_questions: must be between "
                    f"{self.MIN_QUESTION_COUNT} and {self.MAX_QUESTION_COUNT}"
                )
            )
        self._settings.number_of_questions = count
        self.logger.info(f"number_of_questions set to {count}")
        return f"number_of_questions set to {count}"

    def set_timeout(self, timeout: int) -> str:
        if not self.MIN_TIMEOUT <= timeout <= self.MAX_TIMEOUT:
            raise InvalidValueError(
                f"timeout out of range: {timeout}",
                user_message=(
                    f"Could not set timeout: must be between "
                    f"{self.MIN_TIMEOUT} and {self.MAX_TIMEOUT} seconds"
                )
            )
        self._settings.timeout = timeout
        self.logger.info(f"timeout set to {timeout} seconds")
        return f"timeout set to {timeout}"

    def set_show_answer(self, show_answer: bool) -> str:
        self._settings.show_answer = show_answer
        return f"show_answer set to {show_answer}"

    def set_debug(self, debug: bool) -> str:
        """Toggle debug output, including DEBUG logging for the bot and discord.py."""
        self._settings.debug = debug
        logging.getLogger('triviabot').setLevel(logging.DEBUG if debug else logging.INFO)
        logging.getLogger('discord').setLevel(logging.DEBUG if debug else logging.WARNING)
        return f"debug set to {debug}"

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self._settings)

    def get_settings_summary(self) -> str:
        """
        Get a formatted summary of current settings.

        Returns:
            Multi-line string, one option per line in alphabetical order
        """
        values = self.to_dict()
        lines = ["Configuration:"]
        lines.extend(f"  {name}: {values[name]}" for name in sorted(values))
        return "\n".join(lines)

    def save(self, path: Optional[str] = None) -> str:
        """
        Write the current settings to a JSON file.

        Raises:
            ConfigurationError: If the file cannot be written
        """
        target = Path(path) if path else self.config_file
        try:
            with open(target, 'w', encoding='utf-8') as f:
                json.dump(self.to_dict(), f, indent=2, ensure_ascii=False)
        except OSError as e:
            self.logger.error(f"Could not save config to {target}: {e}")
            raise ConfigurationError(
                f"Could not save config to {target}: {e}",
                user_message=f"Could not save config to {target}"
            )
        self.logger.info(f"Saved configuration to {target}")
        return f"Configuration saved to {target}"

    def load(self, path: Optional[str] = None, missing_ok: bool = True) -> List[str]:
        """
        Load settings from a JSON file.

        Unknown keys and rejected values are skipped, keeping the current
        value. A missing file leaves every setting unchanged.

        Args:
            path: File to read, the configured config file by default
            missing_ok: Treat a missing file as a warning instead of an error

        Returns:
            Warnings for skipped keys

        Raises:
            ConfigurationError: If the file is not valid JSON, or is missing
                and missing_ok is False
        """
        source = Path(path) if path else self.config_file
        try:
            with open(source, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except FileNotFoundError:
            message = f"Could not load config from {source}: file not found"
            self.logger.warning(message)
            if not missing_ok:
                raise ConfigurationError(message, user_message=message)
            return [message]
        except (json.JSONDecodeError, OSError) as e:
            self.logger.error(f"Could not load config from {source}: {e}")
            raise ConfigurationError(
                f"Could not load config from {source}: {e}",
                user_message=f"Could not load config from {source}"
            )

        if not isinstance(data, dict):
            raise ConfigurationError(
                f"Configuration in {source} must be a JSON object",
                user_message=f"Could not load config from {source}"
            )

        known = {f.name for f in fields(QuizSettings)}
        warnings = []
        for key, value in data.items():
            if key not in known:
                warnings.append(f"Ignoring unknown option {key}")
                continue
            try:
                self.set_option(key, value)
            except (InvalidOptionError, InvalidValueError) as e:
                warnings.append(f"Ignoring {key}: {e.user_message}")

        for warning in warnings:
            self.logger.warning(warning)
        self.logger.info(f"Loaded configuration from {source}")
        return warnings
