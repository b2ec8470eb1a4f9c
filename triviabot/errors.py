"""
Exceptions raised by the quiz session, question pool and configuration.

Every error here is recoverable: the command router turns it into a single
chat notice and the session state stays unchanged.
"""


class QuizError(Exception):
    """Base exception for quiz errors that are reported back to the chat."""

    default_message = "Something went wrong"

    def __init__(self, message: str = None, user_message: str = None):
        super().__init__(message or self.default_message)
        self.user_message = user_message or self.default_message


class InvalidCountError(QuizError):
    """Raised when a requested question count is unparsable or not positive."""

    default_message = "Invalid number of questions"


class AlreadyRunningError(QuizError):
    """Raised when a quiz is started while another one is running."""

    default_message = "Quiz already running"


class NoActiveQuizError(QuizError):
    """Raised when next/stop is requested while no quiz is running."""

    default_message = "No quiz is running"


class NoMatchingQuestionsError(QuizError):
    """Raised when the filter combination selects no questions."""

    default_message = "Could not find any matching questions"


class EmptyPoolError(QuizError):
    """Raised when the pool (or a filtered subset of it) has no questions at all."""

    default_message = "No questions available"


class InvalidOptionError(QuizError):
    """Raised for configuration keys that cannot be set."""

    default_message = "Unknown option"


class InvalidValueError(QuizError):
    """Raised when a configuration value is rejected by validation."""

    default_message = "Invalid option/value"


class ConfigurationError(QuizError):
    """Raised when the configuration file cannot be read."""

    default_message = "Could not load configuration"
