"""
Maps commands addressed to the bot onto quiz and configuration operations.
"""
import logging
import re
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple

from .config_manager import ConfigManager
from .errors import QuizError
from .question_pool import QuestionPool
from .quiz_controller import QuizController

HELP_TEXT = """Usage:
  startquiz [number of questions] [category]: start a quiz
  stopquiz: stops the current quiz
  next: move to the next question
  scoreboard: show the last score board
  categories: show all available categories
  languages: show all available languages
  levels: show all available levels
  config: show the current config
  set <option> <value>: set a config value
  save: save current config to file
  load: load config from file
  exit: exit
  help: show this help text"""

UNKNOWN_COMMAND = "Unknown command, try help"


def parse_command(identity: str, text: str) -> Optional[Tuple[str, str]]:
    """
    Extract (command, parameter) from a line like ``"<identity>: set timeout 30"``.

    Returns:
        The lower-cased command and the remaining text, or None if the line
        is not addressed to the bot
    """
    if not identity:
        return None
    match = re.match(rf"^{re.escape(identity)}:\s*(\S+)\s*(.*)$", text.strip(), re.DOTALL)
    if not match:
        return None
    return match.group(1).lower(), match.group(2).strip()


class CommandRouter:
    """Dispatches chat commands and builds the reply text."""

    def __init__(
        self,
        controller: QuizController,
        config_manager: ConfigManager,
        pool: QuestionPool,
        on_exit: Optional[Callable[[], Awaitable[Any]]] = None
    ):
        self.logger = logging.getLogger(__name__)
        self.controller = controller
        self.config_manager = config_manager
        self.pool = pool
        self.on_exit = on_exit
        self._handlers: Dict[str, Callable[[str], Awaitable[Optional[str]]]] = {
            'startquiz': self.handle_start,
            'stopquiz': self.handle_stop,
            'next': self.handle_next,
            'scoreboard': self.handle_scoreboard,
            'categories': self.handle_categories,
            'languages': self.handle_languages,
            'levels': self.handle_levels,
            'config': self.handle_config,
            'set': self.handle_set,
            'save': self.handle_save,
            'load': self.handle_load,
            'help': self.handle_help,
            'exit': self.handle_exit,
        }

    async def dispatch(self, command: str, parameter: str = "") -> Optional[str]:
        """
        Run a command.

        Args:
            command: Command name, e.g. ``startquiz``
            parameter: Rest of the line after the command

        Returns:
            Reply to post, or None when the quiz itself already posted output
        """
        handler = self._handlers.get(command)
        if handler is None:
            return UNKNOWN_COMMAND

        self.logger.debug(
            f"Dispatching {command} {parameter!r}",
            extra={'event_type': 'command_dispatch', 'command': command}
        )
        try:
            return await handler(parameter)
        except QuizError as e:
            self.logger.info(
                f"Command {command} rejected: {e}",
                extra={
                    'event_type': 'command_rejected',
                    'command': command,
                    'error_type': type(e).__name__
                }
            )
            return e.user_message

    async def handle_start(self, parameter: str) -> Optional[str]:
        parts = parameter.split(maxsplit=1)
        count = parts[0] if parts else None
        category = parts[1] if len(parts) > 1 else None
        await self.controller.start_quiz(count, category)
        return None

    async def handle_stop(self, parameter: str) -> Optional[str]:
        await self.controller.stop_quiz()
        return None

    async def handle_next(self, parameter: str) -> Optional[str]:
        await self.controller.advance_manually()
        return None

    async def handle_scoreboard(self, parameter: str) -> str:
        return self.controller.format_scoreboard()

    async def handle_categories(self, parameter: str) -> str:
        return self.pool.format_counts('category') or "No categories available"

    async def handle_languages(self, parameter: str) -> str:
        return self.pool.format_counts('language') or "No languages available"

    async def handle_levels(self, parameter: str) -> str:
        return self.pool.format_counts('level') or "No levels available"

    async def handle_config(self, parameter: str) -> str:
        return self.config_manager.get_settings_summary()

    async def handle_set(self, parameter: str) -> str:
        match = re.match(r"^(\S+)\s+(.+)$", parameter)
        if not match:
            return "Invalid option/value"
        option, value = match.group(1).lower(), match.group(2).strip()
        if option not in ConfigManager.OPTIONS:
            return "Unknown option"
        return self.config_manager.set_option(option, value)

    async def handle_save(self, parameter: str) -> str:
        return self.config_manager.save()

    async def handle_load(self, parameter: str) -> str:
        warnings = self.config_manager.load(missing_ok=False)
        return "\n".join(["Configuration loaded"] + warnings)

    async def handle_help(self, parameter: str) -> str:
        return HELP_TEXT

    async def handle_exit(self, parameter: str) -> str:
        if self.on_exit is not None:
            await self.on_exit()
        return "Goodbye."
