import asyncio
import logging
from typing import Optional, Tuple

import discord

from .command_router import CommandRouter, parse_command
from .config_manager import ConfigManager
from .question_pool import QuestionPool
from .quiz_controller import QuizController

logger = logging.getLogger(__name__)

# Discord rejects messages longer than this
MAX_MESSAGE_LENGTH = 2000


def split_message(text: str, limit: int = MAX_MESSAGE_LENGTH):
    """Split text into chunks Discord accepts, preferring line boundaries."""
    chunks = []
    current = ""
    for line in text.split("\n"):
        while len(line) > limit:
            if current:
                chunks.append(current)
                current = ""
            chunks.append(line[:limit])
            line = line[limit:]
        candidate = f"{current}\n{line}" if current else line
        if len(candidate) > limit:
            chunks.append(current)
            current = line
        else:
            current = candidate
    if current:
        chunks.append(current)
    return chunks


class TriviaBot(discord.Client):
    """Discord client that plays the trivia quiz in a single channel"""

    def __init__(self, pool: QuestionPool, config_manager: ConfigManager, channel_id: Optional[int] = None):
        # Reading answers needs the message content intent, enable it in the Discord Developer Portal
        intents = discord.Intents.default()
        intents.message_content = True
        super().__init__(intents=intents)

        self.pool = pool
        self.config_manager = config_manager
        self.channel_id = channel_id

        self.outbox: "asyncio.Queue[Tuple[Optional[discord.abc.Messageable], str]]" = asyncio.Queue()
        self._channel: Optional[discord.abc.Messageable] = None
        self._sender_task: Optional[asyncio.Task] = None
        self._shutdown_task: Optional[asyncio.Task] = None

        self.quiz_controller = QuizController(pool, config_manager, self.post)
        self.command_router = CommandRouter(
            self.quiz_controller, config_manager, pool, on_exit=self.request_shutdown
        )

    @property
    def identity(self) -> str:
        return self.quiz_controller.identity

    async def setup_hook(self):
        """Called when the bot is starting up"""
        self._sender_task = asyncio.create_task(self._drain_outbox(), name="outbox-sender")
        logger.info(f"Bot setup completed with {len(self.pool)} questions")

    async def on_ready(self):
        """Called when the bot has successfully connected to Discord"""
        self.quiz_controller.identity = self.user.display_name
        logger.info(f"Bot is ready! Logged in as {self.user}")

        if self.channel_id is not None:
            channel = self.get_channel(self.channel_id)
            if channel is None:
                try:
                    channel = await self.fetch_channel(self.channel_id)
                except discord.HTTPException as e:
                    logger.error(f"Could not open channel {self.channel_id}: {e}")
                    return
            self._channel = channel
            guild = getattr(channel, 'guild', None)
            if guild is not None and guild.me is not None:
                self.quiz_controller.identity = guild.me.display_name
            logger.info(f"Playing in channel {channel}")

    async def on_error(self, event, *args, **kwargs):
        """Handle general bot errors"""
        logger.error(f"An error occurred in event {event}", exc_info=True)

    async def on_message(self, message: discord.Message):
        if self.user is not None and message.author.id == self.user.id:
            return
        if self.channel_id is not None and message.channel.id != self.channel_id:
            return
        # Without a configured channel the quiz stays in the first channel that spoke
        if self._channel is None:
            self._channel = message.channel
            logger.info(f"Playing in channel {message.channel}")
        elif message.channel.id != self._channel.id:
            return

        participant = getattr(message.author, 'display_name', str(message.author))
        await self.handle_chat_line(participant, self._normalize_mention(message.content))

    async def handle_chat_line(self, participant: str, text: str, is_history: bool = False) -> None:
        """
        Process one chat line: check it as an answer, then run it as a command
        if it is addressed to the bot.

        Lines replayed from the room history are ignored.
        """
        if is_history:
            return

        try:
            await self.quiz_controller.submit_answer(participant, text)

            parsed = parse_command(self.identity, text)
            if parsed is None:
                return
            command, parameter = parsed
            logger.info(
                f"{participant} issued {command}",
                extra={'event_type': 'command_received', 'command': command, 'participant': participant}
            )
            reply = await self.command_router.dispatch(command, parameter)
            if reply:
                self.post(reply)
        except Exception:
            logger.exception(f"Error handling message from {participant}")

    def post(self, text: str) -> None:
        """Queue a line for the quiz channel without waiting for it to be sent."""
        self.outbox.put_nowait((self._channel, text))

    async def _drain_outbox(self) -> None:
        await self.wait_until_ready()
        while True:
            channel, text = await self.outbox.get()
            try:
                channel = channel or self._channel
                if channel is None:
                    logger.warning(f"Dropping message, no channel to post to: {text!r}")
                    continue
                for chunk in split_message(text):
                    await self.send_with_retry(channel, chunk)
            finally:
                self.outbox.task_done()

    async def send_with_retry(self, channel: discord.abc.Messageable, text: str, max_retries: int = 3) -> bool:
        """Send a message with retry logic for Discord API failures"""
        for attempt in range(max_retries):
            try:
                await channel.send(text)
                return True
            except discord.Forbidden as e:
                logger.error(f"Permission denied sending to {channel}: {e}")
                return False
            except discord.HTTPException as e:
                if attempt == max_retries - 1:
                    logger.error(f"All retry attempts failed for message: {e}")
                    return False

                # Wait before retry with exponential backoff
                wait_time = 2 ** attempt
                logger.warning(f"Discord API error (attempt {attempt + 1}), retrying in {wait_time}s: {e}")
                await asyncio.sleep(wait_time)
        return False

    async def request_shutdown(self) -> None:
        """Close the client once every queued message has been sent."""
        async def shutdown():
            await self.outbox.join()
            await self.close()

        logger.info("Shutdown requested")
        self._shutdown_task = asyncio.create_task(shutdown(), name="shutdown")

    async def close(self):
        self.quiz_controller.quiz_engine.cancel_timer()
        if self._sender_task is not None:
            self._sender_task.cancel()
        await super().close()

    def _normalize_mention(self, text: str) -> str:
        """Rewrite a leading @mention of the bot into the ``"<identity>: "`` form."""
        if self.user is None:
            return text
        for mention in (f"<@{self.user.id}>", f"<@!{self.user.id}>"):
            if text.startswith(mention):
                return f"{self.identity}: {text[len(mention):].lstrip(' :')}"
        return text


async def run_bot(token: str, pool: QuestionPool, config_manager: ConfigManager, channel_id: Optional[int] = None):
    """Run the bot with proper error handling"""
    bot = TriviaBot(pool, config_manager, channel_id)

    try:
        logger.info("Starting trivia bot...")
        await bot.start(token)
    except discord.LoginFailure:
        logger.error("Invalid bot token provided")
        raise
    except discord.PrivilegedIntentsRequired:
        logger.error("Enable the message content intent for this bot in the Discord Developer Portal")
        raise
    finally:
        if not bot.is_closed():
            await bot.close()
