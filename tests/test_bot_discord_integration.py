"""
Unit tests for the Discord transport with mocked Discord API objects.
"""
import asyncio
import unittest
from unittest.mock import AsyncMock, Mock, PropertyMock, patch

import discord

from triviabot.bot import MAX_MESSAGE_LENGTH, TriviaBot, split_message
from triviabot.command_router import HELP_TEXT
from tests.test_fixtures import BOT_NAME, TestFixtures, async_test

CHANNEL_ID = 1234


def make_message(content, author_id=1, author_name="alice", channel_id=CHANNEL_ID):
    message = Mock()
    message.content = content
    message.author.id = author_id
    message.author.display_name = author_name
    message.channel.id = channel_id
    return message


class TestSplitMessage(unittest.TestCase):

    def test_short_message_unchanged(self):
        self.assertEqual(split_message("hello\nworld"), ["hello\nworld"])

    def test_splits_on_line_boundaries(self):
        lines = [f"{i}: " + "x" * 90 for i in range(40)]
        chunks = split_message("\n".join(lines))
        self.assertGreater(len(chunks), 1)
        self.assertTrue(all(len(chunk) <= MAX_MESSAGE_LENGTH for chunk in chunks))
        self.assertEqual("\n".join(chunks), "\n".join(lines))

    def test_splits_overlong_line(self):
        chunks = split_message("y" * 4500)
        self.assertEqual([len(chunk) for chunk in chunks], [2000, 2000, 500])


class TestTriviaBot(unittest.TestCase):
    """Test the bot's message handling with mocked Discord objects."""

    async def create_bot(self, channel_id=CHANNEL_ID):
        pool = TestFixtures.create_pool()
        config_manager = TestFixtures.create_config_manager(pool, timeout=30)
        bot = TriviaBot(pool, config_manager, channel_id)
        bot.quiz_controller.identity = BOT_NAME
        return bot

    def drain(self, bot):
        lines = []
        while not bot.outbox.empty():
            lines.append(bot.outbox.get_nowait()[1])
            bot.outbox.task_done()
        return lines

    @async_test
    async def test_command_reply_is_queued(self):
        bot = await self.create_bot()

        await bot.handle_chat_line("alice", f"{BOT_NAME}: help")

        self.assertEqual(self.drain(bot), [HELP_TEXT])

    @async_test
    async def test_history_lines_are_ignored(self):
        bot = await self.create_bot()
        bot.quiz_controller.submit_answer = AsyncMock()

        await bot.handle_chat_line("alice", f"{BOT_NAME}: help", is_history=True)

        bot.quiz_controller.submit_answer.assert_not_awaited()
        self.assertTrue(bot.outbox.empty())

    @async_test
    async def test_quiz_played_through_chat_lines(self):
        bot = await self.create_bot()

        await bot.handle_chat_line("alice", f"{BOT_NAME}: startquiz 1")
        question = bot.quiz_controller.current_question
        await bot.handle_chat_line("bob", "no idea")
        await bot.handle_chat_line("alice", question.display_answer)

        lines = self.drain(bot)
        self.assertTrue(lines[0].endswith(question.text))
        self.assertEqual(lines[1], "Correct answer alice!")
        self.assertTrue(lines[2].endswith("alice: 1"))
        self.assertFalse(bot.quiz_controller.is_running)

    @async_test
    async def test_unexpected_errors_are_logged(self):
        bot = await self.create_bot()
        bot.command_router.dispatch = AsyncMock(side_effect=RuntimeError("boom"))

        with self.assertLogs('triviabot.bot', 'ERROR'):
            await bot.handle_chat_line("alice", f"{BOT_NAME}: help")

        self.assertTrue(bot.outbox.empty())

    @async_test
    async def test_on_message_filters_and_normalizes(self):
        bot = await self.create_bot()
        bot.handle_chat_line = AsyncMock()
        bot_user = Mock(id=99)

        with patch.object(TriviaBot, 'user', new_callable=PropertyMock, return_value=bot_user):
            await bot.on_message(make_message("my own line", author_id=99))
            await bot.on_message(make_message("elsewhere", channel_id=5678))
            bot.handle_chat_line.assert_not_awaited()

            await bot.on_message(make_message("<@99> startquiz 3"))
            bot.handle_chat_line.assert_awaited_once_with("alice", f"{BOT_NAME}: startquiz 3")

            await bot.on_message(make_message("<@!99>: help", author_name="bob"))
            bot.handle_chat_line.assert_awaited_with("bob", f"{BOT_NAME}: help")

    @async_test
    async def test_first_channel_is_kept_without_configured_channel(self):
        bot = await self.create_bot(channel_id=None)
        first = make_message(f"{BOT_NAME}: help", channel_id=111)
        foreign = make_message(f"{BOT_NAME}: startquiz 2", author_name="bob", channel_id=222)

        with patch.object(TriviaBot, 'user', new_callable=PropertyMock, return_value=Mock(id=99)):
            await bot.on_message(first)
            await bot.on_message(foreign)

        self.assertIs(bot._channel, first.channel)
        self.assertFalse(bot.quiz_controller.is_running)
        queued = []
        while not bot.outbox.empty():
            queued.append(bot.outbox.get_nowait())
            bot.outbox.task_done()
        self.assertEqual(queued, [(first.channel, HELP_TEXT)])

    @async_test
    async def test_send_with_retry_success(self):
        bot = await self.create_bot()
        channel = Mock()
        channel.send = AsyncMock()

        self.assertTrue(await bot.send_with_retry(channel, "hello"))
        channel.send.assert_awaited_once_with("hello")

    @async_test
    async def test_send_with_retry_forbidden(self):
        bot = await self.create_bot()
        channel = Mock()
        channel.send = AsyncMock(side_effect=discord.Forbidden(Mock(status=403, reason="Forbidden"), "no"))

        with self.assertLogs('triviabot.bot', 'ERROR'):
            self.assertFalse(await bot.send_with_retry(channel, "hello"))
        channel.send.assert_awaited_once()

    @async_test
    async def test_send_with_retry_backs_off(self):
        bot = await self.create_bot()
        channel = Mock()
        error = discord.HTTPException(Mock(status=500, reason="Server Error"), "oops")
        channel.send = AsyncMock(side_effect=[error, error, None])

        with patch('triviabot.bot.asyncio.sleep', new_callable=AsyncMock) as sleep:
            self.assertTrue(await bot.send_with_retry(channel, "hello"))

        self.assertEqual(channel.send.await_count, 3)
        self.assertEqual([c.args[0] for c in sleep.await_args_list], [1, 2])

    @async_test
    async def test_outbox_is_drained_in_order(self):
        bot = await self.create_bot()
        bot.wait_until_ready = AsyncMock()
        channel = Mock()
        channel.send = AsyncMock()
        bot._channel = channel

        bot.post("first")
        bot.post("second")
        sender = asyncio.create_task(bot._drain_outbox())
        await asyncio.wait_for(bot.outbox.join(), timeout=1)
        sender.cancel()

        self.assertEqual([c.args[0] for c in channel.send.await_args_list], ["first", "second"])

    @async_test
    async def test_exit_command_closes_client(self):
        bot = await self.create_bot()
        bot.close = AsyncMock()

        await bot.handle_chat_line("alice", f"{BOT_NAME}: exit")
        self.assertEqual(self.drain(bot), ["Goodbye."])
        await asyncio.wait_for(bot._shutdown_task, timeout=1)

        bot.close.assert_awaited_once()


if __name__ == '__main__':
    unittest.main()
