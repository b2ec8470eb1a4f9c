#!/usr/bin/env python3
"""
Trivia Bot - Main Entry Point

This script runs the trivia bot in a single Discord channel.

Usage:
    python main.py --channel 123456789012345678 [--token TOKEN] [--debug]

Configuration:
    1. Put quiz files (*.json or *.utf8) into ./quizdata/
    2. Set DISCORD_BOT_TOKEN or pass --token
    3. Quiz settings are read from triviabot.json if it exists and can be
       changed in chat with "<bot name>: set <option> <value>"

Environment Variables:
    DISCORD_BOT_TOKEN: Your Discord bot token (overridden by --token)
"""

import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path

import discord

from triviabot.bot import run_bot
from triviabot.config_manager import DEFAULT_CONFIG_FILE, ConfigManager
from triviabot.data_manager import DataManager
from triviabot.errors import ConfigurationError, EmptyPoolError

logger = logging.getLogger("triviabot.main")


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Play trivia quizzes in a Discord channel")
    parser.add_argument('-t', '--token', help="Discord bot token (default: $DISCORD_BOT_TOKEN)")
    parser.add_argument('-c', '--channel', type=int, help="ID of the channel to play in")
    parser.add_argument('--config', default=DEFAULT_CONFIG_FILE, help="Quiz settings file")
    parser.add_argument('--quiz-directory', default="./quizdata/", help="Directory with quiz files")
    parser.add_argument('--log-directory', default="./logs/", help="Directory for bot.log")
    parser.add_argument('-d', '--debug', action='store_true', help="Enable debug logging")
    return parser.parse_args(argv)


def get_bot_token(args):
    """Get bot token from the command line or environment variable."""
    token = args.token or os.getenv('DISCORD_BOT_TOKEN')
    if not token:
        print("❌ Error: Discord bot token not configured!")
        print("Either:")
        print("  1. Set DISCORD_BOT_TOKEN environment variable")
        print("  2. Pass --token on the command line")
        sys.exit(1)
    return token


def setup_logging(log_directory, debug=False):
    """Set up logging to the console and to bot.log."""
    log_directory = Path(log_directory)
    log_directory.mkdir(parents=True, exist_ok=True)

    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler(),
            logging.FileHandler(log_directory / "bot.log", encoding='utf-8')
        ]
    )

    # Reduce discord.py noise unless debugging
    logging.getLogger('discord').setLevel(logging.DEBUG if debug else logging.WARNING)
    logging.getLogger('discord.http').setLevel(logging.DEBUG if debug else logging.WARNING)


def build_components(args):
    """Load the questions and the quiz settings; exits on fatal errors."""
    data_manager = DataManager(args.quiz_directory)
    try:
        pool = data_manager.build_pool()
    except EmptyPoolError as e:
        print(f"❌ Error: {e}")
        for error in data_manager.get_load_errors():
            print(f"  - {error}")
        sys.exit(1)

    summary = data_manager.get_loading_summary()
    logger.info(
        f"Loaded {summary['total_questions']} questions from {len(summary['loaded_files'])} files "
        f"in {summary['quiz_directory']}",
        extra={'event_type': 'startup_questions', 'loaded_files': summary['loaded_files']}
    )
    for error in summary['errors']:
        logger.warning(f"Skipped quiz file: {error}")

    config_manager = ConfigManager(pool, args.config)
    try:
        config_manager.load()
    except ConfigurationError as e:
        print(f"❌ Error: {e}")
        sys.exit(1)

    if args.debug:
        config_manager.set_debug(True)

    return pool, config_manager


def main(argv=None):
    args = parse_args(argv)
    setup_logging(args.log_directory, args.debug)
    token = get_bot_token(args)
    pool, config_manager = build_components(args)

    try:
        print(f"🤖 Starting trivia bot with {len(pool)} questions...")
        asyncio.run(run_bot(token, pool, config_manager, args.channel))
    except KeyboardInterrupt:
        print("\n👋 Bot stopped by user")
    except discord.DiscordException as e:
        print(f"❌ Failed to start bot: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
