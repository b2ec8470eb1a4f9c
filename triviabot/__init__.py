"""
Chat trivia bot: timed quizzes played in a Discord channel.
"""

__version__ = "1.0.0"
