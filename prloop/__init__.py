"""prloop - PR review feedback engine.

Turns a pull request's review state into per-location feedback for an AI
coding agent and decides when replying would start a bot-to-bot loop.
"""

__version__ = "0.1.0"
__author__ = "trobanga"
