"""
CardSwap CLI Package
Interactive REPL and command handlers for a card-swap session.
"""

from .commands import CommandHandler, CommandResult
from .ui import SessionUI

__all__ = ["CommandHandler", "CommandResult", "SessionUI"]
