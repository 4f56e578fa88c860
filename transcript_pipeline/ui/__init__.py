"""Terminal presentation helpers."""

from .console import ConsoleManager

__all__ = ["ConsoleManager"]
