"""Shared helpers for the jilter configuration library.

Only the structured logger lives here; it is used by the store, the codec
equality tracing and the command-line interface.
"""

from .logging import JsonLogger, get_logger

__all__ = ["JsonLogger", "get_logger"]
