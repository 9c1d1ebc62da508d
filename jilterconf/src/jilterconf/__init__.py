"""
Module: jilterconf.__init__

What:
  Package root for the mail filter configuration library: an immutable,
  versioned snapshot of filter settings loaded from a flat properties file and
  persisted back only when it changes.

Interfaces:
  - config: Snapshot model, codec, and cached store.
  - utils: Structured logging.
  - cli: Operator commands for inspecting the configuration file.
"""

__all__ = [
    "config",
    "utils",
]
