"""Structured JSON logging for the jilter configuration library.

What:
  Offer a small facade that emits single-line JSON log entries with a fixed
  field layout and masks address lists before they reach shared log sinks.

Why:
  The configuration store runs inside long-lived mail filter processes whose
  logs are grepped and shipped by external tooling. A predictable layout keeps
  parsing trivial, and masking keeps customer mailbox names out of those logs
  when a reload or save is traced.

How:
  :class:`JsonLogger` holds a target stream, a component label and a minimum
  severity. Entries below the threshold are dropped; the rest are merged with
  a redacted copy of the keyword context and serialised with :mod:`json`.

Interfaces:
  :class:`JsonLogger`, :func:`get_logger`.

Invariants & Safety:
  - Every entry carries ``ts``, ``lvl``, ``msg`` and ``component``.
  - Keys listed in ``SENSITIVE_KEYS`` are replaced with ``[redacted]``, also
    inside nested dictionaries.
  - The stream is flushed after each entry.
"""
from __future__ import annotations

import json
import os
import sys
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional


REDACTED = "[redacted]"
SENSITIVE_KEYS = frozenset({"addresses", "recipients", "email_summary_to", "email_full_to"})
LEVELS = {"DEBUG": 10, "INFO": 20, "WARN": 30, "ERROR": 40}

_LEVEL_ENV = "JILTERCONF_LOG_LEVEL"


def _default_level() -> str:
    value = os.environ.get(_LEVEL_ENV, "INFO").upper()
    if value == "WARNING":
        value = "WARN"
    return value if value in LEVELS else "INFO"


@dataclass
class JsonLogger:
    """Structured JSON logger with a severity threshold and redaction.

    What:
      Emits one JSON object per line containing a timestamp, severity,
      component tag and optional structured context.

    Why:
      A single implementation of the schema and redaction rules keeps the
      store, codec and CLI consistent and makes log assertions in tests
      straightforward.

    How:
      :meth:`log` builds the canonical payload and writes it; :meth:`debug`,
      :meth:`info`, :meth:`warning` and :meth:`error` forward keyword context
      as ``extra``.
    """

    stream: Any = field(default_factory=lambda: sys.stderr)
    component: str = "jilterconf"
    level: str = field(default_factory=_default_level)

    def enabled_for(self, level: str) -> bool:
        """Return ``True`` when entries at ``level`` would be written."""

        return LEVELS.get(level.upper(), 0) >= LEVELS.get(self.level.upper(), 0)

    def log(self, level: str, message: str, *, extra: Optional[Dict[str, Any]] = None) -> None:
        """Emit a structured JSON log entry.

        Args:
          level: Severity name (``"debug"``, ``"info"``, ``"warn"``, ``"error"``).
          message: Core log message.
          extra: Optional context dictionary, redacted recursively.
        """

        if not self.enabled_for(level):
            return
        payload = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "lvl": level.upper(),
            "msg": message,
            "component": self.component,
        }
        if extra:
            payload.update(self._redact(extra))
        json.dump(payload, self.stream, separators=(",", ":"), default=str)
        self.stream.write("\n")
        self.stream.flush()

    def debug(self, message: str, **kwargs: Any) -> None:
        self.log("DEBUG", message, extra=kwargs)

    def info(self, message: str, **kwargs: Any) -> None:
        self.log("INFO", message, extra=kwargs)

    def warning(self, message: str, **kwargs: Any) -> None:
        self.log("WARN", message, extra=kwargs)

    def error(self, message: str, **kwargs: Any) -> None:
        self.log("ERROR", message, extra=kwargs)

    @staticmethod
    def _redact(data: Dict[str, Any]) -> Dict[str, Any]:
        """Return a copy of ``data`` with sensitive values masked.

        Walks the dictionary, replacing values of ``SENSITIVE_KEYS`` with the
        ``[redacted]`` sentinel and recursing into nested dictionaries so the
        structure stays parseable.
        """

        result: Dict[str, Any] = {}
        for key, value in data.items():
            if key in SENSITIVE_KEYS:
                result[key] = REDACTED
            elif isinstance(value, dict):
                result[key] = JsonLogger._redact(value)
            else:
                result[key] = value
        return result


def get_logger(component: str) -> JsonLogger:
    """Construct a :class:`JsonLogger` bound to ``component``.

    Call sites go through this helper so the default stream and threshold can
    evolve in one place.
    """

    return JsonLogger(component=component)
