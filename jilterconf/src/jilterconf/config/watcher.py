"""Configuration change detection based on file modification stamps.

What:
  Provide predicates that compare the modification stamp recorded when the
  configuration was last decoded with the stamp currently on disk, returning
  both a boolean change signal and a short reason.

Why:
  The management system replaces the file in place at arbitrary times. The
  store must notice those rewrites on the next read without re-parsing the
  file on every call; comparing stamps keeps reads cheap between updates.

How:
  Stamps are integer nanosecond modification times (``st_mtime_ns``) or
  ``None`` when nothing has been loaded yet. Any difference, forwards or
  backwards, counts as a change because restored backups can carry older
  times.

Interfaces:
  ``has_changed`` and ``change_reason``.

Invariants & Safety:
  - ``None`` for the previous stamp always means a load is required.
  - Detection granularity is the filesystem's timestamp resolution.
"""
from __future__ import annotations

from typing import Optional


def has_changed(prev: Optional[int], new: int) -> bool:
    """Return ``True`` when the file must be decoded again.

    Args:
      prev: Stamp recorded with the cached configuration, if any.
      new: Stamp observed on disk now.
    """

    if prev is None:
        return True
    return prev != new


def change_reason(prev: Optional[int], new: int) -> str:
    """Explain the outcome of :func:`has_changed` for log entries.

    Returns:
      ``"bootstrap"`` when nothing was cached, ``"mtime change"`` when the
      stamps differ, and ``"unchanged"`` otherwise.
    """

    if prev is None:
        return "bootstrap"
    if prev != new:
        return "mtime change"
    return "unchanged"
