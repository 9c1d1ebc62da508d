"""Cached access to the configuration file and change-only persistence.

What:
  Provide :class:`ConfigStore`, the object mail filter processes hold to read
  the current configuration snapshot and producers use to persist a new one.

Why:
  Filter processes ask for the configuration far more often than it changes,
  so reads must be cheap between rewrites yet observe a rewrite on the very
  next call. Producers regenerate the full snapshot on a schedule; rewriting
  the file only when its content changed avoids needless reloads in every
  consumer, and the write must never expose a half-written file.

How:
  The store keeps one cache slot holding the decoded snapshot and the file's
  ``st_mtime_ns`` at load time. :meth:`ConfigStore.current` stats the file and
  decodes it again only when the stamp moved. :meth:`ConfigStore.save_if_changed`
  compares the candidate with the cached snapshot and, on a mismatch, writes
  the encoded bytes to a sibling ``.new`` file, fsyncs it, and renames it over
  the canonical path with :func:`os.replace`.

Interfaces:
  ``ConfigStore`` exposing ``current``, ``save_if_changed``, ``invalidate``,
  ``path``, ``staging_path`` and ``cached``.

Invariants & Safety:
  - One re-entrant lock serialises every entry point of an instance.
  - A failed decode leaves the previous slot untouched.
  - The canonical file changes only through the final rename; a failure
    before it removes the staging file and leaves the canonical file intact.
  - Files in a legacy format are rewritten even when their content matches.
"""
from __future__ import annotations

import os
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional, Union

from ..utils.logging import JsonLogger, get_logger
from .codec import ConfigLoadError
from .loader import StoreIOError, dump_configuration, read_configuration, resolve_config_path
from .schema import Configuration
from .versions import CURRENT_VERSION, FormatVersion
from .watcher import change_reason, has_changed


@dataclass(frozen=True)
class _CacheSlot:
    value: Configuration
    stamp: int
    checksum: str


class ConfigStore:
    """Mtime-gated cache and atomic writer for one configuration file.

    What:
      Owns the path of the backing file, the single cached snapshot and the
      lock guarding both.

    Why:
      An explicit instance passed to callers replaces process-wide globals;
      tests and multi-instance deployments get independent caches while each
      instance still reloads at most once per file change.

    How:
      Entry points take the lock, consult :mod:`.watcher` for staleness and
      delegate byte handling to :mod:`.loader`.
    """

    STAGING_SUFFIX = ".new"

    def __init__(
        self,
        path: Optional[Union[Path, str]] = None,
        *,
        logger: Optional[JsonLogger] = None,
        accept: Optional[Iterable[Union[str, FormatVersion]]] = None,
    ):
        """Create a store backed by ``path``.

        Args:
          path: Configuration file; resolved through
            :func:`~.loader.resolve_config_path` when ``None``.
          logger: Structured logger, ``jilterconf.store`` by default.
          accept: Version tags tolerated when decoding; all by default.
        """
        self._path = resolve_config_path(path)
        self._staging = self._path.with_name(self._path.name + self.STAGING_SUFFIX)
        self._accept = tuple(accept) if accept is not None else None
        self._logger = logger or get_logger("jilterconf.store")
        self._lock = threading.RLock()
        self._slot: Optional[_CacheSlot] = None

    @property
    def path(self) -> Path:
        return self._path

    @property
    def staging_path(self) -> Path:
        return self._staging

    @property
    def cached(self) -> Optional[Configuration]:
        """Snapshot currently held in the cache slot, without touching disk."""

        slot = self._slot
        return slot.value if slot is not None else None

    @property
    def cached_checksum(self) -> Optional[str]:
        """``sha256:`` digest of the bytes behind :attr:`cached`."""

        slot = self._slot
        return slot.checksum if slot is not None else None

    def _stamp(self) -> int:
        try:
            return self._path.stat().st_mtime_ns
        except FileNotFoundError as exc:
            raise StoreIOError(f"Configuration file missing: {self._path}") from exc
        except OSError as exc:
            raise StoreIOError(f"Unable to stat configuration file {self._path}: {exc}") from exc

    def current(self) -> Configuration:
        """Return the latest configuration, decoding the file when it changed.

        What:
          Hands out the cached snapshot while the file's modification stamp is
          unchanged, otherwise decodes the file and caches the result.

        Why:
          Consumers call this on their own cadence; it must be a cheap no-op
          between external rewrites and observe a rewrite on the next call.

        How:
          Stats the file, asks :func:`~.watcher.has_changed` whether the stamp
          moved, and on a change reads and decodes the file into a new slot.
          The slot is replaced only after a successful decode.

        Returns:
          The cached or freshly decoded :class:`Configuration`.

        Raises:
          StoreIOError: If the file cannot be stat'ed or read.
          FormatError: If the file content cannot be decoded.
        """
        with self._lock:
            stamp = self._stamp()
            slot = self._slot
            previous = slot.stamp if slot is not None else None
            if slot is not None and not has_changed(previous, stamp):
                return slot.value
            document = read_configuration(self._path, accept=self._accept)
            self._slot = _CacheSlot(value=document.model, stamp=stamp, checksum=document.checksum)
            self._logger.info(
                "configuration loaded",
                path=str(self._path),
                reason=change_reason(previous, stamp),
                version=document.model.version,
                checksum=document.checksum,
            )
            return document.model

    def invalidate(self) -> None:
        """Empty the cache slot so the next :meth:`current` decodes the file."""

        with self._lock:
            self._slot = None

    def _matches_persisted(self, candidate: Configuration) -> bool:
        if not self._path.exists():
            self._logger.debug("configuration file does not exist", path=str(self._path))
            return False
        try:
            existing = self.current()
        except ConfigLoadError as exc:
            self._logger.warning(
                "cannot load existing configuration, building new configuration file",
                path=str(self._path),
                error=str(exc),
            )
            return False
        if existing.version != CURRENT_VERSION:
            self._logger.info(
                "configuration file uses a legacy format, rewriting",
                path=str(self._path),
                version=existing.version,
            )
            return False
        return existing == candidate

    def save_if_changed(self, candidate: Configuration, comment: Optional[str] = None) -> bool:
        """Persist ``candidate`` unless the file already holds the same content.

        What:
          Compares the candidate with the stored configuration and performs an
          atomic replace only on a structural difference.

        Why:
          Producers rebuild the snapshot periodically from an authoritative
          source. Skipping identical writes keeps the file's modification time
          stable, so consumers do not reload for nothing.

        How:
          A missing file, an unreadable or undecodable file, or a legacy
          format all count as "differs". Otherwise structural equality
          decides. On a difference the candidate is encoded with ``comment``
          as a header, written to :attr:`staging_path`, flushed and fsync'ed,
          then renamed over :attr:`path`. The cache slot is emptied afterwards
          so the next read decodes what is on disk.

        Args:
          candidate: Snapshot to persist.
          comment: Free text recorded as the file's leading comment.

        Returns:
          ``True`` when the file was written, ``False`` when it was already up
          to date.

        Raises:
          StoreIOError: If writing the staging file or the rename fails. The
            canonical file is left untouched in that case.
        """
        with self._lock:
            if self._matches_persisted(candidate):
                self._logger.info("configuration unchanged, skipping write", path=str(self._path))
                return False
            self._write(candidate, comment)
            self._slot = None
            self._logger.info("configuration written", path=str(self._path))
            return True

    def _write(self, candidate: Configuration, comment: Optional[str]) -> None:
        payload = dump_configuration(candidate, comment)
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with open(self._staging, "wb") as handle:
                handle.write(payload)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(self._staging, self._path)
        except OSError as exc:
            self._discard_staging()
            raise StoreIOError(f"Unable to write configuration file {self._path}: {exc}") from exc

    def _discard_staging(self) -> None:
        try:
            self._staging.unlink()
        except FileNotFoundError:
            pass
        except OSError as exc:
            self._logger.error("unable to remove staging file", path=str(self._staging), error=str(exc))
