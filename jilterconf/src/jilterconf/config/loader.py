"""Locate, read, and serialise the mail filter configuration file.

What:
  Provide the byte-level entry points around the codec: resolving which file
  backs the configuration, reading it with path-aware errors, and producing
  the exact bytes written on save.

Why:
  The configuration lives outside the application and is rewritten by another
  system. Centralising file access keeps error reporting uniform (every OS
  error names the file) and guarantees that the store and the CLI read and
  write the same encoding.

How:
  Resolve the path from an explicit argument, the ``JILTERCONF_PATH``
  environment variable, or the packaged default. Decode bytes as ISO-8859-1
  (the properties file encoding) and delegate to :mod:`.codec`. Wrap the model
  with its raw text and a SHA-256 checksum so callers can log which revision
  they loaded.

Interfaces:
  - :func:`resolve_config_path`: Path precedence chain.
  - :func:`load_configuration` / :func:`dump_configuration`: Bytes to model and
    back.
  - :func:`read_configuration`: Read and decode a file in one step.
  - :class:`LoadedDocument`, :class:`StoreIOError`.

Invariants:
  - Filesystem failures surface as :class:`StoreIOError` with the original
    :class:`OSError` chained.
  - Malformed content surfaces as :class:`~.codec.FormatError`.
"""

from __future__ import annotations

import hashlib
import os
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Iterable, Optional, Union

from .codec import ConfigLoadError, FormatError, dumps, loads
from .schema import Configuration
from .versions import FormatVersion


class StoreIOError(ConfigLoadError):
    """Error raised when the configuration file cannot be read or written.

    What:
      Signal filesystem failures (missing file, permissions, failed rename)
      separately from malformed content.

    Why:
      The store treats read failures during a save as "no valid existing
      configuration" but must surface write failures; a dedicated type lets it
      tell the two apart from :class:`FormatError`.

    How:
      Subclass :class:`ConfigLoadError`; the underlying :class:`OSError` is
      chained as ``__cause__`` and the message names the path.
    """


@dataclass
class LoadedDocument:
    """Bundle a decoded configuration with its raw text and checksum.

    Attributes:
      model: The decoded :class:`Configuration`.
      raw: The text exactly as read.
      checksum: SHA-256 digest prefixed with ``sha256:`` for log correlation.
    """

    model: Configuration
    raw: str
    checksum: str


PATH_ENV = "JILTERCONF_PATH"
DEFAULT_PATH = Path("/etc/opt/aoserv-jilter/aoserv-jilter.properties")
ENCODING = "iso-8859-1"


def resolve_config_path(path: Optional[Union[Path, str]] = None) -> Path:
    """Return the configuration file location.

    What:
      Pick the file backing the configuration store.

    Why:
      Deployments place the file differently; tests and staging hosts point
      at temporary locations without touching the production default.

    How:
      Use ``path`` when given, otherwise ``JILTERCONF_PATH`` when set,
      otherwise :data:`DEFAULT_PATH`. The file does not need to exist yet, as
      the first save creates it.

    Args:
      path: Explicit location requested by the caller.

    Returns:
      The expanded path.
    """

    if path is not None:
        return Path(path).expanduser()
    env_path = os.environ.get(PATH_ENV)
    if env_path:
        return Path(env_path).expanduser()
    return DEFAULT_PATH


def _checksum(text: str) -> str:
    digest = hashlib.sha256(text.encode("utf-8")).hexdigest()
    return f"sha256:{digest}"


def load_configuration(
    source: bytes,
    *,
    accept: Optional[Iterable[Union[str, FormatVersion]]] = None,
) -> LoadedDocument:
    """Decode configuration file bytes into a :class:`LoadedDocument`.

    Args:
      source: Raw file content.
      accept: Version tags tolerated; all known versions when ``None``.

    Returns:
      The decoded model with its text and checksum.

    Raises:
      FormatError: If the content is malformed or the version is not accepted.
    """

    text = source.decode(ENCODING)
    model = loads(text, accept=accept)
    return LoadedDocument(model=model, raw=text, checksum=_checksum(text))


def dump_configuration(
    model: Configuration,
    comment: Optional[str] = None,
    *,
    timestamp: Optional[datetime] = None,
) -> bytes:
    """Serialise ``model`` into the bytes written to disk.

    The output always uses the current format version, sorted keys, and
    ``comment`` as the leading ``#`` annotation.
    """

    return dumps(model, comment, timestamp=timestamp).encode(ENCODING)


def read_configuration(
    path: Union[Path, str],
    *,
    accept: Optional[Iterable[Union[str, FormatVersion]]] = None,
) -> LoadedDocument:
    """Read and decode the configuration stored at ``path``.

    Raises:
      StoreIOError: If the file cannot be read.
      FormatError: If its content cannot be decoded.
    """

    path = Path(path)
    try:
        source = path.read_bytes()
    except FileNotFoundError as exc:
        raise StoreIOError(f"Configuration file missing: {path}") from exc
    except OSError as exc:
        raise StoreIOError(f"Unable to read configuration file {path}: {exc}") from exc
    return load_configuration(source, accept=accept)


__all__ = [
    "ConfigLoadError",
    "DEFAULT_PATH",
    "FormatError",
    "LoadedDocument",
    "PATH_ENV",
    "StoreIOError",
    "dump_configuration",
    "load_configuration",
    "read_configuration",
    "resolve_config_path",
]
