"""Mail filter configuration snapshot package.

What:
  Provide a cohesive import surface for the snapshot model, the flat-file
  codec, and the cached store used by filter processes and producers.

Why:
  Callers only need the model, the store and the error types; keeping
  ``__all__`` explicit stops them from depending on the text layer or the
  version table directly.

How:
  Re-export the supported names from the submodules.

Interfaces:
  - Configuration / RateLimit / ValidationError: Snapshot model and its
    construction error.
  - ConfigStore: ``current`` and ``save_if_changed``.
  - encode / decode / load_configuration / dump_configuration /
    read_configuration / resolve_config_path: Codec and file helpers.
  - ConfigLoadError / FormatError / StoreIOError: Load and persistence errors.
"""

from .codec import ConfigLoadError, FormatError, decode, encode
from .loader import (
    LoadedDocument,
    StoreIOError,
    dump_configuration,
    load_configuration,
    read_configuration,
    resolve_config_path,
)
from .schema import Configuration, RateLimit, ValidationError
from .store import ConfigStore
from .versions import CURRENT_VERSION, DEFAULT_LISTEN_PORT

__all__ = [
    "CURRENT_VERSION",
    "DEFAULT_LISTEN_PORT",
    "ConfigLoadError",
    "ConfigStore",
    "Configuration",
    "FormatError",
    "LoadedDocument",
    "RateLimit",
    "StoreIOError",
    "ValidationError",
    "decode",
    "dump_configuration",
    "encode",
    "load_configuration",
    "read_configuration",
    "resolve_config_path",
]
