"""Flat key/value encoding of :class:`~jilterconf.config.schema.Configuration`.

What:
  Map a configuration snapshot to numbered ``<category>.<n>`` keys and back,
  reading every historical layout of the file and always writing the current
  one.

Why:
  The filter configuration is produced by a separate management system and
  consumed by long-running mail filter processes. A flat properties file is
  the contract between them; nested collections (owners per domain, addresses
  per domain, IP sets, per-owner rate limits) therefore need a deterministic
  flattening that survives a round trip without loss.

How:
  :func:`encode` emits the scalars under fixed keys and one numbered line per
  collection entry with a composite value (``owner|domain``,
  ``local@domain``, ``owner|burst|rate``). :func:`decode` resolves the
  version record first, then makes a single pass over all keys, dispatching by
  category prefix into local scratch containers that are frozen into a new
  :class:`Configuration` at the end.

Interfaces:
  :func:`encode`, :func:`decode`, :func:`dumps`, :func:`loads`,
  :class:`ConfigLoadError`, :class:`FormatError`.

Invariants:
  - ``decode(encode(config)) == config`` for every valid configuration.
  - Decoding never depends on line order; numeric suffixes are only required
    to be unique per category.
  - No partially built configuration escapes a failed decode.
"""
from __future__ import annotations

import re
from datetime import datetime
from typing import Callable, Dict, Iterable, Iterator, List, Mapping, Optional, Set, Tuple, Union

from .properties import PropertiesSyntaxError, format_properties, parse_properties
from .schema import Configuration, RateLimit, ValidationError
from .versions import ALL_VERSIONS, CURRENT, DEFAULT_LISTEN_PORT, LISTEN_PORT_KEY, FormatVersion, lookup


class ConfigLoadError(Exception):
    """Base error for configuration files that cannot be loaded.

    Callers that only need to know whether a usable snapshot was obtained
    catch this type; the subclasses separate malformed content from
    filesystem failures.
    """


class FormatError(ConfigLoadError):
    """Raised when file content is malformed or uses an unrecognised version."""


VERSION_KEY = "version"
RESTRICT_KEY = "restrict_outbound_email"
ADDRESSES = "addresses"
LOCAL_IPS = "ips"
DENIES = "denies"
DENY_SPAMS = "denySpams"
ALLOW_RELAYS = "allowRelays"
INBOUND_LIMITS = "emailInLimits"
OUTBOUND_LIMITS = "emailOutLimits"
RELAY_LIMITS = "emailRelayLimits"

_OPTIONAL_KEYS: Tuple[Tuple[str, str], ...] = (
    ("smtp_server", "smtp.server"),
    ("email_summary_from", "email.summary.from"),
    ("email_summary_to", "email.summary.to"),
    ("email_full_from", "email.full.from"),
    ("email_full_to", "email.full.to"),
)
_IP_SETS: Tuple[Tuple[str, str], ...] = (
    ("local_addresses", LOCAL_IPS),
    ("denied", DENIES),
    ("denied_for_spam", DENY_SPAMS),
    ("allowed_relays", ALLOW_RELAYS),
)
_LIMITS: Tuple[Tuple[str, str], ...] = (
    ("inbound_limits", INBOUND_LIMITS),
    ("outbound_limits", OUTBOUND_LIMITS),
    ("relay_limits", RELAY_LIMITS),
)

_INTEGER = re.compile(r"[+-]?[0-9]+")
_DECIMAL = re.compile(r"[+-]?(?:[0-9]+\.?[0-9]*|\.[0-9]+)(?:[eE][+-]?[0-9]+)?[fFdD]?")

Pairs = Union[Mapping[str, str], Iterable[Tuple[str, str]]]


def _numbered(prefix: str, values: Iterable[str]) -> Iterator[Tuple[str, str]]:
    for index, value in enumerate(values, start=1):
        yield f"{prefix}.{index}", value


def encode(config: Configuration) -> List[Tuple[str, str]]:
    """Flatten ``config`` into ordered ``(key, value)`` pairs.

    Mappings are numbered in insertion order and set members in sorted order,
    so the same snapshot always produces the same lines. Unset optional
    scalars are left out entirely.
    """

    version = CURRENT
    pairs: List[Tuple[str, str]] = [
        (VERSION_KEY, version.tag),
        (version.listen_key, config.listen_address),
        (LISTEN_PORT_KEY, str(config.listen_port)),
        (RESTRICT_KEY, "true" if config.restrict_outbound else "false"),
    ]
    for attribute, key in _OPTIONAL_KEYS:
        value = getattr(config, attribute)
        if value is not None:
            pairs.append((key, value))
    pairs.extend(
        _numbered(version.owner_prefix, (f"{owner}|{domain}" for domain, owner in config.owner_of_domain.items()))
    )
    pairs.extend(
        _numbered(
            ADDRESSES,
            (
                f"{local_part}@{domain}"
                for domain, local_parts in config.addresses_of_domain.items()
                for local_part in sorted(local_parts)
            ),
        )
    )
    for attribute, prefix in _IP_SETS:
        pairs.extend(_numbered(prefix, sorted(getattr(config, attribute))))
    for attribute, prefix in _LIMITS:
        limits: Mapping[str, RateLimit] = getattr(config, attribute)
        pairs.extend(
            _numbered(prefix, (f"{owner}|{limit.burst}|{limit.rate!r}" for owner, limit in limits.items()))
        )
    return pairs


def _parse_int(text: Optional[str], what: str) -> int:
    if text is None or not _INTEGER.fullmatch(text):
        raise FormatError(f"Unable to parse {what}: {text!r}")
    return int(text)


def _parse_float(text: str, what: str) -> float:
    candidate = text.strip()
    if not _DECIMAL.fullmatch(candidate):
        raise FormatError(f"Unable to parse {what}: {text!r}")
    return float(candidate.rstrip("fFdD"))


def _accepted_tags(accept: Optional[Iterable[Union[str, FormatVersion]]]) -> Set[str]:
    if accept is None:
        return {version.tag for version in ALL_VERSIONS}
    return {item.tag if isinstance(item, FormatVersion) else item for item in accept}


def resolve_version(items: Mapping[str, str], accept: Optional[Iterable[Union[str, FormatVersion]]] = None) -> FormatVersion:
    """Return the layout record named by the ``version`` key.

    Raises:
      FormatError: If the key is missing, unknown, or excluded by ``accept``.
    """

    tag = items.get(VERSION_KEY)
    version = lookup(tag)
    if version is None or version.tag not in _accepted_tags(accept):
        raise FormatError(f"Unsupported configuration version: {tag!r}")
    return version


def decode(pairs: Pairs, *, accept: Optional[Iterable[Union[str, FormatVersion]]] = None) -> Configuration:
    """Rebuild a :class:`Configuration` from flat ``(key, value)`` pairs.

    Args:
      pairs: Mapping or iterable of key/value pairs, in any order.
      accept: Version tags (or records) tolerated; all known versions when
        ``None``.

    Returns:
      A new immutable configuration whose ``version`` records the layout read.

    Raises:
      FormatError: On an unsupported version, a missing required scalar, an
        unparseable number, a composite value missing its delimiter, or values
        rejected by model validation.
    """

    items: Mapping[str, str] = pairs if isinstance(pairs, Mapping) else dict(pairs)
    version = resolve_version(items, accept)

    listen_address = items.get(version.listen_key)
    if listen_address is None:
        raise FormatError(f"Missing {version.listen_key} for version {version.tag}")
    if version.port_key is not None:
        listen_port = _parse_int(items.get(version.port_key), version.port_key)
    else:
        listen_port = DEFAULT_LISTEN_PORT

    owners: Dict[str, str] = {}
    addresses: Dict[str, Set[str]] = {}
    ip_sets: Dict[str, Set[str]] = {prefix: set() for _, prefix in _IP_SETS}
    limits: Dict[str, Dict[str, RateLimit]] = {prefix: {} for _, prefix in _LIMITS}

    def _owner(prefix: str, value: str) -> None:
        owner, sep, domain = value.partition("|")
        if not sep:
            raise FormatError(f"Unable to parse {prefix}: {value!r}")
        domain = domain.lower()
        owners[domain] = owner
        addresses.setdefault(domain, set())

    def _address(prefix: str, value: str) -> None:
        local_part, sep, domain = value.partition("@")
        if not sep:
            raise FormatError(f"Unable to find @ in address: {value!r}")
        addresses.setdefault(domain.lower(), set()).add(local_part)

    def _ip(prefix: str, value: str) -> None:
        ip_sets[prefix].add(value)

    def _limit(prefix: str, value: str) -> None:
        owner, sep1, rest = value.partition("|")
        burst_text, sep2, rate_text = rest.partition("|")
        if not sep1 or not sep2:
            raise FormatError(f"Unable to parse {prefix}: {value!r}")
        burst = _parse_int(burst_text, f"{prefix} burst")
        rate = _parse_float(rate_text, f"{prefix} rate")
        try:
            limits[prefix][owner.lower()] = RateLimit(burst, rate)
        except ValidationError as exc:
            raise FormatError(f"Invalid {prefix}: {value!r}: {exc}") from exc

    handlers: Dict[str, Callable[[str, str], None]] = {version.owner_prefix: _owner, ADDRESSES: _address}
    handlers.update({prefix: _ip for _, prefix in _IP_SETS})
    handlers.update({prefix: _limit for _, prefix in _LIMITS})

    for key, value in items.items():
        prefix, dot, _ = key.partition(".")
        handler = handlers.get(prefix) if dot else None
        if handler is not None:
            handler(prefix, value)

    try:
        return Configuration(
            version=version.tag,
            listen_address=listen_address,
            listen_port=listen_port,
            restrict_outbound=(items.get(RESTRICT_KEY) or "").lower() == "true",
            owner_of_domain=owners,
            addresses_of_domain=addresses,
            inbound_limits=limits[INBOUND_LIMITS],
            outbound_limits=limits[OUTBOUND_LIMITS],
            relay_limits=limits[RELAY_LIMITS],
            **{attribute: ip_sets[prefix] for attribute, prefix in _IP_SETS},
            **{attribute: items.get(key) for attribute, key in _OPTIONAL_KEYS},
        )
    except ValidationError as exc:
        raise FormatError(f"Invalid configuration content: {exc}") from exc


def dumps(config: Configuration, comment: Optional[str] = None, *, timestamp: Optional[datetime] = None) -> str:
    """Render ``config`` as properties text with ``comment`` as the header."""

    return format_properties(encode(config), comment=comment, timestamp=timestamp)


def loads(text: str, *, accept: Optional[Iterable[Union[str, FormatVersion]]] = None) -> Configuration:
    """Parse properties ``text`` and decode it into a configuration."""

    try:
        items = parse_properties(text)
    except PropertiesSyntaxError as exc:
        raise FormatError(str(exc)) from exc
    return decode(items, accept=accept)
