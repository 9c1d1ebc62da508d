"""Typed models describing a mail filter configuration snapshot."""
from __future__ import annotations

from types import MappingProxyType
from typing import Any, Dict, FrozenSet, Mapping, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, ValidationError as _PydanticValidationError
from pydantic import ValidationInfo, field_validator

from ..utils.logging import get_logger
from .versions import CURRENT_VERSION


_LOGGER = get_logger("jilterconf.schema")


class ValidationError(ValueError):
    """Raised when configuration values do not satisfy the model invariants."""


class RateLimit(BaseModel):
    """Burst capacity and refill rate governing message throughput."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    burst: int = Field(gt=0, strict=True)
    rate: float = Field(gt=0, strict=True, allow_inf_nan=False)

    def __init__(self, burst: int, rate: float) -> None:
        try:
            super().__init__(burst=burst, rate=rate)
        except _PydanticValidationError as exc:
            raise ValidationError(str(exc)) from exc


def _lower_keys(value: Mapping[str, Any], name: str) -> Dict[str, Any]:
    result: Dict[str, Any] = {}
    for key, item in value.items():
        normalised = key.lower()
        if normalised in result:
            raise ValidationError(f"{name} has duplicate key after lower-casing: {key!r}")
        result[normalised] = item
    return result


def _same(left: Any, right: Any) -> bool:
    if isinstance(left, Mapping) and isinstance(right, Mapping):
        return dict(left) == dict(right)
    return left == right


_OPTIONAL_TEXT = ("smtp_server", "email_summary_from", "email_summary_to", "email_full_from", "email_full_to")

COMPARED_FIELDS: Tuple[str, ...] = (
    "listen_address",
    "listen_port",
    "restrict_outbound",
    *_OPTIONAL_TEXT,
    "owner_of_domain",
    "addresses_of_domain",
    "local_addresses",
    "denied",
    "denied_for_spam",
    "allowed_relays",
    "inbound_limits",
    "outbound_limits",
    "relay_limits",
)


class Configuration(BaseModel):
    """Immutable snapshot of everything the mail filter reads from disk.

    Collections passed in are copied: mappings become read-only views and sets
    become frozensets, so later mutation of the caller's containers is never
    visible here. Domain keys and the owner keys of the rate-limit maps are
    lower-cased. Every owned domain has an entry in ``addresses_of_domain``,
    possibly empty.

    Equality is structural and ignores ``version``: two snapshots holding the
    same values compare equal no matter which file format they came from.
    """

    model_config = ConfigDict(extra="forbid", frozen=True, validate_default=True)

    listen_address: str
    listen_port: int = Field(ge=1, le=65535, strict=True)
    restrict_outbound: bool = False
    smtp_server: Optional[str] = None
    email_summary_from: Optional[str] = None
    email_summary_to: Optional[str] = None
    email_full_from: Optional[str] = None
    email_full_to: Optional[str] = None
    owner_of_domain: Dict[str, str] = Field(default_factory=dict)
    addresses_of_domain: Dict[str, FrozenSet[str]] = Field(default_factory=dict)
    local_addresses: FrozenSet[str] = frozenset()
    denied: FrozenSet[str] = frozenset()
    denied_for_spam: FrozenSet[str] = frozenset()
    allowed_relays: FrozenSet[str] = frozenset()
    inbound_limits: Dict[str, RateLimit] = Field(default_factory=dict)
    outbound_limits: Dict[str, RateLimit] = Field(default_factory=dict)
    relay_limits: Dict[str, RateLimit] = Field(default_factory=dict)
    version: str = CURRENT_VERSION

    __hash__ = None  # type: ignore[assignment]

    def __init__(self, listen_address: str, listen_port: int, **values: Any) -> None:
        try:
            super().__init__(listen_address=listen_address, listen_port=listen_port, **values)
        except _PydanticValidationError as exc:
            raise ValidationError(str(exc)) from exc

    @field_validator("owner_of_domain")
    @classmethod
    def _freeze_owners(cls, value: Dict[str, str]) -> Mapping[str, str]:
        owners = _lower_keys(value, "owner_of_domain")
        for domain, owner in owners.items():
            if "|" in owner:
                raise ValidationError(f"owner for {domain!r} may not contain '|': {owner!r}")
        return MappingProxyType(owners)

    @field_validator("addresses_of_domain")
    @classmethod
    def _freeze_addresses(cls, value: Dict[str, FrozenSet[str]], info: ValidationInfo) -> Mapping[str, FrozenSet[str]]:
        owners = info.data.get("owner_of_domain") or {}
        addresses: Dict[str, FrozenSet[str]] = {}
        for domain, members in _lower_keys(value, "addresses_of_domain").items():
            for local_part in members:
                if "@" in local_part:
                    raise ValidationError(f"local part may not contain '@': {local_part!r}")
            # An empty set is only meaningful for an owned domain.
            if members or domain in owners:
                addresses[domain] = members
        for domain in owners:
            addresses.setdefault(domain, frozenset())
        return MappingProxyType(addresses)

    @field_validator("inbound_limits", "outbound_limits", "relay_limits")
    @classmethod
    def _freeze_limits(cls, value: Dict[str, RateLimit], info: ValidationInfo) -> Mapping[str, RateLimit]:
        limits = _lower_keys(value, info.field_name or "limits")
        for owner in limits:
            if "|" in owner:
                raise ValidationError(f"{info.field_name} owner may not contain '|': {owner!r}")
        return MappingProxyType(limits)

    def differences(self, other: "Configuration") -> Tuple[str, ...]:
        """Return the names of fields whose contents differ from ``other``."""

        return tuple(name for name in COMPARED_FIELDS if not _same(getattr(self, name), getattr(other, name)))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Configuration):
            return NotImplemented
        if other is self:
            return True
        diffs = self.differences(other)
        for name in diffs:
            _LOGGER.debug("configuration field differs", field=name)
        return not diffs

    def owner_for_domain(self, domain: str) -> Optional[str]:
        """Owner identifier of ``domain`` or ``None`` when the domain is unknown."""

        return self.owner_of_domain.get(domain.lower())

    def addresses_for_domain(self, domain: str) -> Optional[FrozenSet[str]]:
        """Local parts hosted for ``domain``.

        Returns an empty set for an owned domain without addresses and ``None``
        when the domain is unknown.
        """

        return self.addresses_of_domain.get(domain.lower())  # type: ignore[return-value]

    def is_local_address(self, ip: str) -> bool:
        return ip in self.local_addresses

    def is_denied(self, ip: str) -> bool:
        return ip in self.denied

    def is_denied_for_spam(self, ip: str) -> bool:
        return ip in self.denied_for_spam

    def is_allowed_relay(self, ip: str) -> bool:
        return ip in self.allowed_relays

    def inbound_limit_for(self, owner: str) -> Optional[RateLimit]:
        """Inbound limit for ``owner``; ``None`` means unlimited."""

        return self.inbound_limits.get(owner.lower())

    def outbound_limit_for(self, owner: str) -> Optional[RateLimit]:
        return self.outbound_limits.get(owner.lower())

    def relay_limit_for(self, owner: str) -> Optional[RateLimit]:
        return self.relay_limits.get(owner.lower())

    def to_dict(self) -> Dict[str, Any]:
        """Plain JSON-friendly view with sorted collections, for display."""

        def _limits(limits: Mapping[str, RateLimit]) -> Dict[str, Dict[str, Any]]:
            return {owner: {"burst": limit.burst, "rate": limit.rate} for owner, limit in sorted(limits.items())}

        return {
            "version": self.version,
            "listen_address": self.listen_address,
            "listen_port": self.listen_port,
            "restrict_outbound": self.restrict_outbound,
            **{name: getattr(self, name) for name in _OPTIONAL_TEXT},
            "owner_of_domain": dict(sorted(self.owner_of_domain.items())),
            "addresses_of_domain": {
                domain: sorted(local_parts) for domain, local_parts in sorted(self.addresses_of_domain.items())
            },
            "local_addresses": sorted(self.local_addresses),
            "denied": sorted(self.denied),
            "denied_for_spam": sorted(self.denied_for_spam),
            "allowed_relays": sorted(self.allowed_relays),
            "inbound_limits": _limits(self.inbound_limits),
            "outbound_limits": _limits(self.outbound_limits),
            "relay_limits": _limits(self.relay_limits),
        }
