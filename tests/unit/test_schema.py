"""
Module: tests/unit/test_schema.py

What:
    Validate the snapshot model: rate-limit construction rules, normalisation
    of collections and keys, accessor behaviour, and structural equality.

Why:
    The store decides whether to rewrite the file purely from equality, and
    filter processes rely on the accessors for every message. Regressions here
    either cause spurious rewrites or wrong filtering decisions.

How:
    Build configurations through the shared factory fixture with targeted
    overrides and assert on accessors, ``differences`` and raised errors.

Invariants & Safety Rules:
    - Insertion order and the format version never influence equality.
    - Invalid values are rejected at construction time.
"""

import math

import pytest

from jilterconf.config.schema import Configuration, RateLimit, ValidationError


def test_rate_limit_exposes_exact_values():
    limit = RateLimit(5, 1.5)
    assert limit.burst == 5
    assert limit.rate == 1.5
    assert RateLimit(burst=5, rate=1.5) == limit


@pytest.mark.parametrize(
    "burst, rate",
    [
        (0, 1.0),
        (-1, 1.0),
        (5, 0.0),
        (5, -2.0),
        (5, math.nan),
        (5, math.inf),
        (True, 1.0),
        (5, True),
        (5, "1.5"),
    ],
)
def test_rate_limit_rejects_invalid_values(burst, rate):
    with pytest.raises(ValidationError):
        RateLimit(burst, rate)


def test_rate_limit_is_a_hashable_value():
    assert RateLimit(5, 1.5) == RateLimit(5, 1.5)
    assert hash(RateLimit(5, 1.5)) == hash(RateLimit(5, 1.5))
    assert RateLimit(5, 1.5) != RateLimit(5, 2.0)
    assert RateLimit(5, 1.5) != RateLimit(6, 1.5)


def test_rate_limit_is_immutable():
    limit = RateLimit(5, 1.5)
    with pytest.raises(ValueError):
        limit.burst = 10  # type: ignore[misc]


def test_collections_are_read_only(sample_config):
    with pytest.raises(TypeError):
        sample_config.owner_of_domain["new.test"] = "X"  # type: ignore[index]
    with pytest.raises(AttributeError):
        sample_config.local_addresses.add("192.0.2.99")  # type: ignore[attr-defined]
    with pytest.raises(AttributeError):
        sample_config.addresses_for_domain("example.com").add("x")  # type: ignore[union-attr]
    with pytest.raises(ValueError):
        sample_config.listen_port = 25  # type: ignore[misc]


def test_caller_containers_are_copied(config_factory):
    owners = {"example.com": "ACME"}
    denied = {"198.51.100.7"}
    config = config_factory(owner_of_domain=owners, denied=denied)
    owners["evil.test"] = "MALLORY"
    denied.add("198.51.100.8")
    assert config.owner_for_domain("evil.test") is None
    assert not config.is_denied("198.51.100.8")


def test_domain_and_owner_lookups_ignore_case(sample_config):
    assert sample_config.owner_for_domain("Example.COM") == sample_config.owner_for_domain("example.com") == "ACME"
    assert sample_config.addresses_for_domain("EXAMPLE.com") == frozenset({"info", "sales"})
    assert sample_config.inbound_limit_for("acme") == sample_config.inbound_limit_for("ACME") == RateLimit(100, 2.5)
    assert sample_config.outbound_limit_for("Globex") == RateLimit(10, 0.25)


def test_owned_domain_without_addresses_has_empty_set(sample_config):
    assert sample_config.addresses_for_domain("parked.test") == frozenset()
    assert sample_config.addresses_for_domain("unknown.test") is None


def test_empty_address_set_for_unowned_domain_is_dropped(config_factory):
    config = config_factory(addresses_of_domain={"orphan.test": set(), "example.com": {"info"}})
    assert config.addresses_for_domain("orphan.test") is None
    assert config.addresses_for_domain("example.com") == frozenset({"info"})


def test_unknown_entries_are_not_errors(sample_config):
    assert sample_config.owner_for_domain("nowhere.test") is None
    assert sample_config.relay_limit_for("ACME") is None
    assert sample_config.inbound_limit_for("GLOBEX") is None
    assert not sample_config.is_local_address("203.0.113.1")
    assert not sample_config.is_allowed_relay("203.0.113.1")
    assert sample_config.is_denied_for_spam("203.0.113.9")
    assert sample_config.is_denied("198.51.100.7")


def test_equality_ignores_insertion_order(config_factory):
    first = config_factory(
        owner_of_domain={"a.test": "A", "b.test": "B"},
        outbound_limits={"A": RateLimit(1, 1.0), "B": RateLimit(2, 2.0)},
    )
    second = config_factory(
        owner_of_domain={"b.test": "B", "a.test": "A"},
        outbound_limits={"B": RateLimit(2, 2.0), "A": RateLimit(1, 1.0)},
    )
    assert first == second
    assert second == first
    assert first.differences(second) == ()


def test_equality_ignores_format_version(config_factory):
    assert config_factory(version="2007-05-13") == config_factory()


def test_differences_name_changed_fields(config_factory, sample_config):
    other = config_factory(listen_port=2526, denied={"198.51.100.99"}, email_full_to="all@example.net")
    assert sample_config.differences(other) == ("listen_port", "email_full_to", "denied")
    assert sample_config != other


def test_per_key_values_are_compared(config_factory):
    left = config_factory(relay_limits={"ACME": RateLimit(5, 1.0)})
    right = config_factory(relay_limits={"ACME": RateLimit(5, 1.5)})
    assert left.differences(right) == ("relay_limits",)


def test_comparison_with_other_types(sample_config):
    assert sample_config != object()
    assert sample_config.__eq__("config") is NotImplemented
    with pytest.raises(TypeError):
        hash(sample_config)


@pytest.mark.parametrize(
    "overrides",
    [
        {"listen_port": 0},
        {"listen_port": 70000},
        {"listen_port": True},
        {"listen_port": "25"},
        {"restrict_outbound": "maybe"},
        {"unknown_field": 1},
        {"smtp_server": 25},
        {"owner_of_domain": {"Example.com": "A", "example.COM": "B"}},
        {"owner_of_domain": {"example.com": "A|B"}},
        {"addresses_of_domain": {"example.com": {"bad@local"}}},
        {"addresses_of_domain": {"example.com": "info"}},
        {"local_addresses": "192.0.2.1"},
        {"inbound_limits": {"ACME": (5, 1.0)}},
        {"relay_limits": {"A|B": RateLimit(1, 1.0)}},
    ],
)
def test_invalid_values_are_rejected(config_factory, overrides):
    with pytest.raises(ValidationError):
        config_factory(**overrides)


def test_to_dict_is_sorted_and_plain(sample_config):
    payload = sample_config.to_dict()
    assert payload["denied_for_spam"] == ["203.0.113.10", "203.0.113.9"]
    assert payload["addresses_of_domain"]["parked.test"] == []
    assert payload["outbound_limits"]["globex"] == {"burst": 10, "rate": 0.25}
    assert payload["email_full_from"] is None


def test_minimal_configuration_defaults():
    config = Configuration("127.0.0.1", 12000)
    assert config.version == "2013-07-13"
    assert config.restrict_outbound is False
    assert config.owner_of_domain == {}
    assert config.local_addresses == frozenset()


def test_rate_limit_accepts_integer_rate():
    assert RateLimit(5, 2) == RateLimit(5, 2.0)


@pytest.mark.parametrize("flag, expected", [("false", False), ("true", True), (0, False), (True, True)])
def test_restrict_outbound_is_parsed_as_boolean(config_factory, flag, expected):
    assert config_factory(restrict_outbound=flag).restrict_outbound is expected


def test_empty_listen_address_is_kept():
    assert Configuration("", 12000).listen_address == ""


def test_owned_domains_get_address_sets_without_explicit_addresses():
    config = Configuration("127.0.0.1", 12000, owner_of_domain={"Solo.test": "ACME"})
    assert config.addresses_for_domain("solo.test") == frozenset()
    with pytest.raises(TypeError):
        config.addresses_of_domain["other.test"] = frozenset()  # type: ignore[index]
