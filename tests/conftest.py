"""Pytest configuration shared by all suites.

What:
  Make the in-repo source tree importable and provide fixtures that build
  representative configuration snapshots.

Why:
  Tests must run against ``jilterconf/src`` rather than an installed wheel,
  and the environment variables read by the library (file path, log level)
  must not leak from the developer's shell into assertions.

How:
  Prepend the source directory to ``sys.path`` at import time, clear the
  library's environment variables around every test, and expose
  :func:`config_factory` returning a builder with sensible defaults.

Interfaces:
  :func:`clean_environment` (autouse), :func:`config_factory`,
  :func:`sample_config`.
"""

import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_DIR = PROJECT_ROOT / "jilterconf" / "src"
if SRC_DIR.exists():
    sys.path.insert(0, str(SRC_DIR))

import pytest

from jilterconf.config.schema import Configuration, RateLimit


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch: pytest.MonkeyPatch):
    """Remove library environment overrides for the duration of a test."""

    monkeypatch.delenv("JILTERCONF_PATH", raising=False)
    monkeypatch.delenv("JILTERCONF_LOG_LEVEL", raising=False)
    yield


def _make_config(**overrides) -> Configuration:
    values = dict(
        listen_address="192.0.2.10",
        listen_port=2525,
        restrict_outbound=True,
        smtp_server="smtp.example.net",
        email_summary_from="jilter@example.net",
        email_summary_to="ops@example.net,noc@example.net",
        email_full_from=None,
        email_full_to=None,
        owner_of_domain={"example.com": "ACME", "example.org": "GLOBEX", "parked.test": "ACME"},
        addresses_of_domain={"example.com": {"info", "sales"}, "example.org": {"postmaster"}},
        local_addresses={"192.0.2.10", "192.0.2.11"},
        denied={"198.51.100.7"},
        denied_for_spam={"203.0.113.9", "203.0.113.10"},
        allowed_relays={"192.0.2.50"},
        inbound_limits={"ACME": RateLimit(100, 2.5)},
        outbound_limits={"ACME": RateLimit(50, 1.0), "GLOBEX": RateLimit(10, 0.25)},
        relay_limits={},
    )
    values.update(overrides)
    return Configuration(**values)


@pytest.fixture
def config_factory():
    """Return a builder producing configurations with overridable fields."""

    return _make_config


@pytest.fixture
def sample_config() -> Configuration:
    return _make_config()
