"""On-disk format versions recognised by the codec.

Each historical layout of the properties file differs in exactly three ways:
the key holding the listen address, whether the listen port is stored at all,
and the prefix naming the owner-of-domain category. Those differences are
captured as data so the decoder performs a single lookup instead of comparing
version strings at every branch.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional, Tuple


DEFAULT_LISTEN_PORT = 12000
LISTEN_PORT_KEY = "listenPort"


@dataclass(frozen=True)
class FormatVersion:
    """Key layout used by one version of the properties file."""

    tag: str
    listen_key: str
    port_key: Optional[str]
    owner_prefix: str


VERSION_1 = FormatVersion(
    tag="2007-05-13",
    listen_key="primaryIP",
    port_key=None,
    owner_prefix="domainPackages",
)
VERSION_2 = FormatVersion(
    tag="2009-12-15",
    listen_key="primaryIP",
    port_key=None,
    owner_prefix="domainBusinesses",
)
VERSION_3 = FormatVersion(
    tag="2013-07-13",
    listen_key="listenIP",
    port_key=LISTEN_PORT_KEY,
    owner_prefix="domainBusinesses",
)

CURRENT = VERSION_3
CURRENT_VERSION = CURRENT.tag

ALL_VERSIONS: Tuple[FormatVersion, ...] = (VERSION_1, VERSION_2, VERSION_3)
_BY_TAG: Dict[str, FormatVersion] = {version.tag: version for version in ALL_VERSIONS}


def lookup(tag: Optional[str]) -> Optional[FormatVersion]:
    """Return the version record for ``tag`` or ``None`` when unknown."""

    if tag is None:
        return None
    return _BY_TAG.get(tag.strip())
