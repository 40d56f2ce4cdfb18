"""Validation of the hostnames and IP addresses a certificate is requested for."""

import ipaddress
import re
from collections.abc import Iterable

from devca.lib.errors import InvalidIdentifierError

_LABEL = r"[0-9a-z](?:[0-9a-z_-]*[0-9a-z])?"
HOSTNAME_RE = re.compile(rf"(?:\*\.)?{_LABEL}(?:\.{_LABEL})*", re.IGNORECASE | re.ASCII)


def parse_ip(name: str) -> ipaddress.IPv4Address | ipaddress.IPv6Address | None:
    """Return the address for an IP literal, or None.

    Scoped IPv6 addresses (``fe80::1%eth0``) cannot go in a SAN and are rejected.
    """
    try:
        address = ipaddress.ip_address(name)
    except ValueError:
        return None
    if isinstance(address, ipaddress.IPv6Address) and address.scope_id:
        return None
    return address


def is_valid_identifier(name: str) -> bool:
    """Return True for IP literals and (optionally wildcard) hostnames."""
    if parse_ip(name) is not None:
        return True
    return HOSTNAME_RE.fullmatch(name) is not None


def validate_identifiers(names: Iterable[str]) -> tuple[str, ...]:
    """Check every name before anything is issued.

    Raises:
        InvalidIdentifierError: For the first name that is not acceptable
    """
    validated = tuple(names)
    for name in validated:
        if not is_valid_identifier(name):
            raise InvalidIdentifierError(name)
    return validated
