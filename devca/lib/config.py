"""CA configuration dataclasses and environment variable names."""

import getpass
import socket
from dataclasses import dataclass, field

from cryptography import x509
from cryptography.x509 import oid

CAROOT_ENV = "CAROOT"
TRUST_STORES_ENV = "TRUST_STORES"
LOG_LEVEL_ENV = "DEVCA_LOG_LEVEL"

TOOL_NAME = "devca"
ROOT_CERT_NAME = "rootCA.pem"
ROOT_KEY_NAME = "rootCA-key.pem"


def user_and_hostname() -> str:
    """Return ``user@host`` used to tell apart CAs created on different machines."""
    try:
        user = getpass.getuser()
    except (KeyError, OSError):
        user = "unknown"
    return f"{user}@{socket.gethostname()}"


@dataclass
class CAConfig:
    """Issuer configuration for the local development CA."""

    root_organization: str = f"{TOOL_NAME} development CA"
    leaf_organization: str = f"{TOOL_NAME} development certificate"
    organizational_unit: str = field(default_factory=user_and_hostname)
    root_validity_years: int = 10
    leaf_validity_days: int = 825
    root_key_size: int = 3072
    leaf_key_size: int = 2048

    @property
    def root_common_name(self) -> str:
        return f"{TOOL_NAME} {self.organizational_unit}"


@dataclass
class DistinguishedName:
    """X.509 Subject Distinguished Name."""

    organization: str
    organizational_unit: str
    common_name: str | None = None

    def to_x509_name(self) -> x509.Name:
        """Convert to cryptography x509.Name for certificate generation."""
        attributes = [
            x509.NameAttribute(oid.NameOID.ORGANIZATION_NAME, self.organization),
            x509.NameAttribute(oid.NameOID.ORGANIZATIONAL_UNIT_NAME, self.organizational_unit),
        ]
        if self.common_name:
            attributes.append(x509.NameAttribute(oid.NameOID.COMMON_NAME, self.common_name))
        return x509.Name(attributes)
