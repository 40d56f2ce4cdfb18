"""Data models for local CA operations."""

from dataclasses import dataclass
from pathlib import Path

from cryptography import x509
from cryptography.hazmat.primitives.asymmetric.types import CertificateIssuerPrivateKeyTypes

from devca.lib.config import ROOT_CERT_NAME, ROOT_KEY_NAME
from devca.lib.errors import ConfigurationError


@dataclass(frozen=True)
class AuthorityRecord:
    """Loaded root CA: certificate and private key plus their directory.

    Both halves are always set together; the record is replaced wholesale,
    never mutated.
    """

    certificate: x509.Certificate
    private_key: CertificateIssuerPrivateKeyTypes
    caroot: Path

    @property
    def cert_path(self) -> Path:
        return self.caroot / ROOT_CERT_NAME

    @property
    def key_path(self) -> Path:
        return self.caroot / ROOT_KEY_NAME


@dataclass(frozen=True)
class RunConfig:
    """Parsed command line: mode flags and the names to certify."""

    install: bool = False
    uninstall: bool = False
    identifiers: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if self.install and self.uninstall:
            raise ConfigurationError("you can't set -install and -uninstall at the same time")


@dataclass
class LeafCertResult:
    """Result from leaf certificate issuance.

    Contains file paths, the certified names and the serial number.
    """

    cert_path: Path
    key_path: Path
    names: tuple[str, ...]
    serial_number: str
