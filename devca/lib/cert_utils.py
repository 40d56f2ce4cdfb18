"""Certificate utility functions for key generation, serialization, and naming."""

import os
import uuid
from collections.abc import Sequence
from pathlib import Path

from cryptography import x509
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec, rsa
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPrivateKey
from cryptography.hazmat.primitives.asymmetric.types import CertificateIssuerPrivateKeyTypes

from devca.lib.config import TOOL_NAME

SUPPORTED_CA_KEY_TYPES = (rsa.RSAPrivateKey, ec.EllipticCurvePrivateKey)


def generate_private_key(key_size: int = 2048) -> RSAPrivateKey:
    """Generate RSA private key with specified size."""
    return rsa.generate_private_key(
        public_exponent=65537,
        key_size=key_size,
    )


def serialize_private_key(key: CertificateIssuerPrivateKeyTypes) -> bytes:
    """Serialize private key to PEM format (PKCS8, no encryption)."""
    return key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )


def write_private_key_file(path: Path, key: CertificateIssuerPrivateKeyTypes, mode: int, replace: bool = False) -> None:
    """Write key as PEM to a file created with mode, so it is never readable by others.

    Without replace an existing file is an error (FileExistsError).
    """
    if replace:
        path.unlink(missing_ok=True)
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, mode)
    with os.fdopen(fd, "wb") as f:
        f.write(serialize_private_key(key))


def deserialize_private_key(pem_data: bytes) -> CertificateIssuerPrivateKeyTypes:
    """Deserialize a CA private key (RSA or ECDSA) from PEM bytes."""
    key = serialization.load_pem_private_key(pem_data, password=None)
    if not isinstance(key, SUPPORTED_CA_KEY_TYPES):
        raise ValueError(f"unsupported CA key type: {type(key).__name__}")
    return key


def serialize_certificate(cert: x509.Certificate) -> bytes:
    """Serialize certificate to PEM format."""
    return cert.public_bytes(serialization.Encoding.PEM)


def deserialize_certificate(pem_data: bytes) -> x509.Certificate:
    """Deserialize certificate from PEM bytes."""
    return x509.load_pem_x509_certificate(pem_data)


def generate_serial_number() -> int:
    """Generate a 128-bit random certificate serial number from UUID4."""
    return uuid.uuid4().int


def get_certificate_serial_hex(cert: x509.Certificate) -> str:
    """Return certificate serial number as hex with colons (e.g., 3A:F2:B1:...)."""
    serial_hex = f"{cert.serial_number:X}"
    if len(serial_hex) % 2 != 0:
        serial_hex = "0" + serial_hex
    return ":".join(serial_hex[i : i + 2] for i in range(0, len(serial_hex), 2))


def key_matches_certificate(key: CertificateIssuerPrivateKeyTypes, cert: x509.Certificate) -> bool:
    """Return True if the private key belongs to the certificate's public key."""
    encoding = serialization.Encoding.DER
    spki = serialization.PublicFormat.SubjectPublicKeyInfo
    key_der = key.public_key().public_bytes(encoding, spki)
    return key_der == cert.public_key().public_bytes(encoding, spki)


def ca_unique_name(cert: x509.Certificate) -> str:
    """Name used for the CA in trust stores; the serial keeps CAs from different machines apart."""
    return f"{TOOL_NAME} development CA {cert.serial_number}"


def leaf_file_base(names: Sequence[str]) -> str:
    """Derive output file name stem from the certified names.

    ``*.example.com`` becomes ``_wildcard.example.com``; IPv6 colons become
    underscores; ``+N`` is appended when N more names follow the first.
    """
    if not names:
        raise ValueError("at least one name is required")
    base = names[0].replace(":", "_").replace("*", "_wildcard")
    if len(names) > 1:
        base += f"+{len(names) - 1}"
    return base
