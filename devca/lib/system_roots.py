"""System trust roots, loaded once per process."""

import functools
import logging
import plistlib
import ssl
import subprocess
import sys
import tempfile
from collections.abc import Iterable
from datetime import datetime, timezone
from pathlib import Path

from cryptography import x509
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes

logger = logging.getLogger(__name__)

# Bundle locations used by common Linux and BSD distributions
CERT_BUNDLE_FILES = (
    "/etc/ssl/certs/ca-certificates.crt",
    "/etc/pki/tls/certs/ca-bundle.crt",
    "/etc/ssl/ca-bundle.pem",
    "/etc/pki/tls/cacert.pem",
    "/etc/pki/ca-trust/extracted/pem/tls-ca-bundle.pem",
    "/etc/ssl/cert.pem",
    "/usr/local/share/certs/ca-root-nss.crt",
)

# Apple roots are trusted as shipped; System.keychain entries only with admin trust settings
DARWIN_SYSTEM_ROOTS_KEYCHAIN = "/System/Library/Keychains/SystemRootCertificates.keychain"
DARWIN_ADMIN_KEYCHAIN = "/Library/Keychains/System.keychain"


def _parse_pem_bundle(data: bytes, source: str) -> list[x509.Certificate]:
    try:
        return x509.load_pem_x509_certificates(data)
    except ValueError as e:
        logger.debug("Skipping unparsable roots in %s: %s", source, e)
        return []


def _read_bundle_files(paths: Iterable[Path]) -> list[x509.Certificate]:
    roots: list[x509.Certificate] = []
    for path in paths:
        try:
            data = path.read_bytes()
        except OSError:
            continue
        roots.extend(_parse_pem_bundle(data, str(path)))
    return roots


def _openssl_locations() -> list[Path]:
    paths = ssl.get_default_verify_paths()
    locations = [Path(p) for p in CERT_BUNDLE_FILES]
    if paths.cafile:
        locations.insert(0, Path(paths.cafile))
    if paths.capath and Path(paths.capath).is_dir():
        locations.extend(sorted(p for p in Path(paths.capath).iterdir() if p.is_file()))
    return locations


def _windows_roots() -> list[x509.Certificate]:
    roots: list[x509.Certificate] = []
    for cert_bytes, encoding, _trust in ssl.enum_certificates("ROOT"):  # type: ignore[attr-defined]
        if encoding != "x509_asn":
            continue
        try:
            roots.append(x509.load_der_x509_certificate(cert_bytes))
        except ValueError:
            continue
    return roots


def _keychain_certificates(keychain: str) -> list[x509.Certificate]:
    result = subprocess.run(
        ["security", "find-certificate", "-a", "-p", keychain],
        capture_output=True,
        check=False,
    )
    return _parse_pem_bundle(result.stdout, keychain)


def _darwin_admin_trusted() -> set[str]:
    """Return SHA-1 fingerprints (upper-case hex) that carry admin trust settings.

    ``security remove-trusted-cert -d`` drops the trust settings but leaves
    the certificate in System.keychain, so keychain membership alone is not trust.
    """
    with tempfile.TemporaryDirectory() as tmp:
        export_path = Path(tmp) / "trust-settings.plist"
        result = subprocess.run(
            ["security", "trust-settings-export", "-d", str(export_path)],
            capture_output=True,
            check=False,
        )
        # Exits non-zero when the admin domain has no trust settings at all
        if result.returncode != 0 or not export_path.exists():
            return set()
        try:
            with export_path.open("rb") as f:
                settings = plistlib.load(f)
        except (OSError, ValueError) as e:
            logger.debug("Skipping unreadable trust settings: %s", e)
            return set()
    return {key.upper() for key in settings.get("trustList", {})}


def _darwin_roots() -> list[x509.Certificate]:
    roots = _keychain_certificates(DARWIN_SYSTEM_ROOTS_KEYCHAIN)
    trusted = _darwin_admin_trusted()
    roots.extend(
        cert
        for cert in _keychain_certificates(DARWIN_ADMIN_KEYCHAIN)
        if cert.fingerprint(hashes.SHA1()).hex().upper() in trusted
    )
    return roots


@functools.lru_cache(maxsize=None)
def load_system_roots(platform: str = sys.platform) -> tuple[x509.Certificate, ...]:
    """Return the system trust anchors.

    Cached for the life of the process, so a root added by this process is
    not seen until the next run.
    """
    if platform.startswith("win"):
        roots = _windows_roots()
    elif platform == "darwin":
        roots = _darwin_roots()
    else:
        roots = _read_bundle_files(_openssl_locations())
    logger.debug("Loaded %d system roots", len(roots))
    return tuple(roots)


def verify_against_roots(
    cert: x509.Certificate,
    roots: Iterable[x509.Certificate],
    now: datetime | None = None,
) -> bool:
    """Return True if cert is currently valid and is, or is issued by, a trust anchor."""
    now = now or datetime.now(timezone.utc)
    if not cert.not_valid_before_utc <= now <= cert.not_valid_after_utc:
        return False

    candidates = [root for root in roots if root.subject == cert.issuer]
    if cert in candidates:
        return True

    for root in candidates:
        try:
            cert.verify_directly_issued_by(root)
            return True
        except (ValueError, TypeError, InvalidSignature):
            continue
    return False
