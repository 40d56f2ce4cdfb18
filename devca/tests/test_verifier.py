"""Tests for trust verification against system roots."""

import plistlib
import subprocess
from collections.abc import Iterator
from datetime import timedelta
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPrivateKey

from devca.lib import system_roots
from devca.lib.cert_utils import generate_private_key, serialize_certificate
from devca.lib.certificate_builder import CertificateBuilder
from devca.lib.config import DistinguishedName
from devca.lib.models import AuthorityRecord
from devca.lib.system_roots import load_system_roots, verify_against_roots
from devca.lib.verifier import TrustVerifier


@pytest.fixture
def other_root(root_dn: DistinguishedName) -> x509.Certificate:
    """Root with the same subject as root_cert but a different key."""
    return CertificateBuilder.build_root_ca(
        subject_dn=root_dn,
        private_key=generate_private_key(),
        validity_years=1,
    )


class FakeSecurity:
    """Stands in for subprocess.run of the macOS ``security`` tool."""

    def __init__(
        self,
        apple_roots: list[x509.Certificate] | None = None,
        admin_keychain: list[x509.Certificate] | None = None,
        admin_trusted: list[x509.Certificate] | None = None,
    ) -> None:
        self.keychains = {
            system_roots.DARWIN_SYSTEM_ROOTS_KEYCHAIN: apple_roots or [],
            system_roots.DARWIN_ADMIN_KEYCHAIN: admin_keychain or [],
        }
        self.admin_trusted = admin_trusted or []
        self.commands: list[list[str]] = []

    def __call__(self, args: list[str], **kwargs) -> subprocess.CompletedProcess:
        self.commands.append(args)
        if args[1] == "find-certificate":
            pem = b"".join(serialize_certificate(cert) for cert in self.keychains[args[-1]])
            return subprocess.CompletedProcess(args, 0, stdout=pem, stderr=b"")
        if args[1] == "trust-settings-export":
            if not self.admin_trusted:
                return subprocess.CompletedProcess(args, 1, stdout=b"", stderr=b"No Trust Settings were found.")
            trust_list = {cert.fingerprint(hashes.SHA1()).hex().upper(): {} for cert in self.admin_trusted}
            Path(args[-1]).write_bytes(plistlib.dumps({"trustList": trust_list, "trustVersion": 1}))
            return subprocess.CompletedProcess(args, 0, stdout=b"", stderr=b"")
        raise AssertionError(f"unexpected command {args}")


@pytest.fixture
def clear_roots_cache() -> Iterator[None]:
    load_system_roots.cache_clear()
    yield
    load_system_roots.cache_clear()


class TestVerifyAgainstRoots:
    """Tests for verify_against_roots()."""

    def test_anchor_itself_verifies(self, root_cert: x509.Certificate) -> None:
        assert verify_against_roots(root_cert, [root_cert])

    def test_untrusted_root(self, root_cert: x509.Certificate) -> None:
        assert not verify_against_roots(root_cert, [])

    def test_same_subject_different_key(
        self, root_cert: x509.Certificate, other_root: x509.Certificate
    ) -> None:
        assert not verify_against_roots(root_cert, [other_root])

    def test_leaf_issued_by_anchor(self, root_cert: x509.Certificate, root_key: RSAPrivateKey) -> None:
        leaf = CertificateBuilder.build_leaf_certificate(
            subject_dn=DistinguishedName("Org", "Unit"),
            public_key=generate_private_key().public_key(),
            names=["localhost"],
            issuer_cert=root_cert,
            issuer_key=root_key,
            validity_days=30,
        )
        assert verify_against_roots(leaf, [root_cert])

    def test_expired_certificate(self, root_cert: x509.Certificate) -> None:
        later = root_cert.not_valid_after_utc + timedelta(days=1)
        assert not verify_against_roots(root_cert, [root_cert], now=later)


class TestLoadSystemRoots:
    """Tests for load_system_roots()."""

    def test_reads_pem_bundles(
        self, tmp_path: Path, root_cert: x509.Certificate, clear_roots_cache: None
    ) -> None:
        bundle = tmp_path / "bundle.pem"
        bundle.write_bytes(serialize_certificate(root_cert))
        broken = tmp_path / "broken.pem"
        broken.write_bytes(b"junk")

        with patch.object(system_roots, "_openssl_locations", return_value=[bundle, broken, tmp_path / "nope"]):
            roots = load_system_roots("linux")

        assert roots == (root_cert,)

    def test_loaded_once_per_process(self, clear_roots_cache: None) -> None:
        """Second call returns the cached roots even when the bundle changed."""
        locations = MagicMock(return_value=[])
        with patch.object(system_roots, "_openssl_locations", locations):
            load_system_roots("linux")
            load_system_roots("linux")

        locations.assert_called_once()

    def test_windows_reads_only_root_store(self, root_cert: x509.Certificate, clear_roots_cache: None) -> None:
        der = root_cert.public_bytes(serialization.Encoding.DER)
        enum = MagicMock(return_value=[(der, "x509_asn", True), (b"ignored", "pkcs_7_asn", True)])
        with patch.object(system_roots.ssl, "enum_certificates", enum, create=True):
            roots = load_system_roots("win32")

        assert roots == (root_cert,)
        enum.assert_called_once_with("ROOT")

    def test_darwin_apple_roots_are_trusted(self, root_cert: x509.Certificate, clear_roots_cache: None) -> None:
        security = FakeSecurity(apple_roots=[root_cert])
        with patch.object(system_roots.subprocess, "run", side_effect=security):
            roots = load_system_roots("darwin")

        assert roots == (root_cert,)
        assert security.commands[0][:4] == ["security", "find-certificate", "-a", "-p"]

    def test_darwin_admin_keychain_needs_trust_settings(
        self, authority: AuthorityRecord, clear_roots_cache: None
    ) -> None:
        """A CA left in System.keychain after remove-trusted-cert is not trusted."""
        security = FakeSecurity(admin_keychain=[authority.certificate])
        with patch.object(system_roots.subprocess, "run", side_effect=security):
            verifier = TrustVerifier(authority, roots_loader=lambda: load_system_roots("darwin"))
            assert verifier.check() is False

    def test_darwin_admin_trusted_certificate(
        self, authority: AuthorityRecord, clear_roots_cache: None
    ) -> None:
        security = FakeSecurity(admin_keychain=[authority.certificate], admin_trusted=[authority.certificate])
        with patch.object(system_roots.subprocess, "run", side_effect=security):
            verifier = TrustVerifier(authority, roots_loader=lambda: load_system_roots("darwin"))
            assert verifier.check() is True


class TestTrustVerifier:
    """Tests for TrustVerifier.check()."""

    def test_trusted(self, authority: AuthorityRecord) -> None:
        verifier = TrustVerifier(authority, roots_loader=lambda: [authority.certificate])
        assert verifier.check() is True

    def test_not_trusted(self, authority: AuthorityRecord) -> None:
        verifier = TrustVerifier(authority, roots_loader=lambda: [])
        assert verifier.check() is False

    def test_loader_error_counts_as_untrusted(self, authority: AuthorityRecord) -> None:
        loader = MagicMock(side_effect=OSError("boom"))
        verifier = TrustVerifier(authority, roots_loader=loader)
        assert verifier.check() is False

    def test_ignore_check_failure_skips_verification(self, authority: AuthorityRecord) -> None:
        loader = MagicMock(return_value=[])
        verifier = TrustVerifier(authority, roots_loader=loader)
        verifier.ignore_check_failure = True

        assert verifier.check() is True
        loader.assert_not_called()
