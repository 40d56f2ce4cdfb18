"""Test fixtures for devca tests."""

import logging
from pathlib import Path
from unittest.mock import MagicMock

import pytest
from cryptography import x509
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPrivateKey

from devca.lib.cert_utils import (
    generate_private_key,
    serialize_certificate,
    serialize_private_key,
)
from devca.lib.certificate_builder import CertificateBuilder
from devca.lib.config import ROOT_CERT_NAME, ROOT_KEY_NAME, CAConfig, DistinguishedName
from devca.lib.models import AuthorityRecord


@pytest.fixture
def caroot(tmp_path: Path) -> Path:
    """Return CA storage directory that does not exist yet."""
    return tmp_path / "caroot"


@pytest.fixture
def output_dir(tmp_path: Path) -> Path:
    """Return directory for issued leaf certificates."""
    path = tmp_path / "out"
    path.mkdir()
    return path


@pytest.fixture
def ca_config() -> CAConfig:
    """Return test CA configuration with small keys."""
    return CAConfig(
        organizational_unit="tester@testhost",
        root_validity_years=1,
        leaf_validity_days=30,
        root_key_size=2048,  # Faster for tests
        leaf_key_size=2048,
    )


@pytest.fixture
def root_key() -> RSAPrivateKey:
    """Generate RSA private key for Root CA."""
    return generate_private_key(key_size=2048)


@pytest.fixture
def root_dn() -> DistinguishedName:
    """Return test Root CA distinguished name."""
    return DistinguishedName(
        organization="devca development CA",
        organizational_unit="tester@testhost",
        common_name="devca tester@testhost",
    )


@pytest.fixture
def root_cert(root_key: RSAPrivateKey, root_dn: DistinguishedName) -> x509.Certificate:
    """Generate self-signed Root CA certificate."""
    return CertificateBuilder.build_root_ca(
        subject_dn=root_dn,
        private_key=root_key,
        validity_years=1,
    )


@pytest.fixture
def authority(caroot: Path, root_cert: x509.Certificate, root_key: RSAPrivateKey) -> AuthorityRecord:
    """Return an in-memory authority rooted at the caroot fixture."""
    return AuthorityRecord(certificate=root_cert, private_key=root_key, caroot=caroot)


@pytest.fixture
def ca_files_on_disk(caroot: Path, root_cert: x509.Certificate, root_key: RSAPrivateKey) -> Path:
    """Write the root CA pair to caroot and return it.

    Creates:
        {caroot}/rootCA.pem
        {caroot}/rootCA-key.pem
    """
    caroot.mkdir(parents=True, exist_ok=True)
    (caroot / ROOT_CERT_NAME).write_bytes(serialize_certificate(root_cert))
    (caroot / ROOT_KEY_NAME).write_bytes(serialize_private_key(root_key))
    return caroot


@pytest.fixture
def mock_store() -> MagicMock:
    """Return mocked trust store."""
    store = MagicMock()
    store.name = "system"
    return store


@pytest.fixture
def devca_caplog(caplog: pytest.LogCaptureFixture, monkeypatch: pytest.MonkeyPatch) -> pytest.LogCaptureFixture:
    """caplog that also sees records from the non-propagating devca logger."""
    monkeypatch.setattr(logging.getLogger("devca"), "propagate", True)
    caplog.set_level(logging.DEBUG, logger="devca")
    return caplog
