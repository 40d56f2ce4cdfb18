"""Authority state: CAROOT directory and the root CA key material stored in it."""

import logging
from pathlib import Path

from devca.lib.cert_utils import (
    deserialize_certificate,
    deserialize_private_key,
    key_matches_certificate,
    serialize_certificate,
    write_private_key_file,
)
from devca.lib.config import ROOT_CERT_NAME, ROOT_KEY_NAME
from devca.lib.errors import AuthorityLoadError, StorageError
from devca.lib.issuer import CertificateIssuer
from devca.lib.models import AuthorityRecord

logger = logging.getLogger(__name__)


class AuthorityStore:
    """Loads the root CA from CAROOT, creating it on first use.

    An existing CA is never regenerated: certificates already issued and
    trusted elsewhere depend on it.
    """

    def __init__(self, caroot: Path, issuer: CertificateIssuer) -> None:
        self.caroot = caroot.absolute()
        self.issuer = issuer

    @property
    def cert_path(self) -> Path:
        return self.caroot / ROOT_CERT_NAME

    @property
    def key_path(self) -> Path:
        return self.caroot / ROOT_KEY_NAME

    def ensure_storage(self) -> None:
        """Create CAROOT and its parents if missing.

        Raises:
            StorageError: If the directory cannot be created
        """
        try:
            self.caroot.mkdir(mode=0o755, parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(f"failed to create the CAROOT: {e}") from e

    def load_or_create(self) -> AuthorityRecord:
        """Return the root CA from disk, generating and saving one if none exists.

        Raises:
            AuthorityLoadError: If only one of the two files exists, or they
                cannot be parsed, or the key does not match the certificate
            StorageError: If a new CA cannot be written
        """
        cert_exists = self.cert_path.exists()
        key_exists = self.key_path.exists()

        if not cert_exists and not key_exists:
            return self._create()

        if not cert_exists:
            raise AuthorityLoadError(
                f"found the CA key at {self.key_path} but not the certificate {self.cert_path}"
            )
        if not key_exists:
            raise AuthorityLoadError(
                f"found the CA certificate at {self.cert_path} but not the key {self.key_path}"
            )

        authority = self._load()
        logger.info("Using the local CA at %r", str(self.caroot))
        return authority

    def _load(self) -> AuthorityRecord:
        try:
            certificate = deserialize_certificate(self.cert_path.read_bytes())
        except (OSError, ValueError) as e:
            raise AuthorityLoadError(f"failed to read the CA certificate: {e}") from e

        try:
            private_key = deserialize_private_key(self.key_path.read_bytes())
        except (OSError, ValueError, TypeError) as e:
            raise AuthorityLoadError(f"failed to read the CA key: {e}") from e

        if not key_matches_certificate(private_key, certificate):
            raise AuthorityLoadError(
                f"the CA key at {self.key_path} does not match the certificate {self.cert_path}"
            )

        return AuthorityRecord(certificate=certificate, private_key=private_key, caroot=self.caroot)

    def _create(self) -> AuthorityRecord:
        certificate, private_key = self.issuer.generate_authority()

        written: list[Path] = []
        try:
            write_private_key_file(self.key_path, private_key, 0o400)
            written.append(self.key_path)
            self.cert_path.write_bytes(serialize_certificate(certificate))
            written.append(self.cert_path)
            self.cert_path.chmod(0o644)
        except OSError as e:
            # A lone file would make every later run fail the pair check
            self._discard(written)
            raise StorageError(f"failed to save the CA: {e}") from e

        logger.info("Created a new local CA at %r", str(self.caroot))
        return AuthorityRecord(certificate=certificate, private_key=private_key, caroot=self.caroot)

    @staticmethod
    def _discard(paths: list[Path]) -> None:
        for path in paths:
            try:
                path.unlink(missing_ok=True)
            except OSError as e:
                logger.error("Failed to remove partially written %s: %s", path, e)
