"""Certificate issuer: creates the root CA and leaf certificates signed by it."""

import logging
from collections.abc import Sequence
from pathlib import Path

from cryptography import x509
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPrivateKey

from devca.lib.cert_utils import (
    generate_private_key,
    get_certificate_serial_hex,
    leaf_file_base,
    serialize_certificate,
    write_private_key_file,
)
from devca.lib.certificate_builder import CertificateBuilder
from devca.lib.config import CAConfig, DistinguishedName
from devca.lib.errors import IssuanceError
from devca.lib.models import AuthorityRecord, LeafCertResult

logger = logging.getLogger(__name__)


class CertificateIssuer:
    """Generates the local root CA and issues development certificates."""

    def __init__(self, config: CAConfig) -> None:
        """Initialize issuer with configuration.

        Args:
            config: CA configuration with validity periods, key sizes and names
        """
        self.config = config

    def generate_authority(self) -> tuple[x509.Certificate, RSAPrivateKey]:
        """Generate a new self-signed root CA.

        Returns:
            Tuple of (certificate, private_key)
        """
        root_key = generate_private_key(self.config.root_key_size)
        root_dn = DistinguishedName(
            organization=self.config.root_organization,
            organizational_unit=self.config.organizational_unit,
            common_name=self.config.root_common_name,
        )
        root_cert = CertificateBuilder.build_root_ca(
            subject_dn=root_dn,
            private_key=root_key,
            validity_years=self.config.root_validity_years,
        )
        return root_cert, root_key

    def issue(
        self,
        authority: AuthorityRecord,
        names: Sequence[str],
        output_dir: Path,
    ) -> LeafCertResult:
        """Issue a certificate covering exactly the given names.

        Writes ``<base>.pem`` and ``<base>-key.pem`` to output_dir, where the
        base is derived from the names (see leaf_file_base).

        Args:
            authority: Loaded root CA used for signing
            names: Already validated hostnames and IP literals
            output_dir: Directory for the certificate and key files

        Returns:
            LeafCertResult with file paths and serial number

        Raises:
            IssuanceError: If the files cannot be written
        """
        leaf_key = generate_private_key(self.config.leaf_key_size)
        leaf_dn = DistinguishedName(
            organization=self.config.leaf_organization,
            organizational_unit=self.config.organizational_unit,
        )
        leaf_cert = CertificateBuilder.build_leaf_certificate(
            subject_dn=leaf_dn,
            public_key=leaf_key.public_key(),
            names=names,
            issuer_cert=authority.certificate,
            issuer_key=authority.private_key,
            validity_days=self.config.leaf_validity_days,
        )

        base = leaf_file_base(names)
        cert_path = output_dir / f"{base}.pem"
        key_path = output_dir / f"{base}-key.pem"

        try:
            cert_path.write_bytes(serialize_certificate(leaf_cert))
            cert_path.chmod(0o644)
            write_private_key_file(key_path, leaf_key, 0o600, replace=True)
        except OSError as e:
            raise IssuanceError(f"failed to save certificate: {e}") from e

        logger.info("Created a new certificate valid for the following names:")
        for name in names:
            logger.info(" - %r", name)

        for name in names:
            if name.startswith("*."):
                logger.info(
                    "Reminder: X.509 wildcards only go one level deep, so this won't match a.b.%s",
                    name[2:],
                )
                break

        logger.info("The certificate is at %r and the key at %r", str(cert_path), str(key_path))

        return LeafCertResult(
            cert_path=cert_path,
            key_path=key_path,
            names=tuple(names),
            serial_number=get_certificate_serial_hex(leaf_cert),
        )
