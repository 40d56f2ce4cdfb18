"""Certificate builder for X.509 certificate construction."""

from collections.abc import Sequence
from datetime import datetime, timedelta, timezone

from cryptography import x509
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPrivateKey, RSAPublicKey
from cryptography.hazmat.primitives.asymmetric.types import CertificateIssuerPrivateKeyTypes
from cryptography.x509.oid import ExtendedKeyUsageOID

from devca.lib.cert_utils import generate_serial_number
from devca.lib.config import DistinguishedName
from devca.lib.identifiers import parse_ip


def subject_alternative_names(names: Sequence[str]) -> list[x509.GeneralName]:
    """Map names to SAN entries: IP literals as IPAddress, everything else as DNSName."""
    general_names: list[x509.GeneralName] = []
    for name in names:
        ip = parse_ip(name)
        if ip is not None:
            general_names.append(x509.IPAddress(ip))
        else:
            general_names.append(x509.DNSName(name))
    return general_names


class CertificateBuilder:
    """Builds X.509 certificates for the local root CA and its leaf certificates."""

    @staticmethod
    def build_root_ca(
        subject_dn: DistinguishedName,
        private_key: RSAPrivateKey,
        validity_years: int,
    ) -> x509.Certificate:
        """Build self-signed Root CA certificate.

        Args:
            subject_dn: Distinguished name for certificate subject
            private_key: RSA private key for signing
            validity_years: Certificate validity period in years

        Returns:
            Self-signed X.509 certificate with CA extensions, limited to signing leaves
        """
        subject = subject_dn.to_x509_name()
        not_before = datetime.now(timezone.utc)
        not_after = not_before + timedelta(days=validity_years * 365)

        builder = (
            x509.CertificateBuilder()
            .subject_name(subject)
            .issuer_name(subject)
            .public_key(private_key.public_key())
            .serial_number(generate_serial_number())
            .not_valid_before(not_before)
            .not_valid_after(not_after)
            .add_extension(
                x509.BasicConstraints(ca=True, path_length=0),
                critical=True,
            )
            .add_extension(
                x509.KeyUsage(
                    digital_signature=False,
                    content_commitment=False,
                    key_encipherment=False,
                    data_encipherment=False,
                    key_agreement=False,
                    key_cert_sign=True,
                    crl_sign=False,
                    encipher_only=False,
                    decipher_only=False,
                ),
                critical=True,
            )
            .add_extension(
                x509.SubjectKeyIdentifier.from_public_key(private_key.public_key()),
                critical=False,
            )
        )

        return builder.sign(private_key, hashes.SHA256())

    @staticmethod
    def build_leaf_certificate(
        subject_dn: DistinguishedName,
        public_key: RSAPublicKey,
        names: Sequence[str],
        issuer_cert: x509.Certificate,
        issuer_key: CertificateIssuerPrivateKeyTypes,
        validity_days: int,
    ) -> x509.Certificate:
        """Build a server certificate for the given names, signed by the root CA.

        Validity never extends past the issuer's own expiry.

        Args:
            subject_dn: Distinguished name for certificate subject
            public_key: Leaf public key
            names: Hostnames, wildcard hostnames and IP literals for the SAN extension
            issuer_cert: Root CA certificate (issuer)
            issuer_key: Root CA private key for signing
            validity_days: Certificate validity period in days

        Returns:
            X.509 end-entity certificate for TLS server authentication
        """
        not_before = datetime.now(timezone.utc)
        not_after = min(
            not_before + timedelta(days=validity_days),
            issuer_cert.not_valid_after_utc,
        )

        builder = (
            x509.CertificateBuilder()
            .subject_name(subject_dn.to_x509_name())
            .issuer_name(issuer_cert.subject)
            .public_key(public_key)
            .serial_number(generate_serial_number())
            .not_valid_before(not_before)
            .not_valid_after(not_after)
            .add_extension(
                x509.BasicConstraints(ca=False, path_length=None),
                critical=True,
            )
            .add_extension(
                x509.KeyUsage(
                    digital_signature=True,
                    content_commitment=False,
                    key_encipherment=True,
                    data_encipherment=False,
                    key_agreement=False,
                    key_cert_sign=False,
                    crl_sign=False,
                    encipher_only=False,
                    decipher_only=False,
                ),
                critical=True,
            )
            .add_extension(
                x509.ExtendedKeyUsage([ExtendedKeyUsageOID.SERVER_AUTH]),
                critical=False,
            )
            .add_extension(
                x509.SubjectAlternativeName(subject_alternative_names(names)),
                critical=False,
            )
            .add_extension(
                x509.AuthorityKeyIdentifier.from_issuer_public_key(issuer_cert.public_key()),
                critical=False,
            )
        )

        return builder.sign(issuer_key, hashes.SHA256())
