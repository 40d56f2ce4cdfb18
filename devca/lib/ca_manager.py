"""CA manager: runs one devca invocation from start to finish."""

import logging
from collections.abc import Sequence
from pathlib import Path

from devca.lib.authority import AuthorityStore
from devca.lib.config import CAConfig
from devca.lib.identifiers import validate_identifiers
from devca.lib.installer import TrustInstaller
from devca.lib.issuer import CertificateIssuer
from devca.lib.models import AuthorityRecord, LeafCertResult, RunConfig
from devca.lib.system_roots import load_system_roots
from devca.lib.trust_stores import TrustStore
from devca.lib.verifier import RootsLoader, TrustVerifier

logger = logging.getLogger(__name__)


class CAManager:
    """Owns the state of one run: configuration, loaded CA and trust verifier."""

    def __init__(
        self,
        run_config: RunConfig,
        caroot: Path,
        stores: Sequence[TrustStore],
        config: CAConfig | None = None,
        roots_loader: RootsLoader = load_system_roots,
        output_dir: Path | None = None,
    ) -> None:
        """Initialize CA manager for a single run.

        Args:
            run_config: Parsed mode flags and names
            caroot: Directory holding the root CA files
            stores: Trust stores to install into or remove from
            config: Issuer configuration (defaults to CAConfig())
            roots_loader: Source of system trust roots for verification
            output_dir: Where leaf certificates are written (default: current directory)
        """
        self.run_config = run_config
        self.stores = stores
        self.issuer = CertificateIssuer(config or CAConfig())
        self.authority_store = AuthorityStore(caroot, self.issuer)
        self.roots_loader = roots_loader
        self.output_dir = output_dir or Path.cwd()
        self.authority: AuthorityRecord | None = None
        self.verifier: TrustVerifier | None = None

    def run(self) -> LeafCertResult | None:
        """Load the CA, apply the requested mode, then issue a certificate if names were given.

        Returns:
            LeafCertResult when a certificate was issued, None otherwise

        Raises:
            DevCAError: On any fatal condition; nothing is retried or rolled back
        """
        self.authority_store.ensure_storage()
        self.authority = self.authority_store.load_or_create()
        self.verifier = TrustVerifier(self.authority, self.roots_loader)
        installer = TrustInstaller(self.authority, self.verifier, self.stores)

        if self.run_config.install:
            installer.install()
        elif self.run_config.uninstall:
            installer.uninstall()
            return None
        elif not self.verifier.check():
            logger.warning("Warning: the local CA is not installed in the system trust store!")
            logger.warning('Run "devca -install" to avoid verification errors')

        if not self.run_config.identifiers:
            return None

        names = validate_identifiers(self.run_config.identifiers)
        return self.issuer.issue(self.authority, names, self.output_dir)
