"""Checks whether the local CA is trusted by the system."""

import logging
from collections.abc import Callable, Sequence

from cryptography import x509

from devca.lib.models import AuthorityRecord
from devca.lib.system_roots import load_system_roots, verify_against_roots

logger = logging.getLogger(__name__)

RootsLoader = Callable[[], Sequence[x509.Certificate]]


class TrustVerifier:
    """Verifies the root CA certificate against the system trust roots.

    System roots are loaded once per process, so after installing the CA
    the check keeps failing until the next run. ``ignore_check_failure``
    is set after an install to accept it without re-querying.
    """

    def __init__(self, authority: AuthorityRecord, roots_loader: RootsLoader = load_system_roots) -> None:
        self.authority = authority
        self.roots_loader = roots_loader
        self.ignore_check_failure = False

    def check(self) -> bool:
        """Return True if the CA verifies; any verification error counts as not trusted."""
        if self.ignore_check_failure:
            return True

        try:
            return verify_against_roots(self.authority.certificate, self.roots_loader())
        except Exception as e:
            logger.debug("CA verification failed: %s", e)
            return False
