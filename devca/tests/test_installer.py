"""Tests for TrustInstaller - idempotent install and unconditional uninstall."""

from pathlib import Path
from unittest.mock import MagicMock, call

import pytest
from cryptography import x509

from devca.lib.errors import InstallVerificationError, TrustStoreError
from devca.lib.installer import TrustInstaller
from devca.lib.models import AuthorityRecord
from devca.lib.verifier import TrustVerifier


class FakeSystemStore:
    """Trust store whose contents outlive a single run, like the real system store."""

    name = "system"

    def __init__(self) -> None:
        self.anchors: list[x509.Certificate] = []
        self.install_calls = 0
        self.uninstall_calls = 0

    def available(self) -> bool:
        return True

    def install(self, authority: AuthorityRecord) -> None:
        self.install_calls += 1
        self.anchors.append(authority.certificate)

    def uninstall(self, authority: AuthorityRecord) -> None:
        self.uninstall_calls += 1
        self.anchors = [cert for cert in self.anchors if cert != authority.certificate]

    def snapshot(self) -> list[x509.Certificate]:
        return list(self.anchors)


def fresh_run(authority: AuthorityRecord, store: FakeSystemStore) -> TrustInstaller:
    """Build installer and verifier as a new process would: roots read once, at start."""
    roots = store.snapshot()
    verifier = TrustVerifier(authority, roots_loader=lambda: roots)
    return TrustInstaller(authority, verifier, [store])


class TestInstall:
    """Tests for install()."""

    def test_already_trusted_is_noop(self, authority: AuthorityRecord, mock_store: MagicMock) -> None:
        verifier = TrustVerifier(authority, roots_loader=lambda: [authority.certificate])
        installer = TrustInstaller(authority, verifier, [mock_store])

        assert installer.install() is False
        mock_store.install.assert_not_called()
        assert verifier.ignore_check_failure is False

    def test_installs_into_every_store(self, authority: AuthorityRecord) -> None:
        stores = [MagicMock(), MagicMock()]
        verifier = TrustVerifier(authority, roots_loader=lambda: [])
        installer = TrustInstaller(authority, verifier, stores)

        assert installer.install() is True
        for store in stores:
            store.install.assert_called_once_with(authority)

    def test_sets_check_override_after_install(self, authority: AuthorityRecord, mock_store: MagicMock) -> None:
        """Roots are cached per process; the fresh install is accepted without re-querying."""
        verifier = TrustVerifier(authority, roots_loader=lambda: [])
        TrustInstaller(authority, verifier, [mock_store]).install()

        assert verifier.ignore_check_failure is True
        assert verifier.check() is True

    def test_store_error_propagates_without_override(
        self, authority: AuthorityRecord, mock_store: MagicMock
    ) -> None:
        mock_store.install.side_effect = TrustStoreError("update-ca-certificates failed")
        verifier = TrustVerifier(authority, roots_loader=lambda: [])

        with pytest.raises(TrustStoreError):
            TrustInstaller(authority, verifier, [mock_store]).install()
        assert verifier.ignore_check_failure is False

    def test_failed_post_install_check_is_fatal(self, authority: AuthorityRecord, mock_store: MagicMock) -> None:
        verifier = MagicMock()
        verifier.check.return_value = False

        with pytest.raises(InstallVerificationError, match="Please report the issue"):
            TrustInstaller(authority, verifier, [mock_store]).install()
        assert verifier.check.call_count == 2

    def test_second_run_performs_no_mutation(self, authority: AuthorityRecord) -> None:
        store = FakeSystemStore()

        assert fresh_run(authority, store).install() is True
        assert fresh_run(authority, store).install() is False
        assert store.install_calls == 1


class TestUninstall:
    """Tests for uninstall()."""

    def test_uninstall_does_not_consult_verifier(
        self, authority: AuthorityRecord, mock_store: MagicMock
    ) -> None:
        verifier = MagicMock()
        TrustInstaller(authority, verifier, [mock_store]).uninstall()

        mock_store.uninstall.assert_called_once_with(authority)
        verifier.check.assert_not_called()

    def test_uninstall_runs_when_not_installed(self, authority: AuthorityRecord) -> None:
        store = FakeSystemStore()
        fresh_run(authority, store).uninstall()
        assert store.uninstall_calls == 1

    def test_uninstall_every_store_in_order(self, authority: AuthorityRecord) -> None:
        parent = MagicMock()
        stores = [parent.first, parent.second]
        TrustInstaller(authority, MagicMock(), stores).uninstall()

        assert parent.mock_calls == [call.first.uninstall(authority), call.second.uninstall(authority)]

    def test_uninstall_error_propagates(self, authority: AuthorityRecord, mock_store: MagicMock) -> None:
        mock_store.uninstall.side_effect = TrustStoreError("certutil -delstore failed")
        with pytest.raises(TrustStoreError):
            TrustInstaller(authority, MagicMock(), [mock_store]).uninstall()

    def test_fresh_check_after_uninstall_reports_untrusted(self, authority: AuthorityRecord) -> None:
        store = FakeSystemStore()
        fresh_run(authority, store).install()
        fresh_run(authority, store).uninstall()

        verifier = TrustVerifier(authority, roots_loader=store.snapshot)
        assert verifier.check() is False

    def test_uninstall_keeps_authority_files(self, ca_files_on_disk: Path, authority: AuthorityRecord) -> None:
        store = FakeSystemStore()
        fresh_run(authority, store).uninstall()

        assert authority.cert_path.exists()
        assert authority.key_path.exists()
