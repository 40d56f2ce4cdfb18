"""Trust stores the local CA can be added to: the system store, NSS databases and Java cacerts.

Each store drives the platform's own command-line tool. Failures raise
TrustStoreError and are never retried.
"""

import logging
import os
import shutil
import subprocess
import sys
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from devca.lib.cert_utils import ca_unique_name, serialize_certificate
from devca.lib.config import TRUST_STORES_ENV
from devca.lib.errors import ConfigurationError, TrustStoreError
from devca.lib.models import AuthorityRecord

logger = logging.getLogger(__name__)

SUDO_PROMPT = "Sudo password:"


class TrustStore(Protocol):
    """A place the root CA can be registered as a trust anchor."""

    name: str

    def available(self) -> bool: ...

    def install(self, authority: AuthorityRecord) -> None: ...

    def uninstall(self, authority: AuthorityRecord) -> None: ...


def command_with_sudo(args: Sequence[str]) -> list[str]:
    """Prefix args with sudo unless already root or sudo is not installed."""
    if not hasattr(os, "geteuid") or os.geteuid() == 0 or shutil.which("sudo") is None:
        return list(args)
    return ["sudo", f"--prompt={SUDO_PROMPT}", "--", *args]


def run_command(
    args: Sequence[str],
    description: str,
    input_data: bytes | None = None,
    check: bool = True,
) -> subprocess.CompletedProcess[bytes]:
    """Run a trust store tool and capture its output.

    Raises:
        TrustStoreError: If the tool cannot be started, or exits non-zero and check is True
    """
    try:
        result = subprocess.run(list(args), input=input_data, capture_output=True, check=False)
    except OSError as e:
        raise TrustStoreError(f"{description}: {e}") from e

    if check and result.returncode != 0:
        output = (result.stdout + result.stderr).decode(errors="replace").strip()
        raise TrustStoreError(f"{description} failed (rc={result.returncode}): {output}")
    return result


@dataclass(frozen=True)
class AnchorLayout:
    """Anchor directory of a Linux distribution and the command that rebuilds its bundle."""

    directory: Path
    suffix: str
    refresh_command: tuple[str, ...]


LINUX_ANCHOR_LAYOUTS = (
    AnchorLayout(Path("/etc/pki/ca-trust/source/anchors"), ".pem", ("update-ca-trust", "extract")),
    AnchorLayout(Path("/usr/local/share/ca-certificates"), ".crt", ("update-ca-certificates",)),
    AnchorLayout(Path("/etc/ca-certificates/trust-source/anchors"), ".crt", ("trust", "extract-compat")),
    AnchorLayout(Path("/usr/share/pki/trust/anchors"), ".pem", ("update-ca-certificates",)),
)


class LinuxSystemTrustStore:
    """Distribution CA bundle, via the first anchor directory present."""

    name = "system"

    def __init__(self, layouts: Sequence[AnchorLayout] = LINUX_ANCHOR_LAYOUTS) -> None:
        self.layouts = layouts

    def layout(self) -> AnchorLayout | None:
        for layout in self.layouts:
            if layout.directory.is_dir():
                return layout
        return None

    def available(self) -> bool:
        return self.layout() is not None

    def anchor_path(self, layout: AnchorLayout, authority: AuthorityRecord) -> Path:
        filename = ca_unique_name(authority.certificate).replace(" ", "_")
        return layout.directory / f"{filename}{layout.suffix}"

    def _require_layout(self) -> AnchorLayout:
        layout = self.layout()
        if layout is None:
            raise TrustStoreError(
                "installing to the system store is not supported on this Linux distribution"
            )
        return layout

    def install(self, authority: AuthorityRecord) -> None:
        layout = self._require_layout()
        anchor = self.anchor_path(layout, authority)
        run_command(
            command_with_sudo(["tee", str(anchor)]),
            "failed to copy the CA to the system anchors",
            input_data=serialize_certificate(authority.certificate),
        )
        run_command(command_with_sudo(layout.refresh_command), f"{layout.refresh_command[0]}")

    def uninstall(self, authority: AuthorityRecord) -> None:
        layout = self._require_layout()
        anchor = self.anchor_path(layout, authority)
        run_command(command_with_sudo(["rm", "-f", str(anchor)]), "failed to remove the CA anchor")
        run_command(command_with_sudo(layout.refresh_command), f"{layout.refresh_command[0]}")


class DarwinSystemTrustStore:
    """System keychain, via the ``security`` tool."""

    name = "system"
    keychain = "/Library/Keychains/System.keychain"

    def available(self) -> bool:
        return True

    def install(self, authority: AuthorityRecord) -> None:
        run_command(
            command_with_sudo(
                ["security", "add-trusted-cert", "-d", "-k", self.keychain, str(authority.cert_path)]
            ),
            "security add-trusted-cert",
        )

    def uninstall(self, authority: AuthorityRecord) -> None:
        run_command(
            command_with_sudo(["security", "remove-trusted-cert", "-d", str(authority.cert_path)]),
            "security remove-trusted-cert",
        )


class WindowsSystemTrustStore:
    """Current user's Root store, via ``certutil``."""

    name = "system"

    def available(self) -> bool:
        return True

    def install(self, authority: AuthorityRecord) -> None:
        run_command(
            ["certutil", "-addstore", "-user", "Root", str(authority.cert_path)],
            "certutil -addstore",
        )

    def uninstall(self, authority: AuthorityRecord) -> None:
        serial = f"{authority.certificate.serial_number:x}"
        run_command(["certutil", "-delstore", "-user", "Root", serial], "certutil -delstore")


def system_trust_store(platform: str = sys.platform) -> TrustStore:
    """Select the system store implementation for a ``sys.platform`` value."""
    if platform.startswith("win"):
        return WindowsSystemTrustStore()
    if platform == "darwin":
        return DarwinSystemTrustStore()
    return LinuxSystemTrustStore()


class NSSTrustStore:
    """Firefox and Chrome/Chromium NSS databases, via NSS ``certutil``."""

    name = "nss"

    def __init__(self, home: Path, platform: str = sys.platform, certutil: str | None = None) -> None:
        self.home = home
        self.platform = platform
        self.certutil = certutil if certutil is not None else shutil.which("certutil")

    def profile_dirs(self) -> list[Path]:
        if self.platform.startswith("win"):
            # certutil on PATH is the Windows tool, not NSS
            return []
        candidates = [
            self.home / ".pki" / "nssdb",
            self.home / "snap" / "chromium" / "current" / ".pki" / "nssdb",
        ]
        if self.platform == "darwin":
            patterns = ["Library/Application Support/Firefox/Profiles/*"]
        else:
            patterns = [".mozilla/firefox/*", "snap/firefox/common/.mozilla/firefox/*"]
        for pattern in patterns:
            candidates.extend(sorted(self.home.glob(pattern)))
        return [path for path in candidates if path.is_dir()]

    def databases(self) -> list[str]:
        """Return certutil ``-d`` arguments for every profile with a certificate database."""
        databases = []
        for profile in self.profile_dirs():
            if (profile / "cert9.db").exists():
                databases.append(f"sql:{profile}")
            elif (profile / "cert8.db").exists():
                databases.append(f"dbm:{profile}")
        return databases

    def available(self) -> bool:
        return bool(self.databases())

    def _contains(self, database: str, nickname: str) -> bool:
        result = run_command(
            [self.certutil, "-V", "-d", database, "-u", "L", "-n", nickname],
            "certutil -V",
            check=False,
        )
        return result.returncode == 0

    def install(self, authority: AuthorityRecord) -> None:
        if self.certutil is None:
            logger.warning(
                "Firefox/Chrome databases found but certutil is not available; "
                "install the NSS tools to trust the local CA there"
            )
            return

        databases = self.databases()
        if not databases:
            return

        nickname = ca_unique_name(authority.certificate)
        for database in databases:
            run_command(
                [self.certutil, "-A", "-d", database, "-t", "C,,", "-n", nickname, "-i", str(authority.cert_path)],
                f"certutil -A {database}",
            )
        logger.info("The local CA is now installed in the Firefox and/or Chrome/Chromium trust store")

    def uninstall(self, authority: AuthorityRecord) -> None:
        if self.certutil is None:
            return

        nickname = ca_unique_name(authority.certificate)
        for database in self.databases():
            if not self._contains(database, nickname):
                continue
            run_command([self.certutil, "-D", "-d", database, "-n", nickname], f"certutil -D {database}")


class JavaTrustStore:
    """``cacerts`` keystore of the JDK at JAVA_HOME, via ``keytool``."""

    name = "java"
    store_password = "changeit"

    def __init__(self, java_home: str | None, platform: str = sys.platform) -> None:
        self.java_home = Path(java_home) if java_home else None
        self.platform = platform

    @property
    def keytool(self) -> Path | None:
        if self.java_home is None:
            return None
        executable = "keytool.exe" if self.platform.startswith("win") else "keytool"
        return self.java_home / "bin" / executable

    @property
    def cacerts(self) -> Path | None:
        if self.java_home is None:
            return None
        for relative in ("lib/security/cacerts", "jre/lib/security/cacerts"):
            path = self.java_home / relative
            if path.exists():
                return path
        return None

    def available(self) -> bool:
        return self.keytool is not None and self.keytool.exists() and self.cacerts is not None

    def _command(self, *args: str) -> list[str]:
        cacerts = self.cacerts
        if cacerts is None or self.keytool is None:
            raise TrustStoreError("no Java keytool and cacerts found under JAVA_HOME")
        command = [str(self.keytool), *args, "-keystore", str(cacerts), "-storepass", self.store_password]
        if not os.access(cacerts, os.W_OK):
            return command_with_sudo(command)
        return command

    def install(self, authority: AuthorityRecord) -> None:
        command = self._command(
            "-importcert",
            "-noprompt",
            "-file",
            str(authority.cert_path),
            "-alias",
            ca_unique_name(authority.certificate),
        )
        run_command(command, "keytool -importcert")
        logger.info("The local CA is now installed in Java's trust store")

    def uninstall(self, authority: AuthorityRecord) -> None:
        command = self._command("-delete", "-alias", ca_unique_name(authority.certificate))
        result = run_command(command, "keytool -delete", check=False)
        if result.returncode == 0 or b"does not exist" in result.stdout + result.stderr:
            return
        output = (result.stdout + result.stderr).decode(errors="replace").strip()
        raise TrustStoreError(f"keytool -delete failed (rc={result.returncode}): {output}")


STORE_NAMES = ("system", "nss", "java")


def select_trust_stores(
    environ: Mapping[str, str],
    platform: str = sys.platform,
    home: Path | None = None,
) -> list[TrustStore]:
    """Return the trust stores to act on.

    TRUST_STORES (comma separated subset of system, nss, java) selects
    stores explicitly; otherwise the system store plus every other store
    found on this machine.

    Raises:
        ConfigurationError: If TRUST_STORES names an unknown store
    """
    requested = [name.strip() for name in environ.get(TRUST_STORES_ENV, "").split(",") if name.strip()]
    unknown = [name for name in requested if name not in STORE_NAMES]
    if unknown:
        raise ConfigurationError(
            f"unknown {TRUST_STORES_ENV} value(s) {', '.join(unknown)}; expected {', '.join(STORE_NAMES)}"
        )

    stores: dict[str, TrustStore] = {
        "system": system_trust_store(platform),
        "nss": NSSTrustStore(home if home is not None else Path.home(), platform),
        "java": JavaTrustStore(environ.get("JAVA_HOME"), platform),
    }

    if requested:
        return [stores[name] for name in STORE_NAMES if name in requested]
    return [store for name, store in stores.items() if name == "system" or store.available()]
