"""CAROOT resolution: where the local CA certificate and key live."""

import sys
from collections.abc import Mapping
from pathlib import Path
from typing import Protocol

from devca.lib.config import CAROOT_ENV, TOOL_NAME
from devca.lib.errors import CARootNotFoundError


class CARootStrategy(Protocol):
    """Per-OS-family lookup of the user data directory."""

    def data_dir(self, environ: Mapping[str, str]) -> Path | None:
        """Return the base data directory, or None when it cannot be determined."""
        ...


class WindowsStrategy:
    """Per-user local application data (``%LOCALAPPDATA%``)."""

    def data_dir(self, environ: Mapping[str, str]) -> Path | None:
        local_app_data = environ.get("LOCALAPPDATA", "")
        return Path(local_app_data) if local_app_data else None


class DarwinStrategy:
    """``$HOME/Library/Application Support``."""

    def data_dir(self, environ: Mapping[str, str]) -> Path | None:
        home = environ.get("HOME", "")
        if not home:
            return None
        return Path(home) / "Library" / "Application Support"


class UnixStrategy:
    """XDG data home, falling back to ``$HOME/.local/share``."""

    def data_dir(self, environ: Mapping[str, str]) -> Path | None:
        xdg_data_home = environ.get("XDG_DATA_HOME", "")
        if xdg_data_home:
            return Path(xdg_data_home)
        home = environ.get("HOME", "")
        if not home:
            return None
        return Path(home) / ".local" / "share"


def strategy_for_platform(platform: str = sys.platform) -> CARootStrategy:
    """Select the data directory strategy for a ``sys.platform`` value."""
    if platform.startswith("win"):
        return WindowsStrategy()
    if platform == "darwin":
        return DarwinStrategy()
    return UnixStrategy()


def resolve_caroot(environ: Mapping[str, str], strategy: CARootStrategy) -> Path:
    """Return the CA storage directory.

    A non-empty CAROOT is returned as given, without checking that it exists.
    Otherwise the strategy's data directory plus the tool subdirectory is used.

    Raises:
        CARootNotFoundError: If neither CAROOT nor a default location is available
    """
    override = environ.get(CAROOT_ENV, "")
    if override:
        return Path(override)

    base = strategy.data_dir(environ)
    if base is None:
        raise CARootNotFoundError(
            f"failed to find the default CA location, set one as the {CAROOT_ENV} env var"
        )
    return base / TOOL_NAME
