#!/usr/bin/env python3
"""Make locally-trusted development certificates."""

import argparse
import os
import sys
from collections.abc import Sequence

from devca.lib.ca_manager import CAManager
from devca.lib.caroot import resolve_caroot, strategy_for_platform
from devca.lib.config import CAROOT_ENV, TRUST_STORES_ENV
from devca.lib.errors import DevCAError
from devca.lib.logging_config import LOGGER
from devca.lib.models import RunConfig
from devca.lib.trust_stores import select_trust_stores

EXAMPLES = f"""\
examples:
  devca -install
      Install the local CA in the system trust store.

  devca example.org
      Generate "example.org.pem" and "example.org-key.pem".

  devca example.com myapp.dev localhost 127.0.0.1 ::1
      Generate "example.com+4.pem" and "example.com+4-key.pem".

  devca '*.example.com'
      Generate "_wildcard.example.com.pem" and "_wildcard.example.com-key.pem".

  devca -uninstall
      Uninstall the local CA (but do not delete it).

Change the CA certificate and key storage location by setting ${CAROOT_ENV}.
Select trust stores with ${TRUST_STORES_ENV} (comma separated: system, nss, java).
"""


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="devca",
        description="A simple zero-config tool to make locally-trusted development certificates.",
        epilog=EXAMPLES,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "-install",
        action="store_true",
        help="install the local root CA in the system trust store",
    )
    parser.add_argument(
        "-uninstall",
        action="store_true",
        help="uninstall the local root CA from the system trust store",
    )
    parser.add_argument(
        "names",
        nargs="*",
        metavar="NAME",
        help="hostnames, wildcard hostnames and IP addresses to certify",
    )
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Run devca once.

    Returns:
        Exit code (0 for success or usage, 1 for failure)
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        run_config = RunConfig(
            install=args.install,
            uninstall=args.uninstall,
            identifiers=tuple(args.names),
        )
        stores = select_trust_stores(os.environ)
        caroot = resolve_caroot(os.environ, strategy_for_platform())

        manager = CAManager(run_config, caroot, stores)
        manager.run()

    except DevCAError as e:
        LOGGER.error("ERROR: %s", e)
        return 1
    except Exception as e:
        LOGGER.error("devca failed: %s", e, exc_info=True)
        return 1

    if not (run_config.install or run_config.uninstall or run_config.identifiers):
        parser.print_help(sys.stderr)
    return 0


if __name__ == "__main__":
    sys.exit(main())
