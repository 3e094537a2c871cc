"""
Command-line entry point.

    navigator-opvault serve            HTTP host on loopback
    navigator-opvault native           native-messaging host on stdio
    navigator-opvault list VAULT       print item titles (prompts for password)
"""
import sys
import asyncio
import getpass
import argparse
import logging

from .version import __version__
from .vault import VaultConfig, VaultError, get_items


def _list_vault(vault_path: str) -> int:
    password = getpass.getpass("Master password: ")
    try:
        items = asyncio.run(get_items(vault_path, password))
    except VaultError as err:
        print(f"error: {err.public_message}", file=sys.stderr)
        return 1
    for item in items:
        overview = item["overview"]
        print(
            f"{item['uuid']}  {item['categoryName']:<16}  "
            f"{overview.get('title') or '(untitled)'}  {overview.get('url') or ''}"
        )
    return 0


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(
        prog="navigator-opvault",
        description="Serve credentials from an OPVault container to local clients",
    )
    parser.add_argument(
        "--version", action="version", version=f"navigator-opvault {__version__}"
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Enable debug logging (stderr)"
    )
    commands = parser.add_subparsers(dest="command", required=True)

    serve = commands.add_parser("serve", help="Run the local HTTP host")
    serve.add_argument("--host", help="Loopback address (default: 127.0.0.1)")
    serve.add_argument("--port", type=int, help="TCP port (default: 8737)")
    serve.add_argument("--auto-lock-ms", type=int, help="Idle auto-lock in milliseconds")

    native = commands.add_parser("native", help="Run the native-messaging host on stdio")
    native.add_argument("--auto-lock-ms", type=int, help="Idle auto-lock in milliseconds")

    listing = commands.add_parser("list", help="List the items of a vault")
    listing.add_argument("vault", help="Path to the .opvault directory")

    args = parser.parse_args(argv)

    # stdout belongs to the native-messaging protocol
    logging.basicConfig(
        stream=sys.stderr,
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(name)s %(levelname)s: %(message)s",
    )

    if args.command == "list":
        return _list_vault(args.vault)

    config = VaultConfig.from_env()
    overrides = {
        "host": getattr(args, "host", None),
        "port": getattr(args, "port", None),
        "auto_lock_ms": args.auto_lock_ms,
    }
    overrides = {k: v for k, v in overrides.items() if v is not None}
    if overrides:
        config = VaultConfig(**{**config.model_dump(), **overrides})

    if args.command == "serve":
        from .host.server import run_server
        run_server(config)
    else:
        from .host.native import run_native_host
        asyncio.run(run_native_host(config=config))
    return 0


if __name__ == "__main__":
    sys.exit(main())
