"""
=============================================================================
COMMAND LINE ENTRY POINT
=============================================================================

Runs the sandbox server standalone, mostly for trying the web UI against a
directory on a workstation:

    python -m sandboxserver --root ./sandbox --port 8080 --assets ./ui

``--root`` is the host directory that stands in for the device's ``/``;
sandbox paths such as ``/data/storage/el2/base/files`` are resolved under it.
``--assets`` copies the browser UI (index.html and friends) into the
server's static directory before starting.

Environment variables (see ServerConfig.from_env) give the defaults;
command line flags override them.

=============================================================================
"""

import argparse
import os
import shutil
import sys

from . import __version__
from .config import AppInfo, ServerConfig, StorageContext
from .server import SandboxServer


def build_parser(defaults: ServerConfig) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sandbox-server",
        description="HTTP file browser for an application's sandboxed storage",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m sandboxserver --root ./sandbox              # Serve ./sandbox as /
  python -m sandboxserver --root ./sandbox --port 0     # Any free port
  python -m sandboxserver --root ./sandbox --assets ui  # Install the web UI first
        """
    )

    parser.add_argument(
        "--host", "-H",
        default=defaults.host,
        help=f"Host to bind to (default: {defaults.host})"
    )
    parser.add_argument(
        "--port", "-p",
        type=int,
        default=defaults.port,
        help=f"Port to listen on, 0 for any free port (default: {defaults.port})"
    )
    parser.add_argument(
        "--root", "-r",
        default=defaults.sandbox_root,
        help=f"Host directory that sandbox paths live under (default: {defaults.sandbox_root})"
    )
    parser.add_argument(
        "--workers", "-w",
        type=int,
        default=defaults.max_workers,
        help=f"Maximum worker threads (default: {defaults.max_workers})"
    )
    parser.add_argument(
        "--cache-capacity",
        type=int,
        default=defaults.cache_capacity,
        help=f"Preview files kept staged (default: {defaults.cache_capacity})"
    )
    parser.add_argument(
        "--assets", "-a",
        default=None,
        help="Directory of web UI files to copy into the static directory"
    )
    parser.add_argument(
        "--log-level", "-l",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=defaults.log_level.upper(),
        help=f"Logging level (default: {defaults.log_level.upper()})"
    )
    parser.add_argument(
        "--bundle-name",
        default=AppInfo.bundle_name,
        help="Bundle name reported by /api/app-info"
    )
    parser.add_argument(
        "--app-name",
        default=AppInfo.name,
        help="Application name reported by /api/app-info"
    )
    parser.add_argument(
        "--version", "-v",
        action="version",
        version=f"sandboxserver {__version__}"
    )
    return parser


def install_assets(source: str, static_root: str) -> int:
    """Copy the UI files into the static root; returns how many were copied."""
    copied = 0
    for dirpath, _, filenames in os.walk(source):
        target_dir = os.path.join(static_root, os.path.relpath(dirpath, source))
        os.makedirs(target_dir, exist_ok=True)
        for filename in filenames:
            shutil.copyfile(os.path.join(dirpath, filename), os.path.join(target_dir, filename))
            copied += 1
    return copied


def main(argv=None) -> int:
    defaults = ServerConfig.from_env()
    args = build_parser(defaults).parse_args(argv)

    config = defaults
    config.host = args.host
    config.port = args.port
    config.sandbox_root = args.root
    config.max_workers = args.workers
    config.min_workers = min(config.min_workers, args.workers)
    config.cache_capacity = args.cache_capacity
    config.log_level = args.log_level

    try:
        server = SandboxServer(
            config,
            StorageContext(),
            AppInfo(bundle_name=args.bundle_name, name=args.app_name),
        )
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    if args.assets:
        if not os.path.isdir(args.assets):
            print(f"Error: assets directory not found: {args.assets}", file=sys.stderr)
            return 2
        count = install_assets(args.assets, server.static_root)
        print(f"Installed {count} UI files into {server.static_root}")

    address = server.start()
    if not address.ok:
        print(f"Error: could not bind {config.host}:{config.port}", file=sys.stderr)
        return 1

    print("=" * 60)
    print(f"  sandboxserver {__version__}")
    print(f"  Browse:  http://{address.address}:{address.port}/")
    print(f"  Root:    {os.path.abspath(config.sandbox_root)}")
    print(f"  Static:  {server.static_root}")
    print("  Press Ctrl+C to stop")
    print("=" * 60)

    server.serve_forever()
    return 0


if __name__ == "__main__":
    sys.exit(main())
