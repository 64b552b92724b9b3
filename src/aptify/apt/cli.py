"""CLI interface for aptify."""

from __future__ import annotations

import argparse
import logging
import os
from pathlib import Path
from typing import TYPE_CHECKING

from aptify.apt.build_repo import SIGNING_KEY_NAME, build_repo
from aptify.apt.release import verify_release
from aptify.config import config_to_yaml, example_config
from aptify.gpg import PRIVATE_KEY_NAME, create_priv_key
from aptify.serve import serve

if TYPE_CHECKING:
    from collections.abc import Sequence

logger = logging.getLogger("aptify")

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


def default_config_dir() -> Path:
    """`$XDG_CONFIG_HOME/aptify`, or `~/.config/aptify`."""
    base = os.getenv("XDG_CONFIG_HOME") or Path.home() / ".config"
    return Path(base) / "aptify"


def init_keys_cli(args: argparse.Namespace) -> int:
    """Generate a new key pair for signing releases."""
    create_priv_key(
        args.config_dir, args.name, args.comment, args.email, args.key_length
    )
    return 0


def init_config_cli(args: argparse.Namespace) -> int:
    """Write a starter configuration, refusing to replace an existing one."""
    with Path(args.output).open("x", encoding="utf-8") as f:
        config_to_yaml(example_config(), f)
    logger.info("Wrote example configuration to %s", args.output)
    return 0


def build_repo_cli(args: argparse.Namespace) -> int:
    """Build a repository from a configuration file."""
    build_repo(args.repository_dir, args.config, args.config_dir / PRIVATE_KEY_NAME)
    return 0


def serve_cli(args: argparse.Namespace) -> int:
    """Serve a repository over HTTP."""
    serve(args.repository_dir, args.listen, args.http_port)
    return 0


def verify_cli(args: argparse.Namespace) -> int:
    """Verify a release against the published signing key."""
    repo = Path(args.repository_dir)
    public_key = (repo / SIGNING_KEY_NAME).read_text("utf-8")
    for release in args.releases:
        verify_release(repo / "dists" / release, public_key)
    return 0


def build_parser() -> argparse.ArgumentParser:
    """Create the argument parser with all subcommands."""
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--log-level",
        type=str.upper,
        choices=LOG_LEVELS,
        default="INFO",
        help="Set the log verbosity level",
    )
    common.add_argument(
        "--config-dir",
        type=Path,
        default=default_config_dir(),
        help="Directory to store configuration",
    )

    parser = argparse.ArgumentParser(
        prog="aptify", description="Create apt repositories from Debian packages"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    init_keys = subparsers.add_parser(
        "init-keys",
        parents=[common],
        help="Generate a new GPG key pair for signing releases",
    )
    init_keys.add_argument("--name", type=str, help="Name of the key owner")
    init_keys.add_argument("--comment", type=str, help="Comment to add to the key")
    init_keys.add_argument("--email", type=str, help="Email address of the key owner")
    init_keys.add_argument(
        "--key-length", type=int, default=4096, help="RSA key size in bits"
    )
    init_keys.set_defaults(func=init_keys_cli)

    init_config = subparsers.add_parser(
        "init-config",
        parents=[common],
        help="Write an example configuration file",
    )
    init_config.add_argument(
        "-o",
        "--output",
        type=Path,
        default=Path("aptify.yaml"),
        help="File to write the configuration to",
    )
    init_config.set_defaults(func=init_config_cli)

    build = subparsers.add_parser(
        "build",
        parents=[common],
        help="Build a Debian repository from a configuration file",
    )
    build.add_argument(
        "-c", "--config", type=Path, required=True, help="Configuration file"
    )
    build.add_argument(
        "-d",
        "--repository-dir",
        type=Path,
        default=Path("repository"),
        help="Directory to store the repository",
    )
    build.set_defaults(func=build_repo_cli)

    serve_parser = subparsers.add_parser(
        "serve", parents=[common], help="Serve a Debian repository over HTTP"
    )
    serve_parser.add_argument(
        "-d",
        "--repository-dir",
        type=Path,
        required=True,
        help="Directory containing the repository files",
    )
    serve_parser.add_argument(
        "-l", "--listen", type=str, default="localhost", help="Address to listen on"
    )
    serve_parser.add_argument(
        "--http-port", type=int, default=8080, help="Port to listen on for HTTP"
    )
    serve_parser.set_defaults(func=serve_cli)

    verify = subparsers.add_parser(
        "verify",
        parents=[common],
        help="Verify releases against the published signing key",
    )
    verify.add_argument(
        "-d",
        "--repository-dir",
        type=Path,
        required=True,
        help="Directory containing the repository files",
    )
    verify.add_argument("releases", nargs="+", help="Releases to verify")
    verify.set_defaults(func=verify_cli)

    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Entrypoint of the `aptify` command."""
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=args.log_level)

    try:
        args.config_dir.mkdir(mode=0o700, parents=True, exist_ok=True)
        return int(args.func(args))
    except Exception:  # noqa: BLE001
        logger.exception("Error")
        return 1


__all__ = [
    "build_parser",
    "build_repo_cli",
    "default_config_dir",
    "init_config_cli",
    "init_keys_cli",
    "main",
    "serve_cli",
    "verify_cli",
]
