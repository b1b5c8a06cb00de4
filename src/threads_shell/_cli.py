"""Command-line entry point for the interactive shell."""

from __future__ import annotations

import argparse
import dataclasses
import logging
from typing import TYPE_CHECKING

from threads_shell._config import ClientConfig, ShellConfig, load_config
from threads_shell._errors import InvalidConfig
from threads_shell._shell import Session, interact

if TYPE_CHECKING:
    from collections.abc import Sequence

log = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="threads-shell",
        description="Interactive shell for managing document stores.",
    )
    parser.add_argument("--config", help="TOML config file; command-line flags override it")
    parser.add_argument("--client", choices=["memory", "local", "s3"], help="client to authenticate with")
    parser.add_argument("--root", help="root directory of the local client")
    parser.add_argument("--bucket", help="bucket of the s3 client")
    parser.add_argument("--prefix", help="key prefix of the s3 client")
    parser.add_argument("--endpoint-url", help="custom S3 endpoint (e.g. MinIO)")
    parser.add_argument("--key", help="cloud access key")
    parser.add_argument("--secret", help="cloud secret key")
    parser.add_argument("--region", help="cloud region")
    parser.add_argument("--db-name", help="database name to use at startup")
    parser.add_argument("--db-id", help="existing store id to resume under --db-name")
    parser.add_argument("--timeout", type=float, help="seconds each client call may take")
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="logging level (default: %(default)s)",
    )
    parser.add_argument("--no-check", action="store_true", help="skip the connectivity check")
    return parser


def _client_from_args(args: argparse.Namespace, base: ClientConfig | None) -> ClientConfig | None:
    if args.client is None and base is None:
        return None
    client_type = args.client or (base.type if base is not None else "memory")
    options: dict[str, object] = dict(base.options) if base is not None and base.type == client_type else {}
    host = base.host if base is not None and base.type == client_type else ""
    flags = {
        "root": args.root,
        "bucket": args.bucket,
        "prefix": args.prefix,
        "endpoint_url": args.endpoint_url,
        "key": args.key,
        "secret": args.secret,
        "region_name": args.region,
    }
    options.update({name: value for name, value in flags.items() if value is not None})
    return ClientConfig(type=client_type, host=host, options=options)


def config_from_args(args: argparse.Namespace) -> ShellConfig:
    """Merge the config file (if any) with command-line flags.

    :raises InvalidConfig: If the merged configuration is inconsistent.
    """
    config = load_config(args.config) if args.config else ShellConfig()
    changes: dict[str, object] = {"client": _client_from_args(args, config.client)}
    if args.db_name is not None:
        changes["store"] = args.db_name
    if args.db_id is not None:
        changes["store_id"] = args.db_id
    if args.timeout is not None:
        changes["timeout"] = args.timeout
    config = dataclasses.replace(config, **changes)  # type: ignore[arg-type]
    config.validate()
    return config


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        config = config_from_args(args)
    except (InvalidConfig, TypeError) as exc:
        parser.error(str(exc))

    with Session(config) as session:
        if config.client is not None:
            if session.auth(config.client, check=not args.no_check) is None:
                return 1
            if config.store is not None:
                session.use(config.store, config.store_id)
        log.debug("Starting console with %r", config)
        interact(session)
    return 0
