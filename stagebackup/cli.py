#!/usr/bin/env python3
"""Command-line interface for StageBackup.

This module provides the CLI for building (and, eventually, restoring)
backups:
- Argument parsing and validation
- Configuration file loading and merging
- Logging setup
- Exit status mapping

Example:
    >>> from stagebackup.cli import parse_arguments
    >>> args = parse_arguments(["build", "-l", "home.list", "-o", "home.tar.gz"])
"""

import argparse
import sys
from typing import Any, Dict, List, NoReturn, Optional

from stagebackup.core.constants import DEFAULT_LIST_FILE, STAGEBACKUP_VERSION, ErrorCode
from stagebackup.infrastructure.config_manager import (
    CONFIG_SCHEMA,
    ConfigError,
    ConfigManager,
    ConfigSource,
)
from stagebackup.infrastructure.logger import Logger, set_global_logger
from stagebackup.transforms.compression import CompressionAlgorithm
from stagebackup.transforms.encryption import CIPHER_MODES

DESCRIPTION = "StageBackup - staged include/exclude backups to tar"


class CLIError(Exception):
    """Exception raised for CLI usage errors."""

    pass


class _ArgumentParser(argparse.ArgumentParser):
    """ArgumentParser reporting usage errors as CLIError instead of exiting."""

    def error(self, message: str) -> NoReturn:
        raise CLIError(f"{message}\nUse --help for usage information")


def parse_arguments(args: Optional[List[str]] = None) -> argparse.Namespace:
    """
    Parse command-line arguments.

    Args:
        args: Argument list to parse (defaults to sys.argv[1:])

    Returns:
        Parsed arguments namespace

    Raises:
        CLIError: On invalid arguments
        SystemExit: On --help/--version
    """
    parser = _ArgumentParser(
        prog="stagebackup",
        description=DESCRIPTION,
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Back up according to ./backup.list, writing the archive to stdout
  stagebackup build > home.tar.gz

  # Several list files (evaluated in order) and two copies of the archive
  stagebackup build -l base.list -l extra.list -o /mnt/a/home.tgz -o /mnt/b/home.tgz

  # Encrypt the compressed archive with a passphrase
  stagebackup build -l home.list -o home.tgz.aes --encrypt
        """,
    )
    parser.add_argument(
        "-v",
        "--version",
        action="version",
        version=f"%(prog)s {STAGEBACKUP_VERSION}",
    )

    subparsers = parser.add_subparsers(dest="command", metavar="<build|restore>")
    subparsers.required = True

    build = subparsers.add_parser(
        "build",
        help="build a backup",
        description="""
Back up the files selected by one or more list files. A list file holds
[include] and [exclude] markers, each followed by glob patterns, one per
line. Stages are evaluated in order; an [exclude] stage only filters the
[include] stages listed before it.""",
    )
    build.add_argument(
        "-l",
        "--list",
        metavar="LIST",
        action="append",
        dest="lists",
        help=f"list file of include/exclude stages (repeatable, default: ./{DEFAULT_LIST_FILE})",
    )
    build.add_argument(
        "-o",
        "--output",
        metavar="OUTPUT",
        action="append",
        dest="outputs",
        help="where to write the archive (repeatable, default: standard output)",
    )
    build.add_argument(
        "-C",
        "--root",
        metavar="DIR",
        help="directory patterns are resolved against (default: home directory)",
    )
    build.add_argument(
        "-c",
        "--config",
        metavar="FILE",
        help="configuration file path (YAML format)",
    )

    stream_group = build.add_argument_group("stream options")
    stream_group.add_argument(
        "--compression",
        choices=[a.value for a in CompressionAlgorithm],
        help="compression algorithm (default: gzip)",
    )
    stream_group.add_argument(
        "--level",
        type=int,
        metavar="N",
        help="compression level 1-9 (default: 6)",
    )
    stream_group.add_argument(
        "--encrypt",
        action="store_true",
        default=None,
        help="encrypt the archive with a passphrase read from the terminal",
    )
    stream_group.add_argument(
        "--cipher-mode",
        choices=sorted(CIPHER_MODES),
        help="AES stream mode used with --encrypt (default: ctr)",
    )

    log_group = build.add_argument_group("logging options")
    log_group.add_argument("--debug", action="store_true", help="enable debug logging")
    log_group.add_argument("--log-file", metavar="FILE", help="also log to this file")

    restore = subparsers.add_parser(
        "restore",
        help="restore from a backup",
        description="Restores the files provided in the given backup archive.",
    )
    restore.add_argument("archives", nargs="*", metavar="ARCHIVE", help="backup archive")

    parsed = parser.parse_args(args)
    _validate_arguments(parsed)
    return parsed


def _validate_arguments(args: argparse.Namespace) -> None:
    """
    Validate parsed arguments.

    Raises:
        CLIError: If validation fails
    """
    if args.command == "restore":
        if not args.archives:
            raise CLIError("Expected a backup archive to restore from")
        if len(args.archives) > 1:
            raise CLIError("Can only restore from one backup at a time")
        return

    if args.level is not None and not 1 <= args.level <= 9:
        raise CLIError(f"Compression level must be between 1 and 9, got {args.level}")


def build_config_from_args(args: argparse.Namespace) -> Dict[str, Any]:
    """
    Build a configuration dictionary from the arguments that were given.

    Args:
        args: Parsed arguments namespace

    Returns:
        Nested configuration overriding file and environment values
    """
    config: Dict[str, Any] = {}

    if args.lists:
        config["lists"] = list(args.lists)
    if args.outputs:
        config["outputs"] = list(args.outputs)
    if args.root:
        config["root"] = args.root

    compression = {}
    if args.compression:
        compression["algorithm"] = args.compression
    if args.level is not None:
        compression["level"] = args.level
    if compression:
        config["compression"] = compression

    encryption = {}
    if args.encrypt:
        encryption["enabled"] = True
    if args.cipher_mode:
        encryption["mode"] = args.cipher_mode
    if encryption:
        config["encryption"] = encryption

    logging_config = {}
    if args.debug:
        logging_config["level"] = "DEBUG"
    if args.log_file:
        logging_config["file"] = args.log_file
    if logging_config:
        config["logging"] = logging_config

    return config


def load_configuration(args: argparse.Namespace) -> ConfigManager:
    """
    Merge defaults, config file, environment and arguments.

    Raises:
        ConfigError: If the config file is unreadable or mistyped
    """
    config = ConfigManager(args.config)
    config.load_dict(build_config_from_args(args), ConfigSource.CLI_ARGS)
    config.validate_schema(CONFIG_SCHEMA)
    return config


def setup_logging(config: ConfigManager) -> Logger:
    """
    Setup logging based on configuration.

    Args:
        config: Merged configuration

    Returns:
        Configured logger instance

    Raises:
        ConfigError: If logging.level names no known level
    """
    try:
        logger = Logger("stagebackup", level=config.get("logging.level", "INFO"))
    except ValueError as e:
        raise ConfigError(f"{e} (logging.level)")

    log_file = config.get("logging.file")
    if log_file:
        logger.add_handler(logger.create_file_handler(log_file))

    set_global_logger(logger)
    return logger


def run_restore(args: argparse.Namespace, logger: Logger) -> int:
    """Restore is accepted on the command line but not implemented."""
    logger.warning("Restore is not implemented; nothing was extracted", archive=args.archives[0])
    return ErrorCode.SUCCESS


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main CLI entry point.

    Returns:
        Exit code: 0 success, 1 usage error, 2 fatal error, 130 interrupted
    """
    try:
        args = parse_arguments(argv)

        if args.command == "restore":
            return run_restore(args, Logger("stagebackup"))

        config = load_configuration(args)
        logger = setup_logging(config)

        from stagebackup.main import run_backup

        return run_backup(config, logger)

    except (CLIError, ConfigError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return ErrorCode.USAGE

    except KeyboardInterrupt:
        print("\nInterrupted by user", file=sys.stderr)
        return ErrorCode.INTERRUPTED

    except Exception as e:
        print(f"Unexpected error: {e}", file=sys.stderr)
        import traceback

        traceback.print_exc()
        return ErrorCode.FATAL


if __name__ == "__main__":
    sys.exit(main())
