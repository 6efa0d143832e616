"""Command line entry point: backup, serve and compress."""

import argparse
import logging
import sys
from typing import List, Optional

from admin_backup.core.config import get_settings
from admin_backup.core.exceptions import BackupConfigError, BackupError, OverpassError
from admin_backup.services.backup.backup_service import BackupOptions, run_backup
from admin_backup.services.backup.backup_writer import compress_existing_backups
from admin_backup.services.utils import format_error, parse_positive_int

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURES = 1
EXIT_CONFIG_ERROR = 2


def parse_list(value: Optional[str]) -> List[str]:
    """Comma separated values, trimmed, de-duplicated, order kept."""
    items: List[str] = []
    for part in (value or "").split(","):
        part = part.strip()
        if part and part not in items:
            items.append(part)
    return items


def parse_int_list(value: Optional[str]) -> List[int]:
    """Comma separated positive integers; anything else is dropped."""
    numbers: List[int] = []
    for part in parse_list(value):
        number = parse_positive_int(part)
        if number is not None and number not in numbers:
            numbers.append(number)
    return numbers


def build_parser() -> argparse.ArgumentParser:
    settings = get_settings()
    parser = argparse.ArgumentParser(
        prog="admin-backup",
        description="Back up OSM administrative boundaries from the Overpass API",
    )
    parser.add_argument("--log-level", default=settings.log_level, help="Logging level (default: %(default)s)")
    subparsers = parser.add_subparsers(dest="command", required=True)

    backup = subparsers.add_parser("backup", help="Fetch boundaries and write backup files")
    backup.add_argument(
        "--countries",
        default=",".join(settings.default_countries),
        help="Comma separated ISO codes, or 'all' (default: %(default)s)",
    )
    backup.add_argument(
        "--levels",
        default=",".join(str(level) for level in settings.default_levels),
        help="Comma separated admin levels, or 'all' (default: %(default)s)",
    )
    backup.add_argument("--all-countries", action="store_true", help="Back up every country")
    backup.add_argument("--all-levels", action="store_true", help="Back up every discovered level")
    backup.add_argument("--out-dir", default=settings.data_dir, help="Output directory (default: %(default)s)")
    backup.add_argument(
        "--delay-ms",
        type=int,
        default=settings.backup_delay_ms,
        help="Delay between Overpass requests in ms (default: %(default)s)",
    )
    backup.add_argument(
        "--no-raw",
        dest="retain_raw",
        action="store_false",
        default=settings.backup_retain_raw,
        help="Do not keep raw Overpass responses",
    )
    backup.add_argument(
        "--no-compress",
        dest="compress",
        action="store_false",
        default=settings.backup_compress,
        help="Write plain .json instead of .json.gz",
    )
    backup.add_argument(
        "--fail-fast",
        action="store_true",
        default=settings.backup_fail_fast,
        help="Abort the run on the first failed target",
    )

    serve = subparsers.add_parser("serve", help="Serve stored backups over HTTP (read-only)")
    serve.add_argument("--data-dir", default=settings.data_dir, help="Backup directory (default: %(default)s)")
    serve.add_argument("--host", default=settings.server_host, help="Bind host (default: %(default)s)")
    serve.add_argument("--port", type=int, default=settings.server_port, help="Bind port (default: %(default)s)")

    compress = subparsers.add_parser("compress", help="Gzip existing plain backup files")
    compress.add_argument("--data-dir", default=settings.data_dir, help="Backup directory (default: %(default)s)")

    return parser


def options_from_args(args: argparse.Namespace) -> BackupOptions:
    countries = parse_list(args.countries)
    levels = parse_list(args.levels)
    all_countries = args.all_countries or [value.lower() for value in countries] == ["all"]
    all_levels = args.all_levels or [value.lower() for value in levels] == ["all"]

    return BackupOptions.from_settings(
        get_settings(),
        countries=[] if all_countries else countries,
        levels=[] if all_levels else parse_int_list(args.levels),
        all_countries=all_countries,
        all_levels=all_levels,
        out_dir=args.out_dir,
        delay_ms=max(0, args.delay_ms),
        retain_raw=args.retain_raw,
        compress=args.compress,
        fail_fast=args.fail_fast,
    )


def run_backup_command(args: argparse.Namespace) -> int:
    try:
        result = run_backup(options_from_args(args))
    except BackupConfigError as e:
        logger.error(f"Invalid backup configuration: {format_error(e)}")
        return EXIT_CONFIG_ERROR
    except (BackupError, OverpassError) as e:
        logger.error(f"Backup aborted: {format_error(e)}")
        return EXIT_FAILURES

    for failure in result.failures:
        target = f"L{failure.level}" if failure.level is not None else "level discovery"
        logger.error(f"Failed: {failure.country_code} {target} (endpoint={failure.endpoint}): {failure.error}")
    return EXIT_OK if result.ok else EXIT_FAILURES


def run_serve_command(args: argparse.Namespace) -> int:
    import uvicorn

    from admin_backup.main import create_app

    logger.info(f"Serving {args.data_dir} on http://{args.host}:{args.port}")
    uvicorn.run(create_app(data_dir=args.data_dir), host=args.host, port=args.port)
    return EXIT_OK


def run_compress_command(args: argparse.Namespace) -> int:
    replaced = compress_existing_backups(args.data_dir)
    logger.info(f"Compressed {len(replaced)} backup files in {args.data_dir}")
    return EXIT_OK


COMMANDS = {
    "backup": run_backup_command,
    "serve": run_serve_command,
    "compress": run_compress_command,
}


def main(argv: Optional[List[str]] = None) -> int:
    """Parse arguments, configure logging and run a subcommand."""
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=str(args.log_level).upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    return COMMANDS[args.command](args)


if __name__ == "__main__":
    exit_code = main()
    sys.exit(exit_code)
