"""Command line access to export, import, backup and restore.

The store is opened from the environment (``DATABASE_URL`` or
``SPEEDLESEN_SNAPSHOT_PATH``), exactly as the API does.
"""

import argparse
import json
import logging
import sys

from speedlesen import backup, services
from speedlesen.config import get_settings
from speedlesen.csv_export import to_csv
from speedlesen.errors import SpeedlesenError
from speedlesen.store import open_store

logger = logging.getLogger(__name__)


def _write(text, output):
    if output:
        with open(output, "w", encoding="utf-8") as f:
            f.write(text)
        logger.info("Wrote %s", output)
    else:
        sys.stdout.write(text + "\n")


def _read(path):
    with open(path, "r", encoding="utf-8") as f:
        return f.read()


def build_parser():
    parser = argparse.ArgumentParser(
        prog="speedlesen", description="Manage reading-speed tracker data."
    )
    sub = parser.add_subparsers(dest="command", required=True)

    for name, help_text in (
        ("export", "Write the canonical JSON export."),
        ("backup", "Write a checksummed backup."),
        ("csv", "Write the CSV export."),
    ):
        cmd = sub.add_parser(name, help=help_text)
        cmd.add_argument("-o", "--output", help="Target file (default: stdout).")

    for name, help_text in (
        ("import", "Import a canonical or legacy JSON export."),
        ("restore", "Restore a checksummed backup."),
    ):
        cmd = sub.add_parser(name, help=help_text)
        cmd.add_argument("path", help="File to read.")
        cmd.add_argument(
            "--overwrite",
            action="store_true",
            help="Replace all stored data instead of merging.",
        )

    sub.add_parser("reset", help="Delete all stored data.")
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)
    settings = get_settings()
    logging.basicConfig(level=settings.log_level.upper())
    store = open_store(settings)

    try:
        if args.command == "export":
            text = json.dumps(store.export_json(), ensure_ascii=False, indent=2)
            _write(text, args.output)
        elif args.command == "backup":
            payload = backup.create_backup_payload(store)
            _write(backup.dumps_backup(payload), args.output)
        elif args.command == "csv":
            _write(to_csv(services.csv_rows(store)), args.output)
        elif args.command == "import":
            try:
                payload = json.loads(_read(args.path))
            except ValueError as exc:
                raise SpeedlesenError(f"{args.path} is not valid JSON.") from exc
            counts = store.import_json(payload, overwrite=args.overwrite)
            print(json.dumps(counts))
        elif args.command == "restore":
            result = backup.restore_backup(
                store, _read(args.path), overwrite=args.overwrite
            )
            print(json.dumps(result))
        elif args.command == "reset":
            store.reset_all()
    except SpeedlesenError as exc:
        logger.error("%s: %s", type(exc).__name__, exc.message)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
