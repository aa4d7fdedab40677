import argparse
import logging
import sys
from typing import Optional

from . import __version__
from .envelope import decode_envelope
from .errors import EnvelopeError, SaveFileNotFound
from .logging_config import configure_logging
from .storage import read_save_file

logger = logging.getLogger("savecodec.cli")


def cmd_inspect(args: argparse.Namespace) -> int:
    try:
        data = read_save_file(args.path)
    except SaveFileNotFound as e:
        print(f"error: {e}", file=sys.stderr)
        return 2

    try:
        envelope = decode_envelope(data)
    except EnvelopeError as e:
        logger.error("Unreadable save file %s: %s", args.path, e)
        print(f"error: {e}", file=sys.stderr)
        return 1

    header = envelope.header
    checksum = "none" if header.checksum is None else f"0x{header.checksum:08x}"
    print(
        f"format_version={header.format_version} record_count={header.record_count} "
        f"checksum={checksum} size={len(data)}"
    )
    for position, record in enumerate(envelope.records):
        print(
            f"  [{position}] identity=0x{record.identity:08x} "
            f"version={record.version} payload_length={record.payload_length}"
        )
    for error in envelope.errors:
        print(f"  [{error.position}] truncated: {error}")
    if envelope.checksum_ok is False:
        print("  checksum mismatch")
    if envelope.trailing_bytes:
        print(f"  {envelope.trailing_bytes} trailing bytes")
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="savecodec",
        description="Inspect component save files",
    )
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    p.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    sub = p.add_subparsers(dest="cmd")
    inspect_p = sub.add_parser("inspect", help="Print the header and records of a save file")
    inspect_p.add_argument("path", help="Path to a save file")
    inspect_p.set_defaults(func=cmd_inspect)
    return p


def main(argv: Optional[list] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(logging.DEBUG if args.verbose else None)
    if not hasattr(args, "func"):
        parser.print_help()
        return 2
    return args.func(args)


if __name__ == "__main__":
    raise SystemExit(main())
