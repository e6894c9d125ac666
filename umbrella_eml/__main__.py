"""Entry point for the EML reader.

Usage::

    python -m umbrella_eml summary message.eml [--json]
    python -m umbrella_eml extract message.eml out/ [--raw]
"""

from __future__ import annotations

import argparse
import sys

import structlog

from .config import ParserConfig
from .errors import EmlError
from .extract import extract_attachments
from .logging import setup_logging
from .message import Message
from .models import MessageSummary, summarize

logger = structlog.get_logger()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="umbrella-eml",
        description="Read .eml files: list the MIME part tree and extract attachments",
    )
    parser.add_argument("--log-level", help="Override EML_LOG_LEVEL")
    parser.add_argument(
        "--log-json",
        action="store_true",
        default=None,
        help="Render log lines as JSON",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    summary = commands.add_parser("summary", help="Print envelope fields and the part tree")
    summary.add_argument("file", help="EML file to read")
    summary.add_argument("--json", action="store_true", help="Print the summary as JSON")

    extract = commands.add_parser("extract", help="Write all attachments to a directory")
    extract.add_argument("file", help="EML file to read")
    extract.add_argument("dest", help="Directory to write attachments into")
    extract.add_argument(
        "--raw",
        action="store_true",
        help="Copy the transfer-encoded bytes instead of decoding them",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    config = ParserConfig()
    setup_logging(
        json=config.log_json if args.log_json is None else args.log_json,
        level=args.log_level or config.log_level,
    )

    try:
        message = Message.open(args.file, config)
    except EmlError as exc:
        print(f"Cannot read {args.file}: {exc.message}", file=sys.stderr)
        return 1

    with message:
        if args.command == "summary":
            result = summarize(message, config)
            if args.json:
                print(result.model_dump_json(indent=2))
            else:
                _print_summary(result)
        else:
            for path in extract_attachments(message, args.dest, config, decode=not args.raw):
                print(path)
    return 0


def _print_summary(summary: MessageSummary) -> None:
    print(f"File:    {summary.path} ({summary.size} bytes)")
    print(f"From:    {summary.sender or ''}")
    print(f"To:      {summary.recipient or ''}")
    print(f"Subject: {summary.subject or ''}")
    print()
    for part in summary.parts:
        line = f"{'  ' * part.depth}{part.mime_type} ({part.body_size} bytes)"
        if part.is_attachment:
            line += f" attachment: {part.filename or 'unnamed'}"
        print(line)


if __name__ == "__main__":
    sys.exit(main())
