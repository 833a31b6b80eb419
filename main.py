#!/usr/bin/env python3
"""
Command line entry point: text (or OCR output) in, .ics file out.

    calendar-extract notes.txt -o exports/
    cat reply.json | calendar-extract - --timezone Europe/Paris
    calendar-extract flyer.txt --gemini            # needs GEMINI_API_KEY
"""

from __future__ import annotations

import argparse
import functools
import logging
import os
import sys
from typing import Optional, Sequence

from calendar_utils import export_events, save_ics_file
from event_parser import parse_text_for_events
from settings import ParserSettings, local_timezone_name, resolve_timezone_name

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="calendar-extract",
        description="Extract calendar events from text and export them as an .ics file.",
    )
    parser.add_argument("input", help="text file to read, or '-' for stdin")
    parser.add_argument("-o", "--output-dir", default=None, help="directory for the .ics file (default: cwd)")
    parser.add_argument("--filename", default=None, help="file name to use instead of the derived one")
    zone = parser.add_mutually_exclusive_group()
    zone.add_argument("--timezone", default=None, help="default IANA time-zone for events")
    zone.add_argument("--local-timezone", action="store_true", help="use this machine's time-zone as default")
    parser.add_argument("--gemini", action="store_true", help="send the text through Gemini first")
    parser.add_argument("--api-key", default=None, help="Gemini API key (default: $GEMINI_API_KEY)")
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    return parser


def _read_input(path: str) -> str:
    if path == "-":
        return sys.stdin.read()
    with open(path, "r", encoding="utf-8") as handle:
        return handle.read()


def _settings_from_args(args: argparse.Namespace) -> ParserSettings:
    if args.local_timezone:
        return ParserSettings(default_timezone=local_timezone_name())
    if args.timezone:
        return ParserSettings(default_timezone=resolve_timezone_name(args.timezone))
    return ParserSettings.from_env()


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    try:
        text = _read_input(args.input)
    except OSError as exc:
        parser.error(f"cannot read {args.input}: {exc}")

    settings = _settings_from_args(args)
    logger.debug("Parsing %d character(s) with default zone %s", len(text), settings.default_timezone)

    if args.gemini:
        api_key = args.api_key or os.environ.get("GEMINI_API_KEY", "")
        if not api_key:
            parser.error("--gemini needs --api-key or GEMINI_API_KEY")
        from API import API

        events = API(api_key, location=settings.default_timezone).extract_event(text)
    else:
        events = parse_text_for_events(text, settings=settings)

    for event in events:
        print(f"{event.start_date:%Y-%m-%d %H:%M} {event.title} ({event.confidence})")

    deliver = functools.partial(save_ics_file, directory=args.output_dir)
    result = export_events(events, filename=args.filename, deliver=deliver)
    print(result.message)
    return 0 if result.success else 1


if __name__ == "__main__":
    sys.exit(main())
