#!/usr/bin/env python3
from __future__ import annotations

import argparse
import sys
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parents[1]
if str(BASE_DIR) not in sys.path:
    sys.path.insert(0, str(BASE_DIR))

from archbot_config import FOLDER_EXCEPTIONS
from archbot_tools import ExternalTools
from src.archive_bot.descriptors.canonical import canonicalize
from src.archive_bot.descriptors.urls import classify
from src.archive_bot.errors import DispatchError


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Print the archive folder for each YouTube URL read from stdin (one per line)."
    )
    parser.add_argument(
        "--keep-going",
        action="store_true",
        help="Report failing URLs on stderr and continue instead of stopping at the first one.",
    )
    return parser.parse_args()


def main() -> int:
    args = _parse_args()
    tools = ExternalTools()
    status = 0
    for line in sys.stdin:
        url = line.strip()
        if not url:
            continue
        try:
            descriptor = canonicalize(classify(url), tools.fetch_page, FOLDER_EXCEPTIONS)
        except DispatchError as exc:
            print(f"{url}: {exc}", file=sys.stderr)
            status = 1
            if not args.keep_going:
                return status
            continue
        print(descriptor.folder, flush=True)
    return status


if __name__ == "__main__":
    raise SystemExit(main())
