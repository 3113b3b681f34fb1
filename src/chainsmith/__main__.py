from __future__ import annotations

import argparse
import logging
import sys
import traceback
from pathlib import Path

from .lexer_rd import LexError
from .parser_rd import ParseError
from .providers import Document, compute_refactorings
from .utils import debug_enabled


def parse_span(text: str) -> tuple[int, int]:
    start, sep, end = text.partition(':')
    try:
        if not sep:
            return int(start), int(start)
        return int(start), int(end)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected START:END, got {text!r}") from None


def main(argv: list[str] | None = None) -> int:
    ap = argparse.ArgumentParser(prog="chainsmith")
    ap.add_argument("source", nargs="?", help="Path to a source file (defaults to stdin)")
    ap.add_argument("--span", type=parse_span, default=None, help="Selection as START:END character offsets")
    ap.add_argument("--apply", metavar="TITLE", help="Apply the refactoring with this title and print the result")
    ap.add_argument("--verbose", action="store_true", help="Log why refactorings are not offered")

    args = ap.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    code = Path(args.source).read_text(encoding="utf-8") if args.source else sys.stdin.read()
    start, end = args.span if args.span is not None else (0, len(code))

    document = Document(code)
    try:
        actions = compute_refactorings(document, start, end)
    except (LexError, ParseError) as err:
        if debug_enabled():
            traceback.print_exc()
        sys.stderr.write(str(err) + "\n")
        return 1

    if args.apply is None:
        for action in actions:
            print(action.title)
        return 0

    for action in actions:
        if action.title == args.apply:
            sys.stdout.write(action.apply())
            return 0

    sys.stderr.write(f"Refactoring {args.apply!r} is not available here\n")
    return 1


if __name__ == "__main__":
    sys.exit(main())
