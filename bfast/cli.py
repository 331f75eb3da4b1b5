from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Iterator, List, Optional

from .interpreter import Interpreter, StepLimitExceeded, TapeBoundsExceeded
from .nodes import Program
from .parser import ParseError, parse
from .printer import Printer
from .transpiler import TARGETS, Transpiler

logger = logging.getLogger(__name__)

BACKENDS = ("run", "print") + tuple(sorted(TARGETS))


def _read_source(path: str) -> str:
    source_path = Path(path)
    if not source_path.exists():
        raise FileNotFoundError(f"Source file not found: {path}")
    # only the ASCII command symbols matter; undecodable comment bytes are replaced
    return source_path.read_text(encoding="utf-8", errors="replace")


def _stdin_bytes() -> Iterator[int]:
    stream = sys.stdin.buffer
    while True:
        data = stream.read(1)
        if not data:
            return
        yield data[0]


def _dispatch(program: Program, args: argparse.Namespace) -> None:
    if args.backend == "print":
        Printer(sys.stdout).visit(program)
    elif args.backend == "run":
        # text-only streams (e.g. redirected in tests) get the output at the end
        binary = getattr(sys.stdout, "buffer", None)
        interpreter = Interpreter(stdout=binary)
        input_data = list(args.input.encode("utf-8")) if args.input is not None else _stdin_bytes()
        sys.stdout.flush()
        output = interpreter.run(program, input_data=input_data, max_steps=args.max_steps)
        if binary is None:
            sys.stdout.write(output)
    else:
        sys.stdout.write(Transpiler(args.backend).transpile(program))


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="bfast",
        description="Parse, optimize and run or translate Brainfuck programs",
    )
    parser.add_argument("sources", nargs="*", metavar="FILE", help="Program source files")
    parser.add_argument(
        "-b",
        "--backend",
        choices=BACKENDS,
        default="run",
        help="What to do with each parsed program (default: run)",
    )
    parser.add_argument(
        "--input",
        default=None,
        help="Input string for the program (default: read standard input)",
    )
    parser.add_argument(
        "--max-steps",
        type=int,
        default=None,
        help="Abort a program after this many steps",
    )
    parser.add_argument(
        "--permissive",
        action="store_true",
        help="Tolerate unbalanced brackets instead of failing",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Log debug output to stderr")
    args = parser.parse_args(argv)

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(name)s: %(message)s")

    if not args.sources:
        print(f"{parser.prog}: No input files.", file=sys.stderr)
        return 1

    failures = 0
    for path in args.sources:
        logger.debug("Processing %s with backend %s", path, args.backend)
        try:
            program = parse(_read_source(path), strict=not args.permissive)
            _dispatch(program, args)
        except (OSError, ParseError, StepLimitExceeded, TapeBoundsExceeded) as exc:
            sys.stdout.flush()
            print(f"{path}: {exc}", file=sys.stderr)
            failures += 1
    return 1 if failures else 0


if __name__ == "__main__":
    raise SystemExit(main())
