"""Command-line driver for ZPM scripts.

Feeds a script to an `Interpreter` one physical line at a time. Blank lines
are skipped but still counted, and the first failing line halts the run with
``RUNTIME ERROR: line <n>`` on stderr. A failure inside a loop body is
reported against the ``FOR`` line that contains it.
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import Iterable, List, Optional, TextIO

from .interpreter import Interpreter, strip_ws
from .logging_config import setup_logging

logger = logging.getLogger(__name__)


def run_lines(
    lines: Iterable[str],
    interpreter: Optional[Interpreter] = None,
    err_stream: Optional[TextIO] = None,
) -> bool:
    """Execute ``lines`` in order. Returns False if a line failed."""
    it = interpreter if interpreter is not None else Interpreter()
    err_stream = err_stream if err_stream is not None else sys.stderr
    for lineno, line in enumerate(lines, start=1):
        if not strip_ws(line):
            continue
        if not it.execute(line):
            logger.info("halted at line %d: %s", lineno, it.last_error)
            print(f"RUNTIME ERROR: line {lineno}", file=err_stream)
            return False
    return True


def run_file(
    path: str,
    interpreter: Optional[Interpreter] = None,
    err_stream: Optional[TextIO] = None,
) -> bool:
    """Run the script at ``path``; I/O errors propagate to the caller."""
    with open(path, encoding="utf-8") as fh:
        # strip line terminators only; execute() trims the rest
        return run_lines((line.rstrip("\r\n") for line in fh), interpreter, err_stream)


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(prog="zpm", description="Run a ZPM script.")
    parser.add_argument("script", help="path to the .zpm file")
    args = parser.parse_args(argv)

    # level comes from ZPM_LOG_LEVEL; the only argument is the script path
    setup_logging()
    logger.debug("running %s", args.script)
    return 0 if run_file(args.script) else 1


if __name__ == "__main__":
    sys.exit(main())
