"""ZPM interpreter module.

This module implements the evaluator for ZPM, a tiny line-oriented teaching
language. A script is a sequence of physical lines, each of which is one of:

- an assignment: ``<name> <op> <operand> ;`` with ``op`` in ``= += -= *=``
- a print statement: ``PRINT <name>``
- a bounded loop on a single line: ``FOR <n> <stmt> ; <stmt> ; ENDFOR``

Values are either 32-bit integers or text. Only ``=`` may change the type of
a variable; the compound operators require both sides to share a type.

The public seam is boolean: `Interpreter.execute` returns ``False`` when a
line fails and keeps the reason on ``last_error``. Internally every check
raises a `ZpmError` subclass which is translated at that seam.
"""

import logging
import re
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Union

logger = logging.getLogger(__name__)

NUMERIC_RE = re.compile(r"-?\d+(\.\d+)?", re.ASCII)
# name token and operator token at the head of an assignment
HEAD_RE = re.compile(r"(\S+)\s+(\S+)", re.ASCII)
# whitespace is ASCII only; other characters are part of tokens and literals
WHITESPACE = " \t\n\x0b\f\r"
WS_RE = re.compile(r"[ \t\n\x0b\f\r]+")

INT_MIN = -(2 ** 31)
INT_MAX = 2 ** 31 - 1

OP_SET = "="
OP_ADD = "+="
OP_SUBTRACT = "-="
OP_MULTIPLY = "*="
OPERATORS = (OP_SET, OP_ADD, OP_SUBTRACT, OP_MULTIPLY)

STATEMENT_END = " ;"


class ZpmError(Exception):
    """Raised when a statement cannot be executed.

    Subclasses set ``code`` so callers that report structured errors (the
    `run` method and the HTTP API) can tell syntax problems from runtime ones.

    Attributes:
        code: short machine-readable error category
        text: optional statement text that failed
    """

    code = "RUNTIME_ERROR"

    def __init__(self, message: str, *, text: Optional[str] = None):
        super().__init__(message)
        self.text = text


class MalformedStatement(ZpmError):
    code = "SYNTAX_ERROR"


class UndefinedVariable(ZpmError):
    pass


class TypeMismatch(ZpmError):
    pass


class StepLimitExceeded(ZpmError):
    code = "STEP_LIMIT"


class OutputLimitExceeded(ZpmError):
    code = "OUTPUT_LIMIT"


@dataclass(frozen=True)
class IntValue:
    value: int

    def __str__(self) -> str:
        return str(self.value)


@dataclass(frozen=True)
class TextValue:
    value: str

    def __str__(self) -> str:
        return self.value


Value = Union[IntValue, TextValue]


def wrap_int(n: int) -> int:
    """Wrap ``n`` into the signed 32-bit range (two's complement overflow)."""
    return (n - INT_MIN) % (2 ** 32) + INT_MIN


def is_numeric(text: str) -> bool:
    return NUMERIC_RE.fullmatch(text) is not None


def strip_ws(text: str) -> str:
    return text.strip(WHITESPACE)


def split_ws(text: str) -> List[str]:
    """Split on runs of ASCII whitespace, dropping empty tokens."""
    return [t for t in WS_RE.split(text) if t]


def parse_int(text: str) -> int:
    """Parse a numeric literal as a 32-bit integer.

    The literal pattern also accepts decimals such as ``1.5``; those are not
    usable integers and are rejected here, as are values outside 32 bits.
    """
    if not is_numeric(text):
        raise MalformedStatement(f"Not a number: {text!r}", text=text)
    try:
        n = int(text)
    except ValueError:
        raise MalformedStatement(f"Not an integer: {text!r}", text=text)
    if n < INT_MIN or n > INT_MAX:
        raise MalformedStatement(f"Integer out of range: {text}", text=text)
    return n


def split_body(body: str) -> List[str]:
    """Split a loop body after each ``;`` that is not inside double quotes.

    Each returned piece keeps its terminating ``;``. Splitting is purely
    textual: a nested ``FOR`` whose own body has semicolons is cut apart.
    """
    pieces: List[str] = []
    start = 0
    in_quotes = False
    for i, ch in enumerate(body):
        if ch == '"':
            in_quotes = not in_quotes
        elif ch == ";" and not in_quotes:
            pieces.append(body[start:i + 1])
            start = i + 1
    rest = body[start:]
    # a body that ends in ';' leaves an empty tail, which is dropped; an empty
    # body still yields one (empty, failing) statement
    if rest or not pieces:
        pieces.append(rest)
    return pieces


@dataclass
class _LoopFrame:
    """A running loop: its body text, passes left and the current split."""

    body: str
    remaining: int
    statements: List[str]
    index: int = 0


class Interpreter:
    """Evaluator for ZPM lines.

    One instance owns one variable environment and represents one script run.
    Construct a fresh instance per run.

    Args:
        env: optional mapping to use as the environment (shared, not copied)
        output_sink: callable receiving each ``PRINT`` line. Defaults to
            ``print``. Pass ``None`` to capture lines in ``self.output``.
        max_steps: optional cap on statements executed, loop bodies included
        max_output_chars: optional cap on total printed characters
    """

    def __init__(
        self,
        env: Optional[Dict[str, Value]] = None,
        *,
        output_sink: Optional[Callable[[str], None]] = print,
        max_steps: Optional[int] = None,
        max_output_chars: Optional[int] = None,
    ):
        self.env: Dict[str, Value] = env if env is not None else {}
        self.output_sink = output_sink
        self.max_steps = max_steps
        self.max_output_chars = max_output_chars
        self.output: List[str] = []
        self.steps = 0
        self.output_chars = 0
        self.last_error: Optional[ZpmError] = None

    # --- Public API ----------------------------------------------------
    def execute(self, line: str) -> bool:
        """Execute one logical line against the environment.

        Returns True on success. On failure returns False and stores the
        exception on ``last_error``; nothing is raised to the caller.
        """
        try:
            self._execute(line)
        except ZpmError as e:
            self.last_error = e
            logger.debug("statement failed (%s): %s [%r]", e.code, e, e.text)
            return False
        return True

    def run(self, code: str) -> Dict[str, object]:
        """Run a whole script, halting on the first failing line.

        Blank lines are skipped but still counted. Returns a dict with the
        captured ``output``, ``errors`` (None or a dict with ``code``,
        ``message``, ``line`` and ``context``) and the number of ``steps``.
        """
        errors = None
        # only "\n" ends a line; other separators may sit inside literals
        for lineno, raw in enumerate(code.split("\n"), start=1):
            raw = raw.rstrip("\r")
            if not strip_ws(raw):
                continue
            if not self.execute(raw):
                err = self.last_error
                errors = {
                    "code": err.code,
                    "message": str(err),
                    "line": lineno,
                    "context": {"line_text": raw},
                }
                break
        return {
            "output": "\n".join(self.output) + ("\n" if self.output else ""),
            "errors": errors,
            "steps": self.steps,
        }

    def lookup(self, name: str) -> Value:
        try:
            return self.env[name]
        except KeyError:
            raise UndefinedVariable(f"Undefined variable '{name}'", text=name)

    # --- Classification ------------------------------------------------
    def _execute(self, line: str) -> None:
        # loop bodies are expanded on an explicit stack of frames rather than
        # by recursion, so nesting depth is not bounded by the call stack
        stack: List[_LoopFrame] = []
        self._dispatch(line, stack)
        while stack:
            frame = stack[-1]
            if frame.index >= len(frame.statements):
                frame.remaining -= 1
                if frame.remaining <= 0:
                    stack.pop()
                    continue
                # re-split every pass; the body is never cached
                frame.statements = split_body(frame.body)
                frame.index = 0
            statement = frame.statements[frame.index]
            frame.index += 1
            self._dispatch(statement, stack)

    def _dispatch(self, line: str, stack: List[_LoopFrame]) -> None:
        self._count_step(line)
        line = strip_ws(line)
        tokens = split_ws(line)
        # no valid statement has fewer than two tokens
        if len(tokens) < 2:
            raise MalformedStatement("Statement too short", text=line)
        keyword = tokens[0]
        if keyword == "FOR":
            self._loop(tokens, stack)
        elif keyword == "PRINT":
            self._print(tokens[1])
        else:
            self._assign(line)

    def _count_step(self, line: str) -> None:
        self.steps += 1
        if self.max_steps is not None and self.steps > self.max_steps:
            raise StepLimitExceeded("Step limit exceeded", text=strip_ws(line))

    # --- Loops ---------------------------------------------------------
    def _loop(self, tokens: List[str], stack: List[_LoopFrame]) -> None:
        count_text = tokens[1]
        if not is_numeric(count_text) or tokens[-1] != "ENDFOR":
            raise MalformedStatement(
                "Expected: FOR <count> <statements> ENDFOR", text=" ".join(tokens)
            )
        count = parse_int(count_text)
        if count <= 0:
            return
        body = " ".join(tokens[2:-1])
        stack.append(_LoopFrame(body, count, split_body(body)))

    # --- Assignment ----------------------------------------------------
    def _assign(self, line: str) -> None:
        if not line.endswith(STATEMENT_END):
            raise MalformedStatement("Assignment must end with ' ;'", text=line)
        # need a name, an operator and a value at minimum
        if len(split_ws(line)) < 3:
            raise MalformedStatement("Expected: <name> <op> <value> ;", text=line)
        match = HEAD_RE.match(line)
        name, op = match.group(1), match.group(2)
        if op not in OPERATORS:
            raise MalformedStatement(f"Unknown operator '{op}'", text=line)
        # the operand may be a quoted string with spaces, so take the raw
        # text between the operator and the terminator
        operand_text = line[match.end(2):len(line) - len(STATEMENT_END)].strip(WHITESPACE)
        self._apply(name, op, self._operand(operand_text))

    def _operand(self, text: str) -> Value:
        if len(text) >= 2 and text.startswith('"') and text.endswith('"'):
            return TextValue(text[1:-1])
        if is_numeric(text):
            return IntValue(parse_int(text))
        return self.lookup(text)

    def _apply(self, name: str, op: str, value: Value) -> None:
        if op == OP_SET:
            self.env[name] = value
            return

        prev = self.env.get(name)
        if prev is None:
            raise UndefinedVariable(f"Cannot apply '{op}' to undefined '{name}'", text=name)
        if type(prev) is not type(value):
            raise TypeMismatch(f"Type mismatch for '{name}' with '{op}'", text=name)

        if isinstance(prev, TextValue):
            if op != OP_ADD:
                raise TypeMismatch(f"Operator '{op}' is not defined for text", text=name)
            self.env[name] = TextValue(prev.value + value.value)
            return

        if op == OP_ADD:
            result = prev.value + value.value
        elif op == OP_SUBTRACT:
            result = prev.value - value.value
        else:
            result = prev.value * value.value
        self.env[name] = IntValue(wrap_int(result))

    # --- Output --------------------------------------------------------
    def _print(self, name: str) -> None:
        self._emit(f"{name}={self.lookup(name)}")

    def _emit(self, text: str) -> None:
        if self.max_output_chars is not None and self.output_chars + len(text) > self.max_output_chars:
            raise OutputLimitExceeded("Output length limit reached", text=text)
        self.output_chars += len(text)
        if self.output_sink is None:
            self.output.append(text)
        else:
            self.output_sink(text)

