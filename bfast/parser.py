from __future__ import annotations

import logging
from typing import List, Optional, TextIO, Union

from .nodes import COMMAND_SYMBOLS, Command, Leaf, Loop, Node, Program

logger = logging.getLogger(__name__)


class ParseError(Exception):
    def __init__(self, message: str, position: Optional[int] = None) -> None:
        super().__init__(message)
        self.position = position


class UnmatchedBracket(ParseError):
    """A ']' was found with no open loop."""


class UnterminatedLoop(ParseError):
    """A '[' was never closed before the end of input."""


_ZERO_LOOP_COMMANDS = (Command.INCREMENT, Command.DECREMENT)
_SYNTAX = COMMAND_SYMBOLS | {"[", "]"}

# Backends recurse once per loop level; this keeps them under the recursion limit.
MAX_DEPTH = 200


class Parser:
    """Recursive-descent parser building a :class:`Program`.

    Runs of the same command character are folded into a single Leaf, even
    when comments sit between them, and loops whose whole body is one ``+``
    or ``-`` leaf become a ZeroSet leaf. Characters outside the command
    alphabet are comments.

    With ``strict=False`` unbalanced brackets are tolerated: a stray ``]``
    at the top level stops parsing and an unclosed ``[`` swallows the rest
    of the input.
    """

    def __init__(self, strict: bool = True, max_depth: int = MAX_DEPTH) -> None:
        self.strict = strict
        self.max_depth = max_depth

    def parse(self, source: Union[str, TextIO]) -> Program:
        self.text = source if isinstance(source, str) else source.read()
        self.pos = 0
        children = self._parse_sequence(opened_at=None, depth=0)
        program = Program(children=tuple(children))
        logger.debug("Parsed %d characters into %d top-level nodes", len(self.text), len(children))
        return program

    def _peek(self) -> Optional[str]:
        if self.pos >= len(self.text):
            return None
        return self.text[self.pos]

    def _advance(self) -> Optional[str]:
        char = self._peek()
        if char is not None:
            self.pos += 1
        return char

    def _parse_sequence(self, opened_at: Optional[int], depth: int) -> List[Node]:
        children: List[Node] = []
        while True:
            char = self._advance()
            if char is None:
                if opened_at is not None and self.strict:
                    raise UnterminatedLoop(
                        f"Unterminated '[' at position {opened_at}", opened_at
                    )
                return children
            if char == "]":
                if opened_at is None:
                    if self.strict:
                        raise UnmatchedBracket(
                            f"Unmatched ']' at position {self.pos - 1}", self.pos - 1
                        )
                    logger.debug("Stray ']' at position %d ends the program", self.pos - 1)
                return children
            if char == "[":
                if depth >= self.max_depth:
                    raise ParseError(
                        f"Loops nested deeper than {self.max_depth} at position {self.pos - 1}",
                        self.pos - 1,
                    )
                body = self._parse_sequence(opened_at=self.pos - 1, depth=depth + 1)
                children.append(self._close_loop(body))
            elif char in COMMAND_SYMBOLS:
                children.append(self._parse_run(char))

    def _next_symbol(self) -> Optional[int]:
        """Position of the next command or bracket character, skipping comments."""
        pos = self.pos
        while pos < len(self.text):
            if self.text[pos] in _SYNTAX:
                return pos
            pos += 1
        return None

    def _parse_run(self, char: str) -> Leaf:
        # comments inside a run do not split it
        count = 1
        while True:
            pos = self._next_symbol()
            if pos is None or self.text[pos] != char:
                break
            self.pos = pos + 1
            count += 1
        return Leaf(command=Command.from_symbol(char), count=count)

    def _close_loop(self, body: List[Node]) -> Node:
        if len(body) == 1:
            only = body[0]
            if isinstance(only, Leaf) and only.command in _ZERO_LOOP_COMMANDS:
                return Leaf(command=Command.ZERO_SET, count=1)
        return Loop(children=tuple(body))


def parse(source: Union[str, TextIO], strict: bool = True) -> Program:
    return Parser(strict=strict).parse(source)


__all__ = [
    "MAX_DEPTH",
    "ParseError",
    "Parser",
    "UnmatchedBracket",
    "UnterminatedLoop",
    "parse",
]
