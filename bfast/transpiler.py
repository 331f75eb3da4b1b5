from __future__ import annotations

import logging
from dataclasses import dataclass
from string import Template
from typing import Dict, List, Optional, Tuple, Union

from .interpreter import TAPE_LENGTH
from .nodes import Command, Leaf, Loop, Program, Visitor

logger = logging.getLogger(__name__)

# Commands emitted once per repetition; the rest fold the count into one statement.
_PER_REPETITION = (Command.INPUT, Command.OUTPUT)


@dataclass(frozen=True)
class TargetLanguage:
    """Statement templates for one output language.

    Templates are :class:`string.Template` strings; ``$count`` is the leaf's
    repeat count and ``$tape_length`` the size of the emitted tape.
    ``loop_close`` is ``None`` for indentation-delimited languages, which
    use ``empty_body`` for loops without children.
    """

    name: str
    prologue: Tuple[str, ...]
    epilogue: Tuple[str, ...]
    statements: Dict[Command, str]
    loop_open: str
    loop_close: Optional[str]
    empty_body: Optional[str] = None
    indent: str = "    "
    base_depth: int = 1


C_TARGET = TargetLanguage(
    name="c",
    prologue=(
        "#include <stdio.h>",
        "",
        "static unsigned char tape[$tape_length];",
        "",
        "int main(void)",
        "{",
        "    int ptr = 0;",
        "    int c;",
        "",
    ),
    epilogue=(
        "    fflush(stdout);",
        "    return 0;",
        "}",
    ),
    statements={
        Command.INCREMENT: "tape[ptr] += $count;",
        Command.DECREMENT: "tape[ptr] -= $count;",
        Command.SHIFT_LEFT: "ptr -= $count;",
        Command.SHIFT_RIGHT: "ptr += $count;",
        Command.INPUT: "c = getchar(); tape[ptr] = c == EOF ? 0 : (unsigned char)c;",
        Command.OUTPUT: "putchar(tape[ptr]);",
        Command.ZERO_SET: "tape[ptr] = 0;",
    },
    loop_open="while (tape[ptr] != 0) {",
    loop_close="}",
)


PYTHON_TARGET = TargetLanguage(
    name="python",
    prologue=(
        "import sys",
        "",
        "tape = bytearray($tape_length)",
        "ptr = 0",
        "stdin = sys.stdin.buffer",
        "stdout = sys.stdout.buffer",
        "",
        "",
        "def read_byte():",
        "    data = stdin.read(1)",
        "    return data[0] if data else 0",
        "",
        "",
    ),
    epilogue=("stdout.flush()",),
    statements={
        Command.INCREMENT: "tape[ptr] = (tape[ptr] + $count) % 256",
        Command.DECREMENT: "tape[ptr] = (tape[ptr] - $count) % 256",
        Command.SHIFT_LEFT: "ptr -= $count",
        Command.SHIFT_RIGHT: "ptr += $count",
        Command.INPUT: "tape[ptr] = read_byte()",
        Command.OUTPUT: "stdout.write(bytes((tape[ptr],)))",
        Command.ZERO_SET: "tape[ptr] = 0",
    },
    loop_open="while tape[ptr] != 0:",
    loop_close=None,
    empty_body="pass",
    base_depth=0,
)


TARGETS: Dict[str, TargetLanguage] = {
    C_TARGET.name: C_TARGET,
    PYTHON_TARGET.name: PYTHON_TARGET,
}


def get_target(name: str) -> TargetLanguage:
    try:
        return TARGETS[name.lower()]
    except KeyError as exc:
        choices = ", ".join(sorted(TARGETS))
        raise ValueError(f"Unknown target language '{name}' (choose from {choices})") from exc


class Transpiler(Visitor):
    def __init__(
        self,
        target: Union[str, TargetLanguage] = C_TARGET,
        tape_length: int = TAPE_LENGTH,
    ) -> None:
        self.target = get_target(target) if isinstance(target, str) else target
        self.tape_length = tape_length
        self.lines: List[str] = []
        self.depth = self.target.base_depth

    def transpile(self, program: Program) -> str:
        self.visit(program)
        logger.debug("Emitted %d lines of %s", len(self.lines), self.target.name)
        return "\n".join(self.lines) + "\n"

    def _emit(self, line: str) -> None:
        self.lines.append(self.target.indent * self.depth + line)

    def _render(self, template: str, count: int = 1) -> str:
        return Template(template).substitute(count=count, tape_length=self.tape_length)

    def visit_program(self, program: Program) -> None:
        self.lines = [self._render(line) for line in self.target.prologue]
        self.depth = self.target.base_depth
        self.visit_children(program)
        self.lines.extend(self._render(line) for line in self.target.epilogue)

    def visit_loop(self, loop: Loop) -> None:
        self._emit(self.target.loop_open)
        self.depth += 1
        if not loop.children and self.target.empty_body is not None:
            self._emit(self.target.empty_body)
        self.visit_children(loop)
        self.depth -= 1
        if self.target.loop_close is not None:
            self._emit(self.target.loop_close)

    def visit_leaf(self, leaf: Leaf) -> None:
        statement = self._render(self.target.statements[leaf.command], leaf.count)
        repeat = leaf.count if leaf.command in _PER_REPETITION else 1
        for _ in range(repeat):
            self._emit(statement)


def transpile(program: Program, target: Union[str, TargetLanguage] = C_TARGET) -> str:
    return Transpiler(target).transpile(program)


__all__ = [
    "C_TARGET",
    "PYTHON_TARGET",
    "TARGETS",
    "TargetLanguage",
    "Transpiler",
    "get_target",
    "transpile",
]
