from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import BinaryIO, Iterable, Iterator, List, Optional

from .nodes import Command, Container, Leaf, Loop, Node, Program, Visitor, index_nodes

logger = logging.getLogger(__name__)

TAPE_LENGTH = 30000


class StepLimitExceeded(RuntimeError):
    """Raised when execution exceeds the configured step budget."""


class TapeBoundsExceeded(IndexError):
    """Raised when the data pointer leaves the tape."""


@dataclass
class ExecutionState:
    step: int
    node: Optional[int]
    command: Optional[str]
    count: int
    pointer: int
    tape_start: int
    tape: List[int]
    output: str
    node_count: int


@dataclass
class Interpreter(Visitor):
    """Executes a tree against a fixed byte tape.

    Every visit handler is a generator that yields the node it just
    executed (a Leaf, or a Loop after each condition test), which lets
    :meth:`run` and :meth:`step` share one traversal.
    """

    tape_length: int = TAPE_LENGTH
    stdout: Optional[BinaryIO] = None

    tape: bytearray = field(init=False, repr=False)
    pointer: int = field(init=False, repr=False)
    output_buffer: List[str] = field(init=False, repr=False)
    steps: int = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self.max_steps: Optional[int] = None
        self._input: Iterator[int] = iter(())
        self.reset()

    def reset(self) -> None:
        self.tape = bytearray(self.tape_length)
        self.pointer = 0
        self.output_buffer = []
        self.steps = 0

    def run(
        self,
        program: Program,
        input_data: Optional[Iterable[int]] = None,
        max_steps: Optional[int] = None,
    ) -> str:
        for _ in self._execute(program, input_data, max_steps):
            pass
        return "".join(self.output_buffer)

    def step(
        self,
        program: Program,
        input_data: Optional[Iterable[int]] = None,
        max_steps: Optional[int] = None,
        tape_window: int = 10,
    ) -> Iterator[ExecutionState]:
        ordinals = index_nodes(program)
        node_count = len(ordinals)
        for node in self._execute(program, input_data, max_steps):
            yield self._snapshot(node, ordinals.get(id(node)), node_count, tape_window)

        # Final snapshot marks completion
        yield self._snapshot(None, None, node_count, tape_window)

    def _execute(
        self,
        program: Program,
        input_data: Optional[Iterable[int]],
        max_steps: Optional[int],
    ) -> Iterator[Node]:
        self._input = iter(input_data if input_data is not None else ())
        self.max_steps = max_steps
        yield from self.visit(program)
        logger.debug("Program finished after %d steps", self.steps)

    # --- Visitor handlers ---

    def visit_children(self, node: Container) -> Iterator[Node]:
        for child in node.children:
            yield from child.accept(self)

    def visit_program(self, program: Program) -> Iterator[Node]:
        self.reset()
        yield from self.visit_children(program)

    def visit_loop(self, loop: Loop) -> Iterator[Node]:
        while True:
            self._tick()
            yield loop
            if self.tape[self.pointer] == 0:
                return
            yield from self.visit_children(loop)

    def visit_leaf(self, leaf: Leaf) -> Iterator[Node]:
        self._tick()
        self._execute_leaf(leaf)
        yield leaf

    # --- Helpers ---

    def _tick(self) -> None:
        if self.max_steps is not None and self.steps >= self.max_steps:
            raise StepLimitExceeded("Program exceeded allowed step count")
        self.steps += 1

    def _execute_leaf(self, leaf: Leaf) -> None:
        command = leaf.command
        count = leaf.count
        if command is Command.INCREMENT:
            self.tape[self.pointer] = (self.tape[self.pointer] + count) % 256
        elif command is Command.DECREMENT:
            self.tape[self.pointer] = (self.tape[self.pointer] - count) % 256
        elif command is Command.SHIFT_RIGHT:
            self._move(count)
        elif command is Command.SHIFT_LEFT:
            self._move(-count)
        elif command is Command.OUTPUT:
            for _ in range(count):
                self._write(self.tape[self.pointer])
        elif command is Command.INPUT:
            for _ in range(count):
                self.tape[self.pointer] = self._read()
        elif command is Command.ZERO_SET:
            self.tape[self.pointer] = 0
        else:
            raise ValueError(f"Unhandled command: {command!r}")

    def _move(self, delta: int) -> None:
        target = self.pointer + delta
        if target >= self.tape_length:
            raise TapeBoundsExceeded("Pointer moved beyond the tape length.")
        if target < 0:
            raise TapeBoundsExceeded("Pointer moved before start of tape.")
        self.pointer = target

    def _read(self) -> int:
        value = next(self._input, None)
        if value is None:
            return 0
        return value & 0xFF

    def _write(self, value: int) -> None:
        self.output_buffer.append(chr(value))
        if self.stdout is not None:
            self.stdout.write(bytes((value,)))
            self.stdout.flush()

    def _snapshot(
        self,
        node: Optional[Node],
        ordinal: Optional[int],
        node_count: int,
        tape_window: int,
    ) -> ExecutionState:
        if isinstance(node, Leaf):
            command: Optional[str] = node.command.value
            count = node.count
        elif isinstance(node, Loop):
            command, count = "[", 1
        else:
            command, count = None, 0
        start = max(0, self.pointer - tape_window)
        end = min(self.tape_length, self.pointer + tape_window + 1)
        return ExecutionState(
            step=self.steps,
            node=ordinal,
            command=command,
            count=count,
            pointer=self.pointer,
            tape_start=start,
            tape=list(self.tape[start:end]),
            output="".join(self.output_buffer),
            node_count=node_count,
        )


def run(
    program: Program,
    input_data: Optional[Iterable[int]] = None,
    max_steps: Optional[int] = None,
) -> str:
    return Interpreter().run(program, input_data=input_data, max_steps=max_steps)


__all__ = [
    "ExecutionState",
    "Interpreter",
    "StepLimitExceeded",
    "TAPE_LENGTH",
    "TapeBoundsExceeded",
    "run",
]
