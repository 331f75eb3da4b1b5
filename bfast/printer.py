from __future__ import annotations

from typing import List, Optional, TextIO, Tuple

from .nodes import Leaf, Loop, Program, Visitor

Span = Tuple[int, int]


class Printer(Visitor):
    """Writes normalized source text for a tree.

    ``spans`` holds the ``(start, end)`` offsets of every Leaf and Loop of
    the last printed program, in the order of :func:`bfast.nodes.index_nodes`.
    """

    def __init__(self, stream: Optional[TextIO] = None) -> None:
        self.stream = stream
        self.parts: List[str] = []
        self.spans: List[Span] = []
        self._length = 0

    def getvalue(self) -> str:
        return "".join(self.parts)

    def _write(self, text: str) -> None:
        self.parts.append(text)
        self._length += len(text)
        if self.stream is not None:
            self.stream.write(text)

    def visit_leaf(self, leaf: Leaf) -> None:
        start = self._length
        # ZeroSet's value is "[-]", so repetition is uniform across commands
        self._write(leaf.command.value * leaf.count)
        self.spans.append((start, self._length))

    def visit_loop(self, loop: Loop) -> None:
        index = len(self.spans)
        start = self._length
        self.spans.append((start, start))
        self._write("[")
        self.visit_children(loop)
        self._write("]")
        self.spans[index] = (start, self._length)

    def visit_program(self, program: Program) -> None:
        self.parts = []
        self.spans = []
        self._length = 0
        self.visit_children(program)
        self._write("\n")


def to_source(program: Program) -> str:
    printer = Printer()
    printer.visit(program)
    return printer.getvalue()


def source_spans(program: Program) -> Tuple[str, List[Span]]:
    """Return the normalized source (without the trailing newline) and node spans."""
    printer = Printer()
    printer.visit(program)
    return printer.getvalue()[:-1], list(printer.spans)


__all__ = ["Printer", "Span", "source_spans", "to_source"]
