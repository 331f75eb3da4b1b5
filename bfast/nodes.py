from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterator, Tuple, Union


class Command(str, Enum):
    INCREMENT = "+"
    DECREMENT = "-"
    SHIFT_LEFT = "<"
    SHIFT_RIGHT = ">"
    INPUT = ","
    OUTPUT = "."
    ZERO_SET = "[-]"

    @classmethod
    def from_symbol(cls, symbol: str) -> "Command":
        command = _SYMBOLS.get(symbol)
        if command is None:
            raise ValueError(f"Not a command symbol: {symbol!r}")
        return command


_SYMBOLS: Dict[str, Command] = {
    command.value: command for command in Command if command is not Command.ZERO_SET
}

COMMAND_SYMBOLS = frozenset(_SYMBOLS)


# === AST Nodes ===


class Node:
    def accept(self, visitor: "Visitor") -> Any:
        raise NotImplementedError


@dataclass(frozen=True)
class Leaf(Node):
    command: Command
    count: int = 1

    def __post_init__(self) -> None:
        if self.count < 1:
            raise ValueError(f"Leaf count must be at least 1, got {self.count}")

    def accept(self, visitor: "Visitor") -> Any:
        return visitor.visit_leaf(self)


@dataclass(frozen=True)
class Loop(Node):
    children: Tuple[Node, ...] = ()

    def accept(self, visitor: "Visitor") -> Any:
        return visitor.visit_loop(self)


@dataclass(frozen=True)
class Program(Node):
    children: Tuple[Node, ...] = ()

    def accept(self, visitor: "Visitor") -> Any:
        return visitor.visit_program(self)


Container = Union[Loop, Program]


class Visitor:
    """Base class for tree backends.

    Subclasses implement one handler per node type. Container handlers call
    :meth:`visit_children` (or iterate ``children`` themselves) so that the
    visitor, not the tree, decides how often a loop body runs.
    """

    def visit(self, node: Node) -> Any:
        if not isinstance(node, (Leaf, Loop, Program)):
            raise TypeError(f"Cannot visit {type(node).__name__}")
        return node.accept(self)

    def visit_children(self, node: Container) -> None:
        for child in node.children:
            child.accept(self)

    def visit_leaf(self, leaf: Leaf) -> Any:
        raise NotImplementedError

    def visit_loop(self, loop: Loop) -> Any:
        raise NotImplementedError

    def visit_program(self, program: Program) -> Any:
        raise NotImplementedError


# === Tree helpers ===


def walk(node: Node) -> Iterator[Node]:
    """Yield ``node`` and its descendants in pre-order."""
    stack = [node]
    while stack:
        current = stack.pop()
        yield current
        if isinstance(current, (Loop, Program)):
            stack.extend(reversed(current.children))


def index_nodes(program: Program) -> Dict[int, int]:
    """Map ``id(node)`` of every Leaf and Loop to its pre-order ordinal.

    Identity is used because equal leaves compare equal as dataclasses.
    The Program root itself is not numbered.
    """
    ordinals: Dict[int, int] = {}
    for node in walk(program):
        if node is program:
            continue
        ordinals[id(node)] = len(ordinals)
    return ordinals


def count_nodes(node: Node) -> int:
    return sum(1 for _ in walk(node))


def to_dict(node: Node) -> Dict[str, Any]:
    if isinstance(node, Leaf):
        return {"type": "leaf", "command": node.command.name.lower(), "count": node.count}
    if isinstance(node, Loop):
        return {"type": "loop", "children": [to_dict(child) for child in node.children]}
    if isinstance(node, Program):
        return {"type": "program", "children": [to_dict(child) for child in node.children]}
    raise TypeError(f"Unknown node type: {type(node).__name__}")


__all__ = [
    "COMMAND_SYMBOLS",
    "Command",
    "Container",
    "Leaf",
    "Loop",
    "Node",
    "Program",
    "Visitor",
    "count_nodes",
    "index_nodes",
    "to_dict",
    "walk",
]
