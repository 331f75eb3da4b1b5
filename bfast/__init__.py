from .interpreter import ExecutionState, Interpreter, StepLimitExceeded, TapeBoundsExceeded
from .nodes import Command, Leaf, Loop, Node, Program, Visitor
from .parser import ParseError, Parser, UnmatchedBracket, UnterminatedLoop, parse
from .printer import Printer, to_source
from .transpiler import C_TARGET, PYTHON_TARGET, TargetLanguage, Transpiler, transpile
from .visualizer import VisualizerSession

__all__ = [
    "C_TARGET",
    "Command",
    "ExecutionState",
    "Interpreter",
    "Leaf",
    "Loop",
    "Node",
    "PYTHON_TARGET",
    "ParseError",
    "Parser",
    "Printer",
    "Program",
    "StepLimitExceeded",
    "TapeBoundsExceeded",
    "TargetLanguage",
    "Transpiler",
    "UnmatchedBracket",
    "UnterminatedLoop",
    "Visitor",
    "VisualizerSession",
    "parse",
    "to_source",
    "transpile",
]
