from __future__ import annotations

import argparse
import shlex
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence

from .interpreter import ExecutionState, Interpreter, StepLimitExceeded, TapeBoundsExceeded
from .nodes import Program
from .parser import ParseError, parse
from .printer import Span, source_spans


def _to_input_bytes(data: str) -> List[int]:
    return list(data.encode("utf-8"))


@dataclass
class VisualizerSession:
    """Steps an :class:`Interpreter` through a tree one node at a time.

    Breakpoints are node ordinals (see :func:`bfast.nodes.index_nodes`);
    execution pauses right after the node with that ordinal runs.
    """

    program: Program
    input_template: List[int]
    tape_window: int = 10
    max_steps: Optional[int] = None
    history_limit: int = 200

    def __post_init__(self) -> None:
        self.code, self.spans = source_spans(self.program)
        self.breakpoints: set[int] = set()
        self.history: List[ExecutionState] = []
        self.hit_breakpoint: Optional[int] = None
        self._init_interpreter()

    def _init_interpreter(self) -> None:
        self.interpreter = Interpreter()
        self._restart_generator()
        self.finished = False
        self.last_state: ExecutionState = self._initial_state()
        self._record_state(self.last_state)

    def _restart_generator(self) -> None:
        self.step_iter = self.interpreter.step(
            self.program,
            input_data=list(self.input_template),
            max_steps=self.max_steps,
            tape_window=self.tape_window,
        )

    def restart(self) -> None:
        self._init_interpreter()

    def _initial_state(self) -> ExecutionState:
        pointer = self.interpreter.pointer
        start = max(0, pointer - self.tape_window)
        end = min(self.interpreter.tape_length, pointer + self.tape_window + 1)
        return ExecutionState(
            step=0,
            node=None,
            command=None,
            count=0,
            pointer=pointer,
            tape_start=start,
            tape=list(self.interpreter.tape[start:end]),
            output="",
            node_count=len(self.spans),
        )

    def _record_state(self, state: ExecutionState) -> None:
        self.history.append(state)
        if len(self.history) > self.history_limit:
            self.history.pop(0)
        self.last_state = state

    def step_forward(self, count: int = 1) -> Sequence[ExecutionState]:
        states: List[ExecutionState] = []
        if count <= 0:
            return states
        self.hit_breakpoint = None
        for _ in range(count):
            if self.finished:
                break
            try:
                state = next(self.step_iter)
            except StopIteration:
                self.finished = True
                break
            except (StepLimitExceeded, TapeBoundsExceeded):
                self.finished = True
                raise
            self._record_state(state)
            states.append(state)
            if state.command is None:
                self.finished = True
                break
            if state.node in self.breakpoints:
                self.hit_breakpoint = state.node
                break
        return states

    def run_until_break(self, limit: Optional[int] = None) -> Sequence[ExecutionState]:
        states: List[ExecutionState] = []
        executed = 0
        while limit is None or executed < limit:
            step_states = self.step_forward(1)
            if not step_states:
                break
            states.extend(step_states)
            executed += 1
            if self.hit_breakpoint is not None:
                break
        return states

    def current_state(self) -> ExecutionState:
        return self.last_state

    def add_breakpoint(self, node: int) -> None:
        if not 0 <= node < len(self.spans):
            raise ValueError(f"No node with ordinal {node}")
        self.breakpoints.add(node)

    def remove_breakpoint(self, node: int) -> bool:
        if node in self.breakpoints:
            self.breakpoints.remove(node)
            return True
        return False

    def clear_breakpoints(self) -> None:
        self.breakpoints.clear()

    def list_breakpoints(self) -> List[int]:
        return sorted(self.breakpoints)

    def is_finished(self) -> bool:
        return self.finished


def format_state(state: ExecutionState, code: str, spans: Sequence[Span]) -> str:
    lines: List[str] = []
    cmd_display = state.command if state.command is not None else "(init)"
    node_display = state.node if state.node is not None else "-"
    lines.append(
        f"step={state.step} node={node_display}/{state.node_count} "
        f"command={cmd_display!r} count={state.count} pointer={state.pointer}"
    )
    if state.output:
        lines.append(f"output={state.output!r}")
    tape_parts: List[str] = []
    for idx, value in enumerate(state.tape):
        absolute = state.tape_start + idx
        cell_repr = f"{absolute}:{value:03}"
        if absolute == state.pointer:
            tape_parts.append(f"[{cell_repr}]")
        else:
            tape_parts.append(f" {cell_repr} ")
    lines.append("tape=" + " ".join(tape_parts))
    span: Optional[Span] = None
    if state.node is not None:
        start, end = spans[state.node]
        # a loop test highlights only its opening bracket
        span = (start, start + 1) if state.command == "[" else (start, end)
    lines.append(f"code={_format_code_window(code, span, finished=state.step > 0 and span is None)}")
    return "\n".join(lines)


def _format_code_window(
    code: str,
    span: Optional[Span],
    window: int = 16,
    finished: bool = False,
) -> str:
    if not code:
        return "(empty)"
    if span is None:
        if finished:
            return code[max(0, len(code) - window):] + "{END}"
        return "{}" + code[: window + 1]
    start, end = span
    head = code[max(0, start - window):start]
    tail = code[end:end + window]
    return f"{head}{{{code[start:end]}}}{tail}"


def run_repl(session: VisualizerSession) -> None:
    print("bfast visualizer (type 'help' for commands)")
    _print_state(session.current_state(), session)
    while True:
        try:
            line = input("(viz) ").strip()
        except EOFError:
            print()
            break
        if not line:
            continue
        parts = shlex.split(line)
        command = parts[0].lower()
        args = parts[1:]
        try:
            if command in {"n", "next"}:
                count = 1
                if args:
                    count = max(1, int(args[0]))
                states = _guarded(session.step_forward, count)
                if states:
                    _print_state(states[-1], session)
                elif session.is_finished():
                    print("Program has finished.")
            elif command in {"r", "run"}:
                limit = int(args[0]) if args else None
                states = _guarded(session.run_until_break, limit)
                if states:
                    _print_state(states[-1], session)
                    if session.hit_breakpoint is not None:
                        print(f"Hit breakpoint at node {session.hit_breakpoint}.")
                        session.hit_breakpoint = None
                elif session.is_finished():
                    print("Program has finished.")
            elif command == "state":
                _print_state(session.current_state(), session)
            elif command == "history":
                count = int(args[0]) if args else 10
                for state in session.history[-count:]:
                    print("-" * 40)
                    print(format_state(state, session.code, session.spans))
            elif command == "break":
                if not args:
                    print("Give a node number.")
                    continue
                node = int(args[0])
                session.add_breakpoint(node)
                print(f"Breakpoint set at node {node}.")
            elif command == "breaks":
                points = session.list_breakpoints()
                if not points:
                    print("No breakpoints.")
                else:
                    print("Breakpoints:", ", ".join(map(str, points)))
            elif command == "clear":
                if not args:
                    session.clear_breakpoints()
                    print("All breakpoints cleared.")
                else:
                    node = int(args[0])
                    if session.remove_breakpoint(node):
                        print(f"Breakpoint at node {node} removed.")
                    else:
                        print(f"No breakpoint at node {node}.")
            elif command == "restart":
                session.restart()
                print("Session restarted.")
                _print_state(session.current_state(), session)
            elif command in {"quit", "exit"}:
                break
            elif command == "help":
                _print_help()
            else:
                print("Unknown command. See 'help'.")
        except ValueError as exc:
            print(f"Invalid argument: {exc}", file=sys.stderr)


def _guarded(action, argument) -> Sequence[ExecutionState]:
    try:
        return action(argument)
    except StepLimitExceeded:
        print("Step limit reached.", file=sys.stderr)
    except TapeBoundsExceeded as exc:
        print(f"Runtime error: {exc}", file=sys.stderr)
    return []


def _print_state(state: ExecutionState, session: VisualizerSession) -> None:
    print("-" * 40)
    print(format_state(state, session.code, session.spans))


def _print_help() -> None:
    print(
        "Commands:\n"
        "  next [N]    : advance N steps (default 1)\n"
        "  run [N]     : run to a breakpoint, the end, or N steps\n"
        "  state       : show the current state\n"
        "  history [N] : show the last N states\n"
        "  break NODE  : set a breakpoint on a node\n"
        "  breaks      : list breakpoints\n"
        "  clear [NODE]: remove a breakpoint (all when omitted)\n"
        "  restart     : reset the session\n"
        "  quit/exit   : leave\n"
    )


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="bfast step visualizer")
    parser.add_argument("source", help="Path to the program source file")
    parser.add_argument(
        "--input",
        default="",
        help="String supplied to the program as input",
    )
    parser.add_argument(
        "--max-steps",
        type=int,
        default=5_000_000,
        help="Step budget (default: 5,000,000)",
    )
    parser.add_argument(
        "--tape-window",
        type=int,
        default=10,
        help="Cells shown on each side of the pointer",
    )
    parser.add_argument(
        "--history-limit",
        type=int,
        default=200,
        help="Number of states kept in the history",
    )
    parser.add_argument(
        "--permissive",
        action="store_true",
        help="Tolerate unbalanced brackets",
    )
    args = parser.parse_args(argv)

    try:
        source_text = Path(args.source).read_text(encoding="utf-8", errors="replace")
    except OSError as exc:
        print(f"Cannot open file: {exc}", file=sys.stderr)
        return 1

    try:
        program = parse(source_text, strict=not args.permissive)
    except ParseError as exc:
        print(f"Parse error: {exc}", file=sys.stderr)
        return 1

    session = VisualizerSession(
        program,
        input_template=_to_input_bytes(args.input),
        tape_window=args.tape_window,
        max_steps=args.max_steps,
        history_limit=args.history_limit,
    )
    run_repl(session)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
