from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, HTTPException, Response, status
from pydantic import BaseModel, Field, field_validator

from bfast.interpreter import ExecutionState, Interpreter, StepLimitExceeded, TapeBoundsExceeded
from bfast.nodes import Program, count_nodes, to_dict
from bfast.parser import ParseError, parse
from bfast.printer import source_spans
from bfast.transpiler import TARGETS, Transpiler
from bfast.visualizer import VisualizerSession

from .session import SessionRecord, SessionStore

logger = logging.getLogger(__name__)

DEFAULT_RUN_STEPS = 1_000_000


def _string_to_input_bytes(data: str) -> List[int]:
    return list(data.encode("utf-8"))


def _state_to_dict(state: ExecutionState) -> dict:
    return {
        "step": state.step,
        "node": state.node,
        "command": state.command,
        "count": state.count,
        "pointer": state.pointer,
        "tape_start": state.tape_start,
        "tape": list(state.tape),
        "output": state.output,
        "node_count": state.node_count,
    }


def _calculate_total_steps(program: Program, input_template: List[int], cap: int = 10000) -> tuple[int, bool]:
    interpreter = Interpreter()
    try:
        interpreter.run(program, input_data=list(input_template), max_steps=cap)
    except StepLimitExceeded:
        return cap, True
    except TapeBoundsExceeded:
        pass
    return interpreter.steps, False


def _parse_or_422(code: str, strict: bool) -> Program:
    try:
        return parse(code, strict=strict)
    except ParseError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(exc),
        ) from exc


class SourceRequest(BaseModel):
    code: str = ""
    strict: bool = True


class ParseResponse(BaseModel):
    code: str
    node_count: int
    tree: Dict[str, Any]


class TranspileRequest(SourceRequest):
    target: str = "c"

    @field_validator("target")
    @classmethod
    def validate_target(cls, value: str) -> str:
        normalized = value.lower()
        if normalized not in TARGETS:
            raise ValueError(f"target must be one of: {', '.join(sorted(TARGETS))}")
        return normalized


class TranspileResponse(BaseModel):
    target: str
    source: str


class ExecuteRequest(SourceRequest):
    input: str = ""
    max_steps: int = Field(default=DEFAULT_RUN_STEPS, ge=1)


class ExecuteResponse(BaseModel):
    output: str
    steps: int
    pointer: int


class SessionConfiguration(SourceRequest):
    input: str = ""
    tape_window: int = Field(default=10, ge=0)
    max_steps: Optional[int] = Field(default=None, ge=1)
    history_limit: int = Field(default=200, ge=1)


class SessionState(BaseModel):
    step: int
    node: Optional[int]
    command: Optional[str]
    count: int
    pointer: int
    tape_start: int
    tape: List[int]
    output: str
    node_count: int


class SessionPayload(BaseModel):
    session_id: str
    code: str
    original_source: Optional[str]
    state: SessionState
    history: List[SessionState]
    finished: bool
    history_size: int
    breakpoints: List[int]
    hit_breakpoint: Optional[int]
    total_steps: int
    total_steps_capped: bool


class StepRequest(BaseModel):
    count: int = Field(default=1, ge=1)


class StepResponse(BaseModel):
    session_id: str
    code: str
    states: List[SessionState]
    history: List[SessionState]
    finished: bool
    history_size: int
    breakpoints: List[int]
    hit_breakpoint: Optional[int]
    total_steps: int
    total_steps_capped: bool


class RunRequest(BaseModel):
    limit: Optional[int] = Field(default=None, ge=1)
    ignore_breakpoints: bool = False


class BreakpointRequest(BaseModel):
    node: int = Field(ge=0)


def create_app(store: Optional[SessionStore] = None) -> FastAPI:
    session_store = store or SessionStore()
    app = FastAPI(title="bfast API", version="0.1.0")

    def _get_record(session_id: str) -> SessionRecord:
        try:
            return session_store.get(session_id)
        except KeyError as exc:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc

    def _serialize_states(states: List[ExecutionState]) -> List[SessionState]:
        return [SessionState(**_state_to_dict(state)) for state in states]

    def _build_payload(record: SessionRecord) -> SessionPayload:
        session = record.session
        state = session.current_state()
        return SessionPayload(
            session_id=record.session_id,
            code=session.code,
            original_source=record.original_source,
            state=SessionState(**_state_to_dict(state)),
            history=_serialize_states(session.history),
            finished=session.is_finished(),
            history_size=len(session.history),
            breakpoints=session.list_breakpoints(),
            hit_breakpoint=session.hit_breakpoint,
            total_steps=record.total_steps,
            total_steps_capped=record.total_steps_capped,
        )

    def _build_step_response(record: SessionRecord, states: List[ExecutionState]) -> StepResponse:
        session: VisualizerSession = record.session
        return StepResponse(
            session_id=record.session_id,
            code=session.code,
            states=_serialize_states(states),
            history=_serialize_states(session.history),
            finished=session.is_finished(),
            history_size=len(session.history),
            breakpoints=session.list_breakpoints(),
            hit_breakpoint=session.hit_breakpoint,
            total_steps=record.total_steps,
            total_steps_capped=record.total_steps_capped,
        )

    @app.post("/api/parse", response_model=ParseResponse)
    def parse_source(payload: SourceRequest) -> ParseResponse:
        program = _parse_or_422(payload.code, payload.strict)
        code, _ = source_spans(program)
        return ParseResponse(code=code, node_count=count_nodes(program) - 1, tree=to_dict(program))

    @app.post("/api/transpile", response_model=TranspileResponse)
    def transpile_source(payload: TranspileRequest) -> TranspileResponse:
        program = _parse_or_422(payload.code, payload.strict)
        return TranspileResponse(
            target=payload.target,
            source=Transpiler(payload.target).transpile(program),
        )

    @app.post("/api/run", response_model=ExecuteResponse)
    def run_source(payload: ExecuteRequest) -> ExecuteResponse:
        program = _parse_or_422(payload.code, payload.strict)
        interpreter = Interpreter()
        try:
            output = interpreter.run(
                program,
                input_data=_string_to_input_bytes(payload.input),
                max_steps=payload.max_steps,
            )
        except (StepLimitExceeded, TapeBoundsExceeded) as exc:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
        return ExecuteResponse(output=output, steps=interpreter.steps, pointer=interpreter.pointer)

    @app.post("/api/session", response_model=SessionPayload, status_code=status.HTTP_201_CREATED)
    def create_session(payload: SessionConfiguration) -> SessionPayload:
        program = _parse_or_422(payload.code, payload.strict)
        input_bytes = _string_to_input_bytes(payload.input)
        total_steps, total_steps_capped = _calculate_total_steps(program, input_bytes)

        record = session_store.create_session(
            program=program,
            input_template=input_bytes,
            tape_window=payload.tape_window,
            max_steps=payload.max_steps,
            history_limit=payload.history_limit,
            source=payload.code,
            total_steps=total_steps,
            total_steps_capped=total_steps_capped,
        )
        logger.debug("Created session %s", record.session_id)
        return _build_payload(record)

    @app.get("/api/session/{session_id}", response_model=SessionPayload)
    def get_session(session_id: str) -> SessionPayload:
        return _build_payload(_get_record(session_id))

    @app.post("/api/session/{session_id}/reset", response_model=SessionPayload)
    def reset_session(session_id: str) -> SessionPayload:
        with session_store.lock:
            try:
                record = session_store.reset(session_id)
            except KeyError as exc:
                raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
            return _build_payload(record)

    @app.post("/api/session/{session_id}/step", response_model=StepResponse)
    def step_session(session_id: str, payload: StepRequest) -> StepResponse:
        with session_store.lock:
            record = _get_record(session_id)
            try:
                states = record.session.step_forward(payload.count)
            except (StepLimitExceeded, TapeBoundsExceeded) as exc:
                raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
            return _build_step_response(record, list(states))

    @app.post("/api/session/{session_id}/run", response_model=StepResponse)
    def run_session(session_id: str, payload: RunRequest) -> StepResponse:
        with session_store.lock:
            record = _get_record(session_id)
            session = record.session
            original_breakpoints: Optional[set[int]] = None
            if payload.ignore_breakpoints:
                original_breakpoints = set(session.breakpoints)
                session.clear_breakpoints()
                session.hit_breakpoint = None

            try:
                states = list(session.run_until_break(payload.limit))
            except (StepLimitExceeded, TapeBoundsExceeded) as exc:
                raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
            finally:
                if original_breakpoints is not None:
                    session.breakpoints = original_breakpoints
                    session.hit_breakpoint = None

            return _build_step_response(record, states)

    @app.post("/api/session/{session_id}/breakpoints", response_model=SessionPayload)
    def add_breakpoint(session_id: str, payload: BreakpointRequest) -> SessionPayload:
        with session_store.lock:
            record = _get_record(session_id)
            try:
                record.session.add_breakpoint(payload.node)
            except ValueError as exc:
                raise HTTPException(
                    status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                    detail=str(exc),
                ) from exc
            return _build_payload(record)

    @app.delete("/api/session/{session_id}/breakpoints/{node}", response_model=SessionPayload)
    def remove_breakpoint(session_id: str, node: int) -> SessionPayload:
        with session_store.lock:
            record = _get_record(session_id)
            if not record.session.remove_breakpoint(node):
                raise HTTPException(
                    status_code=status.HTTP_404_NOT_FOUND,
                    detail=f"Breakpoint not found at node={node}",
                )
            return _build_payload(record)

    @app.delete("/api/session/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
    def delete_session(session_id: str) -> Response:
        if not session_store.remove(session_id):
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"Unknown session id: {session_id}",
            )
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    return app


__all__ = ["create_app"]
