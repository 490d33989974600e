from __future__ import annotations

import io
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from fastapi import FastAPI, HTTPException, Response, status
from fastapi.responses import FileResponse
from fastapi.staticfiles import StaticFiles
from pydantic import BaseModel, Field

from bft.errors import ExecutionError, LoaderError
from bft.program import Program, load
from bft.tape import DEFAULT_TAPE_SIZE
from bft.vm import ExecutionState, MachineConfig, StepLimitExceeded, VirtualMachine

from .session import SessionRecord, SessionStore


def _string_to_input_bytes(data: str) -> bytes:
    return data.encode("utf-8")


def _state_to_dict(state: ExecutionState) -> dict:
    return {
        "step": state.step,
        "ip": state.ip,
        "instruction": state.instruction,
        "line": state.line,
        "column": state.column,
        "head": state.head,
        "tape_start": state.tape_start,
        "tape": list(state.tape),
        "output": state.output.decode("latin-1"),
        "code_length": state.code_length,
    }


def _calculate_total_steps(
    program: Program,
    config: MachineConfig,
    input_template: bytes,
    cap: int = 10000,
) -> Tuple[int, bool]:
    machine = VirtualMachine(program, config, max_steps=cap)
    try:
        machine.run(io.BytesIO(input_template), io.BytesIO())
    except StepLimitExceeded:
        return cap, True
    except ExecutionError:
        pass
    return machine.steps, machine.steps >= cap


class SessionConfiguration(BaseModel):
    code: str = ""
    input: str = ""
    tape_window: int = Field(default=10, ge=0)
    max_steps: Optional[int] = Field(default=None, ge=1)
    history_limit: int = Field(default=200, ge=1)
    tape_size: int = Field(default=DEFAULT_TAPE_SIZE, ge=1)
    growable: bool = False


class SessionState(BaseModel):
    step: int
    ip: int
    instruction: Optional[str]
    line: Optional[int]
    column: Optional[int]
    head: int
    tape_start: int
    tape: List[int]
    output: str
    code_length: int


class SessionPayload(BaseModel):
    session_id: str
    code: str
    state: SessionState
    history: List[SessionState]
    finished: bool
    error: Optional[str]
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
    error: Optional[str]
    history_size: int
    breakpoints: List[int]
    hit_breakpoint: Optional[int]
    total_steps: int
    total_steps_capped: bool


class RunRequest(BaseModel):
    limit: Optional[int] = Field(default=None, ge=1)
    ignore_breakpoints: bool = False


class BreakpointRequest(BaseModel):
    ip: int = Field(ge=0)


def create_app(
    store: Optional[SessionStore] = None,
    *,
    static_dir: Optional[Path] = None,
) -> FastAPI:
    session_store = store if store is not None else SessionStore()
    app = FastAPI(title="bft debugging API", version="0.1.0")

    static_directory = static_dir or Path(__file__).resolve().parent / "static"
    if static_directory.exists():
        app.mount("/static", StaticFiles(directory=str(static_directory)), name="static")

        @app.get("/", response_class=FileResponse)
        def serve_index() -> FileResponse:
            index_path = static_directory / "index.html"
            if not index_path.exists():
                raise HTTPException(
                    status_code=status.HTTP_404_NOT_FOUND,
                    detail="index.html not found",
                )
            return FileResponse(index_path)

    def _get_record(session_id: str) -> SessionRecord:
        try:
            return session_store.get(session_id)
        except KeyError as exc:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc

    def _serialize_states(states: Sequence[ExecutionState]) -> List[SessionState]:
        return [SessionState(**_state_to_dict(state)) for state in states]

    def _error_text(record: SessionRecord) -> Optional[str]:
        error = record.session.error
        return str(error) if error is not None else None

    def _build_payload(record: SessionRecord) -> SessionPayload:
        session = record.session
        return SessionPayload(
            session_id=record.session_id,
            code=session.code,
            state=SessionState(**_state_to_dict(session.current_state())),
            history=_serialize_states(session.history),
            finished=session.is_finished(),
            error=_error_text(record),
            history_size=len(session.history),
            breakpoints=session.list_breakpoints(),
            hit_breakpoint=session.hit_breakpoint,
            total_steps=record.total_steps,
            total_steps_capped=record.total_steps_capped,
        )

    def _build_step_response(record: SessionRecord, states: Sequence[ExecutionState]) -> StepResponse:
        session = record.session
        return StepResponse(
            session_id=record.session_id,
            code=session.code,
            states=_serialize_states(states),
            history=_serialize_states(session.history),
            finished=session.is_finished(),
            error=_error_text(record),
            history_size=len(session.history),
            breakpoints=session.list_breakpoints(),
            hit_breakpoint=session.hit_breakpoint,
            total_steps=record.total_steps,
            total_steps_capped=record.total_steps_capped,
        )

    @app.post("/api/session", response_model=SessionPayload, status_code=status.HTTP_201_CREATED)
    def create_session(payload: SessionConfiguration) -> SessionPayload:
        try:
            program = load(payload.code, "<session>")
        except LoaderError as exc:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail=str(exc),
            ) from exc

        config = MachineConfig(tape_size=payload.tape_size, growable=payload.growable)
        input_bytes = _string_to_input_bytes(payload.input)
        total_steps, total_steps_capped = _calculate_total_steps(program, config, input_bytes)

        record = session_store.create_session(
            code=payload.code,
            input_template=input_bytes,
            tape_window=payload.tape_window,
            max_steps=payload.max_steps,
            history_limit=payload.history_limit,
            tape_size=payload.tape_size,
            growable=payload.growable,
            total_steps=total_steps,
            total_steps_capped=total_steps_capped,
        )
        return _build_payload(record)

    @app.get("/api/session/{session_id}", response_model=SessionPayload)
    def get_session(session_id: str) -> SessionPayload:
        return _build_payload(_get_record(session_id))

    @app.post("/api/session/{session_id}/reset", response_model=SessionPayload)
    def reset_session(session_id: str) -> SessionPayload:
        try:
            record = session_store.reset(session_id)
        except KeyError as exc:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
        return _build_payload(record)

    @app.post("/api/session/{session_id}/step", response_model=StepResponse)
    def step_session(session_id: str, payload: StepRequest) -> StepResponse:
        record = _get_record(session_id)
        try:
            states = list(record.session.step_forward(payload.count))
        except (StepLimitExceeded, ExecutionError) as exc:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=str(exc),
            ) from exc
        return _build_step_response(record, states)

    @app.post("/api/session/{session_id}/run", response_model=StepResponse)
    def run_session(session_id: str, payload: RunRequest) -> StepResponse:
        record = _get_record(session_id)
        session = record.session
        original_breakpoints: Optional[set[int]] = None
        if payload.ignore_breakpoints:
            original_breakpoints = set(session.breakpoints)
            session.clear_breakpoints()
            session.hit_breakpoint = None

        try:
            states = list(session.run_until_break(payload.limit))
        except (StepLimitExceeded, ExecutionError) as exc:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=str(exc),
            ) from exc
        finally:
            if original_breakpoints is not None:
                session.breakpoints = set(original_breakpoints)
                session.hit_breakpoint = None

        return _build_step_response(record, states)

    @app.post("/api/session/{session_id}/breakpoints", response_model=SessionPayload)
    def add_breakpoint(session_id: str, payload: BreakpointRequest) -> SessionPayload:
        record = _get_record(session_id)
        record.session.add_breakpoint(payload.ip)
        return _build_payload(record)

    @app.delete("/api/session/{session_id}/breakpoints/{ip}", response_model=SessionPayload)
    def remove_breakpoint(session_id: str, ip: int) -> SessionPayload:
        record = _get_record(session_id)
        if not record.session.remove_breakpoint(ip):
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"Breakpoint not found at ip={ip}",
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
