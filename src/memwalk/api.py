from __future__ import annotations

import os
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, HTTPException, Query
from pydantic import BaseModel, Field

from .config import ConfigError, load_layout
from .formatting import meshes_to_dict, object_types_to_dict, walk_to_dict
from .process import find_process_id
from .remote import (
    InspectorSession,
    LayoutViolationError,
    MemoryPermissionError,
    MemoryReaderError,
    ProcessNotFoundError,
    family_mesh_vertices,
    open_session,
    read_text,
    resolve_pointer_path,
)

app = FastAPI(
    title="memwalk API",
    description="Live object-hierarchy inspection of a running process.",
    version="1.0.0",
)

_SESSION: Optional[InspectorSession] = None


class ReadRequest(BaseModel):
    address: int = Field(..., ge=0, description="Address to read from.")
    type: str = Field("uint32", description="Element type, e.g. uint32 or float32.")
    count: int = Field(1, ge=0, le=1 << 20, description="Number of elements.")


class TextRequest(BaseModel):
    address: int = Field(..., ge=0)
    max_bytes: int = Field(64, ge=0, le=1 << 16)


class ResolveRequest(BaseModel):
    base: int = Field(..., ge=0, description="Address of the first pointer.")
    offsets: List[int] = Field(default_factory=list, description="Offset added before each further hop.")


def configure(session: Optional[InspectorSession]) -> None:
    global _SESSION
    _SESSION = session


def _session_from_env() -> InspectorSession:
    try:
        layout = load_layout(os.environ.get("MEMWALK_LAYOUT", "rayman2").strip() or "rayman2")
    except ConfigError as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc

    raw_pid = os.environ.get("MEMWALK_PID", "").strip()
    try:
        if raw_pid:
            pid = int(raw_pid)
        else:
            pid = find_process_id(os.environ.get("MEMWALK_PROCESS", "").strip() or layout.process_name)
        return open_session(pid, layout)
    except ValueError as exc:
        raise HTTPException(status_code=500, detail=f"Invalid MEMWALK_PID: {raw_pid}") from exc
    except MemoryReaderError as exc:
        raise _http_error(exc) from exc


def _session() -> InspectorSession:
    global _SESSION
    if _SESSION is None:
        _SESSION = _session_from_env()
    return _SESSION


def _http_error(exc: Exception) -> HTTPException:
    if isinstance(exc, ProcessNotFoundError):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, MemoryPermissionError):
        return HTTPException(status_code=403, detail=str(exc))
    if isinstance(exc, LayoutViolationError):
        return HTTPException(status_code=409, detail=str(exc))
    if isinstance(exc, ValueError):
        return HTTPException(status_code=400, detail=str(exc))
    return HTTPException(status_code=502, detail=str(exc))


@app.get("/health")
def health() -> Dict[str, str]:
    return {"status": "ok"}


@app.get("/api/v1/process")
def process_status() -> Dict[str, Any]:
    return _session().status()


@app.get("/api/v1/names")
def names() -> Dict[str, List[str]]:
    session = _session()
    try:
        return object_types_to_dict(session.refresh())
    except MemoryReaderError as exc:
        raise _http_error(exc) from exc


@app.get("/api/v1/hierarchy")
def hierarchy(root: int = Query(0, ge=0)) -> Dict[str, Any]:
    session = _session()
    try:
        session.refresh()
        return walk_to_dict(session.super_objects(root))
    except MemoryReaderError as exc:
        raise _http_error(exc) from exc


@app.get("/api/v1/hierarchy/ai-models")
def hierarchy_ai_models(root: int = Query(0, ge=0)) -> Dict[str, Any]:
    session = _session()
    try:
        session.refresh()
        return walk_to_dict(session.ai_models(root))
    except MemoryReaderError as exc:
        raise _http_error(exc) from exc


@app.get("/api/v1/families/{family}/meshes")
def family_meshes(
    family: int,
    keep_instead: bool = False,
    indices: List[int] = Query([]),
) -> Dict[str, Any]:
    session = _session()
    try:
        meshes = family_mesh_vertices(
            session.process,
            family,
            session.layout.family,
            keep_instead=keep_instead,
            indices=indices,
        )
    except MemoryReaderError as exc:
        raise _http_error(exc) from exc
    return meshes_to_dict(meshes)


@app.post("/api/v1/memory/read")
def memory_read(payload: ReadRequest) -> Dict[str, Any]:
    session = _session()
    try:
        values = session.process.read(payload.address, payload.type, payload.count)
    except (MemoryReaderError, ValueError) as exc:
        raise _http_error(exc) from exc
    return {"address": payload.address, "type": payload.type, "requested": payload.count, "values": list(values)}


@app.post("/api/v1/memory/text")
def memory_text(payload: TextRequest) -> Dict[str, Any]:
    session = _session()
    try:
        text = read_text(session.process, payload.address, payload.max_bytes)
    except MemoryReaderError as exc:
        raise _http_error(exc) from exc
    return {"address": payload.address, "text": text}


@app.post("/api/v1/memory/resolve")
def memory_resolve(payload: ResolveRequest) -> Dict[str, Any]:
    session = _session()
    try:
        address = resolve_pointer_path(session.process, payload.base, payload.offsets)
    except (MemoryReaderError, ValueError) as exc:
        raise _http_error(exc) from exc
    return {"base": payload.base, "offsets": payload.offsets, "address": address}
