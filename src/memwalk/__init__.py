"""Live object-hierarchy inspection of a running process through its memory."""

from .config import ConfigError, builtin_layouts, load_layout
from .process import find_process_id, read_environment
from .remote import (
    EngineLayout,
    HierarchyWalk,
    InspectorSession,
    LayoutViolationError,
    MemoryImageBackend,
    MemoryPermissionError,
    MemoryReadError,
    MemoryReaderError,
    MemoryWriteError,
    ProcessNotFoundError,
    RemoteProcess,
    WalkStatus,
    active_ai_models,
    active_super_objects,
    family_mesh_vertices,
    open_process,
    open_session,
    read_object_types,
    read_text,
    resolve_pointer_path,
    walk_sibling_chain,
)

__all__ = [
    "ConfigError",
    "builtin_layouts",
    "load_layout",
    "find_process_id",
    "read_environment",
    "EngineLayout",
    "HierarchyWalk",
    "InspectorSession",
    "LayoutViolationError",
    "MemoryImageBackend",
    "MemoryPermissionError",
    "MemoryReadError",
    "MemoryReaderError",
    "MemoryWriteError",
    "ProcessNotFoundError",
    "RemoteProcess",
    "WalkStatus",
    "active_ai_models",
    "active_super_objects",
    "family_mesh_vertices",
    "open_process",
    "open_session",
    "read_object_types",
    "read_text",
    "resolve_pointer_path",
    "walk_sibling_chain",
]
