"""Remote memory access and object-graph traversal."""

from .assets import default_objects_table, family_mesh_vertices
from .channel import (
    LayoutViolationError,
    LinuxProcessVmBackend,
    MemoryPermissionError,
    MemoryReadError,
    MemoryReaderError,
    MemoryWriteError,
    ProcessNotFoundError,
    RemoteProcess,
    open_process,
    value_size,
)
from .hierarchy import (
    HierarchyWalk,
    ObjectTypes,
    WalkStatus,
    active_ai_models,
    active_super_objects,
    placeholder_name,
    read_name_table,
    read_object_types,
    walk_sibling_chain,
)
from .image import MemoryImageBackend
from .layout import (
    EngineLayout,
    FamilyLayout,
    HierarchyLayout,
    LayoutError,
    NodePath,
    ObjectTypesLayout,
    PointerPath,
    SuperObjectLayout,
)
from .pointer_path import resolve_pointer_path
from .session import InspectorSession, SessionError, WatchSpec, open_session
from .strings import read_text

__all__ = [
    "default_objects_table",
    "family_mesh_vertices",
    "LayoutViolationError",
    "LinuxProcessVmBackend",
    "MemoryPermissionError",
    "MemoryReadError",
    "MemoryReaderError",
    "MemoryWriteError",
    "ProcessNotFoundError",
    "RemoteProcess",
    "open_process",
    "value_size",
    "HierarchyWalk",
    "ObjectTypes",
    "WalkStatus",
    "active_ai_models",
    "active_super_objects",
    "placeholder_name",
    "read_name_table",
    "read_object_types",
    "walk_sibling_chain",
    "MemoryImageBackend",
    "EngineLayout",
    "FamilyLayout",
    "HierarchyLayout",
    "LayoutError",
    "NodePath",
    "ObjectTypesLayout",
    "PointerPath",
    "SuperObjectLayout",
    "resolve_pointer_path",
    "InspectorSession",
    "SessionError",
    "WatchSpec",
    "open_session",
    "read_text",
]
