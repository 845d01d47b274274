from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from .channel import RemoteProcess
from .pointer_path import resolve_pointer_path


class LayoutError(ValueError):
    """Raised for malformed layout payloads."""


def _parse_int(value: Any, label: str) -> int:
    if isinstance(value, bool):
        raise LayoutError(f"Invalid integer type for {label}: bool")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        text = value.strip()
        if not text:
            raise LayoutError(f"Empty integer for {label}")
        try:
            return int(text, 0)
        except ValueError as exc:
            raise LayoutError(f"Invalid integer for {label}: {value}") from exc
    raise LayoutError(f"Invalid integer type for {label}: {type(value).__name__}")


def _parse_offsets(value: Any, label: str) -> tuple[int, ...]:
    if value is None:
        return tuple()
    if not isinstance(value, (list, tuple)):
        raise LayoutError(f"{label} must be a list of offsets, got {type(value).__name__}.")
    return tuple(_parse_int(item, f"{label}[{index}]") for index, item in enumerate(value))


def _section(payload: Dict[str, Any], key: str) -> Dict[str, Any]:
    value = payload.get(key, {})
    if not isinstance(value, dict):
        raise LayoutError(f"Layout section '{key}' must be an object.")
    return value


@dataclass(slots=True, frozen=True)
class PointerPath:
    base: int
    offsets: tuple[int, ...] = tuple()

    @classmethod
    def from_dict(cls, payload: Any, label: str) -> "PointerPath":
        if not isinstance(payload, dict):
            raise LayoutError(f"{label} must be an object with 'base' and 'offsets'.")
        if "base" not in payload:
            raise LayoutError(f"{label} is missing 'base'.")
        return cls(
            base=_parse_int(payload["base"], f"{label}.base"),
            offsets=_parse_offsets(payload.get("offsets"), f"{label}.offsets"),
        )

    def resolve(self, process: RemoteProcess) -> int:
        return resolve_pointer_path(process, self.base, self.offsets)


@dataclass(slots=True, frozen=True)
class NodePath:
    """A pointer path whose base is a displacement from some node's address."""

    displacement: int
    offsets: tuple[int, ...] = tuple()

    @classmethod
    def from_dict(cls, payload: Any, label: str) -> "NodePath":
        if not isinstance(payload, dict):
            raise LayoutError(f"{label} must be an object with 'displacement' and 'offsets'.")
        return cls(
            displacement=_parse_int(payload.get("displacement", 0), f"{label}.displacement"),
            offsets=_parse_offsets(payload.get("offsets"), f"{label}.offsets"),
        )

    def at(self, node: int) -> PointerPath:
        return PointerPath(base=node + self.displacement, offsets=self.offsets)

    def resolve(self, process: RemoteProcess, node: int) -> int:
        return resolve_pointer_path(process, node + self.displacement, self.offsets)


def _node_path(payload: Dict[str, Any], key: str, default: NodePath, label: str) -> NodePath:
    if key not in payload:
        return default
    return NodePath.from_dict(payload[key], f"{label}.{key}")


def _int_field(payload: Dict[str, Any], key: str, default: int, label: str) -> int:
    if key not in payload:
        return default
    return _parse_int(payload[key], f"{label}.{key}")


@dataclass(slots=True, frozen=True)
class HierarchyLayout:
    root: Optional[PointerPath] = None
    super_object_name_index: NodePath = NodePath(0x4, (0x4, 0x8))
    ai_model_name_index: NodePath = NodePath(0x4, (0x4, 0x4))
    next_sibling: NodePath = NodePath(0x14)

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "HierarchyLayout":
        label = "hierarchy"
        defaults = cls()
        root = payload.get("root")
        return cls(
            root=PointerPath.from_dict(root, f"{label}.root") if root is not None else None,
            super_object_name_index=_node_path(
                payload, "super_object_name_index", defaults.super_object_name_index, label
            ),
            ai_model_name_index=_node_path(payload, "ai_model_name_index", defaults.ai_model_name_index, label),
            next_sibling=_node_path(payload, "next_sibling", defaults.next_sibling, label),
        )


@dataclass(slots=True, frozen=True)
class FamilyLayout:
    default_objects_table: int = 0x1C
    table_header: int = 0x4
    entry_stride: int = 0x14
    entry_visual_set: NodePath = NodePath(0x4, (0x0,))
    visual_set_lod_info: int = 0x4
    visual_set_first_mesh: NodePath = NodePath(0xC, (0x0,))
    mesh_vertices: NodePath = NodePath(0x0)
    mesh_vertex_count: int = 0x2C
    family_index: int = 0xC

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "FamilyLayout":
        label = "family"
        defaults = cls()
        return cls(
            default_objects_table=_int_field(payload, "default_objects_table", defaults.default_objects_table, label),
            table_header=_int_field(payload, "table_header", defaults.table_header, label),
            entry_stride=_int_field(payload, "entry_stride", defaults.entry_stride, label),
            entry_visual_set=_node_path(payload, "entry_visual_set", defaults.entry_visual_set, label),
            visual_set_lod_info=_int_field(payload, "visual_set_lod_info", defaults.visual_set_lod_info, label),
            visual_set_first_mesh=_node_path(
                payload, "visual_set_first_mesh", defaults.visual_set_first_mesh, label
            ),
            mesh_vertices=_node_path(payload, "mesh_vertices", defaults.mesh_vertices, label),
            mesh_vertex_count=_int_field(payload, "mesh_vertex_count", defaults.mesh_vertex_count, label),
            family_index=_int_field(payload, "family_index", defaults.family_index, label),
        )


@dataclass(slots=True, frozen=True)
class ObjectTypesLayout:
    headers: int = 0
    header_stride: int = 12
    name_pointer: int = 0xC
    max_name_bytes: int = 64

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "ObjectTypesLayout":
        label = "object_types"
        defaults = cls()
        return cls(
            headers=_int_field(payload, "headers", defaults.headers, label),
            header_stride=_int_field(payload, "header_stride", defaults.header_stride, label),
            name_pointer=_int_field(payload, "name_pointer", defaults.name_pointer, label),
            max_name_bytes=_int_field(payload, "max_name_bytes", defaults.max_name_bytes, label),
        )


@dataclass(slots=True, frozen=True)
class SuperObjectLayout:
    # mind and custom_bits hang off the super-object; active_normal_behaviour,
    # dsg_memory and ai_model off the mind; normal_behaviours off the AI model.
    mind: NodePath = NodePath(0x4, (0xC, 0x0))
    custom_bits: NodePath = NodePath(0x4, (0x4,))
    custom_bits_offset: int = 0x24
    active_normal_behaviour: NodePath = NodePath(0x4, (0x8,))
    dsg_memory: NodePath = NodePath(0xC, (0x8,))
    ai_model: NodePath = NodePath(0x0)
    normal_behaviours: NodePath = NodePath(0x0)
    normal_behaviour_stride: int = 12

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "SuperObjectLayout":
        label = "super_object"
        defaults = cls()
        return cls(
            mind=_node_path(payload, "mind", defaults.mind, label),
            custom_bits=_node_path(payload, "custom_bits", defaults.custom_bits, label),
            custom_bits_offset=_int_field(payload, "custom_bits_offset", defaults.custom_bits_offset, label),
            active_normal_behaviour=_node_path(
                payload, "active_normal_behaviour", defaults.active_normal_behaviour, label
            ),
            dsg_memory=_node_path(payload, "dsg_memory", defaults.dsg_memory, label),
            ai_model=_node_path(payload, "ai_model", defaults.ai_model, label),
            normal_behaviours=_node_path(payload, "normal_behaviours", defaults.normal_behaviours, label),
            normal_behaviour_stride=_int_field(
                payload, "normal_behaviour_stride", defaults.normal_behaviour_stride, label
            ),
        )


@dataclass(slots=True, frozen=True)
class EngineLayout:
    id: str
    process_name: str = ""
    pointer_size: int = 4
    level_name: int = 0
    level_name_bytes: int = 16
    hierarchy: HierarchyLayout = field(default_factory=HierarchyLayout)
    family: FamilyLayout = field(default_factory=FamilyLayout)
    object_types: ObjectTypesLayout = field(default_factory=ObjectTypesLayout)
    super_object: SuperObjectLayout = field(default_factory=SuperObjectLayout)

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "EngineLayout":
        if not isinstance(payload, dict):
            raise LayoutError("Layout payload must be an object.")
        layout_id = str(payload.get("id", "")).strip()
        if not layout_id:
            raise LayoutError("Layout missing non-empty 'id'.")

        pointer_size = _int_field(payload, "pointer_size", 4, layout_id)
        if pointer_size not in {4, 8}:
            raise LayoutError(f"Layout '{layout_id}' has invalid pointer_size={pointer_size}; expected 4 or 8.")

        return cls(
            id=layout_id,
            process_name=str(payload.get("process_name", "")).strip(),
            pointer_size=pointer_size,
            level_name=_int_field(payload, "level_name", 0, layout_id),
            level_name_bytes=_int_field(payload, "level_name_bytes", 16, layout_id),
            hierarchy=HierarchyLayout.from_dict(_section(payload, "hierarchy")),
            family=FamilyLayout.from_dict(_section(payload, "family")),
            object_types=ObjectTypesLayout.from_dict(_section(payload, "object_types")),
            super_object=SuperObjectLayout.from_dict(_section(payload, "super_object")),
        )
