from __future__ import annotations

from typing import Any, Dict, List, Mapping, Sequence

from .remote.hierarchy import HierarchyWalk, ObjectTypes


def format_address(address: int) -> str:
    return f"0x{address:08X}"


def walk_to_dict(walk: HierarchyWalk) -> Dict[str, Any]:
    registry: Dict[str, Any] = {}
    for name, value in walk.registry.items():
        registry[name] = list(value) if isinstance(value, list) else value
    return {
        "root": walk.root,
        "status": walk.status.value,
        "stopped_at": walk.stopped_at,
        "stop_reason": walk.stop_reason,
        "visited": walk.visited,
        "registry": registry,
    }


def object_types_to_dict(types: ObjectTypes) -> Dict[str, List[str]]:
    return {
        "families": list(types.families),
        "ai_models": list(types.ai_models),
        "super_objects": list(types.super_objects),
    }


def meshes_to_dict(meshes: Mapping[int, Sequence[float]]) -> Dict[str, Any]:
    return {
        format_address(address): {
            "vertex_count": len(coords) // 3,
            "vertices": [list(coords[i : i + 3]) for i in range(0, len(coords) - 2, 3)],
        }
        for address, coords in meshes.items()
    }


def format_walk(walk: HierarchyWalk) -> str:
    if not walk.registry:
        lines = ["No active objects."]
    else:
        width = max(len(name) for name in walk.registry)
        lines = []
        for name, value in walk.registry.items():
            nodes = value if isinstance(value, list) else [value]
            lines.append(f"{name:<{width}}  {', '.join(format_address(node) for node in nodes)}")
    if not walk.complete:
        lines.append(f"(partial: stopped at {format_address(walk.stopped_at)}: {walk.stop_reason})")
    return "\n".join(lines)


def format_name_table(title: str, names: Sequence[str]) -> str:
    lines = [f"{title} ({len(names)})"]
    lines.extend(f"  {index:>4}  {name or '-'}" for index, name in enumerate(names))
    return "\n".join(lines)


def format_meshes(meshes: Mapping[int, Sequence[float]]) -> str:
    if not meshes:
        return "No meshes found."
    return "\n".join(
        f"{format_address(address)}  {len(coords) // 3} vertices" for address, coords in meshes.items()
    )
