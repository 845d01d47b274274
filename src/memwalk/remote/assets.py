from __future__ import annotations

import logging
from typing import Collection, Dict, List

from .channel import LayoutViolationError, MemoryReaderError, RemoteProcess
from .layout import FamilyLayout
from .pointer_path import resolve_pointer_path

logger = logging.getLogger(__name__)

FLOATS_PER_VERTEX = 3


def default_objects_table(process: RemoteProcess, family: int, layout: FamilyLayout) -> tuple[int, int]:
    """Return ``(first_entry, entry_count)`` of a family's default-object table."""
    try:
        table = resolve_pointer_path(process, family + layout.default_objects_table)
    except MemoryReaderError as exc:
        raise LayoutViolationError(f"Couldn't get default object table offset: {exc}") from exc

    # Header holds first entry, last entry and entry count.
    try:
        header = process.read(table + layout.table_header, process.pointer_type, 3)
    except MemoryReaderError as exc:
        raise LayoutViolationError(
            f"Couldn't find address or number of entries in object table: {exc}"
        ) from exc
    if len(header) < 3:
        raise LayoutViolationError(f"Short object table header at {hex(table + layout.table_header)}")
    return int(header[0]), int(header[2])


def _first_mesh(process: RemoteProcess, entry: int, layout: FamilyLayout) -> int | None:
    try:
        visual_set = layout.entry_visual_set.resolve(process, entry)
        lod_info = process.read(visual_set + layout.visual_set_lod_info, "int16", 2)
    except MemoryReaderError as exc:
        logger.debug("default object %s has no readable visual set: %s", hex(entry), exc)
        return None
    if len(lod_info) < 2:
        return None

    lod_count, visual_type = lod_info
    if lod_count <= 0 or visual_type != 0:
        return None

    try:
        return layout.visual_set_first_mesh.resolve(process, visual_set)
    except MemoryReaderError as exc:
        logger.debug("visual set %s has no readable mesh: %s", hex(visual_set), exc)
        return None


def family_mesh_vertices(
    process: RemoteProcess,
    family: int,
    layout: FamilyLayout | None = None,
    *,
    keep_instead: bool = False,
    indices: Collection[int] = (),
) -> Dict[int, List[float]]:
    """Read the vertices of the first mesh of every default object in ``family``.

    Entries listed in ``indices`` are skipped, or with ``keep_instead`` only
    those entries are read. The result maps each vertex buffer address to its
    flat ``x, y, z, ...`` coordinates, so meshes shared by several objects
    appear once.
    """
    layout = layout or FamilyLayout()
    selected = frozenset(indices)
    first_entry, entry_count = default_objects_table(process, family, layout)
    meshes: Dict[int, List[float]] = {}

    for index in range(entry_count):
        if (index in selected) != keep_instead:
            continue
        entry = first_entry + index * layout.entry_stride

        mesh = _first_mesh(process, entry, layout)
        if mesh is None:
            continue
        try:
            vertices = layout.mesh_vertices.resolve(process, mesh)
        except MemoryReaderError as exc:
            logger.debug("mesh %s has no readable vertex buffer pointer: %s", hex(mesh), exc)
            continue

        try:
            counts = process.read(mesh + layout.mesh_vertex_count, "int16", 1)
        except MemoryReaderError as exc:
            raise LayoutViolationError(f"Couldn't get number of vertices: {exc}") from exc
        if not counts or counts[0] < 0:
            raise LayoutViolationError(f"Couldn't get number of vertices of mesh {hex(mesh)}")
        wanted = FLOATS_PER_VERTEX * counts[0]

        try:
            coords = process.read(vertices, "float32", wanted)
        except MemoryReaderError as exc:
            raise LayoutViolationError(f"Couldn't get vertex positions: {exc}") from exc
        if len(coords) != wanted:
            raise LayoutViolationError(
                f"Couldn't get vertex positions: read {len(coords)} of {wanted} floats at {hex(vertices)}"
            )
        meshes[vertices] = list(coords)

    return meshes

