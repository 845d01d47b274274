from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Collection, Dict, Generic, List, Optional, Sequence, TypeVar

from .channel import LayoutViolationError, MemoryReaderError, RemoteProcess
from .layout import EngineLayout, NodePath, ObjectTypesLayout
from .pointer_path import resolve_pointer_path
from .strings import read_text

logger = logging.getLogger(__name__)

NULL_NODE = 0

RegistryT = TypeVar("RegistryT", Dict[str, int], Dict[str, List[int]])


class WalkStatus(str, Enum):
    COMPLETE = "complete"
    PARTIAL = "partial"


@dataclass(slots=True)
class HierarchyWalk(Generic[RegistryT]):
    """Outcome of one sibling-chain traversal.

    ``COMPLETE`` means the chain ended on a null node. ``PARTIAL`` means a
    read failed mid-chain (the target may be rewriting it under us); the
    registry then holds everything found before ``stopped_at``.
    """

    root: int
    registry: RegistryT
    status: WalkStatus = WalkStatus.COMPLETE
    stopped_at: int = NULL_NODE
    stop_reason: str = ""
    visited: int = 0

    @property
    def complete(self) -> bool:
        return self.status is WalkStatus.COMPLETE


@dataclass(slots=True, frozen=True)
class ObjectTypes:
    families: tuple[str, ...] = tuple()
    ai_models: tuple[str, ...] = tuple()
    super_objects: tuple[str, ...] = tuple()


def placeholder_name(node: int, known: Collection[str] = ()) -> str:
    name = f"unknown_{hex(node)}"
    while name in known:
        name = "?" + name
    return name


def resolve_root(process: RemoteProcess, layout: EngineLayout, root: int = NULL_NODE) -> int:
    if root != NULL_NODE:
        return root
    if layout.hierarchy.root is None:
        raise LayoutViolationError(f"Layout '{layout.id}' defines no canonical hierarchy root.")
    try:
        return layout.hierarchy.root.resolve(process)
    except MemoryReaderError as exc:
        raise LayoutViolationError(f"Couldn't get super-object for dynamic world: {exc}") from exc


def walk_sibling_chain(
    process: RemoteProcess,
    layout: EngineLayout,
    names: Sequence[str],
    root: int = NULL_NODE,
    *,
    index_path: NodePath,
    accumulate: bool = False,
) -> HierarchyWalk:
    """Walk the sibling chain starting at ``root`` and name every node.

    ``root == 0`` starts from the layout's canonical root. With
    ``accumulate`` the registry maps each name to every node carrying it, in
    chain order; otherwise the last node seen wins. There is no cycle
    detection: a cyclic chain never terminates.
    """
    start = resolve_root(process, layout, root)
    registry: Dict = {}
    walk = HierarchyWalk(root=start, registry=registry)
    known = tuple(names)
    taken = frozenset(known)
    node = start

    while node != NULL_NODE:
        try:
            index = index_path.resolve(process, node)
        except MemoryReaderError as exc:
            _stop(walk, node, f"name index unreadable: {exc}")
            break

        if 0 <= index < len(known):
            name = known[index]
        else:
            name = placeholder_name(node, taken)

        if accumulate:
            registry.setdefault(name, []).append(node)
        else:
            registry[name] = node
        walk.visited += 1

        try:
            node = layout.hierarchy.next_sibling.resolve(process, node)
        except MemoryReaderError as exc:
            _stop(walk, node, f"next sibling unreadable: {exc}")
            break

    return walk


def _stop(walk: HierarchyWalk, node: int, reason: str) -> None:
    logger.debug("sibling chain from %s stopped at %s: %s", hex(walk.root), hex(node), reason)
    walk.status = WalkStatus.PARTIAL
    walk.stopped_at = node
    walk.stop_reason = reason


def active_super_objects(
    process: RemoteProcess,
    layout: EngineLayout,
    names: Sequence[str],
    root: int = NULL_NODE,
) -> HierarchyWalk[Dict[str, int]]:
    return walk_sibling_chain(
        process,
        layout,
        names,
        root,
        index_path=layout.hierarchy.super_object_name_index,
    )


def active_ai_models(
    process: RemoteProcess,
    layout: EngineLayout,
    names: Sequence[str],
    root: int = NULL_NODE,
) -> HierarchyWalk[Dict[str, List[int]]]:
    return walk_sibling_chain(
        process,
        layout,
        names,
        root,
        index_path=layout.hierarchy.ai_model_name_index,
        accumulate=True,
    )


def read_name_table(
    process: RemoteProcess,
    first: int,
    count: int,
    layout: Optional[ObjectTypesLayout] = None,
) -> tuple[str, ...]:
    """Read ``count`` names from a linked list of name nodes.

    Always returns exactly ``count`` entries. Unreadable names come back
    blank, and once the list ends early the remaining slots are blank too.
    """
    layout = layout or ObjectTypesLayout()
    names: List[str] = []
    node = first

    while len(names) < count and node != NULL_NODE:
        try:
            name_address = resolve_pointer_path(process, node + layout.name_pointer)
            names.append(read_text(process, name_address, layout.max_name_bytes))
        except MemoryReaderError as exc:
            logger.debug("name node %s unreadable: %s", hex(node), exc)
            names.append("")
        try:
            node = resolve_pointer_path(process, node)
        except MemoryReaderError as exc:
            logger.debug("name list broken after %s: %s", hex(node), exc)
            break

    names.extend("" for _ in range(count - len(names)))
    return tuple(names)


def read_object_types(process: RemoteProcess, layout: EngineLayout) -> ObjectTypes:
    """Read the family, AI-model and super-object name tables."""
    tables: List[tuple[str, ...]] = []
    for index, description in enumerate(("family", "AI Model", "super-object")):
        header = layout.object_types.headers + index * layout.object_types.header_stride
        try:
            values = process.read(header, process.pointer_type, 3)
        except MemoryReaderError as exc:
            raise LayoutViolationError(f"Unable to read {description} names: {exc}") from exc
        if len(values) < 3:
            raise LayoutViolationError(f"Unable to read {description} names: short header at {hex(header)}")
        first, _last, count = values
        tables.append(read_name_table(process, first, count, layout.object_types))

    return ObjectTypes(families=tables[0], ai_models=tables[1], super_objects=tables[2])
