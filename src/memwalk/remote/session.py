from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from .channel import MemoryReaderError, RemoteProcess, open_process
from .engine import current_level_name, read_dsg_var
from .hierarchy import HierarchyWalk, ObjectTypes, active_ai_models, active_super_objects, read_object_types
from .layout import EngineLayout

logger = logging.getLogger(__name__)


class SessionError(RuntimeError):
    """Raised when a polling cycle cannot produce a snapshot."""


@dataclass(slots=True, frozen=True)
class WatchSpec:
    object_name: str
    offset: int
    value_type: str = "int32"

    @property
    def label(self) -> str:
        return f"{self.object_name}+{hex(self.offset)}"

    @classmethod
    def parse(cls, text: str) -> "WatchSpec":
        parts = text.rsplit(":", 2)
        if len(parts) < 2:
            raise ValueError(f"Watch spec must look like NAME:OFFSET[:TYPE], got '{text}'")
        name = parts[0].strip()
        if not name:
            raise ValueError(f"Watch spec '{text}' has an empty object name")
        try:
            offset = int(parts[1], 0)
        except ValueError as exc:
            raise ValueError(f"Watch spec '{text}' has an invalid offset") from exc
        value_type = parts[2].strip() if len(parts) == 3 else "int32"
        return cls(object_name=name, offset=offset, value_type=value_type)


class InspectorSession:
    """One attached process plus the layout describing it, polled in cycles.

    Name tables are rebuilt by :meth:`refresh` once per cycle; hierarchy
    walks are always fresh. A level change invalidates everything read so
    far, so callers should check :meth:`level_changed` before reusing
    addresses from an earlier cycle.
    """

    def __init__(self, process: RemoteProcess, layout: EngineLayout):
        self.process = process
        self.layout = layout
        self.level_name = ""
        self.object_types = ObjectTypes()
        self.cycle = 0
        self.refreshed_at = 0.0
        self._super_objects: Dict[str, int] = {}
        self._last_error: Dict[str, str] = {}

    def refresh(self) -> ObjectTypes:
        try:
            self.level_name = current_level_name(self.process, self.layout)
            self.object_types = read_object_types(self.process, self.layout)
        except MemoryReaderError as exc:
            self._set_last_error("refresh", exc)
            raise
        self.cycle += 1
        self.refreshed_at = time.time()
        self._clear_last_error()
        logger.debug(
            "cycle %s: level=%s families=%s ai_models=%s super_objects=%s",
            self.cycle,
            self.level_name,
            len(self.object_types.families),
            len(self.object_types.ai_models),
            len(self.object_types.super_objects),
        )
        return self.object_types

    def level_changed(self) -> bool:
        return current_level_name(self.process, self.layout) != self.level_name

    def super_objects(self, root: int = 0) -> HierarchyWalk[Dict[str, int]]:
        walk = active_super_objects(self.process, self.layout, self.object_types.super_objects, root)
        self._super_objects = dict(walk.registry)
        return walk

    def ai_models(self, root: int = 0) -> HierarchyWalk[Dict[str, List[int]]]:
        return active_ai_models(self.process, self.layout, self.object_types.ai_models, root)

    def snapshot(self, root: int = 0) -> Dict[str, Any]:
        self.refresh()
        try:
            super_objects = self.super_objects(root)
            ai_models = self.ai_models(root)
        except MemoryReaderError as exc:
            self._set_last_error("snapshot", exc)
            raise
        return {
            "cycle": self.cycle,
            "timestamp": self.refreshed_at,
            "level_name": self.level_name,
            "super_objects": {
                "status": super_objects.status.value,
                "stop_reason": super_objects.stop_reason,
                "registry": dict(super_objects.registry),
            },
            "ai_models": {
                "status": ai_models.status.value,
                "stop_reason": ai_models.stop_reason,
                "registry": {name: list(nodes) for name, nodes in ai_models.registry.items()},
            },
        }

    def read_watch(self, specs: Sequence[WatchSpec]) -> Dict[str, int | float]:
        """Read each watched DSG variable from the last super-object walk."""
        values: Dict[str, int | float] = {}
        for spec in specs:
            super_object = self._super_objects.get(spec.object_name)
            if super_object is None:
                raise SessionError(f"Super-object '{spec.object_name}' is not active in level '{self.level_name}'")
            values[spec.label] = read_dsg_var(self.process, self.layout, super_object, spec.offset, spec.value_type)
        return values

    def status(self) -> Dict[str, Any]:
        return {
            "pid": self.process.pid,
            "pointer_size": self.process.pointer_size,
            "layout": self.layout.id,
            "level_name": self.level_name,
            "cycle": self.cycle,
            "refreshed_at": self.refreshed_at,
            "name_tables": {
                "families": len(self.object_types.families),
                "ai_models": len(self.object_types.ai_models),
                "super_objects": len(self.object_types.super_objects),
            },
            "last_error": dict(self._last_error),
        }

    def _set_last_error(self, stage: str, error: Exception) -> None:
        logger.warning("%s failed: %s", stage, error)
        self._last_error = {
            "stage": stage,
            "type": type(error).__name__,
            "message": str(error),
        }

    def _clear_last_error(self) -> None:
        self._last_error = {}


def open_session(pid: int, layout: EngineLayout, backend: Optional[Any] = None) -> InspectorSession:
    return InspectorSession(open_process(pid, pointer_size=layout.pointer_size, backend=backend), layout)
