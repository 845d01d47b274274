from __future__ import annotations

from typing import List

from .channel import MemoryReaderError, MemoryReadError, RemoteProcess
from .layout import EngineLayout, NodePath
from .strings import read_text


def _follow(process: RemoteProcess, path: NodePath, node: int, what: str) -> int:
    try:
        return path.resolve(process, node)
    except MemoryReaderError as exc:
        raise type(exc)(f"Unable to get {what}: {exc}") from exc


def current_level_name(process: RemoteProcess, layout: EngineLayout) -> str:
    try:
        return read_text(process, layout.level_name, layout.level_name_bytes)
    except MemoryReaderError as exc:
        raise type(exc)(f"Couldn't read level name: {exc}") from exc


def family_index(process: RemoteProcess, layout: EngineLayout, family: int) -> int:
    return _follow(process, NodePath(layout.family.family_index), family, "family index")


def mind(process: RemoteProcess, layout: EngineLayout, super_object: int) -> int:
    return _follow(process, layout.super_object.mind, super_object, "Mind")


def active_normal_behaviour(process: RemoteProcess, layout: EngineLayout, super_object: int) -> int:
    return _follow(
        process,
        layout.super_object.active_normal_behaviour,
        mind(process, layout, super_object),
        "Active Normal Behaviour",
    )


def dsg_var_pointer(process: RemoteProcess, layout: EngineLayout, super_object: int, offset: int) -> int:
    """Address of the DSG variable stored ``offset`` bytes into the mind's DSG memory."""
    dsg_memory = _follow(
        process,
        layout.super_object.dsg_memory,
        mind(process, layout, super_object),
        "DSG Var pointer",
    )
    return dsg_memory + offset


def read_dsg_var(
    process: RemoteProcess,
    layout: EngineLayout,
    super_object: int,
    offset: int,
    value_type: str,
) -> int | float:
    address = dsg_var_pointer(process, layout, super_object, offset)
    values = process.read(address, value_type, 1)
    if not values:
        raise MemoryReadError(f"Short read of DSG variable at {hex(address)}")
    return values[0]


def custom_bits_pointer(process: RemoteProcess, layout: EngineLayout, super_object: int) -> int:
    base = _follow(process, layout.super_object.custom_bits, super_object, "Custom Bits")
    return base + layout.super_object.custom_bits_offset


def ai_model(process: RemoteProcess, layout: EngineLayout, super_object: int) -> int:
    return _follow(
        process,
        layout.super_object.ai_model,
        mind(process, layout, super_object),
        "AI Model pointer",
    )


def ai_model_normal_behaviours_pointer(process: RemoteProcess, layout: EngineLayout, super_object: int) -> int:
    return _follow(
        process,
        layout.super_object.normal_behaviours,
        ai_model(process, layout, super_object),
        "AI Model Normal Behaviours pointer",
    )


def ai_model_normal_behaviours(process: RemoteProcess, layout: EngineLayout, super_object: int) -> List[int]:
    """Addresses of every normal behaviour (comport) in the super-object's AI model."""
    table = ai_model_normal_behaviours_pointer(process, layout, super_object)
    try:
        values = process.read(table, process.pointer_type, 2)
    except MemoryReaderError as exc:
        raise type(exc)(f"Unable to get entries in AI Model Normal Behaviours List: {exc}") from exc
    if len(values) < 2:
        raise MemoryReadError(f"Short AI Model Normal Behaviours header at {hex(table)}")
    first_entry, entry_count = values
    stride = layout.super_object.normal_behaviour_stride
    return [first_entry + stride * index for index in range(entry_count)]
