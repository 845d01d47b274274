from __future__ import annotations

from typing import Sequence

from .channel import RemoteProcess


def resolve_pointer_path(process: RemoteProcess, base: int, offsets: Sequence[int] = ()) -> int:
    """Follow a pointer path and return the last address read.

    Reads a pointer at ``base``, then for each offset adds it to the last
    address and reads again. With no offsets this is a single dereference.
    Any failing hop raises; there is no partial result.
    """
    current = process.read_pointer(base)
    for offset in offsets:
        current = process.read_pointer(current + offset)
    return current
