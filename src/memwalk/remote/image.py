from __future__ import annotations

import struct
from bisect import bisect_right
from typing import Dict, List, Sequence

from .channel import MemoryReadError, MemoryWriteError, ProcessNotFoundError, _struct_code


class MemoryImageBackend:
    """Sparse in-process memory image speaking the channel backend protocol.

    Regions are non-overlapping ``bytearray`` blocks. A transfer that starts
    in a mapped region but runs past its end is short, like a partial
    ``process_vm_readv``; a transfer starting in unmapped memory fails.
    """

    def __init__(self, pid: int = 1):
        self.pid = pid
        self._starts: List[int] = []
        self._regions: Dict[int, bytearray] = {}
        self.read_calls: List[tuple[int, int]] = []
        self.write_calls: List[tuple[int, int]] = []

    def supports_memory_access(self) -> bool:
        return True

    def map(self, address: int, size: int) -> None:
        if size <= 0:
            raise ValueError(f"Region size must be positive, got {size}")
        for start, block in self._regions.items():
            if address < start + len(block) and start < address + size:
                raise ValueError(f"Region {hex(address)}+{size} overlaps region at {hex(start)}")
        self._regions[address] = bytearray(size)
        self._starts = sorted(self._regions)

    def unmap(self, address: int) -> None:
        self._regions.pop(address, None)
        self._starts = sorted(self._regions)

    def _locate(self, address: int) -> tuple[int, bytearray] | None:
        index = bisect_right(self._starts, address) - 1
        if index < 0:
            return None
        start = self._starts[index]
        block = self._regions[start]
        if address >= start + len(block):
            return None
        return start, block

    def _check_pid(self, pid: int) -> None:
        if pid != self.pid:
            raise ProcessNotFoundError(f"No such process in memory image: pid={pid}")

    def read_memory(self, pid: int, address: int, size: int) -> bytes:
        self._check_pid(pid)
        self.read_calls.append((address, size))
        if size == 0:
            return b""
        located = self._locate(address)
        if located is None:
            raise MemoryReadError(f"Bad address: addr={hex(address)} size={size}")
        start, block = located
        offset = address - start
        return bytes(block[offset : offset + size])

    def write_memory(self, pid: int, address: int, payload: bytes) -> int:
        self._check_pid(pid)
        self.write_calls.append((address, len(payload)))
        if not payload:
            return 0
        located = self._locate(address)
        if located is None:
            raise MemoryWriteError(f"Bad address: addr={hex(address)} size={len(payload)}")
        start, block = located
        offset = address - start
        copied = min(len(payload), len(block) - offset)
        block[offset : offset + copied] = payload[:copied]
        return copied

    # Helpers for building images.

    def put_bytes(self, address: int, payload: bytes) -> None:
        """Store ``payload``, mapping a fresh region when ``address`` is unmapped."""
        located = self._locate(address)
        if located is None:
            self.map(address, len(payload))
            located = self._locate(address)
        start, block = located  # type: ignore[misc]
        offset = address - start
        if offset + len(payload) > len(block):
            raise ValueError(f"{len(payload)} bytes at {hex(address)} run past the end of region {hex(start)}")
        block[offset : offset + len(payload)] = payload

    def put(self, address: int, value_type: str, *values: int | float) -> None:
        self.put_bytes(address, struct.pack(f"<{len(values)}{_struct_code(value_type)}", *values))

    def put_u32(self, address: int, *values: int) -> None:
        self.put(address, "uint32", *values)

    def put_text(self, address: int, text: str | bytes, *, terminate: bool = True) -> None:
        payload = text.encode("utf-8") if isinstance(text, str) else bytes(text)
        self.put_bytes(address, payload + (b"\x00" if terminate else b""))

    def put_floats(self, address: int, values: Sequence[float]) -> None:
        self.put(address, "float32", *values)

    def region_size(self, address: int) -> int:
        located = self._locate(address)
        if located is None:
            return 0
        start, block = located
        return len(block) - (address - start)
