from __future__ import annotations

import ctypes
import ctypes.util
import errno
import logging
import os
import platform
import struct
from dataclasses import dataclass
from typing import Any, Dict, Literal, Optional, Sequence

logger = logging.getLogger(__name__)

ValueType = Literal[
    "int8",
    "uint8",
    "int16",
    "uint16",
    "int32",
    "uint32",
    "int64",
    "uint64",
    "float32",
    "float64",
]


class MemoryReaderError(RuntimeError):
    """Base exception for remote memory failures."""


class ProcessNotFoundError(MemoryReaderError):
    """Raised when the target process does not exist (any more)."""


class MemoryPermissionError(MemoryReaderError):
    """Raised when we are not allowed to debug the target process."""


class MemoryReadError(MemoryReaderError):
    """Raised when a memory read operation fails."""


class MemoryWriteError(MemoryReaderError):
    """Raised when a memory write operation fails."""


class LayoutViolationError(MemoryReaderError):
    """Raised when a structure that must exist by construction cannot be read.

    This means the supplied layout no longer matches the target (e.g. a
    different binary version), as opposed to an optional record being absent.
    """


# Plain-data element formats only: fixed size, no embedded pointers, no padding.
_STRUCT_CODES: Dict[str, str] = {
    "int8": "b",
    "uint8": "B",
    "int16": "h",
    "uint16": "H",
    "int32": "i",
    "uint32": "I",
    "int64": "q",
    "uint64": "Q",
    "float32": "f",
    "float64": "d",
}

_HOST_ADDRESS_LIMIT = 1 << (8 * struct.calcsize("P"))


def value_size(value_type: str) -> int:
    return struct.calcsize("<" + _struct_code(value_type))


def _struct_code(value_type: str) -> str:
    code = _STRUCT_CODES.get(value_type)
    if code is None:
        raise ValueError(
            f"Unsupported value type '{value_type}'. Supported: {'|'.join(_STRUCT_CODES)}."
        )
    return code


def _error_for_errno(err: int, message: str, *, writing: bool) -> MemoryReaderError:
    detail = f"{message}: {os.strerror(err)} (errno={err})"
    if err == errno.ESRCH:
        return ProcessNotFoundError(detail)
    if err in {errno.EPERM, errno.EACCES}:
        return MemoryPermissionError(detail)
    if writing:
        return MemoryWriteError(detail)
    return MemoryReadError(detail)


class _IoVec(ctypes.Structure):
    _fields_ = [("iov_base", ctypes.c_void_p), ("iov_len", ctypes.c_size_t)]


class LinuxProcessVmBackend:
    """Cross-process transfers through ``process_vm_readv``/``process_vm_writev``.

    Needs permission to debug the target (same uid with a permissive
    ``ptrace_scope``, or ``CAP_SYS_PTRACE``).
    """

    def __init__(self):
        self._system = platform.system().lower()
        self._libc = None
        if self._system == "linux":
            libc = ctypes.CDLL(ctypes.util.find_library("c") or "libc.so.6", use_errno=True)
            if hasattr(libc, "process_vm_readv") and hasattr(libc, "process_vm_writev"):
                for func in (libc.process_vm_readv, libc.process_vm_writev):
                    func.restype = ctypes.c_ssize_t
                    func.argtypes = [
                        ctypes.c_int,
                        ctypes.POINTER(_IoVec),
                        ctypes.c_ulong,
                        ctypes.POINTER(_IoVec),
                        ctypes.c_ulong,
                        ctypes.c_ulong,
                    ]
                self._libc = libc

    def supports_memory_access(self) -> bool:
        return self._libc is not None

    def _transfer(self, pid: int, address: int, buffer: ctypes.Array, size: int, *, writing: bool) -> int:
        # The only place a local buffer is handed to the kernel as a raw byte
        # region. ``buffer`` must be a ctypes char array of at least ``size``.
        if self._libc is None:
            raise MemoryReaderError("memory_reader_not_supported_platform")
        local = _IoVec(ctypes.addressof(buffer), size)
        remote = _IoVec(address, size)
        func = self._libc.process_vm_writev if writing else self._libc.process_vm_readv
        copied = func(pid, ctypes.byref(local), 1, ctypes.byref(remote), 1, 0)
        if copied < 0:
            err = ctypes.get_errno()
            verb = "process_vm_writev" if writing else "process_vm_readv"
            logger.debug("%s failed pid=%s addr=%s size=%s errno=%s", verb, pid, hex(address), size, err)
            raise _error_for_errno(
                err,
                f"{verb} failed: pid={pid} addr={hex(address)} size={size}",
                writing=writing,
            )
        return int(copied)

    def read_memory(self, pid: int, address: int, size: int) -> bytes:
        if size == 0:
            return b""
        buffer = ctypes.create_string_buffer(size)
        copied = self._transfer(pid, address, buffer, size, writing=False)
        return buffer.raw[:copied]

    def write_memory(self, pid: int, address: int, payload: bytes) -> int:
        if not payload:
            return 0
        buffer = ctypes.create_string_buffer(bytes(payload), len(payload))
        return self._transfer(pid, address, buffer, len(payload), writing=True)


@dataclass(frozen=True)
class RemoteProcess:
    """Handle on another process's address space.

    ``pointer_size`` is the target's pointer width (4 for a 32-bit target),
    which may be narrower than the host's. All integers are little-endian.
    """

    pid: int
    backend: Any = None
    pointer_size: int = 4

    def __post_init__(self) -> None:
        if self.pointer_size not in {4, 8}:
            raise ValueError(f"Invalid pointer_size={self.pointer_size}; expected 4 or 8.")
        if self.backend is None:
            object.__setattr__(self, "backend", LinuxProcessVmBackend())

    @property
    def pointer_type(self) -> ValueType:
        return "uint64" if self.pointer_size == 8 else "uint32"

    @property
    def address_limit(self) -> int:
        return min(1 << (8 * self.pointer_size), _HOST_ADDRESS_LIMIT)

    def _check_range(self, address: int, size: int, *, writing: bool = False) -> None:
        if address < 0:
            raise ValueError(f"Invalid address: {address}")
        if size < 0 or size >= _HOST_ADDRESS_LIMIT:
            raise ValueError(f"Invalid transfer size: {size}")
        # Past the end of the target address space: unreadable, like unmapped memory.
        if address + size > self.address_limit:
            error = MemoryWriteError if writing else MemoryReadError
            raise error(f"Transfer of {size} bytes at {hex(address)} overflows the address space")

    def read_bytes(self, address: int, size: int) -> bytes:
        self._check_range(address, size)
        return self.backend.read_memory(self.pid, address, size)

    def read(self, address: int, value_type: str, count: int = 1) -> tuple:
        """Read up to ``count`` values of ``value_type`` at ``address``.

        A short transfer is not an error: the result then holds only the
        whole elements that were copied.
        """
        code = _struct_code(value_type)
        size = value_size(value_type)
        raw = self.read_bytes(address, size * count)
        whole = len(raw) // size
        return struct.unpack(f"<{whole}{code}", raw[: whole * size])

    def read_pointer(self, address: int) -> int:
        values = self.read(address, self.pointer_type, 1)
        if not values:
            raise MemoryReadError(f"Short pointer read at {hex(address)}")
        return int(values[0])

    def write_bytes(self, address: int, payload: bytes) -> int:
        self._check_range(address, len(payload), writing=True)
        return self.backend.write_memory(self.pid, address, bytes(payload))

    def write(self, address: int, value_type: str, values: Sequence[int | float]) -> int:
        """Write ``values`` as ``value_type`` and return the number of bytes copied.

        A short copy is reported through the return value, not raised.
        """
        code = _struct_code(value_type)
        try:
            payload = struct.pack(f"<{len(values)}{code}", *values)
        except struct.error as exc:
            raise ValueError(f"Cannot encode values as {value_type}: {exc}") from exc
        return self.write_bytes(address, payload)


def open_process(pid: int, pointer_size: int = 4, backend: Optional[Any] = None) -> RemoteProcess:
    process = RemoteProcess(pid=pid, backend=backend, pointer_size=pointer_size)
    if not process.backend.supports_memory_access():
        raise MemoryReaderError("memory_reader_not_supported_platform")
    return process
