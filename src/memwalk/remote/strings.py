from __future__ import annotations

from .channel import RemoteProcess


def read_text(process: RemoteProcess, address: int, max_bytes: int, encoding: str = "utf-8") -> str:
    """Read a NUL-terminated string of at most ``max_bytes`` bytes.

    Bytes after the first NUL are ignored. If what remains does not decode,
    the longest decodable prefix is returned instead. Only I/O failures
    raise.
    """
    data = process.read_bytes(address, max_bytes)
    nul = data.find(b"\x00")
    if nul != -1:
        data = data[:nul]
    try:
        return data.decode(encoding)
    except UnicodeDecodeError as exc:
        return data[: exc.start].decode(encoding)
