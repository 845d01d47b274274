from __future__ import annotations

import logging
import subprocess
from pathlib import Path
from typing import Dict, Optional

from .remote.channel import MemoryPermissionError, ProcessNotFoundError

logger = logging.getLogger(__name__)

PROC_ROOT = Path("/proc")


def _first_pid(command: list[str]) -> Optional[int]:
    try:
        output = subprocess.check_output(command, stderr=subprocess.DEVNULL, text=True)
    except (OSError, subprocess.CalledProcessError) as exc:
        logger.debug("%s found nothing: %s", command[0], exc)
        return None
    for line in output.splitlines():
        for token in line.split():
            try:
                return int(token)
            except ValueError:
                continue
    return None


def find_process_id(process_name: str) -> int:
    """PID of the first running process called ``process_name``.

    Tries ``pidof`` first and falls back to ``pgrep``.
    """
    name = process_name.strip()
    if not name:
        raise ProcessNotFoundError("Empty process name")
    for command in (["pidof", name], ["pgrep", name]):
        pid = _first_pid(command)
        if pid is not None:
            return pid
    raise ProcessNotFoundError(f"Process not found: {name} - is it running?")


def read_environment(pid: int, proc_root: Path = PROC_ROOT) -> Dict[str, str]:
    """Environment of ``pid`` from ``/proc/<pid>/environ``; undecodable entries are skipped."""
    path = proc_root / str(pid) / "environ"
    try:
        raw = path.read_bytes()
    except FileNotFoundError as exc:
        raise ProcessNotFoundError(f"Unable to open environment of pid={pid}: {exc}") from exc
    except PermissionError as exc:
        raise MemoryPermissionError(f"Unable to open environment of pid={pid}: {exc}") from exc

    env: Dict[str, str] = {}
    for entry in raw.split(b"\x00"):
        if not entry:
            continue
        key, _, value = entry.partition(b"=")
        try:
            env[key.decode("utf-8")] = value.decode("utf-8")
        except UnicodeDecodeError:
            continue
    return env
