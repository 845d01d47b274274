from __future__ import annotations

import argparse
import json
import logging
import sys
import time
from typing import Any, Optional, Sequence

from .config import ConfigError, load_layout
from .formatting import (
    format_address,
    format_meshes,
    format_name_table,
    format_walk,
    meshes_to_dict,
    object_types_to_dict,
    walk_to_dict,
)
from .process import find_process_id, read_environment
from .remote import (
    InspectorSession,
    MemoryReaderError,
    SessionError,
    WatchSpec,
    family_mesh_vertices,
    open_session,
    read_text,
    resolve_pointer_path,
)


def _int(text: str) -> int:
    try:
        return int(text, 0)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid integer: {text}") from exc


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="memwalk",
        description="Inspect the object hierarchy of a running process through its memory.",
    )
    target = parser.add_mutually_exclusive_group()
    target.add_argument("--pid", type=int, default=None, help="PID of the target process.")
    target.add_argument(
        "--process",
        default="",
        help="Executable name to look up with pidof/pgrep (defaults to the layout's process_name).",
    )
    parser.add_argument(
        "--layout",
        default="rayman2",
        help="Built-in layout name or path to a JSON/YAML layout file.",
    )
    parser.add_argument("--format", choices=("table", "json"), default="table", help="Output format.")
    parser.add_argument("--log-level", default="warning", help="Logging level (debug, info, warning, ...).")

    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("names", help="Print the family, AI model and super-object name tables.")

    walk = sub.add_parser("walk", help="Walk the active super-object chain.")
    walk.add_argument("--root", type=_int, default=0, help="Start node (0 = dynamic world).")
    walk.add_argument("--ai-models", action="store_true", help="Group nodes by AI model name instead.")

    meshes = sub.add_parser("meshes", help="Read the vertices of a family's default objects.")
    meshes.add_argument("family", type=_int, help="Address of the family.")
    meshes.add_argument("--index", type=int, action="append", default=[], help="Object index to skip.")
    meshes.add_argument("--keep", action="store_true", help="Keep only the given indices instead.")

    read = sub.add_parser("read", help="Read typed values at an address.")
    read.add_argument("address", type=_int)
    read.add_argument("--type", dest="value_type", default="uint32")
    read.add_argument("--count", type=int, default=1)

    text = sub.add_parser("text", help="Read a NUL-terminated string.")
    text.add_argument("address", type=_int)
    text.add_argument("--max-bytes", type=int, default=64)

    resolve = sub.add_parser("resolve", help="Follow a pointer path.")
    resolve.add_argument("base", type=_int)
    resolve.add_argument("offsets", type=_int, nargs="*")

    watch = sub.add_parser("watch", help="Poll DSG variables of named super-objects.")
    watch.add_argument("vars", nargs="+", help="NAME:OFFSET[:TYPE], e.g. GRP_TimerCourse_I3:84:float32.")
    watch.add_argument("--interval", type=float, default=1.0, help="Seconds between polls.")
    watch.add_argument("--level", default="", help="Stop once the current level is no longer this one.")
    watch.add_argument("--cycles", type=int, default=0, help="Stop after this many polls (0 = forever).")

    sub.add_parser("env", help="Print the target's environment.")
    return parser


def _emit(args: argparse.Namespace, payload: Any, table: str) -> None:
    if args.format == "json":
        json.dump(payload, sys.stdout, indent=2, ensure_ascii=False)
        sys.stdout.write("\n")
    else:
        print(table)


def cmd_names(args: argparse.Namespace, session: InspectorSession) -> int:
    types = session.refresh()
    table = "\n".join(
        [
            format_name_table("Families", types.families),
            format_name_table("AI Models", types.ai_models),
            format_name_table("Super-objects", types.super_objects),
        ]
    )
    _emit(args, object_types_to_dict(types), table)
    return 0


def cmd_walk(args: argparse.Namespace, session: InspectorSession) -> int:
    session.refresh()
    walk = session.ai_models(args.root) if args.ai_models else session.super_objects(args.root)
    _emit(args, walk_to_dict(walk), format_walk(walk))
    return 0


def cmd_meshes(args: argparse.Namespace, session: InspectorSession) -> int:
    meshes = family_mesh_vertices(
        session.process,
        args.family,
        session.layout.family,
        keep_instead=args.keep,
        indices=args.index,
    )
    _emit(args, meshes_to_dict(meshes), format_meshes(meshes))
    return 0


def cmd_read(args: argparse.Namespace, session: InspectorSession) -> int:
    values = session.process.read(args.address, args.value_type, args.count)
    _emit(
        args,
        {"address": args.address, "type": args.value_type, "values": list(values)},
        " ".join(str(value) for value in values),
    )
    return 0


def cmd_text(args: argparse.Namespace, session: InspectorSession) -> int:
    value = read_text(session.process, args.address, args.max_bytes)
    _emit(args, {"address": args.address, "text": value}, value)
    return 0


def cmd_resolve(args: argparse.Namespace, session: InspectorSession) -> int:
    address = resolve_pointer_path(session.process, args.base, args.offsets)
    _emit(args, {"base": args.base, "offsets": args.offsets, "address": address}, format_address(address))
    return 0


def cmd_watch(args: argparse.Namespace, session: InspectorSession) -> int:
    specs = [WatchSpec.parse(item) for item in args.vars]
    polls = 0
    while args.cycles <= 0 or polls < args.cycles:
        if polls:
            time.sleep(max(0.0, args.interval))
        session.refresh()
        if args.level and session.level_name.lower() != args.level.lower():
            print(f"Level is now '{session.level_name}', stopping.")
            return 0
        session.super_objects()
        values = session.read_watch(specs)
        if args.format == "json":
            print(json.dumps({"cycle": session.cycle, "values": values}))
        else:
            print("  ".join(f"{label}={value}" for label, value in values.items()))
        sys.stdout.flush()
        polls += 1
    return 0


def cmd_env(args: argparse.Namespace, session: InspectorSession) -> int:
    env = read_environment(session.process.pid)
    _emit(args, env, "\n".join(f"{key}={value}" for key, value in sorted(env.items())))
    return 0


COMMANDS = {
    "names": cmd_names,
    "walk": cmd_walk,
    "meshes": cmd_meshes,
    "read": cmd_read,
    "text": cmd_text,
    "resolve": cmd_resolve,
    "watch": cmd_watch,
    "env": cmd_env,
}


def main(argv: Sequence[str] | None = None, *, backend: Optional[Any] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(level=args.log_level.upper(), format="%(levelname)s %(name)s: %(message)s")

    try:
        layout = load_layout(args.layout)
    except ConfigError as exc:
        parser.error(str(exc))

    try:
        pid = args.pid if args.pid is not None else find_process_id(args.process or layout.process_name)
        session = open_session(pid, layout, backend=backend)
        return COMMANDS[args.command](args, session)
    except (MemoryReaderError, SessionError, ValueError) as exc:
        print(f"memwalk: {exc}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    raise SystemExit(main())
