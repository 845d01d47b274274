from __future__ import annotations

import argparse
import os

import uvicorn


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="memwalk-server",
        description="Serve the memwalk inspection API for one running process.",
    )
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=8000)
    parser.add_argument("--pid", type=int, default=None, help="PID of the target process.")
    parser.add_argument("--process", default="", help="Executable name to look up instead of --pid.")
    parser.add_argument("--layout", default="rayman2", help="Built-in layout name or layout file path.")
    parser.add_argument("--log-level", default="info")
    args = parser.parse_args(argv)

    os.environ["MEMWALK_LAYOUT"] = args.layout
    if args.pid is not None:
        os.environ["MEMWALK_PID"] = str(args.pid)
    if args.process:
        os.environ["MEMWALK_PROCESS"] = args.process

    # Import after env setup so api.py picks up the target on first request.
    from memwalk.api import app as api_app

    print(f"memwalk layout: {args.layout}")
    print(f"Serving on http://{args.host}:{args.port}")
    uvicorn.run(api_app, host=args.host, port=args.port, log_level=args.log_level)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
