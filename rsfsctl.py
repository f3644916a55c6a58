#!/usr/bin/env python3
"""
rsfsctl.py — Control tool for RSFS

Features:
- Query the side-channel HTTP listener of a running mount
- Record a path through the listener
- Show the paths the listener still holds

Usage examples:
  python3 rsfsctl.py status
  python3 rsfsctl.py touch events/42
  python3 rsfsctl.py recent --port 8888
"""

import sys
import time
import argparse

import requests

from rsfsutils import HTTP_PORT


def _url(args, path: str) -> str:
    return f"http://{args.host}:{args.port}{path}"

# --------------------- commands -------------------------------


def cmd_status(args) -> int:
    try:
        r = requests.get(_url(args, "/healthz"), timeout=5)
        r.raise_for_status()
        data = r.json()
    except Exception as e:
        print("Failed to fetch status:", e)
        return 1
    up = int(data.get("uptime", 0))
    print(f"{data.get('name', 'RSFS')} ok={data.get('ok')} up={up}s "
          f"queued={data.get('queued', 0)} dropped={data.get('dropped', 0)}")
    return 0


def cmd_touch(args) -> int:
    path = args.path.lstrip("/")
    try:
        r = requests.get(_url(args, "/" + path), timeout=5)
        r.raise_for_status()
    except Exception as e:
        print("Failed to record path:", e)
        return 1
    print(f"Recorded /{path} at {time.ctime()}")
    return 0


def cmd_recent(args) -> int:
    try:
        r = requests.get(_url(args, "/recent"), timeout=5)
        r.raise_for_status()
        paths = r.json().get("paths", [])
    except Exception as e:
        print("Failed to fetch recent paths:", e)
        return 1
    for p in paths:
        print("/" + p)
    return 0

# --------------------- main -------------------------


def main(argv=None) -> int:
    ap = argparse.ArgumentParser(prog="rsfsctl", add_help=True)
    ap.add_argument("--host", default="127.0.0.1")
    ap.add_argument("--port", type=int, default=HTTP_PORT)
    sub = ap.add_subparsers(dest="cmd")

    ss = sub.add_parser("status", help="show listener status")
    ss.set_defaults(func=cmd_status)

    st = sub.add_parser("touch", help="record a path through the listener")
    st.add_argument("path")
    st.set_defaults(func=cmd_touch)

    sr = sub.add_parser("recent", help="list paths still queued")
    sr.set_defaults(func=cmd_recent)

    args = ap.parse_args(argv)
    if not args.cmd:
        ap.print_usage()
        return 2
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
