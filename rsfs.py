# rsfs.py — RSFS (Redis Streams FileSystem)
# FUSE view of a Redis database:
#   /<key>            string keys are readable/writable files (list keys readable)
#   /<stream>/        stream keys are directories; mkdir creates an empty stream
#   /<stream>/<n>     writing a new file appends entry "<n>-0" to the stream
#
# Reading any key renders its current value; nothing is cached between reads.

import sys
from typing import Dict, Optional

from fuse import FUSE, Operations

import rshttp
from rsfsutils import (
    ATTR_VALIDITY,
    FS_NAME,
    FS_SUBTYPE,
    HTTP_PORT,
    REDIS_ADDRS,
    VOLUME_NAME,
    _log,
    ensure_empty_mountpoint,
)
from rsnodes import RedisFS
from rsops import RedisOperations
from rsstore import StoreGateway, connect


class RSFS(RedisOperations, Operations):
    """FUSE operations implementation; see rsops.RedisOperations."""


def mount_options(attr_validity: float = ATTR_VALIDITY) -> Dict:
    opts = dict(
        fsname=FS_NAME,
        subtype=FS_SUBTYPE,
        direct_io=True,
        use_ino=True,
        attr_timeout=attr_validity,
        entry_timeout=attr_validity,
    )
    if sys.platform == "darwin":
        opts.update(local=True, volname=VOLUME_NAME)
    return opts


def mount(mountpoint: str, redis_addrs: str = REDIS_ADDRS, foreground: bool = True,
          http_port: int = HTTP_PORT, attr_validity: float = ATTR_VALIDITY,
          debug: bool = False, client=None):
    if client is None:
        client = connect(redis_addrs)
    fs = RedisFS(StoreGateway(client), attr_validity=attr_validity)

    # --- Start side-channel HTTP listener (optional) ---
    if http_port:
        channel = rshttp.PathChannel()
        rshttp.start_subscriber(channel, rshttp.log_requested_path)
        rshttp.start_server(channel, port=http_port)

    _log(f"[rsfs] mounting on {mountpoint}")
    FUSE(RSFS(fs), mountpoint, foreground=foreground, nothreads=False, debug=debug,
         **mount_options(attr_validity))


def main(argv: Optional[list] = None) -> int:
    import argparse

    ap = argparse.ArgumentParser(description="RSFS (Redis keys and streams as files)")
    ap.add_argument("mountpoint", help="mount directory")
    ap.add_argument("--redis", default=REDIS_ADDRS,
                    help="redis endpoint(s), host:port[,host:port...] (cluster when several)")
    ap.add_argument("--http-port", type=int, default=HTTP_PORT,
                    help="side-channel HTTP port (0 disables)")
    ap.add_argument("--attr-validity", type=float, default=ATTR_VALIDITY,
                    help="seconds the kernel may cache attributes")
    ap.add_argument("--bg", action="store_true", help="run in background")
    ap.add_argument("--debug", action="store_true", help="FUSE debug output")
    args = ap.parse_args(argv)

    ensure_empty_mountpoint(args.mountpoint)

    try:
        client = connect(args.redis)
    except Exception as e:
        print(f"[rsfs] failed to connect to redis: {e}")
        return 1

    mount(args.mountpoint, redis_addrs=args.redis, foreground=not args.bg,
          http_port=args.http_port, attr_validity=args.attr_validity,
          debug=args.debug, client=client)
    return 0


if __name__ == "__main__":
    sys.exit(main())
