# rsfsutils.py — shared constants & helpers for RSFS
# Redis keys are exposed as files; stream keys are exposed as directories.

from __future__ import annotations
import os
import errno
import struct
from contextlib import contextmanager
from typing import Iterator, List

# ------------------------- Public constants -------------------------

HUMAN_NAME = "RSFS"

# Mount options (fixed; not renegotiable once mounted)
FS_NAME = "rsfs"
FS_SUBTYPE = "streamfs"
VOLUME_NAME = "Redis Streams"

# Reserved inode for the mount root
ROOT_INODE = 1

# Redis type tags as reported by TYPE
TYPE_STRING = "string"
TYPE_LIST = "list"
TYPE_STREAM = "stream"
TYPE_NONE = "none"

# Every file payload written into a stream goes into this single field
STREAM_FIELD = "blob"

# mkdir has no "create empty stream" primitive: add this entry, then delete it
MKDIR_PLACEHOLDER_ID = "0-1"
MKDIR_PLACEHOLDER_VALUE = "dummy"

# Suffix appended to a file name to build its stream entry id ("<name>-0")
STREAM_SEQ_SUFFIX = "-0"

# ------------------------- Configuration ----------------------------


def _env_flag(name: str, default: str = "0") -> bool:
    return os.environ.get(name, default).strip().lower() in ("1", "true", "yes", "on")


REDIS_ADDRS = os.environ.get("RSFS_REDIS", "127.0.0.1:6379")
ATTR_VALIDITY = float(os.environ.get("RSFS_ATTR_VALIDITY", "1.0"))   # seconds
HTTP_PORT = int(os.environ.get("RSFS_HTTP_PORT", "8888"))            # 0 disables
HTTP_HOST = os.environ.get("RSFS_HTTP_HOST", "0.0.0.0")
PATH_QUEUE_SIZE = int(os.environ.get("RSFS_PATH_QUEUE", "64"))
VERBOSE = _env_flag("RSFS_VERBOSE")


def parse_addrs(addrs: str) -> List[str]:
    """
    Split a comma separated list of redis endpoints.
      "127.0.0.1:6379"          -> ["127.0.0.1:6379"]
      "a:7000, b:7001,"         -> ["a:7000", "b:7001"]
    """
    return [a.strip() for a in (addrs or "").split(",") if a.strip()]


def split_host_port(addr: str, default_port: int = 6379) -> tuple[str, int]:
    if ":" in addr and addr.rsplit(":", 1)[-1].isdigit():
        host, port = addr.rsplit(":", 1)
        return host or "127.0.0.1", int(port)
    return addr, default_port

# ------------------------- Logging ----------------------------------


def _log(msg: str) -> None:
    if VERBOSE:
        print(msg)


def log_error(msg: str) -> None:
    print(f"[rsfs] {msg}")

# ------------------------- Node identity ----------------------------

_FNV64_OFFSET = 0xCBF29CE484222325
_FNV64_PRIME = 0x100000001B3
_MASK64 = 0xFFFFFFFFFFFFFFFF


def fnv1a_64(data: bytes) -> int:
    h = _FNV64_OFFSET
    for b in data:
        h ^= b
        h = (h * _FNV64_PRIME) & _MASK64
    return h


def generate_inode(parent_inode: int, name: str) -> int:
    """
    Stable inode for <name> below <parent_inode>:
    FNV-1a 64 over the little-endian parent id followed by the UTF-8 name.
    Collisions are possible and not detected.
    """
    ino = fnv1a_64(struct.pack("<Q", parent_inode & _MASK64) + name.encode("utf-8"))
    if ino == ROOT_INODE:
        # root id is reserved
        ino += 1
    return ino

# ------------------------- Errors -----------------------------------


class StoreError(Exception):
    """Any failure reported by the backing store (connection errors included)."""


class StoreNotFound(StoreError):
    """The key does not exist."""


class StoreUnsupported(StoreError):
    """The key holds a type we cannot render as a file."""


def fs_error(code: int) -> OSError:
    return OSError(code, os.strerror(code))


@contextmanager
def store_errors(op: str, key: str) -> Iterator[None]:
    """
    Translate store failures into filesystem errors:
      StoreNotFound    -> ENOENT
      StoreUnsupported -> ENOTSUP
      StoreError       -> EIO (logged with op and key)
    """
    try:
        yield
    except StoreNotFound:
        raise fs_error(errno.ENOENT)
    except StoreUnsupported as e:
        _log(f"[rsfs] {op}: unsupported type key={key!r}: {e}")
        raise fs_error(errno.ENOTSUP)
    except StoreError as e:
        log_error(f"{op}: {e} key={key!r}")
        raise fs_error(errno.EIO)

# ------------------------- Path utilities --------------------------


def normalize_vpath(vpath: str) -> str:
    """
    Normalize a virtual path (from FUSE) to a clean, relative POSIX-like form
    without leading slash and without '.', '..' segments.
    Examples:
      "/"       -> ""
      "/a/b"    -> "a/b"
      "a//b/."  -> "a/b"
    """
    v = vpath.strip().replace("\\", "/")
    parts = [p for p in v.split("/") if p not in ("", ".", "..")]
    return "/".join(parts)


def split_vpath(vpath: str) -> List[str]:
    v = normalize_vpath(vpath)
    return v.split("/") if v else []


MOUNTS_FILE = "/proc/self/mounts"


def ensure_empty_mountpoint(path: str) -> None:
    """
    Fail fast if the mountpoint is not an empty directory or is already a FUSE mount.
    A missing mountpoint is created.
    """
    if os.path.exists(path):
        if not os.path.isdir(path):
            raise RuntimeError(f"Mountpoint exists but is not a directory: {path}")
        try:
            with open(MOUNTS_FILE, "r", encoding="utf-8") as m:
                mounted = any(len(line.split()) > 1 and line.split()[1] == os.path.abspath(path)
                              for line in m)
        except OSError:
            # no /proc (macOS); still enforce emptiness
            mounted = False
        if mounted:
            raise RuntimeError(f"Mountpoint is already mounted: {path}")
        if os.listdir(path):
            raise RuntimeError(f"Mountpoint must be empty: {path}")
    else:
        os.makedirs(path, exist_ok=True)


def is_representable_key(key: str) -> bool:
    """A key can only become a directory entry if it is a single path segment."""
    return bool(key) and "/" not in key and key not in (".", "..")
