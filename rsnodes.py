# rsnodes.py — node hierarchy for RSFS.
#
# The namespace is two levels deep:
#   /<key>            string/list keys are files, stream keys are directories
#   /<stream>/<name>  files created inside a stream; flushing one appends an
#                     entry "<name>-0" to that stream
#
# Nodes are built on demand by lookup/create and hold no state of their own
# beyond write buffers; Redis is the source of truth.

from __future__ import annotations
import os
import json
import stat
import errno
import threading
from collections import namedtuple
from typing import Dict, List, Optional, Union

from rsfsutils import (
    ATTR_VALIDITY,
    MKDIR_PLACEHOLDER_ID,
    MKDIR_PLACEHOLDER_VALUE,
    ROOT_INODE,
    STREAM_FIELD,
    STREAM_SEQ_SUFFIX,
    TYPE_LIST,
    TYPE_NONE,
    TYPE_STREAM,
    TYPE_STRING,
    StoreNotFound,
    StoreUnsupported,
    _log,
    fs_error,
    generate_inode,
    is_representable_key,
    store_errors,
)
from rsstore import StoreGateway

DIR_PERM = 0o555
FILE_PERM = 0o444

Dirent = namedtuple("Dirent", "name kind")   # kind: "dir" | "file"


class RedisFS:
    """Filesystem root: owns the gateway and the attribute validity window."""

    def __init__(self, gateway: StoreGateway, attr_validity: float = ATTR_VALIDITY):
        self.gateway = gateway
        self.attr_validity = attr_validity

    def root(self) -> "RedisDir":
        return RedisDir(self, root=True)

    def generate_inode(self, parent_inode: int, name: str) -> int:
        return generate_inode(parent_inode, name)


class RedisDir:
    """
    The mount root, or a stream key presented as a directory.
    Only the root can be enumerated; stream children are write-only.
    """

    def __init__(self, fs: RedisFS, name: str = "", root: bool = False,
                 store_type: str = TYPE_STREAM, parent_inode: int = ROOT_INODE):
        self.fs = fs
        self.root = root
        self.name = name
        self.store_type = "" if root else store_type
        self.inode = ROOT_INODE if root else fs.generate_inode(parent_inode, name)

    @property
    def gateway(self) -> StoreGateway:
        return self.fs.gateway

    def attributes(self) -> Dict:
        return {
            "st_mode": stat.S_IFDIR | DIR_PERM,
            "st_nlink": 2,
            "st_ino": self.inode,
            "st_size": 0,
            "attr_valid": self.fs.attr_validity,
        }

    def lookup(self, name: str) -> Union["RedisDir", "RedisFile"]:
        if not self.root:
            # entries of a stream are not addressable by name
            raise fs_error(errno.ENOENT)

        with store_errors("Lookup:Exists", name):
            if not self.gateway.exists(name):
                raise StoreNotFound(name)
        with store_errors("Lookup:Type", name):
            t = self.gateway.type_of(name)
            if t == TYPE_NONE:
                # removed between the two calls
                raise StoreNotFound(name)

        if t == TYPE_STREAM:
            return RedisDir(self.fs, name=name, store_type=t, parent_inode=self.inode)
        return RedisFile(self.fs, name=name, store_type=t, parent_inode=self.inode)

    def enumerate(self) -> List[Dirent]:
        """
        Root: every stream key as a directory, every string key as a file.
        Other types are left out. Streams list nothing.
        """
        if not self.root:
            return []

        with store_errors("ReadDirAll:Keys", "*"):
            keys = self.gateway.list_keys("*")

        entries: List[Dirent] = []
        for key in keys:
            if not is_representable_key(key):
                continue
            with store_errors("ReadDirAll:Type", key):
                t = self.gateway.type_of(key)
            if t == TYPE_STREAM:
                entries.append(Dirent(key, "dir"))
            elif t == TYPE_STRING:
                entries.append(Dirent(key, "file"))
        return entries

    def create_file(self, name: str) -> "RedisFile":
        f = RedisFile(
            self.fs,
            name=name,
            parent="" if self.root else self.name,
            parent_inode=self.inode,
        )
        return f.open(os.O_WRONLY | os.O_CREAT)

    def create_stream_directory(self, name: str) -> "RedisDir":
        if not self.root:
            raise fs_error(errno.ENOTSUP)

        fields = {STREAM_FIELD: MKDIR_PLACEHOLDER_VALUE}
        with store_errors("Mkdir:XAdd", f"{name} {MKDIR_PLACEHOLDER_ID}"):
            self.gateway.stream_append(name, MKDIR_PLACEHOLDER_ID, fields)
        # no rollback: if this fails the placeholder stays in the stream
        with store_errors("Mkdir:XDel", f"{name} {MKDIR_PLACEHOLDER_ID}"):
            self.gateway.stream_delete(name, MKDIR_PLACEHOLDER_ID)

        return RedisDir(self.fs, name=name, store_type=TYPE_STREAM, parent_inode=self.inode)

    def __repr__(self):
        return f"RedisDir(name={self.name!r}, root={self.root})"


class RedisFile:
    """
    A non-stream key, or a file created inside a stream.

    Writes accumulate in memory and are committed as a whole on flush.
    Reads always reload from Redis.
    """

    def __init__(self, fs: RedisFS, name: str, parent: str = "",
                 store_type: Optional[str] = None, parent_inode: int = ROOT_INODE):
        self.fs = fs
        self.name = name
        self.parent = parent
        self.store_type = store_type   # tag seen at lookup; None when created
        self.inode = fs.generate_inode(parent_inode, name)
        self.size = 0
        self.rb = b""
        self.wb = bytearray()
        self.read_only = False
        self._lock = threading.Lock()

    @property
    def gateway(self) -> StoreGateway:
        return self.fs.gateway

    def open(self, flags: int) -> "RedisFile":
        """Returns the handle (the node itself). I/O is direct, see mount()."""
        is_dir = bool(flags & getattr(os, "O_DIRECTORY", 0))
        if (flags & os.O_ACCMODE) == os.O_RDONLY and not is_dir:
            self.read_only = True
        return self

    def write(self, data: bytes) -> int:
        with self._lock:
            self.wb += data
            return len(data)

    def flush(self) -> None:
        with self._lock:
            if self.read_only:
                return

            payload = bytes(self.wb)
            if self.parent:
                entry_id = self.name + STREAM_SEQ_SUFFIX
                with store_errors("Flush:XAdd", f"{self.parent} {entry_id}"):
                    self.gateway.stream_append(self.parent, entry_id, {STREAM_FIELD: payload})
            else:
                with store_errors("Flush:Set", self.name):
                    self.gateway.set_string(self.name, payload)

            self.wb = bytearray()
            _log(f"[rsfs] flushed {len(payload)} bytes to {self.parent or self.name}")

    def attributes(self) -> Dict:
        return {
            "st_mode": stat.S_IFREG | FILE_PERM,
            "st_nlink": 1,
            "st_ino": self.inode,
            "st_size": self.size,
            "attr_valid": self.fs.attr_validity,
        }

    def _render(self, t: str) -> bytes:
        if t == TYPE_STRING:
            return self.gateway.get_string(self.name)
        if t == TYPE_LIST:
            return "\n".join(self.gateway.list_range(self.name)).encode("utf-8")
        if t == TYPE_STREAM:
            entries = [{"ID": entry_id, "Values": values}
                       for entry_id, values in self.gateway.stream_range(self.name)]
            return json.dumps(entries, separators=(",", ":"), sort_keys=True,
                              ensure_ascii=False).encode("utf-8")
        if t == TYPE_NONE:
            raise StoreNotFound(self.name)
        raise StoreUnsupported(t)

    def reload(self) -> bytes:
        with self._lock:
            with store_errors("Reload", self.name):
                t = self.gateway.type_of(self.name)
                data = self._render(t)
            self.rb = data
            self.size = len(data)
            return data

    def read_all(self) -> bytes:
        return self.reload()

    def read(self, size: int, offset: int) -> bytes:
        data = self.read_all()
        return data[offset:offset + size]

    def __repr__(self):
        return f"RedisFile(name={self.name!r}, parent={self.parent!r})"
