# rsops.py — kernel callbacks for RSFS, mapped onto the node tree.
# rsfs.RSFS mixes this into fusepy's Operations; errors leave as OSError with
# errno set, which fusepy returns to the kernel as -errno.

import errno
import threading
from typing import Dict

from rsfsutils import fs_error, split_vpath
from rsnodes import RedisDir, RedisFile, RedisFS

_NEXT_FH = 1000


class RedisOperations:
    """
    Paths are resolved against the node tree one segment at a time;
    open files keep their RedisFile node per handle.
    """

    def __init__(self, fs: RedisFS):
        self.fs = fs
        self._lock = threading.RLock()
        self.fh_map: Dict[int, RedisFile] = {}

    # ---- helpers ---------------------------------------------------------

    def _resolve(self, path: str):
        node = self.fs.root()
        for part in split_vpath(path):
            if not isinstance(node, RedisDir):
                raise fs_error(errno.ENOTDIR)
            node = node.lookup(part)
        return node

    def _resolve_dir(self, path: str) -> RedisDir:
        node = self._resolve(path)
        if not isinstance(node, RedisDir):
            raise fs_error(errno.ENOTDIR)
        return node

    def _parent_and_name(self, path: str):
        parts = split_vpath(path)
        if not parts:
            raise fs_error(errno.EEXIST)
        return self._resolve_dir("/".join(parts[:-1])), parts[-1]

    def _handle(self, fh) -> RedisFile:
        f = self.fh_map.get(fh)
        if f is None:
            raise fs_error(errno.EBADF)
        return f

    def _alloc_fh(self, f: RedisFile) -> int:
        global _NEXT_FH
        with self._lock:
            fh = _NEXT_FH
            _NEXT_FH += 1
            self.fh_map[fh] = f
            return fh

    # ---- attributes / listing -------------------------------------------

    def getattr(self, path, fh=None):
        if fh is not None and fh in self.fh_map:
            return self.fh_map[fh].attributes()
        return self._resolve(path).attributes()

    def readdir(self, path, fh):
        d = self._resolve_dir(path)
        return [".", ".."] + [e.name for e in d.enumerate()]

    def statfs(self, path):
        return {
            "f_bsize": 4096,
            "f_frsize": 4096,
            "f_blocks": 0,
            "f_bfree": 0,
            "f_bavail": 0,
            "f_files": 0,
            "f_ffree": 0,
            "f_favail": 0,
            "f_flag": 0,
            "f_namemax": 255,
        }

    # ---- mkdir / create / open ------------------------------------------

    def mkdir(self, path, mode):
        parent, name = self._parent_and_name(path)
        parent.create_stream_directory(name)
        return 0

    def create(self, path, mode, fi=None):
        parent, name = self._parent_and_name(path)
        return self._alloc_fh(parent.create_file(name))

    def open(self, path, flags):
        node = self._resolve(path)
        if isinstance(node, RedisDir):
            raise fs_error(errno.EISDIR)
        return self._alloc_fh(node.open(flags))

    # ---- read / write ----------------------------------------------------

    def read(self, path, size, offset, fh):
        return self._handle(fh).read(size, offset)

    def write(self, path, data, offset, fh):
        # offsets are ignored: data is appended and committed whole on flush
        return self._handle(fh).write(data)

    def flush(self, path, fh):
        self._handle(fh).flush()
        return 0

    def fsync(self, path, fdatasync, fh):
        # commit happens on flush (close); committing here too would make the
        # closing flush write an empty buffer over the data
        self._handle(fh)
        return 0

    def release(self, path, fh):
        with self._lock:
            self.fh_map.pop(fh, None)
        return 0

    # ---- accepted no-ops -------------------------------------------------

    def truncate(self, path, length, fh=None):
        # the whole write buffer replaces the value on flush anyway
        return 0

    def utimens(self, path, times=None):
        return 0

    def chmod(self, path, mode):
        return 0

    def chown(self, path, uid, gid):
        return 0
