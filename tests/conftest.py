import fnmatch
import threading

import pytest
import redis

from rsnodes import RedisFS
from rsstore import StoreGateway


def _b(v) -> bytes:
    if isinstance(v, bytes):
        return v
    if isinstance(v, (bytearray, memoryview)):
        return bytes(v)
    return str(v).encode("utf-8")


def _parse_id(entry_id) -> tuple:
    ms, _, seq = _b(entry_id).decode().partition("-")
    return int(ms), int(seq or 0)


class FakeRedis:
    """
    In-memory stand-in for the handful of redis-py client calls the gateway makes.
    Names listed in `fail` raise ConnectionError; `wrongtype` keys can hold any
    type tag to simulate types the filesystem does not render.
    """

    def __init__(self):
        self.data = {}          # key -> (type, value)
        self.last_ids = {}      # stream key -> last id ever added
        self.fail = set()
        self.calls = []
        self._lock = threading.Lock()

    def _call(self, name):
        self.calls.append(name)
        if name in self.fail:
            raise redis.exceptions.ConnectionError(f"{name} failed")

    def _typed(self, key, t):
        entry = self.data.get(_b(key))
        if entry is None:
            return None
        if entry[0] != t:
            raise redis.exceptions.ResponseError(
                "WRONGTYPE Operation against a key holding the wrong kind of value")
        return entry[1]

    # generic -------------------------------------------------------------

    def ping(self):
        self._call("ping")
        return True

    def exists(self, *names):
        self._call("exists")
        return sum(1 for n in names if _b(n) in self.data)

    def type(self, name):
        self._call("type")
        entry = self.data.get(_b(name))
        return _b(entry[0]) if entry else b"none"

    def keys(self, pattern="*"):
        self._call("keys")
        pat = _b(pattern).decode()
        return [k for k in list(self.data) if fnmatch.fnmatchcase(k.decode(), pat)]

    def put_raw(self, key, type_tag, value=None):
        self.data[_b(key)] = (type_tag, value)

    # strings -------------------------------------------------------------

    def get(self, name):
        self._call("get")
        return self._typed(name, "string")

    def set(self, name, value):
        self._call("set")
        with self._lock:
            self.data[_b(name)] = ("string", _b(value))
        return True

    # lists ---------------------------------------------------------------

    def rpush(self, name, *values):
        with self._lock:
            items = self._typed(name, "list")
            if items is None:
                items = []
                self.data[_b(name)] = ("list", items)
            items.extend(_b(v) for v in values)
            return len(items)

    def lrange(self, name, start, end):
        self._call("lrange")
        items = self._typed(name, "list") or []
        end = len(items) if end == -1 else end + 1
        return list(items[start:end])

    # streams -------------------------------------------------------------

    def xadd(self, name, fields, id="*"):
        self._call("xadd")
        with self._lock:
            key = _b(name)
            entries = self._typed(name, "stream")
            last = self.last_ids.get(key, (0, 0))
            new = _parse_id(id)
            if new == (0, 0):
                raise redis.exceptions.ResponseError(
                    "ERR The ID specified in XADD must be greater than 0-0")
            if new <= last:
                raise redis.exceptions.ResponseError(
                    "ERR The ID specified in XADD is equal or smaller than the target stream top item")
            if entries is None:
                entries = []
                self.data[key] = ("stream", entries)
            entry_id = f"{new[0]}-{new[1]}".encode()
            entries.append((entry_id, {_b(k): _b(v) for k, v in fields.items()}))
            self.last_ids[key] = new
            return entry_id

    def xdel(self, name, *ids):
        self._call("xdel")
        with self._lock:
            entries = self._typed(name, "stream") or []
            wanted = {_parse_id(i) for i in ids}
            keep = [e for e in entries if _parse_id(e[0]) not in wanted]
            removed = len(entries) - len(keep)
            entries[:] = keep
            return removed

    def xrange(self, name, min="-", max="+"):
        self._call("xrange")
        entries = self._typed(name, "stream") or []
        return sorted(entries, key=lambda e: _parse_id(e[0]))


@pytest.fixture
def fake() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def gateway(fake) -> StoreGateway:
    return StoreGateway(fake)


@pytest.fixture
def rfs(gateway) -> RedisFS:
    return RedisFS(gateway, attr_validity=1.0)


@pytest.fixture
def root(rfs):
    return rfs.root()
