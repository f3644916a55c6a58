# rsstore.py — narrow gateway between the filesystem nodes and Redis.
# Everything above this module speaks in StoreError / StoreNotFound; redis-py
# exceptions never leak past it.

from __future__ import annotations
import functools
from typing import Any, Dict, List, Optional, Tuple

import redis
from redis.cluster import ClusterNode, RedisCluster

from rsfsutils import (
    REDIS_ADDRS,
    TYPE_NONE,
    StoreError,
    StoreNotFound,
    _log,
    parse_addrs,
    split_host_port,
)

StreamEntry = Tuple[str, Dict[str, str]]


def _text(value: Any) -> str:
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return str(value)


def _guard(func):
    """Re-raise every redis-py failure as StoreError."""
    @functools.wraps(func)
    def wrapper(self, *a, **kw):
        try:
            return func(self, *a, **kw)
        except StoreError:
            raise
        except redis.exceptions.RedisError as e:
            raise StoreError(f"{func.__name__}: {e}") from e
    return wrapper


def connect(addrs: Optional[str] = None, ping: bool = True):
    """
    Build a redis client for one endpoint (redis.Redis) or several
    (RedisCluster with those startup nodes). Pings once unless told not to.
    """
    endpoints = parse_addrs(addrs or REDIS_ADDRS)
    if not endpoints:
        raise ValueError("no redis endpoint given")

    if len(endpoints) == 1:
        host, port = split_host_port(endpoints[0])
        client = redis.Redis(host=host, port=port)
    else:
        nodes = [ClusterNode(*split_host_port(ep)) for ep in endpoints]
        client = RedisCluster(startup_nodes=nodes)

    if ping:
        client.ping()
    _log(f"[rsfs] connected to redis {endpoints}")
    return client


class StoreGateway:
    """
    Synchronous command surface used by the nodes. The wrapped client must be
    safe for concurrent use (redis-py clients are; they pool connections).
    """

    def __init__(self, client):
        self.client = client

    # queries --------------------------------------------------------------

    @_guard
    def ping(self) -> bool:
        return bool(self.client.ping())

    @_guard
    def exists(self, key: str) -> bool:
        return int(self.client.exists(key)) == 1

    @_guard
    def type_of(self, key: str) -> str:
        """Redis type tag of key; "none" if it does not exist."""
        t = self.client.type(key)
        return _text(t) if t is not None else TYPE_NONE

    @_guard
    def list_keys(self, pattern: str = "*") -> List[str]:
        return [_text(k) for k in self.client.keys(pattern)]

    # scalars --------------------------------------------------------------

    @_guard
    def get_string(self, key: str) -> bytes:
        value = self.client.get(key)
        if value is None:
            raise StoreNotFound(key)
        if isinstance(value, str):
            return value.encode("utf-8")
        return bytes(value)

    @_guard
    def set_string(self, key: str, value: bytes) -> None:
        self.client.set(key, value)

    # lists ----------------------------------------------------------------

    @_guard
    def list_range(self, key: str) -> List[str]:
        return [_text(v) for v in self.client.lrange(key, 0, -1)]

    # streams --------------------------------------------------------------

    @_guard
    def stream_range(self, key: str) -> List[StreamEntry]:
        entries = []
        for entry_id, fields in self.client.xrange(key, min="-", max="+"):
            entries.append((
                _text(entry_id),
                {_text(k): _text(v) for k, v in (fields or {}).items()},
            ))
        return entries

    @_guard
    def stream_append(self, key: str, entry_id: str, fields: Dict[str, Any]) -> str:
        return _text(self.client.xadd(key, fields, id=entry_id))

    @_guard
    def stream_delete(self, key: str, entry_id: str) -> int:
        return int(self.client.xdel(key, entry_id))
