import os
import stat
import errno

import pytest

from rsops import RedisOperations


@pytest.fixture
def ops(rfs):
    return RedisOperations(rfs)


def test_getattr_root(ops):
    a = ops.getattr("/")
    assert stat.S_ISDIR(a["st_mode"])
    assert a["st_ino"] == 1


def test_getattr_missing(ops):
    with pytest.raises(OSError) as ei:
        ops.getattr("/missing")
    assert ei.value.errno == errno.ENOENT


def test_readdir_root(fake, ops):
    fake.set("a", b"1")
    fake.xadd("s", {"blob": "x"}, id="1-0")
    fake.rpush("l", "x")
    assert sorted(ops.readdir("/", None)) == [".", "..", "a", "s"]


def test_readdir_on_file_is_enotdir(fake, ops):
    fake.set("a", b"1")
    with pytest.raises(OSError) as ei:
        ops.readdir("/a", None)
    assert ei.value.errno == errno.ENOTDIR


def test_path_through_file_is_enotdir(fake, ops):
    fake.set("a", b"1")
    with pytest.raises(OSError) as ei:
        ops.getattr("/a/b")
    assert ei.value.errno == errno.ENOTDIR


def test_create_write_flush_read(fake, ops):
    fh = ops.create("/greeting", 0o644)
    assert ops.write("/greeting", b"hello ", 0, fh) == 6
    assert ops.write("/greeting", b"there", 6, fh) == 5
    assert ops.getattr("/greeting", fh)["st_size"] == 0
    assert ops.flush("/greeting", fh) == 0
    ops.release("/greeting", fh)

    fh = ops.open("/greeting", os.O_RDONLY)
    assert ops.read("/greeting", 4096, 0, fh) == b"hello there"
    assert ops.read("/greeting", 3, 6, fh) == b"the"
    ops.flush("/greeting", fh)
    ops.release("/greeting", fh)
    assert fake.get("greeting") == b"hello there"


def test_mkdir_then_write_into_stream(fake, gateway, ops):
    assert ops.mkdir("/events", 0o755) == 0
    assert stat.S_ISDIR(ops.getattr("/events")["st_mode"])

    fh = ops.create("/events/7", 0o644)
    ops.write("/events/7", b"tick", 0, fh)
    ops.flush("/events/7", fh)
    ops.release("/events/7", fh)

    assert gateway.stream_range("events") == [("7-0", {"blob": "tick"})]
    assert ops.readdir("/events", None) == [".", ".."]


def test_mkdir_nested_is_unsupported(ops):
    ops.mkdir("/events", 0o755)
    with pytest.raises(OSError) as ei:
        ops.mkdir("/events/deeper", 0o755)
    assert ei.value.errno == errno.ENOTSUP


def test_open_directory_is_eisdir(fake, ops):
    fake.xadd("s", {"blob": "x"}, id="1-0")
    with pytest.raises(OSError) as ei:
        ops.open("/s", os.O_RDONLY)
    assert ei.value.errno == errno.EISDIR


def test_unknown_handle_is_ebadf(ops):
    with pytest.raises(OSError) as ei:
        ops.read("/x", 10, 0, 424242)
    assert ei.value.errno == errno.EBADF


def test_release_forgets_handle(fake, ops):
    fake.set("k", b"v")
    fh = ops.open("/k", os.O_RDONLY)
    ops.release("/k", fh)
    assert fh not in ops.fh_map




def test_fsync_then_close_keeps_scalar_value(fake, ops):
    fh = ops.create("/k", 0o644)
    ops.write("/k", b"important", 0, fh)
    assert ops.fsync("/k", 0, fh) == 0
    assert ops.flush("/k", fh) == 0
    ops.release("/k", fh)
    assert fake.get("k") == b"important"


def test_fsync_then_close_in_stream_commits_once(gateway, ops):
    ops.mkdir("/events", 0o755)
    fh = ops.create("/events/7", 0o644)
    ops.write("/events/7", b"tick", 0, fh)
    assert ops.fsync("/events/7", 1, fh) == 0
    assert ops.flush("/events/7", fh) == 0
    ops.release("/events/7", fh)
    assert gateway.stream_range("events") == [("7-0", {"blob": "tick"})]


def test_fsync_unknown_handle_is_ebadf(ops):
    with pytest.raises(OSError) as ei:
        ops.fsync("/x", 0, 424242)
    assert ei.value.errno == errno.EBADF
