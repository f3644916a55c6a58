# rshttp.py — small HTTP side channel for RSFS.
#
# GET /<path> records <path> in a bounded channel; a subscriber thread started
# by rsfs.mount() drains it and logs each path. Nothing in the filesystem reads
# the channel, so a full channel simply drops its oldest path.

import time
import threading
from collections import deque
from typing import Callable, List, Optional

from flask import Flask, jsonify

from rsfsutils import HTTP_HOST, HTTP_PORT, HUMAN_NAME, PATH_QUEUE_SIZE, _log


class PathChannel:
    """Bounded FIFO of requested paths; publish never blocks."""

    def __init__(self, maxlen: int = PATH_QUEUE_SIZE):
        self._items = deque(maxlen=max(1, maxlen))
        self._cond = threading.Condition()
        self.dropped = 0

    def publish(self, path: str) -> None:
        with self._cond:
            if len(self._items) == self._items.maxlen:
                self.dropped += 1
            self._items.append(path)
            self._cond.notify()

    def get(self, timeout: Optional[float] = None) -> Optional[str]:
        """Oldest path, waiting up to timeout; None if nothing arrived."""
        with self._cond:
            if not self._items:
                self._cond.wait(timeout)
            if not self._items:
                return None
            return self._items.popleft()

    def snapshot(self) -> List[str]:
        with self._cond:
            return list(self._items)

    def __len__(self):
        with self._cond:
            return len(self._items)


def create_app(channel: PathChannel) -> Flask:
    app = Flask(__name__)
    started = time.time()

    @app.route("/healthz", methods=["GET"])
    def healthz():
        return jsonify({
            "ok": True,
            "name": HUMAN_NAME,
            "uptime": time.time() - started,
            "queued": len(channel),
            "dropped": channel.dropped,
        })

    @app.route("/recent", methods=["GET"])
    def recent():
        return jsonify({"paths": channel.snapshot()})

    @app.route("/", defaults={"path": ""}, methods=["GET"])
    @app.route("/<path:path>", methods=["GET"])
    def record(path):
        channel.publish(path)
        return "", 200

    return app


def start_subscriber(channel: PathChannel, handler: Callable[[str], None],
                     stop_evt: Optional[threading.Event] = None) -> threading.Thread:
    """Drain the channel on a daemon thread, calling handler(path) for each entry."""
    stop_evt = stop_evt or threading.Event()

    def _run():
        while not stop_evt.is_set():
            path = channel.get(timeout=0.5)
            if path is None:
                continue
            try:
                handler(path)
            except Exception as e:
                print(f"[http] subscriber error for {path!r}: {e}")

    t = threading.Thread(target=_run, name="rsfs-path-subscriber", daemon=True)
    t.start()
    return t


def log_requested_path(path: str) -> None:
    _log(f"[http] requested path: /{path}")


def start_server(channel: PathChannel, port: int = HTTP_PORT,
                 host: str = HTTP_HOST) -> threading.Thread:
    """Serve create_app(channel) on a daemon thread."""
    app = create_app(channel)

    def _run():
        try:
            _log(f"[http] listening on {host}:{port}")
            from werkzeug.serving import make_server
            httpd = make_server(host, port, app, threaded=True)
            httpd.serve_forever()
        except Exception as e:
            print(f"[http] server error: {e}")

    t = threading.Thread(target=_run, name="rsfs-http", daemon=True)
    t.start()
    return t
