# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# xenguest/store/xenstore_cli.py
"""
StoreClient backed by the xenstore command line tools.

read/write/list shell out once per call; each watched path keeps a
long-running xenstore-watch process whose output lines are the fired paths.
"""
from __future__ import annotations

import logging
import subprocess
import threading
from queue import Empty, Queue
from typing import Dict, List, Optional

from ..core.exceptions import StoreError, wrap_store
from ..core.logger import Log
from ..core.utils import U
from .client import StoreClient, WatchEvent

DEFAULT_PREFIX = "xenstore-"
DEFAULT_TIMEOUT_S = 10.0


class _WatchProcess:
    """One xenstore-watch child and the queue its reader thread fills."""

    def __init__(self, logger: logging.Logger, path: str, token: str, cmd: List[str]):
        self.logger = logger
        self.path = path
        self.token = token
        self.events: "Queue[WatchEvent]" = Queue()
        self.dead = False
        self.proc = subprocess.Popen(
            cmd,
            stdout=subprocess.PIPE,
            stderr=subprocess.DEVNULL,
            text=True,
            bufsize=1,
        )
        self.thread = threading.Thread(
            target=self._pump, name=f"xenstore-watch:{token}", daemon=True
        )
        self.thread.start()

    def _pump(self) -> None:
        stream = self.proc.stdout
        if stream is not None:
            for line in stream:
                fired = line.strip()
                if fired:
                    self.events.put((fired, True))
        rc = self.proc.wait()
        self.logger.warning("xenstore-watch on %s exited (rc=%s)", self.path, rc)
        self.events.put((self.path, False))

    def next_event(self, timeout: Optional[float]) -> Optional[WatchEvent]:
        if self.dead:
            return (self.path, False)
        try:
            event = self.events.get(timeout=timeout)
        except Empty:
            return None
        if not event[1]:
            self.dead = True
        return event

    def terminate(self) -> None:
        if self.proc.poll() is None:
            self.proc.terminate()
            try:
                self.proc.wait(timeout=5)
            except subprocess.TimeoutExpired:
                self.proc.kill()


class XenStoreCliClient(StoreClient):
    """
    xenstore access through xenstore-read / -write / -list / -watch.

    Args:
        logger: Logger instance
        prefix: Tool name prefix; "xenstore-" resolves tools from PATH,
            "/usr/sbin/xenstore-" pins a directory.
        timeout: Per-command timeout in seconds
    """

    def __init__(self, logger: logging.Logger, prefix: str = DEFAULT_PREFIX, timeout: float = DEFAULT_TIMEOUT_S):
        self.logger = logger
        self.prefix = prefix
        self.timeout = timeout
        self._watches: Dict[str, _WatchProcess] = {}
        self._lock = threading.Lock()

    def _tool(self, name: str) -> str:
        return f"{self.prefix}{name}"

    def _run(self, op: str, key: str, *extra: str) -> str:
        try:
            return U.run_cmd(
                self.logger,
                [self._tool(op), key, *extra],
                timeout=self.timeout,
                fail_level=logging.DEBUG,
            )
        except (subprocess.SubprocessError, OSError) as e:
            raise wrap_store(op, key, e) from e

    def read(self, key: str) -> str:
        return self._run("read", key).rstrip("\n")

    def write(self, key: str, value: str) -> None:
        self._run("write", key, value)

    def directory(self, path: str) -> str:
        out = self._run("list", path)
        return "\x00".join(out.splitlines())

    def watch(self, path: str, token: str) -> None:
        with self._lock:
            if path in self._watches:
                return
            try:
                wp = _WatchProcess(self.logger, path, token, [self._tool("watch"), path])
            except OSError as e:
                raise wrap_store("watch", path, e, token=token) from e
            self._watches[path] = wp
        Log.trace(self.logger, "Watch registered on %s (token=%s)", path, token)

    def wait_event(self, path: str, timeout: Optional[float] = None) -> Optional[WatchEvent]:
        with self._lock:
            wp = self._watches.get(path)
        if wp is None:
            raise StoreError(op="wait", key=path, msg=f"no watch registered on {path}")
        return wp.next_event(timeout)

    def close(self) -> None:
        with self._lock:
            watches = list(self._watches.values())
            self._watches.clear()
        for wp in watches:
            wp.terminate()
