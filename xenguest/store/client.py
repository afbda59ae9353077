# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# xenguest/store/client.py
"""
Capability contract for the xenstore control plane.

Features only ever talk to a StoreClient, so the real xenstore transport and
the in-memory double used by tests are interchangeable.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional, Tuple

WatchEvent = Tuple[str, bool]


class StoreClient(ABC):
    """
    Hierarchical, watchable key/value store shared between guest and host.

    Every failing operation raises StoreError.
    """

    @abstractmethod
    def read(self, key: str) -> str:
        """Return the value stored at key."""

    @abstractmethod
    def write(self, key: str, value: str) -> None:
        """Store value at key."""

    @abstractmethod
    def directory(self, path: str) -> str:
        """Return the child names of path joined by NUL characters."""

    @abstractmethod
    def watch(self, path: str, token: str) -> None:
        """Register a watch on path (and its subtree) tagged with token."""

    @abstractmethod
    def wait_event(self, path: str, timeout: Optional[float] = None) -> Optional[WatchEvent]:
        """
        Block until a watch registered on path fires.

        Returns (fired_path, ok); ok is False when the watch can no longer
        deliver events. Returns None only when timeout elapsed first.
        """

    def close(self) -> None:
        """Release transport resources."""
