# SPDX-License-Identifier: LGPL-3.0-or-later
# xenguest/store/__init__.py
"""xenstore access for agent features."""

from .client import StoreClient, WatchEvent
from .xenstore_cli import XenStoreCliClient

__all__ = ["StoreClient", "WatchEvent", "XenStoreCliClient"]
