# SPDX-License-Identifier: LGPL-3.0-or-later
# xenguest/core/__init__.py
from .distribution import OSVariant, classify, parse_distribution
from .exceptions import FeatureStartError, Fatal, StoreError, XenGuestError

__all__ = [
    "OSVariant",
    "classify",
    "parse_distribution",
    "XenGuestError",
    "Fatal",
    "StoreError",
    "FeatureStartError",
]
