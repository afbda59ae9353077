# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# xenguest/__init__.py
"""
xenguest - guest-side agent features for Xen VMs

Watches xenstore for host requests and advertises supported features.

Usage as a library:

    from xenguest import FeatureIPSetting, XenStoreCliClient

    client = XenStoreCliClient(logger)
    feature = FeatureIPSetting(client, enabled=True)
    feature.run()      # raises FeatureStartError if the watch fails
    ...
    feature.stop()
"""

__version__ = "0.1.0"

from .core import FeatureStartError, Fatal, OSVariant, StoreError, XenGuestError, classify
from .feature import Applier, FeatureIPSetting, LoggingApplier, StaticIPRequest
from .store import StoreClient, XenStoreCliClient

__all__ = [
    "__version__",

    # Features
    "FeatureIPSetting",
    "Applier",
    "LoggingApplier",
    "StaticIPRequest",

    # Store access
    "StoreClient",
    "XenStoreCliClient",

    # Guest OS
    "OSVariant",
    "classify",

    # Errors
    "XenGuestError",
    "Fatal",
    "StoreError",
    "FeatureStartError",
]
