# SPDX-License-Identifier: LGPL-3.0-or-later
# xenguest/feature/__init__.py
"""
Agent features driven by xenstore.

Main entry point:
    FeatureIPSetting - static IP setting requests from the host

Supporting modules:
    - keys: xenstore key layout
    - request: request model and address/gateway validation
    - apply: Applier strategies keyed by guest OS variant
"""

from .apply import Applier, LoggingApplier, applier_for
from .ip_setting import FeatureIPSetting, Ticker
from .request import AddressFamily, StaticIPRequest, build_request, parse_address, parse_gateway

__all__ = [
    "FeatureIPSetting",
    "Ticker",
    "Applier",
    "LoggingApplier",
    "applier_for",
    "AddressFamily",
    "StaticIPRequest",
    "build_request",
    "parse_address",
    "parse_gateway",
]
