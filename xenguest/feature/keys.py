# SPDX-License-Identifier: LGPL-3.0-or-later
# xenguest/feature/keys.py
"""xenstore key layout of the static IP setting feature."""
from __future__ import annotations

ADVERTISE_KEY = "control/feature-static-ip-setting"
CONTROL_KEY = "xenserver/device/vif"
WATCH_TOKEN = "FeatureIPSetting"

MAC_SUBKEY = "/static-ip-setting/mac"
ENABLED_SUBKEY = "/static-ip-setting/enabled"
ENABLED6_SUBKEY = "/static-ip-setting/enabled6"
ADDRESS_SUBKEY = "/static-ip-setting/address"
GATEWAY_SUBKEY = "/static-ip-setting/gateway"
ADDRESS6_SUBKEY = "/static-ip-setting/address6"
GATEWAY6_SUBKEY = "/static-ip-setting/gateway6"

# Reserved for status reporting back to the host; never written yet.
ERROR_CODE_SUBKEY = "/static-ip-setting/error-code"
ERROR_MSG_SUBKEY = "/static-ip-setting/error-msg"

FLAG_ON = "1"
FLAG_OFF = "0"


def vif_path(name: str) -> str:
    return f"{CONTROL_KEY}/{name}"
