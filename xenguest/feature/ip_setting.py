# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# xenguest/feature/ip_setting.py
"""
Static IP setting feature.

The host asks for a static address on a VIF by writing under
xenserver/device/vif/<id>/static-ip-setting/ and the guest advertises support
through control/feature-static-ip-setting.

Loop (one background thread):
  1. advertise the capability flag (every iteration, even if unchanged)
  2. wait for a change notification on xenserver/device/vif
  3. scan: discover VIFs and evaluate each one, in listing order
  4. wait for the next 4s tick before going back to 1

Step 4 gates re-entry, so a burst of notifications results in at most one
scan per tick window.
"""
from __future__ import annotations

import logging
import threading
import time
from typing import Callable, List, Optional

from ..core.distribution import DISTRIBUTION_FILE, OSVariant, classify
from ..core.exceptions import FeatureStartError, StoreError
from ..core.logger import Log
from ..store.client import StoreClient, WatchEvent
from . import keys
from .apply import Applier, applier_for
from .request import AddressFamily, build_request

LOGGER_NAME = "FeatureIPSetting"
TICK_INTERVAL_S = 4.0
EVENT_POLL_S = 1.0


class Ticker:
    """
    Fixed-period ticker anchored at start(); missed ticks are dropped.

    wait() returns False when the stop event fired first.
    """

    def __init__(self, interval: float, clock: Callable[[], float] = time.monotonic):
        self.interval = float(interval)
        self.clock = clock
        self._next: Optional[float] = None

    def start(self) -> None:
        self._next = self.clock() + self.interval

    def wait(self, stop: threading.Event) -> bool:
        if self._next is None:
            self.start()
        delay = max(0.0, self._next - self.clock())
        if stop.wait(delay):
            return False
        now = self.clock()
        while self._next <= now:
            self._next += self.interval
        return True


class FeatureIPSetting:
    """
    Watches xenstore for static IP requests and dispatches them to an Applier.

    Args:
        client: StoreClient used for every xenstore access
        enabled: Capability advertised to the host ("1"/"0")
        debug: Raise this feature's logger to DEBUG
        logger: Logger instance (default: xenguest.FeatureIPSetting)
        applier: Apply strategy (default: chosen from the guest OS variant)
        distribution_file: Descriptor used to classify the guest OS
        tick_interval: Debounce period between loop iterations
        ticker: Pre-built ticker (tests inject one they control)
        event_poll_interval: How often a pending wait checks the stop signal
    """

    def __init__(
        self,
        client: StoreClient,
        enabled: bool = False,
        debug: bool = False,
        logger: Optional[logging.Logger] = None,
        applier: Optional[Applier] = None,
        distribution_file: str = DISTRIBUTION_FILE,
        tick_interval: float = TICK_INTERVAL_S,
        ticker: Optional[Ticker] = None,
        event_poll_interval: float = EVENT_POLL_S,
    ):
        self.client = client
        self.enabled = bool(enabled)
        self.debug = bool(debug)
        self.logger = logger if logger is not None else Log.feature_logger(LOGGER_NAME)
        if self.debug and isinstance(self.logger, logging.Logger):
            self.logger.setLevel(logging.DEBUG)
        self.applier = applier
        self.distribution_file = distribution_file
        self.ticker = ticker if ticker is not None else Ticker(tick_interval)
        self.event_poll_interval = event_poll_interval

        self.os_variant: Optional[OSVariant] = None
        self.scan_count = 0
        self.apply_count = 0

        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    # ------------------------------------------------------------------
    # Advertise / discover / evaluate
    # ------------------------------------------------------------------

    def advertise(self) -> None:
        value = keys.FLAG_ON if self.enabled else keys.FLAG_OFF
        try:
            self.client.write(keys.ADVERTISE_KEY, value)
        except StoreError as e:
            self.logger.debug("Advertise %s=%s failed: %s", keys.ADVERTISE_KEY, value, e)

    def discover(self) -> List[str]:
        try:
            raw = self.client.directory(keys.CONTROL_KEY)
        except StoreError as e:
            self.logger.warning("GetChildrens of %s failed: %s", keys.CONTROL_KEY, e)
            return []
        return [keys.vif_path(name) for name in raw.split("\x00") if name]

    def _read_optional(self, key: str) -> Optional[str]:
        try:
            return self.client.read(key)
        except StoreError as e:
            self.logger.debug("Read %s failed: %s", key, e)
            return None

    def _variant(self) -> OSVariant:
        if self.os_variant is None:
            self.os_variant = classify(self.distribution_file)
            self.logger.info("Guest OS variant: %s", self.os_variant.label)
        return self.os_variant

    def _applier(self) -> Applier:
        if self.applier is None:
            self.applier = applier_for(self._variant(), self.logger)
        return self.applier

    def evaluate(self, vif: str) -> int:
        """Evaluate both address families of one VIF; returns requests applied."""
        Log.trace(self.logger, "Start checking key %s", vif)
        mac_key = vif + keys.MAC_SUBKEY
        try:
            mac = self.client.read(mac_key)
        except StoreError as e:
            self.logger.warning("Get mac for %s failed, skipping VIF: %s", mac_key, e)
            return 0

        applied = 0
        for family in AddressFamily:
            if self._read_optional(vif + family.enabled_subkey) != keys.FLAG_ON:
                continue
            applied += self._evaluate_family(vif, mac, family)
        return applied

    def _evaluate_family(self, vif: str, mac: str, family: AddressFamily) -> int:
        log = Log.bind(self.logger, vif=vif, family=family.value)
        address = self._read_optional(vif + family.address_subkey)
        gateway = self._read_optional(vif + family.gateway_subkey)

        request = build_request(log, vif, mac, family, address, gateway)
        if request is None:
            return 0

        try:
            self._applier().apply(request, self._variant())
        except Exception as e:
            log.error("Apply failed: %s", e, exc_info=True)
            return 0
        self.apply_count += 1
        return 1

    def scan(self) -> int:
        """Discover VIFs and evaluate each; returns requests applied."""
        self.scan_count += 1
        applied = 0
        for vif in self.discover():
            applied += self.evaluate(vif)
        return applied

    # ------------------------------------------------------------------
    # Loop
    # ------------------------------------------------------------------

    def _await_event(self) -> Optional[WatchEvent]:
        while not self._stop.is_set():
            event = self.client.wait_event(keys.CONTROL_KEY, timeout=self.event_poll_interval)
            if event is not None:
                return event
        return None

    def _iterate(self) -> None:
        self.advertise()
        event = self._await_event()
        if event is None:
            return
        fired, ok = event
        if ok:
            Log.trace(self.logger, "Watch fired on %s", fired)
            self.scan()

    def _loop(self) -> None:
        self._variant()
        self.ticker.start()
        while not self._stop.is_set():
            try:
                self._iterate()
            except Exception as e:
                Log.fail(self.logger, f"Loop iteration failed: {e}")
                self.logger.debug("💥 Loop iteration exception", exc_info=True)
            if not self.ticker.wait(self._stop):
                break
        self.logger.info("Stopped watch on %s", keys.CONTROL_KEY)

    def run(self) -> None:
        """
        Register the watch and start the background loop.

        Raises FeatureStartError when the watch cannot be registered.
        """
        try:
            self.client.watch(keys.CONTROL_KEY, keys.WATCH_TOKEN)
        except StoreError as e:
            self.logger.error("Watch(%r) error: %s", keys.CONTROL_KEY, e)
            raise FeatureStartError(
                code=e.code, msg=f"cannot watch {keys.CONTROL_KEY}", cause=e
            ).with_context(token=keys.WATCH_TOKEN) from e

        self.logger.info("Start watch on %r", keys.CONTROL_KEY)
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name=LOGGER_NAME, daemon=True)
        self._thread.start()

    def stop(self) -> None:
        """Ask the loop to exit at its next wait boundary."""
        self._stop.set()

    def join(self, timeout: Optional[float] = None) -> bool:
        """Wait for the loop thread; True once it has exited."""
        if self._thread is None:
            return True
        self._thread.join(timeout)
        return not self._thread.is_alive()

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()
