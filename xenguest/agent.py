# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# xenguest/agent.py
"""
Foreground agent process: builds the xenstore client and features from the
parsed arguments, starts them, and waits for SIGTERM/SIGINT.
"""
from __future__ import annotations

import argparse
import logging
import signal
from threading import Event
from typing import Optional

from .core.distribution import DISTRIBUTION_FILE
from .core.logger import Log
from .feature.ip_setting import LOGGER_NAME, FeatureIPSetting
from .store.client import StoreClient
from .store.xenstore_cli import XenStoreCliClient


class Agent:
    def __init__(self, logger: logging.Logger, args: argparse.Namespace, client: Optional[StoreClient] = None):
        self.logger = logger
        self.args = args
        self.client = client if client is not None else XenStoreCliClient(
            logger, prefix=getattr(args, "xenstore_prefix", "xenstore-")
        )
        self.stop_event = Event()
        self.feature = FeatureIPSetting(
            self.client,
            enabled=bool(getattr(args, "enabled", False)),
            debug=bool(getattr(args, "debug", False)),
            logger=Log.feature_logger(LOGGER_NAME, logger),
            distribution_file=getattr(args, "distribution_file", None) or DISTRIBUTION_FILE,
            tick_interval=float(getattr(args, "tick_interval", 4.0)),
        )

    def _signal_handler(self, signum: int, frame) -> None:
        sig_name = signal.Signals(signum).name
        self.logger.info(f"🛑 Received {sig_name}, shutting down...")
        self.stop_event.set()

    def run_once(self) -> int:
        self.feature.advertise()
        applied = self.feature.scan()
        Log.ok(self.logger, f"Single scan done: {applied} request(s) applied")
        return 0

    def run(self) -> int:
        """Returns a process exit code; FeatureStartError propagates to main()."""
        try:
            if getattr(self.args, "once", False):
                return self.run_once()

            signal.signal(signal.SIGTERM, self._signal_handler)
            signal.signal(signal.SIGINT, self._signal_handler)

            Log.step(self.logger, "Starting xenguest agent", enabled=self.feature.enabled)
            self.feature.run()
            self.stop_event.wait()

            self.feature.stop()
            if not self.feature.join(timeout=10):
                Log.warn(self.logger, "Feature loop did not exit in time")
            Log.ok(self.logger, "Agent stopped", scans=self.feature.scan_count, applied=self.feature.apply_count)
            return 0
        finally:
            self.client.close()
