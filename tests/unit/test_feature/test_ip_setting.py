# SPDX-License-Identifier: LGPL-3.0-or-later
"""Tests for the static IP setting feature and its watch loop."""
from __future__ import annotations

import ipaddress
import threading
import time

import pytest

from fakes.fake_logger import FakeLogger
from fakes.fake_store import FakeStore
from xenguest.core.distribution import OSVariant
from xenguest.core.exceptions import FeatureStartError
from xenguest.feature import keys
from xenguest.feature.apply import Applier
from xenguest.feature.ip_setting import FeatureIPSetting, Ticker
from xenguest.feature.request import AddressFamily

VIF0 = "xenserver/device/vif/0"
VIF1 = "xenserver/device/vif/1"


class RecordingApplier(Applier):
    def __init__(self, fail_for=()):
        self.calls = []
        self.fail_for = set(fail_for)

    def apply(self, request, os_variant):
        if request.family in self.fail_for:
            raise RuntimeError("nmcli exploded")
        self.calls.append((request, os_variant))


class GateTicker(Ticker):
    """Ticker that only ticks when the test says so."""

    def __init__(self):
        super().__init__(0)
        self.gate = threading.Semaphore(0)
        self.waits = 0

    def start(self):
        pass

    def wait(self, stop):
        self.waits += 1
        while not stop.is_set():
            if self.gate.acquire(timeout=0.02):
                return True
        return False

    def tick(self):
        self.gate.release()


def _vif(vif, mac="00:16:3e:00:00:00", enabled=None, enabled6=None, address=None, gateway=None,
         address6=None, gateway6=None):
    data = {vif + keys.MAC_SUBKEY: mac}
    for sub, value in (
        (keys.ENABLED_SUBKEY, enabled),
        (keys.ENABLED6_SUBKEY, enabled6),
        (keys.ADDRESS_SUBKEY, address),
        (keys.GATEWAY_SUBKEY, gateway),
        (keys.ADDRESS6_SUBKEY, address6),
        (keys.GATEWAY6_SUBKEY, gateway6),
    ):
        if value is not None:
            data[vif + sub] = value
    return data


def _feature(store, applier=None, tmp_path=None, **kw):
    dist = str(tmp_path / "missing-distribution") if tmp_path else "/nonexistent/xe-linux-distribution"
    return FeatureIPSetting(
        store,
        enabled=kw.pop("enabled", True),
        logger=kw.pop("logger", FakeLogger()),
        applier=applier if applier is not None else RecordingApplier(),
        distribution_file=kw.pop("distribution_file", dist),
        event_poll_interval=0.02,
        **kw,
    )


def _wait_for(predicate, timeout=3.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


@pytest.mark.unit
class TestAdvertise:
    def test_writes_one_every_time(self):
        store = FakeStore()
        feature = _feature(store, enabled=True)
        for _ in range(3):
            feature.advertise()
        assert store.advertised(keys.ADVERTISE_KEY) == ["1", "1", "1"]

    def test_disabled_writes_zero(self):
        store = FakeStore()
        _feature(store, enabled=False).advertise()
        assert store.advertised(keys.ADVERTISE_KEY) == ["0"]

    def test_write_failure_is_absorbed(self):
        store = FakeStore()
        store.fail_write = True
        _feature(store).advertise()
        assert store.advertised(keys.ADVERTISE_KEY) == ["1"]


@pytest.mark.unit
class TestDiscover:
    def test_empty_tokens_are_dropped(self):
        store = FakeStore()
        store.listing = "\x000\x00\x00eth1\x00"
        assert _feature(store).discover() == [VIF0, "xenserver/device/vif/eth1"]

    def test_listing_order_is_kept(self):
        store = FakeStore()
        store.listing = "3\x001\x002"
        assert _feature(store).discover() == [
            "xenserver/device/vif/3",
            "xenserver/device/vif/1",
            "xenserver/device/vif/2",
        ]

    def test_empty_listing(self):
        store = FakeStore()
        store.listing = ""
        assert _feature(store).discover() == []

    def test_failure_returns_nothing(self):
        store = FakeStore()
        store.fail_directory = True
        logger = FakeLogger()
        assert _feature(store, logger=logger).discover() == []
        assert any(keys.CONTROL_KEY in m for m in logger.messages("warning"))


@pytest.mark.unit
class TestEvaluate:
    def test_enabled_v4_is_applied(self):
        applier = RecordingApplier()
        store = FakeStore(_vif(VIF0, mac="aa", enabled="1", address="10.0.0.5/24", gateway="10.0.0.1"))
        feature = _feature(store, applier)

        assert feature.evaluate(VIF0) == 1
        (req, variant), = applier.calls
        assert req.mac == "aa"
        assert req.family is AddressFamily.V4
        assert req.address == ipaddress.ip_interface("10.0.0.5/24")
        assert req.gateway == ipaddress.ip_address("10.0.0.1")
        assert variant is OSVariant.OTHER

    @pytest.mark.parametrize("flag", ["0", "", "true", "11", None])
    def test_not_enabled_is_never_applied(self, flag):
        applier = RecordingApplier()
        store = FakeStore(_vif(VIF0, enabled=flag, address="10.0.0.5/24", gateway="10.0.0.1"))

        assert _feature(store, applier).evaluate(VIF0) == 0
        assert applier.calls == []

    def test_families_are_independent(self):
        applier = RecordingApplier()
        store = FakeStore(_vif(
            VIF0,
            enabled="0", address="10.0.0.5/24", gateway="10.0.0.1",
            enabled6="1", address6="2001:db8::5/64", gateway6="2001:db8::1",
        ))

        assert _feature(store, applier).evaluate(VIF0) == 1
        assert [r.family for r, _ in applier.calls] == [AddressFamily.V6]

    def test_both_families(self):
        applier = RecordingApplier()
        store = FakeStore(_vif(
            VIF0,
            enabled="1", address="10.0.0.5/24", gateway="10.0.0.1",
            enabled6="1", address6="2001:db8::5/64", gateway6="2001:db8::1",
        ))

        assert _feature(store, applier).evaluate(VIF0) == 2
        assert [r.family for r, _ in applier.calls] == [AddressFamily.V4, AddressFamily.V6]

    def test_invalid_v4_does_not_block_v6(self):
        applier = RecordingApplier()
        store = FakeStore(_vif(
            VIF0,
            enabled="1", address="not-an-ip", gateway="10.0.0.1",
            enabled6="1", address6="2001:db8::5/64", gateway6="2001:db8::1",
        ))

        assert _feature(store, applier).evaluate(VIF0) == 1
        assert [r.family for r, _ in applier.calls] == [AddressFamily.V6]

    def test_invalid_address_is_not_applied(self):
        applier = RecordingApplier()
        logger = FakeLogger()
        store = FakeStore(_vif(VIF0, enabled="1", address="not-an-ip", gateway="10.0.0.1"))

        assert _feature(store, applier, logger=logger).evaluate(VIF0) == 0
        assert applier.calls == []
        assert any("not-an-ip" in m for m in logger.messages("warning"))
        assert any("10.0.0.1" in m for m in logger.messages("info"))

    @pytest.mark.parametrize("address", ["10.0.0.5", "10.0.0.5/255.255.255.0", " 10.0.0.5/24"])
    def test_non_cidr_address_is_not_applied(self, address):
        applier = RecordingApplier()
        logger = FakeLogger()
        store = FakeStore(_vif(VIF0, enabled="1", address=address, gateway="10.0.0.1"))

        assert _feature(store, applier, logger=logger).evaluate(VIF0) == 0
        assert applier.calls == []
        assert any("ParseCIDR" in m and address in m for m in logger.messages("warning"))

    def test_zoned_gateway_is_not_applied(self):
        applier = RecordingApplier()
        store = FakeStore(_vif(VIF0, enabled6="1", address6="fe80::5/64", gateway6="fe80::1%eth0"))

        assert _feature(store, applier).evaluate(VIF0) == 0
        assert applier.calls == []

    def test_missing_mac_skips_vif(self):
        applier = RecordingApplier()
        data = _vif(VIF0, enabled="1", address="10.0.0.5/24", gateway="10.0.0.1")
        del data[VIF0 + keys.MAC_SUBKEY]
        logger = FakeLogger()

        assert _feature(FakeStore(data), applier, logger=logger).evaluate(VIF0) == 0
        assert applier.calls == []
        assert any(VIF0 + keys.MAC_SUBKEY in m for m in logger.messages("warning"))

    def test_missing_gateway_key(self):
        applier = RecordingApplier()
        store = FakeStore(_vif(VIF0, enabled="1", address="10.0.0.5/24"))
        assert _feature(store, applier).evaluate(VIF0) == 0

    def test_applier_failure_is_contained(self):
        applier = RecordingApplier(fail_for={AddressFamily.V4})
        logger = FakeLogger()
        store = FakeStore(_vif(
            VIF0,
            enabled="1", address="10.0.0.5/24", gateway="10.0.0.1",
            enabled6="1", address6="2001:db8::5/64", gateway6="2001:db8::1",
        ))

        assert _feature(store, applier, logger=logger).evaluate(VIF0) == 1
        assert any("nmcli exploded" in m for m in logger.messages("error"))

    def test_centos_variant_reaches_applier(self, tmp_path):
        dist = tmp_path / "xe-linux-distribution"
        dist.write_text('os_distro="centos"\n', encoding="utf-8")
        applier = RecordingApplier()
        store = FakeStore(_vif(VIF0, enabled="1", address="10.0.0.5/24", gateway="10.0.0.1"))

        _feature(store, applier, distribution_file=str(dist)).evaluate(VIF0)
        assert applier.calls[0][1] is OSVariant.CENTOS


@pytest.mark.unit
class TestScan:
    def test_scan_covers_every_vif_in_order(self):
        applier = RecordingApplier()
        data = {}
        data.update(_vif(VIF1, enabled="1", address="10.0.1.5/24", gateway="10.0.1.1"))
        data.update(_vif(VIF0, enabled="1", address="10.0.0.5/24", gateway="10.0.0.1"))
        store = FakeStore(data)
        store.listing = "1\x000"
        feature = _feature(store, applier)

        assert feature.scan() == 2
        assert [r.vif_path for r, _ in applier.calls] == [VIF1, VIF0]
        assert feature.scan_count == 1
        assert feature.apply_count == 2

    def test_bad_vif_does_not_stop_scan(self):
        applier = RecordingApplier()
        data = _vif(VIF1, enabled="1", address="10.0.1.5/24", gateway="10.0.1.1")
        store = FakeStore(data)
        store.listing = "0\x001"

        assert _feature(store, applier).scan() == 1

    def test_default_applier_logs(self):
        logger = FakeLogger()
        store = FakeStore(_vif(VIF0, enabled="1", address="10.0.0.5/24", gateway="10.0.0.1"))
        feature = FeatureIPSetting(store, enabled=True, logger=logger,
                                   distribution_file="/nonexistent/xe-linux-distribution")

        assert feature.scan() == 1
        assert "Set IP 10.0.0.5 MASK 10.0.0.0/24 on other OS" in logger.messages("info")


@pytest.mark.unit
class TestRun:
    def test_watch_failure_is_fatal(self):
        store = FakeStore()
        store.fail_watch = True
        feature = _feature(store)

        with pytest.raises(FeatureStartError) as ei:
            feature.run()
        assert ei.value.code == 13
        assert feature.running is False
        assert store.writes == []

    def test_run_registers_watch_and_returns(self):
        store = FakeStore()
        feature = _feature(store, ticker=GateTicker())
        feature.run()
        try:
            assert store.watches == [(keys.CONTROL_KEY, keys.WATCH_TOKEN)]
            assert feature.running
        finally:
            feature.stop()
            assert feature.join(timeout=3)

    def test_burst_of_events_scans_once_per_tick(self):
        applier = RecordingApplier()
        store = FakeStore(_vif(VIF0, enabled="1", address="10.0.0.5/24", gateway="10.0.0.1"))
        ticker = GateTicker()
        feature = _feature(store, applier, ticker=ticker)
        for _ in range(5):
            store.fire(keys.CONTROL_KEY)

        feature.run()
        try:
            assert _wait_for(lambda: feature.scan_count == 1)
            time.sleep(0.2)
            assert feature.scan_count == 1
            assert ticker.waits == 1

            ticker.tick()
            assert _wait_for(lambda: feature.scan_count == 2)
            time.sleep(0.1)
            assert feature.scan_count == 2
        finally:
            feature.stop()
            assert feature.join(timeout=3)
        assert len(applier.calls) == 2

    def test_advertises_every_iteration(self):
        store = FakeStore()
        ticker = GateTicker()
        feature = _feature(store, ticker=ticker, enabled=True)
        store.fire(keys.CONTROL_KEY)
        store.fire(keys.CONTROL_KEY)

        feature.run()
        try:
            assert _wait_for(lambda: ticker.waits == 1)
            ticker.tick()
            assert _wait_for(lambda: ticker.waits == 2)
            ticker.tick()
            assert _wait_for(lambda: len(store.advertised(keys.ADVERTISE_KEY)) == 3)
        finally:
            feature.stop()
            assert feature.join(timeout=3)
        assert set(store.advertised(keys.ADVERTISE_KEY)) == {"1"}

    def test_dead_watch_skips_scan(self):
        store = FakeStore()
        ticker = GateTicker()
        feature = _feature(store, ticker=ticker)
        store.fire(keys.CONTROL_KEY, ok=False)

        feature.run()
        try:
            assert _wait_for(lambda: ticker.waits == 1)
            assert feature.scan_count == 0
        finally:
            feature.stop()
            assert feature.join(timeout=3)

    def test_stop_while_waiting_for_event(self):
        feature = _feature(FakeStore(), ticker=GateTicker())
        feature.run()
        feature.stop()
        assert feature.join(timeout=3)
        assert feature.scan_count == 0

    def test_iteration_error_does_not_kill_loop(self):
        class BrokenStore(FakeStore):
            def __init__(self):
                super().__init__()
                self.calls = 0

            def wait_event(self, path, timeout=None):
                self.calls += 1
                if self.calls == 1:
                    raise RuntimeError("transport glitch")
                return super().wait_event(path, timeout)

        store = BrokenStore()
        ticker = GateTicker()
        logger = FakeLogger()
        feature = _feature(store, ticker=ticker, logger=logger)
        feature.run()
        try:
            assert _wait_for(lambda: ticker.waits == 1)
            store.fire(keys.CONTROL_KEY)
            ticker.tick()
            assert _wait_for(lambda: feature.scan_count == 1)
        finally:
            feature.stop()
            assert feature.join(timeout=3)
        assert any("transport glitch" in m for m in logger.messages("error"))


@pytest.mark.unit
class TestTicker:
    def test_missed_ticks_are_dropped(self):
        now = [0.0]
        ticker = Ticker(4.0, clock=lambda: now[0])
        ticker.start()
        now[0] = 10.0  # scan overran two ticks

        assert ticker.wait(threading.Event()) is True
        assert ticker._next == 12.0

    def test_stop_interrupts_wait(self):
        ticker = Ticker(60.0)
        ticker.start()
        stop = threading.Event()
        stop.set()
        assert ticker.wait(stop) is False

    def test_short_interval_ticks(self):
        ticker = Ticker(0.05)
        ticker.start()
        t0 = time.monotonic()
        assert ticker.wait(threading.Event()) is True
        assert time.monotonic() - t0 < 1.0
