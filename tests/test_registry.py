from __future__ import annotations

import threading

from agent_hook.registry import DeviceRegistry, DeviceStatus

HOUR = 3600.0
INTERVAL = 6 * HOUR
TIMEOUT = 15.0


def test_unknown_device_is_absent_not_offline(registry):
    assert registry.get("nope") is None
    assert len(registry) == 0


def test_first_sighting_creates_online_record(registry):
    rec = registry.record_seen("h1", 100.0)
    assert rec.status is DeviceStatus.ONLINE
    assert rec.last_seen == 100.0
    assert rec.previous_status is None
    assert not rec.announced
    assert registry.get("h1").status is DeviceStatus.ONLINE


def test_discovery_due_for_unknown_and_new_devices(registry):
    assert registry.due_for_discovery("h1", 0.0, INTERVAL)
    registry.record_seen("h1", 100.0)
    assert registry.due_for_discovery("h1", 100.0, INTERVAL)


def test_discovery_interval(registry):
    registry.record_seen("h1", 100.0)
    registry.mark_discovery_published("h1", 100.0)
    assert registry.get("h1").announced
    assert not registry.due_for_discovery("h1", 105.0, INTERVAL)
    assert not registry.due_for_discovery("h1", 100.0 + INTERVAL - 1, INTERVAL)
    assert registry.due_for_discovery("h1", 100.0 + INTERVAL, INTERVAL)


def test_silent_device_goes_offline_exactly_once(registry):
    registry.record_seen("h1", 0.0)
    assert registry.sweep_timeouts(15.0, TIMEOUT) == []
    assert registry.sweep_timeouts(15.5, TIMEOUT) == ["h1"]
    assert registry.get("h1").status is DeviceStatus.OFFLINE
    assert registry.sweep_timeouts(30.0, TIMEOUT) == []
    assert registry.sweep_timeouts(3000.0, TIMEOUT) == []
    assert registry.get("h1").status is DeviceStatus.OFFLINE


def test_new_report_brings_device_back(registry):
    registry.record_seen("h1", 0.0)
    registry.sweep_timeouts(20.0, TIMEOUT)
    rec = registry.record_seen("h1", 25.0)
    assert rec.status is DeviceStatus.ONLINE
    assert rec.previous_status is DeviceStatus.OFFLINE
    assert registry.sweep_timeouts(45.0, TIMEOUT) == ["h1"]


def test_sweep_only_touches_stale_devices(registry):
    registry.record_seen("old", 0.0)
    registry.record_seen("fresh", 10.0)
    assert registry.sweep_timeouts(20.0, TIMEOUT) == ["old"]
    assert registry.get("fresh").status is DeviceStatus.ONLINE


def test_returned_records_are_copies(registry):
    rec = registry.record_seen("h1", 1.0)
    rec.last_seen = 999.0
    snap = registry.snapshot()
    snap[0].status = DeviceStatus.OFFLINE
    stored = registry.get("h1")
    assert stored.last_seen == 1.0
    assert stored.status is DeviceStatus.ONLINE


def test_concurrent_reports_and_sweeps_stay_consistent():
    registry = DeviceRegistry()
    ids = [f"h{i}" for i in range(20)]
    stop = threading.Event()

    def report():
        t = 1000.0
        while not stop.is_set():
            for device_id in ids:
                registry.record_seen(device_id, t)

    def sweep():
        while not stop.is_set():
            registry.sweep_timeouts(1000.0, TIMEOUT)

    threads = [threading.Thread(target=report) for _ in range(3)] + [threading.Thread(target=sweep)]
    for th in threads:
        th.start()
    stop_timer = threading.Timer(0.2, stop.set)
    stop_timer.start()
    for th in threads:
        th.join()

    assert len(registry) == len(ids)
    for rec in registry.snapshot():
        assert rec.last_seen == 1000.0
        assert rec.status is DeviceStatus.ONLINE


def test_new_device_is_due_early_in_clock_lifetime(registry):
    # monotonic clocks start near zero after boot
    registry.record_seen("h1", 5.0)
    assert registry.due_for_discovery("h1", 5.0, INTERVAL)
    registry.mark_discovery_published("h1", 5.0)
    assert not registry.due_for_discovery("h1", 10.0, INTERVAL)
