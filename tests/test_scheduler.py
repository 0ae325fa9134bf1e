import asyncio
import time
from collections import defaultdict

import pytest

from axe_reporter.workflows.outcome import ProcessingOutcome
from axe_reporter.workflows.reporter_utils import INVALID_HOST, hostname_of
from axe_reporter.workflows.scheduler import DomainScheduler, group_by_host


class FakeClock:
    def __init__(self):
        self.now = 0.0
        self.sleeps = []

    def __call__(self):
        return self.now

    async def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds
        await asyncio.sleep(0)


def _ok(url):
    return ProcessingOutcome(url=url, success=True)


def test_group_by_host_uses_invalid_sentinel():
    groups = group_by_host(["https://a.example/1", "http://[::1", "https://A.example/2", "https://b.example/"])
    assert list(groups) == ["a.example", INVALID_HOST, "b.example"]
    assert groups["a.example"] == ["https://a.example/1", "https://A.example/2"]


def test_same_host_dispatches_are_separated_by_delay():
    clock = FakeClock()
    scheduler = DomainScheduler(5, 1, 3.0, clock=clock, sleep=clock.sleep)
    starts = {}

    async def worker(url):
        starts[url] = clock()
        await asyncio.sleep(0)
        return _ok(url)

    urls = ["https://example.com/a", "https://example.com/b"]
    outcomes = asyncio.run(scheduler.run(urls, worker))

    assert sorted(o.url for o in outcomes) == sorted(urls)
    first, second = sorted(starts.values())
    assert second - first >= 3.0
    stamps = [ts for host, ts in scheduler.dispatch_log if host == "example.com"]
    assert stamps[1] - stamps[0] >= 3.0


def test_delay_applies_per_host_not_globally():
    clock = FakeClock()
    scheduler = DomainScheduler(5, 1, 3.0, clock=clock, sleep=clock.sleep)

    async def worker(url):
        return _ok(url)

    asyncio.run(scheduler.run(["https://a.example/", "https://b.example/", "https://c.example/"], worker))
    assert clock.sleeps == []
    assert [ts for _, ts in scheduler.dispatch_log] == [0.0, 0.0, 0.0]


def test_every_dispatch_respects_delay_under_load():
    clock = FakeClock()
    scheduler = DomainScheduler(4, 2, 0.5, clock=clock, sleep=clock.sleep)

    async def worker(url):
        for _ in range(3):
            await asyncio.sleep(0)
        return _ok(url)

    urls = [f"https://{host}.example/{i}" for host in ("a", "b") for i in range(6)]
    asyncio.run(scheduler.run(urls, worker))

    by_host = defaultdict(list)
    for host, ts in scheduler.dispatch_log:
        by_host[host].append(ts)
    for stamps in by_host.values():
        assert len(stamps) == 6
        gaps = [later - earlier for earlier, later in zip(stamps, stamps[1:])]
        assert all(gap >= 0.5 for gap in gaps)


def test_concurrency_caps_hold_at_every_instant():
    scheduler = DomainScheduler(3, 2, 0.0)
    in_flight = {"total": 0}
    per_host = defaultdict(int)
    peaks = {"total": 0}
    peak_by_host = defaultdict(int)

    async def worker(url):
        host = hostname_of(url)
        in_flight["total"] += 1
        per_host[host] += 1
        peaks["total"] = max(peaks["total"], in_flight["total"])
        peak_by_host[host] = max(peak_by_host[host], per_host[host])
        for _ in range(5):
            await asyncio.sleep(0)
        in_flight["total"] -= 1
        per_host[host] -= 1
        return _ok(url)

    urls = [f"https://{host}.example/{i}" for host in ("a", "b", "c") for i in range(5)]
    outcomes = asyncio.run(scheduler.run(urls, worker))

    assert len(outcomes) == len(urls)
    assert peaks["total"] <= 3
    assert all(peak <= 2 for peak in peak_by_host.values())
    assert scheduler.peak_in_flight <= 3
    assert all(peak <= 2 for peak in scheduler.peak_in_flight_by_host.values())
    # Enough work to actually reach the global cap.
    assert peaks["total"] == 3


def test_worker_exception_becomes_internal_failure():
    scheduler = DomainScheduler(2, 1, 0.0)

    async def worker(url):
        if url.endswith("/boom"):
            raise RuntimeError("kaboom")
        return _ok(url)

    urls = ["https://a.example/ok", "https://b.example/boom"]
    outcomes = {o.url: o for o in asyncio.run(scheduler.run(urls, worker))}
    assert outcomes["https://a.example/ok"].success is True
    failed = outcomes["https://b.example/boom"]
    assert failed.success is False
    assert failed.error.kind == "internal"
    assert "kaboom" in failed.error.message


def test_sequential_mode_preserves_input_order():
    scheduler = DomainScheduler(5, 5, 0.0, sequential=True)
    seen = []

    async def worker(url):
        seen.append(url)
        await asyncio.sleep(0)
        return _ok(url)

    urls = ["https://b.example/", "https://a.example/", "https://c.example/"]
    outcomes = asyncio.run(scheduler.run(urls, worker))
    assert seen == urls
    assert [o.url for o in outcomes] == urls
    assert scheduler.peak_in_flight == 1


def test_real_clock_gap_is_observed():
    scheduler = DomainScheduler(2, 1, 0.05)
    starts = []

    async def worker(url):
        starts.append(time.monotonic())
        return _ok(url)

    asyncio.run(scheduler.run(["https://example.com/1", "https://example.com/2"], worker))
    assert starts[1] - starts[0] >= 0.049


def test_invalid_limits_are_rejected():
    with pytest.raises(ValueError):
        DomainScheduler(0, 1, 0.0)
    with pytest.raises(ValueError):
        DomainScheduler(1, 1, -1.0)


def test_dispatch_outside_run_is_rejected():
    scheduler = DomainScheduler(1, 1, 0.0)

    async def worker(url):
        return _ok(url)

    with pytest.raises(RuntimeError):
        asyncio.run(scheduler._dispatch("https://example.com/", worker))
