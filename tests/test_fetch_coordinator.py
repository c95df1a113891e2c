"""
Fetch Coordinator Tests - RCJ Scoring Engine
tests/test_fetch_coordinator.py

Fan-out/join behaviour: result slots, first-failure propagation,
cancellation of outstanding fetches and the exclusive apply section.
"""

import asyncio
import threading
import time

import pytest
from structlog.testing import capture_logs

from rcj_scoring.services.fetch_coordinator import Fetch, FetchCoordinator


def _sleeper(seconds, value):
    def load():
        time.sleep(seconds)
        return value

    return load


class TestGather:

    def test_results_follow_argument_order(self):
        coordinator = FetchCoordinator()
        results = asyncio.run(
            coordinator.gather(
                Fetch(load=_sleeper(0.05, "slow")),
                Fetch(load=_sleeper(0, "fast")),
            )
        )
        assert results == ["slow", "fast"]

    def test_plain_callables_are_accepted(self):
        results = asyncio.run(FetchCoordinator().gather(lambda: 1, lambda: 2))
        assert results == [1, 2]

    def test_empty_gather(self):
        assert asyncio.run(FetchCoordinator().gather()) == []

    def test_fetches_run_concurrently(self):
        barrier = threading.Barrier(2, timeout=5)

        def meet(value):
            def load():
                barrier.wait()
                return value

            return load

        results = asyncio.run(FetchCoordinator().gather(meet("a"), meet("b")))
        assert results == ["a", "b"]


class TestFailure:

    def test_first_failure_is_raised_unchanged(self):
        error = LookupError("header missing")

        def failing():
            raise error

        with pytest.raises(LookupError) as exc_info:
            asyncio.run(FetchCoordinator().gather(_sleeper(0, "ok"), failing))
        assert exc_info.value is error

    def test_outstanding_fetches_are_cancelled(self):
        release = threading.Event()
        finished = []

        def slow():
            release.wait(timeout=5)
            finished.append("slow")
            return "slow"

        def failing():
            raise ValueError("boom")

        async def scenario():
            started = time.monotonic()
            with pytest.raises(ValueError):
                await FetchCoordinator().gather(Fetch(load=slow, name="slow"), failing)
            elapsed = time.monotonic() - started
            release.set()
            return elapsed

        elapsed = asyncio.run(scenario())
        assert elapsed < 2
        # the worker thread still ran to completion; only its result was dropped
        assert finished == ["slow"]

    def test_later_sibling_failure_is_discarded(self):
        release = threading.Event()

        def late_failure():
            release.wait(timeout=5)
            raise RuntimeError("late")

        def early_failure():
            raise ValueError("early")

        async def scenario():
            try:
                await FetchCoordinator().gather(late_failure, early_failure)
            finally:
                release.set()

        with capture_logs() as logs:
            with pytest.raises(ValueError, match="early"):
                asyncio.run(scenario())

        failed = [e for e in logs if e["event"] == "fetch_fanout_failed"]
        assert failed and failed[0]["fetch"] == "early_failure"


class TestApply:

    def test_apply_runs_exclusively(self):
        composite = {}
        active = []
        overlaps = []
        lock = threading.Lock()

        def applier(key):
            def apply(value):
                with lock:
                    active.append(key)
                    if len(active) > 1:
                        overlaps.append(tuple(active))
                time.sleep(0.02)
                composite[key] = value
                with lock:
                    active.remove(key)

            return apply

        fetches = [
            Fetch(load=_sleeper(0, i), apply=applier(f"part{i}"), name=f"part{i}")
            for i in range(4)
        ]
        results = asyncio.run(FetchCoordinator().gather(*fetches))

        assert results == [0, 1, 2, 3]
        assert composite == {"part0": 0, "part1": 1, "part2": 2, "part3": 3}
        assert overlaps == []

    def test_apply_error_fails_the_fetch(self):
        def apply(value):
            raise KeyError(value)

        with pytest.raises(KeyError):
            asyncio.run(FetchCoordinator().gather(Fetch(load=lambda: "x", apply=apply)))

    def test_label_defaults_to_load_name(self):
        def load_things():
            return None

        assert Fetch(load=load_things).label == "load_things"
        assert Fetch(load=load_things, name="things").label == "things"
