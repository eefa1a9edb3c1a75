"""
Tests for WorkScheduler

Copyright 2025 HyperSec

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at

    http://www.apache.org/licenses/LICENSE-2.0

Unless required by applicable law or agreed to in writing, software
distributed under the License is distributed on an "AS IS" BASIS,
WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
See the License for the specific language governing permissions and
limitations under the License.
"""

import threading
import time
from collections import Counter

import pytest

from ghbu.errors import ConfigError
from ghbu.scheduler import ScheduleResult, WorkScheduler


class InstrumentedWorker:
    """Worker that tracks how many calls run at once"""

    def __init__(self, duration=0.05, fail=()):
        self.duration = duration
        self.fail = set(fail)
        self.lock = threading.Lock()
        self.active = 0
        self.peak = 0
        self.started = []
        self.finished = []

    def __call__(self, repo):
        with self.lock:
            self.active += 1
            self.peak = max(self.peak, self.active)
            self.started.append(repo.name)
        try:
            time.sleep(self.duration)
            return repo.name not in self.fail
        finally:
            with self.lock:
                self.active -= 1
                self.finished.append(repo.name)


@pytest.fixture
def repos(make_repo):
    return [make_repo(name) for name in "ABCDE"]


class TestWorkSchedulerInit:
    """Tests for scheduler construction"""

    @pytest.mark.parametrize("concurrency", [0, -1])
    def test_invalid_concurrency(self, concurrency):
        with pytest.raises(ConfigError):
            WorkScheduler(worker=lambda repo: True, concurrency=concurrency)

    def test_default_cancel_event(self):
        scheduler = WorkScheduler(worker=lambda repo: True, concurrency=1)
        assert not scheduler.cancel_event.is_set()


class TestWorkSchedulerRun:
    """Tests for bounded concurrent dispatch"""

    def test_concurrency_bound(self, repos):
        """Test at most 2 of 5 repositories sync at once and each runs exactly once"""
        worker = InstrumentedWorker()
        scheduler = WorkScheduler(worker=worker, concurrency=2, poll_interval=0.01)

        result = scheduler.run(repos)

        assert worker.peak <= 2
        assert Counter(worker.started) == Counter("ABCDE")
        assert result == ScheduleResult(
            total=5, dispatched=5, succeeded=5, failed=0, cancelled=False
        )

    def test_concurrency_is_used(self, make_repo):
        """Test the pool actually runs work in parallel"""
        worker = InstrumentedWorker(duration=0.2)
        scheduler = WorkScheduler(worker=worker, concurrency=3, poll_interval=0.01)

        scheduler.run([make_repo(f"r{i}") for i in range(6)])

        assert 1 < worker.peak <= 3

    def test_dispatch_in_list_order(self, repos):
        worker = InstrumentedWorker(duration=0)
        scheduler = WorkScheduler(worker=worker, concurrency=1, poll_interval=0.01)

        scheduler.run(repos)

        assert worker.started == list("ABCDE")

    def test_empty_list(self):
        worker = InstrumentedWorker()
        scheduler = WorkScheduler(worker=worker, concurrency=2)

        result = scheduler.run([])

        assert result == ScheduleResult()
        assert worker.started == []

    def test_failures_do_not_stop_siblings(self, repos):
        """Test failed syncs are counted and the rest still run"""
        worker = InstrumentedWorker(duration=0.01, fail={"B", "D"})
        scheduler = WorkScheduler(worker=worker, concurrency=2, poll_interval=0.01)

        result = scheduler.run(repos)

        assert result.succeeded == 3
        assert result.failed == 2
        assert sorted(worker.finished) == list("ABCDE")

    def test_worker_exception_counted_as_failure(self, repos, log_messages):
        def worker(repo):
            if repo.name == "C":
                raise RuntimeError("unexpected")
            return True

        scheduler = WorkScheduler(worker=worker, concurrency=2, poll_interval=0.01)

        result = scheduler.run(repos)

        assert result.succeeded == 4
        assert result.failed == 1
        assert any("test-org/C" in m and "unexpected" in m for m in log_messages)

    def test_slot_released_after_exception(self, make_repo):
        """Test a raising worker does not leak its slot"""
        calls = []

        def worker(repo):
            calls.append(repo.name)
            raise RuntimeError("boom")

        scheduler = WorkScheduler(worker=worker, concurrency=1, poll_interval=0.01)

        result = scheduler.run([make_repo("a"), make_repo("b"), make_repo("c")])

        assert calls == ["a", "b", "c"]
        assert result.failed == 3


class TestWorkSchedulerCancel:
    """Tests for cooperative cancellation"""

    def test_cancel_before_run(self, repos):
        """Test nothing is dispatched once cancellation is already set"""
        cancel = threading.Event()
        cancel.set()
        worker = InstrumentedWorker()
        scheduler = WorkScheduler(worker=worker, concurrency=2, cancel_event=cancel)

        result = scheduler.run(repos)

        assert worker.started == []
        assert result.dispatched == 0
        assert result.cancelled is True

    def test_cancel_mid_run_drains_in_flight(self, repos):
        """Test cancellation stops new dispatches and waits for in-flight work"""
        cancel = threading.Event()
        finished = []

        def worker(repo):
            if repo.name == "A":
                cancel.set()
                time.sleep(0.1)
            finished.append(repo.name)
            return True

        scheduler = WorkScheduler(
            worker=worker, concurrency=1, cancel_event=cancel, poll_interval=0.01
        )

        result = scheduler.run(repos)

        assert finished == ["A"]
        assert result.dispatched == 1
        assert result.succeeded == 1
        assert result.cancelled is True

    def test_cancel_while_waiting_for_slot(self, repos):
        """Test the dispatch loop wakes from a slot wait when cancelled"""
        cancel = threading.Event()
        release = threading.Event()
        started = []

        def worker(repo):
            started.append(repo.name)
            release.wait(timeout=5)
            return True

        def cancel_later():
            time.sleep(0.1)
            cancel.set()
            time.sleep(0.1)
            release.set()

        helper = threading.Thread(target=cancel_later)
        helper.start()
        scheduler = WorkScheduler(
            worker=worker, concurrency=2, cancel_event=cancel, poll_interval=0.01
        )

        result = scheduler.run(repos)
        helper.join()

        assert sorted(started) == ["A", "B"]
        assert result.dispatched == 2
        assert result.succeeded == 2
        assert result.cancelled is True
