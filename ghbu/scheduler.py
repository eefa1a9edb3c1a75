"""
Bounded-concurrency scheduling of repository syncs

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
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence

from loguru import logger
from tqdm import tqdm

from .base import RepositoryDescriptor
from .errors import ConfigError


@dataclass
class ScheduleResult:
    total: int = 0
    dispatched: int = 0
    succeeded: int = 0
    failed: int = 0
    cancelled: bool = False


class WorkScheduler:
    """
    Runs a worker over many repositories with at most ``concurrency`` in flight.

    A bounded semaphore holds one slot per allowed sync. The dispatch loop
    takes a slot before submitting each repository and the worker thread
    gives it back when the sync ends, whatever the outcome. Setting
    ``cancel_event`` stops further dispatches; work already submitted always
    runs to completion before ``run`` returns.
    """

    def __init__(
        self,
        worker: Callable[[RepositoryDescriptor], bool],
        concurrency: int,
        cancel_event: Optional[threading.Event] = None,
        show_progress: bool = False,
        poll_interval: float = 0.1,
    ):
        if not isinstance(concurrency, int) or concurrency < 1:
            raise ConfigError("parallel must be a positive integer")
        self.worker = worker
        self.concurrency = concurrency
        self.cancel_event = cancel_event or threading.Event()
        self.show_progress = show_progress
        self.poll_interval = poll_interval

    def run(self, repositories: Sequence[RepositoryDescriptor]) -> ScheduleResult:
        result = ScheduleResult(total=len(repositories))
        slots = threading.BoundedSemaphore(self.concurrency)
        lock = threading.Lock()
        futures: List[Future] = []

        with tqdm(
            total=len(repositories),
            desc="Backing up",
            unit="repo",
            disable=not self.show_progress,
        ) as pbar:

            def record(ok: bool):
                with lock:
                    if ok:
                        result.succeeded += 1
                    else:
                        result.failed += 1
                    pbar.update(1)
                    pbar.set_postfix({"OK": result.succeeded, "FAIL": result.failed})

            with ThreadPoolExecutor(
                max_workers=self.concurrency, thread_name_prefix="ghbu-sync"
            ) as executor:
                for repo in repositories:
                    if not self._acquire_slot(slots):
                        result.cancelled = True
                        logger.warning(
                            f"[CANCEL] cleaning up... waiting for {len(futures) - self._done(futures)} in-flight syncs"
                        )
                        break
                    futures.append(
                        executor.submit(self._run_one, slots, repo, record)
                    )
                    result.dispatched += 1

                wait(futures)

        return result

    def _acquire_slot(self, slots: threading.BoundedSemaphore) -> bool:
        """Block until a slot is free, giving up as soon as cancellation is seen"""
        while not self.cancel_event.is_set():
            if slots.acquire(timeout=self.poll_interval):
                if self.cancel_event.is_set():
                    slots.release()
                    return False
                return True
        return False

    def _run_one(
        self,
        slots: threading.BoundedSemaphore,
        repo: RepositoryDescriptor,
        record: Callable[[bool], None],
    ) -> bool:
        ok = False
        try:
            ok = bool(self.worker(repo))
        except Exception as e:
            logger.error(
                f"[ERROR] Unexpected error backing up {repo.full_name}: {type(e).__name__}: {e}"
            )
        finally:
            slots.release()
            record(ok)
        return ok

    @staticmethod
    def _done(futures: List[Future]) -> int:
        return sum(1 for f in futures if f.done())
