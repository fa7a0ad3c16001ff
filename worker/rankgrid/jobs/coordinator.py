"""Drive a submitted grid job to completion.

One coordinator owns one mutable Job at a time. Task state only changes in
``merge`` (poll results) and ``apply_detail`` (rank self-correction); callers
observe it through ``snapshot()``.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Any, Callable, Dict, Mapping, Optional, Sequence

import requests

from rankgrid.core.config import get_settings
from rankgrid.jobs import polling
from rankgrid.models import Job, PollOutcome, TargetBusiness, TaskStatus
from rankgrid.vendors.dataforseo import DataForSEOError

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 2.2
DEFAULT_RETRY_DELAY = 2.5

Poller = Callable[[Sequence[str], Optional[TargetBusiness]], Mapping[str, PollOutcome]]
DetailFetcher = Callable[[str, Optional[TargetBusiness], Any], Dict[str, Any]]


class JobCoordinator:
    def __init__(
        self,
        poller: Optional[Poller] = None,
        detail_fetcher: Optional[DetailFetcher] = None,
        sleep: Callable[[float], None] = time.sleep,
        interval: float = DEFAULT_POLL_INTERVAL,
        retry_delay: float = DEFAULT_RETRY_DELAY,
        max_attempts: Optional[int] = None,
    ) -> None:
        self._poller = poller or polling.poll_once
        self._detail_fetcher = detail_fetcher or polling.fetch_cell_detail
        self._sleep = sleep
        self.interval = interval
        self.retry_delay = retry_delay
        self.max_attempts = max_attempts

        self._job: Optional[Job] = None
        self._stop = threading.Event()
        self._cycle_lock = threading.Lock()
        self._running = False

    @classmethod
    def from_settings(cls, **kwargs: Any) -> "JobCoordinator":
        settings = get_settings()
        kwargs.setdefault("interval", settings.poll_interval)
        kwargs.setdefault("retry_delay", settings.poll_retry_delay)
        kwargs.setdefault("max_attempts", settings.poll_max_attempts)
        return cls(**kwargs)

    @property
    def job(self) -> Optional[Job]:
        return self._job

    @property
    def running(self) -> bool:
        return self._running

    def start(self, job: Job) -> threading.Event:
        """Replace the current job, cancelling any loop still polling the old one.

        Returns the stop event bound to ``job``; pass it to ``run`` when the
        loop is started later from another thread.
        """
        self._stop.set()
        self._stop = threading.Event()
        self._running = False
        self._job = job
        logger.info("Started job keyword=%s tasks=%d", job.keyword, job.total)
        return self._stop

    def stop(self) -> None:
        self._stop.set()

    def poll_cycle(self, job: Optional[Job] = None) -> bool:
        """Poll the still-pending tasks once and merge the results.

        Returns False when another cycle is already in flight or when the poll
        request itself failed; pending tasks are then left untouched.
        """
        job = job or self._job
        if job is None:
            raise RuntimeError("No job has been started.")
        if not self._cycle_lock.acquire(blocking=False):
            logger.debug("Poll cycle already in flight; skipping")
            return False
        try:
            pending = job.pending_ids()
            if not pending:
                return True
            try:
                outcomes = self._poller(pending, job.target)
            except (requests.RequestException, DataForSEOError) as exc:
                logger.warning("Poll cycle failed, retrying in %.1fs: %s", self.retry_delay, exc)
                return False
            self.merge(job, outcomes)
            return True
        finally:
            self._cycle_lock.release()

    @staticmethod
    def merge(job: Job, outcomes: Mapping[str, PollOutcome]) -> int:
        """Apply terminal outcomes by task id; returns how many tasks resolved."""
        resolved = 0
        for task in job.tasks:
            outcome = outcomes.get(task.task_id)
            if outcome is None or outcome.status is TaskStatus.PENDING:
                continue
            if task.status.is_terminal:
                continue
            task.status = outcome.status
            task.rank = outcome.rank if outcome.status is TaskStatus.OK else None
            task.error = outcome.error
            resolved += 1
        return resolved

    def run(self, job: Optional[Job] = None, stop: Optional[threading.Event] = None) -> Job:
        """Poll until every task is terminal, the job is replaced/stopped, or attempts run out.

        With ``stop`` given, ``job`` is the one already registered by ``start``
        and is not started again; a job replaced in the meantime exits at once.
        """
        if stop is None:
            if job is not None:
                stop = self.start(job)
            else:
                stop = self._stop
        job = job or self._job
        if job is None:
            raise RuntimeError("No job has been started.")

        attempts = 0
        if stop is self._stop:
            self._running = True
        try:
            while not job.is_complete:
                if stop.is_set():
                    logger.info("Polling stopped for keyword=%s", job.keyword)
                    break
                if self.max_attempts is not None and attempts >= self.max_attempts:
                    logger.warning(
                        "Giving up after %d poll attempts: %d/%d tasks done", attempts, job.done_count, job.total
                    )
                    break
                attempts += 1
                succeeded = self.poll_cycle(job)
                logger.info("Progress %d/%d after poll attempt %d", job.done_count, job.total, attempts)
                if job.is_complete or stop.is_set():
                    continue
                self._sleep(self.interval if succeeded else self.retry_delay)
        finally:
            if stop is self._stop:
                self._running = False
        return job

    def apply_detail(self, task_id: str, rank: Optional[int]) -> bool:
        """Replace a completed task's rank with one found in a fuller fetch.

        Only a discovered rank is applied; a missing rank never erases one.
        Returns True when the stored rank changed.
        """
        job = self._job
        task = job.find_task(task_id) if job else None
        if task is None or task.status is not TaskStatus.OK or rank is None:
            return False
        if task.rank == rank:
            return False
        logger.info("Correcting rank for task %s: %s -> %s", task_id, task.rank, rank)
        task.rank = rank
        return True

    def refresh_detail(self, task_id: str, limit: Any = polling.DEFAULT_DETAIL_LIMIT) -> Dict[str, Any]:
        job = self._job
        if job is None or job.find_task(task_id) is None:
            raise KeyError(task_id)
        detail = self._detail_fetcher(task_id, job.target, limit)
        self.apply_detail(task_id, detail.get("rank"))
        return detail

    def snapshot(self) -> Dict[str, Any]:
        if self._job is None:
            return {"keyword": None, "total": 0, "done": 0, "complete": False, "running": False, "tasks": []}
        snapshot = self._job.snapshot()
        snapshot["running"] = self._running
        return snapshot
