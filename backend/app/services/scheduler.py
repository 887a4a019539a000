"""Job scheduler: named periodic asyncio jobs owned by one scheduler object.

One JobScheduler is built in the FastAPI lifespan and kept on app.state;
nothing is registered at import time.

    scheduler = JobScheduler()
    scheduler.register("warning-detection", 900, job.execute)
    scheduler.start_all()
    # ... app runs ...
    scheduler.stop_all()

Each tick is timed and logged; exceptions are logged and never stop the loop.
A tick is skipped while the previous tick of the same job is still running.
"""
from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

logger = logging.getLogger(__name__)

JobTask = Callable[[], Awaitable[Any]]


@dataclass
class ScheduledJob:
    name: str
    interval_seconds: float
    task: JobTask
    run_on_start: bool = False
    loop_task: Optional[asyncio.Task] = field(default=None, repr=False)
    in_progress: bool = False
    last_started_at: Optional[datetime] = None
    last_duration_ms: Optional[int] = None
    last_error: Optional[str] = None

    @property
    def scheduled(self) -> bool:
        return self.loop_task is not None and not self.loop_task.done()


class JobScheduler:
    def __init__(self) -> None:
        self._jobs: dict[str, ScheduledJob] = {}

    # ── registration ─────────────────────────────────────────────────────────

    def register(
        self,
        name: str,
        interval_seconds: float,
        task: JobTask,
        run_on_start: bool = False,
    ) -> ScheduledJob:
        """Register (or replace) a job. Does not start it."""
        if interval_seconds <= 0:
            raise ValueError(f"Invalid interval for job {name}: {interval_seconds}")
        if name in self._jobs:
            self.remove(name)
        job = ScheduledJob(
            name=name,
            interval_seconds=interval_seconds,
            task=task,
            run_on_start=run_on_start,
        )
        self._jobs[name] = job
        logger.info("Job registered: %s (every %.0fs)", name, interval_seconds)
        return job

    def remove(self, name: str) -> None:
        self.stop(name)
        del self._jobs[name]
        logger.info("Job removed: %s", name)

    def job_names(self) -> list[str]:
        return list(self._jobs)

    def get(self, name: str) -> ScheduledJob:
        try:
            return self._jobs[name]
        except KeyError:
            raise KeyError(f"Job not found: {name}") from None

    # ── lifecycle ────────────────────────────────────────────────────────────

    def start(self, name: str) -> None:
        """Start the job's loop. Must be called from a running event loop."""
        job = self.get(name)
        if job.scheduled:
            logger.warning("Job already scheduled: %s", name)
            return
        job.loop_task = asyncio.create_task(self._loop(job), name=f"job:{name}")
        logger.info("Job started: %s", name)

    def stop(self, name: str) -> None:
        job = self.get(name)
        if job.scheduled:
            job.loop_task.cancel()
            logger.info("Job stopped: %s", name)
        job.loop_task = None

    def start_all(self) -> None:
        for name in self._jobs:
            self.start(name)

    def stop_all(self) -> None:
        for name in self._jobs:
            self.stop(name)

    def status(self) -> dict[str, str]:
        """Job name → "running" (tick in progress), "scheduled" or "stopped"."""
        result = {}
        for name, job in self._jobs.items():
            if job.in_progress:
                result[name] = "running"
            elif job.scheduled:
                result[name] = "scheduled"
            else:
                result[name] = "stopped"
        return result

    def describe(self) -> list[dict[str, Any]]:
        states = self.status()
        return [
            {
                "name": job.name,
                "status": states[job.name],
                "interval_seconds": job.interval_seconds,
                "last_started_at": job.last_started_at.isoformat() if job.last_started_at else None,
                "last_duration_ms": job.last_duration_ms,
                "last_error": job.last_error,
            }
            for job in self._jobs.values()
        ]

    async def run_now(self, name: str) -> bool:
        """Run one tick immediately. False if it failed or was already running."""
        return await self._tick(self.get(name))

    # ── internals ────────────────────────────────────────────────────────────

    async def _loop(self, job: ScheduledJob) -> None:
        if job.run_on_start:
            await self._tick(job)
        while True:
            await asyncio.sleep(job.interval_seconds)
            await self._tick(job)

    async def _tick(self, job: ScheduledJob) -> bool:
        if job.in_progress:
            logger.warning("Job %s still running, skipping tick", job.name)
            return False

        job.in_progress = True
        job.last_started_at = datetime.now(timezone.utc)
        started = time.monotonic()
        logger.info("Starting job: %s", job.name)
        try:
            outcome = await job.task()
        except Exception as exc:
            job.last_error = str(exc)
            logger.exception("Error in job: %s", job.name)
            return False
        finally:
            job.in_progress = False
            job.last_duration_ms = int((time.monotonic() - started) * 1000)

        job.last_error = None
        logger.info("Completed job: %s (%dms)", job.name, job.last_duration_ms)
        return outcome is not False
