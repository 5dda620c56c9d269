"""
Extraction Job Queue

In-process, retryable work queue with named stages. Each stage has its own
asyncio worker pool (bounded concurrency) and a per-second start ceiling.

Lifecycle of a job:
    waiting -> active -> completed
                      -> delayed -> waiting ...   (retry with exponential backoff)
                      -> failed                    (attempts exhausted)

enqueue() never blocks: it records the job and hands it to the stage's FIFO.
Completed and failed jobs are pruned according to the retention settings.
"""

import asyncio
import logging
import time
import uuid
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Deque, Dict, List, Optional

from docgen.core.config import QueueSettings, StageConfig, get_settings
from docgen.core.exceptions import JobFailedError

logger = logging.getLogger(__name__)


class JobState(str, Enum):
    WAITING = "waiting"
    ACTIVE = "active"
    DELAYED = "delayed"
    COMPLETED = "completed"
    FAILED = "failed"


TERMINAL_STATES = {JobState.COMPLETED, JobState.FAILED}


@dataclass
class Job:
    """A queue-resident unit of extraction work."""

    id: str
    stage: str
    payload: Dict[str, Any]
    max_attempts: int
    state: JobState = JobState.WAITING
    attempts_made: int = 0
    result: Any = None
    error: Optional[str] = None
    created_at: float = field(default_factory=time.time)
    updated_at: float = field(default_factory=time.time)
    finished_at: Optional[float] = None
    _done: asyncio.Event = field(default_factory=asyncio.Event, repr=False)

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    def _transition(self, state: JobState) -> None:
        self.state = state
        self.updated_at = time.time()
        if state in TERMINAL_STATES:
            self.finished_at = self.updated_at
            self._done.set()

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "stage": self.stage,
            "state": self.state.value,
            "attemptsMade": self.attempts_made,
            "error": self.error,
            "createdAt": self.created_at,
            "finishedAt": self.finished_at,
        }


JobHandler = Callable[[Job], Awaitable[Any]]


class RateLimiter:
    """
    Sliding one-second window limiter.

    At most `max_per_second` acquisitions are granted in any one-second window;
    callers beyond that sleep until the oldest grant ages out.
    """

    def __init__(self, max_per_second: int):
        self._max = max_per_second
        self._lock = asyncio.Lock()
        self._grants: Deque[float] = deque()

    async def acquire(self) -> None:
        if self._max <= 0:
            return
        async with self._lock:
            now = time.monotonic()
            while self._grants and now - self._grants[0] >= 1.0:
                self._grants.popleft()
            if len(self._grants) >= self._max:
                wait_time = 1.0 - (now - self._grants[0])
                if wait_time > 0:
                    logger.debug(f"[RateLimit] Throttling job start: waiting {wait_time:.2f}s")
                    await asyncio.sleep(wait_time)
                self._grants.popleft()
            self._grants.append(time.monotonic())


class _Stage:
    """Worker pool state for one named stage."""

    def __init__(self, name: str, handler: JobHandler, config: StageConfig):
        self.name = name
        self.handler = handler
        self.config = config
        self.limiter = RateLimiter(config.max_per_second)
        self.pending: Optional[asyncio.Queue] = None
        self.workers: List[asyncio.Task] = []
        self.timers: set[asyncio.Task] = set()

    @property
    def running(self) -> bool:
        return bool(self.workers)


class JobQueue:
    """Multi-stage in-process job queue."""

    def __init__(self, settings: Optional[QueueSettings] = None):
        self.settings = settings or get_settings().queue
        self._stages: Dict[str, _Stage] = {}
        self._jobs: Dict[str, Job] = {}

    # ------------------------------------------------------------------
    # Registration / lifecycle
    # ------------------------------------------------------------------

    def register(self, stage: str, handler: JobHandler, config: Optional[StageConfig] = None) -> None:
        """Attach a handler and worker pool config to a stage name."""
        if stage in self._stages and self._stages[stage].running:
            raise RuntimeError(f"Stage {stage} is already running")
        self._stages[stage] = _Stage(stage, handler, config or StageConfig())
        logger.info(
            f"[JobQueue] Registered stage '{stage}' "
            f"(concurrency={self._stages[stage].config.concurrency}, "
            f"max_per_second={self._stages[stage].config.max_per_second})"
        )

    def _ensure_workers(self, stage: _Stage) -> None:
        if stage.running:
            return
        stage.pending = asyncio.Queue()
        stage.workers = [
            asyncio.create_task(self._worker(stage, n), name=f"{stage.name}-worker-{n}")
            for n in range(max(1, stage.config.concurrency))
        ]
        logger.info(f"[JobQueue] Started {len(stage.workers)} workers for '{stage.name}'")

    async def close(self) -> None:
        """Stop all workers and pending retry timers."""
        tasks: List[asyncio.Task] = []
        for stage in self._stages.values():
            tasks.extend(stage.workers)
            tasks.extend(stage.timers)
            stage.workers = []
            stage.timers = set()
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        logger.info("[JobQueue] Closed")

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def enqueue(self, stage: str, payload: Dict[str, Any], job_id: Optional[str] = None) -> Job:
        """
        Submit a job. Returns immediately with a handle.

        A job id that is already known returns the existing job unchanged.
        """
        if stage not in self._stages:
            raise KeyError(f"Unknown stage: {stage}")

        if job_id is not None and job_id in self._jobs:
            logger.debug(f"[JobQueue] Job {job_id} already exists, not re-adding")
            return self._jobs[job_id]

        target = self._stages[stage]
        self._ensure_workers(target)

        job = Job(
            id=job_id or f"{stage}-{uuid.uuid4().hex[:12]}",
            stage=stage,
            payload=payload,
            max_attempts=max(1, target.config.attempts),
        )
        self._jobs[job.id] = job
        target.pending.put_nowait(job)
        logger.debug(f"[JobQueue] Enqueued {job.id} on '{stage}'")
        return job

    async def wait_for(self, job: Job) -> Any:
        """Wait until the job is terminal; return its result or raise JobFailedError."""
        await job._done.wait()
        if job.state == JobState.FAILED:
            raise JobFailedError(job.id, job.error or "unknown error")
        return job.result

    def get_job(self, job_id: str) -> Optional[Job]:
        return self._jobs.get(job_id)

    def counts(self) -> Dict[str, Dict[str, int]]:
        """Per-stage job counts by state."""
        self._prune()
        result = {
            name: {state.value: 0 for state in JobState}
            for name in self._stages
        }
        for job in self._jobs.values():
            result[job.stage][job.state.value] += 1
        return result

    def recent_failures(self, stage: str, limit: int = 10) -> List[dict]:
        failed = [
            job for job in self._jobs.values()
            if job.stage == stage and job.state == JobState.FAILED
        ]
        failed.sort(key=lambda j: j.finished_at or 0, reverse=True)
        return [{"id": j.id, "failedReason": j.error, "attemptsMade": j.attempts_made} for j in failed[:limit]]

    # ------------------------------------------------------------------
    # Workers
    # ------------------------------------------------------------------

    async def _worker(self, stage: _Stage, worker_num: int) -> None:
        while True:
            job = await stage.pending.get()
            try:
                await stage.limiter.acquire()
                await self._run(stage, job)
            finally:
                stage.pending.task_done()

    async def _run(self, stage: _Stage, job: Job) -> None:
        job._transition(JobState.ACTIVE)
        job.attempts_made += 1
        try:
            job.result = await stage.handler(job)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            job.error = str(e) or type(e).__name__
            if job.attempts_made < job.max_attempts:
                delay = stage.config.backoff_seconds * (2 ** (job.attempts_made - 1))
                logger.warning(
                    f"[JobQueue] {job.id} attempt {job.attempts_made}/{job.max_attempts} failed: "
                    f"{job.error}; retrying in {delay:.1f}s"
                )
                job._transition(JobState.DELAYED)
                timer = asyncio.create_task(self._retry_later(stage, job, delay))
                stage.timers.add(timer)
                timer.add_done_callback(stage.timers.discard)
            else:
                logger.error(f"[JobQueue] {job.id} failed after {job.attempts_made} attempts: {job.error}")
                job._transition(JobState.FAILED)
                self._prune()
            return

        job.error = None
        job._transition(JobState.COMPLETED)
        logger.debug(f"[JobQueue] {job.id} completed")
        self._prune()

    async def _retry_later(self, stage: _Stage, job: Job, delay: float) -> None:
        await asyncio.sleep(delay)
        job._transition(JobState.WAITING)
        stage.pending.put_nowait(job)

    # ------------------------------------------------------------------
    # Retention
    # ------------------------------------------------------------------

    def _prune(self) -> None:
        now = time.time()
        completed: List[Job] = []
        expired: List[str] = []

        for job in self._jobs.values():
            if job.state == JobState.COMPLETED:
                if now - job.finished_at > self.settings.completed_retention_seconds:
                    expired.append(job.id)
                else:
                    completed.append(job)
            elif job.state == JobState.FAILED:
                if now - job.finished_at > self.settings.failed_retention_seconds:
                    expired.append(job.id)

        overflow = len(completed) - self.settings.completed_retention_count
        if overflow > 0:
            completed.sort(key=lambda j: j.finished_at)
            expired.extend(j.id for j in completed[:overflow])

        for job_id in expired:
            del self._jobs[job_id]
