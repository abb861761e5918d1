"""Bounded-parallelism scheduling of export and upload jobs."""

import asyncio
from dataclasses import dataclass
from datetime import date
from typing import Awaitable, Callable, Iterator, List, Sequence

from .._utils import logger, next_day
from .models import ExportWindow, JobResult, JobStatus

SKIPPED = "skipped after a fatal error"


def day_windows(start: date, end: date) -> Iterator[ExportWindow]:
    """One window per calendar day in [start, end)."""
    cursor = start
    while cursor < end:
        yield ExportWindow(day=cursor)
        cursor = next_day(cursor)


@dataclass
class Job:
    """A named unit of work returning a JobResult."""
    name: str
    run: Callable[[], Awaitable[JobResult]]
    result_factory: Callable[..., JobResult] = JobResult

    def failed(self, status: JobStatus, error: str) -> JobResult:
        return self.result_factory(name=self.name, status=status, error=error)


class WaveScheduler:
    """Run jobs with at most `parallelism` of them in flight.

    With barrier=True jobs run in waves that are joined before the next wave
    starts; otherwise a semaphore-bounded pool starts a job as soon as a slot
    frees up. Once any job reports a fatal result no further jobs are started
    and the unstarted ones are reported as skipped.
    """

    def __init__(self, parallelism: int, barrier: bool = True):
        if parallelism <= 0:
            raise ValueError(f"parallelism must be positive, got {parallelism}")
        self.parallelism = parallelism
        self.barrier = barrier

    async def run(self, jobs: Sequence[Job]) -> List[JobResult]:
        """Run all jobs and return their results in submission order."""
        if not jobs:
            return []
        if self.barrier:
            return await self._run_waves(jobs)
        return await self._run_pool(jobs)

    async def _run_job(self, job: Job) -> JobResult:
        try:
            return await job.run()
        except Exception as e:
            logger.exception(f"Job {job.name} raised unexpectedly: {e}")
            return job.failed(JobStatus.FAILED, str(e))

    async def _run_waves(self, jobs: Sequence[Job]) -> List[JobResult]:
        results: List[JobResult] = []
        total_waves = (len(jobs) + self.parallelism - 1) // self.parallelism
        aborted = False

        for wave_idx, i in enumerate(range(0, len(jobs), self.parallelism)):
            wave = jobs[i:i + self.parallelism]
            if aborted:
                results.extend(job.failed(JobStatus.FAILED, SKIPPED) for job in wave)
                continue

            logger.debug(f"Wave {wave_idx + 1}/{total_waves}: {len(wave)} jobs")
            wave_results = await asyncio.gather(*[self._run_job(job) for job in wave])
            results.extend(wave_results)

            failed = [r for r in wave_results if not r.ok]
            if failed:
                logger.warning(
                    f"Wave {wave_idx + 1}/{total_waves}: {len(failed)} of {len(wave)} jobs failed"
                )
            if any(r.status == JobStatus.FATAL for r in wave_results):
                logger.error("Fatal error, not starting remaining jobs")
                aborted = True

        return results

    async def _run_pool(self, jobs: Sequence[Job]) -> List[JobResult]:
        semaphore = asyncio.Semaphore(self.parallelism)
        abort = asyncio.Event()

        async def guarded(job: Job) -> JobResult:
            async with semaphore:
                if abort.is_set():
                    return job.failed(JobStatus.FAILED, SKIPPED)
                result = await self._run_job(job)
                if result.status == JobStatus.FATAL:
                    logger.error("Fatal error, not starting remaining jobs")
                    abort.set()
                return result

        return list(await asyncio.gather(*[guarded(job) for job in jobs]))
