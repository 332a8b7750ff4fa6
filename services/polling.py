# -*- coding: utf-8 -*-
from __future__ import annotations

import logging
from typing import Awaitable, Callable

from providers.base import JobStatus
from providers.errors import JobFailedError, JobTimeoutError
from providers.models import JobState, VideoJob
from utils.clock import Clock, system_clock

log = logging.getLogger(__name__)

_STATE_BY_STATUS = {
    "queued": JobState.QUEUED,
    "pending": JobState.QUEUED,
    "processing": JobState.PROCESSING,
    "running": JobState.PROCESSING,
    "succeeded": JobState.SUCCEEDED,
    "failed": JobState.FAILED,
}


async def poll_until_terminal(
    job: VideoJob,
    poll: Callable[[str], Awaitable[JobStatus]],
    *,
    interval_sec: float,
    max_attempts: int,
    clock: Clock = system_clock,
    label: str = "job",
    progress_every: int = 6,
) -> str:
    """
    Drive ``job`` to a terminal state and return its output URL.

    Each attempt waits ``interval_sec`` and polls once. Success with a URL
    returns immediately, a provider failure raises JobFailedError, and
    running out of attempts raises JobTimeoutError.
    """
    for attempt in range(1, max_attempts + 1):
        await clock.sleep(interval_sec)
        job.attempts = attempt
        status = await poll(job.job_id)
        state = _STATE_BY_STATUS.get(status.status, JobState.PROCESSING)

        if progress_every and attempt % progress_every == 0:
            log.info(
                "[%s] progress (%ds): status is %s",
                label, int(attempt * interval_sec), status.status,
            )

        if state is JobState.SUCCEEDED:
            if status.output_url:
                job.transition(JobState.SUCCEEDED, output_url=status.output_url)
                log.info("[%s] job %s ready", label, job.job_id)
                return status.output_url
            # succeeded without an asset yet; keep waiting for the URL
            state = JobState.PROCESSING

        if state is JobState.FAILED:
            reason = status.error or "Unknown error"
            job.transition(JobState.FAILED, failure_reason=reason)
            raise JobFailedError(f"{label} generation failed: {reason}", job_id=job.job_id)

        if state is not job.state:
            job.transition(state)

    job.transition(JobState.TIMEOUT, failure_reason="poll attempts exhausted")
    minutes = max_attempts * interval_sec / 60
    raise JobTimeoutError(
        f"{label} generation timeout after {minutes:g} minutes",
        job_id=job.job_id,
    )
