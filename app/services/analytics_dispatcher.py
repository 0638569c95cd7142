"""
Background hand-off of rollup updates

Answer submission must return the grade even when the rollup update fails,
and an aborted request must not cancel an update halfway. Each update runs
as its own asyncio task owned by the dispatcher rather than by the request.
Failed updates are retried a bounded number of times; jobs that still fail
are kept in a dead-letter list and can be re-driven with retry_dead_letters().
Every attempt of a job carries the same job id, which the engine uses to
count the answer once even when an earlier attempt did commit.
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from typing import List, Optional, Set

from app.services.analytics_engine import AnalyticsEngine
from app.utils.datetime_utils import utc_now_iso

logger = logging.getLogger(__name__)


@dataclass
class GradedAnswerJob:
    user_id: str
    topic: str
    difficulty: str
    is_correct: bool
    job_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    attempts: int = 0
    last_error: Optional[str] = None
    queued_at: str = field(default_factory=utc_now_iso)


class AnalyticsDispatcher:
    def __init__(self, engine: AnalyticsEngine, max_attempts: int = 3, retry_delay_seconds: float = 0.5):
        self.engine = engine
        self.max_attempts = max(1, max_attempts)
        self.retry_delay_seconds = retry_delay_seconds
        self._pending: Set[asyncio.Task] = set()
        self._dead_letters: List[GradedAnswerJob] = []

    def submit(
        self,
        user_id: str,
        topic: str,
        difficulty: str,
        is_correct: bool,
        answer_id: Optional[str] = None,
    ) -> asyncio.Task:
        """Schedule a rollup update and return immediately; answer_id becomes the job id"""
        job = GradedAnswerJob(user_id=user_id, topic=topic, difficulty=difficulty, is_correct=is_correct)
        if answer_id:
            job.job_id = answer_id
        return self._schedule(job)

    def _schedule(self, job: GradedAnswerJob) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(self._run(job))
        # Keep a strong reference until the task finishes
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def _run(self, job: GradedAnswerJob) -> bool:
        while job.attempts < self.max_attempts:
            job.attempts += 1
            try:
                await self.engine.record_graded_answer(
                    job.user_id, job.topic, job.difficulty, job.is_correct, answer_id=job.job_id
                )
                return True
            except Exception as e:
                job.last_error = str(e)
                logger.warning(
                    f"[ANALYTICS][DISPATCH] Rollup update failed (attempt {job.attempts}/{self.max_attempts}) "
                    f"user={job.user_id} topic={job.topic}: {str(e)}"
                )
                if job.attempts < self.max_attempts and self.retry_delay_seconds:
                    await asyncio.sleep(self.retry_delay_seconds * job.attempts)

        logger.error(
            f"[ANALYTICS][DISPATCH] Giving up on rollup update user={job.user_id} topic={job.topic}; "
            f"moved to dead-letter list"
        )
        self._dead_letters.append(job)
        return False

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    @property
    def dead_letters(self) -> List[GradedAnswerJob]:
        return list(self._dead_letters)

    def retry_dead_letters(self) -> List[asyncio.Task]:
        jobs, self._dead_letters = self._dead_letters, []
        tasks = []
        for job in jobs:
            job.attempts = 0
            tasks.append(self._schedule(job))
        return tasks

    async def drain(self) -> None:
        """Wait until every scheduled update has finished"""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
