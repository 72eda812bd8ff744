"""
Durable store of pending wallet sync jobs.
"""
import logging
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional, Union

from sqlalchemy import delete, func, or_, update
from sqlalchemy.ext.asyncio import async_sessionmaker
from sqlmodel import col, select

from walletsync.models.base import utcnow
from walletsync.models.jobs import WalletJob

logger = logging.getLogger(__name__)


class WalletJobStore:
    """
    Job table access for the dispatcher.

    fetch_due() is the plain read used by the baseline worker: two dispatchers
    running at once may both read the same row, so every handler must be
    idempotent. claim_due() is the leasing alternative that marks rows as owned
    in the same statement that selects them.
    """

    def __init__(
        self,
        session_maker: async_sessionmaker,
        clock: Callable[[], datetime] = utcnow,
        default_max_attempts: int = 5,
    ):
        self.session_maker = session_maker
        self.clock = clock
        self.default_max_attempts = default_max_attempts

    async def enqueue(
        self,
        job_type: str,
        payload: Union[Dict[str, Any], Any],
        max_attempts: Optional[int] = None,
        next_run_at: Optional[datetime] = None,
    ) -> WalletJob:
        """
        Insert a new job that is due immediately unless next_run_at is given.

        Args:
            job_type: apple_push, google_patch or regenerate_pkpass
            payload: Payload dict, or a payload model exposing to_payload()

        Returns:
            The stored job
        """
        if hasattr(payload, "to_payload"):
            payload = payload.to_payload()

        now = self.clock()
        job = WalletJob(
            type=job_type,
            payload=dict(payload or {}),
            attempts=0,
            max_attempts=max_attempts or self.default_max_attempts,
            next_run_at=next_run_at or now,
            created_at=now,
        )
        async with self.session_maker() as session:
            session.add(job)
            await session.commit()
            await session.refresh(job)

        logger.info(f"Enqueued wallet job {job.id} ({job_type})")
        return job

    async def fetch_due(self, limit: int = 50) -> List[WalletJob]:
        """Return jobs whose next_run_at has passed, oldest created first."""
        now = self.clock()
        async with self.session_maker() as session:
            result = await session.exec(
                select(WalletJob)
                .where(WalletJob.next_run_at <= now)
                .order_by(col(WalletJob.created_at).asc())
                .limit(limit)
            )
            return list(result.all())

    async def claim_due(self, limit: int, worker_id: str, lease_seconds: int = 300) -> List[WalletJob]:
        """
        Atomically lease due jobs to one worker.

        A single UPDATE selects due rows without a live lease and stamps
        locked_by/locked_until on them. A competing claim that blocks on the
        same rows re-checks the lease condition and skips them.
        """
        now = self.clock()
        lease_free = or_(col(WalletJob.locked_until).is_(None), col(WalletJob.locked_until) < now)
        due_ids = (
            select(WalletJob.id)
            .where(WalletJob.next_run_at <= now, lease_free)
            .order_by(col(WalletJob.created_at).asc())
            .limit(limit)
        )

        async with self.session_maker() as session:
            result = await session.execute(
                update(WalletJob)
                .where(col(WalletJob.id).in_(due_ids), lease_free)
                .values(locked_by=worker_id, locked_until=now + timedelta(seconds=lease_seconds))
                .returning(WalletJob.id)
                .execution_options(synchronize_session=False)
            )
            claimed_ids = [row[0] for row in result.all()]
            await session.commit()

            if not claimed_ids:
                return []

            jobs = await session.exec(
                select(WalletJob)
                .where(col(WalletJob.id).in_(claimed_ids))
                .order_by(col(WalletJob.created_at).asc())
            )
            claimed = list(jobs.all())

        logger.debug(f"Worker {worker_id} claimed {len(claimed)} wallet jobs")
        return claimed

    async def mark_failed(self, job_id: str, attempts: int, backoff_seconds: int = 60) -> None:
        """Record a failed attempt and push next_run_at out by backoff_seconds."""
        next_run_at = self.clock() + timedelta(seconds=backoff_seconds)
        async with self.session_maker() as session:
            await session.execute(
                update(WalletJob)
                .where(col(WalletJob.id) == job_id)
                .values(attempts=attempts, next_run_at=next_run_at, locked_by=None, locked_until=None)
            )
            await session.commit()

    async def mark_done(self, job_id: str) -> None:
        """Delete a job, after success or when giving up."""
        async with self.session_maker() as session:
            await session.execute(delete(WalletJob).where(col(WalletJob.id) == job_id))
            await session.commit()

    async def get(self, job_id: str) -> Optional[WalletJob]:
        async with self.session_maker() as session:
            return await session.get(WalletJob, job_id)

    async def count(self) -> int:
        async with self.session_maker() as session:
            result = await session.exec(select(func.count()).select_from(WalletJob))
            return int(result.one())
