"""
Batch dispatcher for queued wallet jobs.
"""
import asyncio
import logging
import socket
import uuid
from typing import Optional

from sqlalchemy.ext.asyncio import async_sessionmaker

from walletsync.core.config import Settings
from walletsync.exceptions import JobExecutionError, PassNotFoundError
from walletsync.managers.job_store import WalletJobStore
from walletsync.models.jobs import WalletJob
from walletsync.models.passes import PassRecord, PassRegistration
from walletsync.schemas.jobs import (
    ApplePushPayload,
    DispatchSummary,
    GooglePatchPayload,
    RegeneratePassPayload,
    parse_job_payload,
)
from walletsync.services.push_service import ApnsPushService
from walletsync.services.wallet_update_service import WalletUpdateService, loyalty_balance_patch

logger = logging.getLogger(__name__)


def compute_backoff(attempts: int, base_seconds: int = 60) -> int:
    """Delay before the next attempt: 2 min, 4 min, 8 min, 16 min..."""
    return base_seconds * (2 ** attempts)


def default_worker_id() -> str:
    return f"{socket.gethostname()}-{uuid.uuid4().hex[:8]}"


class WalletJobDispatcher:
    """
    Runs one batch of due jobs at a time.

    Jobs are executed one after another in the order they were fetched. A
    failing or hanging job is rescheduled with exponential backoff, or dropped
    once it has used up its attempts, and the batch moves on.
    """

    def __init__(
        self,
        settings: Settings,
        job_store: WalletJobStore,
        update_service: WalletUpdateService,
        push_service: ApnsPushService,
        session_maker: async_sessionmaker,
        worker_id: Optional[str] = None,
    ):
        self.settings = settings
        self.job_store = job_store
        self.update_service = update_service
        self.push_service = push_service
        self.session_maker = session_maker
        self.worker_id = worker_id or default_worker_id()

    async def _due_jobs(self, limit: int):
        if self.settings.WALLET_JOBS_USE_LEASES:
            return await self.job_store.claim_due(limit, self.worker_id, self.settings.WALLET_JOBS_LEASE_SECONDS)
        return await self.job_store.fetch_due(limit)

    async def run_batch(self, limit: Optional[int] = None) -> DispatchSummary:
        jobs = await self._due_jobs(limit or self.settings.WALLET_JOBS_BATCH_SIZE)
        summary = DispatchSummary(total=len(jobs))
        if not jobs:
            return summary

        logger.info(f"Processing {len(jobs)} wallet jobs")
        for job in jobs:
            payload = parse_job_payload(job.type, job.payload)
            if payload is None:
                logger.error(f"Dropping wallet job {job.id}: unknown type or malformed payload ({job.type})")
                await self.job_store.mark_done(job.id)
                summary.dropped += 1
                continue

            try:
                await asyncio.wait_for(self.execute(payload), timeout=self.settings.WALLET_JOBS_TIMEOUT_SECONDS)
            except asyncio.TimeoutError:
                await self._record_failure(job, "timed out", summary)
            except Exception as e:
                await self._record_failure(job, str(e) or e.__class__.__name__, summary)
            else:
                await self.job_store.mark_done(job.id)
                summary.processed += 1

        logger.info(
            f"Wallet jobs processing complete: {summary.processed} processed, "
            f"{summary.failed} failed, {summary.dropped} dropped, {summary.total} total"
        )
        return summary

    async def _record_failure(self, job: WalletJob, reason: str, summary: DispatchSummary) -> None:
        summary.failed += 1
        attempts = job.attempts + 1
        if attempts >= job.max_attempts:
            logger.error(f"Wallet job {job.id} ({job.type}) failed permanently after {attempts} attempts: {reason}")
            await self.job_store.mark_done(job.id)
            summary.dropped += 1
            return

        backoff = compute_backoff(attempts, self.settings.WALLET_JOBS_BASE_BACKOFF_SECONDS)
        logger.warning(f"Wallet job {job.id} ({job.type}) failed, retry {attempts} in {backoff}s: {reason}")
        await self.job_store.mark_failed(job.id, attempts, backoff)

    async def execute(self, payload) -> None:
        """Run the handler for one parsed payload; raises on any failure."""
        if isinstance(payload, GooglePatchPayload):
            await self._google_patch(payload)
        elif isinstance(payload, RegeneratePassPayload):
            await self._regenerate_pkpass(payload)
        elif isinstance(payload, ApplePushPayload):
            await self._apple_push(payload.serial_number, payload.device_token)

    async def _google_patch(self, payload: GooglePatchPayload) -> None:
        result = await self.update_service.patch_google_object(payload.object_id, loyalty_balance_patch(payload.balance))
        if not result.success:
            raise JobExecutionError(result.error or "Google patch failed", step="google_patch")

    async def _regenerate_pkpass(self, payload: RegeneratePassPayload) -> None:
        device_token = payload.device_token
        async with self.session_maker() as session:
            pass_record = await session.get(PassRecord, payload.pass_id)
            if pass_record is None:
                raise PassNotFoundError(payload.pass_id)
            if payload.registration_id:
                # The device may have re-registered with a new push token since enqueue
                registration = await session.get(PassRegistration, payload.registration_id)
                if registration is not None and registration.apple_device_token:
                    device_token = registration.apple_device_token
            result = await self.update_service.regenerate_apple_pass(session, pass_record)

        if not result.success:
            raise JobExecutionError(result.error or "Regenerate failed", step="regenerate_pkpass")

        if device_token:
            await self._apple_push(result.serial_number, device_token)

    async def _apple_push(self, serial_number: str, device_token: str) -> None:
        result = await self.push_service.send_pass_update(serial_number, device_token)
        if not result.success:
            raise JobExecutionError(result.error or "APNS send failed", step="apple_push")
