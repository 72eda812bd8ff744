"""
Cron-triggered wallet job processing.
"""
import logging

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from walletsync.core.database import AsyncDBSession
from walletsync.dependencies import get_dispatcher, get_job_store, get_update_service, verify_cron_secret
from walletsync.managers.job_store import WalletJobStore
from walletsync.schemas.jobs import JOB_TYPES, EnqueueJobRequest, WalletJobResponse, parse_job_payload
from walletsync.services.wallet_job_dispatcher import WalletJobDispatcher
from walletsync.services.wallet_update_service import WalletUpdateService

logger = logging.getLogger(__name__)

router = APIRouter(dependencies=[Depends(verify_cron_secret)])


class BalanceUpdateRequest(BaseModel):
    customer_program_id: str = Field(..., min_length=1)
    new_balance: int = Field(..., description="New points balance")


@router.get("")
async def run_wallet_jobs(dispatcher: WalletJobDispatcher = Depends(get_dispatcher)):
    """Process one batch of due wallet jobs."""
    summary = await dispatcher.run_batch()
    if summary.total == 0:
        return {"message": "No wallet jobs to process", "processed": 0, "failed": 0, "total": 0}
    return {
        "message": "Wallet jobs processing complete",
        "processed": summary.processed,
        "failed": summary.failed,
        "dropped": summary.dropped,
        "total": summary.total,
    }


@router.post("/enqueue", response_model=WalletJobResponse, status_code=status.HTTP_201_CREATED)
async def enqueue_wallet_job(
    job_request: EnqueueJobRequest,
    job_store: WalletJobStore = Depends(get_job_store),
):
    if job_request.type not in JOB_TYPES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid job type. Must be one of: {', '.join(JOB_TYPES)}"
        )
    payload = parse_job_payload(job_request.type, job_request.payload)
    if payload is None:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"Invalid payload for {job_request.type} job"
        )

    job = await job_store.enqueue(job_request.type, payload, max_attempts=job_request.max_attempts)
    return WalletJobResponse.model_validate(job, from_attributes=True)


@router.post("/balance")
async def enqueue_balance_update(
    balance_request: BalanceUpdateRequest,
    session: AsyncDBSession,
    update_service: WalletUpdateService = Depends(get_update_service),
):
    """Queue wallet updates for every registration of a customer program."""
    jobs = await update_service.enqueue_balance_update(
        session, balance_request.customer_program_id, balance_request.new_balance
    )
    return {"enqueued": len(jobs), "job_ids": [job.id for job in jobs]}
