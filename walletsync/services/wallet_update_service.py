"""
Wallet update orchestration: patch Google objects, regenerate Apple bundles
and fan balance changes out to the job queue.
"""
import logging
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from walletsync.exceptions import ConfigurationError, PassSigningError
from walletsync.managers.job_store import WalletJobStore
from walletsync.models.base import utcnow
from walletsync.models.jobs import WalletJob
from walletsync.models.passes import PassRecord, PassRegistration
from walletsync.schemas.jobs import (
    JOB_TYPE_GOOGLE_PATCH,
    JOB_TYPE_REGENERATE_PKPASS,
    GooglePatchPayload,
    RegeneratePassPayload,
)
from walletsync.schemas.wallets import ErrorType, PatchResult, RegenerationResult, WorkflowStep
from walletsync.services.apple_wallet_service import PKPASS_MEDIA_TYPE, AppleWalletService
from walletsync.services.google_wallet_service import GoogleWalletService
from walletsync.services.storage_service import LocalArtifactStorage, pkpass_path

logger = logging.getLogger(__name__)


def loyalty_balance_patch(balance: Any) -> Dict[str, Any]:
    """Patch body that sets the loyalty points balance of an object."""
    try:
        points = int(float(balance or 0))
    except (TypeError, ValueError):
        points = 0
    return {"loyaltyPoints": {"balance": {"int": points}}}


class WalletUpdateService:
    """Applies pass changes to both wallets."""

    def __init__(
        self,
        google_service: Optional[GoogleWalletService],
        apple_service: AppleWalletService,
        job_store: WalletJobStore,
        storage: Optional[LocalArtifactStorage] = None,
    ):
        self.google_service = google_service
        self.apple_service = apple_service
        self.job_store = job_store
        self.storage = storage

    async def patch_google_object(self, object_id: str, patch_body: Dict[str, Any]) -> PatchResult:
        if self.google_service is None:
            return PatchResult(
                success=False,
                error="Google Wallet is not configured",
                error_type=ErrorType.CONFIGURATION_ERROR,
            )
        return await self.google_service.patch_object(object_id, patch_body)

    async def regenerate_apple_pass(self, session: AsyncSession, pass_record: PassRecord) -> RegenerationResult:
        """
        Rebuild the signed bundle for a pass under its existing serial number.

        The new bundle is uploaded to artifact storage and the pass record's
        apple_pass_url updated; both are best-effort and never fail the call.
        """
        serial_number = pass_record.serial_number
        pass_data = dict(pass_record.pass_data or {})
        pass_data.setdefault("passType", pass_record.pass_type)
        pass_data.setdefault("title", pass_record.title)

        try:
            bundle = await self.apple_service.create_pass(pass_data, serial_number=serial_number)
        except ConfigurationError as e:
            logger.error(f"Apple Wallet is not configured, cannot regenerate {pass_record.id}: {e}")
            return RegenerationResult(
                success=False,
                serial_number=serial_number,
                error=str(e),
                error_type=ErrorType.CONFIGURATION_ERROR,
                step=WorkflowStep.SIGNING,
            )
        except PassSigningError as e:
            logger.error(f"Failed to sign pass {pass_record.id}: {e}")
            return RegenerationResult(
                success=False,
                serial_number=serial_number,
                error=str(e),
                error_type=ErrorType.SIGNING_FAILED,
                step=WorkflowStep.SIGNING,
            )

        public_url = await self._store_bundle(session, pass_record, serial_number, bundle.data)
        return RegenerationResult(success=True, serial_number=serial_number, bundle=bundle, public_url=public_url)

    async def _store_bundle(
        self, session: AsyncSession, pass_record: PassRecord, serial_number: str, data: bytes
    ) -> Optional[str]:
        if self.storage is None:
            return None

        try:
            public_url = await self.storage.upload(
                pkpass_path(pass_record.id or serial_number, serial_number), data, PKPASS_MEDIA_TYPE
            )
        except (OSError, ValueError) as e:
            logger.warning(f"Failed to upload pkpass for {pass_record.id}: {e}")
            return None

        try:
            pass_record.apple_pass_url = public_url
            pass_record.updated_at = utcnow()
            session.add(pass_record)
            await session.commit()
        except SQLAlchemyError as e:
            await session.rollback()
            logger.warning(f"Failed to record apple_pass_url for {pass_record.id}: {e}")
        return public_url

    async def enqueue_updates_for_registrations(
        self, registrations: Iterable[PassRegistration], new_balance: Any
    ) -> List[WalletJob]:
        """
        Queue wallet updates for every registration of a changed balance.

        Google registrations get a google_patch job, Apple registrations a
        regenerate_pkpass job that also wakes the device. A registration whose
        enqueue fails is logged and skipped.
        """
        jobs = []
        for registration in registrations:
            try:
                if registration.google_object_id:
                    jobs.append(await self.job_store.enqueue(
                        JOB_TYPE_GOOGLE_PATCH,
                        GooglePatchPayload(object_id=registration.google_object_id, balance=new_balance),
                    ))
                if registration.apple_serial_number and registration.pass_id:
                    jobs.append(await self.job_store.enqueue(
                        JOB_TYPE_REGENERATE_PKPASS,
                        RegeneratePassPayload(
                            pass_id=registration.pass_id,
                            registration_id=registration.id,
                            device_token=registration.apple_device_token,
                        ),
                    ))
            except SQLAlchemyError as e:
                logger.error(f"Failed to enqueue wallet job for registration {registration.id}: {e}")
        return jobs

    async def enqueue_balance_update(
        self, session: AsyncSession, customer_program_id: str, new_balance: Any
    ) -> List[WalletJob]:
        """Queue wallet updates for all registrations of a customer program."""
        result = await session.exec(
            select(PassRegistration).where(PassRegistration.customer_program_id == customer_program_id)
        )
        registrations = list(result.all())
        logger.info(f"Found {len(registrations)} wallet registrations for customer program {customer_program_id}")
        return await self.enqueue_updates_for_registrations(registrations, new_balance)
