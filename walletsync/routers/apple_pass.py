"""
Apple Wallet web service: device registration and pass delivery.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy import delete, or_
from sqlmodel import col, select

from walletsync.core.database import AsyncDBSession
from walletsync.dependencies import get_update_service, verify_apple_pass_token
from walletsync.models.base import utcnow
from walletsync.models.passes import PassRecord, PassRegistration
from walletsync.schemas.wallets import DeviceRegistrationRequest
from walletsync.services.wallet_update_service import WalletUpdateService

logger = logging.getLogger(__name__)

router = APIRouter(dependencies=[Depends(verify_apple_pass_token)])


async def find_pass_by_serial(session, serial_number: str) -> Optional[PassRecord]:
    """Resolve a serial the same way PassRecord.serial_number derives it."""
    result = await session.exec(
        select(PassRecord).where(or_(
            col(PassRecord.object_id) == serial_number,
            col(PassRecord.pass_data)["serialNumber"].as_string() == serial_number,
            col(PassRecord.id) == serial_number,
        ))
    )
    for pass_record in result.all():
        if pass_record.serial_number == serial_number:
            return pass_record
    return None


@router.post("/devices/{device_library_id}/registrations/{pass_type_id}/{serial_number}")
async def register_device(
    device_library_id: str,
    pass_type_id: str,
    serial_number: str,
    session: AsyncDBSession,
    response: Response,
    registration: Optional[DeviceRegistrationRequest] = None,
):
    """Register a device to receive update pushes for a pass."""
    device_token = (registration.pushToken or registration.deviceToken) if registration else None
    pass_record = await find_pass_by_serial(session, serial_number)

    result = await session.exec(
        select(PassRegistration).where(
            PassRegistration.device_library_id == device_library_id,
            PassRegistration.apple_serial_number == serial_number,
        )
    )
    existing = result.first()
    created = existing is None
    if existing is None:
        # A pass linked to a customer program but not yet on this device
        result = await session.exec(
            select(PassRegistration).where(
                PassRegistration.wallet_type == "apple",
                PassRegistration.apple_serial_number == serial_number,
                col(PassRegistration.device_library_id).is_(None),
            )
        )
        existing = result.first()
        if existing is not None:
            existing.device_library_id = device_library_id

    if existing:
        existing.apple_device_token = device_token
        existing.pass_id = existing.pass_id or (pass_record.id if pass_record else None)
        existing.updated_at = utcnow()
        session.add(existing)
        response.status_code = status.HTTP_201_CREATED if created else status.HTTP_200_OK
    else:
        customer_program_id = None
        if pass_record is not None:
            result = await session.exec(
                select(PassRegistration.customer_program_id).where(
                    PassRegistration.pass_id == pass_record.id,
                    col(PassRegistration.customer_program_id).is_not(None),
                )
            )
            customer_program_id = result.first()
        session.add(PassRegistration(
            pass_id=pass_record.id if pass_record else None,
            customer_program_id=customer_program_id,
            wallet_type="apple",
            apple_serial_number=serial_number,
            apple_device_token=device_token,
            device_library_id=device_library_id,
        ))
        response.status_code = status.HTTP_201_CREATED
    await session.commit()

    logger.info(f"Registered device {device_library_id} for pass {pass_type_id}/{serial_number}")
    return {}


@router.delete("/devices/{device_library_id}/registrations/{pass_type_id}/{serial_number}")
async def unregister_device(
    device_library_id: str,
    pass_type_id: str,
    serial_number: str,
    session: AsyncDBSession,
):
    await session.execute(
        delete(PassRegistration).where(
            PassRegistration.device_library_id == device_library_id,
            PassRegistration.apple_serial_number == serial_number,
        )
    )
    await session.commit()
    logger.info(f"Unregistered device {device_library_id} from pass {pass_type_id}/{serial_number}")
    return {}


@router.get("/devices/{device_library_id}/registrations/{pass_type_id}")
async def list_registered_serials(
    device_library_id: str,
    pass_type_id: str,
    session: AsyncDBSession,
):
    """Serial numbers registered on a device, for Wallet's update check."""
    result = await session.exec(
        select(PassRegistration.apple_serial_number).where(
            PassRegistration.device_library_id == device_library_id,
            col(PassRegistration.apple_serial_number).is_not(None),
        )
    )
    serial_numbers = sorted(set(result.all()))
    if not serial_numbers:
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    return {"serialNumbers": serial_numbers, "lastUpdated": utcnow().isoformat()}


@router.get("/passes/{pass_type_id}/{serial_number}")
async def latest_pass(
    pass_type_id: str,
    serial_number: str,
    session: AsyncDBSession,
    update_service: WalletUpdateService = Depends(get_update_service),
):
    """Deliver the latest bundle for a pass after an update push."""
    pass_record = await find_pass_by_serial(session, serial_number)
    if pass_record is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Pass not found")

    result = await update_service.regenerate_apple_pass(session, pass_record)
    if not result.success:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"error": result.error, "step": result.step.value if result.step else None},
        )
    return Response(content=result.bundle.data, media_type=result.bundle.media_type)
