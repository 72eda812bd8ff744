"""
FastAPI router for pass creation, download and customer program registration.
"""
import logging

from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlmodel import col, select

from walletsync.core.database import AsyncDBSession
from walletsync.dependencies import get_google_wallet_service, get_update_service
from walletsync.models.base import utcnow
from walletsync.models.passes import PassRecord, PassRegistration
from walletsync.schemas.wallets import ErrorType, GoogleWalletPassCreate, PassRegisterRequest, PassRegistrationResponse
from walletsync.services.google_wallet_service import GoogleWalletService
from walletsync.services.wallet_update_service import WalletUpdateService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/google", status_code=status.HTTP_201_CREATED)
async def create_google_pass(
    pass_request: GoogleWalletPassCreate,
    session: AsyncDBSession,
    google_service: GoogleWalletService = Depends(get_google_wallet_service),
):
    """Create the Google Wallet class/object for a pass and return its save link."""
    result = await google_service.create_pass(
        pass_request.holder, pass_request.pass_type, pass_request.pass_data, pass_request.smart_tap_config
    )
    if not result.success:
        status_code = (
            status.HTTP_400_BAD_REQUEST
            if result.error_type == ErrorType.VALIDATION_FAILED
            else status.HTTP_502_BAD_GATEWAY
        )
        raise HTTPException(
            status_code=status_code,
            detail={
                "error": result.error,
                "errorType": result.error_type.value if result.error_type else None,
                "step": result.step.value if result.step else None,
                "details": result.validation_errors,
            },
        )

    pass_record = PassRecord(
        user_email=pass_request.holder,
        pass_type=pass_request.pass_type,
        title=pass_request.pass_data.get("title") or "Untitled Pass",
        pass_data=pass_request.pass_data,
        class_id=result.class_id,
        object_id=result.object_id,
        pass_url=result.save_url,
        qr_code_url=result.qr_codes.recommended if result.qr_codes else None,
    )
    session.add(pass_record)
    await session.commit()
    await session.refresh(pass_record)

    logger.info(f"Created Google Wallet pass {pass_record.id} ({result.object_id})")
    return {
        "passId": pass_record.id,
        "classId": result.class_id,
        "objectId": result.object_id,
        "saveUrl": result.save_url,
        "qrCodes": result.qr_codes.model_dump() if result.qr_codes else None,
        "workflow": result.workflow,
    }


@router.get("/{pass_id}/apple")
async def download_apple_pass(
    pass_id: str,
    session: AsyncDBSession,
    update_service: WalletUpdateService = Depends(get_update_service),
):
    """Build and stream the signed Apple Wallet bundle for a pass."""
    pass_record = await session.get(PassRecord, pass_id)
    if pass_record is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Pass not found")

    result = await update_service.regenerate_apple_pass(session, pass_record)
    if not result.success:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={
                "error": result.error,
                "errorType": result.error_type.value if result.error_type else None,
                "step": result.step.value if result.step else None,
            },
        )

    return Response(
        content=result.bundle.data,
        media_type=result.bundle.media_type,
        headers={"Content-Disposition": f'attachment; filename="pass-{result.serial_number}.pkpass"'},
    )


@router.post("/{pass_id}/register", response_model=PassRegistrationResponse)
async def register_pass(
    pass_id: str,
    register_request: PassRegisterRequest,
    session: AsyncDBSession,
    response: Response,
):
    """Link a pass to a customer program so balance changes reach the holder's wallet."""
    pass_record = await session.get(PassRecord, pass_id)
    if pass_record is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Pass not found")

    result = await session.exec(
        select(PassRegistration).where(
            PassRegistration.pass_id == pass_id,
            PassRegistration.customer_program_id == register_request.customer_program_id,
            PassRegistration.wallet_type == register_request.wallet_type,
        )
    )
    registration = result.first()
    created = registration is None
    if registration is None and register_request.wallet_type == "apple":
        # The device may have registered with Apple before the program link existed
        result = await session.exec(
            select(PassRegistration).where(
                PassRegistration.pass_id == pass_id,
                PassRegistration.wallet_type == "apple",
                col(PassRegistration.customer_program_id).is_(None),
            )
        )
        registration = result.first()
    if registration is None:
        registration = PassRegistration(pass_id=pass_id, wallet_type=register_request.wallet_type)

    registration.customer_program_id = register_request.customer_program_id
    registration.updated_at = utcnow()
    if register_request.wallet_type == "google":
        registration.google_object_id = (
            register_request.google_object_id
            or pass_record.object_id
            or (pass_record.pass_data or {}).get("objectId")
        )
    else:
        registration.apple_serial_number = pass_record.serial_number
        if register_request.device_token:
            registration.apple_device_token = register_request.device_token

    session.add(registration)
    await session.commit()
    await session.refresh(registration)

    response.status_code = status.HTTP_201_CREATED if created else status.HTTP_200_OK
    logger.info(f"Registered pass {pass_id} ({register_request.wallet_type}) "
                f"for customer program {register_request.customer_program_id}")
    return PassRegistrationResponse.model_validate(registration, from_attributes=True)
