"""
Google Wallet class/object synchronization and save-link generation.
"""
import asyncio
import json
import logging
import time
from typing import Any, Callable, Dict, Optional

from google.oauth2 import service_account
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError
from jose import JOSEError, jwt

from walletsync.core.config import Settings
from walletsync.exceptions import ConfigurationError
from walletsync.schemas.wallets import (
    ClassResult,
    ClassStatus,
    ErrorType,
    ObjectResult,
    PassCreationResult,
    PatchResult,
    SaveLink,
    WorkflowStep,
)
from walletsync.services import google_wallet_payloads as payloads
from walletsync.services.qr_service import QRCodeService

logger = logging.getLogger(__name__)

FALLBACK_ORDER = ("loyalty", "gift-card", "offer", "generic")


def load_service_account_info(raw: str) -> Dict[str, Any]:
    """Parse the service account JSON key held in configuration."""
    if not raw:
        raise ConfigurationError("GOOGLE_SERVICE_ACCOUNT_KEY is not set")
    try:
        info = json.loads(raw)
    except ValueError as e:
        raise ConfigurationError(f"GOOGLE_SERVICE_ACCOUNT_KEY is not valid JSON: {e}") from e
    if not info.get("client_email") or not info.get("private_key"):
        raise ConfigurationError("Service account key must contain client_email and private_key")
    # Keys pasted into env vars often carry escaped newlines
    info["private_key"] = info["private_key"].replace("\\n", "\n")
    return info


def _http_status(error: Exception) -> Optional[int]:
    if isinstance(error, HttpError):
        return error.resp.status
    return None


def _error_message(error: Exception) -> str:
    if isinstance(error, HttpError):
        try:
            body = json.loads(error.content.decode("utf-8"))
            return body.get("error", {}).get("message") or str(error)
        except (ValueError, AttributeError):
            return str(error)
    return str(error)


class GoogleWalletService:
    """Service for Google Wallet template/instance synchronization."""

    def __init__(
        self,
        settings: Settings,
        service: Any,
        service_account_info: Dict[str, Any],
        qr_service: Optional[QRCodeService] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.settings = settings
        self.service = service
        self.service_account_info = service_account_info
        self.qr_service = qr_service
        self.clock = clock

    @classmethod
    def from_settings(cls, settings: Settings, qr_service: Optional[QRCodeService] = None) -> "GoogleWalletService":
        """Build the walletobjects discovery client from the configured service account."""
        if not settings.GOOGLE_WALLET_ISSUER_ID:
            raise ConfigurationError("GOOGLE_WALLET_ISSUER_ID is not set")
        info = load_service_account_info(settings.GOOGLE_SERVICE_ACCOUNT_KEY)
        credentials = service_account.Credentials.from_service_account_info(
            info, scopes=settings.GOOGLE_WALLET_SCOPES
        )
        service = build("walletobjects", "v1", credentials=credentials, cache_discovery=False)
        logger.info("Google Wallet service initialized successfully")
        return cls(settings, service, info, qr_service=qr_service)

    @property
    def issuer_id(self) -> str:
        return self.settings.GOOGLE_WALLET_ISSUER_ID

    def _resource(self, pass_type: str, kind: str):
        """Return the discovery resource, e.g. service.loyaltyclass()."""
        return getattr(self.service, f"{payloads.RESOURCE_PREFIXES[pass_type]}{kind}")()

    async def _execute(self, request) -> Dict[str, Any]:
        # The discovery client is blocking
        return await asyncio.to_thread(request.execute)

    def template_id(self, pass_type: str, pass_data: Dict[str, Any]) -> str:
        return payloads.template_id(self.issuer_id, pass_type, pass_data)

    async def get_or_create_class(self, pass_type: str, class_id: str, class_payload: Dict[str, Any]) -> ClassResult:
        """
        Make sure a class exists remotely.

        GET first: an existing class is refreshed with the latest branding
        (best-effort), a 404 leads to an insert, anything else is a
        verification failure.
        """
        resource = self._resource(pass_type, "class")
        try:
            await self._execute(resource.get(resourceId=class_id))
        except HttpError as e:
            if _http_status(e) != 404:
                logger.error(f"Failed to verify Google Wallet class {class_id}: {_error_message(e)}")
                return ClassResult(
                    success=False,
                    class_id=class_id,
                    status=ClassStatus.FAILED,
                    error=_error_message(e),
                    error_type=ErrorType.CLASS_VERIFICATION_FAILED,
                )
            return await self._insert_class(resource, class_id, class_payload)

        logger.info(f"Class already exists: {class_id}")
        await self._refresh_class(resource, class_id, class_payload)
        return ClassResult(success=True, class_id=class_id, status=ClassStatus.EXISTS)

    async def _insert_class(self, resource, class_id: str, class_payload: Dict[str, Any]) -> ClassResult:
        logger.info(f"Creating new class: {class_id}")
        try:
            await self._execute(resource.insert(body=class_payload))
        except HttpError as e:
            logger.error(f"Failed to create Google Wallet class {class_id}: {_error_message(e)}")
            return ClassResult(
                success=False,
                class_id=class_id,
                status=ClassStatus.FAILED,
                error=_error_message(e),
                error_type=ErrorType.CLASS_CREATION_FAILED,
            )
        return ClassResult(success=True, class_id=class_id, status=ClassStatus.CREATED)

    async def _refresh_class(self, resource, class_id: str, class_payload: Dict[str, Any]) -> None:
        update_mask = ",".join(
            key for key, value in class_payload.items()
            if key not in ("id", "reviewStatus") and value is not None
        )
        if not update_mask:
            return
        try:
            await self._execute(resource.patch(resourceId=class_id, updateMask=update_mask, body=class_payload))
            logger.info(f"Existing class {class_id} refreshed with latest branding ({update_mask})")
        except HttpError as e:
            logger.warning(f"Class refresh failed for {class_id}, continuing with existing class: {_error_message(e)}")

    async def create_object(self, pass_type: str, object_payload: Dict[str, Any]) -> ObjectResult:
        """Insert a new object. Objects are never reused."""
        obj_id = object_payload["id"]
        try:
            response = await self._execute(self._resource(pass_type, "object").insert(body=object_payload))
        except HttpError as e:
            message = _error_message(e)
            if _http_status(e) == 404 and "not approved" in message:
                logger.warning(f"Class for {obj_id} is not approved yet: {message}")
                return ObjectResult(
                    success=False,
                    object_id=obj_id,
                    error=f"Class not approved: {message}",
                    error_type=ErrorType.CLASS_NOT_APPROVED,
                )
            logger.error(f"Failed to create Google Wallet object {obj_id}: {message}")
            return ObjectResult(
                success=False,
                object_id=obj_id,
                error=message,
                error_type=ErrorType.OBJECT_CREATION_FAILED,
            )

        logger.info(f"Created Google Wallet object: {obj_id}")
        return ObjectResult(success=True, object_id=obj_id, response=response)

    async def patch_object(self, object_id: str, patch_body: Dict[str, Any]) -> PatchResult:
        """
        Apply a partial update to an existing object.

        The endpoint comes from the pass-type tag embedded in the object id.
        Ids without a recognised tag are tried against each object endpoint
        in turn until one accepts the patch.
        """
        tagged_type = payloads.pass_type_from_object_id(object_id)
        candidates = (tagged_type,) if tagged_type else FALLBACK_ORDER

        last_error = None
        statuses = []
        for pass_type in candidates:
            endpoint = f"{payloads.RESOURCE_PREFIXES[pass_type]}object"
            try:
                result = await self._execute(
                    self._resource(pass_type, "object").patch(resourceId=object_id, body=patch_body)
                )
            except HttpError as e:
                last_error = _error_message(e)
                statuses.append(_http_status(e))
                logger.debug(f"Patch of {object_id} via {endpoint} failed: {last_error}")
                continue
            logger.info(f"Patched Google Wallet object {object_id} via {endpoint}")
            return PatchResult(success=True, result=result, endpoint=endpoint)

        not_found = all(code == 404 for code in statuses)
        logger.warning(f"Google Wallet object {object_id} could not be patched: {last_error}")
        return PatchResult(
            success=False,
            error=f"Object type not found or patch failed: {last_error}",
            error_type=ErrorType.OBJECT_NOT_FOUND if not_found else ErrorType.PATCH_FAILED,
        )

    def build_save_link(
        self, pass_type: str, class_payload: Dict[str, Any], object_payload: Dict[str, Any]
    ) -> SaveLink:
        """Sign a save-to-wallet token carrying the full class and object definitions."""
        prefix = payloads.SAVE_LINK_PREFIXES.get(pass_type, pass_type)
        claims = {
            "iss": self.service_account_info["client_email"],
            "aud": "google",
            "origins": self.settings.allowed_origins,
            "typ": "savetowallet",
            "iat": int(self.clock()),
            "payload": {
                f"{prefix}Classes": [class_payload],
                f"{prefix}Objects": [object_payload],
            },
        }
        token = jwt.encode(claims, self.service_account_info["private_key"], algorithm="RS256")
        save_url = f"https://{self.settings.GOOGLE_WALLET_SAVE_HOST}/gp/v/save/{token}"
        logger.info(f"Generated save link for {pass_type} ({prefix})")
        return SaveLink(token=token, save_url=save_url)

    async def create_pass(
        self,
        holder: str,
        pass_type: str,
        pass_data: Dict[str, Any],
        smart_tap_config: Optional[Dict[str, Any]] = None,
    ) -> PassCreationResult:
        """Run validation, class, object, save link and QR in order."""
        valid, errors = payloads.validate_pass_data(pass_type, pass_data)
        if not valid:
            return PassCreationResult(
                success=False,
                step=WorkflowStep.VALIDATION,
                error="Pass data validation failed",
                error_type=ErrorType.VALIDATION_FAILED,
                validation_errors=errors,
            )

        pass_data = payloads.normalize_dates(pass_data)
        timestamp_ms = int(self.clock() * 1000)
        class_id = self.template_id(pass_type, pass_data)
        obj_id = payloads.object_id(self.issuer_id, pass_type, holder, timestamp_ms)
        class_payload, object_payload = payloads.build_payloads(
            pass_type, class_id, obj_id, pass_data, timestamp_ms,
            self.settings.PUBLIC_BASE_URL, smart_tap_config,
        )

        class_result = await self.get_or_create_class(pass_type, class_id, class_payload)
        if not class_result.success:
            return PassCreationResult(
                success=False,
                step=WorkflowStep.CLASS_CREATION,
                error=class_result.error,
                error_type=class_result.error_type,
                class_id=class_id,
                class_status=class_result.status,
            )

        object_result = await self.create_object(pass_type, object_payload)
        if not object_result.success:
            return PassCreationResult(
                success=False,
                step=WorkflowStep.OBJECT_CREATION,
                error=object_result.error,
                error_type=object_result.error_type,
                class_id=class_id,
                object_id=obj_id,
                class_status=class_result.status,
            )

        try:
            save_link = self.build_save_link(pass_type, class_payload, object_payload)
        except (JOSEError, ValueError) as e:
            logger.error(f"Failed to sign save link for {obj_id}: {e}")
            return PassCreationResult(
                success=False,
                step=WorkflowStep.SAVE_LINK,
                error=f"Failed to sign save link: {e}",
                error_type=ErrorType.CONFIGURATION_ERROR,
                class_id=class_id,
                object_id=obj_id,
                class_status=class_result.status,
            )
        qr_codes = await self.qr_service.wallet_qr_codes(save_link.save_url) if self.qr_service else None

        return PassCreationResult(
            success=True,
            class_id=class_id,
            object_id=obj_id,
            class_status=class_result.status,
            save_url=save_link.save_url,
            qr_codes=qr_codes,
            class_payload=class_payload,
            object_payload=object_payload,
        )
