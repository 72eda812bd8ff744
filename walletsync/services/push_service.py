"""
Apple Wallet push notifications over APNs.
"""
import logging
import time
from typing import Callable, Optional

import httpx
from jose import jwt
from jose.exceptions import JOSEError

from walletsync.core.config import Settings
from walletsync.exceptions import ConfigurationError
from walletsync.schemas.wallets import ErrorType, PushResult
from walletsync.services.apple_wallet_service import read_key_material

logger = logging.getLogger(__name__)

# APNs provider tokens are valid for 1 hour, refresh after 50 minutes
JWT_TOKEN_LIFETIME = 50 * 60


class ApnsPushService:
    """
    Sends silent "pass updated" pushes to Apple Wallet.

    Authentication is token-based: an ES256 JWT signed with the .p8 key,
    cached and regenerated before APNs would reject it. The HTTP/2 client is
    owned by the caller and reused across pushes.
    """

    def __init__(self, settings: Settings, http_client: httpx.AsyncClient, clock: Callable[[], float] = time.time):
        self.settings = settings
        self.http_client = http_client
        self.clock = clock
        self._jwt_token: Optional[str] = None
        self._jwt_token_time = 0.0

    @property
    def topic(self) -> str:
        return self.settings.APPLE_BUNDLE_ID or self.settings.APPLE_PASS_TYPE_ID

    def _missing_config(self) -> Optional[str]:
        if not self.settings.APPLE_APNS_KEY_ID:
            return "APPLE_APNS_KEY_ID"
        if not self.settings.APPLE_TEAM_ID:
            return "APPLE_TEAM_ID"
        if not self.topic:
            return "APPLE_BUNDLE_ID"
        if not self.settings.APPLE_APNS_KEY:
            return "APPLE_APNS_KEY"
        return None

    def _get_jwt_token(self) -> str:
        """Return the cached provider token, generating a new one when stale."""
        now = self.clock()
        if self._jwt_token and (now - self._jwt_token_time) < JWT_TOKEN_LIFETIME:
            return self._jwt_token

        private_key = read_key_material(self.settings.APPLE_APNS_KEY, "APPLE_APNS_KEY").decode("utf-8")
        token = jwt.encode(
            {"iss": self.settings.APPLE_TEAM_ID, "iat": int(now)},
            private_key,
            algorithm="ES256",
            headers={"kid": self.settings.APPLE_APNS_KEY_ID},
        )
        self._jwt_token = token
        self._jwt_token_time = now
        logger.info(f"Generated new APNs JWT token (team: {self.settings.APPLE_TEAM_ID}, "
                    f"key: {self.settings.APPLE_APNS_KEY_ID})")
        return token

    async def send_pass_update(self, serial_number: str, device_token: Optional[str]) -> PushResult:
        """
        Tell the device that a pass changed so Wallet fetches the new version.

        Missing configuration or device token fails immediately without any
        network call. Delivery is attempted once; retries belong to the job.
        """
        if not device_token:
            return PushResult(success=False, error="No device token")

        missing = self._missing_config()
        if missing:
            logger.error(f"APNs configuration missing: {missing}")
            return PushResult(success=False, error=f"APNs key or configuration missing: {missing}",
                              error_type=ErrorType.CONFIGURATION_ERROR)

        try:
            token = self._get_jwt_token()
        except (ConfigurationError, JOSEError, ValueError) as e:
            logger.error(f"Failed to generate APNs JWT token: {e}")
            return PushResult(success=False, error=f"Failed to generate APNs token: {e}",
                              error_type=ErrorType.CONFIGURATION_ERROR)

        url = f"https://{self.settings.apns_host}/3/device/{device_token}"
        headers = {
            "authorization": f"bearer {token}",
            "apns-topic": self.topic,
            "apns-push-type": "background",
            "apns-priority": "5",
        }
        body = {"aps": {"content-available": 1}, "pkpass": {"serialNumber": serial_number}}

        try:
            response = await self.http_client.post(
                url, json=body, headers=headers, timeout=self.settings.APNS_TIMEOUT_SECONDS
            )
        except httpx.HTTPError as e:
            logger.warning(f"APNs request for {serial_number} failed: {e}")
            return PushResult(success=False, error=f"APNs request failed: {e}",
                              error_type=ErrorType.PUSH_FAILED)

        apns_id = response.headers.get("apns-id")
        if response.status_code == 200:
            logger.info(f"APNs push sent for pass {serial_number}")
            return PushResult(success=True, status_code=200, apns_id=apns_id)

        try:
            reason = response.json().get("reason", response.text)
        except ValueError:
            reason = response.text
        logger.warning(f"APNs rejected push for {serial_number}: {response.status_code} {reason}")
        return PushResult(
            success=False, status_code=response.status_code, apns_id=apns_id, error=reason,
            error_type=ErrorType.PUSH_FAILED,
        )
