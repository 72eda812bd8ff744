"""
Construction of the database, HTTP clients and services from one Settings.
"""
import logging
from dataclasses import dataclass
from typing import Optional

import httpx
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker

from walletsync.core.config import Settings
from walletsync.core.database import create_engine, create_session_maker
from walletsync.exceptions import ConfigurationError
from walletsync.managers.job_store import WalletJobStore
from walletsync.services.apple_wallet_service import AppleWalletService
from walletsync.services.google_wallet_service import GoogleWalletService
from walletsync.services.push_service import ApnsPushService
from walletsync.services.qr_service import QRCodeService
from walletsync.services.storage_service import LocalArtifactStorage
from walletsync.services.wallet_job_dispatcher import WalletJobDispatcher
from walletsync.services.wallet_update_service import WalletUpdateService

logger = logging.getLogger(__name__)


@dataclass
class WalletComponents:
    settings: Settings
    engine: AsyncEngine
    session_maker: async_sessionmaker
    http_client: httpx.AsyncClient
    apns_client: httpx.AsyncClient
    job_store: WalletJobStore
    google_wallet_service: Optional[GoogleWalletService]
    apple_wallet_service: AppleWalletService
    push_service: ApnsPushService
    update_service: WalletUpdateService
    dispatcher: WalletJobDispatcher

    async def aclose(self) -> None:
        await self.http_client.aclose()
        await self.apns_client.aclose()
        await self.engine.dispose()


def build_google_wallet_service(settings: Settings, qr_service: QRCodeService) -> Optional[GoogleWalletService]:
    if not settings.GOOGLE_WALLET_ISSUER_ID or not settings.GOOGLE_SERVICE_ACCOUNT_KEY:
        logger.warning("Google Wallet is not configured; google_patch jobs will fail")
        return None
    try:
        return GoogleWalletService.from_settings(settings, qr_service=qr_service)
    except ConfigurationError as e:
        logger.error(f"Failed to initialize Google Wallet service: {e}")
        return None


def build_components(
    settings: Settings,
    engine: Optional[AsyncEngine] = None,
    http_client: Optional[httpx.AsyncClient] = None,
    apns_client: Optional[httpx.AsyncClient] = None,
) -> WalletComponents:
    """Wire every service from settings; tests pass their own engine and clients."""
    engine = engine or create_engine(settings)
    session_maker = create_session_maker(engine)
    http_client = http_client or httpx.AsyncClient(timeout=settings.HTTP_TIMEOUT_SECONDS, follow_redirects=True)
    apns_client = apns_client or httpx.AsyncClient(http2=True, timeout=settings.APNS_TIMEOUT_SECONDS)

    job_store = WalletJobStore(session_maker, default_max_attempts=settings.WALLET_JOBS_MAX_ATTEMPTS)
    qr_service = QRCodeService(settings, http_client)
    google_wallet_service = build_google_wallet_service(settings, qr_service)
    apple_wallet_service = AppleWalletService(settings, http_client)
    push_service = ApnsPushService(settings, apns_client)
    storage = LocalArtifactStorage(settings.ARTIFACT_STORAGE_DIR, settings.ARTIFACT_PUBLIC_BASE_URL)
    update_service = WalletUpdateService(google_wallet_service, apple_wallet_service, job_store, storage)
    dispatcher = WalletJobDispatcher(settings, job_store, update_service, push_service, session_maker)

    return WalletComponents(
        settings=settings,
        engine=engine,
        session_maker=session_maker,
        http_client=http_client,
        apns_client=apns_client,
        job_store=job_store,
        google_wallet_service=google_wallet_service,
        apple_wallet_service=apple_wallet_service,
        push_service=push_service,
        update_service=update_service,
        dispatcher=dispatcher,
    )
