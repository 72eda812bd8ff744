import hmac
from typing import Optional

from fastapi import Depends, Header, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from walletsync.core.config import Settings
from walletsync.managers.job_store import WalletJobStore
from walletsync.services.google_wallet_service import GoogleWalletService
from walletsync.services.wallet_job_dispatcher import WalletJobDispatcher
from walletsync.services.wallet_update_service import WalletUpdateService

# Security scheme
security = HTTPBearer(auto_error=False)


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_job_store(request: Request) -> WalletJobStore:
    return request.app.state.job_store


def get_dispatcher(request: Request) -> WalletJobDispatcher:
    return request.app.state.dispatcher


def get_update_service(request: Request) -> WalletUpdateService:
    return request.app.state.update_service


def get_google_wallet_service(request: Request) -> GoogleWalletService:
    service = request.app.state.google_wallet_service
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Google Wallet is not configured",
        )
    return service


async def verify_cron_secret(
    settings: Settings = Depends(get_settings),
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> None:
    if (
        not settings.CRON_SECRET
        or credentials is None
        or not hmac.compare_digest(credentials.credentials.encode(), settings.CRON_SECRET.encode())
    ):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
            headers={"WWW-Authenticate": "Bearer"},
        )


async def verify_apple_pass_token(
    settings: Settings = Depends(get_settings),
    authorization: str = Header(default=""),
) -> None:
    """Check the "ApplePass <token>" header Apple Wallet sends to the web service."""
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "applepass":
        token = authorization
    expected = settings.APPLE_PASS_AUTH_TOKEN
    if not expected or not hmac.compare_digest(token.strip().encode(), expected.encode()):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
        )
