from fastapi import APIRouter, HTTPException, Request, status
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

router = APIRouter()


@router.get("/")
async def health_check():
    return {
        "status": "healthy",
        "service": "walletsync",
        "version": "0.1.0"
    }


@router.get("/database")
async def database_health(request: Request):
    try:
        async with request.app.state.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return {
            "status": "healthy",
            "service": "database",
            "connected": True
        }
    except SQLAlchemyError as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"Database health check failed: {str(e)}"
        )


@router.get("/full")
async def full_health_check(request: Request):
    state = request.app.state
    settings = state.settings
    health_status = {
        "status": "healthy",
        "service": "walletsync",
        "version": "0.1.0",
        "services": {
            "google_wallet": {"configured": state.google_wallet_service is not None},
            "apple_wallet": {"configured": settings.apple_signing_configured},
            "apns": {"configured": bool(settings.APPLE_APNS_KEY_ID and settings.APPLE_APNS_KEY)},
        }
    }

    # Check Database
    try:
        async with state.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        health_status["services"]["database"] = {
            "status": "healthy",
            "connected": True
        }
    except SQLAlchemyError as e:
        health_status["services"]["database"] = {
            "status": "unhealthy",
            "error": str(e)
        }
        health_status["status"] = "degraded"

    if health_status["status"] == "degraded":
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=health_status
        )

    return health_status
