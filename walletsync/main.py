"""
Main FastAPI application entry point.
"""
import logging
import multiprocessing
from contextlib import asynccontextmanager
from typing import Callable, Optional

from fastapi import FastAPI

from walletsync.core.components import WalletComponents, build_components
from walletsync.core.config import Settings, get_settings
from walletsync.core.database import init_db
from walletsync.helpers.migrations import apply_migrations
from walletsync.routers import apple_pass, health, passes, wallet_jobs

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    components_factory: Callable[[Settings], WalletComponents] = build_components,
    run_migrations: bool = True,
) -> FastAPI:
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Starting up...")
        if run_migrations:
            logger.info("Run alembic upgrade head...")
            process = multiprocessing.Process(target=apply_migrations, args=(settings.DATABASE_URL,))
            process.start()
            process.join()
            logger.info("Finished alembic upgrade.")

        components = components_factory(settings)
        if not run_migrations:
            await init_db(components.engine)
        app.state.settings = settings
        app.state.engine = components.engine
        app.state.session_maker = components.session_maker
        app.state.job_store = components.job_store
        app.state.dispatcher = components.dispatcher
        app.state.update_service = components.update_service
        app.state.google_wallet_service = components.google_wallet_service
        yield  # Control returns to the application during runtime
        logger.info("Shutting down...")
        await components.aclose()

    app = FastAPI(
        title=settings.PROJECT_NAME,
        description="Wallet pass synchronization for Google Wallet and Apple Wallet",
        version="0.1.0",
        openapi_url="/openapi.json",
        lifespan=lifespan,
        debug=settings.debug,
        docs_url="/docs",
        redoc_url="/redoc"
    )

    # Include routers
    app.include_router(health.router, prefix="/health", tags=["HealthCheck"])
    app.include_router(wallet_jobs.router, prefix="/cron/wallet-jobs", tags=["WalletJobs"])
    app.include_router(apple_pass.router, prefix="/apple-pass/v1", tags=["ApplePass"])
    app.include_router(passes.router, prefix="/passes", tags=["Passes"])
    return app


app = create_app()
