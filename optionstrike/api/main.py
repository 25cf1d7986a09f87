"""
OptionStrike API - FastAPI Application

Serves the active recommendation set and the maintenance operations around
it (refresh, criteria, cache, health). Run with:

    uvicorn optionstrike.api.main:app
"""

from contextlib import asynccontextmanager
import logging
import time

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from optionstrike import __version__
from optionstrike.api import cache, health, recommendations
from optionstrike.config import Settings, settings as default_settings
from optionstrike.utils.logging import setup_logging

logger = logging.getLogger(__name__)


def create_app(app_settings: Settings = None) -> FastAPI:
    app_settings = app_settings or default_settings
    setup_logging(app_settings.LOG_LEVEL, debug=app_settings.DEBUG)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        from optionstrike.db.database import init_db
        from optionstrike.engine.factory import build_engine

        init_db()
        logger.info("Database tables created/verified")

        engine = build_engine(app_settings)
        app.state.engine = engine
        logger.info("OptionStrike API starting up...")
        logger.info(f"CORS origins: {app_settings.cors_origins}")
        try:
            yield
        finally:
            logger.info("OptionStrike API shutting down...")
            await engine.close()

    app = FastAPI(
        title="OptionStrike API",
        description="Short put recommendations around upcoming earnings",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=app_settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start_time = time.time()
        logger.info("REQUEST %s %s", request.method, request.url.path)
        if app_settings.DEBUG:
            logger.debug(f"   Query params: {dict(request.query_params)}")

        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(f"Error processing request: {e}", exc_info=True)
            raise

        process_time = time.time() - start_time
        logger.info("RESPONSE %s %s - %s (%.3fs)", request.method, request.url.path, response.status_code, process_time)
        return response

    app.include_router(health.router, prefix="/api/health", tags=["health"])
    app.include_router(recommendations.router, prefix="/api", tags=["recommendations"])
    app.include_router(cache.router, prefix="/api/cache", tags=["cache"])

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled exception: {exc}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content={"error": "Internal server error", "detail": str(exc)},
        )

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "optionstrike.api.main:app",
        host=default_settings.HOST,
        port=default_settings.PORT,
        reload=default_settings.DEBUG,
    )
