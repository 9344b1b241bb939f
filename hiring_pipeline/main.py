"""
Hiring Pipeline - FastAPI application
"""
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
import structlog

from hiring_pipeline.core.config import settings
from hiring_pipeline.core.exceptions import PipelineException
from hiring_pipeline.core.logging_config import configure_logging
from hiring_pipeline.core.middleware import (
    CorrelationIDMiddleware,
    ExceptionHandlerMiddleware,
    LoggingMiddleware,
    error_response,
)
from hiring_pipeline.pipeline.manager import RoundSessionManager
from hiring_pipeline.rounds.router import router as rounds_router

configure_logging()
logger = structlog.get_logger()


def create_app(session_manager: RoundSessionManager = None) -> FastAPI:
    """Build the app; tests pass a manager wired to fakes"""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("application_starting", version=settings.APP_VERSION, environment=settings.ENVIRONMENT)
        app.state.session_manager = session_manager or RoundSessionManager()
        yield
        logger.info("application_shutting_down")
        await app.state.session_manager.close_all()

    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        description="Candidate pipeline progression and batch evaluation",
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        lifespan=lifespan,
    )

    app.add_middleware(CorrelationIDMiddleware)
    app.add_middleware(LoggingMiddleware)
    app.add_middleware(ExceptionHandlerMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=settings.CORS_ALLOW_CREDENTIALS,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(PipelineException)
    async def pipeline_exception_handler(request: Request, exc: PipelineException):
        return error_response(exc)

    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        return {
            "status": "healthy",
            "service": settings.APP_NAME,
            "version": settings.APP_VERSION,
        }

    app.include_router(rounds_router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "hiring_pipeline.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
    )
