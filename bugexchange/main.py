"""
Bug Exchange - FastAPI Main Application
"""
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from bugexchange.config import settings
from bugexchange.core.errors import BugExchangeError, Internal, InvalidInput
from bugexchange.db.database import init_db, close_db
from bugexchange.api.v1 import bugs, comments, users

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler"""
    # Startup
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")
    await init_db()

    yield

    # Shutdown
    logger.info("Shutting down...")
    await close_db()


# Create FastAPI app
app = FastAPI(
    title=settings.APP_NAME,
    description="Bug bounty marketplace: bug lifecycle, submission arbitration and duplicate detection",
    version=settings.APP_VERSION,
    lifespan=lifespan,
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    openapi_url="/api/openapi.json"
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(BugExchangeError)
async def bug_exchange_error_handler(request: Request, exc: BugExchangeError):
    """Render domain errors as {kind, message}"""
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    """Malformed request payloads are InvalidInput like any other bad input"""
    problems = []
    for error in exc.errors():
        field = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        problems.append(f"{field}: {error.get('msg')}" if field else str(error.get("msg")))
    return JSONResponse(status_code=InvalidInput.status_code, content=InvalidInput("; ".join(problems)).to_dict())


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception(f"{request.method} {request.url.path} raised {type(exc).__name__}")
    return JSONResponse(status_code=500, content=Internal("Internal server error").to_dict())


# Include API routers
app.include_router(bugs.router, prefix="/api/v1/bugs", tags=["Bugs"])
app.include_router(comments.router, prefix="/api/v1/comments", tags=["Comments"])
app.include_router(users.router, prefix="/api/v1", tags=["Users"])


@app.get("/api/health")
async def health_check():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "app": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "notifications": "webhook" if settings.NOTIFY_WEBHOOK_URL else "log_only",
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "bugexchange.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG
    )
