from fastapi import FastAPI, Request, Depends
from fastapi.responses import RedirectResponse, JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware

from .config import settings
from .context import RequestContext
from .database import get_db, init_db
from .errors import NotFoundError, CodeExhaustedError, PersistenceError
from .interstitial import interstitial_response
from .redirects import serve_redirect
from .redis_client import RedisService
from .schemas import HealthResponse
from .routes import router as api_router, dashboard_router, tracking_router
from .logging_config import setup_logging, get_logger, bind_request

# Initialize structured logging
setup_logging()
logger = get_logger(__name__)


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Middleware to add request ID to each request for tracing."""

    async def dispatch(self, request: Request, call_next):
        rid = bind_request(request.url.path, request.headers.get("X-Request-ID"))
        response = await call_next(request)
        response.headers["X-Request-ID"] = rid
        return response


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    logger.info("Starting linktrace...")

    # Schema is ready before the first request is accepted
    init_db()

    yield

    logger.info("Shutting down linktrace...")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Short links with per-click visitor tracking",
    lifespan=lifespan,
    docs_url="/api/docs" if settings.DEBUG else None,
    redoc_url="/api/redoc" if settings.DEBUG else None
)

app.add_middleware(RequestIdMiddleware)

cors_origins = settings.CORS_ORIGINS
if cors_origins == ["*"]:
    logger.warning("CORS configured to allow all origins. Set CORS_ORIGINS for production.")

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=cors_origins != ["*"],
    allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
    allow_headers=["*"],
    expose_headers=["X-Click-Id", "X-Request-ID"],
)

app.include_router(api_router, prefix="/api", tags=["API"])
app.include_router(dashboard_router, prefix="/api", tags=["Dashboard"])
app.include_router(tracking_router, tags=["Tracking"])


def _database_healthy(db: Session) -> bool:
    try:
        db.execute(text("SELECT 1"))
        return True
    except SQLAlchemyError:
        return False


@app.get("/health", response_model=HealthResponse)
def health_check(db: Session = Depends(get_db)):
    """Health check endpoint."""
    db_healthy = _database_healthy(db)
    redis_healthy = RedisService.health_check()

    status = "healthy" if (db_healthy and redis_healthy) else "degraded"

    return HealthResponse(
        status=status,
        database=db_healthy,
        redis=redis_healthy,
        version=settings.APP_VERSION
    )


@app.get("/{code}")
async def redirect_to_url(
    code: str,
    request: Request,
    db: Session = Depends(get_db)
):
    """
    Forward a short code to its original URL, recording the click.

    A recorded click gets the hand-off page carrying its id; when recording
    failed the visitor gets a plain 302 instead.
    """
    context = RequestContext.from_request(request)

    try:
        outcome = await serve_redirect(db, code, context)
    except NotFoundError:
        return JSONResponse(status_code=404, content={"error": "Link not found"})

    if outcome.click_id is not None:
        return interstitial_response(outcome.url, outcome.click_id)

    response = RedirectResponse(url=outcome.url, status_code=302)
    response.headers["Cache-Control"] = "no-store"
    return response


# Exception handlers
@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code == 404 and exc.detail == "Not Found":
        return JSONResponse(status_code=404, content={"error": "Not found"})
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail or "HTTP error"},
        headers=getattr(exc, "headers", None)
    )


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=404, content={"error": "Not found"})


@app.exception_handler(CodeExhaustedError)
async def code_exhausted_handler(request: Request, exc: CodeExhaustedError):
    return JSONResponse(status_code=503, content={"error": "Could not allocate a short code. Please try again."})


@app.exception_handler(PersistenceError)
async def persistence_error_handler(request: Request, exc: PersistenceError):
    logger.error(f"Persistence error: {exc}")
    return JSONResponse(status_code=500, content={"error": "Storage unavailable"})


@app.exception_handler(Exception)
async def server_error_handler(request: Request, exc: Exception):
    logger.error(f"Server error: {exc}")
    return JSONResponse(status_code=500, content={"error": "Internal server error"})
