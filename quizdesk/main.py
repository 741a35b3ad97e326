"""
FastAPI application entry point.
"""
from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from quizdesk.api.sessions import router as sessions_router
from quizdesk.api.stats import router as stats_router
from quizdesk.core.clock import utcnow
from quizdesk.core.config import settings
from quizdesk.core.database import SessionLocal, init_db
from quizdesk.core.errors import NotFound, QuizError
from quizdesk.jobs.bot_poller import BotPoller
from quizdesk.services.notifier import telegram_client

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting %s %s...", settings.APP_NAME, settings.APP_VERSION)
    init_db()

    poller = None
    client = telegram_client(settings)
    if client is not None:
        poller = BotPoller(client, SessionLocal, settings)
        poller.start()
    else:
        logger.info("Telegram bot not configured; command polling disabled")

    yield

    logger.info("Shutting down %s...", settings.APP_NAME)
    if poller is not None:
        # an in-flight getUpdates still owns the http client
        if poller.stop(timeout=5):
            client.close()


app = FastAPI(title=settings.APP_NAME, version=settings.APP_VERSION, lifespan=lifespan)
app.add_middleware(CORSMiddleware, allow_origins=settings.CORS_ORIGINS, allow_credentials=False,
                   allow_methods=["GET", "POST"], allow_headers=["*"])


def _error(status_code: int, message: str, error_type: str, **extra) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": {"message": message, "type": error_type, "status_code": status_code, **extra}},
    )


@app.exception_handler(QuizError)
async def quiz_error_handler(request: Request, exc: QuizError):
    return _error(exc.status_code, exc.message, exc.error_type)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return _error(status.HTTP_400_BAD_REQUEST, "Validation error", "validation_error",
                  details=jsonable_errors(exc))


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code == status.HTTP_404_NOT_FOUND and request.url.path.startswith(f"{settings.API_PREFIX}/"):
        return _error(exc.status_code, "API endpoint not found", NotFound.error_type)
    return _error(exc.status_code, str(exc.detail), "http_error")


@app.exception_handler(SQLAlchemyError)
async def storage_exception_handler(request: Request, exc: SQLAlchemyError):
    logger.error("Storage error on %s %s: %s", request.method, request.url.path, exc, exc_info=True)
    return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "An internal error occurred", "internal_error")


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "An internal error occurred", "internal_error")


def jsonable_errors(exc: RequestValidationError):
    return [{"loc": list(e.get("loc", ())), "msg": e.get("msg"), "type": e.get("type")} for e in exc.errors()]


app.include_router(sessions_router, prefix=settings.API_PREFIX, tags=["sessions"])
app.include_router(stats_router, prefix=settings.API_PREFIX, tags=["stats"])


@app.get(f"{settings.API_PREFIX}/health", tags=["health"])
def health():
    return {
        "status": "ok",
        "timestamp": utcnow().isoformat() + "Z",
        "telegramConfigured": settings.telegram_configured(),
    }

