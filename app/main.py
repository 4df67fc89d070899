import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.config import settings
from app.core.errors import AppError, ErrorKind, GENERIC_INTERNAL_MESSAGE
from app.db.session import init_db
from app.api.auth.routes import router as auth_router
from app.api.chat.routes import router as chat_router

from contextlib import asynccontextmanager

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    logger.info("Chatbot backend started (env=%s)", settings.ENV)
    yield

app = FastAPI(title="Chatbot Backend", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
)

# Routers
app.include_router(auth_router, prefix="/auth", tags=["Auth"])
app.include_router(chat_router, prefix="/chat", tags=["Chat"])


# ---------------------------------------------------
# ⚠️ Error Handlers
# ---------------------------------------------------

@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    headers = None
    message = exc.message
    if exc.kind is ErrorKind.UNAUTHORIZED:
        headers = {"WWW-Authenticate": "Bearer"}
    elif exc.kind is ErrorKind.INTERNAL:
        logger.error("Internal error on %s %s: %s", request.method, request.url.path, exc.message)
        message = GENERIC_INTERNAL_MESSAGE
    return JSONResponse(status_code=exc.status_code, content={"detail": message}, headers=headers)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    logger.info("Rejected malformed request on %s: %s", request.url.path, exc.errors())
    return JSONResponse(
        status_code=ErrorKind.VALIDATION.status_code,
        content={"detail": "Invalid request"},
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=ErrorKind.INTERNAL.status_code,
        content={"detail": GENERIC_INTERNAL_MESSAGE},
    )


@app.get("/ping")
def ping():
    return {"message": "pong"}
