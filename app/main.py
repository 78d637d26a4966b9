import logging

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException
from contextlib import asynccontextmanager

from app.config import settings
from app.database import create_db_and_tables
from app.exceptions import (
    GatewayError,
    InvalidRequestError,
    NotFoundError,
    PermissionDeniedError,
)
from app.routes import admin, health, pdfs, users
from app.services import file_storage

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Run DB creation ONLY in local
    if settings.env == "local":
        create_db_and_tables()
    yield

app = FastAPI(title="PDF Vault API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _error(status_code: int, message: str, **extra):
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "message": message, **extra},
    )


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    return _error(404, str(exc))


@app.exception_handler(InvalidRequestError)
async def invalid_request_handler(request: Request, exc: InvalidRequestError):
    return _error(400, str(exc))


@app.exception_handler(PermissionDeniedError)
async def permission_denied_handler(request: Request, exc: PermissionDeniedError):
    return _error(403, str(exc))


@app.exception_handler(GatewayError)
async def gateway_error_handler(request: Request, exc: GatewayError):
    logger.error(f"Gateway error on {request.url.path}: {exc.status_code} {exc.body}")
    # finalize is idempotent, so the client is told to retry
    return _error(502, exc.message, retryable=True)


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": exc.detail},
        headers=exc.headers,
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=422,
        content={"success": False, "message": "Invalid request", "errors": jsonable_encoder(exc.errors())},
    )


app.include_router(health.router, tags=["Health"])
app.include_router(pdfs.router, prefix="/api/pdfs", tags=["PDFs"])
app.include_router(users.router, prefix="/api/users", tags=["Users"])
app.include_router(admin.router, prefix="/api/admin", tags=["Admin"])

# thumbnails only; PDFs go through the entitlement-checked download route
file_storage.ensure_dirs()
app.mount(
    "/thumbnails",
    StaticFiles(directory=file_storage.upload_root() / file_storage.THUMBNAIL_FOLDER),
    name="thumbnails",
)


@app.get("/", response_class=PlainTextResponse)
def root():
    return "PDF Vault API is running"
