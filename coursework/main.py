import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from coursework.core.errors import DomainError, InternalError, ValidationError
from coursework.core.logging_middleware import LoggingMiddleware
from coursework.db.init_db import init_db
from coursework.routers.assignments import router as assignments_router
from coursework.routers.auth import router as auth_router
from coursework.routers.submissions import router as submissions_router

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

app = FastAPI(title="Coursework Submissions")

# Middleware
app.add_middleware(LoggingMiddleware)


def error_response(message: str) -> dict:
    return {"success": False, "message": message}


def _describe_invalid_field(errors) -> str:
    if not errors:
        return "Invalid request"
    first = errors[0]
    # loc starts with where the value came from: body, query, path
    field = ".".join(str(part) for part in first["loc"][1:])
    if not field:
        return "Invalid request body"
    if first["type"] == "missing":
        return f"Missing required field '{field}'"
    return f"Invalid value for '{field}': {first['msg']}"


@app.exception_handler(DomainError)
async def handle_domain_error(request: Request, exc: DomainError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=error_response(exc.message))


@app.exception_handler(RequestValidationError)
async def handle_request_validation_error(request: Request, exc: RequestValidationError):
    err = ValidationError(_describe_invalid_field(exc.errors()))
    return JSONResponse(status_code=err.status_code, content=error_response(err.message))


@app.exception_handler(StarletteHTTPException)
async def handle_http_error(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content=error_response(str(exc.detail)),
        headers=exc.headers,
    )


@app.exception_handler(Exception)
async def handle_unexpected_error(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    err = InternalError("Internal server error")
    return JSONResponse(status_code=err.status_code, content=error_response(err.message))


# Health check
@app.get("/health")
def health():
    return {"status": "ok"}


# Startup event
@app.on_event("startup")
def on_startup():
    init_db()


# Include routers
app.include_router(auth_router, prefix="/auth", tags=["auth"])
app.include_router(assignments_router, tags=["assignments"])
app.include_router(submissions_router, tags=["submissions"])
