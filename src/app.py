"""Main FastAPI application module.

This module initializes the FastAPI application, registers the error
handlers that give every failure a ``{"success": false, "message": ...}``
body, and mounts the route handlers.
"""

import logging
from datetime import datetime

import pytz
from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.routes import auth
from config import ADMIN_EMAIL, ADMIN_PASSWORD, API_HOST, API_PORT, CORS_ALLOWED_ORIGINS
from core.exceptions import AuthError, NotAuthenticatedError
from core.logging_config import setup_logging

logger = logging.getLogger(__name__)

API_VERSION = "1.0.0"

# Setup logging
setup_logging()

# Initialize FastAPI application
app = FastAPI(
    title="Community Site API",
    description="Backend API for the community website and its admin dashboard.",
    version=API_VERSION,
)

# Configure CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register route handlers
app.include_router(auth.router)


def _error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "message": message},
    )


@app.exception_handler(AuthError)
def handle_auth_error(request: Request, exc: AuthError) -> JSONResponse:
    if isinstance(exc, NotAuthenticatedError):
        logger.error("%s %s ran without an authenticated identity", request.method, request.url.path)
    return _error_response(exc.status_code, exc.message)


@app.exception_handler(RequestValidationError)
def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    messages = []
    for error in exc.errors():
        field = ".".join(str(part) for part in error.get("loc", ())[1:])
        messages.append(f"{field}: {error.get('msg')}" if field else error.get("msg"))
    return _error_response(status.HTTP_400_BAD_REQUEST, ". ".join(messages) or "Invalid input")


@app.exception_handler(StarletteHTTPException)
def handle_http_exception(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    message = exc.detail if isinstance(exc.detail, str) else jsonable_encoder(exc.detail)
    if exc.status_code == status.HTTP_404_NOT_FOUND and exc.detail == "Not Found":
        message = f"Route {request.url.path} not found"
    return _error_response(exc.status_code, message)


@app.exception_handler(Exception)
def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return _error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR, "Something went wrong. Please try again."
    )


@app.on_event("startup")
def startup_tasks() -> None:
    """Create tables and the bootstrap admin account."""
    from core.database import SessionLocal, init_db
    from core.dependencies import get_email_sender, get_token_issuer
    from utils.user_manager import UserManager

    init_db()
    if ADMIN_EMAIL and ADMIN_PASSWORD:
        db = SessionLocal()
        try:
            UserManager(db, get_token_issuer(), get_email_sender()).ensure_admin(
                ADMIN_EMAIL, ADMIN_PASSWORD
            )
        finally:
            db.close()


@app.get("/", summary="API root", tags=["Info"])
def root() -> dict:
    """API root path, returns API info and documentation links."""
    return {
        "success": True,
        "name": "Community Site API",
        "version": API_VERSION,
        "docs": {
            "swagger": "/docs",
            "redoc": "/redoc",
        },
        "health": "/api/health",
    }


@app.get("/api/health", summary="Health check", tags=["Health"])
def health() -> dict:
    """Health check endpoint.

    Returns:
        Dictionary with status "ok" and the server time.
    """
    return {
        "success": True,
        "status": "ok",
        "timestamp": datetime.now(pytz.utc).isoformat(),
    }


# --- Startup code for direct execution ---
if __name__ == "__main__":
    import uvicorn

    server_url = f"http://{API_HOST}:{API_PORT}"
    logger.info("Serving on %s (docs at %s/docs)", server_url, server_url)
    uvicorn.run("app:app", host=API_HOST, port=API_PORT, reload=True)
