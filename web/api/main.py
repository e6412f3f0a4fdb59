"""FastAPI app: composes the auth and file routers over explicitly built services."""
from __future__ import annotations

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, RedirectResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from vault.objects import ObjectStore
from vault.users import UserStore
from web.api.auth_routes import router as auth_router
from web.api.file_routes import router as file_router
from web.auth import LoginRequired, SessionCodec

logger = logging.getLogger("filevault.api")


async def _http_error(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        {"message": exc.detail},
        status_code=exc.status_code,
        headers=getattr(exc, "headers", None),
    )


async def _validation_error(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    field = ".".join(str(p) for p in errors[0]["loc"][1:]) if errors else ""
    message = f"Invalid request: {field}" if field else "Invalid request body"
    return JSONResponse({"message": message}, status_code=status.HTTP_400_BAD_REQUEST)


async def _login_required(request: Request, exc: LoginRequired):
    return RedirectResponse("/login", status_code=status.HTTP_302_FOUND)


async def _unexpected_error(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse({"message": "Internal server error"}, status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)


def create_app(users: UserStore, objects: ObjectStore, sessions: SessionCodec) -> FastAPI:
    """Build the application around the given credential store, object store and session codec."""
    app = FastAPI(title="filevault")
    app.state.users = users
    app.state.objects = objects
    app.state.sessions = sessions

    app.add_exception_handler(StarletteHTTPException, _http_error)
    app.add_exception_handler(RequestValidationError, _validation_error)
    app.add_exception_handler(LoginRequired, _login_required)
    app.add_exception_handler(Exception, _unexpected_error)

    app.include_router(auth_router)
    app.include_router(file_router)

    @app.get("/", include_in_schema=False)
    async def index():
        return RedirectResponse("/login", status_code=status.HTTP_302_FOUND)

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    return app
