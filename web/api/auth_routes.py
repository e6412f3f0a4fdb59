"""Auth API routes: register, login, logout."""
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse, RedirectResponse
from pydantic import BaseModel

from vault.errors import StorageError, UserExists
from vault.models.user import USERNAME_MAX_LENGTH
from vault.users import UserStore
from web.auth import Session, SessionCodec, get_session_codec, require_session

logger = logging.getLogger("filevault.auth")

router = APIRouter(tags=["auth"])

# Same message for unknown user and wrong password so usernames can't be enumerated
LOGIN_FAILED = "Invalid username or password"


class Credentials(BaseModel):
    username: str
    password: str


def get_user_store(request: Request) -> UserStore:
    return request.app.state.users


@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(body: Credentials, users: UserStore = Depends(get_user_store)):
    """Create an account."""
    if not body.username or not body.password:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, "Username and password must not be empty")
    if len(body.username) > USERNAME_MAX_LENGTH:
        raise HTTPException(
            status.HTTP_400_BAD_REQUEST,
            f"Username must be at most {USERNAME_MAX_LENGTH} characters",
        )
    try:
        await users.create_user(body.username, body.password)
    except UserExists:
        raise HTTPException(status.HTTP_409_CONFLICT, "User already exists")
    except StorageError:
        logger.exception("Registration failed for %s", body.username)
        raise HTTPException(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error")
    logger.info("Registered user %s", body.username)
    return {"message": "User registered successfully"}


@router.post("/login")
async def login(
    body: Credentials,
    users: UserStore = Depends(get_user_store),
    sessions: SessionCodec = Depends(get_session_codec),
):
    """Check credentials and set the signed session cookie."""
    try:
        user = await users.authenticate(body.username, body.password)
    except StorageError:
        logger.exception("Login lookup failed for %s", body.username)
        raise HTTPException(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error")
    if not user:
        logger.info("Failed login for %s", body.username)
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, LOGIN_FAILED)

    response = JSONResponse({"message": "Login successful", "username": user.username})
    sessions.write(response, Session(authenticated=True, username=user.username))
    logger.info("User %s logged in", user.username)
    return response


@router.post("/logout")
async def logout(
    session: Session = Depends(require_session),
    sessions: SessionCodec = Depends(get_session_codec),
):
    """Clear the authenticated flag and send the browser back to the login page."""
    response = RedirectResponse("/login", status_code=status.HTTP_302_FOUND)
    sessions.write(response, Session(authenticated=False, username=session.username))
    logger.info("User %s logged out", session.username)
    return response
