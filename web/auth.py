"""Session cookie signing and the login gate for protected routes."""
from __future__ import annotations

import jwt
from fastapi import Request, Response
from pydantic import BaseModel, StrictBool, ValidationError

SESSION_ALGORITHM = "HS256"


class Session(BaseModel):
    """Payload carried in the signed session cookie."""

    authenticated: StrictBool = False
    username: str = ""


class LoginRequired(Exception):
    """Raised by require_session; the app turns it into a redirect to /login."""


class SessionCodec:
    """Signs and verifies the session cookie. No server-side session storage."""

    def __init__(
        self,
        secret: str,
        cookie_name: str = "session",
        secure: bool = False,
        samesite: str = "lax",
    ):
        self._secret = secret
        self.cookie_name = cookie_name
        self.secure = secure
        self.samesite = samesite

    def encode(self, session: Session) -> str:
        return jwt.encode(session.model_dump(), self._secret, algorithm=SESSION_ALGORITHM)

    def decode(self, token: str) -> Session:
        """Decode a cookie value. Anything unsigned, tampered or malformed is an anonymous session."""
        try:
            payload = jwt.decode(token, self._secret, algorithms=[SESSION_ALGORITHM])
            return Session.model_validate(payload)
        except (jwt.InvalidTokenError, ValidationError):
            return Session()

    def read(self, request: Request) -> Session:
        token = request.cookies.get(self.cookie_name)
        if not token:
            return Session()
        return self.decode(token)

    def write(self, response: Response, session: Session) -> None:
        # No max_age: the cookie lives for the browser session only
        response.set_cookie(
            self.cookie_name,
            self.encode(session),
            httponly=True,
            secure=self.secure,
            samesite=self.samesite,
            path="/",
        )


def get_session_codec(request: Request) -> SessionCodec:
    return request.app.state.sessions


def get_session(request: Request) -> Session:
    """Return the caller's session, authenticated or not."""
    return get_session_codec(request).read(request)


def require_session(request: Request) -> Session:
    """Dependency: require a logged-in session. Redirects to /login otherwise."""
    session = get_session(request)
    if session.authenticated is not True:
        raise LoginRequired()
    return session
