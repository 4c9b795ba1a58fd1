from __future__ import annotations

from collections.abc import Generator
from functools import lru_cache
from typing import Optional

from fastapi import HTTPException, Request, status
from sqlmodel import Session
from clerk_backend_api import Clerk
from clerk_backend_api import AuthenticateRequestOptions, RequestState

from mangareader.api.v1.schemas import AuthenticatedUser
from mangareader.core.cache import ViewCache
from mangareader.core.config import get_settings

UNAUTHORIZED = "Yetkisiz erişim"


def get_db_session(request: Request) -> Generator[Session, None, None]:
    sessionmaker = request.app.state.db_sessionmaker
    session = sessionmaker()
    try:
        yield session
    finally:
        session.close()


def get_view_cache(request: Request) -> ViewCache:
    return request.app.state.view_cache


@lru_cache(maxsize=1)
def _get_clerk_client() -> Clerk:
    settings = get_settings()
    if not settings.clerk_secret_key:
        raise RuntimeError("CLERK_SECRET_KEY not configured")
    return Clerk(bearer_auth=settings.clerk_secret_key)


def get_current_user(request: Request) -> AuthenticatedUser:
    """Validate a Clerk-issued JWT from the Authorization header and return the user.

    Any signed-in user is accepted; there is no role check.
    """
    settings = get_settings()

    # Local development: allow mock authentication
    if settings.app_env == "development" and request.headers.get("X-Mock-Auth"):
        mock_user_id = request.headers.get("X-Mock-User-ID", "user_test_123")
        mock_email = request.headers.get("X-Mock-Email", "test@example.com")
        return AuthenticatedUser(user_id=mock_user_id, email=mock_email)

    if not request.headers.get("authorization"):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=UNAUTHORIZED)

    clerk = _get_clerk_client()
    try:
        request_state: RequestState = clerk.authenticate_request(
            request,
            AuthenticateRequestOptions(authorized_parties=settings.authorized_parties),
        )
    except Exception:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=UNAUTHORIZED)

    if not request_state.is_signed_in:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=UNAUTHORIZED)

    claims = request_state.payload or {}
    user_id: Optional[str] = claims.get("sub")
    if not user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=UNAUTHORIZED)

    return AuthenticatedUser(user_id=user_id, email=claims.get("email"))
