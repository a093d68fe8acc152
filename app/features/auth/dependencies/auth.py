from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from app.features.auth.services.auth_service import AccountService
from app.features.auth.services.credential_store import CredentialStore
from app.platform.db.session import get_db
from app.platform.exceptions import AccountError, ErrorCode

security = HTTPBearer(auto_error=False)


async def get_account_service(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> AccountService:
    """Build the service from the request's session and the app-scoped collaborators."""
    state = request.app.state
    return AccountService(
        store=CredentialStore(db),
        hasher=state.hasher,
        issuer=state.issuer,
        mailer=state.mailer,
        settings=state.settings,
    )


async def get_current_user_id(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> str:
    """
    Dependency resolving the bearer token to a user id.

    Signature and expiry are the only checks; tokens are not stored server-side.
    """
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise AccountError(ErrorCode.UNAUTHENTICATED, "Missing token")
    return request.app.state.issuer.verify(credentials.credentials)
