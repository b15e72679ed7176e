from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from ...application.services.account_service import AccountService
from ...core.dependencies import get_account_service
from ...domain.errors import AuthTokenError, MarketplaceError
from ...domain.models import User
from .errors import to_http_exception

_bearer_scheme = HTTPBearer(auto_error=False)


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer_scheme),
    account_service: AccountService = Depends(get_account_service),
) -> User:
    """Resolve the caller from the bearer token or answer 401."""
    try:
        if credentials is None or credentials.scheme.lower() != "bearer":
            raise AuthTokenError("No token, authorization denied")
        return account_service.authenticate_token(credentials.credentials)
    except MarketplaceError as exc:
        raise to_http_exception(exc) from exc
