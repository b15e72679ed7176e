from fastapi import HTTPException

from ...domain.errors import AuthTokenError, MarketplaceError


def to_http_exception(exc: MarketplaceError) -> HTTPException:
    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, AuthTokenError) else None
    return HTTPException(status_code=exc.status_code, detail=exc.to_detail(), headers=headers)
