"""Bearer token verification.

AgencyFlow does not issue tokens. It checks signature, audience and issuer,
then exposes ``sub`` and ``role`` on ``request.state.user``. Rejection of
unauthenticated callers happens in ``get_current_actor``.
"""

import logging

from jose import JWTError, jwt
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from agencyflow.config import settings
from agencyflow.logging_config import bind_request_context

logger = logging.getLogger(__name__)

OPEN_PATH_PREFIXES = ("/api/v1/health", "/docs", "/redoc", "/openapi.json")


def anonymous(error: str | None = None) -> dict:
    caller = {"sub": "anonymous", "role": None}
    if error:
        caller["_auth_error"] = error
    return caller


def decode_token(token: str) -> dict:
    """Verified claims of ``token``; ``ValueError`` when it does not check out."""
    try:
        return jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            audience=settings.jwt_audience,
            issuer=settings.jwt_issuer,
        )
    except JWTError as exc:
        logger.debug("rejected bearer token: %s", exc)
        raise ValueError(str(exc)) from exc


def role_from_claims(claims: dict) -> str | None:
    """``role`` claim, falling back to the first entry of ``roles``."""
    if claims.get("role"):
        return claims["role"]
    return next(iter(claims.get("roles") or ()), None)


def caller_from_header(header: str) -> dict:
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token:
        return anonymous()
    try:
        claims = decode_token(token.strip())
    except ValueError:
        return anonymous("invalid_token")
    if claims.get("type") == "refresh":
        return anonymous("not_access_token")
    return {"sub": claims.get("sub", ""), "role": role_from_claims(claims)}


class AuthMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if request.url.path.startswith(OPEN_PATH_PREFIXES):
            request.state.user = anonymous()
            return await call_next(request)

        caller = caller_from_header(request.headers.get("authorization", ""))
        request.state.user = caller
        if caller["sub"] != "anonymous":
            bind_request_context(getattr(request.state, "trace_id", "unknown"), caller["sub"], caller["role"])
        return await call_next(request)
