from typing import Awaitable, Callable, Optional
from fastapi import Request, status
from starlette.middleware.base import BaseHTTPMiddleware
from vexa.auth.dependencies import Principal
from vexa.common.utils import build_error, json_error
from vexa.middlewares.constants import logger

PrincipalResolver = Callable[[Request], Awaitable[Optional[Principal]]]


class PrincipalMiddleware(BaseHTTPMiddleware):
    """Puts the caller's Principal (or None) on request.state.

    Token handling belongs to the authentication collaborator; it plugs in through `resolver`.
    A resolver error is answered with 401, an anonymous caller simply gets no principal.
    """

    def __init__(self, app, *, resolver: PrincipalResolver):
        super().__init__(app)
        self.resolver = resolver

    async def dispatch(self, request: Request, call_next):
        try:
            principal = await self.resolver(request)
        except Exception as e:
            logger.warning("auth.principal.resolve_failed", extra={
                "reason": str(e),
                "path": request.url.path,
                "method": request.method,
            })
            payload = build_error(code="INVALID_AUTH", details={"message": "Missing or Invalid Auth Headers"})
            return json_error(payload, status_code=status.HTTP_401_UNAUTHORIZED)

        request.state.principal = principal
        if principal is not None:
            logger.debug("auth.principal.resolved", extra={"user_id": principal.user_id, "path": request.url.path})
        return await call_next(request)
