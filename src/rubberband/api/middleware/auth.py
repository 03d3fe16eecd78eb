"""JWT Bearer authentication middleware."""

import logging

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from rubberband.logging_config import bind_request_context
from rubberband.services.security import decode_access_token

logger = logging.getLogger(__name__)

_ANONYMOUS = {"sub": "anonymous", "email": ""}


class AuthMiddleware(BaseHTTPMiddleware):
    """Decode the Bearer token and attach the caller to ``request.state.user``.

    Never rejects a request itself; routes that need a session enforce it
    through the ``get_current_session`` dependency.
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        auth_header = request.headers.get("authorization", "")
        user_info = dict(_ANONYMOUS)

        if auth_header.startswith("Bearer "):
            token = auth_header[7:]
            try:
                payload = decode_access_token(token)
            except ValueError:
                user_info["_auth_error"] = "invalid_token"
            else:
                user_info = {
                    "sub": payload.get("sub", ""),
                    "email": payload.get("email", ""),
                    "role": payload.get("role", ""),
                    "access_token": token,
                }
                bind_request_context(getattr(request.state, "trace_id", "unknown"), user_id=user_info["sub"])

        request.state.user = user_info
        return await call_next(request)
