"""Bearer-token authentication middleware.

Requests to protected paths must carry ``Authorization: Bearer <access token>``.
The token is verified, checked against the revocation store, and the resolved
identity is placed on ``request.state`` for handlers:

    request.state.principal   AuthenticatedPrincipal
    request.state.account_id  UUID
    request.state.device_id   UUID
    request.state.token_id    UUID

Any failure short-circuits with 401 before application code runs.
"""

import logging

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import JSONResponse

from tokengate.services.authenticator import RequestAuthenticator
from tokengate.services.errors import (
    InvalidAccessTokenError,
    InvalidTokenTypeError,
    MissingAuthorizationHeaderError,
    RevocationStoreError,
)

logger = logging.getLogger(__name__)

# Path prefixes that require a bearer access token (exact or segment-boundary match)
PROTECTED_PREFIXES = [
    "/account",
]

# Individual routes outside the protected prefixes that also require a token
PROTECTED_PATHS = [
    "/auth/account/unauthorization",
]


def is_protected_path(path: str) -> bool:
    if path in PROTECTED_PATHS:
        return True
    return any(path == prefix or path.startswith(prefix + "/") for prefix in PROTECTED_PREFIXES)


def _unauthorized(detail: str) -> JSONResponse:
    return JSONResponse(
        status_code=401,
        content={"detail": detail},
        headers={"WWW-Authenticate": "Bearer"},
    )


class BearerAuthMiddleware(BaseHTTPMiddleware):
    """Authenticate protected requests with a bearer access token.

    The RequestAuthenticator is read from ``app.state.authenticator``, which
    create_app() sets once at startup.
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        path = request.url.path

        # CORS preflight never carries credentials
        if request.method == "OPTIONS":
            return await call_next(request)

        if not is_protected_path(path):
            return await call_next(request)

        authenticator: RequestAuthenticator = request.app.state.authenticator

        try:
            principal = await authenticator.authenticate(request.headers.get("Authorization"))
        except MissingAuthorizationHeaderError as e:
            logger.info(f"Request without token: {request.method} {path}")
            return _unauthorized(str(e))
        except InvalidTokenTypeError as e:
            logger.warning(f"Wrong token type for: {request.method} {path}")
            return _unauthorized(str(e))
        except InvalidAccessTokenError as e:
            # Specific cause is logged by the codec; clients only see the generic message
            logger.info(f"Invalid token for: {request.method} {path} - {e}")
            return _unauthorized(InvalidAccessTokenError.message)
        except RevocationStoreError:
            logger.exception(f"Revocation check failed for: {request.method} {path}")
            return JSONResponse(
                status_code=500,
                content={"detail": "Unable to verify token revocation status"},
            )

        request.state.principal = principal
        request.state.account_id = principal.account_id
        request.state.device_id = principal.device_id
        request.state.token_id = principal.token_id
        return await call_next(request)
