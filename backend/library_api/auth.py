"""FastAPI security dependency for bearer-token authentication.

`get_current_admission_number` pulls the bearer credential from the
request, verifies it with the application's `TokenService` and returns the
admission number it was issued for. Failures raise the token errors from
`errors.py`; the exception handlers in `main.py` turn all of them into a
401 response while the log keeps the precise reason.
"""

import logging
from typing import Optional

from fastapi import Request, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from .errors import TokenMissingError, UnauthenticatedError
from .tokens import TokenService

logger = logging.getLogger("library_api.auth")

bearer_scheme = HTTPBearer(auto_error=False)


def get_token_service(request: Request) -> TokenService:
    return request.app.state.tokens


def get_current_admission_number(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Security(bearer_scheme),
) -> str:
    """FastAPI dependency that returns the authenticated admission number.

    A missing header and a non-bearer scheme are both treated as no token.
    """
    if credentials is None:
        logger.info("auth_rejected reason=missing path=%s", request.url.path)
        raise TokenMissingError("No token, authorization denied")
    try:
        return get_token_service(request).verify(credentials.credentials)
    except UnauthenticatedError as exc:
        logger.info("auth_rejected reason=%s path=%s", exc.reason, request.url.path)
        raise
