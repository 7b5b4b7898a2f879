# api/deps.py
# The request-level auth guard shared by every protected endpoint.

import logging
from typing import Optional
from uuid import UUID

from fastapi import Depends, Request, WebSocket
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.core.errors import Unauthenticated
from app.core.security import decode_access_token

# auto_error is off so a missing header becomes our own Unauthenticated error
bearer_scheme = HTTPBearer(auto_error=False)

logger = logging.getLogger(__name__)


async def get_current_user_id(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> UUID:
    """
    Verifies the bearer token and returns the identity it carries.

    The identity is also attached to ``request.state.user_id`` so middleware
    can see who made the request. No database lookup happens here.
    """
    if credentials is None or not credentials.credentials:
        logger.debug(f"No token on {request.method} {request.url.path}")
        raise Unauthenticated()

    user_id = decode_access_token(credentials.credentials)
    request.state.user_id = user_id
    return user_id


def get_websocket_user_id(websocket: WebSocket) -> Optional[UUID]:
    """
    Identity for the real-time endpoint, taken from the ``token`` query
    parameter. Returns None for anonymous clients; raises InvalidToken for a
    token that does not verify.
    """
    token = websocket.query_params.get("token")
    if not token:
        return None
    return decode_access_token(token)
