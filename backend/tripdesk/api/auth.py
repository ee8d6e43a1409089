"""Minimal auth dependency.

Stub implementation that extracts agency_id/agent_id from a bearer token or
uses development defaults. Real token validation is handled by the gateway
in front of this service.
"""

import uuid
from typing import Annotated

from fastapi import Header, HTTPException, status

from backend.tripdesk.db.context import RequestContext

DEFAULT_AGENCY_ID = uuid.UUID("00000000-0000-0000-0000-000000000001")
DEFAULT_AGENT_ID = uuid.UUID("00000000-0000-0000-0000-000000000002")


async def get_current_context(
    authorization: Annotated[str | None, Header()] = None,
) -> RequestContext:
    """Extract request context from authorization header.

    Accepts either:
    - a simple "Bearer <agency_id>:<agent_id>" token
    - no header at all, which maps to the development agency and agent

    Args:
        authorization: Authorization header (e.g., "Bearer <token>")

    Returns:
        RequestContext with agency_id and agent_id

    Raises:
        HTTPException: If authorization is invalid
    """
    if not authorization:
        return RequestContext(agency_id=DEFAULT_AGENCY_ID, agent_id=DEFAULT_AGENT_ID)

    if not authorization.startswith("Bearer "):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authorization header format",
            headers={"WWW-Authenticate": "Bearer"},
        )

    token = authorization[7:]  # Strip "Bearer "

    if ":" in token:
        try:
            agency_id_str, agent_id_str = token.split(":", 1)
            return RequestContext(
                agency_id=uuid.UUID(agency_id_str),
                agent_id=uuid.UUID(agent_id_str),
            )
        except (ValueError, AttributeError) as e:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid token format (expected agency_id:agent_id)",
                headers={"WWW-Authenticate": "Bearer"},
            ) from e

    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid bearer token (expected agency_id:agent_id)",
        headers={"WWW-Authenticate": "Bearer"},
    )
