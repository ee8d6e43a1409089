"""Request context for tenancy enforcement."""

from dataclasses import dataclass
from uuid import UUID


@dataclass(frozen=True)
class RequestContext:
    """Request context containing agency and agent identity.

    Used to enforce tenancy boundaries in all database operations.
    """

    agency_id: UUID
    agent_id: UUID
