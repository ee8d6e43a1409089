"""Dev seeding helper for stub authentication."""

import asyncio
import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.tripdesk.api.auth import DEFAULT_AGENCY_ID, DEFAULT_AGENT_ID
from backend.tripdesk.db.engine import get_async_engine
from backend.tripdesk.db.models import Agency, Agent

DEV_AGENCY_ID: uuid.UUID = DEFAULT_AGENCY_ID
DEV_AGENT_ID: uuid.UUID = DEFAULT_AGENT_ID


async def seed_dev_agency_and_agent(session: AsyncSession) -> None:
    """Seed the dev agency and agent used when no bearer token is sent.

    Idempotent - safe to run multiple times.
    """
    agency = (
        await session.execute(select(Agency).where(Agency.agency_id == DEV_AGENCY_ID))
    ).scalar_one_or_none()
    if agency is None:
        print(f"Creating dev agency with id {DEV_AGENCY_ID}...")
        session.add(Agency(agency_id=DEV_AGENCY_ID, name="Dev Agency"))
    else:
        print(f"Dev agency already exists: {agency.name}")

    agent = (
        await session.execute(select(Agent).where(Agent.agent_id == DEV_AGENT_ID))
    ).scalar_one_or_none()
    if agent is None:
        print(f"Creating dev agent with id {DEV_AGENT_ID}...")
        session.add(Agent(agent_id=DEV_AGENT_ID, agency_id=DEV_AGENCY_ID, email="dev@example.com"))
    else:
        print(f"Dev agent already exists: {agent.email}")

    await session.commit()
    print("Dev seeding complete")


async def main() -> None:
    async with AsyncSession(get_async_engine()) as session:
        await seed_dev_agency_and_agent(session)


if __name__ == "__main__":
    asyncio.run(main())
