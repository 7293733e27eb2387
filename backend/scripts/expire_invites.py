"""Flip pending invites past their expiry to EXPIRED.

Expiry is otherwise applied lazily when an invite is read; run this from
cron or by hand to tidy the table:

    python scripts/expire_invites.py
"""

import asyncio
import logging

from availability.database import AsyncSessionLocal, engine
from availability.invites.service import expire_stale_invites

logger = logging.getLogger("availability.scripts.expire_invites")


async def main() -> int:
    async with AsyncSessionLocal() as session:
        count = await expire_stale_invites(session)
    await engine.dispose()
    return count


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    expired = asyncio.run(main())
    logger.info("Done, %d invites expired", expired)
