"""Seed the demo accounts (admin, senior_bidder, finance_manager)."""

import asyncio

from bms.auth import seed_users_if_missing
from bms.scripts import script_session


async def main():
    async with script_session() as db:
        created = await seed_users_if_missing(db)
    print("Seeded users:", created)


def run():
    asyncio.run(main())


if __name__ == "__main__":
    run()
