"""Delete tenders sharing a title, keeping the earliest created one."""

import asyncio

from bms.core.settings import get_settings
from bms.scripts import script_session
from bms.services.maintenance import clear_duplicates
from bms.storage import DocumentStorage


async def main():
    async with script_session() as db:
        deleted = await clear_duplicates(db, DocumentStorage(get_settings()))
    print(f"Deleted {deleted} duplicate tender(s)")


def run():
    asyncio.run(main())


if __name__ == "__main__":
    run()
