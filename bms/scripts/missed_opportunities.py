"""Run the missed-opportunity sweep once."""

import asyncio

from bms.scripts import script_session
from bms.services.maintenance import process_missed_opportunities


async def main():
    async with script_session() as db:
        missed = await process_missed_opportunities(db)
    for m in missed:
        print(f"  - {m['title']} ({m['organization']}), deadline {m['deadline']}")
    print(f"Moved {len(missed)} tender(s) to missed opportunities")


def run():
    asyncio.run(main())


if __name__ == "__main__":
    run()
