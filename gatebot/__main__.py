"""Entry point for running the gateway via python -m gatebot"""

import asyncio

from gatebot.runtime import main

if __name__ == "__main__":
    asyncio.run(main())
