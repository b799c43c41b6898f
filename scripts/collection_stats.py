"""
Print the stats of one OpenSea collection.

Usage:
    python -m scripts.collection_stats <slug>
"""

import asyncio
import json
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from dotenv import load_dotenv
load_dotenv()

from opensea_wrapper.core.config import settings
from opensea_wrapper.core.console import ConsoleOutput, configure_logging
from opensea_wrapper.services.client import OpenSea


async def main():
    configure_logging(settings)
    console = ConsoleOutput()

    if len(sys.argv) != 2:
        console.error("Usage: python -m scripts.collection_stats <slug>")
        raise SystemExit(1)

    slug = sys.argv[1]
    async with OpenSea(console=console, persist_methods=[]) as opensea:
        stats = await opensea.collection_stats(slug)

    console.info(f"📊 {slug}")
    print(json.dumps(stats, indent=2, ensure_ascii=False))


if __name__ == "__main__":
    asyncio.run(main())
