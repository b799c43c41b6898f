"""
Crawl OpenSea events into opensea_events.

Usage:
    python -m scripts.crawl_events --contract 0x... [--token-id N] [--all | --max-requests N]
        [--sleep S] [--occurred-after VALUE] [--key created_date]

Steps:
    1. Crawl /api/v1/events page by page
    2. Store every new event (OPENSEA_PERSIST_METHODS must list "events")
    3. Print what was stored
"""

import asyncio
import sys
from datetime import datetime
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from dotenv import load_dotenv
load_dotenv()

from opensea_wrapper.core.config import settings
from opensea_wrapper.core.console import ConsoleOutput, configure_logging
from opensea_wrapper.db.session import get_session_factory
from opensea_wrapper.services.client import OpenSea
from opensea_wrapper.services.ingestion import EventIngestor
from opensea_wrapper.services.notifier import EventAddedNotifier


def parse_args(args: list) -> dict:
    options = {
        "params": {},
        "crawl": 5,
        "sleep": 0.0,
        "occurred_after": None,
        "key": "created_date",
    }
    i = 0
    while i < len(args):
        flag = args[i]
        value = args[i + 1] if i + 1 < len(args) else None
        if flag == "--all":
            options["crawl"] = "all"
            i += 1
            continue
        if value is None:
            raise SystemExit(f"Missing value for {flag}")
        if flag == "--contract":
            options["params"]["asset_contract_address"] = value
        elif flag == "--token-id":
            options["params"]["token_id"] = value
        elif flag == "--collection":
            options["params"]["collection_slug"] = value
        elif flag == "--event-type":
            options["params"]["event_type"] = value
        elif flag == "--max-requests":
            options["crawl"] = int(value)
        elif flag == "--sleep":
            options["sleep"] = float(value)
        elif flag == "--occurred-after":
            options["occurred_after"] = value
        elif flag == "--key":
            options["key"] = value
        else:
            raise SystemExit(f"Unknown option {flag}")
        i += 2
    return options


async def main():
    configure_logging(settings)
    console = ConsoleOutput()
    options = parse_args(sys.argv[1:])

    params = dict(options["params"])
    if options["occurred_after"]:
        params["occurred_after"] = {"key": options["key"], "value": options["occurred_after"]}

    console.info(f"🚀 Crawling events {options['params']} (crawl: {options['crawl']})")
    console.info(f"⏰ {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")

    stored = []
    notifier = EventAddedNotifier()
    notifier.subscribe(stored.append)
    ingestor = EventIngestor(get_session_factory(), notifier, console)

    async with OpenSea(ingestor=ingestor, console=console) as opensea:
        result = await opensea.events(params, crawl=options["crawl"], sleep=options["sleep"])

    crawled = result["asset_events"]
    console.info(f"🎉 {len(crawled)} events crawled, {len(stored)} new events stored")
    for event in stored[:10]:
        console.info(f"   - #{event.event_id} {event.event_type} {event.asset_contract_address}/{event.token_id}")
    if len(stored) > 10:
        console.info(f"   ... {len(stored) - 10} more")


if __name__ == "__main__":
    asyncio.run(main())
