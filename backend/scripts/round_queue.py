"""Inspect or maintain the shared round queue.

Usage:
    python round_queue.py            # Show queue length and the next rounds
    python round_queue.py --fill     # Refill the queue to its target size now
    python round_queue.py --clear    # Drop every buffered round
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

_backend_dir = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(_backend_dir))
sys.path.insert(0, str(_backend_dir / "api"))

from core.cache_tier import RedisManager
from core.config import get_settings
from core.dependencies import build_round_dispenser
from services import PokeAPIClient

logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")


async def main(args: argparse.Namespace) -> None:
    settings = get_settings()
    redis_manager = RedisManager(settings.redis_url)
    await redis_manager.connect()
    client = PokeAPIClient(settings.pokeapi_base_url, settings.pokeapi_timeout)

    try:
        dispenser = build_round_dispenser(redis_manager.client, client, settings)
        queue = dispenser.queue

        if args.clear:
            await queue.clear()
            print("Round queue cleared.")
        elif args.fill:
            added = await dispenser.refiller.refill()
            print(f"Added {added} round(s).")

        length = await queue.length()
        print(f"Queue length: {length}/{settings.round_queue_target}")
        for raw in await redis_manager.client.lrange(queue.key, 0, args.show - 1):
            entry = json.loads(raw)
            print(f"  #{entry['id']:<4} {entry['name']}")
    finally:
        await client.close()
        await redis_manager.disconnect()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    group = parser.add_mutually_exclusive_group()
    group.add_argument("--fill", action="store_true", help="refill to the target size")
    group.add_argument("--clear", action="store_true", help="drop every buffered round")
    parser.add_argument("--show", type=int, default=5, help="rounds to list (default 5)")
    asyncio.run(main(parser.parse_args()))
