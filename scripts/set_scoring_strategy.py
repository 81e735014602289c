#!/usr/bin/env python3
"""Set the scoring strategy for a tenant (or the GLOBAL default).

Usage:
    python scripts/set_scoring_strategy.py <strategy> [--tenant CLIENT_ID]
    python scripts/set_scoring_strategy.py tiered_multi_keyword --tenant acme
    python scripts/set_scoring_strategy.py --list

Strategies:
- all_or_nothing: 100% when every keyword is found, otherwise the semantic score
- tiered_multi_keyword: coverage tiers blending keyword quality with semantic similarity

Running ranking processes pick the change up when their config cache expires.
"""

import argparse
import asyncio
import logging
import sys

from dotenv import load_dotenv

from hybrid_ranking.errors import ConfigurationError
from hybrid_ranking.models import GLOBAL_CLIENT_ID, ConfigTypeEnum
from hybrid_ranking.ranking.config import STRATEGY_KEY
from hybrid_ranking.resources import ClientConfigResource
from hybrid_ranking.scoring.strategies import available_strategies, parse_strategy

load_dotenv()
logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")
log = logging.getLogger(__name__)


async def show_current(store: ClientConfigResource, tenant: str) -> None:
    settings = await store.get_settings(tenant)
    log.info("Effective strategy for %s: %s", tenant, settings.get(STRATEGY_KEY, "(default)"))


async def set_strategy(store: ClientConfigResource, tenant: str, strategy_name: str) -> None:
    strategy = parse_strategy(strategy_name)
    await store.upsert_config(
        STRATEGY_KEY,
        strategy.value,
        client_id=tenant,
        config_type=ConfigTypeEnum.STRING,
        description="Scoring strategy for hybrid search",
    )
    log.info("Set %s=%s for %s", STRATEGY_KEY, strategy.value, tenant)


def main() -> None:
    parser = argparse.ArgumentParser(description="Set a tenant's scoring strategy")
    parser.add_argument("strategy", nargs="?", help=f"One of {available_strategies()}")
    parser.add_argument("--tenant", default=GLOBAL_CLIENT_ID, help="Client id (default GLOBAL)")
    parser.add_argument("--list", action="store_true", help="List available strategies")
    args = parser.parse_args()

    if args.list:
        for name in available_strategies():
            print(name)
        return

    store = ClientConfigResource()
    if not args.strategy:
        asyncio.run(show_current(store, args.tenant))
        return

    try:
        asyncio.run(set_strategy(store, args.tenant, args.strategy))
    except ConfigurationError as exc:
        log.error("%s", exc)
        sys.exit(1)


if __name__ == "__main__":
    main()
