#!/usr/bin/env python3
import os
import argparse
from typing import NamedTuple
import constants

class AppConfig(NamedTuple):
    """Typed configuration object."""
    db_path: str
    host: str
    port: int
    batch_interval: int
    queue_concurrency: int
    queue_interval: float
    page_size: int
    events_enabled: bool
    event_poll_interval: float
    extra_blacklisted_tokens: list[str]
    telegram_enabled: bool
    show_stats: bool
    log_level: str
    rpc_url: str
    orders_subgraph_url: str
    price_subgraph_url: str
    core_contract_address: str | None
    telegram_bot_token: str | None
    telegram_chat_id: str | None


def load_config() -> AppConfig:
    """
    Parses command-line arguments and loads environment variables to create a configuration object.
    """
    parser = argparse.ArgumentParser(
        description="Track on-chain limit orders, enrich them with USD valuations and serve aggregate statistics.",
        epilog="Example: ./main.py --port 5000 --queue-interval 10 --events-enabled"
    )
    # --- Service Arguments ---
    parser.add_argument('--db-path', type=str, default='data/orders.db', help='SQLite database path (default: data/orders.db).')
    parser.add_argument('--host', type=str, default='0.0.0.0', help='HTTP bind address (default: 0.0.0.0).')
    parser.add_argument('--port', type=int, default=5000, help='HTTP port for the reporting API (default: 5000).')
    parser.add_argument('--log-level', type=str, default='INFO', choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'], help='Logging level (default: INFO).')

    # --- Reconciliation Arguments ---
    parser.add_argument('--batch-interval', type=int, default=constants.BATCH_INTERVAL_SECONDS, help='Seconds between full reconciliation batches (default: 3600).')
    parser.add_argument('--queue-concurrency', type=int, default=constants.QUEUE_CONCURRENCY, help='Max enrichment tasks in flight (default: 1).')
    parser.add_argument('--queue-interval', type=float, default=constants.QUEUE_INTERVAL_SECONDS, help='Minimum seconds between enrichment task starts (default: 10).')
    parser.add_argument('--page-size', type=int, default=constants.SUBGRAPH_PAGE_SIZE, help='Orders requested per subgraph page (default: 1000).')
    parser.add_argument('--blacklist-token', action='append', default=[], help='Additional token address to blacklist (repeatable).')

    # --- Live Event Arguments ---
    parser.add_argument('--events-enabled', action='store_true', help='Poll the order book contract for placed/canceled/executed events.')
    parser.add_argument('--event-poll-interval', type=float, default=constants.EVENT_POLL_INTERVAL_SECONDS, help='Seconds between event log polls (default: 15).')

    # --- Surfaces ---
    parser.add_argument('--telegram-enabled', action='store_true', help='Enable Telegram reporting commands.')
    parser.add_argument('--show-stats', action='store_true', help='Print order statistics from the local database and exit.')

    args = parser.parse_args()

    if args.queue_concurrency < 1:
        parser.error('--queue-concurrency must be at least 1.')
    if args.queue_interval < 0:
        parser.error('--queue-interval cannot be negative.')
    if args.page_size < 1:
        parser.error('--page-size must be at least 1.')

    # Load from environment
    rpc_url = os.environ.get(constants.RPC_URL_ENV_VAR) or constants.DEFAULT_RPC_URL
    orders_subgraph_url = os.environ.get(constants.ORDERS_SUBGRAPH_URL_ENV_VAR) or constants.ORDERS_SUBGRAPH_URL
    price_subgraph_url = os.environ.get(constants.PRICE_SUBGRAPH_URL_ENV_VAR) or constants.PRICE_SUBGRAPH_URL
    core_contract_address = os.environ.get(constants.CORE_CONTRACT_ADDRESS_ENV_VAR)
    telegram_bot_token = os.environ.get(constants.TELEGRAM_BOT_TOKEN_ENV_VAR)
    telegram_chat_id = os.environ.get(constants.TELEGRAM_CHAT_ID_ENV_VAR)

    if args.events_enabled and not core_contract_address:
        print(f"{constants.C_RED}Events are enabled, but {constants.CORE_CONTRACT_ADDRESS_ENV_VAR} is not set.{constants.C_RESET}")
        exit(1)

    if args.telegram_enabled and not telegram_bot_token:
        print(f"{constants.C_RED}Telegram is enabled, but {constants.TELEGRAM_BOT_TOKEN_ENV_VAR} is not set.{constants.C_RESET}")
        exit(1)

    return AppConfig(
        db_path=args.db_path,
        host=args.host,
        port=args.port,
        batch_interval=args.batch_interval,
        queue_concurrency=args.queue_concurrency,
        queue_interval=args.queue_interval,
        page_size=args.page_size,
        events_enabled=args.events_enabled,
        event_poll_interval=args.event_poll_interval,
        extra_blacklisted_tokens=[token.lower() for token in args.blacklist_token],
        telegram_enabled=args.telegram_enabled,
        show_stats=args.show_stats,
        log_level=args.log_level,
        rpc_url=rpc_url,
        orders_subgraph_url=orders_subgraph_url,
        price_subgraph_url=price_subgraph_url,
        core_contract_address=core_contract_address,
        telegram_bot_token=telegram_bot_token,
        telegram_chat_id=telegram_chat_id,
    )
