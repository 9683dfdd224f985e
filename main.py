#!/usr/bin/env python3
import asyncio
import logging
import time

import aiohttp
from aiohttp import web
from telegram import BotCommand
from telegram.ext import Application, CommandHandler, filters
from telegram.error import TimedOut, TelegramError

import constants
from config import AppConfig, load_config
from api.app import create_app
from bot.handlers import (
    help_command,
    status_command,
    stats_command,
    leaderboard_command,
    queue_command,
)
from enrichment import (
    BlacklistRegistry,
    OrderSnapshotMerger,
    RateLimitedQueue,
    ValuationResolver,
)
from enrichment.events import LiveEventAdapter
from reconciler import OrderReconciler
from reports.order_stats import OrderStats, OrderStatsBuilder
from services.chain_events import ChainEventListener
from services.price_client import SubgraphPriceClient
from services.subgraph_client import SubgraphOrderClient
from services.token_metadata import TokenMetadataClient
from storage import SQLiteRepository


async def build_blacklist(config: AppConfig, repository: SQLiteRepository) -> BlacklistRegistry:
    """Seed tokens plus any passed on the command line, then persisted order suppressions."""
    blacklist = BlacklistRegistry()
    for token in config.extra_blacklisted_tokens:
        blacklist.blacklist_token(token)
    await blacklist.load(repository)
    return blacklist


async def start_telegram(config: AppConfig, bot_data: dict) -> Application:
    application = Application.builder().token(config.telegram_bot_token).build()
    application.bot_data.update(bot_data)

    # Only answer in the configured chat when one is set
    chat_filter = filters.Chat(chat_id=int(config.telegram_chat_id)) if config.telegram_chat_id else None
    application.add_handler(CommandHandler("start", help_command, filters=chat_filter))
    application.add_handler(CommandHandler("help", help_command, filters=chat_filter))
    application.add_handler(CommandHandler("status", status_command, filters=chat_filter))
    application.add_handler(CommandHandler("stats", stats_command, filters=chat_filter))
    application.add_handler(CommandHandler("leaderboard", leaderboard_command, filters=chat_filter))
    application.add_handler(CommandHandler("queue", queue_command, filters=chat_filter))

    await application.initialize()
    commands = [
        BotCommand("status", "Check service status"),
        BotCommand("stats", "Aggregate order statistics"),
        BotCommand("leaderboard", "Top executed orders"),
        BotCommand("queue", "Enrichment queue state"),
        BotCommand("help", "Show help message"),
    ]
    try:
        await application.bot.set_my_commands(commands)
    except (TimedOut, TelegramError) as exc:
        print(
            f"{constants.C_YELLOW}Warning: unable to set Telegram bot commands ({exc})."
            f" Continuing startup without updating commands.{constants.C_RESET}"
        )
    await application.start()
    await application.updater.start_polling()
    return application


async def stop_telegram(application: Application) -> None:
    await application.updater.stop()
    await application.stop()
    await application.shutdown()


async def run_service(config: AppConfig) -> None:
    """Wire clients, the enrichment pipeline and the API, then run until cancelled."""
    session = aiohttp.ClientSession(headers={'User-Agent': 'LimitOrderStats/1.0'})
    repository = SQLiteRepository(config.db_path)
    runner: web.AppRunner | None = None
    telegram_app: Application | None = None
    tasks: list[asyncio.Task] = []

    try:
        blacklist = await build_blacklist(config, repository)
        order_client = SubgraphOrderClient(session, url=config.orders_subgraph_url, page_size=config.page_size)
        price_client = SubgraphPriceClient(session, url=config.price_subgraph_url)
        token_metadata = TokenMetadataClient(config.rpc_url)
        resolver = ValuationResolver(price_client, token_metadata, blacklist)
        merger = OrderSnapshotMerger(repository, resolver, blacklist)
        queue = RateLimitedQueue(concurrent=config.queue_concurrency, interval=config.queue_interval)
        reconciler = OrderReconciler(
            order_client,
            repository,
            merger,
            queue,
            blacklist,
            batch_interval=config.batch_interval,
        )
        stats_builder = OrderStatsBuilder(repository=repository, blacklist=blacklist)

        app = create_app(
            repository=repository,
            reconciler=reconciler,
            stats_builder=stats_builder,
            blacklist=blacklist,
        )
        runner = web.AppRunner(app)
        await runner.setup()
        site = web.TCPSite(runner, config.host, config.port)
        await site.start()
        print(f"{constants.C_GREEN}Reporting API listening on http://{config.host}:{config.port}{constants.C_RESET}")

        reconciler_task = asyncio.create_task(reconciler.start())
        tasks.append(reconciler_task)

        if config.events_enabled:
            adapter = LiveEventAdapter(repository, merger, resync=reconciler.schedule_batch)
            listener = ChainEventListener(
                adapter,
                contract_address=config.core_contract_address,
                web3=token_metadata.web3,
                poll_interval=config.event_poll_interval,
            )
            tasks.append(asyncio.create_task(listener.start()))
            print("Live order event listener started.")

        if config.telegram_enabled:
            try:
                telegram_app = await start_telegram(
                    config,
                    {
                        'config': config,
                        'start_time': time.time(),
                        'reconciler': reconciler,
                        'reconciler_task': reconciler_task,
                        'stats_builder': stats_builder,
                    },
                )
                print("Telegram bot started.")
            except TelegramError as exc:
                print(f"{constants.C_RED}Failed to start Telegram bot: {exc}. Continuing without it.{constants.C_RESET}")
        else:
            print("Telegram is not configured. The application will run in API-only mode.")

        await asyncio.Event().wait()
    finally:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        if telegram_app is not None:
            await stop_telegram(telegram_app)
        if runner is not None:
            await runner.cleanup()
        await session.close()
        await repository.close()


async def load_stats(config: AppConfig) -> OrderStats:
    repository = SQLiteRepository(config.db_path)
    try:
        blacklist = await build_blacklist(config, repository)
        return await OrderStatsBuilder(repository=repository, blacklist=blacklist).build()
    finally:
        await repository.close()


def main() -> None:
    """The main synchronous entry point for the application."""
    config = load_config()
    logging.basicConfig(
        level=getattr(logging, config.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if config.show_stats:
        _print_stats(asyncio.run(load_stats(config)))
        return

    try:
        asyncio.run(run_service(config))
    except KeyboardInterrupt:
        print("Shutting down.")


def _print_stats(stats: OrderStats) -> None:
    heading = f"Order statistics ({stats.order_count} orders)"
    print(heading)
    print("=" * len(heading))

    rows = [
        ("Open", str(stats.open_order_count)),
        ("Executed", str(stats.executed_order_count)),
        ("Canceled", str(stats.canceled_order_count)),
        ("Expired", str(stats.expired_order_count)),
        ("Currently locked $", stats.currently_locked),
        ("Total locked $", stats.total_locked),
        ("Average order size $", str(stats.average_order_size)),
        ("Executed amount in $", stats.executed_amount_in),
        ("Executed expected $", stats.executed_amount_out_min),
        ("Executed received $", stats.executed_received),
    ]
    width = max(len(label) for label, _ in rows)
    for label, value in rows:
        print(f"{label.ljust(width)}  {value}")

    increase = stats.received_increase_percentage
    if increase is None:
        print(f"{'Received vs expected'.ljust(width)}  -")
    else:
        colour = constants.C_GREEN if not increase.startswith("-") else constants.C_RED
        print(f"{'Received vs expected'.ljust(width)}  {colour}{increase}%{constants.C_RESET}")

    if stats.ignored_tokens:
        print("\nIgnored tokens:")
        for token in stats.ignored_tokens:
            print(f"  {token}")


if __name__ == "__main__":
    main()
