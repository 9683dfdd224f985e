"""aiohttp application wiring for the reporting API."""
from __future__ import annotations

from aiohttp import web

from enrichment.blacklist import BlacklistRegistry
from reconciler import OrderReconciler
from reports.order_stats import OrderStatsBuilder
from storage import SQLiteRepository
from api import handlers
from api.handlers import BLACKLIST_KEY, RECONCILER_KEY, REPOSITORY_KEY, STATS_KEY


def create_app(
    *,
    repository: SQLiteRepository,
    reconciler: OrderReconciler,
    stats_builder: OrderStatsBuilder,
    blacklist: BlacklistRegistry,
) -> web.Application:
    app = web.Application()
    app[REPOSITORY_KEY] = repository
    app[RECONCILER_KEY] = reconciler
    app[STATS_KEY] = stats_builder
    app[BLACKLIST_KEY] = blacklist

    app.router.add_get("/orders", handlers.list_orders)
    app.router.add_get("/orders/{order_id}", handlers.get_order)
    app.router.add_get("/batch", handlers.trigger_batch)
    app.router.add_get("/queue", handlers.queue_state)
    app.router.add_get("/executed", handlers.executed_orders)
    app.router.add_get("/stats", handlers.stats)
    app.router.add_get("/leaderboard", handlers.leaderboard)
    app.router.add_get("/open", handlers.biggest_open_orders)
    app.router.add_get("/latest", handlers.latest_orders)
    app.router.add_get("/tokens", handlers.token_counts)
    app.router.add_get("/defects", handlers.defect_orders)
    app.router.add_get("/blacklist", handlers.get_blacklist)
    app.router.add_post("/blacklist/tokens/{token}", handlers.add_blacklisted_token)
    app.router.add_delete("/blacklist/tokens/{token}", handlers.remove_blacklisted_token)
    app.router.add_post("/blacklist/orders/{order_id}", handlers.suppress_order)
    app.router.add_delete("/blacklist/orders/{order_id}", handlers.unsuppress_order)
    return app
