# api/handlers.py
import logging

from aiohttp import web

from enrichment.blacklist import BlacklistRegistry
from enrichment.errors import PersistenceWriteFailed
from reconciler import OrderReconciler
from reports.order_stats import OrderStatsBuilder
from storage import SQLiteRepository

logger = logging.getLogger(__name__)

REPOSITORY_KEY = web.AppKey("repository", SQLiteRepository)
RECONCILER_KEY = web.AppKey("reconciler", OrderReconciler)
STATS_KEY = web.AppKey("stats_builder", OrderStatsBuilder)
BLACKLIST_KEY = web.AppKey("blacklist", BlacklistRegistry)

# --- Order Handlers ---

async def list_orders(request: web.Request) -> web.Response:
    """All stored orders."""
    orders = await request.app[REPOSITORY_KEY].fetch_orders()
    return web.json_response([order.to_dict() for order in orders])

async def get_order(request: web.Request) -> web.Response:
    order_id = request.match_info.get('order_id', '').strip()
    if not order_id:
        raise web.HTTPBadRequest(text='Missing order id')
    order = await request.app[REPOSITORY_KEY].fetch_order(order_id)
    if order is None:
        raise web.HTTPNotFound(text=f"Can't find order {order_id}")
    return web.json_response({'order': order.to_dict()})

async def trigger_batch(request: web.Request) -> web.Response:
    """Starts a reconciliation batch without waiting for it."""
    request.app[RECONCILER_KEY].schedule_batch()
    return web.Response(text='Batch started')

async def queue_state(request: web.Request) -> web.Response:
    return web.json_response(request.app[RECONCILER_KEY].queue_state())

# --- Report Handlers ---

async def executed_orders(request: web.Request) -> web.Response:
    orders = await request.app[STATS_KEY].executed_orders()
    return web.json_response([order.to_dict() for order in orders])

async def stats(request: web.Request) -> web.Response:
    result = await request.app[STATS_KEY].build()
    return web.json_response(result.to_dict())

async def leaderboard(request: web.Request) -> web.Response:
    board = await request.app[STATS_KEY].leaderboard()
    return web.json_response({
        name: [order.to_dict() for order in orders]
        for name, orders in board.items()
    })

async def biggest_open_orders(request: web.Request) -> web.Response:
    orders = await request.app[STATS_KEY].biggest_open_orders()
    return web.json_response([order.to_dict() for order in orders])

async def latest_orders(request: web.Request) -> web.Response:
    orders = await request.app[STATS_KEY].latest_orders()
    return web.json_response([order.to_dict() for order in orders])

async def token_counts(request: web.Request) -> web.Response:
    return web.json_response({'tokens': await request.app[STATS_KEY].token_counts()})

async def defect_orders(request: web.Request) -> web.Response:
    """Closed orders that are still missing valuations."""
    orders = await request.app[STATS_KEY].defect_orders()
    return web.json_response([order.to_dict() for order in orders])

# --- Blacklist Handlers ---

async def get_blacklist(request: web.Request) -> web.Response:
    blacklist = request.app[BLACKLIST_KEY]
    return web.json_response({'tokens': blacklist.tokens, 'orders': blacklist.orders})

async def add_blacklisted_token(request: web.Request) -> web.Response:
    token = request.match_info['token']
    request.app[BLACKLIST_KEY].blacklist_token(token)
    logger.info("Token %s blacklisted", token)
    return await get_blacklist(request)

async def remove_blacklisted_token(request: web.Request) -> web.Response:
    token = request.match_info['token']
    request.app[BLACKLIST_KEY].unblacklist_token(token)
    logger.info("Token %s removed from blacklist", token)
    return await get_blacklist(request)

async def suppress_order(request: web.Request) -> web.Response:
    return await _set_order_suppressed(request, True)

async def unsuppress_order(request: web.Request) -> web.Response:
    return await _set_order_suppressed(request, False)

async def _set_order_suppressed(request: web.Request, suppressed: bool) -> web.Response:
    order_id = request.match_info['order_id']
    blacklist = request.app[BLACKLIST_KEY]
    if suppressed:
        blacklist.suppress_order(order_id)
    else:
        blacklist.unsuppress_order(order_id)
    try:
        await request.app[REPOSITORY_KEY].set_ignored(order_id, suppressed)
    except PersistenceWriteFailed as exc:
        logger.error("Could not persist ignore flag for %s: %s", order_id, exc)
    return await get_blacklist(request)
