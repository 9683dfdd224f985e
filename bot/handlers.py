# bot/handlers.py
import time

from telegram import Update
from telegram.ext import ContextTypes

from reconciler import OrderReconciler
from reports.order_stats import OrderStatsBuilder

# --- Command Handlers ---

async def help_command(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """Displays a help message with all available commands."""
    help_text = """
    <b>Limit Order Stats Bot</b>

    Reports on on-chain limit orders and the USD value users got from them.

    <b><u>Available Commands:</u></b>
    /status - Service uptime and last reconciliation batch
    /stats - Order counts, locked value and executed totals
    /leaderboard - Top orders by received USD and savings
    /queue - Enrichment queue state
    /help - Show this help message
    """
    await update.message.reply_html(help_text)

async def status_command(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """Reports uptime and the reconciler's background task state."""
    reconciler: OrderReconciler = context.application.bot_data.get('reconciler')
    reconciler_task = context.application.bot_data.get('reconciler_task')
    start_time = context.application.bot_data.get('start_time', 0)

    uptime_seconds = time.time() - start_time
    uptime_str = time.strftime('%H:%M:%S', time.gmtime(uptime_seconds))

    if reconciler_task and not reconciler_task.done():
        reconciler_status = "✅ Running"
    elif reconciler_task and reconciler_task.done():
        reconciler_status = "❌ Stopped with error" if reconciler_task.exception() else "⏹️ Stopped"
    else:
        reconciler_status = "⚠️ Not started"

    status_text = (
        f"<b>🤖 Service Status</b>\n"
        f"Uptime: <code>{uptime_str}</code>\n\n"
        f"<b>🔁 Reconciler</b>\n"
        f"Status: {reconciler_status}\n"
    )
    if reconciler:
        status_text += f"Last Batch: <code>{reconciler.last_batch_time or 'Never'}</code>\n"
        status_text += f"Enqueued Last Batch: <code>{reconciler.last_enqueued}</code>\n"
        if reconciler.last_error:
            status_text += f"Last Error: <pre>{reconciler.last_error}</pre>\n"

    await update.message.reply_html(status_text)

async def stats_command(update: Update, context: ContextTypes.DEFAULT_TYPE):
    builder: OrderStatsBuilder = context.application.bot_data['stats_builder']
    try:
        stats = await builder.build()
        response = (
            f"<b>📊 Order Stats</b>\n\n"
            f"Orders: <code>{stats.order_count}</code> "
            f"(open {stats.open_order_count}, executed {stats.executed_order_count}, "
            f"canceled {stats.canceled_order_count}, expired {stats.expired_order_count})\n"
            f"Currently Locked: <code>${stats.currently_locked}</code>\n"
            f"Total Locked: <code>${stats.total_locked}</code>\n"
            f"Average Order Size: <code>${stats.average_order_size}</code>\n\n"
            f"<b>Executed</b>\n"
            f"Amount In: <code>${stats.executed_amount_in}</code>\n"
            f"Expected: <code>${stats.executed_amount_out_min}</code>\n"
            f"Received: <code>${stats.executed_received}</code>\n"
            f"Received vs Expected: <code>{stats.received_increase_percentage or 'N/A'}%</code>"
        )
    except Exception as e:
        print(f"Error in /stats command: {e}")
        response = "An error occurred while building order stats."

    await update.message.reply_html(response)

async def leaderboard_command(update: Update, context: ContextTypes.DEFAULT_TYPE):
    builder: OrderStatsBuilder = context.application.bot_data['stats_builder']
    try:
        largest = await builder.largest_orders(limit=5)
        saves = await builder.biggest_saves_percentage(limit=5)
        lines = ["<b>🏆 Largest Executed Orders</b>"]
        for rank, order in enumerate(largest, start=1):
            lines.append(f"{rank}. <code>{order.id[:10]}…</code> ${order.executed_snapshot.received}")
        lines.append("\n<b>💰 Biggest Saves</b>")
        for rank, order in enumerate(saves, start=1):
            lines.append(f"{rank}. <code>{order.id[:10]}…</code> {order.saved_percentage}% (${order.saved_usd})")
        response = "\n".join(lines)
    except Exception as e:
        print(f"Error in /leaderboard command: {e}")
        response = "An error occurred while building the leaderboard."

    await update.message.reply_html(response)

async def queue_command(update: Update, context: ContextTypes.DEFAULT_TYPE):
    reconciler: OrderReconciler = context.application.bot_data.get('reconciler')
    if not reconciler:
        await update.message.reply_text("Reconciler not configured.")
        return

    state = reconciler.queue_state()
    message = (
        f"<b>🧮 Enrichment Queue</b>\n\n"
        f"Pending: <code>{state['size']}</code>\n"
        f"In Flight: <code>{state['in_flight']}</code>\n"
        f"Running: <code>{state['is_running']}</code>\n"
        f"Completed: <code>{state['completed']}</code> / Failed: <code>{state['failed']}</code>"
    )
    await update.message.reply_html(message)
