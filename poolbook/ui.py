import asyncio
import logging
import time
from collections import deque
from typing import Deque, Optional

from rich.console import Group
from rich.live import Live
from rich.panel import Panel
from rich.table import Table

from poolbook.notifications import Notification
from poolbook.state_machine import MarketListener
from poolbook.types import DepthRow, DepthTable, ErrorNotice, OrderBook, PriceUpdate

logger = logging.getLogger(__name__)

MAX_EVENTS = 50
MAX_LEVELS = 10


def _format_event(update: PriceUpdate) -> str:
    event = update.raw_event
    return (
        f"{time.strftime('%Y-%m-%d %H:%M:%S', time.localtime(update.timestamp / 1000))} "
        f"[Swap] price {update.price:,.6f} tick {event.tick} "
        f"Δ0={event.amount0} Δ1={event.amount1} tx={event.transaction_hash or '-'}"
    )


def _format_error(notice: ErrorNotice) -> str:
    return f"{time.strftime('%Y-%m-%d %H:%M:%S')} [error:{notice.phase}] {notice.message}"


def depth_rows(book: OrderBook, max_levels: int = MAX_LEVELS) -> DepthTable:
    asks = list(book.asks[:max_levels])
    bids = list(book.bids[:max_levels])
    largest = max((level.depth for level in asks + bids), default=0.0)
    rows = []
    for side, level in [("ask", a) for a in reversed(asks)] + [("bid", b) for b in bids]:
        bar_length = int(level.depth / largest * 40) + 1 if largest > 0 else 1
        rows.append(DepthRow(side=side, price_label=f"{level.price:,.6f}", depth=level.depth, bar="▮" * bar_length))
    return DepthTable(rows=rows, mid_price=book.mid_price, as_of=book.mid_tick)


def _build_depth_table(table_data: Optional[DepthTable]) -> Table:
    table = Table(title="Order Book", expand=True)
    table.add_column("Side")
    table.add_column("Price", justify="right")
    table.add_column("Depth", justify="right")
    table.add_column("Bar")
    if table_data is None:
        table.caption = "Waiting for first order book refresh"
        return table
    for row in table_data.rows:
        style = "red" if row.side == "ask" else "green"
        table.add_row(row.side, row.price_label, f"{row.depth:,.6g}", row.bar, style=style)
    table.caption = f"Mid Price: {table_data.mid_price:,.6f} (tick {table_data.as_of})"
    return table


def _build_event_panel(events: Deque[str], market_price: Optional[float]) -> Panel:
    title = "Recent Swaps" if market_price is None else f"Recent Swaps (last price {market_price:,.6f})"
    return Panel("\n".join(list(events)[-MAX_EVENTS:]), title=title, border_style="blue")


def attach_event_buffer(listener: MarketListener, buffer: Deque[str]) -> None:
    def _on_price(update: PriceUpdate) -> None:
        formatted = _format_event(update)
        logger.info(formatted)
        buffer.append(formatted)

    def _on_error(notice: ErrorNotice) -> None:
        buffer.append(_format_error(notice))

    listener.on(Notification.PRICE_UPDATE, _on_price)
    listener.on(Notification.ERROR, _on_error)


async def run_ui(listener: MarketListener, refresh_seconds: float = 1.0) -> None:
    event_buffer: Deque[str] = deque(maxlen=MAX_EVENTS)
    attach_event_buffer(listener, event_buffer)

    with Live(refresh_per_second=2, screen=False) as live:
        while True:
            book = listener.get_order_book()
            depth_table = _build_depth_table(depth_rows(book) if book else None)
            events_panel = _build_event_panel(event_buffer, listener.get_market_price())
            live.update(Group(depth_table, events_panel))
            await asyncio.sleep(refresh_seconds)
