from poolbook.types import OrderBook, OrderBookLevel
from poolbook.ui import _build_depth_table, depth_rows


def _book():
    return OrderBook(
        bids=(OrderBookLevel(0.99, 2.0, 60), OrderBookLevel(0.98, 1.0, 120)),
        asks=(OrderBookLevel(1.01, 4.0, -60), OrderBookLevel(1.02, 0.0, -120)),
        mid_tick=0,
        mid_price=1.0,
    )


def test_depth_rows_ladder_order():
    table = depth_rows(_book())

    assert [row.side for row in table.rows] == ["ask", "ask", "bid", "bid"]
    assert [row.price_label for row in table.rows] == ["1.020000", "1.010000", "0.990000", "0.980000"]
    assert table.mid_price == 1.0


def test_depth_rows_scales_bars_to_largest_level():
    rows = depth_rows(_book()).rows
    bars = {row.price_label: len(row.bar) for row in rows}
    assert bars["1.010000"] == 41
    assert bars["1.020000"] == 1
    assert bars["0.990000"] == 21


def test_depth_rows_respects_level_limit():
    assert len(depth_rows(_book(), max_levels=1).rows) == 2


def test_depth_table_waits_for_book():
    assert _build_depth_table(None).row_count == 0
    assert _build_depth_table(depth_rows(_book())).row_count == 4
