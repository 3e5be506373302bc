import math

MIN_TICK = -887272
MAX_TICK = 887272

Q96 = 1 << 96
_MAX_UINT256 = (1 << 256) - 1

# sqrt(1.0001^-(2^i)) as Q128.128, one entry per bit of |tick| (TickMath.sol).
_TICK_BIT_RATIOS = (
    (0x2, 0xFFF97272373D413259A46990580E213A),
    (0x4, 0xFFF2E50F5F656932EF12357CF3C7FDCC),
    (0x8, 0xFFE5CACA7E10E4E61C3624EAA0941CD0),
    (0x10, 0xFFCB9843D60F6159C9DB58835C926644),
    (0x20, 0xFF973B41FA98C081472E6896DFB254C0),
    (0x40, 0xFF2EA16466C96A3843EC78B326B52861),
    (0x80, 0xFE5DEE046A99A2A811C461F1969C3053),
    (0x100, 0xFCBE86C7900A88AEDCFFC83B479AA3A4),
    (0x200, 0xF987A7253AC413176F2B074CF7815E54),
    (0x400, 0xF3392B0822B70005940C7A398E4B70F3),
    (0x800, 0xE7159475A2C29B7443B29C7FA6E889D9),
    (0x1000, 0xD097F3BDFD2022B8845AD8F792AA5825),
    (0x2000, 0xA9F746462D870FDF8A65DC1F90E061E5),
    (0x4000, 0x70D869A156D2A1B890BB3DF62BAF32F7),
    (0x8000, 0x31BE135F97D08FD981231505542FCFA6),
    (0x10000, 0x9AA508B5B7A84E1C677DE54F3E99BC9),
    (0x20000, 0x5D6AF8DEDB81196699C329225EE604),
    (0x40000, 0x2216E584F5FA1EA926041BEDFE98),
    (0x80000, 0x48A170391F7DC42444E8FA2),
)


def tick_to_sqrt_price_x96(tick: int) -> int:
    """Return ``sqrt(1.0001^tick) * 2^96`` rounded up, in fixed point.

    Ticks outside ``[MIN_TICK, MAX_TICK]`` are not supported.
    """
    abs_tick = abs(tick)
    if abs_tick & 0x1:
        ratio = 0xFFFCB933BD6FAD37AA2D162D1A594001
    else:
        ratio = 1 << 128
    for bit, multiplier in _TICK_BIT_RATIOS:
        if abs_tick & bit:
            ratio = (ratio * multiplier) >> 128
    if tick > 0:
        ratio = _MAX_UINT256 // ratio
    return (ratio >> 32) + (0 if ratio % (1 << 32) == 0 else 1)


def sqrt_ratio(tick: int) -> float:
    return tick_to_sqrt_price_x96(tick) / Q96


def tick_to_price(tick: int, token0_decimals: int, token1_decimals: int) -> float:
    """Price of token0 denominated in token1 at ``tick``; decreases as tick grows."""
    decimal_correction = math.pow(10, token0_decimals - token1_decimals)
    return math.pow(1.0001, -tick) * decimal_correction


def sqrt_price_x96_to_price(sqrt_price_x96: int, token0_decimals: int, token1_decimals: int) -> float:
    decimal_correction = math.pow(10, token0_decimals - token1_decimals)
    return (sqrt_price_x96 / Q96) ** 2 * decimal_correction


def align_tick(tick: int, tick_spacing: int) -> int:
    """Floor ``tick`` onto the ``tick_spacing`` grid."""
    return (tick // tick_spacing) * tick_spacing
