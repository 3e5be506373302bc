from eth_utils import encode_hex, keccak

MULTICALL3_ADDRESS = "0xcA11bde05977b3631167028862bE2a173976CA11"


def _view(name, inputs, outputs):
    return {
        "inputs": inputs,
        "name": name,
        "outputs": outputs,
        "stateMutability": "view",
        "type": "function",
    }


def _param(name, type_, internal_type=None, components=None):
    param = {"internalType": internal_type or type_, "name": name, "type": type_}
    if components is not None:
        param["components"] = components
    return param


UNISWAP_V3_POOL_ABI = [
    _view(
        "slot0",
        [],
        [
            _param("sqrtPriceX96", "uint160"),
            _param("tick", "int24"),
            _param("observationIndex", "uint16"),
            _param("observationCardinality", "uint16"),
            _param("observationCardinalityNext", "uint16"),
            _param("feeProtocol", "uint8"),
            _param("unlocked", "bool"),
        ],
    ),
    _view("liquidity", [], [_param("", "uint128")]),
    _view("tickSpacing", [], [_param("", "int24")]),
    _view(
        "ticks",
        [_param("tick", "int24")],
        [
            _param("liquidityGross", "uint128"),
            _param("liquidityNet", "int128"),
            _param("feeGrowthOutside0X128", "uint256"),
            _param("feeGrowthOutside1X128", "uint256"),
            _param("tickCumulativeOutside", "int56"),
            _param("secondsPerLiquidityOutsideX128", "uint160"),
            _param("secondsOutside", "uint32"),
            _param("initialized", "bool"),
        ],
    ),
    _view("token0", [], [_param("", "address")]),
    _view("token1", [], [_param("", "address")]),
    {
        "anonymous": False,
        "inputs": [
            {"indexed": True, "internalType": "address", "name": "sender", "type": "address"},
            {"indexed": True, "internalType": "address", "name": "recipient", "type": "address"},
            {"indexed": False, "internalType": "int256", "name": "amount0", "type": "int256"},
            {"indexed": False, "internalType": "int256", "name": "amount1", "type": "int256"},
            {"indexed": False, "internalType": "uint160", "name": "sqrtPriceX96", "type": "uint160"},
            {"indexed": False, "internalType": "uint128", "name": "liquidity", "type": "uint128"},
            {"indexed": False, "internalType": "int24", "name": "tick", "type": "int24"},
        ],
        "name": "Swap",
        "type": "event",
    },
]

# Swap logs are decoded straight from topics and data
SWAP_EVENT_SIGNATURE = "Swap(address,address,int256,int256,uint160,uint128,int24)"
SWAP_TOPIC = encode_hex(keccak(text=SWAP_EVENT_SIGNATURE))
SWAP_DATA_TYPES = ["int256", "int256", "uint160", "uint128", "int24"]

ERC20_ABI = [_view("decimals", [], [_param("", "uint8")])]

MARKET_REGISTRY_ABI = [
    _view(
        "getEpoch",
        [_param("id", "uint256")],
        [
            _param(
                "epochData",
                "tuple",
                "struct IFoilStructs.EpochData",
                [
                    _param("epochId", "uint256"),
                    _param("startTime", "uint256"),
                    _param("endTime", "uint256"),
                    _param("pool", "address"),
                    _param("ethToken", "address"),
                    _param("gasToken", "address"),
                    _param("minPriceD18", "uint256"),
                    _param("maxPriceD18", "uint256"),
                    _param("baseAssetMinPriceTick", "int24"),
                    _param("baseAssetMaxPriceTick", "int24"),
                    _param("settled", "bool"),
                    _param("settlementPriceD18", "uint256"),
                    _param("assertionId", "bytes32"),
                    _param("claimStatement", "bytes"),
                ],
            ),
            _param(
                "params",
                "tuple",
                "struct IFoilStructs.MarketParams",
                [
                    _param("feeRate", "uint24"),
                    _param("assertionLiveness", "uint64"),
                    _param("bondAmount", "uint256"),
                    _param("bondCurrency", "address"),
                    _param("uniswapPositionManager", "address"),
                    _param("uniswapSwapRouter", "address"),
                    _param("uniswapQuoter", "address"),
                    _param("optimisticOracleV3", "address"),
                ],
            ),
        ],
    )
]
EPOCH_POOL_INDEX = 3

MULTICALL3_ABI = [
    {
        "inputs": [
            _param("requireSuccess", "bool"),
            _param(
                "calls",
                "tuple[]",
                "struct Multicall3.Call[]",
                [_param("target", "address"), _param("callData", "bytes")],
            ),
        ],
        "name": "tryAggregate",
        "outputs": [
            _param(
                "returnData",
                "tuple[]",
                "struct Multicall3.Result[]",
                [_param("success", "bool"), _param("returnData", "bytes")],
            )
        ],
        "stateMutability": "payable",
        "type": "function",
    }
]
