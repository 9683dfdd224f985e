#!/usr/bin/env python3
from typing import Dict, List

# --- ANSI Color Codes ---
C_GREEN = '\033[92m'
C_RED = '\033[91m'
C_YELLOW = '\033[93m'
C_BLUE = '\033[94m'
C_RESET = '\033[0m'

# --- API Configuration ---
ORDERS_SUBGRAPH_URL = 'https://api.thegraph.com/subgraphs/name/usemate/mate'
PRICE_SUBGRAPH_URL = 'https://bsc.streamingfast.io/subgraphs/name/pancakeswap/exchange-v2'
DEFAULT_RPC_URL = 'https://bsc-dataseed.binance.org'

# --- Environment Variable Names ---
RPC_URL_ENV_VAR = 'RPC_URL'
ORDERS_SUBGRAPH_URL_ENV_VAR = 'ORDERS_SUBGRAPH_URL'
PRICE_SUBGRAPH_URL_ENV_VAR = 'PRICE_SUBGRAPH_URL'
CORE_CONTRACT_ADDRESS_ENV_VAR = 'CORE_CONTRACT_ADDRESS'
TELEGRAM_BOT_TOKEN_ENV_VAR = 'TELEGRAM_BOT_TOKEN'
TELEGRAM_CHAT_ID_ENV_VAR = 'TELEGRAM_CHAT_ID'

# --- Order Status Wire Values ---
ORDER_STATUS_OPEN = 'Open'
ORDER_STATUS_CLOSED = 'Closed'
ORDER_STATUS_CANCELED = 'Canceled'

# --- Reconciliation Defaults ---
SUBGRAPH_PAGE_SIZE = 1000
QUEUE_CONCURRENCY = 1
QUEUE_INTERVAL_SECONDS = 10.0
BATCH_INTERVAL_SECONDS = 3600
EVENT_POLL_INTERVAL_SECONDS = 15.0

# --- Decimal Arithmetic ---
DECIMAL_PRECISION = 80
SAVINGS_DECIMAL_PLACES = 5
LOCKED_DECIMAL_PLACES = 6
INCREASE_DECIMAL_PLACES = 4

# --- Reporting ---
LEADERBOARD_SIZE = 15
LATEST_ORDERS_SIZE = 25

# --- Known-bad tokens (stored lowercase for case-insensitive matching) ---
BLACKLISTED_TOKENS: List[str] = [
    '0x87230146e138d3f296a9a77e497a2a83012e9bc5',
    '0x7a565284572d03ec50c35396f7d6001252eb43b6',
]

# --- Minimal ERC-20 / order book ABIs ---
ERC20_DECIMALS_ABI: List[Dict] = [
    {
        "constant": True,
        "inputs": [],
        "name": "decimals",
        "outputs": [{"name": "", "type": "uint8"}],
        "payable": False,
        "stateMutability": "view",
        "type": "function",
    }
]

ORDER_BOOK_EVENTS_ABI: List[Dict] = [
    {
        "anonymous": False,
        "name": "OrderPlaced",
        "type": "event",
        "inputs": [
            {"indexed": True, "name": "id", "type": "bytes32"},
            {"indexed": False, "name": "tokenIn", "type": "address"},
            {"indexed": False, "name": "tokenOut", "type": "address"},
            {"indexed": False, "name": "amountIn", "type": "uint256"},
            {"indexed": False, "name": "amountOutMin", "type": "uint256"},
            {"indexed": False, "name": "recipient", "type": "address"},
            {"indexed": True, "name": "creator", "type": "address"},
            {"indexed": False, "name": "expiration", "type": "uint256"},
            {"indexed": False, "name": "createdTimestamp", "type": "uint256"},
        ],
    },
    {
        "anonymous": False,
        "name": "OrderCanceled",
        "type": "event",
        "inputs": [
            {"indexed": True, "name": "id", "type": "bytes32"},
            {"indexed": False, "name": "timestamp", "type": "uint256"},
        ],
    },
    {
        "anonymous": False,
        "name": "OrderExecuted",
        "type": "event",
        "inputs": [
            {"indexed": True, "name": "id", "type": "bytes32"},
            {"indexed": True, "name": "creator", "type": "address"},
            {"indexed": False, "name": "sender", "type": "address"},
            {"indexed": False, "name": "amountOut", "type": "uint256"},
            {"indexed": False, "name": "timestamp", "type": "uint256"},
        ],
    },
]
