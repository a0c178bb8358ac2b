from __future__ import annotations

import re
from typing import Final

from pnl_indexer.app.domain.models import TokenMetadata

UNKNOWN_SYMBOL: Final[str] = "UNKNOWN"
DEFAULT_DECIMALS: Final[int] = 18

# Canonical Arbitrum One reserves (lowercase address -> metadata)
KNOWN_TOKEN_METADATA: Final[dict[str, TokenMetadata]] = {
    "0x82af49447d8a07e3bd95bd0d56f35241523fbab1": TokenMetadata(symbol="WETH", decimals=18),
    "0xaf88d065e77c8cc2239327c5edb3a432268e5831": TokenMetadata(symbol="USDC", decimals=6),
    "0xfd086bc7cd5c481dcc9c85ebe478a1c0b69fcbb9": TokenMetadata(symbol="USDT", decimals=6),
    "0xda10009cbd5d07dd0cecc66161fc93d7c9000da1": TokenMetadata(symbol="DAI", decimals=18),
    "0x2f2a2543b76a4166549f7aab2e75bef0aefc5b0f": TokenMetadata(symbol="WBTC", decimals=8),
}

STABLE_SYMBOLS: Final[frozenset[str]] = frozenset({"USDC", "USDT", "DAI", "USDC.E"})

SYMBOL_TO_COINGECKO_ID: Final[dict[str, str]] = {
    "BTC": "bitcoin",
    "WBTC": "wrapped-bitcoin",
    "ETH": "ethereum",
    "WETH": "weth",
    "USDT": "tether",
    "USDC": "usd-coin",
    "USDC.E": "usd-coin",
    "DAI": "dai",
    "RDNT": "radiant-capital",
    "AAVE": "aave",
    "ARB": "arbitrum",
}

# Priced as their underlying
_SYMBOL_ALIASES: Final[dict[str, str]] = {"WEETH": "WETH"}

_SYMBOL_STRIP = re.compile(r"[^a-zA-Z0-9.]")


def normalize_symbol(raw: object) -> str:
    cleaned = _SYMBOL_STRIP.sub("", str(raw or "").replace("\x00", "").strip()).upper()
    cleaned = _SYMBOL_ALIASES.get(cleaned, cleaned)
    return cleaned or UNKNOWN_SYMBOL
