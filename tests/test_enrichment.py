"""Tests for token metadata, block time and historical price resolution."""

from datetime import date, datetime, timezone
from decimal import Decimal
from unittest.mock import AsyncMock

import httpx
import pytest

from pnl_indexer.app.application.services.block_times import BlockTimeResolver
from pnl_indexer.app.application.services.historical_prices import (
    HistoricalPriceResolver,
    usd_value,
)
from pnl_indexer.app.application.services.token_metadata import TokenMetadataResolver
from pnl_indexer.app.domain.assets import normalize_symbol
from pnl_indexer.app.domain.models import TokenMetadata
from pnl_indexer.app.infrastructure.cache import InMemoryCache
from pnl_indexer.app.infrastructure.fetchers.coingecko_price_fetcher import (
    CoinGeckoHistoricalPriceFetcher,
)

WETH = "0x82af49447d8a07e3bd95bd0d56f35241523fbab1"
SOME_TOKEN = "0x4444444444444444444444444444444444444444"
NOON = datetime(2025, 3, 14, 12, 0, tzinfo=timezone.utc)


# ============================================================================
# Symbols
# ============================================================================


@pytest.mark.parametrize(
    ("raw", "expected"),
    [("usdc.e", "USDC.E"), (" weETH ", "WETH"), ("W-BTC", "WBTC"), ("", "UNKNOWN"), (None, "UNKNOWN")],
)
def test_normalize_symbol(raw, expected):
    assert normalize_symbol(raw) == expected


# ============================================================================
# TokenMetadataResolver
# ============================================================================


async def test_known_token_skips_rpc():
    fetcher = AsyncMock()
    resolver = TokenMetadataResolver(fetcher=fetcher, cache=InMemoryCache())

    meta = await resolver.resolve(WETH.upper().replace("0X", "0x"))

    assert meta == TokenMetadata(symbol="WETH", decimals=18)
    fetcher.fetch.assert_not_awaited()


async def test_unknown_token_is_fetched_once():
    fetcher = AsyncMock()
    fetcher.fetch.return_value = {"symbol": "arb", "decimals": 18}
    resolver = TokenMetadataResolver(fetcher=fetcher, cache=InMemoryCache())

    first = await resolver.resolve(SOME_TOKEN)
    second = await resolver.resolve(SOME_TOKEN)

    assert first == second == TokenMetadata(symbol="ARB", decimals=18)
    fetcher.fetch.assert_awaited_once_with(token_address=SOME_TOKEN)


async def test_failed_fetch_falls_back_to_defaults():
    fetcher = AsyncMock()
    fetcher.fetch.side_effect = TimeoutError("rpc timeout")
    resolver = TokenMetadataResolver(fetcher=fetcher, cache=InMemoryCache())

    assert await resolver.resolve(SOME_TOKEN) == TokenMetadata(symbol="UNKNOWN", decimals=18)


async def test_out_of_range_decimals_fall_back():
    fetcher = AsyncMock()
    fetcher.fetch.return_value = {"symbol": "ODD", "decimals": 300}
    resolver = TokenMetadataResolver(fetcher=fetcher, cache=InMemoryCache())

    assert (await resolver.resolve(SOME_TOKEN)).decimals == 18


async def test_cleared_token_metadata_is_refetched():
    fetcher = AsyncMock()
    fetcher.fetch.side_effect = [TimeoutError("rpc timeout"), {"symbol": "ARB", "decimals": 18}]
    resolver = TokenMetadataResolver(fetcher=fetcher, cache=InMemoryCache())

    assert (await resolver.resolve(SOME_TOKEN)).symbol == "UNKNOWN"
    resolver.clear_cache()

    assert await resolver.resolve(SOME_TOKEN) == TokenMetadata(symbol="ARB", decimals=18)


# ============================================================================
# BlockTimeResolver
# ============================================================================


async def test_block_time_is_memoized():
    reader = AsyncMock()
    reader.get_block_timestamp.return_value = NOON
    resolver = BlockTimeResolver(reader=reader, cache=InMemoryCache())

    assert await resolver.resolve(123) == NOON
    assert await resolver.resolve(123) == NOON
    reader.get_block_timestamp.assert_awaited_once_with(123)


# ============================================================================
# HistoricalPriceResolver
# ============================================================================


async def test_stablecoins_are_one_dollar_without_lookup():
    source = AsyncMock()
    resolver = HistoricalPriceResolver(source=source, cache=InMemoryCache())

    assert await resolver.resolve("usdc.e", NOON) == Decimal(1)
    source.fetch_usd_price.assert_not_awaited()


async def test_unmapped_symbol_has_no_price():
    source = AsyncMock()
    resolver = HistoricalPriceResolver(source=source, cache=InMemoryCache())

    assert await resolver.resolve("PEPE", NOON) is None
    source.fetch_usd_price.assert_not_awaited()


async def test_price_is_cached_per_id_and_day():
    source = AsyncMock()
    source.fetch_usd_price.return_value = Decimal("3000.5")
    resolver = HistoricalPriceResolver(source=source, cache=InMemoryCache())

    assert await resolver.resolve("WETH", NOON) == Decimal("3000.5")
    assert await resolver.resolve("weETH", NOON.replace(hour=23)) == Decimal("3000.5")
    source.fetch_usd_price.assert_awaited_once_with(price_id="weth", day=date(2025, 3, 14))


async def test_failed_lookup_is_cached_as_miss():
    source = AsyncMock()
    source.fetch_usd_price.side_effect = httpx.ConnectError("down")
    resolver = HistoricalPriceResolver(source=source, cache=InMemoryCache())

    assert await resolver.resolve("WBTC", NOON) is None
    assert await resolver.resolve("WBTC", NOON) is None
    assert source.fetch_usd_price.await_count == 1


async def test_cleared_miss_is_looked_up_again():
    source = AsyncMock()
    source.fetch_usd_price.side_effect = [httpx.ConnectError("down"), Decimal("64000")]
    resolver = HistoricalPriceResolver(source=source, cache=InMemoryCache())

    assert await resolver.resolve("WBTC", NOON) is None
    resolver.clear_cache()

    assert await resolver.resolve("WBTC", NOON) == Decimal("64000")
    assert source.fetch_usd_price.await_count == 2


def test_usd_value_quantizes_to_eight_places():
    assert usd_value(Decimal("1.123456789"), Decimal("2")) == Decimal("2.24691358")
    assert usd_value(Decimal("1"), None) is None


# ============================================================================
# CoinGeckoHistoricalPriceFetcher
# ============================================================================


def coingecko(handler) -> CoinGeckoHistoricalPriceFetcher:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return CoinGeckoHistoricalPriceFetcher(
        client=client,
        base_url="https://api.coingecko.test/api/v3/",
        api_key="demo-key",
    )


async def test_coingecko_history_request_and_parse():
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"market_data": {"current_price": {"usd": 3012.44}}})

    fetcher = coingecko(handler)
    price = await fetcher.fetch_usd_price(price_id="weth", day=date(2025, 3, 4))
    await fetcher.aclose()

    assert price == Decimal("3012.44")
    [req] = seen
    assert req.url.path == "/api/v3/coins/weth/history"
    assert req.url.params["date"] == "04-03-2025"
    assert req.url.params["localization"] == "false"
    assert req.headers["x-cg-demo-api-key"] == "demo-key"


@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(429, json={"status": {"error_code": 429}}),
        httpx.Response(200, json={"id": "weth"}),
        httpx.Response(200, json={"market_data": {"current_price": {"eur": 1}}}),
    ],
)
async def test_coingecko_missing_price_is_none(response):
    fetcher = coingecko(lambda request: response)

    assert await fetcher.fetch_usd_price(price_id="weth", day=date(2025, 3, 4)) is None
    await fetcher.aclose()
