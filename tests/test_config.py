"""Tests for environment-driven settings."""

import pytest

from pnl_indexer.app.application.services.run_pnl_indexer import configured_pools
from pnl_indexer.app.config import Settings
from pnl_indexer.app.domain.models import LendingPool


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in (
        "TARGET_CHAIN",
        "PNL_INDEXER_CHUNK_SIZE",
        "PNL_INDEXER_MIN_CHUNK_SIZE",
        "PNL_INDEXER_LOOKBACK_BLOCKS",
        "PNL_INDEXER_FINALITY_BLOCKS",
        "DATABASE_URL",
        "AAVE_POOL_ADDRESS",
        "RADIANT_POOL_ADDRESS",
        "ENABLE_PNL_INDEXER",
    ):
        monkeypatch.delenv(name, raising=False)


def make_settings(**env) -> Settings:
    return Settings(_env_file=None, **env)


def test_defaults():
    s = make_settings()

    assert s.max_chunk_size == 1_500
    assert s.lookback_blocks == 80_000
    assert s.finality_blocks == 20
    assert s.chain_id == 42161
    assert s.enable_pnl_indexer is True
    assert s.database_url.startswith("postgresql+asyncpg://")
    assert [p.protocol for p in s.lending_pools()] == ["aave-v3", "radiant-v2"]


def test_numeric_settings_are_clamped(monkeypatch):
    monkeypatch.setenv("PNL_INDEXER_CHUNK_SIZE", "999999")
    monkeypatch.setenv("PNL_INDEXER_LOOKBACK_BLOCKS", "5")
    monkeypatch.setenv("PNL_INDEXER_FINALITY_BLOCKS", "not-a-number")

    s = make_settings()

    assert s.max_chunk_size == 20_000
    assert s.lookback_blocks == 1_000
    assert s.finality_blocks == 20


def test_min_chunk_never_exceeds_max(monkeypatch):
    monkeypatch.setenv("PNL_INDEXER_CHUNK_SIZE", "100")
    monkeypatch.setenv("PNL_INDEXER_MIN_CHUNK_SIZE", "5000")

    s = make_settings()

    assert s.min_chunk_size == 100


@pytest.mark.parametrize("value", ["arbitrum-sepolia", "421614", "ArbitrumSepolia"])
def test_sepolia_target(monkeypatch, value):
    monkeypatch.setenv("TARGET_CHAIN", value)

    s = make_settings()

    assert s.chain_id == 421614
    assert s.rpc_url(s.chain_id) == s.arbitrum_sepolia_rpc_url


def test_unknown_chain_has_no_rpc():
    with pytest.raises(ValueError):
        make_settings().rpc_url(1)


@pytest.mark.parametrize("value", ["not-an-address", "0x1234", "0x" + "zz" * 20, ""])
def test_malformed_pool_address_falls_back_to_default(monkeypatch, value):
    monkeypatch.setenv("AAVE_POOL_ADDRESS", value)

    s = make_settings()

    assert s.aave_pool_address == "0x794a61358D6845594F94dc1DB02A252b5b4814aD"


def test_zero_pool_address_disables_pool(monkeypatch):
    monkeypatch.setenv("RADIANT_POOL_ADDRESS", "0x" + "0" * 40)

    s = make_settings()

    assert configured_pools(s.lending_pools()) == [
        LendingPool(protocol="aave-v3", pool_address=s.aave_pool_address)
    ]
