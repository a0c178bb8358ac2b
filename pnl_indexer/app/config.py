"""Config file."""
import re
from typing import Any
from urllib.parse import quote_plus

from pydantic import Field, SecretStr, ValidationInfo, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from pnl_indexer.app.domain.models import AAVE_V3, RADIANT_V2, LendingPool

ARBITRUM_CHAIN_ID = 42161
ARBITRUM_SEPOLIA_CHAIN_ID = 421614

_ADDRESS_RE = re.compile(r"^0x[a-fA-F0-9]{40}$")

_INT_BOUNDS: dict[str, tuple[int, int]] = {
    "max_chunk_size": (64, 20_000),
    "min_chunk_size": (1, 20_000),
    "lookback_blocks": (1_000, 10_000_000),
    "finality_blocks": (0, 5_000),
    "run_interval_seconds": (10, 86_400),
    "write_batch_size": (1, 5_000),
    "rebuild_concurrency": (1, 32),
}


class Settings(BaseSettings):
    """Application settings."""

    # PROJECT
    project_name: str = Field("pnl-indexer", alias="PROJECT_NAME")

    # DATABASE
    postgres_user: str = Field("postgres", alias="POSTGRES_USER")
    postgres_password: SecretStr = Field(SecretStr("postgres"), alias="POSTGRES_PASSWORD")
    postgres_server: str = Field("localhost", alias="POSTGRES_SERVER")
    postgres_port: int = Field(5432, alias="POSTGRES_PORT")
    postgres_db: str = Field("pnl_indexer", alias="POSTGRES_DB")
    database_url: str | None = Field(None, alias="DATABASE_URL")

    # CHAIN / RPC
    target_chain: str = Field("arbitrum", alias="TARGET_CHAIN")
    arbitrum_rpc_url: str = Field("https://arb1.arbitrum.io/rpc", alias="ARBITRUM_RPC_URL")
    arbitrum_sepolia_rpc_url: str = Field(
        "https://sepolia-rollup.arbitrum.io/rpc", alias="ARBITRUM_SEPOLIA_RPC_URL"
    )
    rpc_timeout_seconds: int = Field(20, alias="RPC_TIMEOUT_SECONDS")

    # LENDING POOLS
    aave_pool_address: str = Field(
        "0x794a61358D6845594F94dc1DB02A252b5b4814aD", alias="AAVE_POOL_ADDRESS"
    )
    radiant_pool_address: str = Field(
        "0xE23B4AE3624fB6f7cDEF29bC8EAD912f1Ede6886", alias="RADIANT_POOL_ADDRESS"
    )

    # INDEXER
    max_chunk_size: int = Field(1_500, alias="PNL_INDEXER_CHUNK_SIZE")
    min_chunk_size: int = Field(64, alias="PNL_INDEXER_MIN_CHUNK_SIZE")
    lookback_blocks: int = Field(80_000, alias="PNL_INDEXER_LOOKBACK_BLOCKS")
    finality_blocks: int = Field(20, alias="PNL_INDEXER_FINALITY_BLOCKS")
    run_interval_seconds: int = Field(600, alias="PNL_INDEXER_INTERVAL_SECONDS")
    write_batch_size: int = Field(500, alias="PNL_INDEXER_WRITE_BATCH_SIZE")
    rebuild_concurrency: int = Field(1, alias="PNL_INDEXER_REBUILD_CONCURRENCY")
    enable_pnl_indexer: bool = Field(True, alias="ENABLE_PNL_INDEXER")

    # PRICES
    coingecko_base_url: str = Field("https://api.coingecko.com/api/v3", alias="COINGECKO_BASE_URL")
    coingecko_api_key: SecretStr | None = Field(None, alias="COINGECKO_API_KEY")
    price_timeout_seconds: int = Field(20, alias="PRICE_TIMEOUT_SECONDS")

    @field_validator(*_INT_BOUNDS.keys(), mode="before")
    @classmethod
    def clamp_int_bounds(cls, value: Any, info: ValidationInfo) -> int:
        low, high = _INT_BOUNDS[info.field_name]
        default = cls.model_fields[info.field_name].default
        try:
            parsed = int(value)
        except (TypeError, ValueError):
            return default
        return max(low, min(high, parsed))

    @field_validator("aave_pool_address", "radiant_pool_address", mode="before")
    @classmethod
    def pool_address_or_default(cls, value: Any, info: ValidationInfo) -> str:
        # Set to the zero address to disable a pool
        candidate = str(value or "").strip()
        if _ADDRESS_RE.match(candidate):
            return candidate
        return cls.model_fields[info.field_name].default

    @field_validator("target_chain", mode="before")
    @classmethod
    def normalize_target_chain(cls, value: Any) -> str:
        normalized = str(value or "arbitrum").strip().lower()
        if normalized in ("421614", "arbitrum-sepolia", "arbitrumsepolia"):
            return "arbitrum-sepolia"
        return "arbitrum"

    @model_validator(mode="after")
    def assemble_db_url(self) -> "Settings":
        user = quote_plus(self.postgres_user)
        password = quote_plus(self.postgres_password.get_secret_value())
        host = self.postgres_server
        port = self.postgres_port
        db = self.postgres_db

        if not self.database_url:
            self.database_url = f"postgresql+asyncpg://{user}:{password}@{host}:{port}/{db}"

        if self.min_chunk_size > self.max_chunk_size:
            self.min_chunk_size = self.max_chunk_size

        return self

    @property
    def chain_id(self) -> int:
        if self.target_chain == "arbitrum-sepolia":
            return ARBITRUM_SEPOLIA_CHAIN_ID
        return ARBITRUM_CHAIN_ID

    def rpc_url(self, chain_id: int) -> str:
        if chain_id == ARBITRUM_CHAIN_ID:
            return self.arbitrum_rpc_url
        if chain_id == ARBITRUM_SEPOLIA_CHAIN_ID:
            return self.arbitrum_sepolia_rpc_url
        raise ValueError(f"No RPC endpoint configured for chain_id={chain_id}")

    def lending_pools(self) -> list[LendingPool]:
        return [
            LendingPool(protocol=AAVE_V3, pool_address=self.aave_pool_address),
            LendingPool(protocol=RADIANT_V2, pool_address=self.radiant_pool_address),
        ]

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )


settings: Settings = Settings()
