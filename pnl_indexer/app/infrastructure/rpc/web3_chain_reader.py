from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Sequence

from web3 import AsyncWeb3

from pnl_indexer.app.domain.models import RawPoolLog
from pnl_indexer.app.domain.ports.out import LendingPoolChainReader


def _hex(value: Any) -> str:
    if isinstance(value, str):
        return value.lower() if value.startswith("0x") else "0x" + value.lower()
    return "0x" + bytes(value).hex()


def _bytes(value: Any) -> bytes:
    if isinstance(value, str):
        return bytes.fromhex(value[2:] if value.startswith("0x") else value)
    return bytes(value)


class Web3LendingPoolChainReader(LendingPoolChainReader):
    """
    AsyncWeb3-backed chain reader.

    Provider errors (HTTP, rate limits, "range too large") propagate
    unchanged so the scanner can shrink its window.
    """

    def __init__(self, *, w3: AsyncWeb3) -> None:
        self._w3 = w3

    async def get_block_number(self) -> int:
        return int(await self._w3.eth.block_number)

    async def get_block_timestamp(self, block_number: int) -> datetime:
        block = await self._w3.eth.get_block(block_number)
        return datetime.fromtimestamp(int(block["timestamp"]), tz=timezone.utc)

    async def get_logs(
        self,
        *,
        address: str,
        topics: Sequence[bytes],
        from_block: int,
        to_block: int,
    ) -> list[RawPoolLog]:
        params = {
            "address": self._w3.to_checksum_address(address),
            "fromBlock": from_block,
            "toBlock": to_block,
            # a single OR-set in position 0
            "topics": [[_hex(t) for t in topics]],
        }
        raw_logs = await self._w3.eth.get_logs(params)

        return [
            RawPoolLog(
                address=str(log["address"]).lower(),
                topics=tuple(_bytes(t) for t in log["topics"]),
                data=_bytes(log["data"]),
                block_number=int(log["blockNumber"]),
                tx_hash=_hex(log["transactionHash"]),
                log_index=int(log["logIndex"]),
            )
            for log in raw_logs
        ]
