from __future__ import annotations

import logging
from typing import Any

from web3 import AsyncWeb3
from web3.contract.async_contract import AsyncContract
from web3.exceptions import BadFunctionCallOutput, ContractLogicError, Web3Exception

from pnl_indexer.app.domain.ports.out import Erc20TokenMetadataFetcher

logger = logging.getLogger(__name__)

# symbol()/decimals() as most tokens declare them, then the bytes32/uint256
# variant some older tokens shipped with.
_ERC20_ABIS = (
    [
        {"name": "symbol", "type": "function", "stateMutability": "view", "inputs": [], "outputs": [{"name": "", "type": "string"}]},
        {"name": "decimals", "type": "function", "stateMutability": "view", "inputs": [], "outputs": [{"name": "", "type": "uint8"}]},
    ],
    [
        {"name": "symbol", "type": "function", "stateMutability": "view", "inputs": [], "outputs": [{"name": "", "type": "bytes32"}]},
        {"name": "decimals", "type": "function", "stateMutability": "view", "inputs": [], "outputs": [{"name": "", "type": "uint256"}]},
    ],
)


class Web3Erc20TokenMetadataFetcher(Erc20TokenMetadataFetcher):
    """
    Reads symbol() and decimals() of a reserve token over eth_call.

    Fields that cannot be read come back as None; the caller decides the
    defaults.
    """

    def __init__(self, *, w3: AsyncWeb3) -> None:
        self._w3 = w3

    async def fetch(self, *, token_address: str) -> dict[str, Any]:
        address = self._w3.to_checksum_address(token_address)
        symbol: str | None = None
        decimals: int | None = None

        for abi in _ERC20_ABIS:
            contract: AsyncContract = self._w3.eth.contract(address=address, abi=abi)
            if symbol is None:
                symbol = _as_text(await self._call(contract, "symbol"))
            if decimals is None:
                decimals = _as_decimals(await self._call(contract, "decimals"))
            if symbol is not None and decimals is not None:
                break

        return {"symbol": symbol, "decimals": decimals}

    async def _call(self, contract: AsyncContract, fn_name: str) -> Any | None:
        try:
            return await getattr(contract.functions, fn_name)().call()
        except (BadFunctionCallOutput, ContractLogicError, Web3Exception, ValueError) as exc:
            logger.debug("eth_call %s() failed on %s: %s", fn_name, contract.address, exc)
            return None


def _as_text(val: Any) -> str | None:
    if isinstance(val, str):
        return val.strip() or None
    if isinstance(val, (bytes, bytearray)):
        try:
            return bytes(val).rstrip(b"\x00").decode("utf-8").strip() or None
        except UnicodeDecodeError:
            return None
    return None


def _as_decimals(val: Any) -> int | None:
    if isinstance(val, int) and 0 <= val <= 255:
        return val
    return None
