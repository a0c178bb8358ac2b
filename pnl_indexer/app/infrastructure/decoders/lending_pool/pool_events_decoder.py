from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from eth_abi import decode as abi_decode
from eth_abi.exceptions import DecodingError
from eth_utils import keccak

from pnl_indexer.app.domain.models import DecodedPoolEvent, RawPoolLog

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EventInput:
    name: str
    type: str
    indexed: bool = False


@dataclass(frozen=True)
class PoolEventAbi:
    name: str
    inputs: tuple[EventInput, ...]

    @property
    def signature(self) -> str:
        return f"{self.name}({','.join(i.type for i in self.inputs)})"

    @property
    def topic0(self) -> bytes:
        return keccak(text=self.signature)


# Aave v2 / Radiant v2 and Aave v3 pool events. Borrow and Repay differ
# between versions, so both shapes are registered under the same name.
LENDING_POOL_EVENTS: tuple[PoolEventAbi, ...] = (
    PoolEventAbi(
        "Deposit",
        (
            EventInput("reserve", "address", indexed=True),
            EventInput("user", "address"),
            EventInput("onBehalfOf", "address", indexed=True),
            EventInput("amount", "uint256"),
            EventInput("referral", "uint16", indexed=True),
        ),
    ),
    PoolEventAbi(
        "Supply",
        (
            EventInput("reserve", "address", indexed=True),
            EventInput("user", "address"),
            EventInput("onBehalfOf", "address", indexed=True),
            EventInput("amount", "uint256"),
            EventInput("referralCode", "uint16", indexed=True),
        ),
    ),
    PoolEventAbi(
        "Withdraw",
        (
            EventInput("reserve", "address", indexed=True),
            EventInput("user", "address", indexed=True),
            EventInput("to", "address", indexed=True),
            EventInput("amount", "uint256"),
        ),
    ),
    PoolEventAbi(
        "Borrow",
        (
            EventInput("reserve", "address", indexed=True),
            EventInput("user", "address"),
            EventInput("onBehalfOf", "address", indexed=True),
            EventInput("amount", "uint256"),
            EventInput("interestRateMode", "uint256"),
            EventInput("borrowRate", "uint256"),
            EventInput("referral", "uint16", indexed=True),
        ),
    ),
    PoolEventAbi(
        "Borrow",
        (
            EventInput("reserve", "address", indexed=True),
            EventInput("user", "address"),
            EventInput("onBehalfOf", "address", indexed=True),
            EventInput("amount", "uint256"),
            EventInput("interestRateMode", "uint8"),
            EventInput("borrowRate", "uint256"),
            EventInput("referralCode", "uint16", indexed=True),
        ),
    ),
    PoolEventAbi(
        "Repay",
        (
            EventInput("reserve", "address", indexed=True),
            EventInput("user", "address", indexed=True),
            EventInput("repayer", "address", indexed=True),
            EventInput("amount", "uint256"),
        ),
    ),
    PoolEventAbi(
        "Repay",
        (
            EventInput("reserve", "address", indexed=True),
            EventInput("user", "address", indexed=True),
            EventInput("repayer", "address", indexed=True),
            EventInput("amount", "uint256"),
            EventInput("useATokens", "bool"),
        ),
    ),
)


class LendingPoolEventDecoder:
    """
    ABI-based decoder for lending pool logs.

    It:
    - computes topic0 = keccak("EventName(type1,type2,...)") for every known shape,
    - decodes indexed args from topics (address / uint16),
    - decodes non-indexed args from `data` with eth_abi.

    Addresses come out as lowercase 0x-hex strings. Logs with an unknown
    topic0 or a payload that does not match the ABI decode to None.
    """

    def __init__(self, events: tuple[PoolEventAbi, ...] = LENDING_POOL_EVENTS) -> None:
        self._by_topic0: dict[bytes, PoolEventAbi] = {}
        for evt in events:
            if evt.topic0 in self._by_topic0:
                raise ValueError(f"Duplicate event signature: {evt.signature}")
            self._by_topic0[evt.topic0] = evt

    @property
    def topics(self) -> list[bytes]:
        return list(self._by_topic0.keys())

    def decode(self, log: RawPoolLog) -> DecodedPoolEvent | None:
        if not log.topics:
            return None

        evt = self._by_topic0.get(bytes(log.topics[0]))
        if evt is None:
            return None

        indexed = [i for i in evt.inputs if i.indexed]
        non_indexed = [i for i in evt.inputs if not i.indexed]

        if len(log.topics) != len(indexed) + 1:
            logger.debug(
                "Topic count mismatch for %s in tx=%s log_index=%s",
                evt.signature,
                log.tx_hash,
                log.log_index,
            )
            return None

        args: dict[str, Any] = {}
        try:
            for inp, topic in zip(indexed, log.topics[1:], strict=True):
                args[inp.name] = self._decode_topic(inp.type, bytes(topic))
        except ValueError as exc:
            logger.debug("Malformed topics for %s in tx=%s: %s", evt.signature, log.tx_hash, exc)
            return None

        if non_indexed:
            try:
                values = abi_decode([i.type for i in non_indexed], bytes(log.data))
            except (DecodingError, ValueError, TypeError) as exc:
                logger.debug(
                    "Undecodable %s payload in tx=%s log_index=%s: %s",
                    evt.signature,
                    log.tx_hash,
                    log.log_index,
                    exc,
                )
                return None
            for inp, val in zip(non_indexed, values, strict=True):
                args[inp.name] = self._normalize_value(inp.type, val)

        return DecodedPoolEvent(event_name=evt.name, signature=evt.signature, args=args)

    # ---------------------------------------------------------------------
    # Topic / ABI value normalization
    # ---------------------------------------------------------------------

    @staticmethod
    def _decode_topic(typ: str, topic: bytes) -> Any:
        if len(topic) != 32:
            raise ValueError(f"Expected 32 bytes (topic), got len={len(topic)}")
        if typ == "address":
            # left-zero padded 20-byte address
            return "0x" + topic[-20:].hex()
        if typ.startswith("uint"):
            return int.from_bytes(topic, byteorder="big", signed=False)
        if typ == "bool":
            return topic[-1] != 0
        return topic

    @staticmethod
    def _normalize_value(typ: str, val: Any) -> Any:
        if typ == "address":
            return str(val).lower()
        if typ.startswith("uint") or typ.startswith("int"):
            return int(val)
        return val
