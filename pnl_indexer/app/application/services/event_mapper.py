from __future__ import annotations

from typing import Final

from pnl_indexer.app.domain.models import (
    ZERO_ADDRESS,
    Action,
    CanonicalAction,
    DecodedPoolEvent,
)

# event name -> (canonical action, argument that owns the funds)
# Deposit/Supply: onBehalfOf, not the tx sender (routers supply for users).
_EVENT_MAPPING: Final[dict[str, tuple[Action, str]]] = {
    "Deposit": ("deposit", "onBehalfOf"),
    "Supply": ("deposit", "onBehalfOf"),
    "Withdraw": ("withdraw", "to"),
    "Borrow": ("borrow", "onBehalfOf"),
    "Repay": ("repay", "user"),
}


def map_pool_event(event: DecodedPoolEvent) -> CanonicalAction | None:
    """
    Normalize a decoded pool event into a canonical wallet action.

    Both protocol versions of Borrow/Repay carry reserve/amount/wallet under
    the same argument names, so one mapping covers both shapes.

    Returns None for unknown events, missing fields and zero-address wallets.
    """
    mapping = _EVENT_MAPPING.get(event.event_name)
    if mapping is None:
        return None

    action, wallet_arg = mapping
    reserve = event.args.get("reserve")
    amount = event.args.get("amount")
    wallet = event.args.get(wallet_arg)

    if not reserve or amount is None or not wallet:
        return None

    wallet = str(wallet).lower()
    if wallet == ZERO_ADDRESS:
        return None

    return CanonicalAction(
        action=action,
        wallet_address=wallet,
        asset_address=str(reserve).lower(),
        amount_raw=int(amount),
    )
