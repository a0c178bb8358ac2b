from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Any

from .pnl.index_lending_events_task import index_lending_events_task as pnl__index_lending_events_task
from .pnl.rebuild_wallet_pnl_task import rebuild_wallet_pnl_task as pnl__rebuild_wallet_pnl_task
from .pnl.wallet_pnl_history_task import wallet_pnl_history_task as pnl__wallet_pnl_history_task

TaskFn = Callable[..., Awaitable[Any]]

TASKS: dict[str, TaskFn] = {
    "pnl__index_lending_events_task": pnl__index_lending_events_task,
    "pnl__rebuild_wallet_pnl_task": pnl__rebuild_wallet_pnl_task,
    "pnl__wallet_pnl_history_task": pnl__wallet_pnl_history_task,
}
