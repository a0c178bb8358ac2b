from __future__ import annotations


class CursorRegressionError(ValueError):
    """Raised when a cursor write would move scan progress backwards."""

    def __init__(self, *, chain_id: int, protocol: str, current: int, requested: int) -> None:
        super().__init__(
            f"Refusing to move cursor backwards for chain_id={chain_id} protocol={protocol!r}: "
            f"{current} -> {requested}"
        )
        self.chain_id = chain_id
        self.protocol = protocol
        self.current = current
        self.requested = requested


class BlockWindowExhaustedError(RuntimeError):
    """Raised when log fetching keeps failing after the window shrank below its floor."""
