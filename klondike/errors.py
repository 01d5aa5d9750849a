from __future__ import annotations

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from klondike.moves import Move


class KlondikeError(Exception):
    pass


class IllegalMove(KlondikeError):
    """A move failed a rule precondition for the state it was applied to."""

    def __init__(self, move: Optional["Move"], reason: str):
        self.move = move
        self.reason = reason
        label = move.to_notation() if move is not None else "<none>"
        super().__init__(f"illegal move {label}: {reason}")


class InvalidDeal(KlondikeError):
    """The initial configuration breaks a layout invariant."""


class StaleViewError(KlondikeError):
    """A view was read after the session it was taken from changed."""
