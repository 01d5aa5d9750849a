from __future__ import annotations

import logging
from typing import Iterable, Optional

from klondike.errors import IllegalMove
from klondike.moves import Move
from klondike.rules import apply_move, legal_moves
from klondike.state import KlondikeState, deal
from klondike.view import StateView

logger = logging.getLogger(__name__)


class HistoryRecorder:
    """Linear undo/redo log of played moves and the states they left behind."""

    def __init__(self, initial: KlondikeState):
        self.states: list[KlondikeState] = [initial]
        self.moves: list[Move] = []
        self.idx = 0  # index into ``states`` of the current position

    @property
    def current(self) -> KlondikeState:
        return self.states[self.idx]

    def log(self, move: Move, state: KlondikeState) -> None:
        if self.idx != len(self.moves):
            self.states = self.states[:self.idx + 1]
            self.moves = self.moves[:self.idx]
        self.moves.append(move)
        self.states.append(state)
        self.idx += 1

    def undo(self) -> bool:
        if self.idx <= 0:
            return False
        self.idx -= 1
        return True

    def redo(self) -> bool:
        if self.idx >= len(self.moves):
            return False
        self.idx += 1
        return True

    def played(self) -> tuple[Move, ...]:
        return tuple(self.moves[:self.idx])


class Game:
    """
    ask-style entry points for a player or a driver.

    The session is the only mutable holder of game state. States themselves are
    immutable; each change swaps in a new state and bumps ``version`` so views
    handed out earlier fail fast instead of reporting an old position.
    """

    def __init__(self, state: KlondikeState):
        self.history = HistoryRecorder(state)
        self.version = 0

    @classmethod
    def new(cls, seed: int, draw_count: int = 1) -> "Game":
        return cls(deal(seed, draw_count))

    @property
    def state(self) -> KlondikeState:
        return self.history.current

    def view(self) -> StateView:
        return StateView(self.state, owner=self)

    def legal_moves(self) -> list[Move]:
        return legal_moves(self.state)

    def is_won(self) -> bool:
        return self.state.is_won()

    def is_running(self) -> bool:
        return not self.state.is_won() and not self.state.is_stuck()

    def play(self, move: Move) -> KlondikeState:
        new_state = apply_move(self.state, move)
        self.history.log(move, new_state)
        self.version += 1
        logger.debug("played %s (move %d)", move.to_notation(), new_state.move_count)
        return new_state

    def ask_move(self, move: Move) -> bool:
        try:
            self.play(move)
        except IllegalMove as exc:
            logger.info("rejected %s", exc)
            return False
        return True

    def follow(self, moves: Iterable[Move]) -> KlondikeState:
        for move in moves:
            self.play(move)
        return self.state

    def undo(self) -> bool:
        if not self.history.undo():
            return False
        self.version += 1
        return True

    def redo(self) -> bool:
        if not self.history.redo():
            return False
        self.version += 1
        return True

    def played_moves(self) -> tuple[Move, ...]:
        return self.history.played()

    def last_move(self) -> Optional[Move]:
        played = self.played_moves()
        return played[-1] if played else None
