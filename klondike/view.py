from __future__ import annotations

from typing import Optional, Protocol

from klondike.cards import KING, CardId, card_rank, stacks_on
from klondike.errors import StaleViewError
from klondike.moves import Pile
from klondike.state import Column, KlondikeState, StateKey


class VersionSource(Protocol):
    version: int


def movable_run_starts(column: Column, hidden: int) -> tuple[int, ...]:
    """Return all indices that start a movable alternating descending run."""
    n = len(column)
    if n == 0 or hidden >= n:
        return ()
    hidden = max(0, hidden)

    valid: list[int] = [n - 1]
    for idx in range(n - 2, hidden - 1, -1):
        if not stacks_on(column[idx + 1], column[idx]):
            break
        valid.append(idx)
    valid.reverse()
    return tuple(valid)


class StateView:
    """
    Read-only projection of one KlondikeState.

    Building a view is O(1). Single-pile facts are answered straight from the
    state's tuples; composite facts are computed on first use and memoized on
    the instance. A view taken from a live session carries the session version
    and refuses to answer once the session has moved on.
    """

    __slots__ = ("_state", "_owner", "_version", "_runs", "_memo")

    def __init__(self, state: KlondikeState, owner: Optional[VersionSource] = None):
        self._state = state
        self._owner = owner
        self._version = owner.version if owner is not None else 0
        self._runs: dict[int, tuple[int, ...]] = {}
        self._memo: dict[str, object] = {}

    def _check(self) -> KlondikeState:
        owner = self._owner
        if owner is not None and owner.version != self._version:
            raise StaleViewError(f"view taken at version {self._version}, session is at {owner.version}")
        return self._state

    @property
    def is_stale(self) -> bool:
        return self._owner is not None and self._owner.version != self._version

    # -- single-pile facts ---------------------------------------------

    @property
    def draw_count(self) -> int:
        return self._check().draw_count

    @property
    def column_count(self) -> int:
        return len(self._check().tableau)

    def column(self, idx: int) -> Column:
        return self._check().tableau[idx]

    def column_length(self, idx: int) -> int:
        return len(self._check().tableau[idx])

    def column_top(self, idx: int) -> Optional[CardId]:
        col = self._check().tableau[idx]
        return col[-1] if col else None

    def hidden_count(self, idx: int) -> int:
        return self._check().hidden[idx]

    def face_up_count(self, idx: int) -> int:
        state = self._check()
        return len(state.tableau[idx]) - state.hidden[idx]

    def is_face_up(self, idx: int, pos: int) -> bool:
        state = self._check()
        return state.hidden[idx] <= pos < len(state.tableau[idx])

    def foundation_height(self, suit: int) -> int:
        return len(self._check().foundations[suit])

    def foundation_top(self, suit: int) -> Optional[CardId]:
        pile = self._check().foundations[suit]
        return pile[-1] if pile else None

    @property
    def stock(self) -> Column:
        return self._check().stock

    @property
    def waste(self) -> Column:
        return self._check().waste

    @property
    def stock_size(self) -> int:
        return len(self._check().stock)

    @property
    def waste_size(self) -> int:
        return len(self._check().waste)

    @property
    def waste_top(self) -> Optional[CardId]:
        waste = self._check().waste
        return waste[-1] if waste else None

    def pile_length(self, pile: Pile) -> int:
        return len(self._pile(pile))

    def top(self, pile: Pile) -> Optional[CardId]:
        cards = self._pile(pile)
        return cards[-1] if cards else None

    def _pile(self, pile: Pile) -> Column:
        state = self._check()
        if pile.is_tableau:
            return state.tableau[pile.index]
        if pile.is_foundation:
            return state.foundations[pile.index]
        if pile.is_waste:
            return state.waste
        return state.stock

    # -- memoized composite facts ----------------------------------------

    def run_starts(self, idx: int) -> tuple[int, ...]:
        state = self._check()
        runs = self._runs.get(idx)
        if runs is None:
            runs = movable_run_starts(state.tableau[idx], state.hidden[idx])
            self._runs[idx] = runs
        return runs

    def is_run_start(self, idx: int, pos: int) -> bool:
        runs = self.run_starts(idx)
        return bool(runs) and runs[0] <= pos <= runs[-1]

    def _memoized(self, key: str, compute):
        state = self._check()
        try:
            return self._memo[key]
        except KeyError:
            value = compute(state)
            self._memo[key] = value
            return value

    @property
    def movable_run_count(self) -> int:
        return self._memoized("movable_runs", lambda s: sum(len(self.run_starts(i)) for i in range(len(s.tableau))))

    @property
    def total_face_down(self) -> int:
        return self._memoized("face_down", lambda s: sum(s.hidden))

    @property
    def total_face_up(self) -> int:
        return self._memoized("face_up", lambda s: sum(len(c) for c in s.tableau) - sum(s.hidden))

    @property
    def empty_columns(self) -> int:
        return self._memoized("empty", lambda s: sum(1 for c in s.tableau if not c))

    @property
    def foundation_total(self) -> int:
        return self._memoized("foundation", lambda s: sum(len(f) for f in s.foundations))

    @property
    def ordered_links(self) -> int:
        return self._memoized("links", _ordered_links)

    @property
    def buried_kings(self) -> int:
        """Face-up kings that are not at the bottom of their column."""
        return self._memoized("buried_kings", _buried_kings)

    @property
    def can_draw(self) -> bool:
        return self._memoized("can_draw", lambda s: len(s.stock) > 0)

    @property
    def can_recycle(self) -> bool:
        return self._memoized("can_recycle", lambda s: not s.stock and len(s.waste) > 0)

    @property
    def next_draw_count(self) -> int:
        return self._memoized("next_draw", lambda s: min(s.draw_count, len(s.stock)))

    @property
    def is_won(self) -> bool:
        return self._memoized("won", lambda s: s.is_won())

    @property
    def fingerprint(self) -> StateKey:
        return self._memoized("fingerprint", lambda s: s.fingerprint())


def _ordered_links(state: KlondikeState) -> int:
    links = 0
    for col, hidden in zip(state.tableau, state.hidden):
        for i in range(max(hidden, 0) + 1, len(col)):
            if stacks_on(col[i], col[i - 1]):
                links += 1
    return links


def _buried_kings(state: KlondikeState) -> int:
    count = 0
    for col, hidden in zip(state.tableau, state.hidden):
        for i in range(hidden, len(col)):
            if i > 0 and card_rank(col[i]) == KING:
                count += 1
    return count
