from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

from klondike.cards import DECK_SIZE, NUM_PER_SUIT, CardId, card_str, full_deck, make_card
from klondike.errors import InvalidDeal
from klondike.moves import FOUNDATION_COUNT, TABLEAU_COUNT

Column = tuple[CardId, ...]
StateKey = tuple[Column, Column, tuple[int, ...], tuple[tuple[Column, int], ...]]

STATUS_WON = "won"
STATUS_STUCK = "stuck"
STATUS_IN_PROGRESS = "in_progress"

DRAW_COUNTS = (1, 3)


@dataclass(frozen=True, slots=True)
class KlondikeState:
    """Immutable point-in-time configuration of one Klondike game."""

    tableau: tuple[Column, ...]
    # Number of face-down cards from the bottom of each column.
    hidden: tuple[int, ...]
    foundations: tuple[Column, ...]
    stock: Column = ()
    waste: Column = ()
    draw_count: int = 1
    move_count: int = 0
    score: int = 0

    def apply(self, move) -> "KlondikeState":
        from klondike.rules import apply_move

        return apply_move(self, move)

    def is_won(self) -> bool:
        return all(len(f) == NUM_PER_SUIT for f in self.foundations)

    def is_stuck(self) -> bool:
        from klondike.rules import legal_moves

        return not self.is_won() and not legal_moves(self)

    def status(self) -> str:
        if self.is_won():
            return STATUS_WON
        if self.is_stuck():
            return STATUS_STUCK
        return STATUS_IN_PROGRESS

    def fingerprint(self) -> StateKey:
        """
        Canonical key for dedup:
        - keep stock and waste order (draw order matters)
        - sort tableau columns to collapse permutation symmetry
        """
        columns = tuple(sorted(zip(self.tableau, self.hidden)))
        return self.stock, self.waste, tuple(len(f) for f in self.foundations), columns

    def cards_off_foundation(self) -> int:
        return DECK_SIZE - sum(len(f) for f in self.foundations)

    def check_invariants(self) -> None:
        _validate(self)

    def render(self) -> str:
        lines = [f"Stock {len(self.stock)}  Waste {len(self.waste)}  Moves {self.move_count}  Score {self.score}"]
        if self.waste:
            lines.append("Waste top: " + card_str(self.waste[-1]))
        tops = [card_str(f[-1]) if f else "--" for f in self.foundations]
        lines.append("Foundations: " + " ".join(tops))
        for i, (col, hidden) in enumerate(zip(self.tableau, self.hidden)):
            cells = ["##" if k < hidden else card_str(c) for k, c in enumerate(col)]
            lines.append(f"T{i}: " + " ".join(cells))
        return "\n".join(lines)


def _validate(state: KlondikeState) -> None:
    if state.draw_count not in DRAW_COUNTS:
        raise InvalidDeal(f"draw_count must be one of {DRAW_COUNTS}, got {state.draw_count}")
    if len(state.tableau) != TABLEAU_COUNT:
        raise InvalidDeal(f"expected {TABLEAU_COUNT} tableau columns, got {len(state.tableau)}")
    if len(state.hidden) != len(state.tableau):
        raise InvalidDeal("hidden counts do not match tableau columns")
    if len(state.foundations) != FOUNDATION_COUNT:
        raise InvalidDeal(f"expected {FOUNDATION_COUNT} foundations, got {len(state.foundations)}")

    for idx, (col, hidden) in enumerate(zip(state.tableau, state.hidden)):
        if hidden < 0 or hidden > len(col):
            raise InvalidDeal(f"column {idx} has invalid hidden count {hidden}")
        if col and hidden >= len(col):
            raise InvalidDeal(f"column {idx} has a face-down top card")

    for suit, pile in enumerate(state.foundations):
        for rank, card in enumerate(pile):
            if card != make_card(suit, rank):
                raise InvalidDeal(f"foundation {suit} is out of order at {card_str(card)}")

    seen: set[CardId] = set()
    total = 0
    for pile in _all_piles(state):
        for card in pile:
            if not 0 <= card < DECK_SIZE:
                raise InvalidDeal(f"unknown card id {card}")
            if card in seen:
                raise InvalidDeal(f"duplicate card {card_str(card)}")
            seen.add(card)
            total += 1
    if total != DECK_SIZE:
        raise InvalidDeal(f"expected {DECK_SIZE} cards, found {total}")


def _all_piles(state: KlondikeState) -> Iterable[Column]:
    yield from state.tableau
    yield from state.foundations
    yield state.stock
    yield state.waste


def from_layout(
    tableau: Sequence[Sequence[CardId]],
    foundations: Optional[Sequence[Sequence[CardId]]] = None,
    stock: Sequence[CardId] = (),
    waste: Sequence[CardId] = (),
    hidden: Optional[Sequence[int]] = None,
    draw_count: int = 1,
    move_count: int = 0,
    score: int = 0,
) -> KlondikeState:
    """Build and validate a state from explicit piles; raises InvalidDeal."""

    cols = [tuple(col) for col in tableau]
    if len(cols) < TABLEAU_COUNT:
        cols.extend(() for _ in range(TABLEAU_COUNT - len(cols)))
    if hidden is None:
        hidden_t = tuple(0 for _ in cols)
    else:
        hidden_t = tuple(hidden)
        if len(hidden_t) < len(cols):
            hidden_t = hidden_t + tuple(0 for _ in range(len(cols) - len(hidden_t)))
    if foundations is None:
        foundations_t: tuple[Column, ...] = tuple(() for _ in range(FOUNDATION_COUNT))
    else:
        foundations_t = tuple(tuple(f) for f in foundations)

    state = KlondikeState(
        tableau=tuple(cols),
        hidden=hidden_t,
        foundations=foundations_t,
        stock=tuple(stock),
        waste=tuple(waste),
        draw_count=draw_count,
        move_count=move_count,
        score=score,
    )
    _validate(state)
    return state


def shuffled_deck(seed: int) -> list[CardId]:
    deck = full_deck()
    random.Random(seed).shuffle(deck)
    return deck


def deal(seed: int, draw_count: int = 1) -> KlondikeState:
    """Deal a new game: column i gets i+1 cards, only the top one face up."""

    if draw_count not in DRAW_COUNTS:
        raise InvalidDeal(f"draw_count must be one of {DRAW_COUNTS}, got {draw_count}")
    pack = shuffled_deck(seed)
    cols: list[Column] = []
    pos = 0
    for i in range(TABLEAU_COUNT):
        cols.append(tuple(pack[pos:pos + i + 1]))
        pos += i + 1
    stock = tuple(pack[pos:])
    return KlondikeState(
        tableau=tuple(cols),
        hidden=tuple(len(col) - 1 for col in cols),
        foundations=tuple(() for _ in range(FOUNDATION_COUNT)),
        stock=stock,
        waste=(),
        draw_count=draw_count,
    )
