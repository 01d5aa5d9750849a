"""
Klondike rules: legal move enumeration and move application.

Moves are enumerated from a StateView and applied to an immutable
KlondikeState, producing a new state. ``check_move`` validates a single move
directly and agrees exactly with ``iter_legal_moves``.
"""
from __future__ import annotations

from dataclasses import replace
from typing import Iterator

from klondike.cards import KING, builds_foundation, card_rank, card_suit, stacks_on
from klondike.errors import IllegalMove
from klondike.moves import (
    FOUNDATION_COUNT,
    FOUNDATIONS,
    TABLEAU,
    TABLEAU_COUNT,
    WASTE,
    Move,
    Pile,
    draw,
    recycle,
)
from klondike.state import Column, KlondikeState
from klondike.view import StateView, movable_run_starts

SCORE_WASTE_TO_FOUNDATION = 10
SCORE_WASTE_TO_TABLEAU = 5
SCORE_TABLEAU_TO_FOUNDATION = 10
SCORE_FOUNDATION_TO_TABLEAU = -15
SCORE_REVEAL = 5
SCORE_RECYCLE = -100


def _accepts(view: StateView, dest_idx: int, card: int) -> bool:
    top = view.column_top(dest_idx)
    if top is None:
        return card_rank(card) == KING
    return stacks_on(card, top)


def iter_legal_moves(view: StateView) -> Iterator[Move]:
    """Yield every legal move once, in a stable enumeration order."""

    columns = view.column_count

    # Foundation placements from the tableau, then from the waste.
    for i in range(columns):
        top = view.column_top(i)
        if top is not None and builds_foundation(top, view.foundation_height(card_suit(top))):
            yield Move(TABLEAU[i], FOUNDATIONS[card_suit(top)], 1)
    waste_top = view.waste_top
    if waste_top is not None and builds_foundation(waste_top, view.foundation_height(card_suit(waste_top))):
        yield Move(WASTE, FOUNDATIONS[card_suit(waste_top)], 1)

    # Runs between tableau columns.
    for i in range(columns):
        col = view.column(i)
        for idx in view.run_starts(i):
            card = col[idx]
            count = len(col) - idx
            for j in range(columns):
                if j != i and _accepts(view, j, card):
                    yield Move(TABLEAU[i], TABLEAU[j], count)

    if waste_top is not None:
        for j in range(columns):
            if _accepts(view, j, waste_top):
                yield Move(WASTE, TABLEAU[j], 1)

    if view.can_draw:
        yield draw(view.next_draw_count)
    elif view.can_recycle:
        yield recycle(view.waste_size)

    for suit in range(len(FOUNDATIONS)):
        top = view.foundation_top(suit)
        if top is None:
            continue
        for j in range(columns):
            if _accepts(view, j, top):
                yield Move(FOUNDATIONS[suit], TABLEAU[j], 1)


def legal_moves(state: KlondikeState) -> list[Move]:
    return list(iter_legal_moves(StateView(state)))


def _top(pile: Column) -> int:
    return pile[-1]


def _check_pile(move: Move, pile: Pile) -> None:
    if pile.kind in ("S", "W"):
        return
    if pile.kind == "F":
        limit = FOUNDATION_COUNT
    elif pile.kind == "T":
        limit = TABLEAU_COUNT
    else:
        raise IllegalMove(move, f"unknown pile kind {pile.kind!r}")
    if not 0 <= pile.index < limit:
        raise IllegalMove(move, f"no pile {pile}")


def check_move(state: KlondikeState, move: Move) -> None:
    """Raise IllegalMove unless ``move`` is legal in ``state``."""

    src, dest, count = move.src, move.dest, move.count
    _check_pile(move, src)
    _check_pile(move, dest)

    if src.is_stock:
        if not dest.is_waste:
            raise IllegalMove(move, "stock cards can only be drawn to the waste")
        if not state.stock:
            raise IllegalMove(move, "stock is empty")
        if count != min(state.draw_count, len(state.stock)):
            raise IllegalMove(move, f"draw must turn {min(state.draw_count, len(state.stock))} cards")
        return

    if dest.is_stock:
        if not src.is_waste:
            raise IllegalMove(move, "only the waste can be recycled")
        if state.stock:
            raise IllegalMove(move, "stock is not empty")
        if not state.waste:
            raise IllegalMove(move, "waste is empty")
        if count != len(state.waste):
            raise IllegalMove(move, "recycle must move the whole waste")
        return

    if dest.is_waste:
        raise IllegalMove(move, "cards cannot be placed on the waste")

    if src.is_waste:
        if not state.waste:
            raise IllegalMove(move, "waste is empty")
        if count != 1:
            raise IllegalMove(move, "only one card moves from the waste")
        card = _top(state.waste)
    elif src.is_foundation:
        if dest.is_foundation:
            raise IllegalMove(move, "cannot move between foundations")
        if not state.foundations[src.index]:
            raise IllegalMove(move, "foundation is empty")
        if count != 1:
            raise IllegalMove(move, "only one card moves from a foundation")
        card = _top(state.foundations[src.index])
    else:
        col = state.tableau[src.index]
        hidden = state.hidden[src.index]
        if count < 1 or count > len(col) - hidden:
            raise IllegalMove(move, "not enough face-up cards")
        if dest.is_foundation and count != 1:
            raise IllegalMove(move, "only one card moves to a foundation")
        if dest.is_tableau and dest.index == src.index:
            raise IllegalMove(move, "source and destination are the same column")
        idx = len(col) - count
        starts = movable_run_starts(col, hidden)
        if not starts or idx < starts[0]:
            raise IllegalMove(move, "cards do not form a movable run")
        card = col[idx]

    if dest.is_foundation:
        if card_suit(card) != dest.index:
            raise IllegalMove(move, "foundation belongs to another suit")
        if not builds_foundation(card, len(state.foundations[dest.index])):
            raise IllegalMove(move, "card is not next on its foundation")
        return

    target = state.tableau[dest.index]
    if not target:
        if card_rank(card) != KING:
            raise IllegalMove(move, "only a king may fill an empty column")
    elif not stacks_on(card, _top(target)):
        raise IllegalMove(move, "card does not build down in alternating colour")


def is_legal(state: KlondikeState, move: Move) -> bool:
    try:
        check_move(state, move)
    except IllegalMove:
        return False
    return True


def _score_for(move: Move) -> int:
    src, dest = move.src, move.dest
    if move.is_recycle:
        return SCORE_RECYCLE
    if src.is_waste and dest.is_foundation:
        return SCORE_WASTE_TO_FOUNDATION
    if src.is_waste and dest.is_tableau:
        return SCORE_WASTE_TO_TABLEAU
    if src.is_tableau and dest.is_foundation:
        return SCORE_TABLEAU_TO_FOUNDATION
    if src.is_foundation and dest.is_tableau:
        return SCORE_FOUNDATION_TO_TABLEAU
    return 0


def apply_move(state: KlondikeState, move: Move) -> KlondikeState:
    """Return the successor state; ``state`` is left untouched."""

    check_move(state, move)

    stock = state.stock
    waste = state.waste
    tableau = state.tableau
    hidden = state.hidden
    foundations = state.foundations
    revealed = 0

    if move.is_draw:
        k = move.count
        waste = waste + tuple(reversed(stock[-k:]))
        stock = stock[:-k]
    elif move.is_recycle:
        stock = tuple(reversed(waste))
        waste = ()
    else:
        src, dest, count = move.src, move.dest, move.count
        tab = list(tableau)
        hid = list(hidden)
        found = list(foundations)

        if src.is_waste:
            moving = waste[-1:]
            waste = waste[:-1]
        elif src.is_foundation:
            pile = found[src.index]
            moving = pile[-1:]
            found[src.index] = pile[:-1]
        else:
            col = tab[src.index]
            moving = col[len(col) - count:]
            new_src = col[:len(col) - count]
            h = min(hid[src.index], len(new_src))
            if new_src and h >= len(new_src):
                h = len(new_src) - 1
                revealed = 1
            tab[src.index] = new_src
            hid[src.index] = h

        if dest.is_foundation:
            found[dest.index] = found[dest.index] + moving
        else:
            tab[dest.index] = tab[dest.index] + moving

        tableau = tuple(tab)
        hidden = tuple(hid)
        foundations = tuple(found)

    score = max(0, state.score + _score_for(move) + revealed * SCORE_REVEAL)
    return replace(
        state,
        tableau=tableau,
        hidden=hidden,
        foundations=foundations,
        stock=stock,
        waste=waste,
        move_count=state.move_count + 1,
        score=score,
    )
