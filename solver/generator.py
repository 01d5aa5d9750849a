from __future__ import annotations

from klondike.moves import Move
from klondike.rules import iter_legal_moves
from klondike.view import StateView

# Lower sorts first.
PRIO_FOUNDATION_REVEAL = 0
PRIO_FOUNDATION = 1
PRIO_TABLEAU_REVEAL = 2
PRIO_WASTE_TO_TABLEAU = 3
PRIO_TABLEAU_EMPTIES_COLUMN = 4
PRIO_TABLEAU = 5
PRIO_DRAW = 6
PRIO_RECYCLE = 7
PRIO_FOUNDATION_TO_TABLEAU = 8
PRIO_KING_SHUFFLE = 9


def move_priority(view: StateView, move: Move) -> int:
    src, dest = move.src, move.dest
    if move.is_draw:
        return PRIO_DRAW
    if move.is_recycle:
        return PRIO_RECYCLE
    if src.is_foundation:
        return PRIO_FOUNDATION_TO_TABLEAU
    if src.is_waste:
        return PRIO_FOUNDATION if dest.is_foundation else PRIO_WASTE_TO_TABLEAU

    hidden = view.hidden_count(src.index)
    whole_face_up = move.count == view.face_up_count(src.index)
    reveals = whole_face_up and hidden > 0
    if dest.is_foundation:
        return PRIO_FOUNDATION_REVEAL if reveals else PRIO_FOUNDATION
    if reveals:
        return PRIO_TABLEAU_REVEAL
    if whole_face_up and hidden == 0:
        if view.column_length(dest.index) == 0:
            return PRIO_KING_SHUFFLE
        return PRIO_TABLEAU_EMPTIES_COLUMN
    return PRIO_TABLEAU


def moves_for(view: StateView) -> tuple[Move, ...]:
    """
    Candidate moves for ``view`` ordered so that earlier entries are
    provisionally more promising.

    Every legal move appears once, except that a run headed for an empty
    column is offered only for the first empty column: empty columns are
    interchangeable. The result is empty exactly when the position is stuck.
    """

    seen: set[Move] = set()
    empty_target_used: set[tuple] = set()
    candidates: list[Move] = []
    for move in iter_legal_moves(view):
        if move in seen:
            continue
        if move.dest.is_tableau and view.column_length(move.dest.index) == 0:
            key = (move.src, move.count)
            if key in empty_target_used:
                continue
            empty_target_used.add(key)
        seen.add(move)
        candidates.append(move)

    candidates.sort(key=lambda m: move_priority(view, m))
    return tuple(candidates)
