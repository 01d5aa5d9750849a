from __future__ import annotations

from klondike.view import StateView
from solver.config import DEFAULT_WEIGHTS, HeuristicWeights


def score(view: StateView, weights: HeuristicWeights = DEFAULT_WEIGHTS) -> float:
    """Evaluate the visible facts of a position; higher is better."""

    return (
        view.foundation_total * weights.foundation_card
        + view.total_face_up * weights.face_up_card
        + view.total_face_down * weights.face_down_card
        + view.empty_columns * weights.empty_column
        + view.ordered_links * weights.ordered_link
        + (view.stock_size + view.waste_size) * weights.stock_waste_card
        + view.buried_kings * weights.blocking_king
    )


def breakdown(view: StateView, weights: HeuristicWeights = DEFAULT_WEIGHTS) -> dict:
    return {
        "foundation_cards": view.foundation_total,
        "face_up_cards": view.total_face_up,
        "face_down_cards": view.total_face_down,
        "empty_columns": view.empty_columns,
        "ordered_links": view.ordered_links,
        "stock_waste_cards": view.stock_size + view.waste_size,
        "blocking_kings": view.buried_kings,
        "score": score(view, weights),
    }
