from __future__ import annotations

import logging
import time
from typing import Iterable, Optional

from klondike.moves import Move
from klondike.rules import apply_move
from klondike.state import Column, KlondikeState, deal
from klondike.view import StateView
from solver.config import DEFAULT_CONFIG, SolverConfig
from solver.engine import BEST_EFFORT, GOAL_REACHED, STUCK, WON, SearchResult, prepare_state, solve
from solver.generator import moves_for
from solver.heuristic import score

logger = logging.getLogger(__name__)

NO_MOVES = "no_moves"
STEP_LIMIT = "step_limit"

_Layout = tuple[tuple[Column, ...], tuple[int, ...], Column, Column]


def _layout_key(state: KlondikeState) -> _Layout:
    # Moves name column indices, so unlike the fingerprint this keeps column order.
    return state.tableau, state.hidden, state.stock, state.waste


def greedy_play(
    initial_state: KlondikeState,
    config: SolverConfig = DEFAULT_CONFIG,
    max_steps: int = 2_000,
) -> SearchResult:
    """
    Play one move at a time without lookahead.

    Each step takes the untried move whose successor scores best (generator
    order breaks ties) and never repeats a (position, move) pair, so the
    player cannot loop forever through draws and recycles.
    """

    start = time.perf_counter()
    weights = config.heuristic_weights
    state = prepare_state(initial_state, config)
    start_score = score(StateView(state), weights)
    tried: set[tuple[_Layout, Move]] = set()
    played: list[Move] = []
    generated = 0
    cur = state
    cur_score = start_score
    reason = STEP_LIMIT

    for _ in range(max_steps):
        view = StateView(cur)
        if view.is_won:
            reason = GOAL_REACHED
            break
        key = _layout_key(cur)

        best: Optional[tuple[float, int, Move, KlondikeState]] = None
        for order, move in enumerate(moves_for(view)):
            if (key, move) in tried:
                continue
            child = apply_move(cur, move)
            generated += 1
            value = score(StateView(child), weights)
            if best is None or (value, -order) > (best[0], -best[1]):
                best = (value, order, move, child)

        if best is None:
            reason = NO_MOVES
            break
        value, _, move, child = best
        tried.add((key, move))
        played.append(move)
        cur, cur_score = child, value

    if reason == STEP_LIMIT and cur.is_won():
        reason = GOAL_REACHED
    if reason == GOAL_REACHED:
        outcome = WON
    elif cur_score > start_score:
        outcome = BEST_EFFORT
    else:
        outcome = STUCK
    elapsed_ms = (time.perf_counter() - start) * 1000.0
    logger.debug("greedy %s (%s) after %d moves", outcome, reason, len(played))
    return SearchResult(
        outcome=outcome,
        stop_reason=reason,
        moves=tuple(played),
        final_state=cur,
        final_score=cur_score,
        expanded_nodes=len(played),
        popped_nodes=len(played),
        generated_nodes=generated,
        duplicate_states_skipped=0,
        max_frontier=0,
        max_depth=len(played),
        elapsed_ms=elapsed_ms,
    )


def play_games(
    seeds: Iterable[int],
    draw_count: int = 1,
    strategy: str = "greedy",
    config: SolverConfig = DEFAULT_CONFIG,
) -> dict:
    """Deal and play each seed, reporting how many were won."""

    if strategy not in ("greedy", "search"):
        raise ValueError(f"unknown strategy: {strategy}")
    rows = []
    for seed in seeds:
        state = deal(seed, draw_count)
        if strategy == "greedy":
            result = greedy_play(state, config)
        else:
            result = solve(state, config=config)
        rows.append({"seed": seed, "outcome": result.outcome, "moves": len(result.moves)})
        logger.info("game %d %s in %d moves", seed, result.outcome, len(result.moves))
    won = sum(1 for row in rows if row["outcome"] == WON)
    return {"strategy": strategy, "played": len(rows), "won": won, "games": rows}
