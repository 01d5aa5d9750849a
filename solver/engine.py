from __future__ import annotations

import heapq
import logging
import time
from dataclasses import dataclass, replace
from typing import Iterable, Optional, Protocol, Sequence

from klondike.errors import IllegalMove
from klondike.moves import Move
from klondike.rules import apply_move
from klondike.state import KlondikeState, StateKey
from klondike.view import StateView
from solver.config import DEFAULT_CONFIG, SearchBudget, SolverConfig
from solver.generator import moves_for
from solver.heuristic import score

logger = logging.getLogger(__name__)

# Search outcomes.
WON = "won"
BEST_EFFORT = "best_effort"
STUCK = "stuck"

# Stop reasons.
GOAL_REACHED = "goal_reached"
FRONTIER_EXHAUSTED = "frontier_exhausted"
NODE_BUDGET = "node_budget"
TIME_BUDGET = "time_budget"
FRONTIER_LIMIT = "frontier_limit"
CANCELLED = "cancelled"

# Engine phases.
PHASE_IDLE = "idle"
PHASE_RUNNING = "running"
PHASE_WON = "won"
PHASE_EXHAUSTED = "exhausted"
PHASE_BUDGET_EXCEEDED = "budget_exceeded"

_TERMINAL_PHASES = (PHASE_WON, PHASE_EXHAUSTED, PHASE_BUDGET_EXCEEDED)


class StopSignal(Protocol):
    def is_set(self) -> bool: ...


class SearchStateError(RuntimeError):
    """The engine was asked to run while not idle."""


@dataclass(slots=True)
class SearchResult:
    outcome: str
    stop_reason: str
    moves: tuple[Move, ...]
    final_state: KlondikeState
    final_score: float
    expanded_nodes: int
    popped_nodes: int
    generated_nodes: int
    duplicate_states_skipped: int
    max_frontier: int
    max_depth: int
    elapsed_ms: float

    @property
    def won(self) -> bool:
        return self.outcome == WON

    def to_lines(self) -> list[str]:
        return [move.to_notation() for move in self.moves]

    def to_dict(self) -> dict:
        return {
            "outcome": self.outcome,
            "stop_reason": self.stop_reason,
            "moves": self.to_lines(),
            "final_score": round(self.final_score, 3),
            "game_score": self.final_state.score,
            "cards_off_foundation": self.final_state.cards_off_foundation(),
            "metrics": {
                "expanded_nodes": self.expanded_nodes,
                "popped_nodes": self.popped_nodes,
                "generated_nodes": self.generated_nodes,
                "duplicate_states_skipped": self.duplicate_states_skipped,
                "max_frontier": self.max_frontier,
                "max_depth": self.max_depth,
                "elapsed_ms": round(self.elapsed_ms, 3),
            },
        }


@dataclass(slots=True)
class _Node:
    state: KlondikeState
    parent: Optional["_Node"]
    move: Optional[Move]
    depth: int
    score: float


def prepare_state(initial_state: KlondikeState, config: SolverConfig) -> KlondikeState:
    """Rebind the draw count when the configuration asks for a specific one."""
    if config.draw_count is not None and config.draw_count != initial_state.draw_count:
        return replace(initial_state, draw_count=config.draw_count)
    return initial_state


def _path(node: _Node) -> tuple[Move, ...]:
    moves: list[Move] = []
    cur: Optional[_Node] = node
    while cur is not None and cur.move is not None:
        moves.append(cur.move)
        cur = cur.parent
    moves.reverse()
    return tuple(moves)


class SearchEngine:
    """
    Best-first search over Klondike positions.

    Every node owns its own immutable state; children are derived with
    ``apply_move`` and abandoned branches are simply dropped. The frontier is
    ordered by ``score - depth_penalty * depth`` (higher first), then by depth
    (shallower first), then by discovery order. Fingerprints are checked when
    an entry is popped, so a state is never expanded twice even though the
    frontier may hold several copies of it.
    """

    def __init__(self, config: SolverConfig = DEFAULT_CONFIG, record_expansions: bool = False):
        self.config = config
        self.phase = PHASE_IDLE
        self.expanded: set[StateKey] = set()
        # Fingerprints in expansion order, kept only when asked for.
        self.expansion_log: list[StateKey] = []
        self.record_expansions = record_expansions

    @property
    def finished(self) -> bool:
        return self.phase in _TERMINAL_PHASES

    def reset(self) -> None:
        self.phase = PHASE_IDLE
        self.expanded = set()
        self.expansion_log = []

    def _evaluate(self, state: KlondikeState) -> float:
        return score(StateView(state), self.config.heuristic_weights)

    def run(
        self,
        initial_state: KlondikeState,
        root_moves: Optional[Sequence[Move]] = None,
        stop_event: Optional[StopSignal] = None,
    ) -> SearchResult:
        if self.phase != PHASE_IDLE:
            raise SearchStateError(f"engine is {self.phase}; call reset() before running again")
        self.phase = PHASE_RUNNING

        budget: SearchBudget = self.config.budget
        penalty = self.config.depth_penalty
        start = time.perf_counter()
        deadline = None if budget.time_budget is None else start + budget.time_budget

        root_state = prepare_state(initial_state, self.config)
        root = _Node(root_state, None, None, 0, self._evaluate(root_state))
        root_filter = None if root_moves is None else set(root_moves)
        logger.debug("search start: score=%.1f budget=%s", root.score, budget)

        counter = 0
        frontier: list[tuple[float, int, int, _Node]] = [(-root.score, 0, counter, root)]
        best = root
        best_key = (root.score, 0, 0)

        popped = 0
        generated = 1
        duplicates = 0
        max_frontier = 1
        max_depth = 0
        expanded = self.expanded

        def finish(phase: str, outcome: str, reason: str, node: _Node) -> SearchResult:
            self.phase = phase
            elapsed_ms = (time.perf_counter() - start) * 1000.0
            result = SearchResult(
                outcome=outcome,
                stop_reason=reason,
                moves=_path(node),
                final_state=node.state,
                final_score=node.score,
                expanded_nodes=len(expanded),
                popped_nodes=popped,
                generated_nodes=generated,
                duplicate_states_skipped=duplicates,
                max_frontier=max_frontier,
                max_depth=max_depth,
                elapsed_ms=elapsed_ms,
            )
            logger.info(
                "search %s (%s): moves=%d popped=%d expanded=%d duplicates=%d elapsed_ms=%.1f",
                outcome, reason, len(result.moves), popped, len(expanded), duplicates, elapsed_ms,
            )
            return result

        while frontier:
            if popped >= budget.node_budget:
                return finish(PHASE_BUDGET_EXCEEDED, BEST_EFFORT, NODE_BUDGET, best)
            if deadline is not None and time.perf_counter() >= deadline:
                return finish(PHASE_BUDGET_EXCEEDED, BEST_EFFORT, TIME_BUDGET, best)
            if len(frontier) > budget.frontier_limit:
                return finish(PHASE_BUDGET_EXCEEDED, BEST_EFFORT, FRONTIER_LIMIT, best)
            if stop_event is not None and stop_event.is_set():
                return finish(PHASE_BUDGET_EXCEEDED, BEST_EFFORT, CANCELLED, best)

            _, depth, order, node = heapq.heappop(frontier)
            popped += 1

            view = StateView(node.state)
            key = view.fingerprint
            if key in expanded:
                duplicates += 1
                continue

            if view.is_won:
                return finish(PHASE_WON, WON, GOAL_REACHED, node)

            expanded.add(key)
            if self.record_expansions:
                self.expansion_log.append(key)
            rank = (node.score, -depth, -order)
            if rank > best_key:
                best, best_key = node, rank

            candidates: Iterable[Move] = moves_for(view)
            if node is root and root_filter is not None:
                candidates = [m for m in candidates if m in root_filter]

            child_depth = depth + 1
            for move in candidates:
                try:
                    child_state = apply_move(node.state, move)
                except IllegalMove as exc:
                    raise AssertionError(f"move generator offered an illegal move: {exc}") from exc
                child = _Node(child_state, node, move, child_depth, self._evaluate(child_state))
                counter += 1
                heapq.heappush(frontier, (-(child.score - penalty * child_depth), child_depth, counter, child))
                generated += 1
                max_depth = max(max_depth, child_depth)

            if len(frontier) > max_frontier:
                max_frontier = len(frontier)

        if best is not root and best.score > root.score:
            return finish(PHASE_EXHAUSTED, BEST_EFFORT, FRONTIER_EXHAUSTED, best)
        return finish(PHASE_EXHAUSTED, STUCK, FRONTIER_EXHAUSTED, root)


def new_view(state: KlondikeState) -> StateView:
    return StateView(state)


def solve(
    initial_state: KlondikeState,
    budget: Optional[SearchBudget] = None,
    config: Optional[SolverConfig] = None,
) -> SearchResult:
    """Search for a winning line from ``initial_state`` with a fresh engine."""

    cfg = config or DEFAULT_CONFIG
    if budget is not None:
        cfg = replace(cfg, budget=budget)
    return SearchEngine(cfg).run(initial_state)


def replay(initial_state: KlondikeState, moves: Iterable[Move]) -> KlondikeState:
    """Apply ``moves`` in order; raises IllegalMove on the first bad one."""

    state = initial_state
    for move in moves:
        state = apply_move(state, move)
    return state
