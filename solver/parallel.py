from __future__ import annotations

import logging
import multiprocessing
import os
import threading
from concurrent.futures import Executor, ProcessPoolExecutor, ThreadPoolExecutor, as_completed
from dataclasses import replace
from typing import Optional, Sequence

from klondike.moves import Move
from klondike.state import KlondikeState
from solver.config import DEFAULT_CONFIG, SolverConfig
from solver.engine import SearchEngine, SearchResult, StopSignal, new_view, prepare_state
from solver.generator import moves_for

logger = logging.getLogger(__name__)


def _default_workers() -> int:
    try:
        avail = os.process_cpu_count()
    except AttributeError:
        avail = None
    if avail is None:
        avail = os.cpu_count() or 1
    return max(1, int(avail) - 1)


def partition_root_moves(state: KlondikeState, workers: int) -> list[tuple[Move, ...]]:
    """Deal the root moves round-robin so each worker gets a mix of priorities."""
    moves = moves_for(new_view(state))
    parts = [tuple(moves[k::workers]) for k in range(max(1, workers))]
    return [p for p in parts if p]


def _run_partition(
    state: KlondikeState,
    config: SolverConfig,
    root_moves: Sequence[Move],
    stop_event: Optional[StopSignal],
) -> SearchResult:
    return SearchEngine(config).run(state, root_moves=root_moves, stop_event=stop_event)


def _merge(chosen: SearchResult, results: list[tuple[int, SearchResult]]) -> SearchResult:
    totals = {
        "expanded_nodes": sum(r.expanded_nodes for _, r in results),
        "popped_nodes": sum(r.popped_nodes for _, r in results),
        "generated_nodes": sum(r.generated_nodes for _, r in results),
        "duplicate_states_skipped": sum(r.duplicate_states_skipped for _, r in results),
        "max_frontier": max(r.max_frontier for _, r in results),
        "max_depth": max(r.max_depth for _, r in results),
        "elapsed_ms": max(r.elapsed_ms for _, r in results),
    }
    return replace(chosen, **totals)


def _pick(results: list[tuple[int, SearchResult]]) -> SearchResult:
    _, chosen = max(results, key=lambda item: (item[1].final_score, -len(item[1].moves), -item[0]))
    return _merge(chosen, results)


def _collect(
    exe: Executor,
    state: KlondikeState,
    config: SolverConfig,
    partitions: list[tuple[Move, ...]],
    stop_event: StopSignal,
) -> SearchResult:
    futures = {
        exe.submit(_run_partition, state, config, part, stop_event): idx
        for idx, part in enumerate(partitions)
    }
    results: list[tuple[int, SearchResult]] = []
    winner: Optional[SearchResult] = None
    for fut in as_completed(futures):
        result = fut.result()
        results.append((futures[fut], result))
        if result.won and winner is None:
            winner = result
            stop_event.set()
            logger.info("partition %d won; cancelling the other workers", futures[fut])
    if winner is not None:
        return _merge(winner, results)
    return _pick(results)


def solve_parallel(
    initial_state: KlondikeState,
    config: SolverConfig = DEFAULT_CONFIG,
    workers: Optional[int] = None,
    use_processes: bool = True,
) -> SearchResult:
    """
    Race several engines, each owning a private visited set and a disjoint
    share of the root moves. The first win stops the others; without a win the
    best-scoring plan is returned with metrics summed over all workers.
    """

    state = prepare_state(initial_state, config)
    workers = _default_workers() if workers is None else max(1, workers)
    partitions = partition_root_moves(state, workers)
    if workers <= 1 or len(partitions) <= 1:
        return SearchEngine(config).run(state)

    if use_processes:
        try:
            with multiprocessing.Manager() as manager:
                stop = manager.Event()
                with ProcessPoolExecutor(max_workers=len(partitions)) as exe:
                    return _collect(exe, state, config, partitions, stop)
        except PermissionError:
            logger.warning("process pool unavailable in current environment; fallback to thread pool")

    stop = threading.Event()
    with ThreadPoolExecutor(max_workers=len(partitions)) as exe:
        return _collect(exe, state, config, partitions, stop)
