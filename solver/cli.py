from __future__ import annotations

import argparse
import json
import logging
import time
from dataclasses import replace
from pathlib import Path
from typing import Optional, Sequence

from klondike.state import deal
from solver.config import DEFAULT_CONFIG, SearchBudget, SolverConfig, load_config
from solver.engine import SearchResult, solve
from solver.greedy import greedy_play
from solver.parallel import solve_parallel

logger = logging.getLogger(__name__)


def _parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Solve Klondike deals by seed.")
    parser.add_argument("--seed", type=int, action="append", required=True, help="Seed to solve; can be repeated.")
    parser.add_argument("--draw", type=int, choices=(1, 3), default=None, help="Cards turned per draw.")
    parser.add_argument("--config", type=str, default="", help="Optional ini file with [search]/[heuristic] sections.")
    parser.add_argument("--max-nodes", type=int, default=None, help="Search node budget (frontier pops).")
    parser.add_argument("--max-seconds", type=float, default=None, help="Search time budget in seconds.")
    parser.add_argument("--max-frontier", type=int, default=None, help="Search frontier size limit.")
    parser.add_argument("--workers", type=int, default=1, help="Parallel search workers.")
    parser.add_argument("--strategy", choices=("search", "greedy"), default="search", help="Solver to use.")
    parser.add_argument("--moves", action="store_true", help="Print the move list after each summary line.")
    parser.add_argument("--show-final", action="store_true", help="Print the final position after each summary line.")
    parser.add_argument("--json", action="store_true", help="Print one json object per seed instead of text.")
    parser.add_argument("--jsonl", type=str, default="", help="Optional output jsonl path (appended).")
    parser.add_argument("--verbose", action="store_true", help="Debug logging.")
    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> SolverConfig:
    config = load_config(args.config) if args.config else DEFAULT_CONFIG
    budget = config.budget
    budget = SearchBudget(
        node_budget=budget.node_budget if args.max_nodes is None else args.max_nodes,
        time_budget=budget.time_budget if args.max_seconds is None else args.max_seconds,
        frontier_limit=budget.frontier_limit if args.max_frontier is None else args.max_frontier,
    )
    draw_count = config.draw_count if args.draw is None else args.draw
    return replace(config, budget=budget, draw_count=draw_count)


def run_seed(seed: int, config: SolverConfig, strategy: str = "search", workers: int = 1) -> SearchResult:
    state = deal(seed, config.draw_count or 1)
    if strategy == "greedy":
        return greedy_play(state, config)
    if workers > 1:
        return solve_parallel(state, config, workers=workers)
    return solve(state, config=config)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = _parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    config = build_config(args)
    logger.debug("solving %d seed(s) with %s", len(args.seed), config)

    out_path = Path(args.jsonl).expanduser() if args.jsonl else None
    if out_path is not None:
        out_path.parent.mkdir(parents=True, exist_ok=True)

    won = 0
    started = time.perf_counter()
    for seed in args.seed:
        result = run_seed(seed, config, strategy=args.strategy, workers=args.workers)
        payload = result.to_dict()
        payload["seed"] = seed
        payload["strategy"] = args.strategy

        if out_path is not None:
            with out_path.open("a", encoding="utf-8") as f:
                f.write(json.dumps(payload, ensure_ascii=False) + "\n")

        if result.won:
            won += 1

        if args.json:
            print(json.dumps(payload, ensure_ascii=False))
            continue
        print(
            f"seed={seed} outcome={result.outcome} reason={result.stop_reason} "
            f"moves={len(result.moves)} popped={result.popped_nodes} "
            f"expanded={result.expanded_nodes} elapsed_ms={result.elapsed_ms:.1f}"
        )
        if args.moves:
            for line in result.to_lines():
                print(line)
        if args.show_final:
            print(result.final_state.render())

    if not args.json:
        total_ms = (time.perf_counter() - started) * 1000.0
        print(f"summary played={len(args.seed)} won={won} total_ms={total_ms:.1f}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
