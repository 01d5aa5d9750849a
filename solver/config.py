from __future__ import annotations

import configparser
import logging
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Mapping, Optional, Union

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class SearchBudget:
    # Maximum number of frontier pops, duplicates included.
    node_budget: int = 200_000
    # Wall-clock limit in seconds; None disables it.
    time_budget: Optional[float] = 10.0
    frontier_limit: int = 2_000_000


@dataclass(frozen=True, slots=True)
class HeuristicWeights:
    foundation_card: float = 100.0
    face_up_card: float = 2.0
    face_down_card: float = -15.0
    empty_column: float = 12.0
    ordered_link: float = 1.0
    stock_waste_card: float = -1.0
    blocking_king: float = -3.0


DEFAULT_WEIGHTS = HeuristicWeights()


@dataclass(frozen=True, slots=True)
class SolverConfig:
    budget: SearchBudget = field(default_factory=SearchBudget)
    heuristic_weights: HeuristicWeights = DEFAULT_WEIGHTS
    # None keeps the draw count the initial state was dealt with.
    draw_count: Optional[int] = None
    depth_penalty: float = 1.0

    def __post_init__(self) -> None:
        if self.draw_count not in (None, 1, 3):
            raise ValueError(f"draw_count must be 1 or 3, got {self.draw_count}")
        if self.budget.node_budget < 0:
            raise ValueError("node_budget must not be negative")
        if self.budget.time_budget is not None and self.budget.time_budget < 0:
            raise ValueError("time_budget must not be negative")
        if self.depth_penalty < 0:
            raise ValueError("depth_penalty must not be negative")


DEFAULT_CONFIG = SolverConfig()

WEIGHT_NAMES = tuple(f.name for f in fields(HeuristicWeights))


def weights_from_mapping(values: Mapping[str, float], base: HeuristicWeights = DEFAULT_WEIGHTS) -> HeuristicWeights:
    unknown = sorted(set(values) - set(WEIGHT_NAMES))
    if unknown:
        raise ValueError(f"unknown heuristic weights: {', '.join(unknown)}")
    return replace(base, **{k: float(v) for k, v in values.items()})


def _parse_optional_float(raw: str) -> Optional[float]:
    raw = raw.strip()
    if raw.lower() in ("", "none", "off"):
        return None
    return float(raw)


def load_config(path: Union[str, Path], base: SolverConfig = DEFAULT_CONFIG) -> SolverConfig:
    """
    Read solver options from an ini file.

    [search]
    node_budget = 50000
    time_budget = 5.0
    frontier_limit = 1000000
    draw_count = 3
    depth_penalty = 1.0

    [heuristic]
    foundation_card = 120

    A missing file or section keeps the defaults; malformed values raise ValueError.
    """

    config_path = Path(path)
    if not config_path.exists():
        logger.warning("config file %s not found, using defaults", config_path)
        return base

    parser = configparser.ConfigParser()
    parser.read(config_path, encoding="utf-8")

    budget = base.budget
    draw_count = base.draw_count
    depth_penalty = base.depth_penalty
    weights = base.heuristic_weights

    if "search" in parser:
        sec = parser["search"]
        budget = SearchBudget(
            node_budget=sec.getint("node_budget", budget.node_budget),
            time_budget=(
                _parse_optional_float(sec["time_budget"]) if "time_budget" in sec else budget.time_budget
            ),
            frontier_limit=sec.getint("frontier_limit", budget.frontier_limit),
        )
        if "draw_count" in sec:
            draw_count = sec.getint("draw_count")
        depth_penalty = sec.getfloat("depth_penalty", depth_penalty)

    if "heuristic" in parser:
        weights = weights_from_mapping({k: float(v) for k, v in parser["heuristic"].items()}, base=weights)

    return SolverConfig(budget=budget, heuristic_weights=weights, draw_count=draw_count, depth_penalty=depth_penalty)
