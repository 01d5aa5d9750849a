from __future__ import annotations

import re
from dataclasses import dataclass

FOUNDATION_COUNT = 4
TABLEAU_COUNT = 7


@dataclass(frozen=True, slots=True)
class Pile:
    """Address of one pile: ``S``, ``W``, ``F0``..``F3`` or ``T0``..``T6``."""

    kind: str
    index: int = 0

    @property
    def is_stock(self) -> bool:
        return self.kind == "S"

    @property
    def is_waste(self) -> bool:
        return self.kind == "W"

    @property
    def is_foundation(self) -> bool:
        return self.kind == "F"

    @property
    def is_tableau(self) -> bool:
        return self.kind == "T"

    def __str__(self) -> str:
        if self.kind in ("S", "W"):
            return self.kind
        return f"{self.kind}{self.index}"


STOCK = Pile("S")
WASTE = Pile("W")
FOUNDATIONS = tuple(Pile("F", i) for i in range(FOUNDATION_COUNT))
TABLEAU = tuple(Pile("T", i) for i in range(TABLEAU_COUNT))


def parse_pile(text: str) -> Pile:
    s = text.strip().upper()
    if s == "S":
        return STOCK
    if s == "W":
        return WASTE
    if len(s) >= 2 and s[0] in "FT" and s[1:].isdigit():
        idx = int(s[1:])
        piles = FOUNDATIONS if s[0] == "F" else TABLEAU
        if idx < len(piles):
            return piles[idx]
    raise ValueError(f"bad pile: {text!r}")


@dataclass(frozen=True, slots=True)
class Move:
    """One rule-legal transition in solver notation."""

    src: Pile
    dest: Pile
    count: int = 1

    @property
    def is_draw(self) -> bool:
        return self.src.is_stock

    @property
    def is_recycle(self) -> bool:
        return self.src.is_waste and self.dest.is_stock

    @property
    def is_commitment(self) -> bool:
        # Foundation placements are treated as one-way by the search.
        return self.dest.is_foundation

    @property
    def reversible(self) -> bool:
        return not self.is_commitment

    def to_notation(self) -> str:
        return f"{self.src} -> {self.dest} x{self.count}"

    def __str__(self) -> str:
        return self.to_notation()


def draw(count: int) -> Move:
    return Move(STOCK, WASTE, count)


def recycle(count: int) -> Move:
    return Move(WASTE, STOCK, count)


_MOVE_RE = re.compile(r"^\s*(\w+)\s*->\s*(\w+)\s*x(\d+)\s*$")


def parse_move(text: str) -> Move:
    """Inverse of :meth:`Move.to_notation`."""
    m = _MOVE_RE.match(text)
    if m is None:
        raise ValueError(f"bad move: {text!r}")
    return Move(parse_pile(m.group(1)), parse_pile(m.group(2)), int(m.group(3)))
