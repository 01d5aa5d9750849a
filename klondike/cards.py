from __future__ import annotations

NUM_PER_SUIT = 13
SUIT_COUNT = 4
DECK_SIZE = NUM_PER_SUIT * SUIT_COUNT

SUITS = "SHCD"
RANKS = ("A", "2", "3", "4", "5", "6", "7", "8", "9", "10", "J", "Q", "K")

ACE = 0
KING = NUM_PER_SUIT - 1

CardId = int


def make_card(suit: int, rank: int) -> CardId:
    return suit * NUM_PER_SUIT + rank


def card_suit(card: CardId) -> int:
    return card // NUM_PER_SUIT


def card_rank(card: CardId) -> int:
    return card % NUM_PER_SUIT


def is_red(card: CardId) -> bool:
    return card_suit(card) % 2 == 1


def card_color(card: CardId) -> str:
    if is_red(card):
        return "red"
    return "black"


def full_deck() -> list[CardId]:
    return list(range(DECK_SIZE))


def card_str(card: CardId) -> str:
    return RANKS[card_rank(card)] + SUITS[card_suit(card)]


def parse_card(text: str) -> CardId:
    """Parse ``AS``, ``10H`` or ``kd`` style notation into a card id."""
    s = text.strip().upper()
    if len(s) < 2:
        raise ValueError(f"bad card: {text!r}")
    rank_txt, suit_txt = s[:-1], s[-1]
    if suit_txt not in SUITS or rank_txt not in RANKS:
        raise ValueError(f"bad card: {text!r}")
    return make_card(SUITS.index(suit_txt), RANKS.index(rank_txt))


def stacks_on(card: CardId, base: CardId) -> bool:
    """True when ``card`` may sit on ``base`` in the tableau."""
    return is_red(card) != is_red(base) and card_rank(base) == card_rank(card) + 1


def builds_foundation(card: CardId, height: int) -> bool:
    """True when ``card`` is the next card for its suit's foundation of ``height`` cards."""
    return card_rank(card) == height
