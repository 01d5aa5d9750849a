import unittest

from klondike.cards import DECK_SIZE, KING, make_card
from klondike.errors import IllegalMove, InvalidDeal
from klondike.moves import FOUNDATIONS, STOCK, TABLEAU, WASTE, Move, Pile, draw, recycle
from klondike.rules import (
    SCORE_RECYCLE,
    SCORE_REVEAL,
    SCORE_TABLEAU_TO_FOUNDATION,
    SCORE_WASTE_TO_TABLEAU,
    apply_move,
    check_move,
    is_legal,
    legal_moves,
)
from klondike.state import STATUS_IN_PROGRESS, STATUS_STUCK, STATUS_WON, deal, from_layout
from klondike.view import StateView
from solver.generator import moves_for

S, H, C, D = range(4)


def card(suit, rank):
    return make_card(suit, rank)


def layout(tableau, hidden=None, stock=(), waste=(), draw_count=1):
    """Put every card not listed on its foundation, below the lowest listed rank of its suit."""
    listed = {c for col in tableau for c in col} | set(stock) | set(waste)
    foundations = []
    for suit in range(4):
        ranks = [r for r in range(13) if card(suit, r) in listed]
        height = min(ranks) if ranks else 13
        foundations.append([card(suit, r) for r in range(height)])
    return from_layout(tableau, foundations=foundations, stock=stock, waste=waste, hidden=hidden, draw_count=draw_count)


def stuck_layout():
    # Queens on top, their jacks buried, every foundation waiting on a jack.
    return layout(
        [
            [card(S, KING), card(D, 10), card(S, 11)],
            [card(H, KING), card(C, 10), card(H, 11)],
            [card(C, KING), card(S, 10), card(C, 11)],
            [card(D, KING), card(H, 10), card(D, 11)],
        ],
        hidden=[2, 2, 2, 2],
    )


def all_candidate_moves():
    piles = (STOCK, WASTE) + FOUNDATIONS + TABLEAU
    for src in piles:
        for dest in piles:
            for count in range(1, 25):
                yield Move(src, dest, count)


class DealTestCase(unittest.TestCase):
    def test_deal_shape(self):
        state = deal(11)
        self.assertEqual([i + 1 for i in range(7)], [len(col) for col in state.tableau])
        self.assertEqual(tuple(range(7)), state.hidden)
        self.assertEqual(24, len(state.stock))
        self.assertEqual((), state.waste)
        self.assertEqual(0, state.move_count)
        self.assertEqual(0, state.score)
        state.check_invariants()

    def test_render_hides_face_down_cards(self):
        state = deal(11)
        lines = state.render().splitlines()

        self.assertEqual("Stock 24  Waste 0  Moves 0  Score 0", lines[0])
        self.assertEqual("Foundations: -- -- -- --", lines[1])
        self.assertEqual(9, len(lines))
        self.assertTrue(lines[4].startswith("T2: ## ## "))
        self.assertEqual(2, lines[4].count("##"))
        self.assertEqual(6, lines[8].count("##"))

    def test_deal_is_deterministic(self):
        self.assertEqual(deal(42), deal(42))
        self.assertNotEqual(deal(1).tableau, deal(2).tableau)
        self.assertEqual(3, deal(42, draw_count=3).draw_count)

    def test_deal_rejects_bad_draw_count(self):
        with self.assertRaises(InvalidDeal):
            deal(1, draw_count=2)

    def test_from_layout_rejects_duplicates(self):
        ace = card(S, 0)
        with self.assertRaises(InvalidDeal):
            from_layout([[ace], [ace]], stock=[c for c in range(DECK_SIZE) if c != ace])

    def test_from_layout_rejects_missing_cards(self):
        with self.assertRaises(InvalidDeal):
            from_layout([[card(S, 0)]])

    def test_from_layout_rejects_face_down_top(self):
        with self.assertRaises(InvalidDeal):
            layout([[card(S, KING), card(H, KING)]], hidden=[2])

    def test_from_layout_rejects_unordered_foundation(self):
        foundations = [[card(S, 1)], [], [], []]
        rest = [c for c in range(DECK_SIZE) if c != card(S, 1)]
        with self.assertRaises(InvalidDeal):
            from_layout([], foundations=foundations, stock=rest)

    def test_fingerprint_ignores_column_order_and_counters(self):
        a = layout([[card(S, KING)], [card(H, KING)]], stock=[card(C, KING), card(D, KING)])
        b = layout([[card(H, KING)], [], [card(S, KING)]], stock=[card(C, KING), card(D, KING)], draw_count=1)
        self.assertEqual(a.fingerprint(), b.fingerprint())
        c = from_layout(a.tableau, a.foundations, a.stock, a.waste, a.hidden, move_count=9, score=40)
        self.assertEqual(a.fingerprint(), c.fingerprint())

    def test_fingerprint_keeps_stock_order(self):
        a = layout([], stock=[card(C, KING), card(D, KING)])
        b = layout([], stock=[card(D, KING), card(C, KING)])
        self.assertNotEqual(a.fingerprint(), b.fingerprint())


class RulesTestCase(unittest.TestCase):
    def test_legal_moves_agree_with_check_move(self):
        state = deal(5)
        for _ in range(40):
            legal = set(legal_moves(state))
            for move in all_candidate_moves():
                self.assertEqual(move in legal, is_legal(state, move), move.to_notation())
            moves = legal_moves(state)
            if not moves:
                break
            state = apply_move(state, moves[0])

    def test_every_legal_move_keeps_invariants(self):
        state = deal(9, draw_count=3)
        for move in legal_moves(state):
            child = apply_move(state, move)
            child.check_invariants()
            self.assertEqual(state.move_count + 1, child.move_count)

    def test_generated_moves_keep_invariants_along_a_game(self):
        state = deal(14)
        for _ in range(60):
            moves = moves_for(StateView(state))
            if not moves:
                break
            for move in moves:
                child = apply_move(state, move)
                child.check_invariants()
            state = apply_move(state, moves[0])
        self.assertGreater(state.move_count, 0)

    def test_unknown_pile_addresses_are_illegal(self):
        state = deal(0)
        bad = [
            Move(Pile("T", -1), FOUNDATIONS[0], 1),
            Move(Pile("T", 7), TABLEAU[0], 1),
            Move(Pile("F", 7), TABLEAU[0], 1),
            Move(TABLEAU[6], Pile("F", -1), 1),
            Move(Pile("X", 0), TABLEAU[1], 1),
            Move(TABLEAU[0], Pile("X", 0), 1),
        ]
        for move in bad:
            with self.assertRaises(IllegalMove, msg=move.to_notation()):
                apply_move(state, move)
            self.assertFalse(is_legal(state, move))

    def test_illegal_move_raises_and_leaves_state_untouched(self):
        state = layout([[card(S, KING)], [card(H, KING)]], stock=[card(C, KING), card(D, KING)])
        before = state
        with self.assertRaises(IllegalMove):
            apply_move(state, Move(TABLEAU[0], TABLEAU[1], 1))
        with self.assertRaises(IllegalMove):
            apply_move(state, Move(WASTE, FOUNDATIONS[0], 1))
        with self.assertRaises(IllegalMove):
            check_move(state, recycle(1))
        self.assertEqual(before, state)

    def test_tableau_to_foundation_reveals_and_scores(self):
        state = layout([[card(S, KING), card(S, 11)]], hidden=[1])
        child = apply_move(state, Move(TABLEAU[0], FOUNDATIONS[S], 1))
        self.assertEqual(0, child.hidden[0])
        self.assertEqual((card(S, KING),), child.tableau[0])
        self.assertEqual(12, len(child.foundations[S]))
        self.assertEqual(SCORE_TABLEAU_TO_FOUNDATION + SCORE_REVEAL, child.score)

    def test_run_moves_as_a_unit(self):
        run = [card(S, KING), card(H, 11), card(C, 10)]
        state = layout([[card(D, KING)] + run, []], hidden=[1], stock=[card(H, KING), card(C, 11), card(C, KING)])
        move = Move(TABLEAU[0], TABLEAU[1], 3)
        self.assertIn(move, legal_moves(state))
        child = apply_move(state, move)
        self.assertEqual(tuple(run), child.tableau[1])
        self.assertEqual((card(D, KING),), child.tableau[0])
        self.assertEqual(0, child.hidden[0])

    def test_only_kings_fill_empty_columns(self):
        state = layout([[card(S, KING), card(H, 11)], []], stock=[card(H, KING)])
        self.assertTrue(is_legal(state, Move(TABLEAU[0], TABLEAU[1], 2)))
        self.assertFalse(is_legal(state, Move(TABLEAU[0], TABLEAU[1], 1)))

    def test_waste_to_tableau_scores(self):
        state = layout([[card(S, KING)]], waste=[card(H, 11)], stock=[card(C, KING), card(D, KING), card(H, KING)])
        child = apply_move(state, Move(WASTE, TABLEAU[0], 1))
        self.assertEqual(SCORE_WASTE_TO_TABLEAU, child.score)
        self.assertEqual((), child.waste)

    def test_draw_three_and_recycle_restore_stock(self):
        stock = [card(S, r) for r in range(8, 13)]
        state = layout([], stock=stock, draw_count=3)
        self.assertEqual([draw(3)], [m for m in legal_moves(state) if m.is_draw])

        state = apply_move(state, draw(3))
        self.assertEqual((card(S, 12), card(S, 11), card(S, 10)), state.waste)
        self.assertFalse(is_legal(state, recycle(3)))
        self.assertTrue(is_legal(state, draw(2)))
        self.assertFalse(is_legal(state, draw(3)))

        state = apply_move(state, draw(2))
        self.assertEqual((), state.stock)
        self.assertIn(recycle(5), legal_moves(state))
        self.assertNotIn(draw(1), legal_moves(state))

        state = apply_move(state, recycle(5))
        self.assertEqual(tuple(stock), state.stock)
        self.assertEqual((), state.waste)

    def test_recycle_penalty_floors_at_zero(self):
        state = layout([], waste=[card(S, 12)])
        child = apply_move(state, recycle(1))
        self.assertEqual(0, child.score)
        state = from_layout(state.tableau, state.foundations, (), state.waste, state.hidden, score=150)
        self.assertEqual(150 + SCORE_RECYCLE, apply_move(state, recycle(1)).score)

    def test_foundation_to_tableau(self):
        state = layout([[card(H, KING)]], stock=[card(S, 12)])
        move = Move(FOUNDATIONS[S], TABLEAU[0], 1)
        self.assertIn(move, legal_moves(state))
        child = apply_move(state, move)
        self.assertEqual((card(H, KING), card(S, 11)), child.tableau[0])
        self.assertEqual(0, child.score)

    def test_status(self):
        won = from_layout([], foundations=[[card(s, r) for r in range(13)] for s in range(4)])
        self.assertEqual(STATUS_WON, won.status())
        stuck = stuck_layout()
        self.assertEqual([], legal_moves(stuck))
        self.assertEqual(STATUS_STUCK, stuck.status())
        self.assertEqual(STATUS_IN_PROGRESS, deal(3).status())

    def test_state_apply_delegates_to_rules(self):
        state = deal(4)
        move = legal_moves(state)[0]
        self.assertEqual(apply_move(state, move), state.apply(move))


if __name__ == "__main__":
    unittest.main()
