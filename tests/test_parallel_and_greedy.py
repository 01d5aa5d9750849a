import unittest
from unittest.mock import patch

from klondike.cards import KING, make_card
from klondike.moves import FOUNDATIONS, TABLEAU, WASTE, Move, draw
from klondike.state import deal, from_layout
from klondike.view import StateView
from solver.config import SearchBudget, SolverConfig
from solver.engine import BEST_EFFORT, GOAL_REACHED, NODE_BUDGET, STUCK, WON, replay, solve
from solver.generator import moves_for
from solver.greedy import NO_MOVES, _layout_key, greedy_play, play_games
from solver.parallel import partition_root_moves, solve_parallel

S, H, C, D = range(4)


def card(suit, rank):
    return make_card(suit, rank)


def solved_layout():
    return from_layout([[card(suit, r) for r in range(12, -1, -1)] for suit in range(4)])


def stuck_layout(stock=()):
    listed = [
        [card(S, KING), card(D, 10), card(S, 11)],
        [card(H, KING), card(C, 10), card(H, 11)],
        [card(C, KING), card(S, 10), card(C, 11)],
        [card(D, KING), card(H, 10), card(D, 11)],
    ]
    foundations = [[card(s, r) for r in range(10)] for s in range(4)]
    if stock:
        foundations[S] = foundations[S][:9]
    return from_layout(listed, foundations=foundations, stock=stock, hidden=[2, 2, 2, 2])


def config(node_budget=200_000):
    return SolverConfig(budget=SearchBudget(node_budget=node_budget, time_budget=None))


class ParallelTestCase(unittest.TestCase):
    def test_partitions_cover_root_moves(self):
        state = deal(3)
        moves = moves_for(StateView(state))
        parts = partition_root_moves(state, 3)

        self.assertLessEqual(len(parts), 3)
        flat = [m for part in parts for m in part]
        self.assertEqual(len(moves), len(flat))
        self.assertEqual(set(moves), set(flat))

    def test_partitions_skip_empty_shares(self):
        parts = partition_root_moves(solved_layout(), 8)
        self.assertEqual(4, len(parts))
        self.assertTrue(all(len(p) == 1 for p in parts))

    def test_threads_find_a_win(self):
        state = solved_layout()
        result = solve_parallel(state, config(), workers=2, use_processes=False)

        self.assertEqual(WON, result.outcome)
        self.assertEqual(52, len(result.moves))
        self.assertTrue(replay(state, result.moves).is_won())

    def test_single_worker_matches_plain_search(self):
        state = deal(17)
        cfg = config(node_budget=500)
        a = solve_parallel(state, cfg, workers=1, use_processes=False)
        b = solve(state, config=cfg)

        self.assertEqual(b.moves, a.moves)
        self.assertEqual(b.popped_nodes, a.popped_nodes)

    def test_budget_metrics_are_summed(self):
        state = solved_layout()
        result = solve_parallel(state, config(node_budget=5), workers=2, use_processes=False)

        self.assertEqual(BEST_EFFORT, result.outcome)
        self.assertEqual(NODE_BUDGET, result.stop_reason)
        self.assertEqual(10, result.popped_nodes)

    def test_winning_result_reports_all_workers(self):
        won = solve(solved_layout(), config=config())
        lost = solve(deal(1), config=config(node_budget=7))

        def fake_run(state, cfg, root_moves, stop_event):
            return won if TABLEAU[0] in [m.src for m in root_moves] else lost

        with patch("solver.parallel._run_partition", side_effect=fake_run):
            result = solve_parallel(solved_layout(), config(), workers=2, use_processes=False)

        self.assertEqual(WON, result.outcome)
        self.assertEqual(won.moves, result.moves)
        self.assertEqual(won.popped_nodes + 7, result.popped_nodes)
        self.assertEqual(won.expanded_nodes + lost.expanded_nodes, result.expanded_nodes)
        self.assertEqual(won.generated_nodes + lost.generated_nodes, result.generated_nodes)

    def test_stuck_position_runs_inline(self):
        result = solve_parallel(stuck_layout(), config(), workers=4, use_processes=False)
        self.assertEqual(STUCK, result.outcome)


class GreedyTestCase(unittest.TestCase):
    def test_greedy_clears_sorted_columns(self):
        result = greedy_play(solved_layout())

        self.assertEqual(WON, result.outcome)
        self.assertEqual(GOAL_REACHED, result.stop_reason)
        self.assertEqual(52, len(result.moves))

    def test_greedy_on_stuck_position(self):
        result = greedy_play(stuck_layout())

        self.assertEqual(STUCK, result.outcome)
        self.assertEqual(NO_MOVES, result.stop_reason)
        self.assertEqual((), result.moves)

    def test_greedy_keeps_partial_progress(self):
        result = greedy_play(stuck_layout(stock=[card(S, 9)]))

        self.assertEqual(BEST_EFFORT, result.outcome)
        self.assertEqual((draw(1), Move(WASTE, FOUNDATIONS[S], 1)), result.moves)

    def test_tried_moves_are_keyed_on_column_order(self):
        state = stuck_layout()
        swapped = from_layout(
            (state.tableau[1], state.tableau[0]) + state.tableau[2:],
            foundations=state.foundations,
            hidden=(state.hidden[1], state.hidden[0]) + state.hidden[2:],
        )

        self.assertEqual(state.fingerprint(), swapped.fingerprint())
        self.assertNotEqual(_layout_key(state), _layout_key(swapped))
        self.assertEqual(_layout_key(state), _layout_key(from_layout(state.tableau, state.foundations, hidden=state.hidden)))

    def test_greedy_terminates_on_a_deal(self):
        result = greedy_play(deal(4), max_steps=300)

        self.assertLessEqual(len(result.moves), 300)
        self.assertEqual(result.final_state, replay(deal(4), result.moves))

    def test_play_games(self):
        summary = play_games([1, 2], strategy="greedy")

        self.assertEqual("greedy", summary["strategy"])
        self.assertEqual(2, summary["played"])
        self.assertEqual([1, 2], [row["seed"] for row in summary["games"]])
        self.assertLessEqual(summary["won"], 2)

    def test_play_games_rejects_unknown_strategy(self):
        with self.assertRaises(ValueError):
            play_games([1], strategy="random")


if __name__ == "__main__":
    unittest.main()
