import unittest

import chess

from llmchess_arena.referee import Referee


class RefereeTests(unittest.TestCase):
    def test_start_position(self):
        ref = Referee()
        self.assertEqual(ref.fen(), chess.STARTING_FEN)
        self.assertEqual(ref.side_to_move(), "w")
        self.assertEqual(len(ref.legal_moves()), 20)
        self.assertEqual(sorted(ref.legal_moves("g1")), ["g1f3", "g1h3"])
        self.assertEqual(ref.legal_moves("e4"), [])

    def test_pieces_moves_grouped_by_origin(self):
        groups = Referee().pieces_moves()
        self.assertEqual(len(groups), 10)
        knight = next(pm for pm in groups if pm.square == "g1")
        self.assertEqual(knight.piece, "Knight")
        self.assertEqual(sorted(knight.moves), ["g1f3", "g1h3"])
        self.assertEqual(sum(len(pm.moves) for pm in groups), 20)

    def test_promotions_are_five_character_moves(self):
        ref = Referee("8/4P3/8/8/8/8/k7/4K3 w - - 0 1")
        pawn = ref.legal_moves("e7")
        self.assertEqual(sorted(pawn), ["e7e8b", "e7e8n", "e7e8q", "e7e8r"])

    def test_apply_uci(self):
        ref = Referee()
        self.assertEqual(ref.apply_uci("e2e4"), (True, "e4"))
        self.assertEqual(ref.side_to_move(), "b")
        self.assertEqual(ref.apply_uci("e2e4"), (False, None))
        self.assertEqual(ref.apply_uci("zz"), (False, None))
        self.assertEqual(ref.san_history(), ["e4"])

    def test_terminal_predicates(self):
        mate = Referee()
        for mv in ("f2f3", "e7e5", "g2g4", "d8h4"):
            mate.apply_uci(mv)
        self.assertTrue(mate.is_checkmate())
        self.assertTrue(mate.is_check())

        stale = Referee("7k/5Q2/6K1/8/8/8/8/8 b - - 0 1")
        self.assertTrue(stale.is_stalemate())
        self.assertFalse(stale.is_checkmate())

        self.assertTrue(Referee("7k/8/8/8/8/8/8/7K w - - 0 1").is_insufficient_material())
        self.assertTrue(Referee("7k/8/8/8/8/8/8/R6K w - - 100 80").is_draw())
        self.assertFalse(Referee().is_draw())

    def test_threefold_repetition(self):
        ref = Referee()
        for mv in ("g1f3", "g8f6", "f3g1", "f6g8") * 2:
            ref.apply_uci(mv)
        self.assertTrue(ref.is_threefold_repetition())

    def test_pgn_headers_and_setup(self):
        ref = Referee("8/4P3/8/8/8/8/k7/4K3 w - - 0 1")
        ref.set_headers(white="model-w", black="model-b")
        ref.apply_uci("e7e8q")
        pgn = ref.pgn("*", "Test termination")
        self.assertIn('[White "model-w"]', pgn)
        self.assertIn('[FEN "8/4P3/8/8/8/8/k7/4K3 w - - 0 1"]', pgn)
        self.assertIn("e8=Q", pgn)
        self.assertIn("Termination: Test termination", pgn)


if __name__ == "__main__":
    unittest.main()
