import unittest

from llmchess_arena.errors import IllegalSuggestionError, MalformedSuggestionError
from llmchess_arena.move_validator import ensure_legal, matches_legal_move, normalize_suggestion, split_uci


class NormalizeSuggestionTests(unittest.TestCase):
    def test_lowercases_and_truncates_squares(self):
        res = normalize_suggestion({"from": " E2 ", "to": "E4xyz", "reasoning": "center"})
        self.assertEqual((res.origin, res.destination), ("e2", "e4"))
        self.assertEqual(res.move, "e2e4")
        self.assertEqual(res.reasoning, "center")

    def test_promotion_takes_first_letter(self):
        res = normalize_suggestion({"from": "e7", "to": "e8", "promotion": "Queen"})
        self.assertEqual(res.promotion, "q")
        self.assertEqual(res.move, "e7e8q")

    def test_unknown_promotion_is_dropped_silently(self):
        res = normalize_suggestion({"from": "e7", "to": "e8", "promotion": "king"})
        self.assertIsNone(res.promotion)
        self.assertEqual(res.move, "e7e8")

    def test_empty_promotion_ignored(self):
        res = normalize_suggestion({"from": "a2", "to": "a3", "promotion": ""})
        self.assertEqual(res.move, "a2a3")

    def test_bad_square_rejected_with_values(self):
        with self.assertRaises(MalformedSuggestionError) as cm:
            normalize_suggestion({"from": "i9", "to": "e4"})
        self.assertEqual(cm.exception.origin, "i9")
        self.assertEqual(cm.exception.destination, "e4")
        self.assertIn("from=i9", str(cm.exception))

    def test_missing_destination_rejected(self):
        with self.assertRaises(MalformedSuggestionError):
            normalize_suggestion({"from": "e2"})

    def test_single_character_square_rejected(self):
        with self.assertRaises(MalformedSuggestionError):
            normalize_suggestion({"from": "e", "to": "e4"})

    def test_extra_fields_ignored(self):
        res = normalize_suggestion({"from": "g1", "to": "f3", "reasoning": "develop", "confidence": 0.8, "eval": "+0.3"})
        self.assertEqual(res.move, "g1f3")
        self.assertEqual(res.confidence, 0.8)

    def test_known_legal_moves_survive_normalization(self):
        for move in ("e2e4", "g1f3", "e7e8q", "a7a8n", "h2h1r"):
            reply = {"from": move[:2], "to": move[2:4], "reasoning": "x"}
            if len(move) == 5:
                reply["promotion"] = move[4]
            self.assertEqual(normalize_suggestion(reply).move, move)


class LegalMatchTests(unittest.TestCase):
    PROMOTIONS = ["e7e8q", "e7e8r", "e7e8b", "e7e8n", "e1d1"]

    def test_promotion_must_match(self):
        self.assertTrue(matches_legal_move("e7e8q", self.PROMOTIONS))
        self.assertFalse(matches_legal_move("e7e8", self.PROMOTIONS))

    def test_promotion_on_plain_move_rejected(self):
        self.assertFalse(matches_legal_move("e1d1q", self.PROMOTIONS))
        self.assertTrue(matches_legal_move("e1d1", self.PROMOTIONS))

    def test_ensure_legal(self):
        self.assertEqual(ensure_legal("e7e8n", self.PROMOTIONS), "e7e8n")
        with self.assertRaises(IllegalSuggestionError) as cm:
            ensure_legal("e7e8", self.PROMOTIONS)
        self.assertEqual(cm.exception.move, "e7e8")

    def test_split_uci(self):
        self.assertEqual(split_uci("E7E8Q"), ("e7", "e8", "q"))
        self.assertEqual(split_uci("e2e4"), ("e2", "e4", None))
        with self.assertRaises(MalformedSuggestionError):
            split_uci("e2")


if __name__ == "__main__":
    unittest.main()
