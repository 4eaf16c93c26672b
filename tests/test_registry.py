import time
import unittest

from llmchess_arena.errors import MatchNotFoundError
from llmchess_arena.game import MatchConfig, OutcomeKind
from llmchess_arena.registry import MatchRegistry
from tests.fakes import ScriptedProvider, make_service, reply


def wait_for(predicate, timeout=5.0):
    deadline = time.time() + timeout
    while time.time() < deadline:
        if predicate():
            return True
        time.sleep(0.02)
    return False


class MatchRegistryTests(unittest.TestCase):
    def setUp(self):
        self.provider = ScriptedProvider()
        self.registry = MatchRegistry(make_service(self.provider))

    def tearDown(self):
        self.registry.close()

    def _cfg(self):
        return MatchConfig(provider="fake", white_model="w", black_model="b")

    def test_create_get_delete(self):
        orch = self.registry.create("m1", self._cfg())
        self.assertIs(self.registry.get("m1"), orch)
        self.assertEqual(self.registry.ids(), ["m1"])
        self.registry.delete("m1")
        with self.assertRaises(MatchNotFoundError):
            self.registry.get("m1")
        with self.assertRaises(MatchNotFoundError):
            self.registry.delete("m1")

    def test_create_replaces_and_resets_previous(self):
        old = self.registry.create("m1", self._cfg())
        self.registry.call(old.start)
        new = self.registry.create("m1", self._cfg())
        self.assertIsNot(new, old)
        self.assertFalse(old.state.active)
        self.assertIs(self.registry.get("m1"), new)

    def test_cycle_runs_on_match_loop(self):
        self.provider.replies = [reply("e2e4")]
        orch = self.registry.create("m1", self._cfg())
        self.registry.call(orch.start)
        res = self.registry.run(orch.run_suggestion_cycle())
        self.assertEqual(res.status, "applied")
        self.assertEqual(self.registry.call(orch.snapshot)["sideToMove"], "b")

    def test_autoplay_to_checkmate(self):
        self.provider.replies = [reply(mv) for mv in ("f2f3", "e7e5", "g2g4", "d8h4")]
        orch = self.registry.create("m1", self._cfg())
        self.registry.call(orch.start)
        self.registry.start_autoplay("m1")
        self.assertTrue(wait_for(lambda: orch.is_terminal()))
        self.assertEqual(orch.get_outcome().kind, OutcomeKind.checkmate)
        self.assertTrue(wait_for(lambda: not self.registry.autoplay_running("m1")))

    def test_reset_stops_autoplay(self):
        async def never():
            await self.registry._loop.create_future()

        self.provider.replies = [never]
        orch = self.registry.create("m1", self._cfg())
        self.registry.call(orch.start)
        self.registry.start_autoplay("m1")
        self.assertTrue(wait_for(lambda: bool(self.provider.calls)))
        self.assertTrue(self.registry.autoplay_running("m1"))

        self.registry.reset("m1")
        self.assertFalse(self.registry.autoplay_running("m1"))
        self.assertEqual(self.registry.call(orch.snapshot)["phase"], "idle")

    def test_close_drains_autoplay_and_closes_loop(self):
        async def never():
            await self.registry._loop.create_future()

        self.provider.replies = [never]
        orch = self.registry.create("m1", self._cfg())
        self.registry.call(orch.start)
        self.registry.start_autoplay("m1")
        self.assertTrue(wait_for(lambda: bool(self.provider.calls)))
        task = self.registry._autoplay["m1"]

        self.registry.close()
        self.assertTrue(task.cancelled())
        self.assertTrue(self.registry._loop.is_closed())

    def test_close_is_idempotent(self):
        self.registry.close()
        self.registry.close()


if __name__ == "__main__":
    unittest.main()
