"""Run one AI-vs-AI match from the command line and print a JSON summary."""
import argparse
import asyncio
import json
import logging
import os

from .config import SETTINGS
from .errors import ConfigurationError
from .game import MatchConfig, MatchOrchestrator
from .llm_client import AIService


def load_json_config(path: str) -> dict:
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        logging.getLogger("play_one").error("Failed to read config %s: %s", path, e)
        return {}


def _write(path: str, text: str) -> None:
    dir_path = os.path.dirname(path)
    if dir_path:
        os.makedirs(dir_path, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        f.write(text)


async def run_match(orch: MatchOrchestrator) -> dict:
    orch.start()
    outcome = await orch.play()
    return {
        "result": outcome.result if outcome else None,
        "pgn_result": outcome.pgn_result if outcome else "*",
        "termination_reason": outcome.reason if outcome else None,
        "outcome": outcome.kind.value if outcome else None,
        "plies": len(orch.state.move_history),
        "moves": list(orch.state.move_history),
        "invalid_attempts": orch.state.invalid_attempts,
        "models": dict(orch.state.models),
    }


def main(argv: list[str] | None = None) -> int:
    ap = argparse.ArgumentParser()
    ap.add_argument("--config", default=None, help="Optional JSON config file to load defaults from.")
    ap.add_argument("--white-model", default=None, help="Model playing White (defaults to LLMCHESS_DEFAULT_MODEL)")
    ap.add_argument("--black-model", default=None, help="Model playing Black (defaults to LLMCHESS_DEFAULT_MODEL)")
    ap.add_argument("--provider", default=None, help="Provider name (openrouter)")
    ap.add_argument("--fen", default=None, help="Optional starting position")
    ap.add_argument("--turn-delay", type=float, default=None, help="Seconds to pause between suggestion cycles")
    ap.add_argument("--pgn-out", default=None, help="Optional path to write PGN at end")
    ap.add_argument("--history-out", default=None, help="Optional path to write the structured history JSON")
    ap.add_argument("--log-level", default=None, help="Python logging level (e.g., INFO, DEBUG)")
    args = ap.parse_args(argv)

    cfg_dict = load_json_config(args.config) if args.config else {}

    # Resolve values with precedence: CLI arg if provided -> config -> default
    def pick(key, default=None):
        v = getattr(args, key, None)
        if v is not None:
            return v
        if cfg_dict.get(key) is not None:
            return cfg_dict[key]
        return default

    log_level = str(pick("log_level", default="INFO")).upper()
    logging.basicConfig(level=getattr(logging, log_level, logging.INFO), format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    log = logging.getLogger("play_one")

    try:
        cfg = MatchConfig.from_settings(
            SETTINGS,
            provider=pick("provider"),
            white_model=pick("white_model"),
            black_model=pick("black_model"),
            starting_fen=pick("fen"),
            turn_delay_s=pick("turn_delay"),
        )
    except ValueError as exc:
        log.error("Bad match settings: %s", exc)
        return 2
    orch = MatchOrchestrator(AIService.from_settings(SETTINGS), cfg, match_id="cli")
    try:
        summary = asyncio.run(run_match(orch))
    except ConfigurationError as exc:
        log.error("Cannot start match: %s", exc)
        return 2

    pgn_out = pick("pgn_out")
    if pgn_out:
        _write(pgn_out, orch.pgn())
        log.info("Wrote PGN to %s", pgn_out)
    history_out = pick("history_out")
    if history_out:
        _write(history_out, json.dumps(orch.export_history(), ensure_ascii=False, indent=2))
        log.info("Wrote structured history to %s", history_out)

    print(json.dumps(summary, indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
