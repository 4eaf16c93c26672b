"""
Minimal Flask API over the match registry and the move-suggestion service.

Endpoints:
- GET  /health
- GET  /api/ai/providers                  -> providers with their model listings
- GET  /api/ai/models/search?q=           -> search the provider's models
- POST /api/ai/move                       -> one move suggestion (wire request -> wire response)
- POST /api/ai/analyze                    -> ask several providers about one position
- POST /api/game/start                    -> create and start a match {gameId, provider?, whiteModel?, blackModel?, fen?}
- GET  /api/game/state/<id>               -> match snapshot plus PGN
- GET  /api/game/moves/<id>[/<square>]    -> legal moves in wire format
- POST /api/game/move/<id>                -> apply an external move {from, to, promotion?}
- POST /api/game/cycle/<id>               -> run one suggestion cycle and wait for it
- POST /api/game/play/<id>                -> run the match to the end in the background
- POST /api/game/resign/<id>              -> side to move resigns
- POST /api/game/reset/<id>               -> back to idle; in-flight suggestions are dropped
- DELETE /api/game/<id>                   -> forget the match

Matches live in memory only.
"""
from __future__ import annotations

import argparse
import logging
import time
from typing import Optional

from flask import Flask, jsonify, request

from .config import SETTINGS
from .errors import (
    ArenaError,
    ConfigurationError,
    IllegalSuggestionError,
    MalformedSuggestionError,
    MatchNotFoundError,
    MatchStateError,
    TransientProviderError,
)
from .game import CycleResult, MatchConfig
from .llm_client import AIService, request_from_wire, response_to_wire
from .registry import MatchRegistry

log = logging.getLogger("server")

_STATUS_BY_ERROR = (
    (MatchNotFoundError, 404),
    (MatchStateError, 400),
    (MalformedSuggestionError, 422),
    (IllegalSuggestionError, 422),
    (ConfigurationError, 503),
    (TransientProviderError, 502),
)


def _cycle_to_dict(res: CycleResult) -> dict:
    return {
        "status": res.status,
        "side": res.side,
        "move": res.move,
        "san": res.san,
        "reason": res.reason,
        "reasoning": res.reasoning,
        "outcome": res.outcome.to_dict() if res.outcome else None,
    }


def create_app(registry: Optional[MatchRegistry] = None) -> Flask:
    registry = registry or MatchRegistry(AIService.from_settings())
    service = registry.service
    app = Flask(__name__)
    app.config["REGISTRY"] = registry

    @app.errorhandler(ArenaError)
    def _arena_error(exc: ArenaError):
        status = next((code for cls, code in _STATUS_BY_ERROR if isinstance(exc, cls)), 500)
        if status >= 500:
            log.error("Request failed: %s", exc)
        return jsonify({"error": str(exc), "code": exc.code}), status

    @app.errorhandler(ValueError)
    def _bad_request(exc: ValueError):
        return jsonify({"error": str(exc), "code": "bad_request"}), 400

    def _state(match_id: str) -> dict:
        orch = registry.get(match_id)
        data = registry.call(orch.snapshot)
        data["pgn"] = registry.call(orch.pgn)
        data["autoplay"] = registry.autoplay_running(match_id)
        return data

    @app.get("/health")
    def health():
        return jsonify({"status": "OK", "timestamp": time.strftime("%Y-%m-%dT%H:%M:%S%z")})

    # ---------------- AI routes ----------------
    @app.get("/api/ai/providers")
    def providers():
        return jsonify({"providers": [
            {"id": name, "name": name, "models": service.models(name)}
            for name in service.available_providers()
        ]})

    @app.get("/api/ai/models/search")
    def search_models():
        query = request.args.get("q", "")
        provider = request.args.get("provider", "openrouter")
        return jsonify({"models": service.search_models(provider, query)})

    @app.post("/api/ai/move")
    def ai_move():
        payload = request.get_json(silent=True) or {}
        provider, req = request_from_wire(payload)
        resp = registry.run(service.get_move(provider, req))
        return jsonify(response_to_wire(provider, req.model, resp))

    @app.post("/api/ai/analyze")
    def ai_analyze():
        payload = request.get_json(silent=True) or {}
        names = payload.get("providers")
        if not isinstance(names, list) or not names:
            raise ValueError("Missing required fields: providers (array), position, sideToMove")
        _, req = request_from_wire({**payload, "provider": names[0]})
        return jsonify(registry.run(service.analyze(names, req)))

    # ---------------- Game routes ----------------
    @app.post("/api/game/start")
    def start_game():
        payload = request.get_json(silent=True) or {}
        match_id = payload.get("gameId")
        if not match_id:
            raise ValueError("Game ID is required")
        cfg = MatchConfig.from_settings(
            provider=payload.get("provider"),
            white_model=payload.get("whiteModel"),
            black_model=payload.get("blackModel"),
            starting_fen=payload.get("fen"),
        )
        orch = registry.create(str(match_id), cfg)
        registry.call(orch.start)
        if payload.get("autoplay"):
            registry.start_autoplay(str(match_id))
        return jsonify(_state(str(match_id)))

    @app.get("/api/game/state/<match_id>")
    def game_state(match_id: str):
        return jsonify(_state(match_id))

    @app.get("/api/game/moves/<match_id>")
    @app.get("/api/game/moves/<match_id>/<square>")
    def legal_moves(match_id: str, square: Optional[str] = None):
        orch = registry.get(match_id)
        moves = registry.call(lambda: orch.state.referee.legal_moves(square))
        return jsonify({"moves": moves})

    @app.post("/api/game/move/<match_id>")
    def external_move(match_id: str):
        payload = request.get_json(silent=True) or {}
        orch = registry.get(match_id)
        origin, dest = str(payload.get("from") or ""), str(payload.get("to") or "")
        ok = registry.call(orch.apply_external_move, origin, dest, payload.get("promotion"))
        if not ok:
            return jsonify({"error": "Invalid move", "code": "illegal_move"}), 400
        return jsonify({"success": True, **_state(match_id)})

    @app.post("/api/game/cycle/<match_id>")
    def suggestion_cycle(match_id: str):
        orch = registry.get(match_id)
        res = registry.run(orch.run_suggestion_cycle())
        return jsonify({"cycle": _cycle_to_dict(res), **_state(match_id)})

    @app.post("/api/game/play/<match_id>")
    def autoplay(match_id: str):
        registry.start_autoplay(match_id)
        return jsonify(_state(match_id)), 202

    @app.post("/api/game/resign/<match_id>")
    def resign(match_id: str):
        orch = registry.get(match_id)
        registry.call(orch.resign)
        return jsonify(_state(match_id))

    @app.post("/api/game/reset/<match_id>")
    def reset(match_id: str):
        registry.reset(match_id)
        return jsonify(_state(match_id))

    @app.delete("/api/game/<match_id>")
    def delete(match_id: str):
        registry.delete(match_id)
        return jsonify({"success": True, "gameId": match_id})

    return app


def main(argv: list[str] | None = None) -> None:
    ap = argparse.ArgumentParser(description="Serve the LLM chess arena API.")
    ap.add_argument("--host", default="127.0.0.1")
    ap.add_argument("--port", type=int, default=3001)
    ap.add_argument("--log-level", default="INFO", help="Python logging level (e.g., INFO, DEBUG)")
    args = ap.parse_args(argv)

    logging.basicConfig(level=getattr(logging, args.log_level.upper(), logging.INFO),
                        format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    service = AIService.from_settings(SETTINGS)
    registry = MatchRegistry(service)
    registry.run(service.initialize())
    app = create_app(registry)
    log.info("AI Chess Server running on port %d", args.port)
    try:
        app.run(host=args.host, port=args.port, threaded=True)
    finally:
        registry.close()


if __name__ == "__main__":
    main()
