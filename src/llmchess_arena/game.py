"""
Single-match orchestration for AI-vs-AI chess.

- MatchConfig: provider, per-side models, strike policy, turn delay, optional starting FEN.
- MatchState: position (via Referee), history, invalid-attempt counter, flags, terminal outcome.
- MatchOrchestrator: state machine Idle -> Active -> Terminal.
  Each suggestion cycle asks the AIService for a move (provider retries happen there),
  checks it against the legal-move set, applies it through the Referee and evaluates
  terminal conditions. Malformed and illegal suggestions share one strike counter; the
  third strike forfeits the match. Provider failure after all retries ends the match as
  an AI failure without touching the counter.

reset() bumps a generation number, so a suggestion still in flight from an earlier
cycle is discarded when it resolves instead of mutating the fresh state.
"""
from __future__ import annotations
import asyncio
import logging
import time
from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Any, Dict, List, Optional

import chess

from .config import SETTINGS, Settings
from .errors import (
    ConfigurationError,
    IllegalSuggestionError,
    MalformedSuggestionError,
    MatchStateError,
    TransientProviderError,
)
from .llm_client import AIService
from .move_validator import ensure_legal, split_uci
from .prompting import MoveSuggestionRequest
from .referee import Referee
from .retry import AttemptBudget, RetryPolicy

WHITE_WINS = "White wins"
BLACK_WINS = "Black wins"
DRAW = "Draw"


def _color(side: str) -> str:
    return "White" if side == "w" else "Black"


def _other(side: str) -> str:
    return "b" if side == "w" else "w"


def _wins(side: str) -> str:
    return WHITE_WINS if side == "w" else BLACK_WINS


class OutcomeKind(str, Enum):
    checkmate = "checkmate"
    stalemate = "stalemate"
    draw = "draw"
    threefold_repetition = "threefold_repetition"
    insufficient_material = "insufficient_material"
    resignation = "resignation"
    forfeit = "forfeit"
    ai_failure = "ai_failure"


class MatchPhase(str, Enum):
    idle = "idle"
    active = "active"
    terminal = "terminal"


@dataclass(frozen=True)
class Outcome:
    kind: OutcomeKind
    result: Optional[str]  # WHITE_WINS | BLACK_WINS | DRAW; None for AI failure
    reason: str
    winner: Optional[str] = None  # "w" | "b"

    @property
    def pgn_result(self) -> str:
        if self.result == WHITE_WINS:
            return "1-0"
        if self.result == BLACK_WINS:
            return "0-1"
        if self.result == DRAW:
            return "1/2-1/2"
        return "*"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "result": self.result,
            "reason": self.reason,
            "winner": self.winner,
            "pgnResult": self.pgn_result,
        }


@dataclass
class MatchConfig:
    provider: str = "openrouter"
    white_model: Optional[str] = None
    black_model: Optional[str] = None
    starting_fen: Optional[str] = None
    turn_delay_s: float = 0.0
    strike_policy: RetryPolicy = field(default_factory=lambda: RetryPolicy(max_attempts=3, base_delay_s=0.0))

    @classmethod
    def from_settings(cls, settings: Settings | None = None, **overrides) -> "MatchConfig":
        settings = settings or SETTINGS
        cfg = cls(
            turn_delay_s=settings.turn_delay_s,
            strike_policy=RetryPolicy(max_attempts=settings.max_invalid_attempts, base_delay_s=0.0),
        )
        known = {f.name for f in fields(cls)}
        for key, val in overrides.items():
            if key not in known:
                raise ValueError(f"Unknown match setting: {key}")
            if val is None:
                continue
            if key == "turn_delay_s":
                val = float(val)
            setattr(cfg, key, val)
        return cfg

    def model_for(self, side: str) -> Optional[str]:
        return self.white_model if side == "w" else self.black_model


@dataclass
class MatchState:
    referee: Referee
    strikes: AttemptBudget
    models: Dict[str, str] = field(default_factory=dict)
    move_history: List[str] = field(default_factory=list)
    active: bool = False
    awaiting_suggestion: bool = False
    outcome: Optional[Outcome] = None
    attempts: List[Dict[str, Any]] = field(default_factory=list)
    last_reasoning: Optional[str] = None
    last_invalid_move: Optional[str] = None
    status_message: Optional[str] = None

    @property
    def position(self) -> str:
        return self.referee.fen()

    @property
    def side_to_move(self) -> str:
        return self.referee.side_to_move()

    @property
    def invalid_attempts(self) -> int:
        return self.strikes.used

    @property
    def phase(self) -> MatchPhase:
        if self.outcome is not None:
            return MatchPhase.terminal
        return MatchPhase.active if self.active else MatchPhase.idle


@dataclass
class CycleResult:
    status: str  # applied | rejected | forfeit | terminal | stale
    side: str
    move: Optional[str] = None
    san: Optional[str] = None
    reason: Optional[str] = None
    reasoning: Optional[str] = None
    outcome: Optional[Outcome] = None


class MatchOrchestrator:
    def __init__(self, service: AIService, cfg: MatchConfig | None = None, match_id: str | None = None):
        self.log = logging.getLogger("MatchOrchestrator")
        self.service = service
        self.cfg = cfg or MatchConfig()
        self.match_id = match_id
        self._generation = 0
        self._cycle_settled: Optional[asyncio.Event] = None
        self.state = self._fresh_state()

    def _fresh_state(self) -> MatchState:
        return MatchState(referee=Referee(self.cfg.starting_fen), strikes=AttemptBudget(self.cfg.strike_policy))

    def _is_stale(self, generation: int) -> bool:
        return generation != self._generation

    # ---------------- Control surface -----------------
    def start(self) -> MatchState:
        if self.state.active:
            raise MatchStateError("Match already active")
        if not self.service.has_provider(self.cfg.provider):
            raise ConfigurationError(f"Provider {self.cfg.provider or '(none)'} not available")
        models = {side: self.service.resolve_model(self.cfg.provider, self.cfg.model_for(side)) for side in ("w", "b")}

        self._generation += 1
        st = self._fresh_state()
        st.models = models
        st.active = True
        st.referee.set_headers(white=models["w"], black=models["b"])
        self.state = st
        self.log.info("Match %s started: white=%s black=%s provider=%s", self.match_id, models["w"], models["b"], self.cfg.provider)

        # A starting FEN may already be decided.
        outcome = self._evaluate_terminal(_other(st.side_to_move))
        if outcome:
            self._finish(outcome)
        else:
            st.status_message = f"{_color(st.side_to_move)} to move"
        return st

    async def run_suggestion_cycle(self) -> CycleResult:
        """Ask the side to move for one suggestion and apply or reject it."""
        st = self.state
        if not st.active:
            raise MatchStateError("Match is over" if st.outcome else "No active match")
        if st.awaiting_suggestion:
            raise MatchStateError("A move suggestion is already in flight")

        generation = self._generation
        ref = st.referee
        side = ref.side_to_move()
        legal = ref.legal_moves()
        request = MoveSuggestionRequest(
            position=ref.fen(),
            side_to_move=side,
            move_history=tuple(st.move_history),
            legal_moves=tuple(legal),
            pieces_moves=tuple(ref.pieces_moves()),
            model=st.models.get(side),
        )
        st.awaiting_suggestion = True
        st.status_message = f"{_color(side)} is thinking..."
        settled = self._cycle_settled = asyncio.Event()
        t0 = time.time()
        malformed: Optional[MalformedSuggestionError] = None
        suggestion = None
        try:
            suggestion = await self.service.get_move(self.cfg.provider, request)
        except MalformedSuggestionError as exc:
            malformed = exc
        except TransientProviderError as exc:
            if self._is_stale(generation):
                return self._discard(side)
            st.awaiting_suggestion = False
            self._record_ai_failure(side, exc)
            raise
        except BaseException:
            if not self._is_stale(generation):
                st.awaiting_suggestion = False
            raise
        finally:
            settled.set()

        if self._is_stale(generation):
            return self._discard(side)
        st.awaiting_suggestion = False
        ms = int((time.time() - t0) * 1000)

        if malformed is not None:
            return self._strike(side, None, str(malformed), ms, None)

        st.last_reasoning = suggestion.reasoning
        move = suggestion.move
        try:
            ensure_legal(move, legal)
        except IllegalSuggestionError as exc:
            return self._strike(side, move, exc.reason, ms, suggestion.reasoning)
        ok, san = ref.apply_uci(move)
        if not ok:
            return self._strike(side, move, "rejected by rules engine", ms, suggestion.reasoning)
        return self._commit(side, move, san, ms, suggestion.reasoning)

    def apply_external_move(self, origin: str, destination: str, promotion: str | None = None) -> bool:
        """Apply a move without consulting the AI. Returns False (no strike) if it is illegal."""
        st = self.state
        if not st.active:
            raise MatchStateError("Match is over" if st.outcome else "No active match")
        if st.awaiting_suggestion:
            raise MatchStateError("A move suggestion is already in flight")
        move = f"{origin}{destination}{promotion or ''}".strip().lower()
        try:
            split_uci(move)
        except MalformedSuggestionError:
            return False
        side = st.side_to_move
        ok, san = st.referee.apply_uci(move)
        if not ok:
            self.log.info("External move %s rejected", move)
            return False
        self._commit(side, move, san, None, None, actor="external")
        return True

    async def play(self) -> Optional[Outcome]:
        """Run suggestion cycles until the match ends, is reset, or the AI fails."""
        generation = self._generation
        while self.state.active and not self._is_stale(generation):
            if self.state.awaiting_suggestion:
                # A cycle started elsewhere is still out; wait for it to resolve.
                await self._cycle_settled.wait()
                continue
            try:
                await self.run_suggestion_cycle()
            except TransientProviderError:
                break
            if self.state.active and self.cfg.turn_delay_s > 0:
                await asyncio.sleep(self.cfg.turn_delay_s)
        return self.state.outcome

    def resign(self) -> Outcome:
        st = self.state
        if not st.active:
            raise MatchStateError("Match is over" if st.outcome else "No active match")
        loser = st.side_to_move
        winner = _other(loser)
        # Any outstanding suggestion belongs to a finished match now.
        self._generation += 1
        outcome = Outcome(OutcomeKind.resignation, _wins(winner), f"{_color(winner)} wins by resignation", winner)
        self._finish(outcome)
        return outcome

    def reset(self) -> None:
        self._generation += 1
        self.state = self._fresh_state()
        self.log.info("Match %s reset", self.match_id)

    def is_terminal(self) -> bool:
        return self.state.outcome is not None

    def get_outcome(self) -> Optional[Outcome]:
        return self.state.outcome

    # ---------------- Transitions -----------------
    def _commit(self, side: str, move: str, san: str | None, ms: int | None, reasoning: str | None,
                actor: str = "ai") -> CycleResult:
        st = self.state
        st.strikes.reset()
        st.last_invalid_move = None
        st.move_history.append(move)
        self._record(side, move, san, True, None, ms, reasoning, actor)
        self.log.info("[ply %d] %s: move=%s (%s) time_ms=%s", len(st.move_history), _color(side), san, move, ms)

        outcome = self._evaluate_terminal(side)
        if outcome:
            self._finish(outcome)
            return CycleResult("terminal", side, move, san, None, reasoning, outcome)
        st.status_message = f"{_color(_other(side))} to move"
        return CycleResult("applied", side, move, san, None, reasoning)

    def _strike(self, side: str, move: str | None, reason: str, ms: int, reasoning: str | None) -> CycleResult:
        st = self.state
        count = st.strikes.spend()
        limit = st.strikes.policy.max_attempts
        st.last_invalid_move = move
        self._record(side, move, None, False, reason, ms, reasoning)
        self.log.warning("%s invalid move attempt %d/%d: %s (%s)", _color(side), count, limit, move or "(malformed)", reason)
        if st.strikes.exhausted:
            winner = _other(side)
            outcome = Outcome(
                OutcomeKind.forfeit,
                _wins(winner),
                f"{_color(side)} forfeits after {limit} invalid move attempts",
                winner,
            )
            self._finish(outcome)
            return CycleResult("forfeit", side, move, None, reason, reasoning, outcome)
        st.status_message = f"Invalid move attempt {count}/{limit}. Retrying..."
        return CycleResult("rejected", side, move, None, reason, reasoning)

    def _record_ai_failure(self, side: str, exc: Exception) -> None:
        self.log.error("%s AI failed to provide a move: %s", _color(side), exc)
        self.state.attempts.append({"side": side, "uci": None, "ok": False, "reason": f"ai_failure: {exc}", "actor": "ai"})
        self._finish(Outcome(OutcomeKind.ai_failure, None, f"{_color(side)} AI failed to provide a move: {exc}"))

    def _finish(self, outcome: Outcome) -> None:
        st = self.state
        st.outcome = outcome
        st.active = False
        st.awaiting_suggestion = False
        st.status_message = outcome.reason
        self.log.info("Match %s finished result=%s reason=%s plies=%d", self.match_id, outcome.result, outcome.reason, len(st.move_history))

    def _evaluate_terminal(self, mover: str) -> Optional[Outcome]:
        """Terminal checks in fixed priority order; mover is the side that just moved."""
        ref = self.state.referee
        if ref.is_checkmate():
            return Outcome(OutcomeKind.checkmate, _wins(mover), f"{_color(mover)} wins by checkmate", mover)
        if ref.is_stalemate():
            return Outcome(OutcomeKind.stalemate, DRAW, "Stalemate")
        if ref.is_draw():
            return Outcome(OutcomeKind.draw, DRAW, "Draw by fifty-move rule")
        if ref.is_threefold_repetition():
            return Outcome(OutcomeKind.threefold_repetition, DRAW, "Draw by repetition")
        if ref.is_insufficient_material():
            return Outcome(OutcomeKind.insufficient_material, DRAW, "Insufficient material")
        return None

    def _record(self, side: str, move: str | None, san: str | None, ok: bool, reason: str | None,
                ms: int | None, reasoning: str | None, actor: str = "ai") -> None:
        self.state.attempts.append({
            "side": side,
            "uci": move,
            "san": san,
            "ok": ok,
            "reason": reason,
            "ms": ms,
            "reasoning": reasoning,
            "actor": actor,
        })

    def _discard(self, side: str) -> CycleResult:
        self.log.info("Discarding %s suggestion from a superseded cycle", _color(side))
        return CycleResult("stale", side, reason="superseded")

    # ---------------- Export -----------------
    def snapshot(self) -> Dict[str, Any]:
        st = self.state
        return {
            "matchId": self.match_id,
            "phase": st.phase.value,
            "position": st.position,
            "sideToMove": st.side_to_move,
            "moveHistory": list(st.move_history),
            "sanHistory": st.referee.san_history(),
            "invalidAttempts": st.invalid_attempts,
            "active": st.active,
            "awaitingSuggestion": st.awaiting_suggestion,
            "isCheck": st.referee.is_check(),
            "outcome": st.outcome.to_dict() if st.outcome else None,
            "models": dict(st.models),
            "lastReasoning": st.last_reasoning,
            "lastInvalidMove": st.last_invalid_move,
            "statusMessage": st.status_message,
        }

    def export_history(self) -> Dict[str, Any]:
        """Structured history for visualization: per-ply SAN/UCI/FEN plus every attempt."""
        st = self.state
        board = chess.Board(st.referee.starting_fen)
        moves = []
        for idx, mv in enumerate(st.referee.board.move_stack):
            side = "w" if board.turn == chess.WHITE else "b"
            san = board.san(mv)
            board.push(mv)
            moves.append({"ply": idx + 1, "side": side, "uci": mv.uci(), "san": san, "fen": board.fen()})
        return {
            "matchId": self.match_id,
            "initial_fen": st.referee.starting_fen,
            "models": dict(st.models),
            "moves": moves,
            "attempts": list(st.attempts),
            "outcome": st.outcome.to_dict() if st.outcome else None,
        }

    def pgn(self) -> str:
        outcome = self.state.outcome
        return self.state.referee.pgn(outcome.pgn_result if outcome else "*", outcome.reason if outcome else None)
