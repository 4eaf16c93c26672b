"""
Validation and normalization of structured AI move replies.

The raw reply is untrusted. normalize_suggestion() applies, in order:
1. lower-case origin/destination and truncate each to 2 characters;
2. keep only the first character of a promotion value, and only if it is q/r/b/n;
3. reject unless both squares match [a-h][1-8] (MalformedSuggestionError);
4. compose the wire-format move: origin + destination + optional promotion.
Unexpected extra fields are ignored.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Optional

from .errors import IllegalSuggestionError, MalformedSuggestionError

SQUARE_RE = re.compile(r"^[a-h][1-8]$")
UCI_RE = re.compile(r"^[a-h][1-8][a-h][1-8][qrbn]?$")
PROMOTION_PIECES = "qrbn"


@dataclass(frozen=True)
class MoveSuggestionResponse:
    origin: str
    destination: str
    promotion: Optional[str] = None
    reasoning: Optional[str] = None
    confidence: Optional[float] = None

    @property
    def move(self) -> str:
        """Wire-format move (4 or 5 characters)."""
        return self.origin + self.destination + (self.promotion or "")


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def normalize_suggestion(reply: Mapping[str, Any]) -> MoveSuggestionResponse:
    """Turn a parsed JSON reply ({from, to, promotion?, reasoning?}) into a validated suggestion."""
    origin = _text(reply.get("from")).lower()[:2]
    destination = _text(reply.get("to")).lower()[:2]

    promotion = None
    raw_promo = _text(reply.get("promotion")).lower()
    if raw_promo and raw_promo[0] in PROMOTION_PIECES:
        promotion = raw_promo[0]

    if not SQUARE_RE.match(origin) or not SQUARE_RE.match(destination):
        raise MalformedSuggestionError(origin, destination)

    reasoning = reply.get("reasoning")
    confidence = reply.get("confidence")
    return MoveSuggestionResponse(
        origin=origin,
        destination=destination,
        promotion=promotion,
        reasoning=str(reasoning) if reasoning is not None else None,
        confidence=float(confidence) if isinstance(confidence, (int, float)) else None,
    )


def split_uci(move: str) -> tuple[str, str, Optional[str]]:
    """Split a wire-format move into (origin, destination, promotion)."""
    move = (move or "").strip().lower()
    if not UCI_RE.match(move):
        raise MalformedSuggestionError(move[:2], move[2:4])
    return move[:2], move[2:4], (move[4] if len(move) > 4 else None)


def matches_legal_move(move: str, legal_moves: Iterable[str]) -> bool:
    """True if origin and destination match a legal move and the promotion agrees with it.

    A legal promoting move needs the same promotion letter; a non-promoting move
    must not carry one.
    """
    origin, destination, promotion = split_uci(move)
    for legal in legal_moves:
        l_origin, l_dest, l_promo = legal[:2], legal[2:4], (legal[4] if len(legal) > 4 else None)
        if l_origin == origin and l_dest == destination and l_promo == promotion:
            return True
    return False


def ensure_legal(move: str, legal_moves: Iterable[str]) -> str:
    """Return the move if it is in the legal set, else raise IllegalSuggestionError."""
    if not matches_legal_move(move, legal_moves):
        raise IllegalSuggestionError(move)
    return move


__all__ = [
    "MoveSuggestionResponse",
    "normalize_suggestion",
    "split_uci",
    "matches_legal_move",
    "ensure_legal",
    "SQUARE_RE",
    "UCI_RE",
]
