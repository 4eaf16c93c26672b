"""
Prompt builder for move-suggestion requests.

The prompt is a pure function of a MoveSuggestionRequest: a template with
placeholders substituted per turn. It names the side to move, lists every
occupied square, the move history, and the legal moves (grouped by piece when
available), and asks for a JSON reply with separate from/to squares.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional, Tuple

import chess

SYSTEM_INSTRUCTIONS = "You are a chess grandmaster. Always respond with valid JSON containing from/to squares."

MOVE_RESPONSE_SCHEMA = {
    "name": "chess_move",
    "schema": {
        "type": "object",
        "required": ["from", "to", "reasoning"],
        "properties": {
            "from": {"type": "string", "description": "Starting square (e.g., e2)"},
            "to": {"type": "string", "description": "Destination square (e.g., e4)"},
            "promotion": {"type": "string", "description": "Promotion piece (q, r, b or n) if the move promotes"},
            "reasoning": {"type": "string", "description": "Brief explanation"},
        },
        "additionalProperties": True,
    },
}

DEFAULT_MOVE_TEMPLATE = """You are playing chess as {COLOR}. Analyze the position and choose the BEST legal move.

CRITICAL RULES:
1. You MUST respond with separate "from" and "to" squares
2. The move MUST be one of the legal moves listed below
3. Square format: files a-h, ranks 1-8 (e.g., e2, d4, h8)
4. Examples:
   - Pawn move: from="e2", to="e4"
   - Knight move: from="g1", to="f3"
   - Pawn promotion: from="e7", to="e8", promotion="q"

CURRENT POSITION (after all moves have been played):
FEN: {FEN}
Board (human-readable): {BOARD}
Move History (already played): {HISTORY}

{MOVES_SECTION}
*** IT IS YOUR TURN ***
YOU ARE PLAYING AS: {COLOR}
YOU MUST MOVE A {COLOR} PIECE
{COLOR_UPPER} TO MOVE

IMPORTANT:
- You MUST select one move from the legal moves list above
- DO NOT make up moves that are not in the legal moves list
- The board position shows the CURRENT state AFTER all moves in the history
- DO NOT repeat any move from the move history
- You can ONLY move {COLOR} pieces

INSTRUCTIONS:
1. Review the legal moves for each piece carefully
2. Evaluate each legal move for tactical opportunities (checks, captures, threats)
3. Choose the strongest move from the available options
4. Extract the "from" and "to" squares from your chosen move
5. Respond with valid JSON

Example: If you choose move "e2e4", respond with from="e2", to="e4"
Example: If you choose move "e7e8q", respond with from="e7", to="e8", promotion="q"

Provide your response as JSON with "from" (starting square), "to" (destination square), optional "promotion" (q/r/b/n if the move includes it), and "reasoning" (brief explanation)."""


@dataclass(frozen=True)
class PieceMoves:
    """Legal destinations of one piece, as wire-format moves."""

    piece: str
    square: str
    moves: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, object]:
        return {"piece": self.piece, "square": self.square, "moves": list(self.moves)}


@dataclass(frozen=True)
class MoveSuggestionRequest:
    position: str  # FEN
    side_to_move: str  # "w" | "b"
    move_history: Tuple[str, ...] = ()
    legal_moves: Optional[Tuple[str, ...]] = None
    pieces_moves: Optional[Tuple[PieceMoves, ...]] = None
    model: Optional[str] = None

    @property
    def color_name(self) -> str:
        return "White" if self.side_to_move == "w" else "Black"


def render_custom_prompt(template: str, values: Dict[str, str]) -> str:
    """Replace known placeholders in the template. Unknown tokens are left intact."""
    rendered = template or ""
    for key, val in values.items():
        rendered = rendered.replace(f"{{{key}}}", val)
    return rendered


def readable_board(fen: str) -> str:
    """List every occupied square from a8 to h1, e.g. 'a8: Black Rook, b8: Black Knight, ...'."""
    board = chess.BaseBoard(fen.split(" ")[0])
    pieces: list[str] = []
    for rank in range(7, -1, -1):
        for file in range(8):
            sq = chess.square(file, rank)
            piece = board.piece_at(sq)
            if piece is None:
                continue
            color = "White" if piece.color == chess.WHITE else "Black"
            pieces.append(f"{chess.square_name(sq)}: {color} {chess.piece_name(piece.piece_type).capitalize()}")
    return ", ".join(pieces)


def moves_section(request: MoveSuggestionRequest) -> str:
    if request.pieces_moves:
        lines = ["*** LEGAL MOVES BY PIECE ***"]
        for pm in request.pieces_moves:
            lines.append(f"{pm.piece} on {pm.square}: {', '.join(pm.moves)}")
        return "\n".join(lines) + "\n"
    if request.legal_moves:
        return (
            "*** LEGAL MOVES AVAILABLE ***\n"
            "You MUST choose one of these moves (in UCI format):\n"
            f"{', '.join(request.legal_moves)}\n"
        )
    return "*** LEGAL MOVES AVAILABLE ***\nNot provided\n"


def build_move_prompt(request: MoveSuggestionRequest, template: str = DEFAULT_MOVE_TEMPLATE) -> str:
    color = request.color_name
    values = {
        "COLOR": color,
        "COLOR_UPPER": color.upper(),
        "FEN": request.position,
        "BOARD": readable_board(request.position),
        "HISTORY": ", ".join(request.move_history) if request.move_history else "Game start",
        "MOVES_SECTION": moves_section(request),
    }
    return render_custom_prompt(template, values)
