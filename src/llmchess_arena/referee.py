"""
Referee: the rules-engine capability the match orchestrator consumes.

- Owns a python-chess Board and applies wire-format (UCI) moves.
- Enumerates legal moves as wire strings, flat and grouped per piece.
- Exposes the terminal predicates the orchestrator checks after every move.
- Emits PGN with headers and an optional termination comment.
"""
from __future__ import annotations
import datetime
from typing import Optional

import chess
import chess.pgn

from .prompting import PieceMoves


class Referee:
    """Plain chess referee around python-chess Board and PGN export."""
    def __init__(self, starting_fen: str | None = None):
        self.board = chess.Board(fen=starting_fen) if starting_fen else chess.Board()
        self.starting_fen = self.board.fen()
        self._headers: dict[str, str] = {}

    # ---------------- Position queries -----------------
    def fen(self) -> str:
        return self.board.fen()

    def side_to_move(self) -> str:
        return "w" if self.board.turn == chess.WHITE else "b"

    def legal_moves(self, square: str | None = None) -> list[str]:
        """Legal moves in wire format, optionally restricted to one origin square."""
        moves = self.board.legal_moves
        if square:
            origin = chess.parse_square(square.lower())
            return [m.uci() for m in moves if m.from_square == origin]
        return [m.uci() for m in moves]

    def pieces_moves(self) -> list[PieceMoves]:
        """Group legal moves by moving piece (kind + origin square), in generation order."""
        grouped: dict[int, tuple[str, list[str]]] = {}
        for mv in self.board.legal_moves:
            if mv.from_square not in grouped:
                piece = self.board.piece_at(mv.from_square)
                name = chess.piece_name(piece.piece_type).capitalize() if piece else "Piece"
                grouped[mv.from_square] = (name, [])
            grouped[mv.from_square][1].append(mv.uci())
        return [
            PieceMoves(piece=name, square=chess.square_name(sq), moves=tuple(moves))
            for sq, (name, moves) in grouped.items()
        ]

    # ---------------- Move Application -----------------
    def apply_uci(self, uci: str) -> tuple[bool, str | None]:
        try:
            mv = chess.Move.from_uci(uci)
        except ValueError:
            return False, None
        if mv not in self.board.legal_moves:
            return False, None
        san = self.board.san(mv)
        self.board.push(mv)
        return True, san

    # ---------------- Terminal predicates -----------------
    def is_checkmate(self) -> bool:
        return self.board.is_checkmate()

    def is_stalemate(self) -> bool:
        return self.board.is_stalemate()

    def is_draw(self) -> bool:
        # Stalemate, repetition and material are reported by their own predicates.
        return self.board.is_fifty_moves()

    def is_threefold_repetition(self) -> bool:
        return self.board.is_repetition(3)

    def is_insufficient_material(self) -> bool:
        return self.board.is_insufficient_material()

    def is_check(self) -> bool:
        return self.board.is_check()

    # ---------------- History / PGN -----------------
    def san_history(self) -> list[str]:
        replay = chess.Board(self.starting_fen)
        sans: list[str] = []
        for mv in self.board.move_stack:
            sans.append(replay.san(mv))
            replay.push(mv)
        return sans

    def set_headers(self, event: str = "LLM Chess Arena", site: str = "?", date: Optional[str] = None,
                    round_: str = "?", white: str = "?", black: str = "?") -> None:
        date = date or datetime.date.today().strftime("%Y.%m.%d")
        self._headers.update({
            "Event": event,
            "Site": site,
            "Date": date,
            "Round": round_,
            "White": white,
            "Black": black,
        })

    def pgn(self, result: str = "*", termination_reason: Optional[str] = None) -> str:
        game = chess.pgn.Game()
        for k, v in self._headers.items():
            game.headers[k] = v
        if self.starting_fen != chess.STARTING_FEN:
            game.setup(chess.Board(self.starting_fen))
        game.headers["Result"] = result
        node = game
        for mv in list(self.board.move_stack):
            node = node.add_variation(mv)
        if termination_reason:
            game.comment = f"Termination: {termination_reason}"
        exporter = chess.pgn.StringExporter(headers=True, variations=False, comments=bool(termination_reason))
        return game.accept(exporter)
