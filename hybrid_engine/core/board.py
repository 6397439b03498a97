"""Board wrapper over python-chess acting as the engine's move generator.

The search and evaluators never touch python-chess directly. They consume the
narrow ``Position`` capability interface defined here:

- ``state()``: 64 cell codes, index 0 = a1, '0' for empty squares
- ``context()``: side to move and castling rights
- ``generate_all_moves()``: legal moves as ``Move`` records
- ``apply_move(move)`` / ``undo_last_move()``: make/unmake

``ChessBoard`` is the python-chess backed implementation used by the host.
Tests can drive the search with any other object honouring the protocol.
"""

import enum
from dataclasses import dataclass
from typing import List, Optional, Protocol

import chess

EMPTY = "0"
BOARD_SIZE = 64


class MoveFlag(enum.IntFlag):
    NONE = 0
    CAPTURE = 1
    PROMOTION = 2
    EN_PASSANT = 4
    CASTLING = 8


@dataclass(frozen=True)
class Move:
    from_square: int
    to_square: int
    piece: str
    flags: MoveFlag = MoveFlag.NONE
    promotion: Optional[str] = None

    @property
    def is_capture(self) -> bool:
        return bool(self.flags & MoveFlag.CAPTURE)

    @property
    def is_promotion(self) -> bool:
        return bool(self.flags & MoveFlag.PROMOTION)

    def flag_names(self) -> List[str]:
        return [f.name.lower() for f in MoveFlag if f and f in self.flags]

    def uci(self) -> str:
        s = chess.square_name(self.from_square) + chess.square_name(self.to_square)
        if self.promotion:
            s += self.promotion.lower()
        return s


@dataclass(frozen=True)
class PositionContext:
    white_to_move: bool = True
    white_castle_kingside: bool = False
    white_castle_queenside: bool = False
    black_castle_kingside: bool = False
    black_castle_queenside: bool = False

    @property
    def castle_status(self) -> int:
        """Castling rights packed as K=1, Q=2, k=4, q=8."""
        return (
            int(self.white_castle_kingside)
            | int(self.white_castle_queenside) << 1
            | int(self.black_castle_kingside) << 2
            | int(self.black_castle_queenside) << 3
        )


class Position(Protocol):
    def state(self) -> str: ...

    def context(self) -> PositionContext: ...

    def generate_all_moves(self) -> List[Move]: ...

    def apply_move(self, move: Move) -> None: ...

    def undo_last_move(self) -> None: ...


def state_from_notation(notation: str) -> str:
    """Convert board notation (FEN placement, or a full FEN) into a 64-cell state."""
    placement = notation.strip().split(" ")[0]
    base = chess.BaseBoard(placement)
    return "".join(_symbol(base.piece_at(sq)) for sq in chess.SQUARES)


def notation_from_state(state: str) -> str:
    """Inverse of ``state_from_notation``: rank 8 first, '/'-separated, digit runs."""
    if len(state) != BOARD_SIZE:
        raise ValueError(f"board state must have {BOARD_SIZE} cells, got {len(state)}")
    base = chess.BaseBoard.empty()
    for sq, code in enumerate(state):
        if code != EMPTY:
            base.set_piece_at(sq, chess.Piece.from_symbol(code))
    return base.board_fen()


def _symbol(piece: Optional[chess.Piece]) -> str:
    return piece.symbol() if piece else EMPTY


class ChessBoard:
    def __init__(self, fen: str = None):
        """Initialize from FEN or the standard starting position."""
        self.board = chess.Board(fen) if fen else chess.Board()
        self.move_history = []

    # ------------------------------------------------------------------
    # Position protocol
    # ------------------------------------------------------------------
    def state(self) -> str:
        piece_map = self.board.piece_map()
        return "".join(_symbol(piece_map.get(sq)) for sq in chess.SQUARES)

    def context(self) -> PositionContext:
        b = self.board
        return PositionContext(
            white_to_move=b.turn == chess.WHITE,
            white_castle_kingside=b.has_kingside_castling_rights(chess.WHITE),
            white_castle_queenside=b.has_queenside_castling_rights(chess.WHITE),
            black_castle_kingside=b.has_kingside_castling_rights(chess.BLACK),
            black_castle_queenside=b.has_queenside_castling_rights(chess.BLACK),
        )

    def generate_all_moves(self) -> List[Move]:
        return [self._to_move(m) for m in self.board.legal_moves]

    def apply_move(self, move: Move) -> None:
        promotion = chess.Piece.from_symbol(move.promotion).piece_type if move.promotion else None
        self.board.push(chess.Move(move.from_square, move.to_square, promotion=promotion))

    def undo_last_move(self) -> None:
        self.board.pop()

    def _to_move(self, m: chess.Move) -> Move:
        b = self.board
        flags = MoveFlag.NONE
        if b.is_capture(m):
            flags |= MoveFlag.CAPTURE
        if b.is_en_passant(m):
            flags |= MoveFlag.EN_PASSANT
        if b.is_castling(m):
            flags |= MoveFlag.CASTLING
        promotion = None
        if m.promotion:
            flags |= MoveFlag.PROMOTION
            promotion = chess.Piece(m.promotion, b.turn).symbol()
        return Move(m.from_square, m.to_square, b.piece_at(m.from_square).symbol(), flags, promotion)

    # ------------------------------------------------------------------
    # Host helpers
    # ------------------------------------------------------------------
    def reset(self):
        """Reset to the initial position."""
        self.board.reset()
        self.move_history.clear()

    def set_fen(self, fen: str):
        """Set board state from a FEN string. Raises ValueError on bad FEN."""
        self.board.set_fen(fen)
        self.move_history.clear()

    def get_fen(self) -> str:
        """Return the current FEN."""
        return self.board.fen()

    def make_move(self, move_str: str) -> bool:
        """Push a UCI move (e.g. 'e2e4'). Returns True if legal."""
        try:
            move = chess.Move.from_uci(move_str)
        except ValueError:
            return False
        if move not in self.board.legal_moves:
            return False
        self.board.push(move)
        self.move_history.append(move_str)
        return True

    def undo_move(self):
        """Pop the last move."""
        if self.move_history:
            self.board.pop()
            self.move_history.pop()

    def get_legal_moves(self):
        """Return legal moves as UCI strings."""
        return [m.uci() for m in self.board.legal_moves]

    def is_game_over(self):
        """Check if the game has ended."""
        return self.board.is_game_over()

    @property
    def turn_number(self) -> int:
        return self.board.fullmove_number

    def copy(self) -> "ChessBoard":
        clone = ChessBoard()
        clone.board = self.board.copy()
        clone.move_history = list(self.move_history)
        return clone
