from typing import Dict, Optional

from hybrid_engine.config import CONFIG
from hybrid_engine.core.board import BOARD_SIZE

_NAMES = {"P": "PAWN", "N": "KNIGHT", "B": "BISHOP", "R": "ROOK", "Q": "QUEEN", "K": "KING"}


class MaterialEvaluator:
    """Plain material count, positive when White (uppercase) is ahead."""

    def __init__(self, piece_values: Optional[Dict[str, int]] = None):
        values = piece_values or CONFIG.eval.piece_values
        # Immutable per-symbol lookup built once; unknown symbols count as 0.
        table = {}
        for letter, name in _NAMES.items():
            table[letter] = values[name]
            table[letter.lower()] = -values[name]
        self._values = table

    def evaluate(self, state: str) -> int:
        if len(state) != BOARD_SIZE:
            raise ValueError(f"board state must have {BOARD_SIZE} cells, got {len(state)}")
        values = self._values
        return sum(values.get(c, 0) for c in state)
