"""One-hot position encoding for the neural evaluator."""

import numpy as np

from hybrid_engine.core.board import BOARD_SIZE, EMPTY, PositionContext

PIECE_TYPES = 12
EXTRA_FEATURES = 5
INPUT_SIZE = BOARD_SIZE * PIECE_TYPES + EXTRA_FEATURES  # 773

# plane order: white P R N B Q K, then black p r n b q k
PIECE_INDEX = {sym: i for i, sym in enumerate("PRNBQKprnbqk")}


class PositionEncoder:
    """Maps (state, context) onto a 773-wide float32 vector.

    Square ``i`` holding plane ``p`` sets ``encoded[i + p * 64]``. The last five
    slots are side-to-move and the four castling flags, in ``PositionContext``
    field order. Characters outside ``PIECE_INDEX`` fall into the pawn plane.
    """

    size = INPUT_SIZE

    def encode(self, state: str, context: PositionContext = PositionContext()) -> np.ndarray:
        if len(state) != BOARD_SIZE:
            raise ValueError(f"board state must have {BOARD_SIZE} cells, got {len(state)}")
        encoded = np.zeros(INPUT_SIZE, dtype=np.float32)
        for i, piece in enumerate(state):
            if piece != EMPTY:
                encoded[i + PIECE_INDEX.get(piece, 0) * BOARD_SIZE] = 1.0

        base = BOARD_SIZE * PIECE_TYPES
        encoded[base + 0] = context.white_to_move
        encoded[base + 1] = context.white_castle_kingside
        encoded[base + 2] = context.white_castle_queenside
        encoded[base + 3] = context.black_castle_kingside
        encoded[base + 4] = context.black_castle_queenside
        return encoded
