import logging
import random
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import List, Optional, Tuple

from hybrid_engine.config import CONFIG, SearchConfig
from hybrid_engine.core.board import Move, Position
from hybrid_engine.core.hybrid_evaluator import HybridEvaluator
from hybrid_engine.core.utils import format_info

logger = logging.getLogger(__name__)

INF = 1000000
MATE_SCORE = 900000
# Checkmate and stalemate both land here; the position has no legal moves.
NO_MOVES_SCORE = -MATE_SCORE


@dataclass
class SearchResult:
    move: Optional[Move]
    score: int
    depth: int
    nodes: int = 0
    elapsed: float = 0.0
    candidates: int = 0

    @property
    def nps(self) -> int:
        return int(self.nodes / self.elapsed) if self.elapsed > 0 else 0


@contextmanager
def played(position: Position, move: Move):
    """Apply ``move`` for the duration of the block; undo exactly once on exit."""
    position.apply_move(move)
    try:
        yield
    finally:
        position.undo_last_move()


class SearchEngine:
    def __init__(
        self,
        evaluator: HybridEvaluator,
        depth: Optional[int] = None,
        rng: Optional[random.Random] = None,
        config: Optional[SearchConfig] = None,
    ):
        self.cfg = config or CONFIG.search
        self.evaluator = evaluator
        self.max_depth = depth if depth is not None else self.cfg.depth
        self.rng = rng or random.Random()
        self.nodes = 0
        self.last_result: Optional[SearchResult] = None

    def search(self, position: Position, depth: Optional[int] = None) -> SearchResult:
        """Pick a move for the side to move in ``position``.

        Every root move is scored at ``depth``; one is drawn uniformly from
        those within ``tie_tolerance`` of the best. ``move`` is None when the
        position has no legal moves, or when ``depth`` is 0 (static score only).
        """
        depth = self.max_depth if depth is None else depth
        self.nodes = 0
        start = time.perf_counter()

        if depth <= 0:
            self.nodes = 1
            result = SearchResult(None, self.evaluator.evaluate(position), 0, 1, time.perf_counter() - start)
            self.last_result = result
            return result

        moves = list(position.generate_all_moves())
        if not moves:
            logger.info("No legal moves, nothing to search")
            result = SearchResult(None, NO_MOVES_SCORE, depth, 1, time.perf_counter() - start)
            self.last_result = result
            return result

        if self.cfg.shuffle_root:
            self.rng.shuffle(moves)

        tol = self.cfg.tie_tolerance
        best = -INF
        candidates: List[Tuple[Move, int]] = []
        for move in moves:
            # Anything at or below the floor cannot join the band, so a bound is enough.
            floor = best - tol - 1
            with played(position, move):
                score = -self.negamax(position, depth - 1, -INF, -floor)
            if score > best:
                best = score
                candidates = [c for c in candidates if c[1] >= best - tol]
            if score >= best - tol:
                candidates.append((move, score))

        move, score = self.rng.choice(candidates)
        elapsed = time.perf_counter() - start
        result = SearchResult(move, score, depth, self.nodes, elapsed, len(candidates))
        self.last_result = result
        logger.info(format_info(depth, score, self.nodes, elapsed, [move], MATE_SCORE))
        return result

    def negamax(self, position: Position, depth: int, alpha: int, beta: int) -> int:
        self.nodes += 1
        if depth <= 0:
            return self.evaluator.evaluate(position)

        moves = position.generate_all_moves()
        if not moves:
            return NO_MOVES_SCORE

        best = -INF
        for move in moves:
            with played(position, move):
                score = -self.negamax(position, depth - 1, -beta, -alpha)
            if score > best:
                best = score
            if best > alpha:
                alpha = best
            if alpha >= beta:
                break
        return best
