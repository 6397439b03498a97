import logging
import random
from typing import Optional, Tuple

from hybrid_engine.config import CONFIG
from hybrid_engine.core.board import ChessBoard
from hybrid_engine.core.hybrid_evaluator import HybridEvaluator
from hybrid_engine.core.network import NeuralEvaluator
from hybrid_engine.core.search import SearchEngine, SearchResult

logger = logging.getLogger(__name__)


class Engine:
    """Board + evaluators + search, wired together for the host layer."""

    def __init__(
        self,
        depth: Optional[int] = None,
        model_path: Optional[str] = None,
        use_neural: Optional[bool] = None,
        rng: Optional[random.Random] = None,
        seed: Optional[int] = None,
    ):
        self.board = ChessBoard()
        self.neural = NeuralEvaluator(rng=seed)
        self.evaluator = HybridEvaluator(self.neural)
        if use_neural is not None:
            self.evaluator.use_neural = use_neural
        self.search = SearchEngine(self.evaluator, depth=depth, rng=rng or random.Random(seed))

        model_path = model_path or CONFIG.network.model_path
        if model_path and not self.load_model(model_path):
            logger.warning("Starting from random weights; could not load %s", model_path)

    def get_best_move(self, depth: Optional[int] = None) -> Tuple[Optional[str], int]:
        result = self.search.search(self.board, depth)
        return (result.move.uci() if result.move else None), result.score

    def search_result(self, depth: Optional[int] = None) -> SearchResult:
        return self.search.search(self.board, depth)

    def make_move(self, move_uci: str) -> bool:
        return self.board.make_move(move_uci)

    def set_fen(self, fen: str):
        self.board.set_fen(fen)

    def reset(self):
        self.board.reset()
        self.evaluator.clear_cache()

    def train_position(self, fen: str, score: int, learning_rate: Optional[float] = None) -> Optional[float]:
        return self.neural.train_fen(fen, score, learning_rate)

    def load_model(self, path: str) -> bool:
        ok = self.neural.load_model(path)
        if ok:
            # cached scores are material-only, but neural decisions may change
            self.evaluator.clear_cache()
        return ok

    def save_model(self, path: str) -> bool:
        self.neural.castle_status = self.board.context().castle_status
        self.neural.current_turn_no = self.board.turn_number
        return self.neural.save_model(path)

    @property
    def running_average_error(self) -> float:
        return self.neural.running_average_error

    def status_report(self) -> str:
        lines = [self.neural.training_status()]
        stats = self.evaluator.stats()
        lines.append(
            f"Cache: {stats['cache_size']} entries, hit rate {stats['cache_hit_rate']:.1%}, "
            f"{stats['neural_evals']} neural / {stats['material_evals']} material evaluations"
        )
        last = self.search.last_result
        if last is not None:
            move = last.move.uci() if last.move else "none"
            lines.append(
                f"Last search: depth {last.depth}, move {move}, score {last.score}, "
                f"{last.nodes} nodes, {last.nps} nps"
            )
        return "\n".join(lines)
