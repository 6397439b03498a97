from typing import Optional

from hybrid_engine.config import CONFIG, EvalConfig
from hybrid_engine.core.board import EMPTY, Position
from hybrid_engine.core.evaluator import MaterialEvaluator
from hybrid_engine.core.network import NeuralEvaluator
from hybrid_engine.core.transposition import EvaluationCache, fingerprint


class HybridEvaluator:
    """Neural scoring for critical positions, material count for the rest.

    A position is critical when any legal move captures or promotes, or when
    few pieces are left. The cache only ever holds material scores: a hit
    returns the material score even if the first visit was scored by the
    network.
    """

    def __init__(
        self,
        neural: Optional[NeuralEvaluator] = None,
        material: Optional[MaterialEvaluator] = None,
        config: Optional[EvalConfig] = None,
        cache: Optional[EvaluationCache] = None,
    ):
        self.cfg = config or CONFIG.eval
        self.material = material or MaterialEvaluator(self.cfg.piece_values)
        self.neural = neural
        self.use_neural = self.cfg.use_neural and neural is not None
        self.cache = cache if cache is not None else EvaluationCache(self.cfg.cache_size)
        self.neural_evals = 0
        self.material_evals = 0

    def evaluate(self, position: Position) -> int:
        state = position.state()
        context = position.context()
        key = fingerprint(state, context.white_to_move)

        cached = self.cache.get(key)
        if cached is not None:
            return cached

        material_score = self.material.evaluate(state)
        if self.use_neural and self.is_critical(position, state):
            score = self.neural.evaluate(state, context)
            self.neural_evals += 1
        else:
            score = material_score
            self.material_evals += 1

        self.cache.store(key, material_score)
        return score

    def is_critical(self, position: Position, state: Optional[str] = None) -> bool:
        state = state if state is not None else position.state()
        occupied = sum(1 for c in state if c != EMPTY)
        if occupied <= self.cfg.endgame_threshold:
            return True
        return any(m.is_capture or m.is_promotion for m in position.generate_all_moves())

    def stats(self) -> dict:
        return {
            "cache_size": len(self.cache),
            "cache_hits": self.cache.hits,
            "cache_misses": self.cache.misses,
            "cache_hit_rate": round(self.cache.hit_rate, 4),
            "neural_evals": self.neural_evals,
            "material_evals": self.material_evals,
        }

    def clear_cache(self):
        self.cache.clear()
        self.neural_evals = self.material_evals = 0
