"""Core engine components: board adapter, encoder, evaluators, cache and search."""

from .board import ChessBoard, Move, MoveFlag, Position, PositionContext
from .evaluator import MaterialEvaluator
from .hybrid_evaluator import HybridEvaluator
from .network import ModelFormatError, NeuralEvaluator
from .search import SearchEngine, SearchResult
from .transposition import EvaluationCache, fingerprint
