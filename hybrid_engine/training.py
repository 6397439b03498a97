"""Supervised training of the neural evaluator from labelled positions.

Datasets are CSV files with one ``fen,score`` row per position, score in
centipawns from White's point of view. ``label_positions`` produces such rows
by asking an external UCI engine (e.g. Stockfish) through ``chess.engine``.
"""

import csv
import logging
import random
from dataclasses import dataclass
from typing import Iterable, List, Optional

import chess
import chess.engine

from hybrid_engine.config import CONFIG, TrainingConfig
from hybrid_engine.core.network import NeuralEvaluator

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TrainingSample:
    fen: str
    score: int


def load_dataset(path: str) -> List[TrainingSample]:
    samples = []
    with open(path, newline="") as f:
        for lineno, row in enumerate(csv.reader(f), start=1):
            if not row or not row[0].strip() or row[0].lstrip().startswith("#"):
                continue
            if lineno == 1 and row[0].strip().lower() == "fen":
                continue
            try:
                fen, score = row[0].strip(), int(float(row[1]))
                chess.Board(fen)
            except (IndexError, ValueError) as e:
                logger.warning("%s:%d: skipping malformed row (%s)", path, lineno, e)
                continue
            samples.append(TrainingSample(fen, score))
    logger.info("Loaded %d samples from %s", len(samples), path)
    return samples


def save_dataset(path: str, samples: Iterable[TrainingSample]):
    with open(path, "w", newline="") as f:
        writer = csv.writer(f)
        writer.writerow(["fen", "score"])
        for s in samples:
            writer.writerow([s.fen, s.score])


def label_positions(
    fens: Iterable[str],
    engine_path: str,
    depth: Optional[int] = None,
    mate_score: Optional[int] = None,
) -> List[TrainingSample]:
    """Score each FEN with an external UCI engine, White-positive.

    Mates come back as ``mate_score`` minus distance, well past the training
    skip threshold, so ``NeuralEvaluator.train`` ignores them.
    """
    depth = depth or CONFIG.training.label_depth
    mate_score = mate_score or CONFIG.training.mate_score
    samples = []
    with chess.engine.SimpleEngine.popen_uci(engine_path) as engine:
        for fen in fens:
            board = chess.Board(fen)
            info = engine.analyse(board, chess.engine.Limit(depth=depth))
            score = info["score"].white().score(mate_score=mate_score)
            samples.append(TrainingSample(board.fen(), score))
    return samples


class Trainer:
    def __init__(
        self,
        evaluator: NeuralEvaluator,
        config: Optional[TrainingConfig] = None,
        rng: Optional[random.Random] = None,
    ):
        self.evaluator = evaluator
        self.cfg = config or CONFIG.training
        self.rng = rng or random.Random()

    def run(
        self,
        samples: List[TrainingSample],
        epochs: Optional[int] = None,
        learning_rate: Optional[float] = None,
        model_path: Optional[str] = None,
    ) -> dict:
        epochs = epochs or self.cfg.epochs
        lr = learning_rate or self.cfg.learning_rate
        order = list(samples)
        trained = skipped = 0
        checkpoints = 0

        for epoch in range(1, epochs + 1):
            self.rng.shuffle(order)
            for sample in order:
                if self.evaluator.train_fen(sample.fen, sample.score, lr) is None:
                    skipped += 1
                    continue
                trained += 1
                if self.cfg.log_every and trained % self.cfg.log_every == 0:
                    logger.info("epoch %d\n%s", epoch, self.evaluator.training_status())
                if model_path and self.cfg.checkpoint_every and trained % self.cfg.checkpoint_every == 0:
                    checkpoints += self._checkpoint(model_path)
            logger.info(
                "epoch %d/%d done, running error %.1f centipawns",
                epoch, epochs, self.evaluator.running_average_error,
            )

        if model_path:
            checkpoints += self._checkpoint(model_path)

        return {
            "epochs": epochs,
            "trained": trained,
            "skipped": skipped,
            "checkpoints": checkpoints,
            "running_average_error": self.evaluator.running_average_error,
            "error_reduction": self.evaluator.error_reduction,
        }

    def _checkpoint(self, model_path: str) -> int:
        if self.evaluator.save_model(model_path):
            return 1
        logger.warning("Checkpoint to %s failed", model_path)
        return 0
