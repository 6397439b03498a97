"""Feedforward neural evaluator with hand-written backpropagation.

Architecture: 773 inputs -> 256 ReLU -> 64 ReLU -> 1 tanh, scaled to
[-MAX_EVAL, MAX_EVAL] centipawns. Weights live in float32 numpy arrays owned by
a single ``NeuralEvaluator`` and are updated in place by ``train``.

Model file layout (little-endian):

    uint32 magic (0xDEADBEAF)
    int32 x4   input, hidden1, hidden2, output sizes
    matrix w1, vector b1, matrix w2, vector b2, matrix w3, vector b3
    TrainingMetrics record (METRICS_FORMAT)
    int32 castle_status, int32 current_turn_no

A vector is ``uint64 length`` followed by ``length`` float32 values; a matrix
is ``uint64 rows`` followed by one vector per row.
"""

from __future__ import annotations

import logging
import struct
from dataclasses import astuple, dataclass
from typing import Optional, Union

import numpy as np

from hybrid_engine.config import CONFIG, NetworkConfig
from hybrid_engine.core.board import ChessBoard, PositionContext
from hybrid_engine.core.encoder import INPUT_SIZE, PositionEncoder

logger = logging.getLogger(__name__)

HIDDEN1_SIZE = 256
HIDDEN2_SIZE = 64
OUTPUT_SIZE = 1
ARCHITECTURE = (INPUT_SIZE, HIDDEN1_SIZE, HIDDEN2_SIZE, OUTPUT_SIZE)

MAGIC_NUMBER = 0xDEADBEAF
METRICS_FORMAT = "<iifffffi"
FLT_MAX = float(np.finfo(np.float32).max)

_U32 = struct.Struct("<I")
_U64 = struct.Struct("<Q")
_DIMS = struct.Struct("<4i")
_TAIL = struct.Struct("<2i")
_METRICS = struct.Struct(METRICS_FORMAT)


class ModelFormatError(ValueError):
    """Model file has the wrong magic marker, architecture, or is truncated."""


@dataclass
class TrainingMetrics:
    positions_trained: int = 0
    iterations: int = 0
    last_loss: float = 0.0
    average_loss: float = 0.0
    best_loss: float = FLT_MAX
    initial_average_error: float = 0.0
    running_average_error: float = 0.0
    error_window_size: int = 100

    def pack(self) -> bytes:
        return _METRICS.pack(*astuple(self))

    @classmethod
    def unpack(cls, raw: bytes) -> "TrainingMetrics":
        return cls(*_METRICS.unpack(raw))


@dataclass
class LayerActivations:
    input: np.ndarray
    hidden1: np.ndarray
    hidden2: np.ndarray
    output: float


class NeuralEvaluator:
    def __init__(
        self,
        config: Optional[NetworkConfig] = None,
        rng: Union[np.random.Generator, int, None] = None,
        encoder: Optional[PositionEncoder] = None,
    ):
        self.cfg = config or CONFIG.network
        self.rng = rng if isinstance(rng, np.random.Generator) else np.random.default_rng(rng)
        self.encoder = encoder or PositionEncoder()
        self.metrics = TrainingMetrics()
        self.castle_status = 0
        self.current_turn_no = 0

        self.weights1, self.bias1 = self._init_layer(HIDDEN1_SIZE, INPUT_SIZE)
        self.weights2, self.bias2 = self._init_layer(HIDDEN2_SIZE, HIDDEN1_SIZE)
        self.weights3, self.bias3 = self._init_layer(OUTPUT_SIZE, HIDDEN2_SIZE)

    def _init_layer(self, rows: int, cols: int):
        std = self.cfg.weight_std
        weights = self.rng.normal(0.0, std, size=(rows, cols)).astype(np.float32)
        bias = self.rng.normal(0.0, std, size=rows).astype(np.float32)
        return weights, bias

    # ------------------------------------------------------------------
    # Inference
    # ------------------------------------------------------------------
    def forward(self, x: np.ndarray) -> LayerActivations:
        hidden1 = np.maximum(self.weights1 @ x + self.bias1, 0.0)
        hidden2 = np.maximum(self.weights2 @ hidden1 + self.bias2, 0.0)
        raw = self.weights3[0] @ hidden2 + self.bias3[0]
        output = float(np.float32(self.cfg.max_eval) * np.tanh(raw))
        return LayerActivations(x, hidden1, hidden2, output)

    def evaluate(self, state: str, context: PositionContext = PositionContext()) -> int:
        """Score a position in centipawns.

        The network output is negated on the way out; the hybrid evaluator and
        search consume the value with that sign.
        """
        output = self.forward(self.encoder.encode(state, context)).output
        return -int(output)

    # ------------------------------------------------------------------
    # Training
    # ------------------------------------------------------------------
    def train(
        self,
        state: str,
        target: int,
        learning_rate: Optional[float] = None,
        context: PositionContext = PositionContext(),
    ) -> Optional[float]:
        """Run one backprop step towards ``target``.

        Returns the absolute post-step error against the clamped target, or
        None when the sample was skipped as a forced mate.
        """
        if abs(target) > self.cfg.mate_threshold:
            logger.debug("Skipping training on forced-mate target %d", target)
            return None
        lr = learning_rate if learning_rate and learning_rate > 0 else self.cfg.default_learning_rate

        max_eval = self.cfg.max_eval
        clamped = float(max(-max_eval, min(max_eval, target)))
        x = self.encoder.encode(state, context)
        activations = self.forward(x)
        pre_error = activations.output - clamped
        self._backpropagate(activations, clamped, lr)
        post_error = self.forward(x).output - clamped

        self._update_error_metrics(pre_error, post_error)
        self.metrics.positions_trained += 1

        improved = abs(post_error) < abs(pre_error)
        logger.debug(
            "Training %s position %d (%.1f centipawns)",
            "++++++++" if improved else "--------",
            self.metrics.positions_trained,
            abs(post_error),
        )
        return abs(post_error)

    def train_fen(self, fen: str, target: int, learning_rate: Optional[float] = None) -> Optional[float]:
        board = ChessBoard(fen)
        return self.train(board.state(), target, learning_rate, board.context())

    def _clip(self, gradient):
        c = self.cfg.clip_threshold
        return np.clip(gradient, -c, c)

    def _backpropagate(self, activations: LayerActivations, target: float, lr: float):
        m = self.metrics
        output = activations.output
        error = target - output
        loss = error * error
        m.last_loss = loss
        if m.iterations == 0:
            m.average_loss = loss
            m.best_loss = loss
        else:
            decay = self.cfg.loss_decay
            m.average_loss = m.average_loss * decay + loss * (1.0 - decay)
            m.best_loss = min(m.best_loss, loss)
        m.iterations += 1

        max_eval = self.cfg.max_eval
        norm_output = output / max_eval
        delta = error * max_eval * (1.0 - norm_output * norm_output)

        x, h1, h2 = activations.input, activations.hidden1, activations.hidden2

        # gradients first, all against the pre-update weights
        d_bias3 = self._clip(delta)
        d_weights3 = self._clip(delta * h2)
        d_hidden2 = np.where(h2 > 0, self._clip(delta * self.weights3[0]), 0.0).astype(np.float32)
        d_hidden1 = np.where(h1 > 0, self._clip(self.weights2.T @ d_hidden2), 0.0).astype(np.float32)
        d_weights2 = self._clip(np.outer(d_hidden2, h1))
        d_weights1 = self._clip(np.outer(d_hidden1, x))

        self.weights3[0] += lr * d_weights3
        self.bias3[0] += lr * d_bias3
        self.weights2 += lr * d_weights2
        self.bias2 += lr * d_hidden2
        self.weights1 += lr * d_weights1
        self.bias1 += lr * d_hidden1

    def _update_error_metrics(self, pre_error: float, post_error: float):
        m = self.metrics
        if m.positions_trained == 0:
            m.initial_average_error = abs(pre_error)
            m.running_average_error = abs(post_error)
        else:
            decay = self.cfg.loss_decay
            m.running_average_error = decay * m.running_average_error + (1.0 - decay) * abs(post_error)

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------
    @property
    def running_average_error(self) -> float:
        return self.metrics.running_average_error

    @property
    def error_reduction(self) -> float:
        m = self.metrics
        if m.initial_average_error > 1e-5:
            return 100.0 * (1.0 - m.running_average_error / m.initial_average_error)
        return 0.0

    def training_status(self) -> str:
        m = self.metrics
        return (
            "Training Status Report:\n"
            "=====================\n"
            f"Positions Trained: {m.positions_trained}\n"
            f"Total Iterations: {m.iterations}\n"
            f"Average Error: {m.running_average_error:.1f} centipawns\n"
            f"Initial Error: {m.initial_average_error:.1f} centipawns\n"
            f"Error Reduction: {self.error_reduction:.1f}%\n"
        )

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------
    def save_model(self, path: str) -> bool:
        try:
            with open(path, "wb") as f:
                f.write(_U32.pack(MAGIC_NUMBER))
                f.write(_DIMS.pack(*ARCHITECTURE))
                for matrix, vector in self._layers():
                    _write_matrix(f, matrix)
                    _write_vector(f, vector)
                f.write(self.metrics.pack())
                f.write(_TAIL.pack(self.castle_status, self.current_turn_no))
        except OSError as e:
            logger.error("Failed to open file for writing: %s (%s)", path, e)
            return False
        return True

    def load_model(self, path: str) -> bool:
        try:
            with open(path, "rb") as f:
                data = f.read()
        except OSError as e:
            logger.error("Failed to open file for reading: %s (%s)", path, e)
            return False
        try:
            layers, metrics, castle_status, turn_no = _parse_model(data)
        except ModelFormatError as e:
            logger.error("Rejected model file %s: %s", path, e)
            return False

        (self.weights1, self.bias1), (self.weights2, self.bias2), (self.weights3, self.bias3) = layers
        self.metrics = metrics
        self.castle_status = castle_status
        self.current_turn_no = turn_no
        metrics.initial_average_error = metrics.running_average_error

        logger.info(
            "Loaded model %s: %d-%d-%d-%d, %d positions trained, error %.1f centipawns",
            path, *ARCHITECTURE, metrics.positions_trained, metrics.running_average_error,
        )
        return True

    def _layers(self):
        return (
            (self.weights1, self.bias1),
            (self.weights2, self.bias2),
            (self.weights3, self.bias3),
        )


def _write_vector(f, vector: np.ndarray):
    f.write(_U64.pack(len(vector)))
    f.write(np.asarray(vector, dtype="<f4").tobytes())


def _write_matrix(f, matrix: np.ndarray):
    f.write(_U64.pack(len(matrix)))
    for row in matrix:
        _write_vector(f, row)


class _Reader:
    def __init__(self, data: bytes):
        self.data = memoryview(data)
        self.pos = 0

    def take(self, n: int) -> bytes:
        end = self.pos + n
        if end > len(self.data):
            raise ModelFormatError(f"truncated at byte {self.pos}, wanted {n} more")
        chunk = self.data[self.pos:end]
        self.pos = end
        return chunk

    def unpack(self, fmt: struct.Struct):
        return fmt.unpack(self.take(fmt.size))

    def vector(self, expected: int) -> np.ndarray:
        (length,) = self.unpack(_U64)
        if length != expected:
            raise ModelFormatError(f"vector length {length}, expected {expected}")
        return np.frombuffer(self.take(length * 4), dtype="<f4").astype(np.float32)

    def matrix(self, rows: int, cols: int) -> np.ndarray:
        (count,) = self.unpack(_U64)
        if count != rows:
            raise ModelFormatError(f"matrix rows {count}, expected {rows}")
        return np.stack([self.vector(cols) for _ in range(rows)])


def _parse_model(data: bytes):
    reader = _Reader(data)
    (magic,) = reader.unpack(_U32)
    if magic != MAGIC_NUMBER:
        raise ModelFormatError(f"bad magic 0x{magic:08X}")
    dims = reader.unpack(_DIMS)
    if dims != ARCHITECTURE:
        raise ModelFormatError(f"architecture {dims} does not match {ARCHITECTURE}")

    layers = []
    for rows, cols in ((HIDDEN1_SIZE, INPUT_SIZE), (HIDDEN2_SIZE, HIDDEN1_SIZE), (OUTPUT_SIZE, HIDDEN2_SIZE)):
        layers.append((reader.matrix(rows, cols), reader.vector(rows)))
    metrics = TrainingMetrics.unpack(reader.take(_METRICS.size))
    castle_status, turn_no = reader.unpack(_TAIL)
    return layers, metrics, castle_status, turn_no
