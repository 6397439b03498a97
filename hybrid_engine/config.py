# hybrid_engine/config.py
import logging
import os
import tomllib
from dataclasses import dataclass, field
from typing import Dict, Optional

logger = logging.getLogger(__name__)

# Defaults (centipawns)
PIECE_VALUES = {
    "PAWN": 100,
    "KNIGHT": 320,
    "BISHOP": 330,
    "ROOK": 500,
    "QUEEN": 900,
    "KING": 20000,
}


@dataclass
class SearchConfig:
    depth: int = 3
    tie_tolerance: int = 10  # root moves within this many cp of the best are all candidates
    shuffle_root: bool = True


@dataclass
class EvalConfig:
    piece_values: Dict[str, int] = field(default_factory=lambda: PIECE_VALUES.copy())
    use_neural: bool = True
    endgame_threshold: int = 12  # occupied cells at or below this count as critical
    cache_size: int = 100_000


@dataclass
class NetworkConfig:
    model_path: Optional[str] = None
    max_eval: float = 2000.0
    weight_std: float = 0.1
    clip_threshold: float = 5.0
    default_learning_rate: float = 5e-7
    mate_threshold: int = 5000  # targets beyond this are forced mates, never trained on
    loss_decay: float = 0.99


@dataclass
class TrainingConfig:
    epochs: int = 1
    learning_rate: float = 1e-5
    log_every: int = 100
    checkpoint_every: int = 1000
    label_depth: int = 12
    mate_score: int = 100000


@dataclass
class UIConfig:
    engine_name: str = "HybridEngine"
    engine_author: str = "Medo"
    api_port: int = 8000


@dataclass
class Config:
    search: SearchConfig = field(default_factory=SearchConfig)
    eval: EvalConfig = field(default_factory=EvalConfig)
    network: NetworkConfig = field(default_factory=NetworkConfig)
    training: TrainingConfig = field(default_factory=TrainingConfig)
    ui: UIConfig = field(default_factory=UIConfig)
    log_level: str = "INFO"

    @staticmethod
    def load_from_toml(path: str = "config.toml") -> "Config":
        cfg = Config()
        if not os.path.exists(path):
            return cfg
        with open(path, "rb") as f:
            raw = tomllib.load(f)
        for section in ("search", "eval", "network", "training", "ui"):
            if section not in raw:
                continue
            target = getattr(cfg, section)
            for k, v in raw[section].items():
                if hasattr(target, k):
                    setattr(target, k, v)
                else:
                    logger.warning("Unknown config key %s.%s ignored", section, k)
        if "log_level" in raw:
            cfg.log_level = str(raw["log_level"])
        return cfg


def configure_logging(level: Optional[str] = None):
    """Set up root logging for the CLI and API entry points."""
    logging.basicConfig(
        level=(level or CONFIG.log_level).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


# single globally importable config instance
CONFIG = Config.load_from_toml(os.environ.get("ENGINE_CONFIG_TOML", "config.toml"))
# allow env override of depth for quick debugging
override_depth = os.environ.get("ENGINE_SEARCH_DEPTH")
if override_depth:
    try:
        CONFIG.search.depth = int(override_depth)
    except ValueError:
        logger.warning("Ignoring non-integer ENGINE_SEARCH_DEPTH=%r", override_depth)
