"""FastAPI REST interface for the engine."""

import threading
from typing import Optional

import chess
from fastapi import FastAPI, HTTPException
from pydantic import BaseModel

from hybrid_engine.config import CONFIG
from hybrid_engine.main import Engine

app = FastAPI(title=CONFIG.ui.engine_name, version="1.0.0")

# Shared engine instance (keeps the evaluation cache and trained weights across requests).
engine = Engine()
board = engine.board
_engine_lock = threading.Lock()


class FenRequest(BaseModel):
    fen: str


class MoveRequest(BaseModel):
    move: str  # UCI format e.g. "e2e4"


class SearchRequest(BaseModel):
    depth: Optional[int] = None


class TrainRequest(BaseModel):
    fen: str
    score: int
    learning_rate: Optional[float] = None


class ModelRequest(BaseModel):
    path: str


@app.get("/board")
def get_board():
    with _engine_lock:
        b = board.board
        return {
            "fen": b.fen(),
            "turn": "white" if b.turn == chess.WHITE else "black",
            "legal_moves": board.get_legal_moves(),
            "is_game_over": b.is_game_over(),
            "result": b.result() if b.is_game_over() else None,
        }


@app.post("/position")
def set_position(req: FenRequest):
    with _engine_lock:
        try:
            board.set_fen(req.fen)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=f"Invalid FEN: {e}")
        return {"fen": board.get_fen()}


@app.post("/move")
def make_move(req: MoveRequest):
    with _engine_lock:
        if not board.make_move(req.move):
            raise HTTPException(status_code=400, detail=f"Illegal move: {req.move}")
        return {"fen": board.get_fen(), "move": req.move}


@app.post("/search")
def search_move(req: SearchRequest = SearchRequest()):
    with _engine_lock:
        if board.is_game_over():
            raise HTTPException(status_code=400, detail="Game is already over")
        depth = req.depth or CONFIG.search.depth
        result = engine.search_result(depth)
        move = result.move
        return {
            "best_move": move.uci() if move else None,
            "from_square": move.from_square if move else None,
            "to_square": move.to_square if move else None,
            "flags": move.flag_names() if move else [],
            "score": result.score,
            "nodes": result.nodes,
            "nps": result.nps,
            "fen": board.get_fen(),
        }


@app.post("/train")
def train_position(req: TrainRequest):
    with _engine_lock:
        try:
            error = engine.train_position(req.fen, req.score, req.learning_rate)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=f"Invalid FEN: {e}")
        return {
            "skipped": error is None,
            "error": error,
            "running_average_error": engine.running_average_error,
        }


@app.get("/status")
def get_status():
    with _engine_lock:
        return {
            "report": engine.status_report(),
            "running_average_error": engine.running_average_error,
            **engine.evaluator.stats(),
        }


@app.post("/model/save")
def save_model(req: ModelRequest):
    with _engine_lock:
        if not engine.save_model(req.path):
            raise HTTPException(status_code=500, detail=f"Could not save model to {req.path}")
        return {"saved": req.path}


@app.post("/model/load")
def load_model(req: ModelRequest):
    with _engine_lock:
        if not engine.load_model(req.path):
            raise HTTPException(status_code=400, detail=f"Could not load model from {req.path}")
        return {"loaded": req.path, "running_average_error": engine.running_average_error}


@app.post("/reset")
def reset_board():
    with _engine_lock:
        engine.reset()
        return {"fen": board.get_fen()}
