"""Hybrid neural/material chess engine."""

from .main import Engine
