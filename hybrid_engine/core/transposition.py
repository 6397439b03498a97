"""Position fingerprints and the bounded evaluation cache.

This module provides:

- fingerprint(state, white_to_move): a cheap 64-bit mix of every occupied
  cell's index and piece code, xor'ed with SIDE_KEY when Black is to move.
  It is not collision resistant; a collision only costs cache accuracy.

- EvaluationCache: a dict keyed by fingerprints holding material scores.
  When an insert takes it past ``max_size`` the oldest half (insertion order)
  is dropped. Entries are never refreshed on access, so this is FIFO, not LRU.

Usage (example):

    from hybrid_engine.core.transposition import EvaluationCache, fingerprint

    cache = EvaluationCache()
    key = fingerprint(board.state(), board.context().white_to_move)
    if (score := cache.get(key)) is None:
        cache.store(key, material.evaluate(board.state()))
"""
from __future__ import annotations

from itertools import islice
from typing import Dict, Optional

MASK64 = 0xFFFFFFFFFFFFFFFF
GOLDEN = 0x9E3779B97F4A7C15
SIDE_KEY = 0xD1B54A32D192ED03
DEFAULT_CACHE_SIZE = 100_000


def fingerprint(state: str, white_to_move: bool = True) -> int:
    h = 0
    for index, code in enumerate(state):
        if code == "0":
            continue
        x = ((index + 1) * GOLDEN ^ ord(code) * 0xBF58476D1CE4E5B9) & MASK64
        x ^= x >> 31
        h = (((h << 7) | (h >> 57)) ^ x) & MASK64
    if not white_to_move:
        h ^= SIDE_KEY
    return h


class EvaluationCache:
    """Bounded fingerprint -> score map with oldest-half eviction.

    Methods:
      - get(key) -> Optional[int]   (counts hits and misses)
      - store(key, value)
      - clear()
    """

    def __init__(self, max_size: int = DEFAULT_CACHE_SIZE):
        if max_size < 1:
            raise ValueError("max_size must be positive")
        self.max_size = max_size
        self._table: Dict[int, int] = {}
        self.hits = 0
        self.misses = 0
        self.evictions = 0

    def __len__(self) -> int:
        return len(self._table)

    def __contains__(self, key: int) -> bool:
        return key in self._table

    def get(self, key: int) -> Optional[int]:
        value = self._table.get(key)
        if value is None:
            self.misses += 1
        else:
            self.hits += 1
        return value

    def store(self, key: int, value: int):
        self._table[key] = value
        if len(self._table) > self.max_size:
            self._evict()

    def _evict(self):
        drop = max(1, len(self._table) // 2)
        for key in list(islice(self._table, drop)):
            del self._table[key]
        self.evictions += drop

    def clear(self):
        self._table.clear()
        self.hits = self.misses = self.evictions = 0

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total else 0.0
