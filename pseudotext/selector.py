"""
Weighted Selection
==================
O(log n) sampling from a fixed weight table.

Keys are ordered by descending weight, ties keeping their insertion order.
The ordering only decides where bucket boundaries fall; each key is still
drawn with probability ``weight / total``.
"""

import bisect
import random
from typing import Hashable, Mapping, Optional


class WeightedSelector:
    """Sampler over a mapping of key -> non-negative integer weight."""

    __slots__ = ('keys', 'cumulative', 'total')

    def __init__(self, weights: Mapping[Hashable, int]):
        ordered = sorted(
            ((k, int(w)) for k, w in weights.items() if w and w > 0),
            key=lambda kv: -kv[1],
        )
        self.keys = [k for k, _ in ordered]
        self.cumulative = []
        running = 0
        for _, weight in ordered:
            running += weight
            self.cumulative.append(running)
        self.total = running

    def is_empty(self) -> bool:
        return self.total <= 0

    def select(self, rng: random.Random) -> Optional[Hashable]:
        """Draw one key proportional to its weight, or None when empty."""
        if self.total <= 0:
            return None
        target = int(rng.random() * self.total) + 1
        index = bisect.bisect_left(self.cumulative, target)
        return self.keys[min(index, len(self.keys) - 1)]

    def __len__(self):
        return len(self.keys)

    def __contains__(self, key):
        return key in self.keys

    def __repr__(self):
        return f"WeightedSelector(keys={len(self.keys)}, total={self.total})"
