"""Explicit construction context shared by a graph and its builder."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

import numpy as np

from dagnet.utils.logging.logger import get_logger

# Seeds handed to units are unsigned 32-bit values
_SEED_UPPER_BOUND = 2**32


@dataclass
class GraphContext:
    """
    Logging sink and seeded random generator for graph construction.

    Description:
        Replaces process-wide logger and RNG singletons. A single generator is
        seeded once; every seed handed to a unit is drawn from it in insertion
        order, so the same description and seed always produce the same
        initialization.

    Attributes:
        seed (int): Seed of the generator.
        logger (logging.Logger): Logger used by the graph and builder.
        rng (np.random.Generator): Generator all unit seeds are drawn from.

    """

    seed: int = 0
    logger: logging.Logger = field(default_factory=lambda: get_logger("graph"))
    rng: np.random.Generator = field(init=False, repr=False)

    def __post_init__(self):
        self.rng = np.random.default_rng(self.seed)

    def reseed(self, seed: int):
        """Restart the generator from `seed`."""
        self.seed = seed
        self.rng = np.random.default_rng(seed)

    def next_seed(self) -> int:
        """Draw the next unit seed from the generator."""
        return int(self.rng.integers(0, _SEED_UPPER_BOUND, dtype=np.uint64))
