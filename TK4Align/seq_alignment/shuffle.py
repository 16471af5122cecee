"""
Score significance by shuffling

Aligns repeatedly shuffled copies of two sequences to estimate the score
distribution of unrelated sequences with the same composition.
"""

import logging
import math
from dataclasses import dataclass
from typing import Optional

import numpy as np

from .base import AlignmentEngine, format_score
from .config import AlignConfig
from .progress import AlignmentCancelled, CompoundProgress

LOGGER = logging.getLogger(__name__)


@dataclass
class ShuffleStatistics:
    """Scores of the shuffled alignments and their mean / standard deviation"""
    scores: np.ndarray
    mean: float
    stdev: float

    def z_score(self, score: float) -> float:
        """Distance of ``score`` from the shuffled mean, in standard deviations"""
        if self.stdev == 0:
            return 0.0 if score == self.mean else math.copysign(math.inf, score - self.mean)
        return (score - self.mean) / self.stdev


class SequenceShuffler:
    """
    Shuffle both sequences and align them again, many times.

    Parameters:
    -----------
    aligner : AlignmentEngine
        Any configured aligner; its last result is overwritten
    seed : int or numpy.random.Generator, optional
        Seed for reproducible shuffles

    Examples:
    ---------
    >>> shuffler = SequenceShuffler(QuadraticLocalAligner(ScoreMatrix.blosum62()), seed=1)
    >>> stats = shuffler.shuffle("HEAGAWGHEE", "PAWHEAE", 50)
    """

    def __init__(self, aligner: AlignmentEngine, seed=None):
        self.aligner = aligner
        self.rng = np.random.default_rng(seed)

    def shuffle_sequence(self, seq: str) -> str:
        chars = list(seq)
        self.rng.shuffle(chars)
        return "".join(chars)

    def shuffle(self, seq1: str, seq2: str, num_shuffles: int = 100,
                config: Optional[AlignConfig] = None) -> ShuffleStatistics:
        """
        Align ``num_shuffles`` shuffled pairs.

        Each replicate reshuffles the previous shuffled copies. The progress
        callback of ``config``, if any, sees the progress over all
        replicates; cancelling it raises AlignmentCancelled.
        """
        if num_shuffles < 1:
            raise ValueError(f"num_shuffles must be positive, got {num_shuffles}")
        config = config or AlignConfig()
        compound = CompoundProgress(config.progress, num_shuffles)
        inner = AlignConfig(progress=compound.minor if config.progress else None)

        scores = np.empty(num_shuffles, dtype=np.float64)
        shuffled1, shuffled2 = seq1, seq2
        for k in range(num_shuffles):
            shuffled1 = self.shuffle_sequence(shuffled1)
            shuffled2 = self.shuffle_sequence(shuffled2)
            scores[k] = self.aligner.align(shuffled1, shuffled2, inner).score
            compound.complete()
            if compound.cancelled:
                raise AlignmentCancelled(f"Shuffling cancelled after {k + 1} replicates")

        mean = float(scores.mean())
        stdev = float(scores.std())
        LOGGER.debug("%d shuffles: mean %s, stdev %.4g", num_shuffles, format_score(mean), stdev)
        if config.verbose:
            print(f"Shuffled {num_shuffles} times: mean score {mean:.3f}, stdev {stdev:.3f}")
        return ShuffleStatistics(scores=scores, mean=mean, stdev=stdev)
