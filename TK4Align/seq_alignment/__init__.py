"""
Sequence Alignment Module
Pairwise alignment engines: quadratic, affine, linear-space and repeat
"""

from .affine import AffineGapAligner
from .base import (
    AlgorithmKind,
    AlignmentEngine,
    AlignmentResult,
    State,
    TracebackCell,
    TracebackPlotter,
)
from .config import AlignConfig
from .linear_space import LinearSpaceAffineAligner, LinearSpaceGlobalAligner
from .pairwise import PairwiseAligner, make_aligner, pairwise
from .progress import AlignmentCancelled, AlignmentError
from .quadratic import QuadraticGlobalAligner, QuadraticLocalAligner
from .repeat import RepeatAligner
from .shuffle import SequenceShuffler, ShuffleStatistics

__all__ = [
    "AffineGapAligner",
    "AlgorithmKind",
    "AlignConfig",
    "AlignmentCancelled",
    "AlignmentEngine",
    "AlignmentError",
    "AlignmentResult",
    "LinearSpaceAffineAligner",
    "LinearSpaceGlobalAligner",
    "PairwiseAligner",
    "QuadraticGlobalAligner",
    "QuadraticLocalAligner",
    "RepeatAligner",
    "SequenceShuffler",
    "ShuffleStatistics",
    "State",
    "TracebackCell",
    "TracebackPlotter",
    "make_aligner",
    "pairwise",
]
