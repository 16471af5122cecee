"""
TK4Align
Pairwise sequence alignment toolkit
"""

from .scores import ScoreMatrix, get_scores
from .seq_alignment import AlignmentResult, PairwiseAligner, pairwise

__version__ = "0.1.0"

__all__ = [
    "AlignmentResult",
    "PairwiseAligner",
    "ScoreMatrix",
    "get_scores",
    "pairwise",
]
