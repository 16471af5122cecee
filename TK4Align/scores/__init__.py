"""
Scoring Module
Substitution matrices and gap costs consumed by the aligners
"""

from .matrices import (
    DEFAULT_GAP_EXTEND,
    DEFAULT_GAP_OPEN,
    ScoreMatrix,
    ScoringModel,
    available_scores,
    get_scores,
)

__all__ = [
    "DEFAULT_GAP_EXTEND",
    "DEFAULT_GAP_OPEN",
    "ScoreMatrix",
    "ScoringModel",
    "available_scores",
    "get_scores",
]
