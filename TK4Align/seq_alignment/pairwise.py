"""
Pairwise Sequence Alignment Module
One entry point over all the alignment algorithms
"""

from typing import Dict, Optional, Union

from TK4Align.scores import DEFAULT_GAP_EXTEND, DEFAULT_GAP_OPEN, ScoringModel, get_scores
from .affine import AffineGapAligner
from .base import AlgorithmKind, AlignmentEngine, AlignmentResult
from .config import DEFAULT_JUMP_COST, RECURSION_THRESHOLD, AlignConfig, ProgressCallback
from .linear_space import LinearSpaceAffineAligner, LinearSpaceGlobalAligner
from .quadratic import QuadraticGlobalAligner, QuadraticLocalAligner
from .repeat import RepeatAligner


def algorithm_kind(mode: Union[AlgorithmKind, str]) -> AlgorithmKind:
    try:
        return AlgorithmKind(mode)
    except ValueError:
        choices = ", ".join(k.value for k in AlgorithmKind)
        raise ValueError(f"Unknown alignment mode {mode!r}; choose one of {choices}") from None


def make_aligner(
    kind: Union[AlgorithmKind, str],
    scoring: ScoringModel,
    jump_cost: float = DEFAULT_JUMP_COST,
    threshold: int = RECURSION_THRESHOLD,
) -> AlignmentEngine:
    """
    Build the aligner for an algorithm tag

    Parameters:
    -----------
    kind : AlgorithmKind or str
        "global", "local", "affine", "linear_space",
        "linear_space_affine" or "repeat"
    scoring : ScoringModel
        Substitution scores and gap costs
    jump_cost : float
        Restart cost for the repeat aligner
    threshold : int
        Base-case length for the linear-space affine aligner
    """
    kind = algorithm_kind(kind)
    if kind is AlgorithmKind.GLOBAL:
        return QuadraticGlobalAligner(scoring)
    if kind is AlgorithmKind.LOCAL:
        return QuadraticLocalAligner(scoring)
    if kind is AlgorithmKind.AFFINE:
        return AffineGapAligner(scoring)
    if kind is AlgorithmKind.LINEAR_SPACE:
        return LinearSpaceGlobalAligner(scoring)
    if kind is AlgorithmKind.LINEAR_SPACE_AFFINE:
        return LinearSpaceAffineAligner(scoring, threshold=threshold)
    return RepeatAligner(scoring, jump_cost=jump_cost)


class PairwiseAligner:
    """Pairwise sequence alignment with any of the supported algorithms"""

    def __init__(
        self,
        gap_opening: float = DEFAULT_GAP_OPEN,
        gap_extension: float = DEFAULT_GAP_EXTEND,
        substitution_matrix: str = "BLOSUM62",
        scoring: Optional[ScoringModel] = None,
        jump_cost: float = DEFAULT_JUMP_COST,
        threshold: int = RECURSION_THRESHOLD,
    ):
        """
        Initialize aligner

        Parameters:
        -----------
        gap_opening : float
            Gap opening penalty (default 10); the per-position cost for the
            linear-gap algorithms
        gap_extension : float
            Gap extension penalty (default 0.5)
        substitution_matrix : str
            Preset name understood by get_scores (default "BLOSUM62")
        scoring : ScoringModel, optional
            Ready-made scoring model; overrides the three options above
        jump_cost : float
            Restart cost for mode="repeat" (default 20)
        threshold : int
            Base-case length for mode="linear_space_affine" (default 6)
        """
        if scoring is None:
            scoring = get_scores(substitution_matrix, gap_open=gap_opening,
                                 gap_extend=gap_extension)
        self.scoring = scoring
        self.jump_cost = jump_cost
        self.threshold = threshold
        self._engines: Dict[AlgorithmKind, AlignmentEngine] = {}

    def engine(self, mode: Union[AlgorithmKind, str]) -> AlignmentEngine:
        """Aligner for ``mode``, created once and reused (its DP buffers too)"""
        kind = algorithm_kind(mode)
        if kind not in self._engines:
            self._engines[kind] = make_aligner(kind, self.scoring, self.jump_cost, self.threshold)
        return self._engines[kind]

    def align(
        self,
        seq1: str,
        seq2: str,
        mode: Union[AlgorithmKind, str] = "local",
        score_only: bool = False,
        verbose: bool = False,
        progress: Optional[ProgressCallback] = None,
        verify: bool = False,
    ) -> Union[AlignmentResult, float]:
        """
        Perform pairwise sequence alignment

        Parameters:
        -----------
        seq1 : str
            First sequence
        seq2 : str
            Second sequence
        mode : str
            Algorithm (default "local"), see make_aligner
        score_only : bool
            If True, return only the alignment score
        verbose : bool
            If True, report the alignment as it runs
        progress : callable, optional
            Called with the completed fraction; return True to cancel
        verify : bool
            Check linear-space results against the quadratic aligner

        Returns:
        --------
        AlignmentResult or float
            Alignment result object or score if score_only=True
        """
        config = AlignConfig(verbose=verbose, progress=progress, verify=verify)
        result = self.engine(mode).align(seq1, seq2, config)
        if score_only:
            return result.score
        return result


def pairwise(
    seq1: str,
    seq2: str,
    gap_opening: Optional[float] = None,
    gap_extension: Optional[float] = None,
    mode: Union[AlgorithmKind, str] = "local",
    substitution_matrix: str = "BLOSUM62",
    verbose: bool = False,
) -> AlignmentResult:
    """
    Pairwise sequence alignment in one call

    Parameters:
    -----------
    seq1 : str
        First sequence
    seq2 : str
        Second sequence
    gap_opening : float, optional
        Gap opening penalty (default 10)
    gap_extension : float, optional
        Gap extension penalty (default 0.5)
    mode : str
        "local" (default), "global", "affine", "linear_space",
        "linear_space_affine" or "repeat"
    substitution_matrix : str
        "BLOSUM62" (default), "PAM220", "Nucleotide", "Hamming" or
        "JukesCantor<distance>"
    verbose : bool
        Show progress (default False)

    Returns:
    --------
    AlignmentResult
        Alignment result with .view() method

    Examples:
    ---------
    >>> result = pairwise("HEAGAWGHEE", "PAWHEAE", mode="local")
    >>> result.view()
    >>> result = pairwise("HEAGAWGHEE", "PAWHEAE", mode="affine")
    >>> print(result.score)
    """
    if gap_opening is None:
        gap_opening = DEFAULT_GAP_OPEN
    if gap_extension is None:
        gap_extension = DEFAULT_GAP_EXTEND

    aligner = PairwiseAligner(
        gap_opening=gap_opening,
        gap_extension=gap_extension,
        substitution_matrix=substitution_matrix,
    )
    return aligner.align(seq1, seq2, mode=mode, verbose=verbose)
