"""
Linear-space (Hirschberg) global alignment
- LinearSpaceGlobalAligner: linear gap cost, midpoint column only
- LinearSpaceAffineAligner: affine gap cost, midpoint column and state

Each sweep keeps two rolling rows plus, below the middle row u = n // 2,
the place where the optimal path to every cell crossed row u. The problem
is then split at that crossing and both halves are solved recursively.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Tuple

import numpy as np

from TK4Align.scores import ScoringModel
from .affine import (
    AffineGapAligner,
    IX,
    IY,
    M,
    check_cell,
    final_state,
    gap_costs,
    gap_row,
    pick_state,
)
from .base import (
    AlgorithmKind,
    AlignmentEngine,
    AlignmentResult,
    NEG_INF,
    RawAlignment,
    State,
    dp_dtype,
    encode,
    format_score,
    substitution_table,
    tie_floor,
)
from .config import RECURSION_THRESHOLD, AlignConfig
from .progress import AlignmentError, ProgressTracker
from .quadratic import QuadraticGlobalAligner, linear_gap

LOGGER = logging.getLogger(__name__)


def _check_verify(name: str, score: float, aligned: Tuple[str, str],
                  ref_score: float, ref_aligned: Tuple[str, str],
                  tolerance: float) -> None:
    if abs(score - ref_score) > tolerance:
        raise AlignmentError(
            f"{name}: linear-space score {format_score(score)} differs from "
            f"quadratic score {format_score(ref_score)}"
        )
    if aligned != ref_aligned:
        LOGGER.warning("%s: linear-space alignment differs from the quadratic one "
                       "with equal score", name)


# -------------------------
# Linear gap cost
# -------------------------
class LinearSpaceGlobalAligner(AlignmentEngine):
    """
    Needleman-Wunsch in O(m) memory.

    Uses the same recurrence and tie-break as QuadraticGlobalAligner, so
    score and aligned strings are identical to it. Subproblems where either
    sequence has at most one residue are solved quadratically.
    """

    kind = AlgorithmKind.LINEAR_SPACE

    def __init__(self, scoring: ScoringModel, gap: Optional[float] = None):
        super().__init__(scoring)
        self.gap = linear_gap(scoring, gap)
        self._base = QuadraticGlobalAligner(scoring, gap=self.gap)
        self._last_row: Optional[np.ndarray] = None

    def _expected_work(self, n: int, m: int) -> float:
        return 2 * n * m

    def _align(self, seq1: str, seq2: str, tracker: ProgressTracker,
               config: AlignConfig) -> RawAlignment:
        n, m = len(seq1), len(seq2)
        self._last_row = None
        score, aligned1, aligned2 = self._solve(seq1, seq2, tracker, depth=0)

        if config.verify:
            ref = self._base.solve(seq1, seq2)
            _check_verify(type(self).__name__, score, (aligned1, aligned2),
                          ref.score, (ref.aligned1, ref.aligned2), config.verify_tolerance)
        return RawAlignment(score, aligned1, aligned2, 0, n, 0, m)

    def _solve(self, s1: str, s2: str, tracker: ProgressTracker,
               depth: int) -> Tuple[float, str, str]:
        if len(s1) <= 1 or len(s2) <= 1:
            raw = self._base.solve(s1, s2, tracker)
            return raw.score, raw.aligned1, raw.aligned2

        u = len(s1) // 2
        score, v, last_row = self._midpoint(s1, s2, u, tracker)
        if depth == 0:
            self._last_row = last_row
        _, left1, left2 = self._solve(s1[:u], s2[:v], tracker, depth + 1)
        _, right1, right2 = self._solve(s1[u:], s2[v:], tracker, depth + 1)
        return score, left1 + right1, left2 + right2

    def _midpoint(self, s1: str, s2: str, u: int,
                  tracker: ProgressTracker) -> Tuple[float, int, np.ndarray]:
        """
        Forward sweep returning (F[n][m], v, last row) where (u, v) is the
        cell at which the optimal path crosses row u.
        """
        n, m = len(s1), len(s2)
        dtype = dp_dtype(self.scoring, self.gap)
        d = dtype.type(self.gap).item()
        table = substitution_table(self.scoring).astype(dtype)
        a, b = encode(s1, self.scoring), encode(s2, self.scoring)

        prev = [-d * j for j in range(m + 1)]
        prev_c: Optional[List[int]] = None
        for i in range(1, n + 1):
            srow = table[a[i - 1]][b].tolist()
            cur = [prev[0] - d] + [0] * m
            below = i > u
            cur_c = [prev_c[0]] + [0] * m if below else None
            for j in range(1, m + 1):
                diag = prev[j - 1] + srow[j - 1]
                up = prev[j] - d
                left = cur[j - 1] - d
                val = max(diag, up, left)
                cur[j] = val
                floor = tie_floor(val)
                if diag >= floor:
                    if below:
                        cur_c[j] = prev_c[j - 1]
                elif up >= floor:
                    if below:
                        cur_c[j] = prev_c[j]
                elif left >= floor:
                    if below:
                        cur_c[j] = cur_c[j - 1]
                else:
                    raise AlignmentError(
                        f"Error in linear-space alignment at cell ({i}, {j}): "
                        f"{val} matches no candidate"
                    )
            if i == u:
                cur_c = list(range(m + 1))
            prev, prev_c = cur, cur_c
            tracker.add(m)

        return prev[m], prev_c[m], np.array(prev, dtype=dtype)

    def get_matrix(self) -> Dict[str, np.ndarray]:
        """Last DP row of the top-level sweep (the full matrix is never stored)"""
        self._last()
        if self._last_row is None:
            return self._base.get_matrix()
        return {"F": self._last_row.copy()}


# -------------------------
# Affine gap cost
# -------------------------
class LinearSpaceAffineAligner(AlignmentEngine):
    """
    Affine-gap global alignment in O(m) memory.

    Besides the crossing column, the sweep records the automaton state at
    the crossing so the halves can be solved with forced boundary states:
    the left half must end in that state and the right half starts in it.
    Small subproblems (either length below ``threshold``) go to
    AffineGapAligner.

    Parameters:
    -----------
    scoring : ScoringModel
        Substitution scores and default gap costs
    gap_open, gap_extend : float, optional
        Overrides for the gap costs
    threshold : int
        Base-case length; at least 2 so that every split makes progress
    """

    kind = AlgorithmKind.LINEAR_SPACE_AFFINE

    def __init__(self, scoring: ScoringModel, gap_open: Optional[float] = None,
                 gap_extend: Optional[float] = None,
                 threshold: int = RECURSION_THRESHOLD):
        super().__init__(scoring)
        if threshold < 2:
            raise ValueError(f"Recursion threshold must be at least 2, got {threshold}")
        self.gap_open, self.gap_extend = gap_costs(scoring, gap_open, gap_extend)
        self.threshold = threshold
        self._base = AffineGapAligner(scoring, self.gap_open, self.gap_extend)
        self._last_rows: Optional[np.ndarray] = None

    def _expected_work(self, n: int, m: int) -> float:
        return 2 * n * m

    def align(self, seq1: str, seq2: str, config: Optional[AlignConfig] = None,
              start_state: Optional[State] = None,
              end_state: Optional[State] = None) -> AlignmentResult:
        """Same contract as AffineGapAligner.align"""
        return self._run(seq1, seq2, config, start_state=start_state, end_state=end_state)

    def _align(self, seq1: str, seq2: str, tracker: ProgressTracker,
               config: AlignConfig, start_state: Optional[State] = None,
               end_state: Optional[State] = None) -> RawAlignment:
        self._last_rows = None
        score, aligned1, aligned2 = self._solve(seq1, seq2, start_state, end_state,
                                                tracker, depth=0)
        if config.verify:
            ref_score, ref1, ref2 = self._base.solve(seq1, seq2, start_state, end_state)
            _check_verify(type(self).__name__, score, (aligned1, aligned2),
                          ref_score, (ref1, ref2), config.verify_tolerance)
        return RawAlignment(score, aligned1, aligned2, 0, len(seq1), 0, len(seq2))

    def _solve(self, s1: str, s2: str, start: Optional[State], end: Optional[State],
               tracker: ProgressTracker, depth: int) -> Tuple[float, str, str]:
        n, m = len(s1), len(s2)
        if n < self.threshold or m < self.threshold:
            return self._base.solve(s1, s2, start, end, tracker)

        u = n // 2
        score, v, state_u, rows = self._midpoint(s1, s2, u, start, end, tracker)
        if depth == 0:
            self._last_rows = rows
        LOGGER.debug("Split %dx%d at (%d, %d) in state %s", n, m, u, v, state_u.name)
        _, left1, left2 = self._solve(s1[:u], s2[:v], start, state_u, tracker, depth + 1)
        _, right1, right2 = self._solve(s1[u:], s2[v:], state_u, end, tracker, depth + 1)
        return score, left1 + right1, left2 + right2

    def _midpoint(self, s1: str, s2: str, u: int, start: Optional[State],
                  end: Optional[State], tracker: ProgressTracker):
        """
        Forward sweep of the three states.

        Returns (score, v, state_u, last rows): the optimal path ending in
        the final state at (n, m) crosses row u at column v in state_u.
        """
        n, m = len(s1), len(s2)
        d, e = self.gap_open, self.gap_extend
        start = M if start is None else State(start)
        table = substitution_table(self.scoring).astype(np.float64)
        a, b = encode(s1, self.scoring), encode(s2, self.scoring)

        prev, _ = gap_row(start, m, d, e)
        rec_prev = None
        for i in range(1, n + 1):
            srow = table[a[i - 1]][b].tolist()
            cur = [[NEG_INF] * (m + 1) for _ in State]
            pM, pX, pY = prev
            cM, cX, cY = cur
            below = i > u
            rec = [[None] * (m + 1) for _ in State] if below else None

            val, st = pick_state(((pX[0] - e, IX), (pM[0] - d, M), (pY[0] - d, IY)))
            cX[0] = val
            st = check_cell(st, IX, i, 0, val)
            if below:
                rec[IX][0] = rec_prev[st][0]

            for j in range(1, m + 1):
                s = srow[j - 1]
                val, st = pick_state(((pM[j - 1] + s, M), (pX[j - 1] + s, IX), (pY[j - 1] + s, IY)))
                cM[j] = val
                st = check_cell(st, M, i, j, val)
                if below:
                    rec[M][j] = rec_prev[st][j - 1]

                val, st = pick_state(((pX[j] - e, IX), (pM[j] - d, M), (pY[j] - d, IY)))
                cX[j] = val
                st = check_cell(st, IX, i, j, val)
                if below:
                    rec[IX][j] = rec_prev[st][j]

                val, st = pick_state(((cY[j - 1] - e, IY), (cM[j - 1] - d, M), (cX[j - 1] - d, IX)))
                cY[j] = val
                st = check_cell(st, IY, i, j, val)
                if below:
                    rec[IY][j] = rec[st][j - 1]

            if i == u:
                rec = [[(j, state) for j in range(m + 1)] for state in State]
            prev, rec_prev = cur, rec
            tracker.add(m)

        state = final_state([row[m] for row in prev], end)
        score = prev[state][m]
        if not score > NEG_INF:
            raise AlignmentError(
                f"No alignment of {n}x{m} residues ends in state {state.name} "
                f"(value {score})"
            )
        v, state_u = rec_prev[state][m]
        return score, v, state_u, np.array(prev, dtype=np.float64)

    def get_matrix(self) -> Dict[str, np.ndarray]:
        """Last DP rows of the top-level sweep, one per state"""
        self._last()
        if self._last_rows is None:
            return self._base.get_matrix()
        return {
            "M": self._last_rows[M].copy(),
            "Ix": self._last_rows[IX].copy(),
            "Iy": self._last_rows[IY].copy(),
        }
