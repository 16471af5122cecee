"""
Quadratic-space alignment with a linear gap cost
- QuadraticGlobalAligner: Needleman-Wunsch
- QuadraticLocalAligner: Smith-Waterman

Both keep the full score matrix F and a back-pointer matrix B whose entry is
the step that entered the cell (State.M diagonal, State.IX up, State.IY
left) or NO_MOVE where the path starts.
"""

from __future__ import annotations

from typing import Dict, Iterator, Optional, Tuple

import numpy as np

from TK4Align.scores import ScoringModel
from .base import (
    AlgorithmKind,
    AlignmentEngine,
    NEG_INF,
    RawAlignment,
    State,
    TracebackCell,
    dp_dtype,
    encode,
    substitution_table,
    tie_floor,
)
from .config import GAP, AlignConfig
from .progress import AlignmentError, ProgressTracker

NO_MOVE = -1


def trace_moves(B: np.ndarray, seq1: str, seq2: str,
                i: int, j: int) -> Tuple[str, str, int, int]:
    """
    Follow back-pointers from (i, j) until a cell without predecessor.

    Returns (aligned1, aligned2, start_i, start_j).
    """
    out1, out2 = [], []
    move = B[i, j]
    while move != NO_MOVE:
        if move == State.M:
            out1.append(seq1[i - 1])
            out2.append(seq2[j - 1])
            i -= 1
            j -= 1
        elif move == State.IX:
            out1.append(seq1[i - 1])
            out2.append(GAP)
            i -= 1
        else:
            out1.append(GAP)
            out2.append(seq2[j - 1])
            j -= 1
        move = B[i, j]
    return "".join(reversed(out1)), "".join(reversed(out2)), i, j


def walk_moves(B: np.ndarray, i: int, j: int) -> Iterator[TracebackCell]:
    """Yield the cells visited by trace_moves, end cell first"""
    while True:
        move = int(B[i, j])
        if move == NO_MOVE:
            yield TracebackCell(i, j, None)
            return
        yield TracebackCell(i, j, State(move))
        if move == State.M:
            i, j = i - 1, j - 1
        elif move == State.IX:
            i -= 1
        else:
            j -= 1


def linear_gap(scoring: ScoringModel, gap: Optional[float]) -> float:
    d = scoring.gap_open if gap is None else gap
    if d < 0:
        raise ValueError(f"Gap cost must be non-negative, got {d}")
    return d


class QuadraticGlobalAligner(AlignmentEngine):
    """
    Needleman-Wunsch global alignment, linear gap cost d.

    F[i][j] = max(F[i-1][j-1] + s(i, j), F[i-1][j] - d, F[i][j-1] - d)
    Ties (see tie_floor) prefer the diagonal, then up (gap in seq2), then
    left (gap in seq1).

    Parameters:
    -----------
    scoring : ScoringModel
        Substitution scores; ``gap_open`` is the per-position gap cost
    gap : float, optional
        Override for the gap cost d
    """

    kind = AlgorithmKind.GLOBAL

    def __init__(self, scoring: ScoringModel, gap: Optional[float] = None):
        super().__init__(scoring)
        self.gap = linear_gap(scoring, gap)
        self._F: Optional[np.ndarray] = None
        self._B: Optional[np.ndarray] = None
        self._end = (0, 0)

    def _align(self, seq1: str, seq2: str, tracker: ProgressTracker,
               config: AlignConfig) -> RawAlignment:
        return self.solve(seq1, seq2, tracker)

    def solve(self, seq1: str, seq2: str,
              tracker: Optional[ProgressTracker] = None) -> RawAlignment:
        """Align already-cleaned sequences; no statistics, no result kept"""
        tracker = tracker or ProgressTracker(None, 1)
        n, m = len(seq1), len(seq2)
        dtype = dp_dtype(self.scoring, self.gap)
        d = dtype.type(self.gap).item()
        table = substitution_table(self.scoring).astype(dtype)
        a, b = encode(seq1, self.scoring), encode(seq2, self.scoring)

        F = self.arena.take("F", (n + 1, m + 1), dtype)
        B = self.arena.take("B", (n + 1, m + 1), np.int8, fill=NO_MOVE)
        F[0, 0] = 0
        F[1:, 0] = [-d * i for i in range(1, n + 1)]
        F[0, 1:] = [-d * j for j in range(1, m + 1)]
        B[1:, 0] = State.IX
        B[0, 1:] = State.IY

        prev = F[0].tolist()
        for i in range(1, n + 1):
            srow = table[a[i - 1]][b].tolist()
            cur = [F[i, 0].item()] + [0] * m
            brow = B[i]
            for j in range(1, m + 1):
                diag = prev[j - 1] + srow[j - 1]
                up = prev[j] - d
                left = cur[j - 1] - d
                val = max(diag, up, left)
                cur[j] = val
                floor = tie_floor(val)
                if diag >= floor:
                    brow[j] = State.M
                elif up >= floor:
                    brow[j] = State.IX
                elif left >= floor:
                    brow[j] = State.IY
                else:
                    raise AlignmentError(
                        f"Error in Needleman-Wunsch alignment at cell ({i}, {j}): "
                        f"{val} matches no candidate"
                    )
            F[i] = cur
            prev = cur
            tracker.add(m)

        self._F, self._B, self._end = F, B, (n, m)
        aligned1, aligned2, _, _ = trace_moves(B, seq1, seq2, n, m)
        return RawAlignment(F[n, m].item(), aligned1, aligned2, 0, n, 0, m)

    def get_matrix(self) -> Dict[str, np.ndarray]:
        if self._F is None:
            raise RuntimeError("No alignment has been computed yet")
        return {"F": self._F.copy(), "B": self._B.copy()}

    def traceback(self) -> Iterator[TracebackCell]:
        self._last()
        yield from walk_moves(self._B, *self._end)


class QuadraticLocalAligner(AlignmentEngine):
    """
    Smith-Waterman local alignment, linear gap cost d.

    Every cell also competes with 0; a cell equal to 0 starts a new local
    alignment and has no back-pointer. The alignment ends in the first cell
    (row-major) holding the matrix maximum.
    """

    kind = AlgorithmKind.LOCAL

    def __init__(self, scoring: ScoringModel, gap: Optional[float] = None):
        super().__init__(scoring)
        self.gap = linear_gap(scoring, gap)
        self._F: Optional[np.ndarray] = None
        self._B: Optional[np.ndarray] = None
        self._end = (0, 0)

    def _align(self, seq1: str, seq2: str, tracker: ProgressTracker,
               config: AlignConfig) -> RawAlignment:
        n, m = len(seq1), len(seq2)
        dtype = dp_dtype(self.scoring, self.gap)
        d = dtype.type(self.gap).item()
        table = substitution_table(self.scoring).astype(dtype)
        a, b = encode(seq1, self.scoring), encode(seq2, self.scoring)

        F = self.arena.take("F", (n + 1, m + 1), dtype, fill=0)
        B = self.arena.take("B", (n + 1, m + 1), np.int8, fill=NO_MOVE)

        best = NEG_INF
        best_i, best_j = n, m
        prev = F[0].tolist()
        for i in range(1, n + 1):
            srow = table[a[i - 1]][b].tolist()
            cur = [0] * (m + 1)
            brow = B[i]
            for j in range(1, m + 1):
                diag = prev[j - 1] + srow[j - 1]
                up = prev[j] - d
                left = cur[j - 1] - d
                val = max(diag, up, left, 0)
                cur[j] = val
                if val == 0:
                    pass  # local start, stays NO_MOVE
                elif val == diag:
                    brow[j] = State.M
                elif val == up:
                    brow[j] = State.IX
                elif val == left:
                    brow[j] = State.IY
                else:
                    raise AlignmentError(
                        f"Error in Smith-Waterman alignment at cell ({i}, {j}): "
                        f"{val} matches no candidate"
                    )
                if val > best:
                    best = val
                    best_i, best_j = i, j
            F[i] = cur
            prev = cur
            tracker.add(m)

        self._F, self._B, self._end = F, B, (best_i, best_j)
        aligned1, aligned2, start_i, start_j = trace_moves(B, seq1, seq2, best_i, best_j)
        return RawAlignment(F[best_i, best_j].item(), aligned1, aligned2,
                            start_i, best_i, start_j, best_j)

    def get_matrix(self) -> Dict[str, np.ndarray]:
        if self._F is None:
            raise RuntimeError("No alignment has been computed yet")
        return {"F": self._F.copy(), "B": self._B.copy()}

    def traceback(self) -> Iterator[TracebackCell]:
        self._last()
        yield from walk_moves(self._B, *self._end)
