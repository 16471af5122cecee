"""
Repeat alignment: find multiple non-overlapping matches of seq2 in seq1

Column 0 of the DP matrix is the "unmatched" state. A match may end at any
column and jump back to column 0 for a cost T, and any row may restart
matching from column 0 for free.
"""

from __future__ import annotations

from typing import Dict, Iterator, List, Optional, Tuple

import numpy as np

from TK4Align.scores import ScoringModel
from .base import (
    AlgorithmKind,
    AlignmentEngine,
    RawAlignment,
    State,
    TracebackCell,
    dp_dtype,
    encode,
    substitution_table,
)
from .config import DEFAULT_JUMP_COST, GAP, REPEAT_BREAK, AlignConfig
from .progress import AlignmentError, ProgressTracker
from .quadratic import linear_gap

# moves into a cell with j > 0
JUMP, DIAG, UP, LEFT = 0, 1, 2, 3

_STATE_OF_MOVE = {JUMP: None, DIAG: State.M, UP: State.IX, LEFT: State.IY}


def best_column(row: List[float], jump_cost: float) -> int:
    """Column a match ending in this row jumps back from, 0 for none"""
    best_j = 0
    val = row[0] + jump_cost
    for j in range(1, len(row)):
        if row[j] > val:
            val = row[j]
            best_j = j
    return best_j


class RepeatAligner(AlignmentEngine):
    """
    Repeated-match alignment (Durbin et al., section 2.3).

    F[i][0] = max(F[i-1][0], F[i-1][j] - T)
    F[i][j] = max(F[i][0], F[i-1][j-1] + s(i, j), F[i-1][j] - d, F[i][j-1] - d)

    Every residue of seq1 appears once in the output. The seq2 row shows the
    residue it is matched to, '-' for a gap and '.' where seq1 lies between
    matches. Residues of seq2 skipped by horizontal moves are not shown.
    The alignment ends at (n, best column of row n) and scores F there; a
    match still open at the end pays no jump cost.

    Parameters:
    -----------
    scoring : ScoringModel
        Substitution scores; ``gap_open`` is the per-position gap cost
    jump_cost : float
        Cost T paid when a match ends
    gap : float, optional
        Override for the gap cost d
    """

    kind = AlgorithmKind.REPEAT

    def __init__(self, scoring: ScoringModel, jump_cost: float = DEFAULT_JUMP_COST,
                 gap: Optional[float] = None):
        super().__init__(scoring)
        if jump_cost < 0:
            raise ValueError(f"Jump cost must be non-negative, got {jump_cost}")
        self.jump_cost = jump_cost
        self.gap = linear_gap(scoring, gap)
        self._F: Optional[np.ndarray] = None
        self._B: Optional[np.ndarray] = None
        self._J: Optional[np.ndarray] = None
        self._end = (0, 0)

    def _align(self, seq1: str, seq2: str, tracker: ProgressTracker,
               config: AlignConfig) -> RawAlignment:
        n, m = len(seq1), len(seq2)
        dtype = dp_dtype(self.scoring, self.gap, self.jump_cost)
        d = dtype.type(self.gap).item()
        T = dtype.type(self.jump_cost).item()
        table = substitution_table(self.scoring).astype(dtype)
        a, b = encode(seq1, self.scoring), encode(seq2, self.scoring)

        F = self.arena.take("F", (n + 1, m + 1), dtype, fill=0)
        B = self.arena.take("B", (n + 1, m + 1), np.int8, fill=JUMP)
        # J[i]: column of row i-1 that (i, 0) comes from
        J = self.arena.take("J", (n + 1,), np.intp, fill=0)

        prev = F[0].tolist()
        for i in range(1, n + 1):
            best_j = best_column(prev, T)
            J[i] = best_j
            start = prev[0] if best_j == 0 else prev[best_j] - T
            srow = table[a[i - 1]][b].tolist()
            cur = [start] + [0] * m
            brow = B[i]
            for j in range(1, m + 1):
                diag = prev[j - 1] + srow[j - 1]
                up = prev[j] - d
                left = cur[j - 1] - d
                val = max(diag, start, up, left)
                cur[j] = val
                if val == start:
                    brow[j] = JUMP
                elif val == diag:
                    brow[j] = DIAG
                elif val == up:
                    brow[j] = UP
                elif val == left:
                    brow[j] = LEFT
                else:
                    raise AlignmentError(
                        f"Error in repeat alignment at cell ({i}, {j}): "
                        f"{val} matches no candidate"
                    )
            F[i] = cur
            prev = cur
            tracker.add(m)

        end_j = best_column(prev, T)
        score = prev[end_j]
        self._F, self._B, self._J, self._end = F, B, J, (n, end_j)

        aligned1, aligned2 = self._render(seq1, seq2)
        return RawAlignment(score, aligned1, aligned2, 0, n, 0, m)

    def _predecessor(self, i: int, j: int) -> Tuple[int, int, int]:
        """(i, j, move) of the cell the path came from"""
        if j == 0:
            return i - 1, int(self._J[i]), JUMP
        move = int(self._B[i, j])
        if move == JUMP:
            return i, 0, move
        if move == DIAG:
            return i - 1, j - 1, move
        if move == UP:
            return i - 1, j, move
        return i, j - 1, move

    def _render(self, seq1: str, seq2: str) -> Tuple[str, str]:
        out1, out2 = [], []
        i, j = self._end
        while i > 0:
            pi, pj, _ = self._predecessor(i, j)
            if pi != i:
                out1.append(seq1[i - 1])
                if j == 0:
                    out2.append(REPEAT_BREAK)
                elif pj == j:
                    out2.append(GAP)
                else:
                    out2.append(seq2[j - 1])
            i, j = pi, pj
        return "".join(reversed(out1)), "".join(reversed(out2))

    def get_matrix(self) -> Dict[str, np.ndarray]:
        if self._F is None:
            raise RuntimeError("No alignment has been computed yet")
        return {"F": self._F.copy(), "B": self._B.copy(), "J": self._J.copy()}

    def traceback(self) -> Iterator[TracebackCell]:
        """
        Cells of the optimal path from (n, end column) up to row 0.

        Jumps to and from column 0 carry no automaton state.
        """
        self._last()
        i, j = self._end
        while i > 0:
            pi, pj, move = self._predecessor(i, j)
            yield TracebackCell(i, j, _STATE_OF_MOVE[move])
            i, j = pi, pj
        yield TracebackCell(i, j, None)
