"""
Affine gap alignment with the three-state automaton {M, Ix, Iy}

A gap of length k costs gap_open + gap_extend * (k - 1). The start and end
state of the alignment can be forced, which is what the linear-space affine
aligner needs to stitch its halves together.
"""

from __future__ import annotations

from typing import Dict, Iterator, Optional, Sequence, Tuple

import numpy as np

from TK4Align.scores import ScoringModel
from .base import (
    AlgorithmKind,
    AlignmentEngine,
    AlignmentResult,
    NEG_INF,
    RawAlignment,
    State,
    TracebackCell,
    encode,
    substitution_table,
    tie_floor,
)
from .config import GAP, AlignConfig
from .progress import AlignmentError, ProgressTracker

NO_STATE = -1

M, IX, IY = State.M, State.IX, State.IY


def pick_state(candidates: Sequence[Tuple[float, State]]) -> Tuple[float, Optional[State]]:
    """
    Best of (value, predecessor) pairs given in preference order.

    The first candidate tied with the maximum (see tie_floor) wins. The
    state is None when nothing ties (a NaN slipped into the recurrence).
    """
    val = max(c[0] for c in candidates)
    floor = tie_floor(val)
    for cand, state in candidates:
        if cand >= floor:
            return val, state
    return val, None


def final_state(values: Sequence[float], end_state: Optional[State]) -> State:
    """State the traceback starts in: forced, or the first of M, Ix, Iy tied with the max"""
    if end_state is not None:
        return State(end_state)
    floor = tie_floor(max(values))
    for state in (M, IX, IY):
        if values[state] >= floor:
            return state
    return M


def gap_costs(scoring: ScoringModel, gap_open: Optional[float],
              gap_extend: Optional[float]) -> Tuple[float, float]:
    d = float(scoring.gap_open if gap_open is None else gap_open)
    e = float(scoring.gap_extend if gap_extend is None else gap_extend)
    if d < 0 or e < 0:
        raise ValueError(f"Gap costs must be non-negative, got open={d}, extend={e}")
    return d, e


def gap_row(start: State, m: int, d: float, e: float):
    """Row 0 of the three matrices: only Iy is reachable right of the origin"""
    row = [[NEG_INF] * (m + 1) for _ in State]
    row[start][0] = 0.0
    ptr = [NO_STATE] * (m + 1)
    for j in range(1, m + 1):
        val, st = pick_state(((row[IY][j - 1] - e, IY),
                              (row[M][j - 1] - d, M),
                              (row[IX][j - 1] - d, IX)))
        row[IY][j] = val
        ptr[j] = st
    return row, ptr


def check_cell(state: Optional[State], kind: State, i: int, j: int, val: float) -> State:
    if state is None:
        raise AlignmentError(
            f"Error in affine alignment: state {kind.name} at cell ({i}, {j}) "
            f"has value {val} that matches no predecessor"
        )
    return state


class AffineGapAligner(AlignmentEngine):
    """
    Global alignment with affine gap costs (Gotoh).

    M [i][j] = max(M, Ix, Iy)[i-1][j-1] + s(i, j)
    Ix[i][j] = max(Ix[i-1][j] - e, M[i-1][j] - d, Iy[i-1][j] - d)
    Iy[i][j] = max(Iy[i][j-1] - e, M[i][j-1] - d, Ix[i][j-1] - d)

    Candidates are listed in tie-break order. Ix consumes seq1 against a
    gap, Iy consumes seq2 against a gap.

    Parameters:
    -----------
    scoring : ScoringModel
        Substitution scores and default gap costs
    gap_open : float, optional
        Cost d of the first position of a gap
    gap_extend : float, optional
        Cost e of each further position
    """

    kind = AlgorithmKind.AFFINE

    def __init__(self, scoring: ScoringModel, gap_open: Optional[float] = None,
                 gap_extend: Optional[float] = None):
        super().__init__(scoring)
        self.gap_open, self.gap_extend = gap_costs(scoring, gap_open, gap_extend)
        self._V: Optional[np.ndarray] = None
        self._P: Optional[np.ndarray] = None
        self._end = (0, 0, M)

    def align(self, seq1: str, seq2: str, config: Optional[AlignConfig] = None,
              start_state: Optional[State] = None,
              end_state: Optional[State] = None) -> AlignmentResult:
        """
        Align two sequences, optionally forcing the boundary states.

        ``start_state`` puts the origin in that state, so a leading gap of
        the same kind pays gap_extend only. ``end_state`` makes the
        alignment finish in that state.
        """
        return self._run(seq1, seq2, config, start_state=start_state, end_state=end_state)

    def _align(self, seq1: str, seq2: str, tracker: ProgressTracker,
               config: AlignConfig, start_state: Optional[State] = None,
               end_state: Optional[State] = None) -> RawAlignment:
        score, aligned1, aligned2 = self.solve(seq1, seq2, start_state, end_state, tracker)
        return RawAlignment(score, aligned1, aligned2, 0, len(seq1), 0, len(seq2))

    def solve(self, seq1: str, seq2: str, start_state: Optional[State] = None,
              end_state: Optional[State] = None,
              tracker: Optional[ProgressTracker] = None) -> Tuple[float, str, str]:
        """Fill the three matrices and trace back; returns (score, aligned1, aligned2)"""
        tracker = tracker or ProgressTracker(None, 1)
        n, m = len(seq1), len(seq2)
        d, e = self.gap_open, self.gap_extend
        start = M if start_state is None else State(start_state)
        table = substitution_table(self.scoring).astype(np.float64)
        a, b = encode(seq1, self.scoring), encode(seq2, self.scoring)

        V = self.arena.take("V", (3, n + 1, m + 1), np.float64, fill=NEG_INF)
        P = self.arena.take("P", (3, n + 1, m + 1), np.int8, fill=NO_STATE)

        prev, ptr0 = gap_row(start, m, d, e)
        V[:, 0] = prev
        P[IY, 0, 1:] = ptr0[1:]

        for i in range(1, n + 1):
            srow = table[a[i - 1]][b].tolist()
            cur = [[NEG_INF] * (m + 1) for _ in State]
            ptr = P[:, i]
            pM, pX, pY = prev
            cM, cX, cY = cur

            val, st = pick_state(((pX[0] - e, IX), (pM[0] - d, M), (pY[0] - d, IY)))
            cX[0] = val
            ptr[IX, 0] = check_cell(st, IX, i, 0, val)

            for j in range(1, m + 1):
                s = srow[j - 1]
                val, st = pick_state(((pM[j - 1] + s, M), (pX[j - 1] + s, IX), (pY[j - 1] + s, IY)))
                cM[j] = val
                ptr[M, j] = check_cell(st, M, i, j, val)

                val, st = pick_state(((pX[j] - e, IX), (pM[j] - d, M), (pY[j] - d, IY)))
                cX[j] = val
                ptr[IX, j] = check_cell(st, IX, i, j, val)

                val, st = pick_state(((cY[j - 1] - e, IY), (cM[j - 1] - d, M), (cX[j - 1] - d, IX)))
                cY[j] = val
                ptr[IY, j] = check_cell(st, IY, i, j, val)

            V[:, i] = cur
            prev = cur
            tracker.add(m)

        state = final_state(V[:, n, m].tolist(), end_state)
        score = V[state, n, m].item()
        if not score > NEG_INF:
            raise AlignmentError(
                f"No alignment of {n}x{m} residues ends in state {state.name} "
                f"(value {score})"
            )

        self._V, self._P, self._end = V, P, (n, m, state)
        aligned1, aligned2 = self._trace(seq1, seq2, n, m, state)
        return score, aligned1, aligned2

    def _trace(self, seq1: str, seq2: str, i: int, j: int, state: State) -> Tuple[str, str]:
        out1, out2 = [], []
        for cell in self._walk(i, j, state):
            if cell.state == M:
                out1.append(seq1[cell.i - 1])
                out2.append(seq2[cell.j - 1])
            elif cell.state == IX:
                out1.append(seq1[cell.i - 1])
                out2.append(GAP)
            elif cell.state == IY:
                out1.append(GAP)
                out2.append(seq2[cell.j - 1])
        return "".join(reversed(out1)), "".join(reversed(out2))

    def _walk(self, i: int, j: int, state: State) -> Iterator[TracebackCell]:
        P = self._P
        while i > 0 or j > 0:
            yield TracebackCell(i, j, state)
            prev = int(P[state, i, j])
            if prev == NO_STATE:
                raise AlignmentError(
                    f"Traceback reached state {state.name} at cell ({i}, {j}) "
                    f"without predecessor"
                )
            if state == M:
                i, j = i - 1, j - 1
            elif state == IX:
                i -= 1
            else:
                j -= 1
            state = State(prev)
        yield TracebackCell(0, 0, None)

    def get_matrix(self) -> Dict[str, np.ndarray]:
        if self._V is None:
            raise RuntimeError("No alignment has been computed yet")
        return {
            "M": self._V[M].copy(),
            "Ix": self._V[IX].copy(),
            "Iy": self._V[IY].copy(),
        }

    def traceback(self) -> Iterator[TracebackCell]:
        self._last()
        yield from self._walk(*self._end)
