"""
Shared alignment contract
- AlignmentEngine: the one interface every algorithm implements
- AlignmentResult: aligned pair, score and match statistics
- traceback cells / plotter protocol and the free helpers the engines share
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Dict, Iterator, List, NamedTuple, Optional, Protocol, Tuple

import numpy as np

from TK4Align.scores import ScoringModel
from .config import DEFAULT_CONFIG, GAP, REPEAT_BREAK, TIE_TOLERANCE, AlignConfig
from .progress import ProgressTracker

LOGGER = logging.getLogger(__name__)

NEG_INF = float("-inf")


class AlgorithmKind(str, Enum):
    """Tag naming each alignment algorithm"""

    GLOBAL = "global"
    LOCAL = "local"
    AFFINE = "affine"
    LINEAR_SPACE = "linear_space"
    LINEAR_SPACE_AFFINE = "linear_space_affine"
    REPEAT = "repeat"


class State(IntEnum):
    """
    States of the affine-gap automaton; also used to label the step that
    entered a traceback cell.

    M  : residue of seq1 aligned to residue of seq2 (diagonal step)
    IX : residue of seq1 against a gap (vertical step, consumes seq1 only)
    IY : residue of seq2 against a gap (horizontal step, consumes seq2 only)
    """

    M = 0
    IX = 1
    IY = 2


# -------------------------
# Results & traceback
# -------------------------
@dataclass(frozen=True)
class TracebackCell:
    """One cell on the optimal path; state is the step that entered it"""
    i: int
    j: int
    state: Optional[State] = None


class TracebackPlotter(Protocol):
    """Consumer driven by AlignmentEngine.plot_traceback"""

    def new_traceback(self, seq1: str, seq2: str) -> None: ...

    def traceback(self, cell: TracebackCell) -> None: ...

    def finished_traceback(self) -> None: ...


class RawAlignment(NamedTuple):
    """What an engine's DP produces before statistics are attached"""
    score: float
    aligned1: str
    aligned2: str
    start1: int
    end1: int
    start2: int
    end2: int


@dataclass
class AlignmentResult:
    """Store alignment results and metadata"""
    seq1_aligned: str
    seq2_aligned: str
    score: float
    start1: int
    end1: int
    start2: int
    end2: int
    algorithm: str
    match_string: str
    identity: float
    similarity: float
    gaps: int
    seq1_original: str
    seq2_original: str

    def __str__(self) -> str:
        return (
            f"Alignment Score: {format_score(self.score)}\n"
            f"Algorithm: {self.algorithm}\n"
            f"Identity: {self.identity:.2%}\n"
            f"Similarity: {self.similarity:.2%}\n"
            f"Gaps: {self.gaps}\n"
            f"Range: [{self.start1}-{self.end1}] x [{self.start2}-{self.end2}]\n"
        )

    def format(self, width: int = 60) -> str:
        """Blocks of seq1 / match line / seq2, ``width`` columns each"""
        lines = []
        for start in range(0, len(self.seq1_aligned), width):
            end = min(start + width, len(self.seq1_aligned))
            lines.append(f"seq1: {self.seq1_aligned[start:end]}")
            lines.append(f"      {self.match_string[start:end]}")
            lines.append(f"seq2: {self.seq2_aligned[start:end]}")
            lines.append("")
        return "\n".join(lines)

    def view(self, width: int = 60) -> None:
        """Print the summary and the alignment blocks"""
        print(self)
        print(self.format(width))

    def nmatch(self) -> int:
        """Number of identical aligned positions"""
        return sum(1 for a, b in zip(self.seq1_aligned, self.seq2_aligned)
                   if a == b and a not in (GAP, REPEAT_BREAK))

    def as_tuple(self) -> Tuple[float, str, str]:
        return self.score, self.seq1_aligned, self.seq2_aligned


# -------------------------
# Free helpers
# -------------------------
def clean_sequence(seq: str, scoring: ScoringModel) -> str:
    """
    Drop every symbol the scoring alphabet does not know (case-insensitive).

    Stripping is the package's policy for unknown symbols: whitespace,
    digits, gap characters and ambiguity codes outside the alphabet are
    removed silently rather than rejected.
    """
    valid = set(scoring.alphabet.upper()) | set(scoring.alphabet.lower())
    clean = "".join(ch for ch in seq if ch in valid)
    if len(clean) != len(seq):
        LOGGER.debug("Stripped %d symbol(s) outside the alphabet", len(seq) - len(clean))
    return clean


def match_string(aligned1: str, aligned2: str) -> str:
    """'|' identical, '.' substitution, ' ' gap"""
    out = []
    for a, b in zip(aligned1, aligned2):
        if a in (GAP, REPEAT_BREAK) or b in (GAP, REPEAT_BREAK):
            out.append(" ")
        elif a.upper() == b.upper():
            out.append("|")
        else:
            out.append(".")
    return "".join(out)


def alignment_statistics(aligned1: str, aligned2: str) -> Tuple[float, float, int]:
    """Return (identity, similarity, gaps) of an aligned pair"""
    gap_chars = (GAP, REPEAT_BREAK)
    matches = sum(1 for a, b in zip(aligned1, aligned2)
                  if a not in gap_chars and a.upper() == b.upper())
    paired = sum(1 for a, b in zip(aligned1, aligned2)
                 if a not in gap_chars and b not in gap_chars)
    gaps = sum(aligned1.count(c) + aligned2.count(c) for c in gap_chars)

    length = len(aligned1)
    identity = matches / length if length > 0 else 0.0
    similarity = paired / length if length > 0 else 0.0
    return identity, similarity, gaps


def format_score(val: float) -> str:
    if val == NEG_INF:
        return "-Inf"
    if float(val).is_integer():
        return str(int(val))
    return f"{val:g}"


def pad_left(s: str, width: int) -> str:
    return s.rjust(width)


def format_matrix(matrix: np.ndarray, width: int = 6) -> str:
    """Render a 2-D score matrix, one DP row per line"""
    return "\n".join(
        "".join(pad_left(format_score(v), width) for v in row) for row in matrix
    )


def path_from_alignment(aligned1: str, aligned2: str,
                        start1: int = 0, start2: int = 0) -> List[TracebackCell]:
    """
    Rebuild the DP path of a gap-only (no restarts) alignment.

    Returned in traceback order: optimal end cell first, origin last.
    """
    i, j = start1, start2
    cells = [TracebackCell(i, j, None)]
    for a, b in zip(aligned1, aligned2):
        if a != GAP and b != GAP:
            i += 1
            j += 1
            state = State.M
        elif b == GAP:
            i += 1
            state = State.IX
        else:
            j += 1
            state = State.IY
        cells.append(TracebackCell(i, j, state))
    cells.reverse()
    return cells


def dp_dtype(scoring: ScoringModel, *costs: float) -> np.dtype:
    """int64 when every score and cost is integral, float64 otherwise"""
    is_integral = getattr(scoring, "is_integral", None)
    if is_integral is not None and is_integral() and \
            all(float(c).is_integer() for c in costs):
        return np.dtype(np.int64)
    return np.dtype(np.float64)


def tie_floor(best: float) -> float:
    """
    Smallest candidate value still tied with ``best``.

    Sweeps started from different origins round differently, so candidates
    within TIE_TOLERANCE (relative) of the maximum are treated as equal and
    the first one in preference order wins. Integer scores below 1e9 stay
    exact; NaN gives NaN, which ties with nothing.
    """
    return best - TIE_TOLERANCE * max(1.0, abs(best))


def substitution_table(scoring: ScoringModel) -> np.ndarray:
    """Dense (K x K) table in alphabet order, for row-wise score lookup"""
    table = getattr(scoring, "matrix", None)
    if table is not None:
        return np.asarray(table)
    alphabet = scoring.alphabet
    return np.array([[scoring.score(a, b) for b in alphabet] for a in alphabet])


def encode(seq: str, scoring: ScoringModel) -> np.ndarray:
    encoder = getattr(scoring, "encode", None)
    if encoder is not None:
        return encoder(seq)
    index = {ch: k for k, ch in enumerate(scoring.alphabet.upper())}
    return np.array([index[ch.upper()] for ch in seq], dtype=np.intp)


class DPArena:
    """
    Reusable DP buffers owned by one aligner instance.

    ``take`` hands out a view of the requested shape; the backing array is
    reallocated only when the request outgrows it. An arena must not be
    shared by alignments running at the same time.
    """

    def __init__(self):
        self._buffers: Dict[str, np.ndarray] = {}

    def take(self, name: str, shape: Tuple[int, ...], dtype,
             fill: Optional[float] = None) -> np.ndarray:
        dtype = np.dtype(dtype)
        buf = self._buffers.get(name)
        if buf is None or buf.dtype != dtype or buf.ndim != len(shape):
            buf = np.empty(shape, dtype=dtype)
            self._buffers[name] = buf
        elif any(have < need for have, need in zip(buf.shape, shape)):
            grown = tuple(max(have, need) for have, need in zip(buf.shape, shape))
            buf = np.empty(grown, dtype=dtype)
            self._buffers[name] = buf
        view = buf[tuple(slice(0, s) for s in shape)]
        if fill is not None:
            view.fill(fill)
        return view

    def capacity(self, name: str) -> Optional[Tuple[int, ...]]:
        buf = self._buffers.get(name)
        return None if buf is None else buf.shape

    def clear(self) -> None:
        self._buffers.clear()


# -------------------------
# Engine contract
# -------------------------
class AlignmentEngine(ABC):
    """
    One pairwise alignment algorithm.

    ``align`` cleans both sequences against the scoring alphabet, runs the
    algorithm and returns an AlignmentResult. The last result stays
    available through ``get_score``, ``get_alignment``, ``get_matrix`` and
    ``traceback`` until the next call. One instance serves one alignment at
    a time.
    """

    kind: AlgorithmKind

    def __init__(self, scoring: ScoringModel):
        self.scoring = scoring
        self.arena = DPArena()
        self._seq1 = ""
        self._seq2 = ""
        self._result: Optional[AlignmentResult] = None

    # ---- the algorithm ----
    @abstractmethod
    def _align(self, seq1: str, seq2: str, tracker: ProgressTracker,
               config: AlignConfig, **options) -> RawAlignment:
        """Run the DP on clean sequences; ``options`` are engine specific"""

    def _expected_work(self, n: int, m: int) -> float:
        return n * m

    @abstractmethod
    def get_matrix(self) -> Dict[str, np.ndarray]:
        """Copies of the DP matrices of the last call (diagnostics)"""

    # ---- public API ----
    def align(self, seq1: str, seq2: str,
              config: Optional[AlignConfig] = None) -> AlignmentResult:
        """
        Align two sequences

        Parameters:
        -----------
        seq1 : str
            First sequence (rows of the DP matrix)
        seq2 : str
            Second sequence (columns of the DP matrix)
        config : AlignConfig, optional
            Verbosity, progress callback and verification switches

        Returns:
        --------
        AlignmentResult
        """
        return self._run(seq1, seq2, config)

    def _run(self, seq1: str, seq2: str, config: Optional[AlignConfig],
             **options) -> AlignmentResult:
        """Clean, align and summarise; ``options`` go to ``_align`` unchanged"""
        config = config or DEFAULT_CONFIG
        s1 = clean_sequence(seq1, self.scoring)
        s2 = clean_sequence(seq2, self.scoring)
        self._seq1, self._seq2 = s1, s2

        if config.verbose:
            print("\n" + "=" * 70)
            print(f"PAIRWISE ALIGNMENT ({self.kind.value})")
            print("=" * 70)
            print(f"Sequence 1: {len(s1)} residues")
            print(f"Sequence 2: {len(s2)} residues")
            print(f"Gap opening: {self.scoring.gap_open}, Gap extension: {self.scoring.gap_extend}")

        tracker = ProgressTracker(config.progress, self._expected_work(len(s1), len(s2)))
        raw = self._align(s1, s2, tracker, config, **options)
        LOGGER.debug("%s alignment of %dx%d finished, score %s",
                     self.kind.value, len(s1), len(s2), format_score(raw.score))

        identity, similarity, gaps = alignment_statistics(raw.aligned1, raw.aligned2)
        result = AlignmentResult(
            seq1_aligned=raw.aligned1,
            seq2_aligned=raw.aligned2,
            score=raw.score,
            start1=raw.start1,
            end1=raw.end1,
            start2=raw.start2,
            end2=raw.end2,
            algorithm=self.kind.value,
            match_string=match_string(raw.aligned1, raw.aligned2),
            identity=identity,
            similarity=similarity,
            gaps=gaps,
            seq1_original=seq1,
            seq2_original=seq2,
        )
        self._result = result

        if config.verbose:
            print(f"Score: {format_score(result.score)}")
            print(f"Identity: {identity:.2%} ({result.nmatch()} matches)")
            print(f"Gaps: {gaps}")
            print(f"Length: {len(raw.aligned1)}")
            print("=" * 70 + "\n")
        return result

    def _last(self) -> AlignmentResult:
        if self._result is None:
            raise RuntimeError("No alignment has been computed yet")
        return self._result

    def get_score(self) -> float:
        return self._last().score

    def get_alignment(self) -> Tuple[str, str]:
        res = self._last()
        return res.seq1_aligned, res.seq2_aligned

    def format_matrix(self) -> str:
        parts = []
        for name, matrix in self.get_matrix().items():
            parts.append(f"{name}:")
            parts.append(format_matrix(np.atleast_2d(matrix)))
        return "\n".join(parts)

    def traceback(self) -> Iterator[TracebackCell]:
        """Cells of the optimal path, from its end back to its start"""
        res = self._last()
        yield from path_from_alignment(res.seq1_aligned, res.seq2_aligned,
                                       res.start1, res.start2)

    def plot_traceback(self, plotter: TracebackPlotter) -> None:
        self._last()
        plotter.new_traceback(self._seq1, self._seq2)
        for cell in self.traceback():
            plotter.traceback(cell)
        plotter.finished_traceback()

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.scoring!r})"
