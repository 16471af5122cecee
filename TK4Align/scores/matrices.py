"""
Substitution score matrices used by the pairwise aligners.

The aligners only rely on the small ScoringModel contract (score lookup,
gap costs, alphabet). ScoreMatrix is the numpy-backed implementation shipped
with the package, with the usual presets:
- BLOSUM62 / PAM220 for proteins
- simple match/mismatch, Hamming and Jukes-Cantor log-odds for nucleotides
"""

from __future__ import annotations

import math
import re
from typing import Dict, Iterable, List, Optional, Protocol, Sequence, Union

import numpy as np


# -------------------------
# Contract
# -------------------------
class ScoringModel(Protocol):
    """What an aligner needs from a scoring scheme"""

    gap_open: float
    gap_extend: float

    @property
    def alphabet(self) -> str: ...

    def score(self, a: str, b: str) -> float: ...


# -------------------------
# Raw tables (lower triangles)
# -------------------------
_AMINO_ACIDS = "ARNDCQEGHILKMFPSTWYV"

_BLOSUM62 = [
    [4],
    [-1, 5],
    [-2, 0, 6],
    [-2, -2, 1, 6],
    [0, -3, -3, -3, 9],
    [-1, 1, 0, 0, -3, 5],
    [-1, 0, 0, 2, -4, 2, 5],
    [0, -2, 0, -1, -3, -2, -2, 6],
    [-2, 0, 1, -1, -3, 0, 0, -2, 8],
    [-1, -3, -3, -3, -1, -3, -3, -4, -3, 4],
    [-1, -2, -3, -4, -1, -2, -3, -4, -3, 2, 4],
    [-1, 2, 0, -1, -3, 1, 1, -2, -1, -3, -2, 5],
    [-1, -1, -2, -3, -1, 0, -2, -3, -2, 1, 2, -1, 5],
    [-2, -3, -3, -3, -2, -3, -3, -3, -1, 0, 0, -3, 0, 6],
    [-1, -2, -2, -1, -3, -1, -1, -2, -2, -3, -3, -1, -2, -4, 7],
    [1, -1, 1, 0, -1, 0, 0, 0, -1, -2, -2, 0, -1, -2, -1, 4],
    [0, -1, 0, -1, -1, -1, -1, -2, -2, -1, -1, -1, -1, -2, -1, 1, 5],
    [-3, -3, -4, -4, -2, -2, -3, -2, -2, -3, -2, -3, -1, 1, -4, -3, -2, 11],
    [-2, -2, -2, -3, -2, -1, -2, -3, 2, -1, -1, -2, -1, 3, -3, -2, -2, 2, 7],
    [0, -3, -3, -3, -1, -2, -2, -3, -3, 3, 1, -2, 1, -1, -2, -2, 0, -3, -1, 4],
]

_PAM220 = [
    [2],
    [-2, 7],
    [0, 0, 3],
    [0, -2, 2, 4],
    [-2, -4, -4, -6, 12],
    [-1, 1, 1, 2, -6, 5],
    [0, -1, 2, 4, -6, 3, 4],
    [1, -3, 0, 0, -4, -2, 0, 5],
    [-2, 2, 2, 1, -4, 3, 1, -3, 7],
    [-1, -2, -2, -3, -3, -2, -2, -3, -3, 5],
    [-2, -3, -3, -5, -7, -2, -4, -5, -2, 2, 6],
    [-1, 4, 1, 0, -6, 1, 0, -2, 0, -2, -3, 5],
    [-1, -1, -2, -3, -6, -1, -2, -3, -3, 2, 4, 1, 8],
    [-4, -5, -4, -6, -5, -5, -6, -5, -2, 1, 2, -6, 0, 10],
    [1, 0, -1, -1, -3, 0, -1, -1, 0, -2, -3, -1, -2, -5, 7],
    [1, 0, 1, 0, 0, -1, 0, 1, -1, -2, -3, 0, -2, -4, 1, 2],
    [1, -1, 0, 0, -3, -1, -1, 0, -2, 0, -2, 0, -1, -4, 0, 2, 3],
    [-6, 2, -4, -8, -8, -5, -8, -8, -3, -6, -2, -4, -5, 0, -6, -3, -6, 17],
    [-4, -5, -2, -5, 0, -5, -5, -6, 0, -1, -1, -5, -3, 7, -6, -3, -3, 0, 11],
    [0, -3, -2, -3, -2, -2, -2, -2, -3, 4, 2, -3, 2, -2, -1, -1, 0, -7, -3, 5],
]

# A C G T U, with T and U interchangeable
_HAMMING = [
    [0],
    [-1, 0],
    [-1, -1, 0],
    [-1, -1, -1, 0],
    [-1, -1, -1, 0, 0],
]

DEFAULT_GAP_OPEN = 10.0
DEFAULT_GAP_EXTEND = 0.5


# -------------------------
# Score matrix
# -------------------------
class ScoreMatrix:
    """
    Symmetric substitution matrix over an alphabet, plus gap costs.

    Lookups are case-insensitive: 'a' and 'A' share a row. Gap costs are
    positive numbers that the aligners subtract; a gap of length k costs
    gap_open + gap_extend * (k - 1). Linear-gap aligners charge gap_open
    per gap position.

    Examples:
    ---------
    >>> dna = ScoreMatrix.nucleotide(match=1, mismatch=-1, gap_open=1)
    >>> dna.score("a", "A")
    1
    """

    __slots__ = ("_alphabet", "_data", "_index", "gap_open", "gap_extend", "name")

    def __init__(
        self,
        alphabet: str,
        scores: Union[np.ndarray, Sequence[Sequence[float]]],
        gap_open: float = DEFAULT_GAP_OPEN,
        gap_extend: float = DEFAULT_GAP_EXTEND,
        name: Optional[str] = None,
    ):
        alphabet = alphabet.upper()
        if len(set(alphabet)) != len(alphabet):
            raise ValueError(f"Duplicate symbols in alphabet: {alphabet!r}")
        data = np.array(scores)
        k = len(alphabet)
        if data.shape != (k, k):
            raise ValueError(
                f"Score table shape {data.shape} does not match alphabet of size {k}"
            )
        if not np.array_equal(data, data.T):
            raise ValueError("Score table must be symmetric")
        if gap_open < 0 or gap_extend < 0:
            raise ValueError("Gap costs must be non-negative")

        data.flags.writeable = False
        self._alphabet = alphabet
        self._data = data
        self._index: Dict[str, int] = {}
        for i, ch in enumerate(alphabet):
            self._index[ch] = i
            self._index[ch.lower()] = i
        self.gap_open = gap_open
        self.gap_extend = gap_extend
        self.name = name or "custom"

    @classmethod
    def from_lower_triangle(
        cls, alphabet: str, rows: Iterable[Sequence[float]], **kwargs
    ) -> "ScoreMatrix":
        """Build from the lower triangle (row i holds columns 0..i)"""
        rows = [list(r) for r in rows]
        k = len(rows)
        full = np.zeros((k, k), dtype=np.result_type(*[np.asarray(r) for r in rows]))
        for i, row in enumerate(rows):
            if len(row) != i + 1:
                raise ValueError(f"Row {i} of lower triangle has {len(row)} entries")
            for j, val in enumerate(row):
                full[i, j] = full[j, i] = val
        return cls(alphabet, full, **kwargs)

    # ---- presets ----
    @classmethod
    def blosum62(cls, gap_open: float = DEFAULT_GAP_OPEN,
                 gap_extend: float = DEFAULT_GAP_EXTEND) -> "ScoreMatrix":
        return cls.from_lower_triangle(_AMINO_ACIDS, _BLOSUM62, gap_open=gap_open,
                                       gap_extend=gap_extend, name="BLOSUM62")

    @classmethod
    def pam220(cls, gap_open: float = DEFAULT_GAP_OPEN,
               gap_extend: float = DEFAULT_GAP_EXTEND) -> "ScoreMatrix":
        return cls.from_lower_triangle(_AMINO_ACIDS, _PAM220, gap_open=gap_open,
                                       gap_extend=gap_extend, name="PAM220")

    @classmethod
    def nucleotide(cls, match: float = 5, mismatch: float = -4,
                   gap_open: float = DEFAULT_GAP_OPEN,
                   gap_extend: float = DEFAULT_GAP_EXTEND) -> "ScoreMatrix":
        """Flat match/mismatch scores over ACGT"""
        table = np.full((4, 4), mismatch, dtype=np.result_type(match, mismatch))
        np.fill_diagonal(table, match)
        return cls("ACGT", table, gap_open=gap_open, gap_extend=gap_extend,
                   name=f"{match}/{mismatch}")

    @classmethod
    def hamming(cls, gap_open: float = 1, gap_extend: float = 1) -> "ScoreMatrix":
        return cls.from_lower_triangle("ACGTU", _HAMMING, gap_open=gap_open,
                                       gap_extend=gap_extend, name="Hamming")

    @classmethod
    def jukes_cantor(cls, distance: float,
                     gap_open: float = DEFAULT_GAP_OPEN,
                     gap_extend: float = DEFAULT_GAP_EXTEND) -> "ScoreMatrix":
        """
        Log-odds (bits) scores under the Jukes-Cantor model at a given
        evolutionary distance: equal base frequencies and substitution rates.
        """
        if distance <= 0:
            raise ValueError("Jukes-Cantor distance must be positive")
        p = 0.25 + 0.75 * math.exp(-4.0 / 3.0 * distance)
        q = (1.0 - p) / 3.0
        m = cls.nucleotide(match=math.log2(p / 0.25), mismatch=math.log2(q / 0.25),
                           gap_open=gap_open, gap_extend=gap_extend)
        m.name = f"JukesCantor{distance:g}"
        return m

    # ---- contract ----
    @property
    def alphabet(self) -> str:
        return self._alphabet

    @property
    def matrix(self) -> np.ndarray:
        """Read-only (K x K) score table in alphabet order"""
        return self._data

    def score(self, a: str, b: str):
        return self._data[self._index[a], self._index[b]].item()

    def is_valid(self, ch: str) -> bool:
        return ch in self._index

    def is_integral(self) -> bool:
        """True when all scores and both gap costs are whole numbers"""
        if np.issubdtype(self._data.dtype, np.integer):
            table_ok = True
        else:
            table_ok = bool(np.all(np.mod(self._data, 1) == 0))
        return table_ok and float(self.gap_open).is_integer() \
            and float(self.gap_extend).is_integer()

    def encode(self, seq: str) -> np.ndarray:
        """Map a (clean) sequence to row indices of the score table"""
        return np.array([self._index[ch] for ch in seq], dtype=np.intp)

    def with_gaps(self, gap_open: float, gap_extend: Optional[float] = None) -> "ScoreMatrix":
        """Copy with different gap costs"""
        if gap_extend is None:
            gap_extend = self.gap_extend
        return ScoreMatrix(self._alphabet, self._data, gap_open=gap_open,
                           gap_extend=gap_extend, name=self.name)

    def __repr__(self) -> str:
        return (f"ScoreMatrix({self.name}, alphabet={self._alphabet!r}, "
                f"gap_open={self.gap_open}, gap_extend={self.gap_extend})")


# -------------------------
# Factory
# -------------------------
_NAME_VALUE = re.compile(r"^([A-Za-z]+)([0-9.]*)$")


def get_scores(name: str, **kwargs) -> ScoreMatrix:
    """
    Look up a preset by name, e.g. "BLOSUM62", "PAM220", "Hamming",
    "Nucleotide", or "JukesCantor0.5" (the number is the distance).

    Extra keyword arguments (gap_open, gap_extend, ...) go to the preset.
    """
    match = _NAME_VALUE.match(name.strip())
    if not match:
        raise ValueError(f"Unknown substitution matrix: {name!r}")
    family, value = match.group(1).lower(), match.group(2)

    if family == "blosum" and value == "62":
        return ScoreMatrix.blosum62(**kwargs)
    if family == "pam" and value == "220":
        return ScoreMatrix.pam220(**kwargs)
    if family == "hamming" and not value:
        return ScoreMatrix.hamming(**kwargs)
    if family == "nucleotide" and not value:
        return ScoreMatrix.nucleotide(**kwargs)
    if family == "jukescantor" and value:
        return ScoreMatrix.jukes_cantor(float(value), **kwargs)
    raise ValueError(f"Unknown substitution matrix: {name!r}")


def available_scores() -> List[str]:
    return ["BLOSUM62", "PAM220", "Hamming", "Nucleotide", "JukesCantor<distance>"]
