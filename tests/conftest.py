"""Shared test fixtures and utilities for TK4Align tests."""

from typing import List

import numpy as np
import pytest

from TK4Align.scores import ScoreMatrix
from TK4Align.seq_alignment import TracebackCell


class RecordingPlotter:
    """Traceback consumer that records every call it receives."""

    def __init__(self) -> None:
        self.events: List[object] = []
        self.cells: List[TracebackCell] = []

    def new_traceback(self, seq1: str, seq2: str) -> None:
        self.events.append(("new", seq1, seq2))

    def traceback(self, cell: TracebackCell) -> None:
        self.events.append("cell")
        self.cells.append(cell)

    def finished_traceback(self) -> None:
        self.events.append("finished")


class NaNScores:
    """Scoring model whose mismatches are NaN (a broken model)."""

    alphabet = "AC"
    gap_open = 1.0
    gap_extend = 1.0

    def score(self, a: str, b: str) -> float:
        return 1.0 if a == b else float("nan")


def random_dna(rng: np.random.Generator, length: int) -> str:
    """Random ACGT string of the given length."""
    return "".join(rng.choice(list("ACGT"), size=length))


@pytest.fixture
def unit_dna():
    """match 1, mismatch -1, every gap position costs 1."""
    return ScoreMatrix.nucleotide(match=1, mismatch=-1, gap_open=1, gap_extend=1)


@pytest.fixture
def dna():
    """Integral match/mismatch scores with a separate gap extension."""
    return ScoreMatrix.nucleotide(match=5, mismatch=-4, gap_open=10, gap_extend=1)


@pytest.fixture
def dyadic_dna():
    """Affine costs that are exact in binary floating point."""
    return ScoreMatrix.nucleotide(match=2, mismatch=-3, gap_open=5, gap_extend=0.5)


@pytest.fixture
def blosum():
    return ScoreMatrix.blosum62()


@pytest.fixture
def plotter():
    return RecordingPlotter()
