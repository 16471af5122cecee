"""Tests for the repeat (multiple match) aligner."""

import numpy as np
import pytest

from conftest import NaNScores, random_dna
from TK4Align.seq_alignment import AlignmentError, RepeatAligner, State, TracebackCell


class TestRepeatAligner:
    """Tests for RepeatAligner."""

    def test_two_copies_separated_by_spacer(self, dna):
        aligner = RepeatAligner(dna.with_gaps(8), jump_cost=5)
        result = aligner.align("ACGTAAAAACGT", "ACGT")
        assert result.seq1_aligned == "ACGTAAAAACGT"
        assert result.seq2_aligned == "ACGT....ACGT"
        assert result.score == 2 * (4 * 5) - 5

    def test_traceback(self, dna, plotter):
        aligner = RepeatAligner(dna.with_gaps(8), jump_cost=5)
        aligner.align("ACGTAAAAACGT", "ACGT")
        aligner.plot_traceback(plotter)
        cells = plotter.cells
        assert cells[0] == TracebackCell(12, 4, State.M)
        assert TracebackCell(8, 0, None) in cells
        assert cells[-1] == TracebackCell(0, 0, None)

    def test_no_match_worth_the_jump(self, unit_dna):
        result = RepeatAligner(unit_dna, jump_cost=20).align("ACGT", "ACGT")
        assert result.score == 0
        assert result.seq2_aligned == "...."

    def test_empty_inputs(self, dna):
        assert RepeatAligner(dna).align("", "ACGT").as_tuple() == (0, "", "")
        result = RepeatAligner(dna).align("ACG", "")
        assert result.as_tuple() == (0, "ACG", "...")

    def test_matrices(self, dna):
        aligner = RepeatAligner(dna.with_gaps(8), jump_cost=5)
        aligner.align("ACGTAAAAACGT", "ACGT")
        matrices = aligner.get_matrix()
        assert matrices["F"].shape == (13, 5)
        assert matrices["F"][12, 4] == 35
        assert aligner.get_score() == matrices["F"][12, 4]
        assert matrices["J"][5] == 4

    def test_identical_sequences(self, unit_dna):
        seq = random_dna(np.random.default_rng(4), 50)
        result = RepeatAligner(unit_dna).align(seq, seq)
        assert result.score == 50
        assert result.seq2_aligned == seq
        assert result.gaps == 0

    def test_open_match_at_the_end_pays_no_jump(self, unit_dna):
        result = RepeatAligner(unit_dna, jump_cost=2).align("TTACGT", "ACGT")
        assert result.seq2_aligned == "..ACGT"
        assert result.score == 4

    def test_repeated_calls_reuse_buffers(self, dna):
        aligner = RepeatAligner(dna, jump_cost=5)
        first = aligner.align("ACGTAAAAACGT", "ACGT").as_tuple()
        aligner.align("TTTTACGTACGTACGTACGTGGGG", "ACGTAC")
        assert aligner.align("ACGTAAAAACGT", "ACGT").as_tuple() == first
        assert RepeatAligner(dna, jump_cost=5).align("ACGTAAAAACGT", "ACGT").as_tuple() == first

    def test_negative_jump_cost_rejected(self, dna):
        with pytest.raises(ValueError):
            RepeatAligner(dna, jump_cost=-1)

    def test_nan_scores_raise(self):
        with pytest.raises(AlignmentError):
            RepeatAligner(NaNScores(), jump_cost=1).align("AC", "CA")

    @pytest.mark.parametrize("seed", range(10))
    def test_every_residue_of_seq1_appears_once(self, dna, seed):
        rng = np.random.default_rng(300 + seed)
        seq1 = random_dna(rng, int(rng.integers(0, 40)))
        seq2 = random_dna(rng, int(rng.integers(1, 8)))
        result = RepeatAligner(dna, jump_cost=10).align(seq1, seq2)
        assert result.seq1_aligned == seq1
        assert len(result.seq2_aligned) == len(seq1)
        assert result.score >= 0
