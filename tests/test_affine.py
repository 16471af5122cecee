"""Tests for the three-state affine gap aligner."""

import numpy as np
import pytest

from conftest import NaNScores, random_dna
from TK4Align.scores import ScoreMatrix
from TK4Align.seq_alignment import AffineGapAligner, AlignmentError, State
from TK4Align.seq_alignment.affine import final_state, pick_state
from TK4Align.seq_alignment.base import path_from_alignment


@pytest.fixture
def affine_dna():
    """match 1, mismatch -1, gap open 3, gap extend 1."""
    return ScoreMatrix.nucleotide(match=1, mismatch=-1, gap_open=3, gap_extend=1)


class TestTieBreaking:
    """Tests for the shared predecessor and final-state choice."""

    def test_first_candidate_wins_an_exact_tie(self):
        assert pick_state(((2.0, State.IX), (2.0, State.M))) == (2.0, State.IX)

    def test_rounding_difference_counts_as_tie(self):
        val, state = pick_state(((0.1 + 0.2, State.IX), (0.3 + 1e-15, State.M)))
        assert state == State.IX
        assert val == pytest.approx(0.3)

    def test_real_difference_is_not_a_tie(self):
        assert pick_state(((1.9, State.IX), (2.0, State.M))) == (2.0, State.M)

    def test_all_unreachable_picks_first(self):
        inf = float("inf")
        assert pick_state(((-inf, State.IY), (-inf, State.M))) == (-inf, State.IY)

    def test_nan_matches_nothing(self):
        assert pick_state(((float("nan"), State.M), (1.0, State.IX)))[1] is None

    def test_final_state(self):
        assert final_state([0.3, 0.1 + 0.2, 1.0], None) == State.IY
        assert final_state([0.1 + 0.2, 0.3, 0.0], None) == State.M
        assert final_state([5.0, 6.0, 7.0], State.IX) == State.IX


class TestAffineGapAligner:
    """Tests for AffineGapAligner recurrences and boundaries."""

    def test_empty_first_sequence(self, dna):
        result = AffineGapAligner(dna).align("", "ACGT")
        assert result.seq1_aligned == "----"
        assert result.seq2_aligned == "ACGT"
        assert result.score == pytest.approx(-(10 + 1 * 3))

    def test_identical_sequences(self, dna):
        seq = random_dna(np.random.default_rng(1), 50)
        result = AffineGapAligner(dna).align(seq, seq)
        assert result.score == pytest.approx(250)
        assert result.gaps == 0

    def test_prefers_one_long_gap(self, dna):
        result = AffineGapAligner(dna).align("AAAAGGGGCCCC", "AAAACCCC")
        assert result.seq1_aligned == "AAAAGGGGCCCC"
        assert result.seq2_aligned == "AAAA----CCCC"
        assert result.score == pytest.approx(8 * 5 - (10 + 3 * 1))

    def test_gap_cost_overrides(self, dna):
        aligner = AffineGapAligner(dna, gap_open=2, gap_extend=0.5)
        assert aligner.align("", "ACG").score == pytest.approx(-3)
        with pytest.raises(ValueError):
            AffineGapAligner(dna, gap_extend=-1)

    def test_traceback_matches_alignment(self, dna, plotter):
        aligner = AffineGapAligner(dna)
        result = aligner.align("AAAAGGGGCCCC", "AAAACCCC")
        cells = list(aligner.traceback())
        assert cells == path_from_alignment(result.seq1_aligned, result.seq2_aligned)
        assert cells[0].state == State.M
        aligner.plot_traceback(plotter)
        assert plotter.cells == cells

    def test_matrices(self, affine_dna):
        aligner = AffineGapAligner(affine_dna)
        aligner.align("A", "AC")
        matrices = aligner.get_matrix()
        assert set(matrices) == {"M", "Ix", "Iy"}
        assert matrices["M"].shape == (2, 3)
        assert matrices["M"][0, 0] == 0
        assert matrices["Iy"][0].tolist()[1:] == [-3, -4]
        assert "-Inf" in aligner.format_matrix()

    def test_nan_scores_raise(self):
        with pytest.raises(AlignmentError, match="state M"):
            AffineGapAligner(NaNScores()).align("AC", "CA")


class TestForcedBoundaryStates:
    """Tests for start_state / end_state constraints."""

    def test_start_in_iy_continues_gap(self, affine_dna):
        aligner = AffineGapAligner(affine_dna)
        assert aligner.align("", "AC").score == pytest.approx(-4)
        forced = aligner.align("", "AC", start_state=State.IY)
        assert forced.score == pytest.approx(-2)
        assert forced.seq1_aligned == "--"

    def test_start_in_ix_continues_gap(self, affine_dna):
        result = AffineGapAligner(affine_dna).align("AA", "", start_state=State.IX)
        assert result.score == pytest.approx(-2)
        assert result.seq2_aligned == "--"

    def test_end_state_forces_final_gap(self, affine_dna):
        aligner = AffineGapAligner(affine_dna)
        assert aligner.align("A", "A").as_tuple() == (1, "A", "A")
        forced = aligner.align("A", "A", end_state=State.IX)
        assert forced.seq1_aligned == "-A"
        assert forced.seq2_aligned == "A-"
        assert forced.score == pytest.approx(-6)

    def test_unreachable_end_state_raises(self, affine_dna):
        with pytest.raises(AlignmentError, match="ends in state M"):
            AffineGapAligner(affine_dna).align("", "AC", end_state=State.M)

    def test_repeated_calls_with_forced_states(self, dna):
        aligner = AffineGapAligner(dna)
        first = aligner.align("ACGTTGCA", "ACTTGA", start_state=State.IX,
                              end_state=State.IY).as_tuple()
        aligner.align("ACGTACGTACGTACGT", "TTTTACGACGT")
        again = aligner.align("ACGTTGCA", "ACTTGA", start_state=State.IX, end_state=State.IY)
        assert again.as_tuple() == first
        assert again.seq1_aligned.endswith("-")

    def test_constraints_do_not_leak(self, affine_dna):
        aligner = AffineGapAligner(affine_dna)
        aligner.align("A", "A", end_state=State.IX)
        assert aligner.align("A", "A").score == pytest.approx(1)
