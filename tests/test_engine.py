"""Tests for the shared engine contract, helpers and progress reporting."""

import logging

import numpy as np
import pytest

from TK4Align.seq_alignment import (
    AffineGapAligner,
    AlignConfig,
    AlignmentCancelled,
    LinearSpaceAffineAligner,
    QuadraticGlobalAligner,
    State,
    TracebackCell,
)
from TK4Align.seq_alignment.base import (
    DPArena,
    alignment_statistics,
    clean_sequence,
    format_matrix,
    format_score,
    match_string,
    path_from_alignment,
)
from TK4Align.seq_alignment.progress import CompoundProgress, ProgressTracker


class TestHelpers:
    """Tests for the free helper functions."""

    def test_clean_sequence_strips_unknown_symbols(self, dna, caplog):
        with caplog.at_level(logging.DEBUG, logger="TK4Align.seq_alignment.base"):
            assert clean_sequence("AC-G T\n1N", dna) == "ACGT"
        assert "Stripped 5" in caplog.text

    def test_clean_sequence_keeps_case(self, dna):
        assert clean_sequence("acGT", dna) == "acGT"

    def test_match_string(self):
        assert match_string("AC-GT", "ACTGA") == "|| |."

    def test_alignment_statistics(self):
        identity, similarity, gaps = alignment_statistics("AC-GT", "ACTGA")
        assert identity == pytest.approx(3 / 5)
        assert similarity == pytest.approx(4 / 5)
        assert gaps == 1

    def test_alignment_statistics_of_empty_alignment(self):
        assert alignment_statistics("", "") == (0.0, 0.0, 0)

    @pytest.mark.parametrize(
        "value, text",
        [(float("-inf"), "-Inf"), (3.0, "3"), (-12, "-12"), (2.5, "2.5")],
    )
    def test_format_score(self, value, text):
        assert format_score(value) == text

    def test_format_matrix_pads_columns(self):
        text = format_matrix(np.array([[0, -1], [float("-inf"), 2.5]]), width=5)
        assert text.splitlines() == ["    0   -1", " -Inf  2.5"]

    def test_path_from_alignment(self):
        assert path_from_alignment("A-C", "AGC") == [
            TracebackCell(2, 3, State.M),
            TracebackCell(1, 2, State.IY),
            TracebackCell(1, 1, State.M),
            TracebackCell(0, 0, None),
        ]

    def test_path_from_alignment_with_offset(self):
        cells = path_from_alignment("C-", "CA", start1=3, start2=1)
        assert cells[-1] == TracebackCell(3, 1, None)
        assert cells[0] == TracebackCell(4, 3, State.IY)


class TestDPArena:
    """Tests for buffer reuse in DPArena."""

    def test_buffers_grow_only_when_needed(self):
        arena = DPArena()
        first = arena.take("F", (3, 4), np.int64, fill=0)
        assert first.shape == (3, 4)
        arena.take("F", (2, 2), np.int64)
        assert arena.capacity("F") == (3, 4)
        arena.take("F", (5, 1), np.int64)
        assert arena.capacity("F") == (5, 4)

    def test_views_share_memory(self):
        arena = DPArena()
        big = arena.take("F", (4, 4), np.float64, fill=1.0)
        small = arena.take("F", (2, 2), np.float64, fill=7.0)
        assert np.shares_memory(big, small)
        assert big[0, 0] == 7.0

    def test_dtype_change_reallocates(self):
        arena = DPArena()
        arena.take("B", (4, 4), np.int8)
        view = arena.take("B", (2, 2), np.float64, fill=0.5)
        assert view.dtype == np.float64
        arena.clear()
        assert arena.capacity("B") is None


class TestAlignmentResult:
    """Tests for AlignmentResult reporting."""

    def test_summary_and_blocks(self, unit_dna, capsys):
        result = QuadraticGlobalAligner(unit_dna).align("AC", "AGC")
        assert "Alignment Score: 1" in str(result)
        assert "Algorithm: global" in str(result)
        assert result.format(width=2).splitlines()[:3] == ["seq1: A-", "      | ", "seq2: AG"]
        result.view()
        assert "seq2: AGC" in capsys.readouterr().out

    def test_nmatch(self, unit_dna):
        result = QuadraticGlobalAligner(unit_dna).align("AC", "AGC")
        assert result.nmatch() == 2

    def test_verbose_prints_report(self, unit_dna, capsys):
        QuadraticGlobalAligner(unit_dna).align("AC", "AGC", AlignConfig(verbose=True))
        out = capsys.readouterr().out
        assert "PAIRWISE ALIGNMENT (global)" in out
        assert "Score: 1" in out

    def test_get_alignment(self, unit_dna):
        aligner = QuadraticGlobalAligner(unit_dna)
        aligner.align("AC", "AGC")
        assert aligner.get_alignment() == ("A-C", "AGC")
        assert aligner.get_score() == 1


class TestProgress:
    """Tests for progress reporting and cancellation."""

    def test_fractions_reach_one(self, dna):
        seen = []
        QuadraticGlobalAligner(dna).align("ACGTACGT", "ACGA", AlignConfig(progress=seen.append))
        assert len(seen) == 8
        assert seen == sorted(seen)
        assert seen[-1] == pytest.approx(1.0)

    def test_cancel_stops_alignment(self, dna):
        calls = []

        def cancel_after_two(fraction):
            calls.append(fraction)
            return len(calls) >= 2

        with pytest.raises(AlignmentCancelled):
            AffineGapAligner(dna).align("ACGTACGT", "ACGA", AlignConfig(progress=cancel_after_two))
        assert len(calls) == 2

    def test_cancel_inside_recursion(self, dna):
        with pytest.raises(AlignmentCancelled):
            LinearSpaceAffineAligner(dna, threshold=2).align(
                "ACGTACGTAC", "ACGATTAC", AlignConfig(progress=lambda f: f > 0.3))

    def test_linear_space_progress_is_bounded(self, dna):
        seen = []
        LinearSpaceAffineAligner(dna, threshold=2).align(
            "ACGTACGTAC", "ACGATTAC", AlignConfig(progress=seen.append))
        assert seen == sorted(seen)
        assert all(0 <= f <= 1 for f in seen)

    def test_tracker_without_callback(self):
        tracker = ProgressTracker(None, 10)
        tracker.add(20)
        assert tracker.done == 20

    def test_compound_progress(self):
        seen = []
        compound = CompoundProgress(seen.append, 4)
        compound.complete(2)
        assert compound.minor(0.5) is False
        assert seen == [pytest.approx(0.625)]

    def test_compound_progress_cancel(self):
        compound = CompoundProgress(lambda f: True, 2)
        assert compound.minor(0.1) is True
        assert compound.cancelled
