"""
Progress reporting and cooperative cancellation for long alignments.

The DP sweeps report once per row; a callback returning True stops the
alignment at the next row boundary by raising AlignmentCancelled.
"""

from typing import Optional

from .config import ProgressCallback


class AlignmentError(RuntimeError):
    """The DP recurrence reached an inconsistent state"""


class AlignmentCancelled(AlignmentError):
    """The progress callback asked for the alignment to stop"""


class ProgressTracker:
    """Counts DP cells against an expected total and forwards the fraction"""

    def __init__(self, callback: Optional[ProgressCallback], total: float):
        self.callback = callback
        self.total = max(float(total), 1.0)
        self.done = 0.0

    def add(self, cells: float) -> None:
        self.done += cells
        if self.callback is None:
            return
        if self.callback(min(self.done / self.total, 1.0)):
            raise AlignmentCancelled(
                f"Alignment cancelled at {self.done / self.total:.1%}"
            )


class CompoundProgress:
    """
    Folds the progress of many alignments into one overall fraction.

    Used when one operation runs several alignments in sequence (for
    example the shuffled replicates of SequenceShuffler): each alignment
    gets ``minor`` as its callback and the parent callback sees the
    combined progress.
    """

    def __init__(self, callback: Optional[ProgressCallback], total_sections: int):
        self.callback = callback
        self.total_sections = max(int(total_sections), 1)
        self.sections_completed = 0
        self.section_size = 1
        self.cancelled = False

    def complete(self, count: int = 1) -> None:
        self.sections_completed += count

    def minor(self, fraction: float) -> bool:
        if self.callback is None:
            return False
        overall = (self.sections_completed + fraction * self.section_size) / self.total_sections
        if self.callback(min(overall, 1.0)):
            self.cancelled = True
        return self.cancelled
