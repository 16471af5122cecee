"""Per-call configuration for the pairwise aligners.

Nothing here is global: an AlignConfig is handed to each ``align()`` call,
so two aligners (or two calls on one aligner) never share verbosity or
progress settings.
"""

from dataclasses import dataclass
from typing import Callable, Optional

# Below this length (either sequence) the linear-space affine aligner
# falls back to the quadratic affine aligner.
RECURSION_THRESHOLD = 6

# Jump cost charged by the repeat aligner for each restart.
DEFAULT_JUMP_COST = 20

# Tolerance used by the opt-in linear-space verification.
DEFAULT_VERIFY_TOLERANCE = 1e-3

# Relative distance under which two DP candidates count as tied.
TIE_TOLERANCE = 1e-9

GAP = "-"
REPEAT_BREAK = "."

ProgressCallback = Callable[[float], Optional[bool]]


@dataclass(frozen=True)
class AlignConfig:
    """Options for a single alignment call.

    Attributes:
        verbose: Print a short report of each stage to stdout.
        progress: Called once per DP row with the completed fraction
            (0..1). Returning True cancels the alignment.
        verify: Re-run the quadratic affine aligner after a linear-space
            affine alignment and compare (slow; debugging only).
        verify_tolerance: Allowed absolute score difference when verifying.
    """

    verbose: bool = False
    progress: Optional[ProgressCallback] = None
    verify: bool = False
    verify_tolerance: float = DEFAULT_VERIFY_TOLERANCE


DEFAULT_CONFIG = AlignConfig()
