# MIT License
#
# Copyright (c) 2025 Sean Minhui Tashi Chua, and Anton Korosov
#
# Licensed under the MIT License. See the LICENSE file in the project root for full details.

"""
rotmatch: rotation-invariant template matching by normalized cross-correlation.
"""

from .aggregator import Match, MatchAggregator, MatchSet, build_match_set
from .config import ScanConfig
from .correlation import SENTINEL_SCORE, score
from .exceptions import (
    NoSelection,
    OutOfBounds,
    PixelAccessFailure,
    RotmatchError,
    ScanCancelled,
    ScanInProgress,
)
from .matcher import PatchMatcher
from .patch import Patch, extract_patch, rotate_patch
from .raster import Raster, Selection
from .scanner import (
    CancellationToken,
    ProgressSnapshot,
    ScanRequest,
    ScanResult,
    ScanState,
    Scanner,
    scan,
)
from .statistics import PatchStats, precompute_patch_stats
from .utils import load_config, setup_logging

__all__ = [
    "CancellationToken",
    "Match",
    "MatchAggregator",
    "MatchSet",
    "NoSelection",
    "OutOfBounds",
    "Patch",
    "PatchMatcher",
    "PatchStats",
    "PixelAccessFailure",
    "ProgressSnapshot",
    "Raster",
    "RotmatchError",
    "SENTINEL_SCORE",
    "ScanCancelled",
    "ScanConfig",
    "ScanInProgress",
    "ScanRequest",
    "ScanResult",
    "ScanState",
    "Scanner",
    "Selection",
    "build_match_set",
    "extract_patch",
    "load_config",
    "precompute_patch_stats",
    "rotate_patch",
    "scan",
    "score",
    "setup_logging",
]
