# MIT License
#
# Copyright (c) 2025 Sean Minhui Tashi Chua, and Anton Korosov
#
# Licensed under the MIT License. See the LICENSE file in the project root for full details.

from dataclasses import dataclass, asdict
from operator import attrgetter
import pandas as pd
from .config import ScanConfig
from .utils import logger

MATCH_COLUMNS = ['x', 'y', 'width', 'height', 'correlation', 'angle']


@dataclass
class Match:
    """
    A matched window in raster coordinates.

    x, y is the top-left corner; width, height is the size of the rotated
    patch that produced the match; angle is that patch's rotation in degrees.
    """
    x: int
    y: int
    width: int
    height: int
    correlation: float
    angle: float


class MatchAggregator:
    """
    Collects scored candidates in scan order and merges near duplicates.

    Two candidates are the same physical match when both |dx| and |dy| are
    below dedup_fraction of the *new* candidate's width and height. The
    first existing match that qualifies absorbs the candidate: it takes the
    candidate's position, score and angle if the score is strictly higher,
    otherwise the candidate is dropped. The result therefore depends on
    insertion order, which the scanner fixes as angle-major then row-major.
    """

    def __init__(self, dedup_fraction=ScanConfig.DEDUP_FRACTION):
        self.dedup_fraction = dedup_fraction
        self.matches = []

    def add(self, x, y, width, height, correlation, angle):
        """
        Offers a candidate.

        Returns:
            Match or None: The match that now holds the candidate, or None
            when it was discarded as a weaker duplicate.
        """
        max_dx = width * self.dedup_fraction
        max_dy = height * self.dedup_fraction
        for existing in self.matches:
            if abs(existing.x - x) < max_dx and abs(existing.y - y) < max_dy:
                if correlation > existing.correlation:
                    existing.x = x
                    existing.y = y
                    existing.correlation = correlation
                    existing.angle = angle
                    return existing
                return None

        match = Match(x, y, width, height, correlation, angle)
        self.matches.append(match)
        return match

    def __len__(self):
        return len(self.matches)


@dataclass(frozen=True)
class MatchSet:
    """
    Deduplicated matches of one scan.

    Attributes:
    -----------
    all_matches : list of Match
        Sorted by correlation, descending; equal scores keep discovery order.
    filtered_matches : list of Match
        Those of all_matches with correlation >= threshold.
    threshold : float
        Effective threshold used for filtering.
    requested_threshold : float
        Threshold the caller asked for. Differs from threshold when the
        adaptive fallback relaxed it.
    """
    all_matches: list
    filtered_matches: list
    threshold: float
    requested_threshold: float

    @property
    def relaxed(self):
        return self.threshold != self.requested_threshold

    @property
    def best(self):
        return self.all_matches[0] if self.all_matches else None

    def refilter(self, match_threshold,
                 accept_floor=ScanConfig.ACCEPT_FLOOR,
                 adaptive_epsilon=ScanConfig.ADAPTIVE_EPSILON):
        """Applies a new threshold to the same matches without rescanning."""
        return build_match_set(self.all_matches, match_threshold, accept_floor, adaptive_epsilon)

    def to_dataframe(self, filtered=True):
        matches = self.filtered_matches if filtered else self.all_matches
        return pd.DataFrame([asdict(m) for m in matches], columns=MATCH_COLUMNS)

    def __len__(self):
        return len(self.filtered_matches)


def sort_matches(matches):
    """Sorts by correlation, descending. Python's sort is stable, so ties keep their order."""
    return sorted(matches, key=attrgetter('correlation'), reverse=True)


def build_match_set(matches,
                    match_threshold,
                    accept_floor=ScanConfig.ACCEPT_FLOOR,
                    adaptive_epsilon=ScanConfig.ADAPTIVE_EPSILON):
    """
    Sorts matches and filters them by threshold, relaxing the threshold when
    it would hide every match.

    If there are matches but none reaches match_threshold, the effective
    threshold becomes max(accept_floor, best - adaptive_epsilon) so that at
    least the best match is shown. The relaxed value is reported on the
    returned MatchSet; nothing else is modified.

    Parameters:
        matches (list of Match): Deduplicated matches in discovery order.
        match_threshold (float): Threshold requested by the caller.

    Returns:
        MatchSet
    """
    all_matches = sort_matches(matches)
    threshold = match_threshold
    filtered = [m for m in all_matches if m.correlation >= threshold]

    if all_matches and not filtered:
        best = all_matches[0].correlation
        threshold = max(accept_floor, best - adaptive_epsilon)
        filtered = [m for m in all_matches if m.correlation >= threshold]
        logger.info(
            f"No match reached threshold {match_threshold:.3f}; "
            f"relaxed to {threshold:.4f} (best correlation {best:.4f})"
        )

    return MatchSet(
        all_matches=all_matches,
        filtered_matches=filtered,
        threshold=threshold,
        requested_threshold=match_threshold,
    )
