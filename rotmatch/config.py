# MIT License
#
# Copyright (c) 2025 Sean Minhui Tashi Chua, and Anton Korosov
#
# Licensed under the MIT License. See the LICENSE file in the project root for full details.

from dataclasses import dataclass, replace
from typing import ClassVar
from .utils import load_config, logger

# Defaults of the interactive tool's sliders
ROTATION_INCREMENT = 15
MATCH_THRESHOLD = 0.7
PROGRESS_INTERVAL = 0.1  # seconds between progress snapshots
MIN_ROTATION_INCREMENT = 0.1  # at most 3600 orientations per scan

CONFIG_SECTION = 'scan_params'


@dataclass(frozen=True)
class ScanConfig:
    """
    User-adjustable scan parameters plus the fixed matching constants.

    Attributes:
    -----------
    rotation_increment : float
        Degrees between tried orientations, 0 <= v < 360. 0 scans 0 deg only;
        otherwise at least MIN_ROTATION_INCREMENT.
    match_threshold : float
        Minimum correlation for a match to be shown, 0..1.
    progress_interval : float
        Minimum wall time in seconds between progress snapshots.
    """

    rotation_increment: float = ROTATION_INCREMENT
    match_threshold: float = MATCH_THRESHOLD
    progress_interval: float = PROGRESS_INTERVAL

    ACCEPT_FLOOR: ClassVar[float] = 0.01
    DEDUP_FRACTION: ClassVar[float] = 0.5
    ADAPTIVE_EPSILON: ClassVar[float] = 0.001
    STEP_FRACTION_DENOMINATOR: ClassVar[int] = 6

    def __post_init__(self):
        if not 0 <= self.rotation_increment < 360:
            raise ValueError(f"rotation_increment must be in [0, 360), got {self.rotation_increment}")
        if 0 < self.rotation_increment < MIN_ROTATION_INCREMENT:
            raise ValueError(
                f"rotation_increment must be 0 or at least {MIN_ROTATION_INCREMENT}, got {self.rotation_increment}"
            )
        if not 0 <= self.match_threshold <= 1:
            raise ValueError(f"match_threshold must be in [0, 1], got {self.match_threshold}")
        if self.progress_interval < 0:
            raise ValueError(f"progress_interval must be >= 0, got {self.progress_interval}")

    def with_threshold(self, match_threshold):
        return replace(self, match_threshold=match_threshold)

    @classmethod
    def from_config(cls, config=None, **overrides):
        """
        Builds a ScanConfig from defaults, then the 'scan_params' section of
        config, then keyword overrides.

        Parameters:
            config (dict or str or None): Parsed configuration, or a path to a
                YAML file.
        """
        if isinstance(config, str):
            config = load_config(config)

        params = {
            'rotation_increment': ROTATION_INCREMENT,
            'match_threshold': MATCH_THRESHOLD,
            'progress_interval': PROGRESS_INTERVAL,
        }
        if config and CONFIG_SECTION in config:
            section = config[CONFIG_SECTION] or {}
            unknown = set(section) - set(params)
            if unknown:
                logger.warning(f"Ignoring unknown {CONFIG_SECTION} keys: {sorted(unknown)}")
            params.update({k: v for k, v in section.items() if k in params})
        params.update(overrides)
        return cls(**params)
