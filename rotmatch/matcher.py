# MIT License
#
# Copyright (c) 2025 Sean Minhui Tashi Chua, and Anton Korosov
#
# Licensed under the MIT License. See the LICENSE file in the project root for full details.

from dataclasses import replace
import pandas as pd
from tqdm import tqdm
from .aggregator import MATCH_COLUMNS
from .config import ScanConfig
from .raster import Raster
from .scanner import Scanner, ScanRequest
from .utils import log_execution_time, logger


class PatchMatcher:
    """
    Front end for the matching engine as used by an interactive tool.

    Holds the scan parameters (defaults, then the 'scan_params' section of
    config, then keyword arguments), runs scans and keeps the last result so
    a threshold change can be applied without rescanning.
    """
    def __init__(self, config=None, scanner=None, **kwargs):
        self.config = ScanConfig.from_config(config, **kwargs)
        self.scanner = scanner or Scanner()
        self.result = None

        logger.info(
            f"Initialized PatchMatcher: rotation increment {self.config.rotation_increment} deg, "
            f"threshold {self.config.match_threshold}"
        )

    @property
    def match_set(self):
        return self.result.match_set if self.result is not None else None

    @property
    def effective_threshold(self):
        """Threshold actually applied to the last result; may be below the requested one."""
        if self.result is None:
            return self.config.match_threshold
        return self.result.effective_threshold

    @log_execution_time
    def run(self, raster, selection, show_progress=False, on_progress=None, cancel=None):
        """
        Scans raster for copies of the selected patch.

        Parameters:
            raster (Raster or ndarray): Image to search; arrays are converted.
            selection (Selection): Patch rectangle in raster coordinates.
            show_progress (bool): Display a tqdm progress bar.
            on_progress (callable): Receives every ProgressSnapshot.
            cancel (CancellationToken): Stops the scan when set.

        Returns:
            ScanResult
        """
        if not isinstance(raster, Raster):
            raster = Raster.from_array(raster)

        request = ScanRequest(raster, selection, self.config)
        pbar = tqdm(desc="Scanning", unit="win", disable=not show_progress)

        def report(snapshot):
            if pbar.total != snapshot.total_operations:
                pbar.total = snapshot.total_operations
            pbar.update(snapshot.completed_operations - pbar.n)
            pbar.set_postfix(matches=snapshot.match_count, refresh=False)
            if on_progress is not None:
                on_progress(snapshot)

        try:
            self.result = self.scanner.scan(request, on_progress=report, cancel=cancel)
        finally:
            pbar.close()

        match_set = self.result.match_set
        logger.info(
            f"Scanned {self.result.completed_operations} windows over {len(self.result.angles)} angle(s) "
            f"in {self.result.processing_time_ms:.0f} ms: {len(match_set.all_matches)} candidates, "
            f"{len(match_set.filtered_matches)} at threshold {match_set.threshold:.3f}"
        )
        return self.result

    def set_rotation_increment(self, rotation_increment):
        self.config = replace(self.config, rotation_increment=rotation_increment)

    def set_threshold(self, match_threshold):
        """
        Changes the requested threshold and refilters the last result
        without rescanning.

        Returns:
            MatchSet or None if no scan has run yet.
        """
        self.config = self.config.with_threshold(match_threshold)
        if self.result is None:
            return None
        self.result = self.result.refilter(match_threshold)
        return self.result.match_set

    def matches_frame(self, filtered=True):
        """Current matches as a pandas DataFrame (empty before the first scan)."""
        if self.result is None:
            return pd.DataFrame(columns=MATCH_COLUMNS)
        return self.result.match_set.to_dataframe(filtered=filtered)

    def clear(self):
        """Drops the last result, as when the selection is cleared."""
        self.result = None
