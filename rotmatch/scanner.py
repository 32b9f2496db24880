# MIT License
#
# Copyright (c) 2025 Sean Minhui Tashi Chua, and Anton Korosov
#
# Licensed under the MIT License. See the LICENSE file in the project root for full details.

"""
scanner.py

Rotation x position search driving the correlation scorer.

The scan is a generator: every progress snapshot it yields is a suspension
point, and the loop between two snapshots runs synchronously. Scan order is
part of the result contract: angles ascending, then rows top to bottom,
then columns left to right. Duplicate merging depends on that order.
"""

import asyncio
import enum
import inspect
import threading
import time
from dataclasses import dataclass, field, replace
from .aggregator import MatchAggregator, build_match_set
from .config import ScanConfig
from .correlation import score
from .exceptions import NoSelection, ScanCancelled, ScanInProgress
from .patch import extract_selection, rotate_patch
from .statistics import precompute_patch_stats
from .utils import logger


class ScanState(enum.Enum):
    IDLE = 'idle'
    SCANNING = 'scanning'
    COMPLETED = 'completed'
    FAILED = 'failed'
    CANCELLED = 'cancelled'


@dataclass(frozen=True)
class ProgressSnapshot:
    progress: float
    match_count: int
    eta_ms: int
    completed_operations: int
    total_operations: int


@dataclass(frozen=True)
class ScanRequest:
    raster: object
    selection: object
    config: ScanConfig = field(default_factory=ScanConfig)


@dataclass(frozen=True)
class ScanResult:
    """
    Outcome of one completed scan.

    The effective threshold lives on match_set; the request's ScanConfig is
    never modified, even when the adaptive fallback relaxed the threshold.
    """
    match_set: object
    angles: tuple
    total_operations: int
    completed_operations: int
    processing_time_ms: int

    @property
    def matches(self):
        return self.match_set.all_matches

    @property
    def filtered_matches(self):
        return self.match_set.filtered_matches

    @property
    def effective_threshold(self):
        return self.match_set.threshold

    @property
    def threshold_relaxed(self):
        return self.match_set.relaxed

    @property
    def match_count(self):
        return len(self.match_set.filtered_matches)

    def refilter(self, match_threshold):
        return replace(self, match_set=self.match_set.refilter(match_threshold))


class CancellationToken:
    """Flag a caller (possibly on another thread) sets to stop a running scan."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self):
        self._event.set()

    @property
    def cancelled(self):
        return self._event.is_set()


def build_angles(rotation_increment):
    """
    Orientations to try: [0] for an increment of 0, otherwise
    0, inc, 2*inc, ... below 360.
    """
    if rotation_increment == 0:
        return [0]
    angles = []
    i = 0
    while True:
        angle = i * rotation_increment
        if isinstance(angle, float):
            # i * inc rather than a running sum keeps float increments from drifting
            angle = round(angle, 9)
        if angle >= 360:
            break
        angles.append(angle)
        i += 1
    return angles


def step_sizes(selection, denominator=ScanConfig.STEP_FRACTION_DENOMINATOR):
    """Window strides, from the unrotated selection size and shared by all angles."""
    return max(1, selection.width // denominator), max(1, selection.height // denominator)


def window_count(raster_width, raster_height, patch_width, patch_height, step_x, step_y):
    """Number of window positions the scan visits for one angle."""
    max_x = raster_width - patch_width
    max_y = raster_height - patch_height
    if max_x < 0 or max_y < 0:
        return 0
    return (max_x // step_x + 1) * (max_y // step_y + 1)


def make_snapshot(completed, total, match_count, elapsed_s):
    progress = completed / total if total else 1.0
    elapsed_ms = elapsed_s * 1000.0
    eta_ms = int(round(elapsed_ms / progress - elapsed_ms)) if progress > 0 else 0
    return ProgressSnapshot(
        progress=progress,
        match_count=match_count,
        eta_ms=max(0, eta_ms),
        completed_operations=completed,
        total_operations=total,
    )


class Scanner:
    """
    Runs one scan at a time and tracks its state.

    States go IDLE -> SCANNING -> COMPLETED | FAILED | CANCELLED. A scan
    refused for lack of a selection leaves the state unchanged. Starting a
    scan while another one on the same scanner is running raises
    ScanInProgress.

    Parameters:
        clock (callable): Monotonic time source in seconds, used for
            progress pacing and timings.
    """

    def __init__(self, clock=time.monotonic):
        self.clock = clock
        self.state = ScanState.IDLE
        self.last_result = None

    def iter_scan(self, request, cancel=None):
        """
        Generator form of the scan.

        Yields ProgressSnapshot objects no more often than
        request.config.progress_interval seconds apart, then a final
        snapshot with progress 1.0, and returns the ScanResult (available
        as StopIteration.value, or through ``yield from``).
        """
        if self.state is ScanState.SCANNING:
            raise ScanInProgress("A scan is already running on this scanner")

        selection = request.selection
        if selection is None or selection.is_empty:
            logger.warning("Scan refused: no patch selected")
            raise NoSelection("Select a patch before running a scan")

        self.state = ScanState.SCANNING
        try:
            result = yield from self._scan(request, cancel)
        except (ScanCancelled, GeneratorExit, asyncio.CancelledError):
            self.state = ScanState.CANCELLED
            logger.warning("Scan cancelled")
            raise
        except BaseException as e:
            self.state = ScanState.FAILED
            logger.error(f"Scan failed: {e!r}")
            raise

        self.state = ScanState.COMPLETED
        self.last_result = result
        return result

    def scan(self, request, on_progress=None, cancel=None):
        """
        Runs a scan to completion.

        Parameters:
            request (ScanRequest): Raster, selection and config.
            on_progress (callable): Called with each ProgressSnapshot before
                the scan resumes.
            cancel (CancellationToken): Checked at every progress point.

        Returns:
            ScanResult
        """
        scan_iter = self.iter_scan(request, cancel)
        while True:
            try:
                snapshot = next(scan_iter)
            except StopIteration as stop:
                return stop.value
            try:
                if on_progress is not None:
                    on_progress(snapshot)
            except BaseException as e:
                # Ends the suspended scan with the callback's error
                scan_iter.throw(e)
                raise

    async def scan_async(self, request, on_progress=None, cancel=None):
        """
        Runs a scan inside an event loop, handing control back to the loop
        at every progress point. on_progress may be a coroutine function;
        it is awaited before the scan resumes.
        """
        scan_iter = self.iter_scan(request, cancel)
        while True:
            try:
                snapshot = next(scan_iter)
            except StopIteration as stop:
                return stop.value
            try:
                if on_progress is not None:
                    ret = on_progress(snapshot)
                    if inspect.isawaitable(ret):
                        await ret
                await asyncio.sleep(0)
            except BaseException as e:
                scan_iter.throw(e)
                raise

    def _scan(self, request, cancel):
        raster = request.raster
        selection = request.selection
        config = request.config
        start = self.clock()

        # 1. Orientations and per-angle patch statistics, built once per scan
        angles = build_angles(config.rotation_increment)
        base_patch = extract_selection(raster, selection)
        stats_by_angle = {}
        for angle in angles:
            rotated = rotate_patch(base_patch, angle)
            stats_by_angle[angle] = precompute_patch_stats(rotated, angle)

        # 2. Strides and the amount of work
        step_x, step_y = step_sizes(selection, config.STEP_FRACTION_DENOMINATOR)
        total = sum(
            window_count(raster.width, raster.height, s.width, s.height, step_x, step_y)
            for s in stats_by_angle.values()
        )
        logger.info(
            f"Scanning {raster.width}x{raster.height} raster with "
            f"{selection.width}x{selection.height} patch: {len(angles)} angle(s), "
            f"step ({step_x}, {step_y}), {total} windows"
        )

        _check_cancel(cancel)

        # 3. Angle-major, row-major sweep
        aggregator = MatchAggregator(config.DEDUP_FRACTION)
        completed = 0
        last_report = start
        for angle in angles:
            stats = stats_by_angle[angle]
            max_x = raster.width - stats.width
            max_y = raster.height - stats.height
            if max_x < 0 or max_y < 0:
                logger.debug(f"Angle {angle}: rotated patch {stats.width}x{stats.height} exceeds raster, skipped")
                continue
            logger.debug(f"Angle {angle}: patch {stats.width}x{stats.height}, mean {stats.mean:.2f}")

            for y in range(0, max_y + 1, step_y):
                for x in range(0, max_x + 1, step_x):
                    correlation = score(stats, raster, x, y)
                    if correlation >= config.ACCEPT_FLOOR:
                        aggregator.add(x, y, stats.width, stats.height, correlation, angle)
                    completed += 1

                    now = self.clock()
                    if now - last_report >= config.progress_interval:
                        last_report = now
                        yield make_snapshot(completed, total, len(aggregator), now - start)
                        _check_cancel(cancel)

        yield make_snapshot(completed, total, len(aggregator), self.clock() - start)

        # 4. Sort, filter, relax the threshold if nothing passes
        match_set = build_match_set(
            aggregator.matches,
            config.match_threshold,
            config.ACCEPT_FLOOR,
            config.ADAPTIVE_EPSILON,
        )
        processing_time_ms = int(round((self.clock() - start) * 1000))
        logger.info(
            f"Scan complete: {len(match_set.all_matches)} matches, "
            f"{len(match_set.filtered_matches)} at threshold {match_set.threshold:.3f}, "
            f"{processing_time_ms} ms"
        )
        return ScanResult(
            match_set=match_set,
            angles=tuple(angles),
            total_operations=total,
            completed_operations=completed,
            processing_time_ms=processing_time_ms,
        )


def _check_cancel(cancel):
    if cancel is not None and cancel.cancelled:
        raise ScanCancelled("Scan cancelled by caller")


def scan(raster, selection, config=None, on_progress=None, cancel=None):
    """Runs a single scan on a fresh Scanner."""
    request = ScanRequest(raster, selection, config or ScanConfig())
    return Scanner().scan(request, on_progress=on_progress, cancel=cancel)
