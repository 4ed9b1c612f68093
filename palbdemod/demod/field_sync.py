"""PAL vertical sync detection.

Locates the start of a field in the conditioned composite video by its
broad pulses: 27.3 us low periods repeating every half line, much longer
than the 4.7 us horizontal sync and 2.35 us equalizing pulses. The first
broad pulse of field 1 starts on a line boundary, while field 2's starts
half a line later, which is how the field parity is determined.
"""

from dataclasses import dataclass

import numpy as np

from palbdemod.utils.constants import (
    HSYNC_DURATION,
    field_samples,
    line_samples,
)


@dataclass(frozen=True)
class SyncResult:
    """Outcome of a vertical sync search.

    ``offset`` is the sample index of the leading edge of the first broad
    pulse of the detected field (0 when sync was not acquired).
    ``field`` is 1 or 2. ``slice_level`` is the threshold separating sync
    from video.
    """

    acquired: bool
    offset: int
    field: int = 1
    slice_level: float = 0.0
    pulse_length: int = 0


def find_low_runs(mask: np.ndarray) -> tuple:
    """Start and end (exclusive) indices of the True runs in ``mask``."""
    if len(mask) == 0:
        empty = np.zeros(0, dtype=np.int64)
        return empty, empty
    padded = np.concatenate([[False], mask, [False]]).astype(np.int8)
    edges = np.diff(padded)
    starts = np.flatnonzero(edges == 1)
    ends = np.flatnonzero(edges == -1)
    return starts, ends


class VerticalSyncDetector:
    """Finds the first field start in a composite video buffer.

    Parameters
    ----------
    sample_rate : float
        Sample rate of the composite signal in Hz.
    slice_fraction : float
        Sync slicer position between sync tip and signal peak. Default 0.15
        (the middle of the sync amplitude for a full-range picture).
    min_pulse_duration : float
        Shortest low run accepted as a broad pulse, seconds. Default 20 us.
    guard_duration : float
        Low-free interval required before the pulse, seconds. Rejects the
        2nd to 5th broad pulses, which follow the previous one after 4.7 us.
        Default 10 us.
    smoothing_duration : float
        Boxcar length applied before slicing, seconds. Averages out colour
        burst and noise. Default 1 us.
    """

    def __init__(
        self,
        sample_rate: float,
        slice_fraction: float = 0.15,
        min_pulse_duration: float = 20e-6,
        guard_duration: float = 10e-6,
        smoothing_duration: float = 1e-6,
    ):
        if not 0.0 < slice_fraction < 1.0:
            raise ValueError(f"slice_fraction must lie in (0, 1), got {slice_fraction}")
        self.sample_rate = sample_rate
        self.slice_fraction = slice_fraction
        self.min_pulse_duration = min_pulse_duration
        self.guard_duration = guard_duration
        self.smoothing_duration = smoothing_duration

        self.line_samples = line_samples(sample_rate)
        self.field_samples = field_samples(sample_rate)
        self._min_pulse = max(1, int(round(min_pulse_duration * sample_rate)))
        self._guard = max(1, int(round(guard_duration * sample_rate)))
        self._smooth = max(1, int(round(smoothing_duration * sample_rate)))
        self._hsync = max(1, int(round(HSYNC_DURATION * sample_rate)))

    def smooth(self, signal: np.ndarray) -> np.ndarray:
        if self._smooth <= 1:
            return np.asarray(signal, dtype=np.float64)
        kernel = np.ones(self._smooth) / self._smooth
        return np.convolve(signal, kernel, mode='same')

    def slice_level(self, signal: np.ndarray) -> float:
        """Threshold between sync tip and the rest of the signal."""
        tip, peak = np.percentile(signal, [0.5, 99.5])
        return float(tip + self.slice_fraction * (peak - tip))

    def detect(self, signal: np.ndarray) -> SyncResult:
        """Search a conditioned composite buffer for the first field start.

        Parameters
        ----------
        signal : np.ndarray
            Real composite video, sync pulses low-going.

        Returns
        -------
        SyncResult
            ``acquired=False`` with offset 0 when no qualifying broad pulse
            starts within one field (plus one line) of the buffer start.
        """
        signal = np.asarray(signal, dtype=np.float64)
        if len(signal) < self._min_pulse + self._guard:
            return SyncResult(acquired=False, offset=0)

        smoothed = self.smooth(signal)
        level = self.slice_level(smoothed)
        low = smoothed < level
        starts, ends = find_low_runs(low)

        search_limit = self.field_samples + self.line_samples
        prev_end = None
        for start, end in zip(starts, ends):
            if start >= search_limit:
                break
            qualifies = (
                end - start >= self._min_pulse
                and start >= self._guard
                and (prev_end is None or start - prev_end >= self._guard)
            )
            prev_end = end
            if qualifies:
                field = self._field_parity(smoothed, int(start), level)
                return SyncResult(
                    acquired=True,
                    offset=int(start),
                    field=field,
                    slice_level=level,
                    pulse_length=int(end - start),
                )

        return SyncResult(acquired=False, offset=0, slice_level=level)

    def _sync_depth(self, smoothed: np.ndarray, position: float, level: float) -> list:
        """How far below ``level`` the hsync window at ``position`` sits."""
        lo = int(round(position))
        # Skip the smoothing ramp at the leading edge
        lo += self._smooth
        hi = lo + self._hsync - 2 * self._smooth
        if lo < 0 or hi <= lo or hi > len(smoothed):
            return []
        return [level - float(np.mean(smoothed[lo:hi]))]

    def _field_parity(self, smoothed: np.ndarray, start: int, level: float) -> int:
        """1 if normal lines begin on whole-line offsets from ``start``, else 2.

        Lines 7..20 after the field start (and the lines before the
        preceding equalizing pulses) carry only horizontal sync, so the
        sync grid is unambiguous there.
        """
        whole, half = [], []
        offsets = list(range(8, 20)) + list(range(-20, -8))
        for k in offsets:
            whole += self._sync_depth(smoothed, start + k * self.line_samples, level)
            half += self._sync_depth(smoothed, start + (k + 0.5) * self.line_samples, level)
        if not whole or not half:
            return 1
        return 1 if np.mean(whole) >= np.mean(half) else 2
