"""PAL colour decoding: Y/C separation, burst lock, U/V demodulation.

The chroma band is isolated by translating the colour subcarrier to DC and
low-pass filtering (the same mixer and FIR used elsewhere). Luminance is
what remains after the remodulated chroma band is subtracted from the
composite. The colour burst on each back porch supplies the subcarrier
phase and the PAL switch state:

    burst = 180 deg +- 45 deg in the U/V plane

so the sum of two consecutive bursts points along -U (giving the phase
reference), and the sign of the V component of each burst gives that
line's V polarity.
"""

import numpy as np

from palbdemod.demod.lowpass import LowPassFilter
from palbdemod.demod.mixer import FrequencyShifter
from palbdemod.demod.timing_recovery import sample_at
from palbdemod.utils.constants import (
    ACTIVE_DURATION,
    ACTIVE_START,
    BACK_PORCH_END,
    BURST_AMPLITUDE,
    BURST_DURATION,
    BURST_START,
    CHROMA_BANDWIDTH,
    CHROMA_TRANSITION,
    COLOR_SUBCARRIER,
    HSYNC_DURATION,
    PIXELS_PER_LINE,
    SYNC_AMPLITUDE,
    VIDEO_RANGE,
    YUV_TO_RGB,
    line_samples,
)

# Lines averaged for the subcarrier phase reference (even, so the
# +-45 degree burst swing cancels)
_PHASE_WINDOW = 4


def yuv_to_rgb(y: np.ndarray, u: np.ndarray, v: np.ndarray) -> np.ndarray:
    """Convert normalized Y (0..1) and U/V to 8-bit RGB.

    Out-of-range results (noise, over-saturated colours) are saturated to
    [0, 255], never wrapped.

    Returns
    -------
    np.ndarray
        uint8 array with a trailing axis of length 3.
    """
    yuv = np.stack([np.asarray(y, dtype=np.float64),
                    np.asarray(u, dtype=np.float64),
                    np.asarray(v, dtype=np.float64)], axis=-1)
    rgb = yuv @ YUV_TO_RGB.T
    return np.clip(np.rint(rgb * 255.0), 0, 255).astype(np.uint8)


def _window(start: float, stop: float, sample_rate: float) -> np.ndarray:
    """Sample offsets covering [start, stop) seconds after 0H."""
    lo = start * sample_rate
    n = max(1, int(round((stop - start) * sample_rate)))
    return lo + np.arange(n, dtype=np.float64)


class ColorDecoder:
    """Decodes composite PAL lines into RGB rows.

    Parameters
    ----------
    sample_rate : float
        Composite sample rate in Hz.
    subcarrier : float
        Colour subcarrier frequency in Hz. Default 4.43361875 MHz.
    bandwidth : float
        Chroma low-pass cutoff in Hz (each side of the subcarrier).
        Default 1.3 MHz.
    transition_width : float
        Chroma filter transition width in Hz. Default 0.5 MHz.
    pixels_per_line : int
        Output pixels across the 52 us active line. Default 720.
    color : bool
        False forces a monochrome picture. Default True.
    hue : float
        U/V rotation in degrees. Default 0.
    saturation : float
        U/V gain. Default 1.0.
    pal_delay_line : bool
        Average U/V with the previous line of the field (PAL-D). Default True.
    burst_threshold : float
        Colour killer threshold as a fraction of the nominal burst to sync
        ratio. Default 0.25.
    """

    def __init__(
        self,
        sample_rate: float,
        subcarrier: float = COLOR_SUBCARRIER,
        bandwidth: float = CHROMA_BANDWIDTH,
        transition_width: float = CHROMA_TRANSITION,
        pixels_per_line: int = PIXELS_PER_LINE,
        color: bool = True,
        hue: float = 0.0,
        saturation: float = 1.0,
        pal_delay_line: bool = True,
        burst_threshold: float = 0.25,
    ):
        if subcarrier >= sample_rate / 2.0:
            raise ValueError(
                f"colour subcarrier {subcarrier:.6g} Hz is above Nyquist "
                f"for sample rate {sample_rate:.6g} Hz"
            )
        if pixels_per_line < 1:
            raise ValueError(f"pixels_per_line must be positive, got {pixels_per_line}")

        self.sample_rate = sample_rate
        self.subcarrier = subcarrier
        self.line_samples = line_samples(sample_rate)
        self.pixels_per_line = int(pixels_per_line)
        self.color = color
        self.hue = hue
        self.saturation = saturation
        self.pal_delay_line = pal_delay_line
        self.burst_threshold = burst_threshold

        self.shifter = FrequencyShifter(sample_rate, -subcarrier)
        self.chroma_filter = LowPassFilter(sample_rate, bandwidth, transition_width)

        # Measurement windows, trimmed away from the filtered pulse edges
        edge = 0.4e-6
        self._sync_window = _window(edge, HSYNC_DURATION - edge, sample_rate)
        self._blank_window = _window(HSYNC_DURATION + 0.7e-6, BACK_PORCH_END - 0.3e-6,
                                     sample_rate)
        self._burst_window = _window(BURST_START + edge,
                                     BURST_START + BURST_DURATION - edge, sample_rate)

        pixel_width = ACTIVE_DURATION / self.pixels_per_line
        self._pixel_offsets = (
            ACTIVE_START + (np.arange(self.pixels_per_line) + 0.5) * pixel_width
        ) * sample_rate

    def separate(self, composite: np.ndarray) -> tuple:
        """Split a composite buffer into luminance and chroma baseband.

        Returns
        -------
        luma : np.ndarray
            Real composite with the chroma band removed.
        chroma : np.ndarray
            Complex chroma at DC: (V - jU)/2 rotated by the subcarrier phase.
        """
        composite = np.asarray(composite, dtype=np.float64)
        oscillator = self.shifter.oscillator(len(composite))
        chroma = self.chroma_filter.apply(composite * oscillator)
        luma = composite - 2.0 * np.real(chroma * np.conj(oscillator))
        return luma, chroma

    def _window_mean(self, signal, starts, window):
        return np.mean(sample_at(signal, starts[:, None] + window[None, :]), axis=1)

    def measure_lines(self, luma, chroma, starts, valid) -> dict:
        """Per-line sync tip, blanking level and burst vector.

        The burst is returned as U + jV in the receiver's unlocked phase.
        """
        tip = self._window_mean(luma, starts, self._sync_window)
        blank = self._window_mean(luma, starts, self._blank_window)
        burst = 2j * self._window_mean(chroma, starts, self._burst_window)

        amplitude = blank - tip
        amplitude[~valid] = np.nan
        burst[~valid] = 0
        return {'tip': tip, 'blank': blank, 'amplitude': amplitude, 'burst': burst}

    def lock_burst(self, burst: np.ndarray, has_burst: np.ndarray,
                   line_index: np.ndarray) -> tuple:
        """Subcarrier phase and PAL switch per line.

        ``line_index`` is each line's position in the buffer in whole lines;
        lines borrowed from an adjacent frame keep their true switch parity.

        Returns
        -------
        phase : np.ndarray
            Phase error to remove from each line, radians.
        switch : np.ndarray
            +1 on lines carrying +V, -1 on inverted lines.
        """
        weighted = np.where(has_burst, burst, 0)
        local = np.convolve(weighted, np.ones(_PHASE_WINDOW), mode='same')
        overall = np.sum(weighted)

        reference = np.where(np.abs(local) > 0, local, overall)
        phase = np.angle(reference) - np.pi

        # V sign of each corrected burst, voted over the whole frame since
        # the switch strictly alternates line to line
        v_sign = np.sign(np.imag(burst * np.exp(-1j * phase)))
        alternation = np.where(line_index % 2 == 0, 1.0, -1.0)
        vote = np.sum((v_sign * alternation)[has_burst])
        parity = 1.0 if vote >= 0 else -1.0
        return phase, parity * alternation

    def decode(self, composite: np.ndarray, starts: np.ndarray, valid: np.ndarray,
               line_numbers: np.ndarray) -> tuple:
        """Decode the requested lines to RGB.

        Parameters
        ----------
        composite : np.ndarray
            Conditioned composite video for the whole buffer.
        starts, valid : np.ndarray
            Start position and availability of every frame line (index 0 =
            line 1), from ``LineTiming.line_starts``.
        line_numbers : np.ndarray
            1-based frame lines to decode, in output row order.

        Returns
        -------
        rgb : np.ndarray
            uint8 array (len(line_numbers), pixels_per_line, 3). Missing
            lines are black.
        color_detected : bool
            False when the colour killer engaged (or colour is disabled).
        """
        luma, chroma = self.separate(composite)
        lines = self.measure_lines(luma, chroma, starts, valid)

        sync_amp = lines['amplitude']
        rows = np.asarray(line_numbers) - 1
        row_valid = valid[rows] & np.isfinite(sync_amp[rows]) & (np.nan_to_num(sync_amp[rows]) > 0)

        # Luma scale: sync amplitude is 0.3 of the 1.0 composite range
        scale = np.where(row_valid, np.nan_to_num(sync_amp[rows]), 1.0) * (VIDEO_RANGE / SYNC_AMPLITUDE)

        positions = starts[rows][:, None] + self._pixel_offsets[None, :]
        y = (sample_at(luma, positions) - lines['blank'][rows][:, None]) / scale[:, None]

        burst_ratio = self._burst_ratio(lines['burst'], sync_amp, rows, row_valid)
        color_detected = bool(self.color and burst_ratio >= self.burst_threshold)

        if color_detected:
            has_burst = valid & (np.abs(lines['burst']) >
                                 self.burst_threshold * np.nanmedian(sync_amp) *
                                 BURST_AMPLITUDE / SYNC_AMPLITUDE)
            line_index = np.floor(starts / self.line_samples).astype(np.int64)
            phase, switch = self.lock_burst(lines['burst'], has_burst, line_index)
            uv = self._demodulate_uv(chroma, starts, rows, phase, switch, scale)
            if self.pal_delay_line:
                prev_rows = np.clip(rows - 1, 0, len(starts) - 1)
                prev_uv = self._demodulate_uv(chroma, starts, prev_rows, phase, switch, scale)
                uv = np.where(valid[prev_rows][:, None], 0.5 * (uv + prev_uv), uv)
            uv *= self.saturation * np.exp(1j * np.deg2rad(self.hue))
            u, v = np.real(uv), np.imag(uv)
        else:
            u = v = np.zeros_like(y)

        rgb = yuv_to_rgb(y, u, v)
        rgb[~row_valid] = 0
        return rgb, color_detected

    def _demodulate_uv(self, chroma, starts, rows, phase, switch, scale):
        """U + jV at each pixel of ``rows``, phase locked and V un-switched."""
        positions = starts[rows][:, None] + self._pixel_offsets[None, :]
        uv = 2j * sample_at(chroma, positions) * np.exp(-1j * phase[rows])[:, None]
        uv = np.real(uv) + 1j * np.imag(uv) * switch[rows][:, None]
        return uv / scale[:, None]

    def _burst_ratio(self, burst, sync_amp, rows, row_valid) -> float:
        """Median burst/sync amplitude over the decoded lines, relative to nominal."""
        if not np.any(row_valid):
            return 0.0
        ratio = np.abs(burst[rows][row_valid]) / sync_amp[rows][row_valid]
        return float(np.median(ratio) / (BURST_AMPLITUDE / SYNC_AMPLITUDE))
