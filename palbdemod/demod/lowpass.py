"""Low-pass FIR filter with integrated decimation."""

import numpy as np
from scipy.signal import upfirdn

from palbdemod.demod.filter_design import design_lowpass


class LowPassFilter:
    """Windowed-sinc low-pass filter followed by decimation.

    Only the retained output samples are computed (polyphase evaluation),
    so the cost is proportional to ``num_taps * len(input) / decimation``.

    Each call treats its input as a fresh buffer: taps that reach past
    either end of the buffer see zeros. The filter group delay is removed,
    so output sample ``m`` is centred on input sample ``m * decimation``
    and the output length is exactly ``ceil(len(input) / decimation)``.

    Parameters
    ----------
    sample_rate : float
        Input sample rate in Hz.
    cutoff : float
        Cutoff frequency in Hz.
    transition_width : float
        Transition bandwidth in Hz.
    decimation : int
        Keep every Nth filtered sample. Default 1.
    """

    # Samples lost at the buffer edges. Zero-padding plus group delay
    # compensation keeps every input position.
    boundary_loss = 0

    def __init__(
        self,
        sample_rate: float,
        cutoff: float,
        transition_width: float,
        decimation: int = 1,
    ):
        if int(decimation) != decimation or decimation < 1:
            raise ValueError(f"decimation must be a positive integer, got {decimation}")

        self.sample_rate = sample_rate
        self.cutoff = cutoff
        self.transition_width = transition_width
        self.decimation = int(decimation)
        self.taps = design_lowpass(sample_rate, cutoff, transition_width)
        self.taps.setflags(write=False)

    @property
    def num_taps(self) -> int:
        return len(self.taps)

    @property
    def group_delay(self) -> int:
        """Filter delay in input samples."""
        return (self.num_taps - 1) // 2

    @property
    def output_rate(self) -> float:
        return self.sample_rate / self.decimation

    def output_length(self, input_length: int) -> int:
        return -(-input_length // self.decimation)

    def apply(self, samples: np.ndarray) -> np.ndarray:
        """Filter and decimate a block of samples.

        Parameters
        ----------
        samples : np.ndarray
            Complex or real input samples.

        Returns
        -------
        np.ndarray
            ``ceil(len(samples) / decimation)`` filtered samples at
            ``output_rate``.
        """
        samples = np.asarray(samples)
        n_out = self.output_length(len(samples))
        if n_out == 0:
            return samples[:0].copy()

        d = self.decimation
        delay = self.group_delay

        # Prepend zeros so that the full-rate convolution index
        # (m * d + delay) lands on the decimation grid used by upfirdn.
        pad = (-delay) % d
        if pad:
            samples = np.concatenate([np.zeros(pad, dtype=samples.dtype), samples])
        first = (delay + pad) // d

        out = upfirdn(self.taps, samples, up=1, down=d)
        return out[first:first + n_out]

    def __repr__(self):
        return (
            f"LowPassFilter(fs={self.sample_rate / 1e6:.4f} MSPS, "
            f"cutoff={self.cutoff / 1e3:.1f} kHz, taps={self.num_taps}, "
            f"decimation={self.decimation})"
        )
