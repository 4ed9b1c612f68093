"""Complex frequency translation (digital down-conversion mixer).

A numerically controlled oscillator multiplies the input by
exp(j * 2*pi * f * n / fs). Used to bring the vision carrier, the sound
carrier and the colour subcarrier to DC.
"""

import numpy as np


class FrequencyShifter:
    """Rotate a signal by a fixed frequency offset.

    The oscillator phase is derived from the absolute sample index, so it
    advances continuously across the buffer and does not drift from
    accumulated rounding. The shifter holds no state between calls; pass
    ``start_index`` to continue the phase of a previous chunk.

    Parameters
    ----------
    sample_rate : float
        Sample rate in Hz.
    shift_freq : float
        Frequency shift in Hz. Negative moves a carrier at +f down to DC.
    initial_phase : float
        Oscillator phase at sample index 0, in radians. Default 0.
    """

    def __init__(
        self,
        sample_rate: float,
        shift_freq: float,
        initial_phase: float = 0.0,
    ):
        if sample_rate <= 0:
            raise ValueError(f"sample_rate must be positive, got {sample_rate}")
        self.sample_rate = sample_rate
        self.shift_freq = shift_freq
        self.initial_phase = initial_phase

    @property
    def phase_increment(self) -> float:
        """NCO phase step in radians/sample."""
        return 2.0 * np.pi * self.shift_freq / self.sample_rate

    def oscillator(self, num_samples: int, start_index: int = 0) -> np.ndarray:
        """Unit-magnitude complex exponential for ``num_samples`` samples."""
        n = np.arange(start_index, start_index + num_samples, dtype=np.float64)
        phase = self.initial_phase + self.phase_increment * n
        return np.exp(1j * phase)

    def process(self, samples: np.ndarray, start_index: int = 0) -> np.ndarray:
        """Frequency-shift a block of samples.

        Parameters
        ----------
        samples : np.ndarray
            Complex or real input samples.
        start_index : int
            Absolute index of ``samples[0]`` in the stream. Default 0.

        Returns
        -------
        np.ndarray
            Complex shifted samples, same length as the input.
        """
        samples = np.asarray(samples)
        return samples * self.oscillator(len(samples), start_index)

    def __repr__(self):
        return (
            f"FrequencyShifter(fs={self.sample_rate / 1e6:.4f} MSPS, "
            f"shift={self.shift_freq / 1e6:+.6f} MHz)"
        )


def frequency_shift(
    samples: np.ndarray,
    shift_freq: float,
    sample_rate: float,
) -> np.ndarray:
    """Shift ``samples`` by ``shift_freq`` Hz (positive = up)."""
    return FrequencyShifter(sample_rate, shift_freq).process(samples)
