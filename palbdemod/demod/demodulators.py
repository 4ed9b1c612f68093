"""Envelope (AM) and phase-difference (FM) demodulators."""

import numpy as np
from scipy.signal import lfilter, lfilter_zi

from palbdemod.utils.constants import AUDIO_DEVIATION, DEEMPHASIS_TAU


def am_demodulate(samples: np.ndarray) -> np.ndarray:
    """Envelope detector: |x| per sample.

    Recovers the composite video (luminance, sync and chroma) from the
    vision carrier once it has been shifted to DC and band-limited.
    """
    return np.abs(np.asarray(samples)).astype(np.float64)


def fm_demodulate(
    samples: np.ndarray,
    sample_rate: float,
    deviation: float = AUDIO_DEVIATION,
) -> np.ndarray:
    """Quadrature discriminator.

    y[n] = angle(x[n] * conj(x[n-1])) * fs / (2*pi*deviation)

    ``np.angle`` of the conjugate product already lies in (-pi, pi], so
    carrier phase wrap-around never produces a spike. A carrier at the
    full ``deviation`` maps to amplitude 1.0.

    Parameters
    ----------
    samples : np.ndarray
        Complex samples with the FM carrier at DC.
    sample_rate : float
        Sample rate in Hz.
    deviation : float
        Peak frequency deviation in Hz that maps to 1.0.

    Returns
    -------
    np.ndarray
        Real samples, same length as the input. The first sample has no
        predecessor and is 0.0.
    """
    if deviation <= 0:
        raise ValueError(f"deviation must be positive, got {deviation}")
    x = np.asarray(samples)
    out = np.zeros(len(x), dtype=np.float64)
    if len(x) < 2:
        return out

    prod = x[1:] * np.conj(x[:-1])
    out[1:] = np.angle(prod) * (sample_rate / (2.0 * np.pi * deviation))
    return out


def deemphasis_coefficients(sample_rate: float, tau: float) -> tuple:
    """One-pole de-emphasis (b, a) for time constant ``tau`` seconds."""
    alpha = 1.0 - np.exp(-1.0 / (tau * sample_rate))
    return np.array([alpha]), np.array([1.0, -(1.0 - alpha)])


class FMDemodulator:
    """FM sound demodulator with broadcast de-emphasis.

    Parameters
    ----------
    sample_rate : float
        Input sample rate in Hz.
    deviation : float
        Peak deviation in Hz. Default 50 kHz (PAL-B sound).
    deemphasis : float or None
        De-emphasis time constant in seconds. Default 50 us; None disables.
    """

    def __init__(
        self,
        sample_rate: float,
        deviation: float = AUDIO_DEVIATION,
        deemphasis: float = DEEMPHASIS_TAU,
    ):
        if deviation <= 0:
            raise ValueError(f"deviation must be positive, got {deviation}")
        self.sample_rate = sample_rate
        self.deviation = deviation
        self.deemphasis = deemphasis

        if deemphasis:
            self._b, self._a = deemphasis_coefficients(sample_rate, deemphasis)
        else:
            self._b, self._a = None, None

    def process(self, samples: np.ndarray) -> np.ndarray:
        """Demodulate a block of complex samples to normalized audio."""
        audio = fm_demodulate(samples, self.sample_rate, self.deviation)
        if len(audio) > 1:
            # The first sample has no predecessor; hold the second
            audio[0] = audio[1]
        if self._b is not None and len(audio):
            # Start the filter settled on the first sample to avoid a step
            zi = lfilter_zi(self._b, self._a) * audio[0]
            audio, _ = lfilter(self._b, self._a, audio, zi=zi)
        return audio
