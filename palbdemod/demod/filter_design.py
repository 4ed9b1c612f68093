"""Windowed-sinc low-pass FIR design.

Every band-limiting step in the receiver (video channel filter, chroma
band isolation, audio channel filter) uses taps from this module, so the
whole pipeline shares one linear-phase filtering strategy.
"""

import math

import numpy as np
from scipy.signal import firwin

from palbdemod.utils.constants import HAMMING_TRANSITION_FACTOR, MIN_FIR_TAPS


def estimate_num_taps(sample_rate: float, transition_width: float) -> int:
    """Hamming-window tap count for a given transition bandwidth.

    The Hamming main lobe is about 3.3 / N of the sample rate wide, which
    gives roughly 53 dB of stopband attenuation. The result is odd and at
    least ``MIN_FIR_TAPS``.
    """
    num_taps = int(math.ceil(HAMMING_TRANSITION_FACTOR * sample_rate / transition_width))
    if num_taps % 2 == 0:
        num_taps += 1
    return max(num_taps, MIN_FIR_TAPS)


def design_lowpass(
    sample_rate: float,
    cutoff: float,
    transition_width: float,
) -> np.ndarray:
    """Design a linear-phase low-pass FIR filter.

    Parameters
    ----------
    sample_rate : float
        Sample rate in Hz.
    cutoff : float
        -6 dB cutoff frequency in Hz. Must be below Nyquist.
    transition_width : float
        Width of the transition band in Hz. Sets the filter length.

    Returns
    -------
    np.ndarray
        Odd-length float64 taps, normalized to unity gain at DC.

    Raises
    ------
    ValueError
        If any parameter is non-positive or the cutoff is not below Nyquist.
    """
    if sample_rate <= 0:
        raise ValueError(f"sample_rate must be positive, got {sample_rate}")
    if transition_width <= 0:
        raise ValueError(f"transition_width must be positive, got {transition_width}")
    nyquist = sample_rate / 2.0
    if cutoff <= 0 or cutoff >= nyquist:
        raise ValueError(
            f"cutoff {cutoff:.6g} Hz must lie in (0, {nyquist:.6g}) Hz "
            f"for sample rate {sample_rate:.6g} Hz"
        )

    num_taps = estimate_num_taps(sample_rate, transition_width)
    taps = firwin(num_taps, cutoff, window='hamming', fs=sample_rate)

    # firwin scales for unity DC gain already; renormalize to remove rounding
    taps /= np.sum(taps)
    return taps
