"""FM sound channel demodulation.

The sound carrier is shifted to DC, channel-filtered and decimated to an
intermediate rate in one FIR pass, FM-demodulated with de-emphasis, then
rationally resampled to the output audio rate.
"""

import logging
from fractions import Fraction
from math import gcd

import numpy as np
from scipy.signal import resample_poly

from palbdemod.demod.demodulators import FMDemodulator
from palbdemod.demod.lowpass import LowPassFilter
from palbdemod.demod.mixer import FrequencyShifter
from palbdemod.utils.constants import (
    AUDIO_BANDWIDTH,
    AUDIO_CARRIER,
    AUDIO_DEVIATION,
    AUDIO_INTERMEDIATE_RATE,
    AUDIO_RATE,
    AUDIO_TRANSITION,
    DEEMPHASIS_TAU,
)

logger = logging.getLogger(__name__)

# Largest up/down factor accepted for resample_poly
MAX_RATIO_TERM = 1000


def resampling_plan(sample_rate: float, audio_rate: int,
                    intermediate_rate: float = AUDIO_INTERMEDIATE_RATE) -> tuple:
    """Channel decimation and resampling ratio for the sound branch.

    Decimations are tried from the one nearest ``intermediate_rate`` (from
    above) down to half of it. The first whose exact ratio
    ``audio_rate * decimation / sample_rate`` reduces to terms of at most
    ``MAX_RATIO_TERM`` wins, so the output runs at exactly ``audio_rate``.
    16 MSPS, for example, decimates by 62 and resamples by 93/500.

    When no decimation gives an exact ratio, the nominal one is kept and
    the ratio is taken from the rates rounded to kHz; the output rate is
    then off by a fraction of a percent.

    Returns
    -------
    tuple
        ``(decimation, up, down, exact)``
    """
    nominal = max(1, int(sample_rate // intermediate_rate))
    fs = Fraction(sample_rate).limit_denominator(MAX_RATIO_TERM)
    for decimation in range(nominal, max(1, nominal // 2) - 1, -1):
        ratio = Fraction(int(audio_rate)) * decimation / fs
        if max(ratio.numerator, ratio.denominator) <= MAX_RATIO_TERM:
            return decimation, ratio.numerator, ratio.denominator, True

    in_khz = max(1, int(round(sample_rate / nominal / 1000)))
    out_khz = max(1, int(round(audio_rate / 1000)))
    g = gcd(in_khz, out_khz)
    return nominal, out_khz // g, in_khz // g, False


class AudioDemodulator:
    """Recovers the FM sound carrier as normalized audio.

    Parameters
    ----------
    sample_rate : float
        Complex input sample rate in Hz.
    carrier : float
        Sound carrier offset in Hz. Default 5.74 MHz.
    bandwidth : float
        Channel filter cutoff in Hz. Default 100 kHz.
    transition_width : float
        Channel filter transition width in Hz. Default 50 kHz.
    deviation : float
        Peak deviation mapped to amplitude 1.0. Default 50 kHz.
    audio_rate : int
        Output sample rate in Hz. Default 48000.
    deemphasis : float or None
        De-emphasis time constant in seconds. Default 50 us.
    intermediate_rate : float
        Target rate after the channel filter. The actual rate is
        ``sample_rate / decimation`` with the decimation chosen by
        ``resampling_plan``. Default 256 kHz.
    """

    def __init__(
        self,
        sample_rate: float,
        carrier: float = AUDIO_CARRIER,
        bandwidth: float = AUDIO_BANDWIDTH,
        transition_width: float = AUDIO_TRANSITION,
        deviation: float = AUDIO_DEVIATION,
        audio_rate: int = AUDIO_RATE,
        deemphasis: float = DEEMPHASIS_TAU,
        intermediate_rate: float = AUDIO_INTERMEDIATE_RATE,
    ):
        if audio_rate <= 0:
            raise ValueError(f"audio_rate must be positive, got {audio_rate}")

        self.sample_rate = sample_rate
        self.carrier = carrier
        self.audio_rate = int(audio_rate)

        decimation, self.up, self.down, exact = resampling_plan(
            sample_rate, self.audio_rate, intermediate_rate)
        self.shifter = FrequencyShifter(sample_rate, -carrier)
        self.channel_filter = LowPassFilter(sample_rate, bandwidth, transition_width,
                                            decimation=decimation)
        self.fm = FMDemodulator(self.channel_filter.output_rate, deviation, deemphasis)
        if not exact:
            logger.warning(
                "no exact resampling ratio from %.0f Hz; audio runs at %.3f Hz",
                sample_rate, self.actual_audio_rate,
            )

    @property
    def intermediate_rate(self) -> float:
        return self.channel_filter.output_rate

    @property
    def actual_audio_rate(self) -> float:
        """Output rate implied by the rational resampling ratio."""
        return self.intermediate_rate * self.up / self.down

    @property
    def output_rate(self) -> int:
        """``actual_audio_rate`` rounded to whole Hz, for WAV headers."""
        return int(round(self.actual_audio_rate))

    def process(self, samples: np.ndarray) -> np.ndarray:
        """Demodulate the sound carrier in a block of complex samples.

        Returns
        -------
        np.ndarray
            float32 audio at ``output_rate``, full deviation = 1.0.
        """
        baseband = self.channel_filter.apply(self.shifter.process(samples))
        audio = self.fm.process(baseband)
        if len(audio) == 0:
            return np.zeros(0, dtype=np.float32)
        if self.up != self.down:
            audio = resample_poly(audio, self.up, self.down)
        return audio.astype(np.float32)

    def __repr__(self):
        return (
            f"AudioDemodulator(carrier={self.carrier / 1e6:.4f} MHz, "
            f"if={self.intermediate_rate / 1e3:.2f} kHz, "
            f"audio={self.audio_rate} Hz, ratio={self.up}/{self.down})"
        )
