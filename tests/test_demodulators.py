"""Tests for the AM envelope and FM discriminator."""

import numpy as np
import pytest

from palbdemod.demod.demodulators import (
    FMDemodulator,
    am_demodulate,
    deemphasis_coefficients,
    fm_demodulate,
)
from palbdemod.demod.lowpass import LowPassFilter
from palbdemod.demod.mixer import FrequencyShifter


def _fm(message, fs, deviation):
    return np.exp(2j * np.pi * deviation * np.cumsum(message) / fs)


class TestAMDemodulate:
    def test_envelope_independent_of_carrier_phase(self):
        n = np.arange(5000)
        envelope = 0.5 + 0.4 * np.sin(2 * np.pi * n / 500)
        x = envelope * np.exp(1j * (0.3 + 0.01 * n))
        np.testing.assert_allclose(am_demodulate(x), envelope, atol=1e-12)

    def test_returns_real_float(self):
        out = am_demodulate(np.array([3 + 4j, -1j], dtype=np.complex64))
        assert out.dtype == np.float64
        np.testing.assert_allclose(out, [5.0, 1.0], atol=1e-6)

    def test_sine_modulated_carrier_after_shift_and_filter(self):
        fs, carrier = 16e6, -2e6
        n = np.arange(50000)
        message = 0.3 * np.sin(2 * np.pi * 200e3 * n / fs)
        x = (0.5 + message) * np.exp(2j * np.pi * carrier * n / fs + 0.7j)
        # Sound carrier 7 MHz away lands in the filter stopband
        x = x + 0.2 * np.exp(2j * np.pi * 5e6 * n / fs)

        shifted = FrequencyShifter(fs, -carrier).process(x)
        envelope = am_demodulate(LowPassFilter(fs, 5.5e6, 1e6).apply(shifted))

        recovered = envelope[200:-200] - 0.5
        error = recovered - message[200:-200]
        rms = np.sqrt(np.mean(message ** 2))
        assert np.sqrt(np.mean(error ** 2)) < 0.05 * rms


class TestFMDemodulate:
    fs = 1e6

    def test_constant_frequency(self):
        x = np.exp(2j * np.pi * 100e3 * np.arange(1000) / self.fs)
        out = fm_demodulate(x, self.fs, deviation=50e3)
        assert out[0] == 0.0
        np.testing.assert_allclose(out[1:], 2.0, atol=1e-9)

    def test_no_spikes_at_phase_wrap(self):
        # 0.8*pi per sample: the carrier phase wraps every few samples
        x = np.exp(2j * np.pi * 400e3 * np.arange(1000) / self.fs)
        out = fm_demodulate(x, self.fs, deviation=100e3)
        assert np.max(np.abs(out[1:] - 4.0)) < 1e-9

    def test_recovers_tone(self):
        n = np.arange(20000)
        message = 0.8 * np.sin(2 * np.pi * 1e3 * n / self.fs)
        out = fm_demodulate(_fm(message, self.fs, 50e3), self.fs, deviation=50e3)
        # Phase difference measures the frequency between two samples
        np.testing.assert_allclose(out[1:], message[1:], atol=0.01)

    def test_short_input(self):
        assert len(fm_demodulate(np.zeros(0, dtype=complex), self.fs)) == 0
        np.testing.assert_array_equal(fm_demodulate(np.ones(1, dtype=complex), self.fs), [0.0])

    def test_invalid_deviation(self):
        with pytest.raises(ValueError):
            fm_demodulate(np.ones(4, dtype=complex), self.fs, deviation=0)


class TestFMDemodulator:
    fs = 256e3

    def test_deemphasis_unity_dc_gain(self):
        b, a = deemphasis_coefficients(self.fs, 50e-6)
        assert np.sum(b) / np.sum(a) == pytest.approx(1.0)

    def test_constant_deviation_passes_without_step(self):
        x = np.exp(2j * np.pi * 25e3 * np.arange(2000) / self.fs)
        out = FMDemodulator(self.fs, deviation=50e3).process(x)
        # Seeded filter state: no start-up transient
        np.testing.assert_allclose(out, 0.5, atol=1e-6)

    def test_deemphasis_attenuates_high_frequencies(self):
        n = np.arange(int(self.fs * 0.05))
        low = 0.5 * np.sin(2 * np.pi * 500 * n / self.fs)
        high = 0.5 * np.sin(2 * np.pi * 15e3 * n / self.fs)

        demod = FMDemodulator(self.fs, deviation=50e3)
        flat = FMDemodulator(self.fs, deviation=50e3, deemphasis=None)

        def ratio(message):
            x = _fm(message, self.fs, 50e3)
            a = demod.process(x)[1000:]
            b = flat.process(x)[1000:]
            return np.std(a) / np.std(b)

        assert ratio(low) > 0.95
        # 50 us corner at 3.2 kHz: about -13.7 dB at 15 kHz
        assert ratio(high) < 0.3
