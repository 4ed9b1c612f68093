"""Tests for the NCO frequency shifter."""

import numpy as np
import pytest

from palbdemod.demod.mixer import FrequencyShifter, frequency_shift


class TestFrequencyShifter:
    fs = 1e6

    def test_carrier_moved_to_dc(self):
        x = np.exp(2j * np.pi * 123e3 * np.arange(1000) / self.fs)
        y = FrequencyShifter(self.fs, -123e3).process(x)
        np.testing.assert_allclose(y, np.ones(1000), atol=1e-9)

    def test_shift_up_then_down_restores_input(self):
        rng = np.random.default_rng(1)
        x = rng.standard_normal(2048) + 1j * rng.standard_normal(2048)
        y = frequency_shift(frequency_shift(x, 250e3, self.fs), -250e3, self.fs)
        np.testing.assert_allclose(y, x, atol=1e-9)

    def test_phase_continues_across_chunks(self):
        shifter = FrequencyShifter(self.fs, 37e3)
        x = np.ones(1000, dtype=np.complex64)
        whole = shifter.process(x)
        parts = np.concatenate([
            shifter.process(x[:333]),
            shifter.process(x[333:], start_index=333),
        ])
        np.testing.assert_allclose(parts, whole, atol=1e-6)

    def test_output_has_unit_magnitude_oscillator(self):
        osc = FrequencyShifter(self.fs, 1e3, initial_phase=0.5).oscillator(100)
        np.testing.assert_allclose(np.abs(osc), 1.0)
        assert np.angle(osc[0]) == pytest.approx(0.5)

    def test_real_input_returns_complex(self):
        y = FrequencyShifter(self.fs, 10e3).process(np.ones(10))
        assert np.iscomplexobj(y)

    def test_phase_increment(self):
        shifter = FrequencyShifter(self.fs, 250e3)
        assert shifter.phase_increment == pytest.approx(np.pi / 2)

    def test_invalid_sample_rate(self):
        with pytest.raises(ValueError):
            FrequencyShifter(0.0, 1e3)
