"""Tests for IQ conversion and capture files."""

import numpy as np
import pytest

from palbdemod.utils.iq import as_complex, load_npz, load_raw_iq, save_npz


class TestAsComplex:
    def test_complex_passthrough(self):
        x = np.array([1 + 2j, 3 - 4j], dtype=np.complex64)
        assert as_complex(x) is x

    def test_interleaved_float(self):
        out = as_complex(np.array([0.5, -0.25, 1.0, 0.0], dtype=np.float32))
        assert out.dtype == np.complex64
        np.testing.assert_allclose(out, [0.5 - 0.25j, 1.0 + 0.0j])

    def test_int8_scaled(self):
        out = as_complex(np.array([64, -128, 0, 127], dtype=np.int8))
        np.testing.assert_allclose(out, [0.5 - 1.0j, 127 / 128 * 1j], atol=1e-6)

    def test_int16_scaled(self):
        out = as_complex(np.array([16384, -32768], dtype=np.int16))
        np.testing.assert_allclose(out, [0.5 - 1.0j])

    def test_uint8_offset_binary(self):
        out = as_complex(np.array([255, 0, 128, 127], dtype=np.uint8))
        expected = [(127.5 - 127.5j) / 128, (0.5 - 0.5j) / 128]
        np.testing.assert_allclose(out, expected, atol=1e-6)

    def test_odd_length_rejected(self):
        with pytest.raises(ValueError):
            as_complex(np.zeros(3, dtype=np.int8))


class TestFiles:
    def test_raw_complex64(self, tmp_path):
        x = (np.arange(10) + 1j * np.arange(10)).astype(np.complex64)
        path = tmp_path / 'capture.fc32'
        x.tofile(path)
        np.testing.assert_array_equal(load_raw_iq(str(path)), x)
        np.testing.assert_array_equal(load_raw_iq(str(path), count=3, offset=2), x[2:5])

    def test_raw_int16(self, tmp_path):
        path = tmp_path / 'capture.sc16'
        np.array([16384, 0, 0, -16384, 8192, 8192], dtype=np.int16).tofile(path)
        out = load_raw_iq(str(path), dtype='int16', count=2, offset=1)
        np.testing.assert_allclose(out, [-0.5j, 0.25 + 0.25j])

    def test_raw_unknown_format(self, tmp_path):
        with pytest.raises(ValueError):
            load_raw_iq(str(tmp_path / 'x'), dtype='float16')

    def test_npz_with_metadata(self, tmp_path):
        x = np.exp(1j * np.linspace(0, 3, 50)).astype(np.complex64)
        path = str(tmp_path / 'capture.npz')
        save_npz(x, path, metadata={'sample_rate': 16e6, 'center_freq': 55.25e6})
        samples, meta = load_npz(path)
        np.testing.assert_array_equal(samples, x)
        assert meta == {'sample_rate': 16e6, 'center_freq': 55.25e6}

    def test_npz_without_metadata(self, tmp_path):
        path = str(tmp_path / 'plain.npz')
        save_npz(np.zeros(4, dtype=np.complex64), path)
        samples, meta = load_npz(path)
        assert len(samples) == 4
        assert meta == {}
