"""IQ sample conversion and file I/O.

Captures arrive either as native complex arrays or as interleaved I/Q
reals (int8 from HackRF, int16 from most other front ends); everything is
normalized to complex64 before demodulation.
"""

import numpy as np

# Full-scale values used to normalize integer captures to +-1.0
_INT_SCALE = {
    np.dtype(np.int8): 128.0,
    np.dtype(np.uint8): 128.0,
    np.dtype(np.int16): 32768.0,
}


def as_complex(samples) -> np.ndarray:
    """Return ``samples`` as a 1-D complex array.

    Complex input is returned unchanged (as a view when possible). Real
    input is treated as interleaved I, Q, I, Q, ... and must have an even
    length; integer types are scaled to +-1.0 (uint8 is offset binary, as
    written by RTL-SDR dongles).
    """
    samples = np.asarray(samples)
    if samples.ndim != 1:
        samples = samples.ravel()
    if np.iscomplexobj(samples):
        return samples

    if len(samples) % 2:
        raise ValueError(
            f"interleaved I/Q needs an even number of values, got {len(samples)}"
        )
    dtype = samples.dtype
    values = samples.astype(np.float32)
    if dtype == np.uint8:
        values -= 127.5
    scale = _INT_SCALE.get(dtype)
    if scale is not None:
        values /= scale
    return (values[0::2] + 1j * values[1::2]).astype(np.complex64)


def load_raw_iq(path: str, dtype: str = 'complex64', count: int = -1,
                offset: int = 0) -> np.ndarray:
    """Load raw IQ from a binary file.

    Parameters
    ----------
    path : str
        Path to raw binary IQ file.
    dtype : str
        'complex64' for float32 IQ (.fc32),
        'int16' for interleaved int16 IQ (.sc16),
        'int8' for interleaved int8 IQ (.cs8, HackRF),
        'uint8' for offset-binary IQ (.cu8, RTL-SDR).
    count : int
        Complex samples to read, -1 for the whole file.
    offset : int
        Complex samples to skip at the start of the file.
    """
    if dtype == 'complex64':
        return np.fromfile(path, dtype=np.complex64, count=count,
                           offset=offset * 8)
    if dtype in ('int16', 'int8', 'uint8'):
        item = np.dtype(dtype).itemsize
        raw = np.fromfile(path, dtype=dtype,
                          count=-1 if count < 0 else 2 * count,
                          offset=2 * offset * item)
        return as_complex(raw[:len(raw) - len(raw) % 2])
    raise ValueError(f"Unsupported dtype: {dtype}")


def save_npz(samples: np.ndarray, path: str, metadata: dict = None):
    """Save IQ samples to a .npz file.

    Parameters
    ----------
    samples : np.ndarray
        Complex IQ samples.
    path : str
        Output file path (.npz).
    metadata : dict, optional
        Additional metadata (sample_rate, center_freq, etc.).
    """
    save_dict = {'samples': np.asarray(samples)}
    if metadata is not None:
        for k, v in metadata.items():
            save_dict[f'meta_{k}'] = np.array(v)
    np.savez_compressed(path, **save_dict)


def load_npz(path: str) -> tuple:
    """Load IQ samples from a .npz file.

    Returns
    -------
    samples : np.ndarray
        Complex IQ samples.
    metadata : dict
        Any saved metadata.
    """
    with np.load(path, allow_pickle=False) as data:
        samples = data['samples']
        metadata = {}
        for key in data.files:
            if key.startswith('meta_'):
                metadata[key[5:]] = data[key].item()
    return as_complex(samples), metadata
