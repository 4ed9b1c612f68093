"""Automatic Gain Control for the demodulated composite video."""

import numpy as np


class AGC:
    """Peak-tracking AGC with separate attack and decay rates.

    The signal is split into blocks (one scan line is a natural size). The
    peak magnitude of each block drives a tracker that rises with
    ``attack`` and falls with ``decay``; each block is scaled so that the
    tracked peak maps to ``target_level``.

    Parameters
    ----------
    target_level : float
        Output level for the tracked peak. Default 1.0.
    attack : float
        Tracker weight (0 to 1] for a block peak above the tracked value.
        Default 0.5.
    decay : float
        Tracker weight (0 to 1] for a block peak below the tracked value.
        Default 0.05.
    block_size : int
        Samples per gain update. Default 1024.
    """

    MIN_GAIN = 1e-6
    MAX_GAIN = 1e6

    def __init__(
        self,
        target_level: float = 1.0,
        attack: float = 0.5,
        decay: float = 0.05,
        block_size: int = 1024,
    ):
        if target_level <= 0:
            raise ValueError(f"target_level must be positive, got {target_level}")
        for name, value in (('attack', attack), ('decay', decay)):
            if not 0.0 < value <= 1.0:
                raise ValueError(f"{name} must lie in (0, 1], got {value}")
        if block_size < 1:
            raise ValueError(f"block_size must be positive, got {block_size}")

        self.target_level = target_level
        self.attack = attack
        self.decay = decay
        self.block_size = int(block_size)

    def _gain_for(self, peak: float) -> float:
        if peak <= 0:
            return self.MAX_GAIN
        return float(np.clip(self.target_level / peak, self.MIN_GAIN, self.MAX_GAIN))

    def gain_trajectory(self, samples: np.ndarray) -> np.ndarray:
        """Gain applied to each block of ``samples``."""
        samples = np.asarray(samples)
        n_blocks = -(-len(samples) // self.block_size)
        gains = np.empty(n_blocks, dtype=np.float64)

        tracked = None
        for i in range(n_blocks):
            block = samples[i * self.block_size:(i + 1) * self.block_size]
            peak = float(np.max(np.abs(block)))

            if tracked is None:
                tracked = peak
            else:
                weight = self.attack if peak > tracked else self.decay
                tracked += weight * (peak - tracked)

            gains[i] = self._gain_for(tracked)

        return gains

    def process(self, samples: np.ndarray) -> tuple:
        """Apply AGC to a block of samples.

        Parameters
        ----------
        samples : np.ndarray
            Input samples (complex or real).

        Returns
        -------
        out : np.ndarray
            Gain-adjusted samples.
        gains : np.ndarray
            Gain used for each ``block_size`` block.
        """
        samples = np.asarray(samples)
        gains = self.gain_trajectory(samples)
        per_sample = np.repeat(gains, self.block_size)[:len(samples)]
        return samples * per_sample, gains
