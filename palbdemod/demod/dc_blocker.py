"""DC offset removal for the demodulated composite video."""

import numpy as np


class DCBlocker:
    """Block DC blocker.

    Subtracts the mean of each buffer. A decoded buffer spans at least a
    frame, so its mean is a stable estimate of the envelope offset and no
    state is carried between calls.
    """

    def process(self, samples: np.ndarray) -> np.ndarray:
        """Remove the DC offset from a block of samples.

        Parameters
        ----------
        samples : np.ndarray
            Input samples (complex or real).

        Returns
        -------
        np.ndarray
            Zero-mean samples.
        """
        samples = np.asarray(samples)
        if len(samples) == 0:
            return samples.copy()
        return samples - np.mean(samples)
