"""Decoded frame value type and raster assembly."""

from dataclasses import dataclass, field as dataclass_field

import numpy as np

from palbdemod.utils.constants import AUDIO_RATE, PIXELS_PER_LINE, VISIBLE_LINES


@dataclass
class DecodedFrame:
    """One demodulated frame: RGB raster plus the sound of the same period.

    Quality problems are reported here rather than raised, so the caller
    can decide whether to show a degraded frame.
    """

    image: np.ndarray
    audio: np.ndarray
    audio_rate: int = AUDIO_RATE
    sync_acquired: bool = False
    sync_offset: int = 0
    field: int = 1
    color_detected: bool = False
    agc_gain: float = 1.0
    metadata: dict = dataclass_field(default_factory=dict)

    @property
    def width(self) -> int:
        return self.image.shape[1]

    @property
    def height(self) -> int:
        return self.image.shape[0]

    @property
    def audio_duration(self) -> float:
        return len(self.audio) / float(self.audio_rate)


class FrameAssembler:
    """Places decoded rows into the output raster.

    Parameters
    ----------
    visible_lines : int
        Raster height. Default 576.
    pixels_per_line : int
        Raster width. Default 720.
    x_offset : int
        Horizontal picture shift in pixels (positive = right). Default 0.
    y_offset : int
        Vertical picture shift in rows (positive = down). Default 0.
    """

    def __init__(
        self,
        visible_lines: int = VISIBLE_LINES,
        pixels_per_line: int = PIXELS_PER_LINE,
        x_offset: int = 0,
        y_offset: int = 0,
    ):
        self.visible_lines = visible_lines
        self.pixels_per_line = pixels_per_line
        self.x_offset = int(x_offset)
        self.y_offset = int(y_offset)

    def assemble(
        self,
        rows: np.ndarray,
        audio: np.ndarray,
        audio_rate: int = AUDIO_RATE,
        **metadata,
    ) -> DecodedFrame:
        """Build a ``DecodedFrame`` from decoded rows and audio.

        Parameters
        ----------
        rows : np.ndarray
            uint8 array (visible_lines, pixels_per_line, 3), top row first.
        audio : np.ndarray
            Demodulated sound. Not cross-checked against the picture.
        audio_rate : int
            Sample rate of ``audio``.
        **metadata
            ``DecodedFrame`` quality fields (sync_acquired, sync_offset,
            field, color_detected, agc_gain); anything else goes to
            ``DecodedFrame.metadata``.
        """
        expected = (self.visible_lines, self.pixels_per_line, 3)
        if rows.shape != expected:
            raise ValueError(f"expected rows of shape {expected}, got {rows.shape}")

        image = np.zeros(expected, dtype=np.uint8)
        src_y, dst_y = _overlap(self.visible_lines, self.y_offset)
        src_x, dst_x = _overlap(self.pixels_per_line, self.x_offset)
        image[dst_y, dst_x] = rows[src_y, src_x]

        known = {k: metadata.pop(k) for k in list(metadata)
                 if k in DecodedFrame.__dataclass_fields__}
        return DecodedFrame(
            image=image,
            audio=np.asarray(audio, dtype=np.float32),
            audio_rate=audio_rate,
            metadata=metadata,
            **known,
        )


def _overlap(size: int, offset: int) -> tuple:
    """Source and destination slices for a shift of ``offset`` along an axis."""
    if offset >= 0:
        return slice(0, max(0, size - offset)), slice(min(offset, size), size)
    return slice(min(-offset, size), size), slice(0, max(0, size + offset))
