"""Demodulator configuration."""

from dataclasses import asdict, dataclass, replace
from typing import Optional

from palbdemod.utils import constants as C


@dataclass(frozen=True)
class DemodulatorConfig:
    """Fixed settings of a ``PALBDemodulator`` instance.

    Carrier frequencies are offsets from the tuned centre frequency of the
    complex baseband stream. The raster geometry fields describe PAL-B and
    are validated rather than freely adjustable, except ``pixels_per_line``.
    """

    sample_rate: float = C.DEFAULT_SAMPLE_RATE
    video_carrier: float = C.VIDEO_CARRIER
    audio_carrier: float = C.AUDIO_CARRIER
    color_subcarrier: float = C.COLOR_SUBCARRIER

    lines_per_frame: int = C.LINES_PER_FRAME
    visible_lines: int = C.VISIBLE_LINES
    pixels_per_line: int = C.PIXELS_PER_LINE
    line_duration: float = C.LINE_DURATION
    field_duration: float = C.FIELD_DURATION

    video_bandwidth: float = C.VIDEO_BANDWIDTH
    video_transition: float = C.VIDEO_TRANSITION
    chroma_bandwidth: float = C.CHROMA_BANDWIDTH
    chroma_transition: float = C.CHROMA_TRANSITION

    audio_bandwidth: float = C.AUDIO_BANDWIDTH
    audio_transition: float = C.AUDIO_TRANSITION
    audio_deviation: float = C.AUDIO_DEVIATION
    audio_rate: int = C.AUDIO_RATE
    deemphasis: Optional[float] = C.DEEMPHASIS_TAU

    # Picture settings
    color: bool = True
    hue: float = 0.0
    saturation: float = 1.0
    pal_delay_line: bool = True
    x_offset: int = 0
    y_offset: int = 0

    def validate(self) -> 'DemodulatorConfig':
        """Raise ``ValueError`` for inconsistent settings; return self."""
        if self.sample_rate <= 0:
            raise ValueError(f"sample_rate must be positive, got {self.sample_rate}")

        nyquist = self.sample_rate / 2.0
        for name in ('video_carrier', 'audio_carrier'):
            value = getattr(self, name)
            if abs(value) >= nyquist:
                raise ValueError(
                    f"{name} {value:.6g} Hz is outside the +-{nyquist:.6g} Hz "
                    f"complex band"
                )
        if self.video_bandwidth <= self.color_subcarrier:
            raise ValueError(
                f"video_bandwidth {self.video_bandwidth:.6g} Hz must pass the colour "
                f"subcarrier at {self.color_subcarrier:.6g} Hz"
            )

        pal = {
            'lines_per_frame': C.LINES_PER_FRAME,
            'visible_lines': C.VISIBLE_LINES,
            'line_duration': C.LINE_DURATION,
            'field_duration': C.FIELD_DURATION,
        }
        for name, expected in pal.items():
            if getattr(self, name) != expected:
                raise ValueError(f"{name} must be {expected} for PAL-B, got {getattr(self, name)}")

        if self.pixels_per_line < 1:
            raise ValueError(f"pixels_per_line must be positive, got {self.pixels_per_line}")
        if self.audio_rate <= 0:
            raise ValueError(f"audio_rate must be positive, got {self.audio_rate}")
        if self.saturation < 0:
            raise ValueError(f"saturation must be non-negative, got {self.saturation}")
        return self

    def replace(self, **changes) -> 'DemodulatorConfig':
        return replace(self, **changes)

    def to_dict(self) -> dict:
        return asdict(self)
