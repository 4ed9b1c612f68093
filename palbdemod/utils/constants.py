"""PAL-B broadcast constants and receiver defaults."""

import numpy as np

# ---------------------------------------------------------------------------
# Receiver front end
# ---------------------------------------------------------------------------
DEFAULT_SAMPLE_RATE = 16e6          # HackRF-class complex baseband rate

VIDEO_CARRIER = 5.5e6
AUDIO_CARRIER = 5.74e6
COLOR_SUBCARRIER = 4.43361875e6

# ---------------------------------------------------------------------------
# Raster timing (ITU-R BT.470, system B)
# ---------------------------------------------------------------------------
LINES_PER_FRAME = 625
LINES_PER_FIELD = LINES_PER_FRAME / 2.0     # 312.5
VISIBLE_LINES = 576
VISIBLE_LINES_PER_FIELD = VISIBLE_LINES // 2
PIXELS_PER_LINE = 720
LINE_DURATION = 64e-6
FIELD_DURATION = 0.02
FRAME_DURATION = 2 * FIELD_DURATION

# First visible line of each field (1-based frame line numbers)
FIELD1_FIRST_VISIBLE = 23
FIELD2_FIRST_VISIBLE = 336

# Offsets from the leading edge of horizontal sync (0H)
HSYNC_DURATION = 4.7e-6
BURST_START = 5.6e-6
BURST_CYCLES = 10
BURST_DURATION = BURST_CYCLES / COLOR_SUBCARRIER
BACK_PORCH_END = 10.5e-6
ACTIVE_START = 10.5e-6
ACTIVE_DURATION = 52e-6

# Vertical sync pulse train
EQUALIZING_PULSE_DURATION = 2.35e-6
BROAD_PULSE_DURATION = LINE_DURATION / 2.0 - HSYNC_DURATION    # 27.3 us

# Composite levels, normalized so sync tip = 0.0 and peak white = 1.0
SYNC_LEVEL = 0.0
BLANK_LEVEL = 0.3
WHITE_LEVEL = 1.0
VIDEO_RANGE = WHITE_LEVEL - BLANK_LEVEL         # 0.7
SYNC_AMPLITUDE = BLANK_LEVEL - SYNC_LEVEL       # 0.3
BURST_AMPLITUDE = 0.15                          # peak, relative to the levels above

# Burst phase on lines with non-inverted V (PAL switch +1), in the U/V plane
BURST_PHASE = np.deg2rad(135.0)

# ---------------------------------------------------------------------------
# Filter and demodulator defaults
# ---------------------------------------------------------------------------
VIDEO_BANDWIDTH = 5.5e6
VIDEO_TRANSITION = 1.0e6
CHROMA_BANDWIDTH = 1.3e6
CHROMA_TRANSITION = 0.5e6

AUDIO_BANDWIDTH = 100e3
AUDIO_TRANSITION = 50e3
AUDIO_DEVIATION = 50e3
AUDIO_INTERMEDIATE_RATE = 256e3
AUDIO_RATE = 48000
DEEMPHASIS_TAU = 50e-6

# Minimum practical FIR length and the Hamming window length factor
MIN_FIR_TAPS = 3
HAMMING_TRANSITION_FACTOR = 3.3

# YUV -> RGB (BT.601, analog PAL)
YUV_TO_RGB = np.array([
    [1.0,  0.000,  1.140],
    [1.0, -0.395, -0.581],
    [1.0,  2.032,  0.000],
])


def line_samples(sample_rate: float, line_duration: float = LINE_DURATION) -> float:
    """Samples per scan line at the given rate (may be fractional)."""
    return sample_rate * line_duration


def field_samples(sample_rate: float) -> float:
    """Samples per field at the given rate."""
    return sample_rate * FIELD_DURATION


def visible_frame_lines() -> np.ndarray:
    """1-based frame line numbers of the visible raster rows, top to bottom.

    Rows interleave the two fields: even rows come from field 1
    (lines 23..310), odd rows from field 2 (lines 336..623).
    """
    rows = np.empty(VISIBLE_LINES, dtype=np.int64)
    rows[0::2] = np.arange(FIELD1_FIRST_VISIBLE,
                           FIELD1_FIRST_VISIBLE + VISIBLE_LINES_PER_FIELD)
    rows[1::2] = np.arange(FIELD2_FIRST_VISIBLE,
                           FIELD2_FIRST_VISIBLE + VISIBLE_LINES_PER_FIELD)
    return rows
