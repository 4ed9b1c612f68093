"""Shared pytest fixtures: synthetic PAL-B composite video and RF captures."""

import numpy as np
import pytest
from scipy.signal import firwin

from palbdemod.utils.constants import (
    ACTIVE_DURATION,
    ACTIVE_START,
    BLANK_LEVEL,
    BROAD_PULSE_DURATION,
    BURST_AMPLITUDE,
    BURST_DURATION,
    BURST_PHASE,
    BURST_START,
    COLOR_SUBCARRIER,
    EQUALIZING_PULSE_DURATION,
    HSYNC_DURATION,
    LINE_DURATION,
    LINES_PER_FRAME,
    SYNC_LEVEL,
    VIDEO_RANGE,
)

# 16 MSPS gives exactly 1024 samples per line
TEST_SAMPLE_RATE = 16e6
# Carrier layout used by the RF tests: vision and sound far enough apart
# that the video sidebands stay clear of the sound channel
TEST_VIDEO_CARRIER = -2.0e6
TEST_AUDIO_CARRIER = 5.0e6

# 75% colour bars, left to right
BARS_75 = [
    (0.75, 0.75, 0.75),     # white
    (0.75, 0.75, 0.00),     # yellow
    (0.00, 0.75, 0.75),     # cyan
    (0.00, 0.75, 0.00),     # green
    (0.75, 0.00, 0.75),     # magenta
    (0.75, 0.00, 0.00),     # red
    (0.00, 0.00, 0.75),     # blue
    (0.00, 0.00, 0.00),     # black
]

# Half-line positions (frame line numbers) of the vertical sync pulses
BROAD_PULSES = {1.0, 1.5, 2.0, 2.5, 3.0, 313.5, 314.0, 314.5, 315.0, 315.5}
EQUALIZING_PULSES = {
    623.5, 624.0, 624.5, 625.0, 625.5, 3.5, 4.0, 4.5, 5.0, 5.5,
    311.0, 311.5, 312.0, 312.5, 313.0, 316.0, 316.5, 317.0, 317.5, 318.0,
}

# Full-white VBI lines (stand-ins for test signals that must not reach the picture)
VBI_WHITE_LINES = set(range(7, 23)) | set(range(320, 336))


def is_visible(line: int) -> bool:
    return 23 <= line <= 310 or 336 <= line <= 623


def _bar_yuv(t: np.ndarray, bars) -> tuple:
    """Y, U, V of the bar pattern over a line (zero outside active video)."""
    active = (t >= ACTIVE_START) & (t < ACTIVE_START + ACTIVE_DURATION)
    index = np.clip(((t - ACTIVE_START) / (ACTIVE_DURATION / len(bars))).astype(int),
                    0, len(bars) - 1)
    rgb = np.asarray(bars, dtype=np.float64)[index]
    r, g, b = rgb[:, 0], rgb[:, 1], rgb[:, 2]
    y = 0.299 * r + 0.587 * g + 0.114 * b
    u = 0.492 * (b - y)
    v = 0.877 * (r - y)
    return y * active, u * active, v * active


def make_composite(
    num_lines: int,
    start_line: int = 1,
    sample_rate: float = TEST_SAMPLE_RATE,
    color: bool = True,
    vsync: bool = True,
    bars=BARS_75,
) -> np.ndarray:
    """PAL-B composite video, sync tip 0.0, blanking 0.3, peak white 1.0.

    ``start_line`` is the frame line number (1..625) at sample 0. The V
    switch alternates every line in time and the subcarrier phase runs
    continuously from sample 0.
    """
    L = int(round(sample_rate * LINE_DURATION))
    t = np.arange(L) / sample_rate
    half = L // 2
    hsync_n = int(round(HSYNC_DURATION * sample_rate))
    broad_n = int(round(BROAD_PULSE_DURATION * sample_rate))
    eq_n = int(round(EQUALIZING_PULSE_DURATION * sample_rate))

    y, u, v = _bar_yuv(t, bars)
    active = (t >= ACTIVE_START) & (t < ACTIVE_START + ACTIVE_DURATION)
    burst_gate = (t >= BURST_START) & (t < BURST_START + BURST_DURATION)
    burst_u = BURST_AMPLITUDE * np.cos(BURST_PHASE)
    burst_v = BURST_AMPLITUDE * np.sin(BURST_PHASE)

    omega = 2 * np.pi * COLOR_SUBCARRIER / sample_rate
    n = np.arange(num_lines * L, dtype=np.float64)
    sin_wt = np.sin(omega * n)
    cos_wt = np.cos(omega * n)

    out = np.empty(num_lines * L)
    for i in range(num_lines):
        ln = (start_line - 1 + i) % LINES_PER_FRAME + 1
        s = 1.0 if i % 2 == 0 else -1.0
        seg = slice(i * L, (i + 1) * L)
        sin_l, cos_l = sin_wt[seg], cos_wt[seg]

        line = np.full(L, BLANK_LEVEL)
        halves = (float(ln), ln + 0.5)
        special = vsync and any(p in BROAD_PULSES or p in EQUALIZING_PULSES for p in halves)
        if special:
            for h, p in enumerate(halves):
                h0 = h * half
                if p in BROAD_PULSES:
                    line[h0:h0 + broad_n] = SYNC_LEVEL
                elif p in EQUALIZING_PULSES:
                    line[h0:h0 + eq_n] = SYNC_LEVEL
                elif h == 0:
                    line[:hsync_n] = SYNC_LEVEL
        else:
            line[:hsync_n] = SYNC_LEVEL
            if is_visible(ln):
                line += VIDEO_RANGE * y
                if color:
                    line += VIDEO_RANGE * (u * sin_l + s * v * cos_l)
            elif ln in VBI_WHITE_LINES:
                line[active] += VIDEO_RANGE
            if color:
                line[burst_gate] += (burst_u * sin_l + s * burst_v * cos_l)[burst_gate]
        out[seg] = line

    # Band-limit like a broadcast video path
    taps = firwin(63, 5.0e6, fs=sample_rate)
    return np.convolve(out, taps, mode='same')


def make_fm_tone(num_samples: int, sample_rate: float, frequency: float = 1000.0,
                 amplitude: float = 0.5) -> np.ndarray:
    t = np.arange(num_samples) / sample_rate
    return amplitude * np.sin(2 * np.pi * frequency * t)


def modulate(
    composite: np.ndarray,
    sample_rate: float = TEST_SAMPLE_RATE,
    video_carrier: float = TEST_VIDEO_CARRIER,
    audio: np.ndarray = None,
    audio_carrier: float = TEST_AUDIO_CARRIER,
    audio_level: float = 0.2,
    deviation: float = 50e3,
) -> np.ndarray:
    """Complex baseband capture: AM vision carrier plus FM sound carrier."""
    n = np.arange(len(composite), dtype=np.float64)
    envelope = 0.1 + 0.9 * composite
    iq = envelope * np.exp(2j * np.pi * video_carrier * n / sample_rate)
    if audio is not None:
        phase = 2 * np.pi * deviation * np.cumsum(audio) / sample_rate
        iq = iq + audio_level * np.exp(1j * (2 * np.pi * audio_carrier * n / sample_rate + phase))
    return iq.astype(np.complex64)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def sample_rate() -> float:
    return TEST_SAMPLE_RATE


@pytest.fixture
def line_samples() -> int:
    return int(round(TEST_SAMPLE_RATE * LINE_DURATION))


@pytest.fixture(scope='session')
def generate_composite():
    """Factory for synthetic PAL composite video (see ``make_composite``)."""
    return make_composite


@pytest.fixture
def generate_fm_tone():
    return make_fm_tone


@pytest.fixture
def generate_capture():
    """Factory for complex captures (see ``modulate``)."""
    return modulate


@pytest.fixture
def bar_medians():
    """Median RGB of the centre of each colour bar, over rows 100..475."""
    def _measure(image: np.ndarray) -> np.ndarray:
        width = image.shape[1] // len(BARS_75)
        medians = []
        for i in range(len(BARS_75)):
            lo = i * width + int(0.4 * width)
            hi = i * width + int(0.6 * width)
            region = image[100:476, lo:hi].reshape(-1, 3)
            medians.append(np.median(region, axis=0))
        return np.array(medians)

    return _measure


@pytest.fixture
def expected_bars() -> np.ndarray:
    return np.rint(255 * np.array(BARS_75))


@pytest.fixture(scope='session')
def bars_capture() -> np.ndarray:
    """1.5 frames of colour bars with a 1 kHz tone, starting at line 400."""
    composite = make_composite(937, start_line=400)
    tone = make_fm_tone(len(composite), TEST_SAMPLE_RATE)
    return modulate(composite, audio=tone)


@pytest.fixture(scope='session')
def bars_frame(bars_capture):
    """``bars_capture`` decoded once for the whole session."""
    from palbdemod import PALBDemodulator

    demod = PALBDemodulator(
        sample_rate=TEST_SAMPLE_RATE,
        video_carrier=TEST_VIDEO_CARRIER,
        audio_carrier=TEST_AUDIO_CARRIER,
    )
    return demod.demodulate(bars_capture)
