"""Full PAL-B demodulation chain orchestrator.

Wires together the receiver blocks in order and manages the data flow
from a complex baseband buffer through to a decoded frame:

    video: shift -> low-pass -> envelope -> DC block -> AGC -> vertical sync
           -> line timing -> colour decode -> raster
    audio: shift -> low-pass/decimate -> FM discriminator -> resample
"""

import logging

import numpy as np

from palbdemod.config import DemodulatorConfig
from palbdemod.demod.agc import AGC
from palbdemod.demod.audio import AudioDemodulator
from palbdemod.demod.color_decoder import ColorDecoder
from palbdemod.demod.dc_blocker import DCBlocker
from palbdemod.demod.demodulators import am_demodulate
from palbdemod.demod.field_sync import VerticalSyncDetector
from palbdemod.demod.frame import DecodedFrame, FrameAssembler
from palbdemod.demod.lowpass import LowPassFilter
from palbdemod.demod.mixer import FrequencyShifter
from palbdemod.demod.timing_recovery import LineTiming, remove_vbi
from palbdemod.utils.iq import as_complex

logger = logging.getLogger(__name__)


class PALBDemodulator:
    """Complete PAL-B demodulation chain.

    Decodes one self-contained buffer per call. The instance holds only
    configuration and filter taps, so concurrent calls on different
    buffers are safe.

    Parameters
    ----------
    config : DemodulatorConfig, optional
        Receiver settings. Default ``DemodulatorConfig()``.
    **overrides
        Individual ``DemodulatorConfig`` fields, e.g. ``sample_rate=20e6``.
    """

    def __init__(self, config: DemodulatorConfig = None, **overrides):
        if config is None:
            config = DemodulatorConfig()
        if overrides:
            config = config.replace(**overrides)
        self.config = config.validate()

        fs = config.sample_rate

        # Video branch
        self.video_shifter = FrequencyShifter(fs, -config.video_carrier)
        self.video_filter = LowPassFilter(fs, config.video_bandwidth, config.video_transition)
        self.dc_blocker = DCBlocker()
        self.timing = LineTiming(fs, config.lines_per_frame, config.line_duration)
        self.agc = AGC(target_level=1.0, block_size=int(round(self.timing.line_samples)))
        self.sync_detector = VerticalSyncDetector(fs)
        # Frame line numbers of the raster rows, top to bottom
        self.raster_lines = remove_vbi(np.arange(1, config.lines_per_frame + 1))
        self.color_decoder = ColorDecoder(
            fs,
            subcarrier=config.color_subcarrier,
            bandwidth=config.chroma_bandwidth,
            transition_width=config.chroma_transition,
            pixels_per_line=config.pixels_per_line,
            color=config.color,
            hue=config.hue,
            saturation=config.saturation,
            pal_delay_line=config.pal_delay_line,
        )

        # Audio branch
        self.audio = AudioDemodulator(
            fs,
            carrier=config.audio_carrier,
            bandwidth=config.audio_bandwidth,
            transition_width=config.audio_transition,
            deviation=config.audio_deviation,
            audio_rate=config.audio_rate,
            deemphasis=config.deemphasis,
        )

        self.assembler = FrameAssembler(
            config.visible_lines,
            config.pixels_per_line,
            x_offset=config.x_offset,
            y_offset=config.y_offset,
        )

    @property
    def sample_rate(self) -> float:
        return self.config.sample_rate

    @property
    def frame_samples(self) -> int:
        """Input samples spanning one full frame."""
        return int(round(self.timing.frame_samples))

    def demodulate_video(self, samples: np.ndarray) -> tuple:
        """Video branch up to the conditioned composite signal.

        Returns
        -------
        composite : np.ndarray
            DC-free, gain-normalized composite video at the input rate.
        gains : np.ndarray
            AGC gain per line-sized block.
        """
        shifted = self.video_shifter.process(samples)
        envelope = am_demodulate(self.video_filter.apply(shifted))
        composite = self.dc_blocker.process(envelope)
        return self.agc.process(composite)

    def demodulate(self, samples: np.ndarray) -> DecodedFrame:
        """Decode one buffer of complex baseband samples.

        Parameters
        ----------
        samples : np.ndarray
            Complex samples (or interleaved I/Q reals) at ``sample_rate``.
            Should span at least one frame plus a field so a complete
            frame can be assembled.

        Returns
        -------
        DecodedFrame
            The picture, the sound and quality metadata. A buffer without
            a detectable vertical sync still yields a (garbled) frame with
            ``sync_acquired=False``.

        Raises
        ------
        ValueError
            If the buffer is empty.
        """
        samples = as_complex(samples)
        if len(samples) == 0:
            raise ValueError("cannot demodulate an empty sample buffer")

        composite, gains = self.demodulate_video(samples)

        sync = self.sync_detector.detect(composite)
        if not sync.acquired:
            logger.warning(
                "vertical sync not acquired in %d samples; decoding from offset 0",
                len(samples),
            )

        frame_start = self.timing.frame_start(sync.offset, sync.field)
        starts, valid = self.timing.line_starts(frame_start, len(composite))
        missing = int(np.count_nonzero(~valid))
        if missing:
            logger.debug("%d of %d lines outside the buffer", missing, len(valid))

        rows, color_detected = self.color_decoder.decode(
            composite, starts, valid, self.raster_lines
        )
        audio = self.audio.process(samples)

        agc_gain = float(np.median(gains)) if len(gains) else 1.0
        logger.debug(
            "decoded frame: sync=%s offset=%d field=%d colour=%s agc=%.3g audio=%d",
            sync.acquired, sync.offset, sync.field, color_detected, agc_gain, len(audio),
        )

        return self.assembler.assemble(
            rows,
            audio,
            self.audio.output_rate,
            sync_acquired=sync.acquired,
            sync_offset=sync.offset,
            field=sync.field,
            color_detected=color_detected,
            agc_gain=agc_gain,
            frame_start=frame_start,
            missing_lines=missing,
            slice_level=sync.slice_level,
        )

    def __repr__(self):
        c = self.config
        return (
            f"PALBDemodulator(fs={c.sample_rate / 1e6:.4f} MSPS, "
            f"video={c.video_carrier / 1e6:+.4f} MHz, "
            f"audio={c.audio_carrier / 1e6:+.4f} MHz, "
            f"raster={c.pixels_per_line}x{c.visible_lines})"
        )
