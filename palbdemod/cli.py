"""Command-line decoder: IQ capture in, PNG frames and a WAV soundtrack out.

Usage:
    palbdemod capture.cs8 --format int8 --sample-rate 16e6 -o frames/
    palbdemod capture.npz --video-carrier=-2e6 --audio-carrier=5e6 -o out/
"""

import argparse
import logging
import os
import sys

import numpy as np
import soundfile as sf
from PIL import Image

from palbdemod import __version__
from palbdemod.config import DemodulatorConfig
from palbdemod.demod.pal_demodulator import PALBDemodulator
from palbdemod.demod.worker import iter_frames, split_frames
from palbdemod.utils.constants import FRAME_DURATION
from palbdemod.utils.iq import load_npz, load_raw_iq

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='palbdemod',
        description='Demodulate a PAL-B analog TV capture into PNG frames and WAV audio',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__.split('Usage:', 1)[1],
    )
    parser.add_argument('input', help='raw IQ file or .npz capture')
    parser.add_argument('-o', '--output', default='.',
                        help='output directory (default: current directory)')
    parser.add_argument('--format', default='complex64',
                        choices=['complex64', 'int16', 'int8', 'uint8'],
                        help='raw sample format (ignored for .npz)')
    parser.add_argument('--sample-rate', type=float,
                        help='sample rate in Hz (default: from .npz metadata or 16e6)')
    parser.add_argument('--video-carrier', type=float,
                        help='video carrier offset from centre in Hz')
    parser.add_argument('--audio-carrier', type=float,
                        help='audio carrier offset from centre in Hz')
    parser.add_argument('--frames', type=int, default=0,
                        help='maximum frames to decode (0 = all)')
    parser.add_argument('--prefix', default='frame',
                        help='PNG file name prefix (default: frame)')
    parser.add_argument('--no-color', action='store_true',
                        help='decode luminance only')
    parser.add_argument('--hue', type=float, default=0.0,
                        help='hue rotation in degrees')
    parser.add_argument('--saturation', type=float, default=1.0,
                        help='chroma gain (default: 1.0)')
    parser.add_argument('--no-audio', action='store_true',
                        help='do not write the WAV soundtrack')
    parser.add_argument('-v', '--verbose', action='store_true',
                        help='debug logging')
    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')
    return parser


def load_capture(path: str, fmt: str) -> tuple:
    """Return (samples, metadata) for a raw or .npz capture."""
    if path.endswith('.npz'):
        return load_npz(path)
    return load_raw_iq(path, dtype=fmt), {}


def config_from_args(args, metadata: dict) -> DemodulatorConfig:
    changes = {
        'color': not args.no_color,
        'hue': args.hue,
        'saturation': args.saturation,
    }
    sample_rate = args.sample_rate or metadata.get('sample_rate')
    if sample_rate:
        changes['sample_rate'] = float(sample_rate)
    if args.video_carrier is not None:
        changes['video_carrier'] = args.video_carrier
    if args.audio_carrier is not None:
        changes['audio_carrier'] = args.audio_carrier
    return DemodulatorConfig(**changes)


def run(args) -> int:
    samples, metadata = load_capture(args.input, args.format)
    try:
        demod = PALBDemodulator(config_from_args(args, metadata))
    except ValueError as e:
        logger.error("invalid settings: %s", e)
        return 2

    logger.info("%s: %d samples (%.3f s), %r", args.input, len(samples),
                len(samples) / demod.sample_rate, demod)
    if len(samples) < demod.frame_samples:
        logger.error("capture shorter than one frame (%d < %d samples)",
                     len(samples), demod.frame_samples)
        return 1

    os.makedirs(args.output, exist_ok=True)
    frame_audio = int(round(FRAME_DURATION * demod.audio.output_rate))
    soundtrack = []
    lost = 0
    for n, frame in enumerate(iter_frames(split_frames(samples, demod.sample_rate), demod)):
        if args.frames and n >= args.frames:
            break
        if not frame.sync_acquired:
            lost += 1
        path = os.path.join(args.output, f'{args.prefix}_{n:05d}.png')
        Image.fromarray(frame.image).save(path)
        # Chunks overlap by a field; keep one frame period of sound each
        soundtrack.append(frame.audio[:frame_audio])
        logger.info("frame %d -> %s (sync=%s colour=%s agc=%.3g)", n, path,
                    frame.sync_acquired, frame.color_detected, frame.agc_gain)

    if not soundtrack:
        logger.error("no frames decoded")
        return 1
    if lost:
        logger.warning("%d of %d frames decoded without vertical sync", lost, len(soundtrack))

    if not args.no_audio:
        wav_path = os.path.join(args.output, f'{args.prefix}.wav')
        sf.write(wav_path, np.clip(np.concatenate(soundtrack), -1.0, 1.0),
                 demod.audio.output_rate, subtype='PCM_16')
        logger.info("audio -> %s", wav_path)
    return 0


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )
    return run(args)


if __name__ == '__main__':
    sys.exit(main())
