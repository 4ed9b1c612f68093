"""PAL-B analog television demodulator for complex baseband captures."""

from palbdemod.config import DemodulatorConfig
from palbdemod.demod.frame import DecodedFrame
from palbdemod.demod.pal_demodulator import PALBDemodulator

__version__ = '0.1.0'

__all__ = ['DecodedFrame', 'DemodulatorConfig', 'PALBDemodulator', '__version__']
