"""Receiver blocks of the PAL-B demodulation chain."""
