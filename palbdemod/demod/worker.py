"""Background demodulation between a capture thread and a display thread.

Capture pushes sample buffers into a bounded queue; a worker thread
demodulates them and hands frames to a callback or an output queue. The
producer picks the backpressure policy per call (block or drop). Stopping
is an explicit cancellation token checked between buffers; a buffer that
is being demodulated always completes.
"""

import logging
import queue
import threading
from typing import Callable, Iterable, Iterator, Optional

import numpy as np

from palbdemod.demod.frame import DecodedFrame
from palbdemod.demod.pal_demodulator import PALBDemodulator
from palbdemod.utils.constants import FRAME_DURATION, FIELD_DURATION

logger = logging.getLogger(__name__)

_STOP = object()


def split_frames(
    samples: np.ndarray,
    sample_rate: float,
    overlap: float = FIELD_DURATION,
) -> Iterator[np.ndarray]:
    """Cut a long capture into per-frame buffers.

    Each chunk is one frame long plus ``overlap`` seconds, so it contains a
    complete vertical sync and a whole frame after it. Chunks advance by
    one frame. A trailing remainder shorter than a frame is dropped.
    """
    step = int(round(FRAME_DURATION * sample_rate))
    length = step + int(round(overlap * sample_rate))
    for start in range(0, len(samples) - step + 1, step):
        yield samples[start:start + length]


def iter_frames(
    chunks: Iterable[np.ndarray],
    demodulator: PALBDemodulator,
    cancel: Optional[threading.Event] = None,
) -> Iterator[DecodedFrame]:
    """Demodulate buffers one after another until exhausted or cancelled."""
    for chunk in chunks:
        if cancel is not None and cancel.is_set():
            logger.info("demodulation cancelled")
            return
        yield demodulator.demodulate(chunk)


class DemodulatorWorker:
    """Runs a ``PALBDemodulator`` on a daemon thread fed by a bounded queue.

    Parameters
    ----------
    demodulator : PALBDemodulator
        The demodulator to run.
    on_frame : callable, optional
        Called with each ``DecodedFrame`` on the worker thread. If None,
        frames are put on ``frames`` (an unbounded queue).
    max_pending : int
        Input queue capacity in buffers. Default 4.
    cancel : threading.Event, optional
        Cancellation token. A fresh one is created if not given.
    """

    def __init__(
        self,
        demodulator: PALBDemodulator,
        on_frame: Optional[Callable[[DecodedFrame], None]] = None,
        max_pending: int = 4,
        cancel: Optional[threading.Event] = None,
    ):
        if max_pending < 1:
            raise ValueError(f"max_pending must be positive, got {max_pending}")
        self.demodulator = demodulator
        self.on_frame = on_frame
        self.cancel = cancel if cancel is not None else threading.Event()
        self.frames = queue.Queue()

        self._pending = queue.Queue(maxsize=max_pending)
        self._thread = None

        # Stats
        self.buffers_submitted = 0
        self.buffers_dropped = 0
        self.frames_decoded = 0
        self.errors = 0

    def start(self):
        """Start the worker thread."""
        if self._thread is not None:
            raise RuntimeError("DemodulatorWorker already started")
        self._thread = threading.Thread(
            target=self._run,
            name="PALBDemodulator",
            daemon=True,
        )
        self._thread.start()
        logger.info("demodulator worker started (%r)", self.demodulator)

    def submit(self, samples: np.ndarray, block: bool = True,
               timeout: Optional[float] = None) -> bool:
        """Queue a sample buffer for demodulation.

        Parameters
        ----------
        samples : np.ndarray
            One self-contained buffer (see ``split_frames``).
        block : bool
            True waits for room in the queue; False drops the buffer when
            the queue is full.
        timeout : float, optional
            Upper bound on the wait when ``block`` is True.

        Returns
        -------
        bool
            False if the buffer was dropped.
        """
        if self._thread is None:
            raise RuntimeError("DemodulatorWorker not started")
        if self.cancel.is_set():
            return False
        try:
            self._pending.put(samples, block=block, timeout=timeout)
        except queue.Full:
            self.buffers_dropped += 1
            logger.debug("input queue full, dropped buffer of %d samples", len(samples))
            return False
        self.buffers_submitted += 1
        return True

    def _run(self):
        while not self.cancel.is_set():
            item = self._pending.get()
            if item is _STOP:
                break
            if self.cancel.is_set():
                break
            try:
                frame = self.demodulator.demodulate(item)
            except Exception:
                self.errors += 1
                logger.exception("demodulation failed for a buffer of %d samples", len(item))
                continue

            self.frames_decoded += 1
            if self.on_frame is None:
                self.frames.put(frame)
                continue
            try:
                self.on_frame(frame)
            except Exception:
                self.errors += 1
                logger.exception("frame callback failed")

        logger.info(
            "demodulator worker stopped: %d decoded, %d dropped, %d errors",
            self.frames_decoded, self.buffers_dropped, self.errors,
        )

    def stop(self, timeout: Optional[float] = 10.0, drain: bool = False):
        """Stop the worker.

        Parameters
        ----------
        timeout : float, optional
            Seconds to wait for the thread. Default 10.
        drain : bool
            True lets already-queued buffers finish first; False cancels
            immediately after the buffer in progress.
        """
        if self._thread is None:
            return
        if not drain:
            self.cancel.set()
            _discard_pending(self._pending)
        # Wake the thread if it is waiting on an empty queue
        try:
            self._pending.put(_STOP, timeout=timeout)
        except queue.Full:
            pass
        self._thread.join(timeout=timeout)
        if self._thread.is_alive():
            logger.warning("demodulator worker did not stop within %s s", timeout)

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, *args):
        self.stop()


def _discard_pending(pending: queue.Queue):
    while True:
        try:
            pending.get_nowait()
        except queue.Empty:
            return
