# ==============================
# File: src/mindbloom/microphone.py
# ==============================
import threading
from contextlib import contextmanager
from typing import Iterator, Optional

import numpy as np

from .config import CFG
import logging

log = logging.getLogger(__name__)


@contextmanager
def open_microphone(samplerate: int, channels: int = 1) -> Iterator["object"]:
    """Started mono int16 input stream; always stopped and closed on exit."""
    import sounddevice as sd

    stream = sd.InputStream(samplerate=samplerate, channels=channels, dtype="int16")
    try:
        stream.start()
    except Exception:
        stream.close()
        raise
    log.debug("Microphone open @ %d Hz", samplerate)
    try:
        yield stream
    finally:
        try:
            stream.stop()
        finally:
            stream.close()
            log.debug("Microphone closed")


def record_pcm(duration_s: float, samplerate: int | None = None, stop: Optional[threading.Event] = None,
               opener=open_microphone) -> bytes:
    """Record up to ``duration_s`` seconds of LINEAR16 mono audio.

    Returns early with what was captured once ``stop`` is set.
    """
    samplerate = samplerate or CFG.stt_sample_rate
    total = int(duration_s * samplerate)
    block = max(1, samplerate // 10)
    frames = []
    got = 0
    with opener(samplerate) as stream:
        while got < total and not (stop is not None and stop.is_set()):
            data, overflowed = stream.read(min(block, total - got))
            if overflowed:
                log.warning("Microphone input overflowed")
            frames.append(np.asarray(data, dtype=np.int16).reshape(-1))
            got += len(frames[-1])
    if not frames:
        return b""
    return np.concatenate(frames).tobytes()
