# ==============================
# File: src/mindbloom/speech_input.py
# ==============================
from __future__ import annotations
import asyncio
import threading
from typing import Callable, Optional
import logging

from .config import CFG
from .errors import ListenInProgressError, RecognitionUnavailableError
from .microphone import record_pcm
from .stt_cloud import CloudRecognizer
from .stt_vosk import VoskRecognizer

log = logging.getLogger(__name__)


class SpeechInputDriver:
    """Single-shot listen: cloud recognition first, local Vosk on any cloud failure.

    Only one listen may run at a time; a second call raises
    ListenInProgressError. Listening is capped at ``timeout_s``.
    """

    def __init__(self, cloud: Optional[CloudRecognizer] = None, local: Optional[VoskRecognizer] = None,
                 recorder: Callable[..., bytes] = record_pcm, timeout_s: float | None = None):
        self.cloud = cloud
        self.local = local
        self.recorder = recorder
        self.timeout_s = timeout_s if timeout_s is not None else CFG.listen_timeout_s
        self._stop: Optional[threading.Event] = None

    @property
    def is_listening(self) -> bool:
        return self._stop is not None

    def stop(self) -> None:
        """End the current listen early; it returns what was heard so far."""
        if self._stop is not None:
            self._stop.set()

    async def listen_once(self) -> str:
        if self._stop is not None:
            raise ListenInProgressError("Already listening")
        stop = threading.Event()
        self._stop = stop
        worker = asyncio.ensure_future(asyncio.to_thread(self._listen_blocking, stop))
        try:
            return await asyncio.shield(worker)
        finally:
            # Also releases the microphone if we were cancelled mid-listen.
            stop.set()
            if worker.done():
                self._release(stop, worker)
            else:
                # Stay busy until the worker thread has let go of the microphone.
                worker.add_done_callback(lambda f: self._release(stop, f))

    def _release(self, stop: threading.Event, worker: asyncio.Future) -> None:
        if not worker.cancelled():
            # consume the outcome so asyncio does not report it as unhandled
            worker.exception()
        if self._stop is stop:
            self._stop = None

    def _listen_blocking(self, stop: threading.Event) -> str:
        if self.cloud is not None and self.cloud.configured:
            try:
                pcm = self.recorder(self.timeout_s, stop=stop)
                return self.cloud.recognize(pcm).text
            except Exception as e:
                log.warning("Cloud speech-to-text failed, falling back to local: %s", e)
        if self.local is None:
            raise RecognitionUnavailableError("No speech recognition service available")
        return self.local.listen(self.timeout_s, stop=stop)
