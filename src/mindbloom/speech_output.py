# ==============================
# File: src/mindbloom/speech_output.py
# ==============================
from __future__ import annotations
import asyncio
import threading
from dataclasses import dataclass
from typing import Callable, Optional, Protocol
import logging

from .config import CFG
from .models import SpeechCompleted, SpeechErrored, SpeechResult

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class SpeechOptions:
    rate: float = 0.9
    pitch: float = 1.0
    volume: float = 0.8

    @classmethod
    def from_config(cls) -> "SpeechOptions":
        return cls(rate=CFG.tts_rate, pitch=CFG.tts_pitch, volume=CFG.tts_volume)


class SpeechEngine(Protocol):
    def play(self, text: str, options: SpeechOptions, stop: threading.Event) -> None:
        """Block until spoken, return early once ``stop`` is set, raise on failure."""


class SpeechOutputDriver:
    """Awaitable text-to-speech with at most one utterance in flight.

    ``speak`` never raises: it resolves to SpeechCompleted or SpeechErrored.
    A new ``speak`` interrupts the previous one, which then resolves as
    ``SpeechErrored("interrupted")``.

    on_transition gets "started", "completed" or "errored".
    """

    def __init__(self, engine: Optional[SpeechEngine] = None,
                 on_transition: Callable[[str], None] | None = None):
        self.engine = engine
        self.on_transition = on_transition
        self._stop: Optional[threading.Event] = None

    @property
    def is_speaking(self) -> bool:
        return self._stop is not None

    def cancel(self) -> None:
        if self._stop is not None:
            self._stop.set()

    async def speak(self, text: str, options: SpeechOptions | None = None) -> SpeechResult:
        if self.engine is None:
            log.warning("Speech synthesis not supported: no engine configured")
            return SpeechErrored("speech synthesis not supported")
        options = options or SpeechOptions()
        self.cancel()
        stop = threading.Event()
        self._stop = stop
        self._emit("started")
        try:
            await asyncio.to_thread(self.engine.play, text, options, stop)
        except Exception as e:
            log.warning("Speech playback failed: %s", e)
            result: SpeechResult = SpeechErrored(str(e) or e.__class__.__name__)
        else:
            result = SpeechErrored("interrupted") if stop.is_set() else SpeechCompleted()
        finally:
            if self._stop is stop:
                self._stop = None
        self._emit("completed" if isinstance(result, SpeechCompleted) else "errored")
        return result

    def _emit(self, transition: str) -> None:
        log.debug("Speech %s", transition)
        if self.on_transition:
            self.on_transition(transition)
