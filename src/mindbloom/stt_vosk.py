# ==============================
# File: src/mindbloom/stt_vosk.py
# ==============================
import json
import threading
import time
from pathlib import Path
from typing import Optional

from .config import CFG
from .errors import RecognitionUnavailableError
from .microphone import open_microphone
import logging

log = logging.getLogger(__name__)


class VoskRecognizer:
    """Offline single-shot microphone STT using Vosk.

    ``listen`` returns the first finished phrase, or whatever Vosk has once the
    timeout passes (possibly "").
    """

    def __init__(self, model_path: str | None = None, samplerate: int | None = None, opener=open_microphone):
        self.model_path = model_path or CFG.vosk_model_path
        self.samplerate = samplerate or CFG.stt_sample_rate
        self.opener = opener
        self._model = None

    @property
    def available(self) -> bool:
        return Path(self.model_path).exists()

    def _load_model(self):
        if self._model is None:
            if not self.available:
                raise RecognitionUnavailableError(
                    f"Vosk model not found at {self.model_path}. Set VOSK_MODEL_PATH or run mindbloom-fetch-assets"
                )
            from vosk import Model

            log.info("Loading Vosk model: %s", self.model_path)
            self._model = Model(self.model_path)
        return self._model

    def _new_recognizer(self):
        model = self._load_model()
        from vosk import KaldiRecognizer

        return KaldiRecognizer(model, self.samplerate)

    def listen(self, timeout_s: float, stop: Optional[threading.Event] = None) -> str:
        rec = self._new_recognizer()
        block = max(1, self.samplerate // 10)
        deadline = time.monotonic() + timeout_s
        log.info("Listening with Vosk for up to %.1fs", timeout_s)
        with self.opener(self.samplerate) as stream:
            while time.monotonic() < deadline and not (stop is not None and stop.is_set()):
                data, overflowed = stream.read(block)
                if overflowed:
                    log.warning("STT stream overflowed")
                if rec.AcceptWaveform(data.tobytes()):
                    text = json.loads(rec.Result()).get("text", "").strip()
                    if text:
                        return text
        return json.loads(rec.FinalResult()).get("text", "").strip()
