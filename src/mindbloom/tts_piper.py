# ==============================
# File: src/mindbloom/tts_piper.py
# ==============================
import threading
from pathlib import Path

import numpy as np
from .config import CFG
from .errors import MissingConfigurationError
from .speech_output import SpeechOptions
import logging

log = logging.getLogger(__name__)


def scale_volume(pcm: np.ndarray, volume: float) -> np.ndarray:
    if volume >= 1.0:
        return pcm
    scaled = pcm.astype(np.float32) * max(0.0, volume)
    return np.clip(scaled, -32768, 32767).astype(np.int16)


class PiperTTS:
    """Stream Piper TTS audio to the default speaker in small blocks.

    ``play`` blocks until the text is spoken or ``stop`` is set; it is meant to
    run in a worker thread.
    """

    def __init__(self, model_path: str | None = None, block_ms: int | None = None):
        self.model_path = model_path or CFG.piper_model_path
        if not Path(self.model_path).exists():
            raise MissingConfigurationError(
                f"Piper voice not found at {self.model_path}. Set PIPER_MODEL_PATH or run mindbloom-fetch-assets"
            )
        from piper import PiperVoice

        log.info("Loading Piper voice: %s", self.model_path)
        self.voice = PiperVoice.load(self.model_path)
        self.block_ms = max(8, min(64, block_ms or CFG.tts_block_ms))

    def play(self, text: str, options: SpeechOptions, stop: threading.Event) -> None:
        import sounddevice as sd
        from piper import SynthesisConfig

        sr = self.voice.config.sample_rate
        block_samples = int(sr * (self.block_ms / 1000.0))
        # Piper has no pitch control; rate maps onto phoneme length.
        syn_config = SynthesisConfig(length_scale=1.0 / max(0.1, options.rate))
        log.info("Speaking with Piper @ %d Hz, block=%d samples", sr, block_samples)

        with sd.OutputStream(samplerate=sr, channels=1, dtype='int16') as stream:
            buf = b''
            for chunk in self.voice.synthesize(text, syn_config=syn_config):
                buf += chunk.audio_int16_bytes
                while len(buf) >= block_samples * 2:  # int16 -> 2 bytes
                    if stop.is_set():
                        log.info("Piper playback interrupted")
                        return
                    pcm = np.frombuffer(buf[: block_samples * 2], dtype=np.int16)
                    buf = buf[block_samples * 2:]
                    stream.write(scale_volume(pcm, options.volume))
            if buf and not stop.is_set():
                stream.write(scale_volume(np.frombuffer(buf, dtype=np.int16), options.volume))
