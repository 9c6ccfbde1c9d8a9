# ==============================
# File: src/mindbloom/stt_cloud.py
# ==============================
from __future__ import annotations
import base64
from typing import Any, Dict
import logging

import requests

from .config import CFG
from .errors import MissingConfigurationError, NoSpeechRecognizedError
from .models import Transcript

log = logging.getLogger(__name__)

DEFAULT_CONFIDENCE = 0.8


def parse_recognition(data: Any) -> Transcript:
    """Pick the top alternative of the first result; no result is an error."""
    results = data.get("results") if isinstance(data, dict) else None
    alternatives = (results[0].get("alternatives") or []) if results else []
    if not alternatives:
        raise NoSpeechRecognizedError("No speech recognized")
    alts = tuple(
        (a.get("transcript", ""), float(a.get("confidence") or DEFAULT_CONFIDENCE)) for a in alternatives
    )
    text, confidence = alts[0]
    return Transcript(text=text, confidence=confidence, alternatives=alts)


class CloudRecognizer:
    """Speech-to-text through the cloud proxy's ``/speech-to-text/recognize`` route."""

    def __init__(self, proxy_url: str | None = None, language: str | None = None,
                 samplerate: int | None = None, timeout: float | None = None):
        self.proxy_url = (proxy_url if proxy_url is not None else CFG.cloud_proxy_url).rstrip("/")
        self.language = language or CFG.stt_language
        self.samplerate = samplerate or CFG.stt_sample_rate
        self.timeout = timeout or CFG.reply_timeout_s

    @property
    def configured(self) -> bool:
        return bool(self.proxy_url)

    def build_request(self, pcm: bytes) -> Dict[str, Any]:
        return {
            "config": {
                "languageCode": self.language,
                "sampleRateHertz": self.samplerate,
                "encoding": "LINEAR16",
                "enableAutomaticPunctuation": True,
                "model": "latest_short",
            },
            "audio": {"content": base64.b64encode(pcm).decode("ascii")},
        }

    def recognize(self, pcm: bytes) -> Transcript:
        if not self.configured:
            raise MissingConfigurationError("Speech-to-text proxy not configured. Please set CLOUD_PROXY_URL")
        url = f"{self.proxy_url}/speech-to-text/recognize"
        log.info("Cloud STT request: %d bytes, lang=%s", len(pcm), self.language)
        r = requests.post(url, json=self.build_request(pcm), timeout=self.timeout)
        r.raise_for_status()
        return parse_recognition(r.json())
