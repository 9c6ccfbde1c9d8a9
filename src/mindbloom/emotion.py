# ==============================
# File: src/mindbloom/emotion.py
# ==============================
from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, Tuple

from .models import EmotionType

# Checked in order; first label with a hit wins.
KEYWORDS: Tuple[Tuple[EmotionType, Tuple[str, ...]], ...] = (
    (EmotionType.CONCERNED, ('scared', 'afraid', 'panic', 'hurt', 'alone', 'help me', '😰', '😨')),
    (EmotionType.SAD, ('sad', 'cry', 'crying', 'miss', 'lonely', 'down', 'unfortunately', '😢', '🙁')),
    (EmotionType.HAPPY, ('yay', 'great', 'glad', 'awesome', 'happy', 'excited', 'thank', '😊', '😀', '😁')),
)

# Fixed tags the assistant speaks with.
ASSISTANT_REPLY = (EmotionType.ENCOURAGING, 0.8)
ASSISTANT_GREETING = (EmotionType.WELCOMING, 0.9)


@dataclass
class EmotionResult:
    label: EmotionType
    score: float


class EmotionEngine:
    """Tiny rule-based emotion tagger for user messages.

    Only used to annotate the message log; it never influences crisis
    classification.
    """
    def __init__(self, keywords: Tuple[Tuple[EmotionType, Tuple[str, ...]], ...] = KEYWORDS):
        self.keywords = keywords

    def analyze(self, text: str) -> EmotionResult:
        text = (text or '').strip()
        if not text:
            return EmotionResult(EmotionType.NEUTRAL, 1.0)
        low = text.lower()
        for label, words in self.keywords:
            if any(w in low for w in words):
                return EmotionResult(label, 0.7)
        return EmotionResult(EmotionType.NEUTRAL, 0.6)

    def counts(self, texts) -> Dict[EmotionType, int]:
        out: Dict[EmotionType, int] = {}
        for t in texts:
            label = self.analyze(t).label
            out[label] = out.get(label, 0) + 1
        return out
