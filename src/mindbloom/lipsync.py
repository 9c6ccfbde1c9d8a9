# ==============================
# File: src/mindbloom/lipsync.py
# ==============================
from __future__ import annotations
import asyncio
import random
from typing import Callable, Optional
import logging

from .config import CFG
from .models import AvatarVisualState, MouthShape

log = logging.getLogger(__name__)

VOWELS = "aeiou"
LIP_CLOSERS = "mnpb"
LIP_TEETH = "fv"


def mouth_shape_for(char: str) -> MouthShape:
    """Coarse viseme for one character. Not phoneme alignment, just a look."""
    c = char.lower()
    if c in VOWELS:
        return MouthShape.OPEN
    if c in LIP_CLOSERS:
        return MouthShape.CLOSED
    if c in LIP_TEETH:
        return MouthShape.TEETH
    return MouthShape.SLIGHT


class MouthSampler:
    """Pick a random character of the utterance. Seed it for repeatable sequences."""

    def __init__(self, seed: int | None = None, rng: random.Random | None = None):
        self.rng = rng or random.Random(seed)

    def sample(self, text: str) -> MouthShape:
        if not text:
            return MouthShape.CLOSED
        return mouth_shape_for(text[self.rng.randrange(len(text))])


class LipSyncAnimator:
    """Drives the avatar mouth while the session says the avatar is speaking.

    Each tick samples a new shape from the current utterance. Stopping forces
    the mouth closed and cancels the tick task.
    """

    def __init__(self, on_change: Callable[[AvatarVisualState], None] | None = None,
                 tick_s: float | None = None, sampler: MouthSampler | None = None):
        self.on_change = on_change
        self.tick_s = tick_s if tick_s is not None else CFG.lipsync_tick_ms / 1000.0
        self.sampler = sampler or MouthSampler()
        self.state = AvatarVisualState()
        self.ticks = 0
        self._task: Optional[asyncio.Task] = None
        self._text = ""

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self, text: str) -> None:
        """Begin ticking for ``text``. Must be called on the event loop thread."""
        self._cancel()
        self._text = text
        self._set(AvatarVisualState(MouthShape.CLOSED, True))
        if text:
            self._task = asyncio.get_running_loop().create_task(self._run(text))

    def stop(self) -> None:
        self._cancel()
        self._text = ""
        self._set(AvatarVisualState(MouthShape.CLOSED, False))

    def follow(self, session) -> Callable[[], None]:
        """Track a ConversationSession's speaking flag and utterance."""
        def _on_session(s) -> None:
            if s.is_avatar_speaking:
                if not self.running or s.current_utterance_text != self._text:
                    self.start(s.current_utterance_text)
            elif self.state.is_speaking or self.running:
                self.stop()
        return session.subscribe(_on_session)

    async def _run(self, text: str) -> None:
        while True:
            await asyncio.sleep(self.tick_s)
            self.ticks += 1
            self._set(AvatarVisualState(self.sampler.sample(text), True))

    def _cancel(self) -> None:
        if self._task is not None:
            self._task.cancel()
            self._task = None

    def _set(self, state: AvatarVisualState) -> None:
        if state == self.state:
            return
        self.state = state
        if self.on_change:
            self.on_change(state)
